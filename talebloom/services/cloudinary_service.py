"""
Cloudinary Service - hosts generated illustrations and profile pictures
Signed uploads against the Cloudinary REST upload endpoint.
"""
import hashlib
import httpx
import logging
import time
from typing import Optional, Dict, Any

from talebloom.config import Settings

logger = logging.getLogger(__name__)


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    """Cloudinary signature: sha1 of sorted key=value pairs joined by & plus the secret"""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params) if params[key] not in (None, ""))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryService:
    """Image hosting provider client"""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.cloud_name = settings.cloudinary_cloud_name
        self.api_key = settings.cloudinary_api_key
        self.api_secret = settings.cloudinary_api_secret
        self.folder = settings.cloudinary_folder
        self.client = client or httpx.AsyncClient(timeout=settings.cloudinary_timeout)

    @property
    def upload_url(self) -> str:
        return f"https://api.cloudinary.com/v1_1/{self.cloud_name}/image/upload"

    def _signed_form(self, extra: Dict[str, Any]) -> Dict[str, Any]:
        params = {"folder": self.folder, "timestamp": int(time.time()), **extra}
        params = {key: value for key, value in params.items() if value not in (None, "")}
        params["signature"] = sign_params(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    async def upload_from_url(self, image_url: str, caption: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Upload a remote image by URL.
        Returns the asset descriptor (secure_url, url, public_id, ...) or None
        when the provider answered without one.
        """
        extra = {"use_filename": "true", "unique_filename": "false"}
        if caption:
            extra["context"] = f"caption={caption.replace('|', ' ').replace('=', ' ')}"

        response = await self.client.post(
            self.upload_url,
            data={"file": image_url, **self._signed_form(extra)},
        )
        response.raise_for_status()
        result = response.json()
        if not result or not (result.get("secure_url") or result.get("url")):
            return None
        logger.info(f"Uploaded image to Cloudinary: {result.get('public_id')}")
        return result

    async def upload_bytes(self, data: bytes, filename: str = "upload.jpg") -> Optional[Dict[str, Any]]:
        """Upload raw image bytes (profile pictures)"""
        response = await self.client.post(
            self.upload_url,
            data=self._signed_form({}),
            files={"file": (filename, data)},
        )
        response.raise_for_status()
        result = response.json()
        if not result or not result.get("secure_url"):
            return None
        return result

    async def close(self):
        await self.client.aclose()
