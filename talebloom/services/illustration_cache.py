"""
Time-bounded cache of illustration results
"""
import asyncio
import hashlib
import logging
import time
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


def image_fingerprint(image_base64: str) -> str:
    """Digest of the whole encoded photo; JPEG headers alone do not tell photos apart"""
    return hashlib.sha256(image_base64.encode("utf-8")).hexdigest()


def make_cache_key(
    image_base64: str,
    name: str,
    paragraph: str,
    style: str,
    quality: str,
    size: str,
) -> str:
    """Deterministic digest identifying one reusable illustration."""
    parts = [image_fingerprint(image_base64), name, paragraph, str(style), quality, size]
    digest = hashlib.sha256()
    for part in parts:
        digest.update(part.encode("utf-8"))
        digest.update(b"\x1f")
    return digest.hexdigest()


class IllustrationCache(Generic[V]):
    """
    Key/value map with a fixed time-to-live per entry.

    Entries past their TTL are treated as absent on lookup whether or not
    the periodic sweep has removed them yet. All access happens on one
    event loop, so no locking is needed.
    """

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[float, V]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: V) -> None:
        self._entries[key] = (self._clock() + self.ttl, value)

    def sweep(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired illustration(s)")
        return len(expired)

    async def run_sweeper(self, interval: float) -> None:
        """Sweep forever every `interval` seconds; cancel the task to stop."""
        while True:
            await asyncio.sleep(interval)
            self.sweep()
