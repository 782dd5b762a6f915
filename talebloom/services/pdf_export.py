"""
PDF export of stored stories
Title page with the hero photo, then one page per paragraph with its
illustration.
"""
import asyncio
import base64
import html
import io
import logging
from typing import List, Optional, Sequence, Dict, Any

import httpx
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, PageBreak, Image as RLImage

logger = logging.getLogger(__name__)


def decode_data_uri(data_uri: str) -> Optional[bytes]:
    if not data_uri:
        return None
    payload = data_uri.split(",", 1)[1] if data_uri.startswith("data:") else data_uri
    try:
        return base64.b64decode(payload)
    except ValueError:
        return None


def build_pdf_image(data: bytes, max_width: float, max_height: float):
    try:
        reader = ImageReader(io.BytesIO(data))
        iw, ih = reader.getSize()
        if iw <= 0 or ih <= 0:
            return None
        scale = min(max_width / iw, max_height / ih, 1.0)
        return RLImage(io.BytesIO(data), width=iw * scale, height=ih * scale)
    except Exception as e:
        logger.warning(f"Skipping unreadable image in PDF: {e}")
        return None


def asset_url(asset: Any) -> Optional[str]:
    if isinstance(asset, dict):
        return asset.get("secure_url") or asset.get("url")
    return asset or None


async def fetch_illustrations(
    images: Sequence[Dict[str, Any]],
    client: Optional[httpx.AsyncClient] = None,
) -> List[Optional[bytes]]:
    """Download illustration bytes; a failed download leaves a text-only page"""
    own_client = client is None
    client = client or httpx.AsyncClient(timeout=30.0, follow_redirects=True)

    async def fetch(url: Optional[str]) -> Optional[bytes]:
        if not url:
            return None
        try:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch illustration {url}: {e}")
            return None

    try:
        return list(await asyncio.gather(*(fetch(asset_url(asset)) for asset in images)))
    finally:
        if own_client:
            await client.aclose()


def render_story_pdf(
    title: str,
    paragraphs: Sequence[str],
    hero_image: Optional[bytes] = None,
    illustrations: Optional[Sequence[Optional[bytes]]] = None,
) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=72,
        leftMargin=72,
        topMargin=72,
        bottomMargin=72,
        title=title,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'StoryTitle',
        parent=styles['Heading1'],
        fontSize=28,
        spaceAfter=24,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )
    body_style = ParagraphStyle(
        'StoryBody',
        parent=styles['BodyText'],
        fontSize=14,
        leading=20,
        alignment=TA_JUSTIFY,
        spaceBefore=18,
    )

    elements = [Spacer(1, 0.5 * inch), Paragraph(html.escape(title), title_style)]
    if hero_image:
        hero = build_pdf_image(hero_image, 5 * inch, 5 * inch)
        if hero is not None:
            elements.append(hero)

    illustrations = list(illustrations or [])
    for idx, text in enumerate(paragraphs):
        elements.append(PageBreak())
        data = illustrations[idx] if idx < len(illustrations) else None
        if data:
            picture = build_pdf_image(data, 5.5 * inch, 5 * inch)
            if picture is not None:
                elements.append(picture)
        elements.append(Paragraph(html.escape(text), body_style))

    doc.build(elements)
    return buffer.getvalue()
