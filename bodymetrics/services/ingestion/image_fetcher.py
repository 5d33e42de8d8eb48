import mimetypes
from typing import Tuple

import httpx

from bodymetrics.core.exceptions import ImageDownloadError
from bodymetrics.utils.logging import get_logger

LOGGER = get_logger(__name__)

SUPPORTED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}


def _content_type(url: str, header_value: str) -> str:
    content_type = (header_value or "").split(";")[0].strip().lower()
    if content_type in SUPPORTED_IMAGE_TYPES:
        return content_type
    guessed, _ = mimetypes.guess_type(url.split("?")[0])
    if guessed in SUPPORTED_IMAGE_TYPES:
        return guessed
    return "image/png"


async def fetch_image(url: str, timeout: int = 30) -> Tuple[bytes, str]:
    """Download a report image so it can be inlined into the vision request.

    Args:
        url: Public or signed URL of the uploaded image
        timeout: Request timeout in seconds

    Returns:
        Tuple of (image bytes, MIME type)

    Raises:
        ImageDownloadError: If the image cannot be downloaded
    """
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url, headers={"User-Agent": "Mozilla/5.0"})
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise ImageDownloadError(
            f"Failed to download image: {status}", original_error=e, status_code=status
        ) from e
    except httpx.HTTPError as e:
        raise ImageDownloadError(f"Failed to download image: {str(e)}", original_error=e) from e

    content = response.content
    if not content:
        raise ImageDownloadError("Failed to download image: empty body")

    content_type = _content_type(url, response.headers.get("content-type", ""))
    LOGGER.info(f"Image downloaded: {len(content)} bytes, type {content_type}")
    return content, content_type
