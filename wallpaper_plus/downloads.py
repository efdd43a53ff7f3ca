"""
Helpers for the download proxy: file naming, link building and fetching.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import quote

import requests

from wallpaper_plus.errors import WallpaperPlusError

REQUEST_TIMEOUT = 30  # seconds
DEFAULT_FILENAME = "wallpaper.jpg"
BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
CHUNK_SIZE = 64 * 1024

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\s]")
_UNSAFE_HEADER_CHARS = re.compile(r'[^\x20-\x7e]|["\\]')


class ImageTooLargeError(WallpaperPlusError):
    pass


def download_filename(title: str) -> str:
    return f"{_UNSAFE_FILENAME_CHARS.sub('_', title or '')}.jpg"


def content_disposition(filename: Optional[str]) -> str:
    """Attachment header with an ASCII fallback name and the UTF-8 name per RFC 5987."""
    filename = filename or DEFAULT_FILENAME
    fallback = _UNSAFE_HEADER_CHARS.sub("_", filename)
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def download_path(image_url: str, filename: str, prefix: str = "/api") -> str:
    """Link to the proxy route that serves `image_url` as an attachment."""
    return (
        f"{prefix.rstrip('/')}/download"
        f"?url={quote(image_url, safe='')}&filename={quote(filename, safe='')}"
    )


def fetch_image(
    url: str, timeout: int = REQUEST_TIMEOUT, max_bytes: Optional[int] = None
) -> bytes:
    """
    Fetches an image for re-serving.

    Raises:
        requests.RequestException: If the request fails or returns a non-2xx status.
        ImageTooLargeError: If the body is larger than `max_bytes`.
    """
    response = requests.get(
        url, headers={"User-Agent": BROWSER_USER_AGENT}, timeout=timeout, stream=True
    )
    try:
        response.raise_for_status()
        body = bytearray()
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            body.extend(chunk)
            if max_bytes is not None and len(body) > max_bytes:
                raise ImageTooLargeError(f"Image is larger than {max_bytes} bytes")
        return bytes(body)
    finally:
        response.close()
