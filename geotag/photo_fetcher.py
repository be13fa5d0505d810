"""Photo fetching collaborators for the correction pipeline.

The pipeline only needs "give me the bytes behind this reference". Anything
with the PhotoFetcher signature works; HttpPhotoFetcher and FileFetcher are
the two implementations used by the orchestration scripts. Timeouts are the
fetcher's business, not the pipeline's.
"""

from collections.abc import Awaitable, Callable
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from geotag.models import PhotoPayload

PhotoFetcher = Callable[[str], Awaitable[PhotoPayload]]

DEFAULT_TIMEOUT = 30.0

_EXTENSION_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
}


class FetchError(Exception):
    """A photo could not be retrieved (network error or non-success status)."""

    def __init__(self, ref: str, reason: str):
        super().__init__(f"Failed to fetch {ref}: {reason}")
        self.ref = ref
        self.reason = reason


def _name_from_ref(ref: str) -> str:
    return Path(unquote(urlparse(ref).path)).name or "photo.jpg"


def _guess_type(name: str) -> str:
    return _EXTENSION_TYPES.get(Path(name).suffix.lower(), "")


class HttpPhotoFetcher:
    """Fetch photos over HTTP(S) with httpx.

    Args:
        timeout: Per-request timeout in seconds.
        client: Optional shared AsyncClient (e.g. with a mock transport in
            tests). When omitted, a client is created per request.

    Example:
        >>> fetch = HttpPhotoFetcher(timeout=10.0)
        >>> payload = await fetch("https://example.com/IMG_0001.jpg")
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, client: httpx.AsyncClient | None = None):
        self.timeout = timeout
        self.client = client

    async def __call__(self, url: str) -> PhotoPayload:
        try:
            if self.client is not None:
                response = await self.client.get(url, follow_redirects=True)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(url, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise FetchError(url, f"HTTP {response.status_code}")

        name = _name_from_ref(url)
        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        return PhotoPayload(
            data=response.content,
            content_type=content_type or _guess_type(name),
            name=name,
        )


class FileFetcher:
    """Read photos from the local filesystem (plain paths or file:// URLs)."""

    async def __call__(self, ref: str) -> PhotoPayload:
        path = Path(unquote(urlparse(ref).path)) if ref.startswith("file://") else Path(ref)
        try:
            data = path.expanduser().read_bytes()
        except OSError as e:
            raise FetchError(ref, str(e)) from e
        return PhotoPayload(data=data, content_type=_guess_type(path.name), name=path.name)


def fetcher_for(timeout: float = DEFAULT_TIMEOUT) -> PhotoFetcher:
    """Fetcher dispatching http(s) references to httpx and the rest to disk."""
    http = HttpPhotoFetcher(timeout=timeout)
    files = FileFetcher()

    async def fetch(ref: str) -> PhotoPayload:
        if ref.startswith(("http://", "https://")):
            return await http(ref)
        return await files(ref)

    return fetch
