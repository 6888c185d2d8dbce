"""Origin protocol and the shared public-URL text fetch."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Protocol

import httpx

from codefeedback.errors import OriginError, SizeLimitExceeded
from codefeedback.schemas.repository import RemoteFileEntry

logger = logging.getLogger(__name__)

# Phrases found on the HTML pages some hosts return with HTTP 200 instead of a 4xx.
ACCESS_DENIED_MARKERS = ("file not found", "you need permission", "access denied", "sign in")


class RepositoryOrigin(Protocol):
    """A browsable remote file tree (only GitHub today)."""

    async def list_directory(self, path: str = "") -> list[RemoteFileEntry]:
        """Immediate children of ``path`` ("" is the root)."""
        ...

    async def fetch_file(self, entry: RemoteFileEntry) -> str:
        """Text content of a file entry."""
        ...


@asynccontextmanager
async def open_http(http_client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the caller's client, or a temporary one without a timeout."""
    if http_client is not None:
        yield http_client
    else:
        async with httpx.AsyncClient(timeout=None, follow_redirects=True) as client:
            yield client


def format_kb(size: int) -> str:
    return f"{size / 1024:.1f}KB"


async def fetch_public_text(
    url: str,
    *,
    source: str,
    max_size: int,
    allow_html: bool = False,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """GET a publicly readable URL and return its body as text.

    ``source`` names the origin in error messages ("Cloud Storage object",
    "Google Drive file"). An HTML body at HTTP 200 is treated as an access
    problem unless ``allow_html`` says the file really is HTML.
    """
    try:
        async with open_http(http_client) as http:
            response = await http.get(url)
    except httpx.TransportError as exc:
        logger.error("Error fetching %s content from %s: %s", source, url, exc)
        raise OriginError(f"Network error fetching {source} from {url}: {exc}", url=url) from exc

    status = response.status_code
    if status == 403:
        raise OriginError(
            f"Access denied for {source}: {url}. Ensure it is publicly readable.",
            status_code=status,
            url=url,
        )
    if status == 404:
        raise OriginError(f"{source} not found: {url}. Please check the URL.", status_code=status, url=url)
    if response.is_error:
        raise OriginError(
            f"Failed to fetch {source}: {status} {response.reason_phrase}. URL: {url}",
            status_code=status,
            url=url,
        )

    text = response.text
    content_type = response.headers.get("content-type", "")
    if "text/html" in content_type and not allow_html:
        lowered = text.lower()
        if any(marker in lowered for marker in ACCESS_DENIED_MARKERS):
            raise OriginError(
                f"Access denied or {source} not found. Ensure it is publicly accessible "
                '("Anyone with the link can view").',
                status_code=status,
                url=url,
            )
        raise OriginError(
            f"Failed to fetch {source}: Received HTML content instead of expected file content. "
            f"Status: {status}. URL: {url}",
            status_code=status,
            url=url,
        )

    if len(text) > max_size:
        raise SizeLimitExceeded(
            f"{source} is too large ({format_kb(len(text))}). Limit is {format_kb(max_size)}.",
            size=len(text),
            limit=max_size,
        )
    return text
