"""GitHub repository origin over the REST contents API."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from codefeedback.errors import OriginError, SizeLimitExceeded
from codefeedback.origins.base import format_kb, open_http
from codefeedback.schemas.repository import MAX_SELECTED_FILE_SIZE, RemoteFileEntry

logger = logging.getLogger(__name__)

GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github.v3+json"

# Raw downloads are measured in characters; allow headroom for multibyte text.
RAW_CONTENT_SIZE_FACTOR = 1.5


def parse_github_url(url: str) -> tuple[str, str] | None:
    """``(owner, repo)`` from a ``https://github.com/owner/repo[...]`` URL, else None."""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if parsed.hostname not in ("github.com", "www.github.com"):
        return None
    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) < 2:
        return None
    repo = parts[1].removesuffix(".git")
    return (parts[0], repo) if repo else None


def _entry_from_item(item: dict[str, Any]) -> RemoteFileEntry:
    item_type = item.get("type")
    return RemoteFileEntry(
        name=item.get("name", ""),
        path=item.get("path", ""),
        # Symlinks and submodules are not descended into; treat them as files.
        type="dir" if item_type == "dir" else "file",
        size=item.get("size"),
        sha=item.get("sha") or "",
        url=item.get("url"),
        download_url=item.get("download_url"),
    )


class GitHubOrigin:
    """List and read files of one public (or token-accessible) repository."""

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = GITHUB_API_BASE_URL,
        max_selected_file_size: int = MAX_SELECTED_FILE_SIZE,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.max_selected_file_size = max_selected_file_size
        self._http_client = http_client

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "GitHubOrigin":
        parsed = parse_github_url(url)
        if parsed is None:
            raise ValueError(f"Invalid GitHub repository URL: {url}")
        return cls(*parsed, **kwargs)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": GITHUB_ACCEPT}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def contents_url(self, path: str = "") -> str:
        return f"{self.base_url}/repos/{self.owner}/{self.repo}/contents/{path.strip('/')}"

    async def _get(self, url: str, *, api: bool = True) -> httpx.Response:
        try:
            async with open_http(self._http_client) as http:
                return await http.get(url, headers=self._headers() if api else None)
        except httpx.TransportError as exc:
            raise OriginError(f"Network error contacting GitHub at {url}: {exc}", url=url) from exc

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise OriginError(
                f"GitHub returned a non-JSON body from {url} (HTTP {response.status_code}).",
                status_code=response.status_code,
                url=url,
            ) from exc

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_directory(self, path: str = "") -> list[RemoteFileEntry]:
        """Immediate children of ``path`` in API order."""
        url = self.contents_url(path)
        response = await self._get(url)
        if response.status_code == 404:
            raise OriginError(
                f"Path '{path or 'root'}' not found in {self.full_name} or repository is private.",
                status_code=404,
                url=url,
            )
        if response.status_code == 403:
            raise OriginError(
                f"GitHub API rate limit exceeded or access forbidden for {self.full_name}/{path}. "
                "Consider waiting or configuring a token.",
                status_code=403,
                url=url,
            )
        if response.is_error:
            raise OriginError(
                f"Failed to fetch contents for {self.full_name}/{path}: "
                f"{response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                url=url,
            )

        data = self._json(response, url)
        # A file path returns a single object rather than a list.
        items = data if isinstance(data, list) else [data]
        return [_entry_from_item(item) for item in items if isinstance(item, dict)]

    async def list_path_sorted(self, path: str = "") -> list[RemoteFileEntry]:
        """Directory listing for browsing: directories first, then by name."""
        entries = await self.list_directory(path)
        return sorted(entries, key=lambda e: (not e.is_dir, e.name.lower()))

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def _check_size(self, entry: RemoteFileEntry, size: int | None) -> None:
        limit = self.max_selected_file_size
        if size and size > limit:
            raise SizeLimitExceeded(
                f'File "{entry.name}" is too large ({format_kb(size)}) to fetch content. '
                f"Limit for selected file is {format_kb(limit)}.",
                size=size,
                limit=limit,
            )

    async def fetch_file(self, entry: RemoteFileEntry) -> str:
        """Text of a file entry.

        Uses the inline base64 content of the contents API when present and
        falls back to ``download_url`` otherwise. Files above the selected-file
        ceiling raise ``SizeLimitExceeded``.
        """
        self._check_size(entry, entry.size)
        url = entry.url or self.contents_url(entry.path)

        response = await self._get(url)
        if response.is_error:
            raise OriginError(
                f"Failed to fetch file metadata from {url}: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                url=url,
            )
        data = self._json(response, url)
        if not isinstance(data, dict) or data.get("type") != "file":
            kind = data.get("type") if isinstance(data, dict) else type(data).__name__
            raise OriginError(f"Expected a file but got type '{kind}' for {entry.name}", url=url)
        self._check_size(entry, data.get("size"))

        if data.get("content") and data.get("encoding") == "base64":
            try:
                return base64.b64decode(data["content"]).decode("utf-8", errors="replace")
            except (binascii.Error, ValueError) as exc:
                raise OriginError(f"Could not decode content for {entry.name}: {exc}", url=url) from exc

        download_url = data.get("download_url") or entry.download_url
        if download_url:
            return await self._download_raw(entry, download_url)

        logger.info("No content found for %s; treating it as empty", entry.path)
        return ""

    async def _download_raw(self, entry: RemoteFileEntry, download_url: str) -> str:
        raw = await self._get(download_url, api=False)
        if raw.is_error:
            raise OriginError(
                f"Failed to download raw file content from {download_url}: {raw.status_code}",
                status_code=raw.status_code,
                url=download_url,
            )
        text = raw.text
        limit = self.max_selected_file_size
        if len(text) > limit * RAW_CONTENT_SIZE_FACTOR:
            raise SizeLimitExceeded(
                f'File content for "{entry.name}" was too large after download. '
                f"Limit: {format_kb(limit)}.",
                size=len(text),
                limit=limit,
            )
        return text
