"""Publicly shared Google Drive files."""

from __future__ import annotations

from urllib.parse import parse_qs, unquote, urlparse

import httpx
from pydantic import BaseModel

from codefeedback.languages import DEFAULT_LANGUAGE, infer_language
from codefeedback.origins.base import fetch_public_text

DRIVE_HOST = "drive.google.com"
MAX_DRIVE_FILE_SIZE = 10 * 1024 * 1024


class DriveLink(BaseModel):
    file_id: str
    file_name: str | None = None


def parse_drive_link(url: str) -> DriveLink | None:
    """File id (and a file name when the link carries one) from a share link.

    Recognised forms::

        https://drive.google.com/file/d/ID/view
        https://drive.google.com/open?id=ID
        https://drive.google.com/uc?id=ID&export=download
        https://docs.google.com/document/d/ID/edit
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    host = parsed.hostname or ""
    query = parse_qs(parsed.query)
    segments = parsed.path.split("/")

    file_id: str | None = None
    if host == DRIVE_HOST:
        if parsed.path.startswith("/file/d/") and len(segments) > 3:
            file_id = segments[3]
        elif query.get("id"):
            file_id = query["id"][0]
    elif host.endswith(".google.com") and "/d/" in parsed.path:
        index = segments.index("d")
        if index + 1 < len(segments):
            file_id = segments[index + 1]

    if not file_id:
        return None

    file_name: str | None = None
    if query.get("title"):
        file_name = query["title"][0]
    else:
        tail = parsed.path.split(file_id, 1)[1].lstrip("/") if file_id in parsed.path else ""
        if "." in tail:
            file_name = unquote(tail)
    return DriveLink(file_id=file_id, file_name=file_name)


def drive_download_url(file_id: str) -> str:
    # Google-native documents are exported as plain text by this endpoint.
    return f"https://{DRIVE_HOST}/uc?export=download&id={file_id}"


async def fetch_drive_file(
    url: str,
    *,
    max_size: int = MAX_DRIVE_FILE_SIZE,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """Text of a file behind a direct download URL.

    Drive answers non-public files with an HTML page and HTTP 200; that is
    reported as an access problem.
    """
    return await fetch_public_text(
        url,
        source="Google Drive file",
        max_size=max_size,
        http_client=http_client,
    )


def infer_language_from_drive_name(file_name: str | None) -> str:
    if not file_name:
        return DEFAULT_LANGUAGE
    return infer_language(file_name)
