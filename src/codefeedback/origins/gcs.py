"""Public Google Cloud Storage objects."""

from __future__ import annotations

from urllib.parse import quote, unquote, urlparse

import httpx
from pydantic import BaseModel

from codefeedback.languages import infer_language
from codefeedback.origins.base import fetch_public_text
from codefeedback.schemas.repository import MAX_SELECTED_FILE_SIZE

GCS_PUBLIC_HOST = "storage.googleapis.com"
GCS_CONSOLE_HOST = "console.cloud.google.com"
GCS_CONSOLE_PREFIX = "/storage/browser/"


class GcsLocation(BaseModel):
    bucket: str
    object_name: str

    @property
    def file_name(self) -> str:
        return self.object_name.rsplit("/", 1)[-1] or self.object_name


def parse_gcs_url(url: str) -> GcsLocation | None:
    """Bucket and object from a public or console Cloud Storage URL.

    Accepts ``https://storage.googleapis.com/BUCKET/OBJECT`` and
    ``https://console.cloud.google.com/storage/browser/BUCKET/OBJECT``.
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if parsed.scheme != "https":
        return None

    if parsed.hostname == GCS_CONSOLE_HOST and parsed.path.startswith(GCS_CONSOLE_PREFIX):
        parts = parsed.path[len(GCS_CONSOLE_PREFIX):].split("/")
    elif parsed.hostname == GCS_PUBLIC_HOST:
        parts = [part for part in parsed.path.split("/") if part]
    else:
        return None

    if len(parts) < 2 or not parts[0] or not "/".join(parts[1:]):
        return None
    return GcsLocation(bucket=parts[0], object_name=unquote("/".join(parts[1:])))


def gcs_object_url(bucket: str, object_name: str) -> str:
    # Object names are stored unquoted; "#" and "?" must not reach the URL raw.
    return f"https://{GCS_PUBLIC_HOST}/{bucket}/{quote(object_name)}"


async def fetch_gcs_object(
    url: str,
    *,
    max_size: int = MAX_SELECTED_FILE_SIZE,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """Text of a publicly readable object.

    An HTML page returned with HTTP 200 is an access problem unless the object
    itself is an HTML file.
    """
    name = urlparse(url).path.lower()
    return await fetch_public_text(
        url,
        source="Cloud Storage object",
        max_size=max_size,
        allow_html=name.endswith((".html", ".htm")),
        http_client=http_client,
    )


def infer_language_from_object_name(object_name: str) -> str:
    return infer_language(object_name.rsplit("/", 1)[-1])
