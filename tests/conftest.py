"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from codefeedback.errors import OriginError
from codefeedback.schemas.repository import RemoteFileEntry
from codefeedback.schemas.settings import AiSettings, ProviderType

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """``httpx.MockTransport`` that keeps every request it was asked to send."""

    def __init__(self, handler: Handler | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._responder = handler or (lambda request: httpx.Response(500, json={"error": "unexpected call"}))
        super().__init__(self._record)

    def _record(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)


def file_entry(path: str, size: int | None = 100) -> RemoteFileEntry:
    return RemoteFileEntry(name=path.rsplit("/", 1)[-1], path=path, type="file", size=size)


def dir_entry(path: str) -> RemoteFileEntry:
    return RemoteFileEntry(name=path.rsplit("/", 1)[-1], path=path, type="dir")


class FakeOrigin:
    """In-memory ``RepositoryOrigin``.

    ``tree`` maps a directory path ("" for the root) to its listing;
    directories in ``failing`` raise ``OriginError`` when listed.
    """

    def __init__(
        self,
        tree: dict[str, list[RemoteFileEntry]],
        contents: dict[str, str] | None = None,
        failing: set[str] | None = None,
    ) -> None:
        self.tree = tree
        self.contents = contents or {}
        self.failing = failing or set()
        self.listed: list[str] = []
        self.fetched: list[str] = []

    async def list_directory(self, path: str = "") -> list[RemoteFileEntry]:
        self.listed.append(path)
        if path in self.failing:
            raise OriginError(f"Path '{path}' not found", status_code=404)
        return list(self.tree.get(path, []))

    async def fetch_file(self, entry: RemoteFileEntry) -> str:
        self.fetched.append(entry.path)
        if entry.path not in self.contents:
            raise OriginError(f"Could not retrieve content for {entry.name}.", status_code=404)
        return self.contents[entry.path]


@pytest.fixture
def gemini_settings() -> AiSettings:
    return AiSettings(provider=ProviderType.GEMINI, api_key="k")


@pytest.fixture
def tmp_settings_file(tmp_path: Path) -> Path:
    """Write a minimal valid settings YAML and return its path."""
    path = tmp_path / "codefeedback.yml"
    path.write_text(
        """\
provider: ollama
ollama_base_url: "http://localhost:11434"
ollama_model_name: "codellama:7b"
api_key:
"""
    )
    return path
