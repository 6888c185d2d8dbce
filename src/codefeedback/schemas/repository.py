"""Remote repository entries and sequential-scan state."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

MAX_SCAN_DEPTH = 2
# Files and directories both count, bounding listing calls rather than matches.
MAX_ITEMS_VISITED = 75
# Larger files are left out of a scan result.
MAX_SCAN_FILE_SIZE = 50_000
# Ceiling when a single file is explicitly selected for analysis.
MAX_SELECTED_FILE_SIZE = MAX_SCAN_FILE_SIZE * 2


class RemoteFileEntry(BaseModel):
    """One item of a remote directory listing.

    ``url`` is the API locator used to fetch the file's content;
    ``download_url`` points at the raw bytes when the origin offers one.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str  # relative to the repository root
    type: Literal["file", "dir"]
    size: int | None = None
    sha: str = ""
    url: str | None = None
    download_url: str | None = None

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"


class ScanLimits(BaseModel):
    """Independent ceilings enforced while walking a repository."""

    model_config = ConfigDict(frozen=True)

    max_depth: int = MAX_SCAN_DEPTH
    max_items_visited: int = MAX_ITEMS_VISITED
    max_file_size: int = MAX_SCAN_FILE_SIZE


class ScanState(BaseModel):
    """Ordered scan result plus a cursor to the next file to analyze."""

    model_config = ConfigDict(frozen=True)

    files: list[RemoteFileEntry] = []
    cursor: int = 0

    @model_validator(mode="after")
    def check_cursor_bounds(self) -> "ScanState":
        if not 0 <= self.cursor <= len(self.files):
            raise ValueError(
                f"cursor {self.cursor} out of range for {len(self.files)} files"
            )
        return self

    @property
    def has_next(self) -> bool:
        return self.cursor < len(self.files)

    @property
    def done(self) -> bool:
        return self.cursor == len(self.files)

    @property
    def current(self) -> RemoteFileEntry | None:
        return self.files[self.cursor] if self.has_next else None

    @property
    def remaining(self) -> int:
        return len(self.files) - self.cursor

    def advanced(self) -> "ScanState":
        """Return a copy with the cursor moved past the current file."""
        return ScanState(files=self.files, cursor=self.cursor + 1)
