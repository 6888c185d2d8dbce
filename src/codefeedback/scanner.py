"""Bounded depth-first listing of a remote repository tree.

The walk is driven by an explicit stack of directory iterators rather than by
recursion, so entries are visited in the same pre-order a recursive walk would
use while the three ceilings in ``ScanLimits`` are checked before every step:

* ``max_depth``: directories deeper than this are never listed.
* ``max_items_visited``: every listed entry (file or directory) counts, and
  the walk stops as soon as the count reaches the cap, even mid-directory.
* ``max_file_size``: files larger than this are left out of the result.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from codefeedback.errors import OriginError, ScanPartialFailureWarning
from codefeedback.languages import FILE_EXTENSION_TO_LANGUAGE, file_extension
from codefeedback.origins.base import RepositoryOrigin
from codefeedback.schemas.repository import RemoteFileEntry, ScanLimits, ScanState

logger = logging.getLogger(__name__)

# Conventionally reviewable files that often have no mapped extension.
REVIEWABLE_NAME_MARKERS = ("readme", "dockerfile", "license")


def is_reviewable(name: str) -> bool:
    """Whether a file name is worth sending for analysis.

    True for a known source extension, a README/Dockerfile/LICENSE style
    name, or a name without any dot.
    """
    ext = file_extension(name)
    if ext is not None and ext in FILE_EXTENSION_TO_LANGUAGE:
        return True
    lowered = name.lower()
    if any(marker in lowered for marker in REVIEWABLE_NAME_MARKERS):
        return True
    return "." not in name


class RepositoryScanner:
    """Collect the reviewable files of a repository within ``limits``."""

    def __init__(self, origin: RepositoryOrigin, limits: ScanLimits | None = None) -> None:
        self.origin = origin
        self.limits = limits or ScanLimits()
        self.visited = 0
        self.listing_calls = 0
        self.warnings: list[ScanPartialFailureWarning] = []

    def _reset(self) -> None:
        self.visited = 0
        self.listing_calls = 0
        self.warnings = []

    @property
    def cap_reached(self) -> bool:
        return self.visited >= self.limits.max_items_visited

    def _accepts(self, entry: RemoteFileEntry) -> bool:
        if not is_reviewable(entry.name):
            return False
        if entry.size is not None and entry.size > self.limits.max_file_size:
            logger.info(
                "Skipping %s from scan: %d bytes exceeds limit of %d",
                entry.path,
                entry.size,
                self.limits.max_file_size,
            )
            return False
        return True

    async def _list(self, path: str) -> list[RemoteFileEntry]:
        self.listing_calls += 1
        return await self.origin.list_directory(path)

    async def scan(self, root: str = "") -> list[RemoteFileEntry]:
        """Walk the tree under ``root`` and return matching files sorted by path.

        A failed listing of the root propagates. A failed listing of any
        subdirectory is logged, recorded in ``self.warnings`` and its subtree
        skipped.
        """
        self._reset()
        if self.cap_reached:
            return []

        collected: list[RemoteFileEntry] = []
        root_entries = await self._list(root)
        stack: list[tuple[int, Iterator[RemoteFileEntry]]] = [(0, iter(root_entries))]

        while stack and not self.cap_reached:
            depth, entries = stack[-1]
            entry = next(entries, None)
            if entry is None:
                stack.pop()
                continue

            self.visited += 1
            if entry.is_file:
                if self._accepts(entry):
                    collected.append(entry)
                continue

            child_depth = depth + 1
            if child_depth > self.limits.max_depth or self.cap_reached:
                continue
            try:
                children = await self._list(entry.path)
            except OriginError as exc:
                warning = ScanPartialFailureWarning(entry.path, str(exc))
                logger.warning("%s", warning)
                self.warnings.append(warning)
                continue
            stack.append((child_depth, iter(children)))

        if self.cap_reached and len(collected) < self.visited:
            logger.warning(
                "Reached scan limit of %d items; collected %d files. "
                "Some directories might not have been fully explored.",
                self.limits.max_items_visited,
                len(collected),
            )
        return sorted(collected, key=lambda e: e.path)


async def scan_repository(
    origin: RepositoryOrigin, limits: ScanLimits | None = None, *, root: str = ""
) -> ScanState:
    """Scan ``origin`` and return a fresh ``ScanState`` positioned at the first file."""
    files = await RepositoryScanner(origin, limits).scan(root)
    return ScanState(files=files)
