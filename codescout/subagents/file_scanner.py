"""Budgeted file enumeration and keyword search shared by the subagents."""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from collections import deque
from pathlib import Path

from codescout.runtime.cancellation import CancellationToken
from codescout.schemas import FileScan, MatchScan, ScanBudget
from codescout.subagents.references import has_line_break

logger = logging.getLogger(__name__)

# Directory names never descended into
DEFAULT_EXCLUDES = frozenset({
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "dist",
    "build",
    ".test-tmp",
})

# Binary file detection: check for null bytes in first 8KB
BINARY_CHECK_SIZE = 8192

DEFAULT_MAX_MATCHES = 200


def is_binary(content: bytes) -> bool:
    """Check if content appears to be binary (contains null bytes)."""
    return b"\x00" in content[:BINARY_CHECK_SIZE]


def _list_dir(directory: str) -> list[tuple[str, str, bool, bool]]:
    """List (name, path, is_dir, is_file) for a directory, sorted by name.

    Symlinks report neither directory nor file so they are never followed.
    """
    with os.scandir(directory) as it:
        entries = [
            (
                entry.name,
                entry.path,
                entry.is_dir(follow_symlinks=False),
                entry.is_file(follow_symlinks=False),
            )
            for entry in it
        ]
    entries.sort(key=lambda e: e[0])
    return entries


def regular_file_size(path: str) -> int | None:
    """Size of a regular file, or None for anything else."""
    st = os.stat(path)
    if not stat.S_ISREG(st.st_mode):
        return None
    return st.st_size


async def find_files(
    roots: list[str],
    budget: ScanBudget,
    token: CancellationToken | None = None,
    excludes: frozenset[str] = DEFAULT_EXCLUDES,
) -> FileScan:
    """Breadth-first walk of ``roots`` collecting up to ``budget.max_files`` files.

    Args:
        roots: Directories to walk
        budget: Only ``max_files`` applies
        token: Polled before each directory listing
        excludes: Directory and file names to skip

    Returns:
        FileScan with absolute paths, truncated=True if the ceiling was hit
    """
    files: list[str] = []
    queue = deque(str(Path(root).resolve()) for root in roots)

    while queue:
        if token is not None:
            token.raise_if_cancelled()

        directory = queue.popleft()
        try:
            entries = await asyncio.to_thread(_list_dir, directory)
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            continue

        for name, path, is_dir, is_file in entries:
            if name in excludes:
                continue
            if has_line_break(name):
                logger.debug(f"Skipping entry with a line break in its name: {path!r}")
                continue
            if is_dir:
                queue.append(path)
            elif is_file:
                files.append(path)
                if len(files) >= budget.max_files:
                    logger.info(f"File scan hit max_files={budget.max_files}")
                    return FileScan(files=files, truncated=True)

    return FileScan(files=files, truncated=False)


async def search_files_for_any(
    files: list[str],
    needles: list[str],
    budget: ScanBudget,
    token: CancellationToken | None = None,
) -> MatchScan:
    """Return the files that contain any needle (case-insensitive).

    Files are read whole or not at all: one that does not fit in the remaining
    byte budget is skipped. Stops after ``budget.max_matches`` matches.

    Args:
        files: Candidate file paths, scanned in order
        needles: Substrings to look for
        budget: ``max_bytes`` and ``max_matches`` apply
        token: Polled before each file

    Returns:
        MatchScan with matching paths, truncated=True if the match cap was
        hit or a file was skipped for the byte budget
    """
    normalized = [n.strip().lower() for n in needles if str(n).strip()]
    if not normalized:
        return MatchScan()

    matches: list[str] = []
    bytes_read = 0
    files_scanned = 0
    skipped_for_budget = 0

    for file_path in files:
        if len(matches) >= budget.max_matches:
            break
        if token is not None:
            token.raise_if_cancelled()

        try:
            size = await asyncio.to_thread(regular_file_size, file_path)
            if size is None:
                continue
            if bytes_read + size > budget.max_bytes:
                skipped_for_budget += 1
                continue
            content = await asyncio.to_thread(Path(file_path).read_bytes)
        except PermissionError:
            logger.warning(f"Permission denied: {file_path}")
            continue
        except OSError as e:
            logger.debug(f"Error reading {file_path}: {e}")
            continue

        bytes_read += size
        files_scanned += 1

        if is_binary(content):
            continue

        haystack = content.decode("utf-8", errors="replace").lower()
        if any(needle in haystack for needle in normalized):
            matches.append(file_path)

    truncated = len(matches) >= budget.max_matches or skipped_for_budget > 0
    if skipped_for_budget:
        logger.info(f"Content scan skipped {skipped_for_budget} files over max_bytes={budget.max_bytes}")

    return MatchScan(
        matches=matches,
        truncated=truncated,
        bytes_read=bytes_read,
        files_scanned=files_scanned,
    )
