"""Budgeted reading of Locator candidates for the evidence subagents."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator

from codescout.runtime.cancellation import CancellationToken
from codescout.subagents.file_scanner import is_binary, regular_file_size
from codescout.subagents.references import has_line_break, resolve_reference, to_workspace_relative

logger = logging.getLogger(__name__)

_NEWLINE_RE = re.compile(r"\r?\n")


@dataclass
class CandidateFile:
    """A candidate that fit in the byte budget, split into lines."""

    path: str
    lines: list[str]


@dataclass
class ReadStats:
    """Byte accounting for one pass over the candidates."""

    max_bytes: int
    bytes_read: int = 0
    files_read: int = 0
    skipped_for_budget: int = 0
    rejected: list[str] = field(default_factory=list)

    @property
    def budget_hit(self) -> bool:
        return self.skipped_for_budget > 0 or self.bytes_read >= self.max_bytes


async def read_candidates(
    candidates: list[str],
    roots: list[str],
    stats: ReadStats,
    token: CancellationToken | None = None,
) -> AsyncIterator[CandidateFile]:
    """Yield each readable candidate in order, within ``stats.max_bytes``.

    References resolving outside every root are rejected. Files that do not
    fit the remaining budget are skipped whole. The token is checked before
    every candidate and raises TaskCanceledError once tripped.
    """
    for reference in candidates:
        if token is not None:
            token.raise_if_cancelled()

        path = resolve_reference(reference, roots)
        if path is None:
            logger.warning(f"Rejected reference outside workspace roots: {reference!r}")
            stats.rejected.append(reference)
            continue

        rel = to_workspace_relative(path, roots)
        if has_line_break(rel):
            logger.debug(f"Skipping candidate with a line break in its path: {rel!r}")
            stats.rejected.append(reference)
            continue

        try:
            size = await asyncio.to_thread(regular_file_size, str(path))
            if size is None:
                continue
            if stats.bytes_read + size > stats.max_bytes:
                stats.skipped_for_budget += 1
                continue
            raw = await asyncio.to_thread(Path(path).read_bytes)
        except OSError as e:
            logger.debug(f"Skipping unreadable candidate {path}: {e}")
            continue

        stats.bytes_read += size
        stats.files_read += 1
        if is_binary(raw):
            continue

        text = raw.decode("utf-8", errors="replace")
        yield CandidateFile(path=rel, lines=_NEWLINE_RE.split(text))
