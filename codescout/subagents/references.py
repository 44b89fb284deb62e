"""Keyword, reference and path-containment helpers shared by the subagents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Hashable, Iterable, TypeVar

T = TypeVar("T", bound=Hashable)

MAX_KEYWORDS = 12
MIN_KEYWORD_LENGTH = 3

_TOKEN_SPLIT_RE = re.compile(r"[^A-Za-z0-9_]+")
_LINE_SUFFIX_RE = re.compile(r"^(?P<path>.+?)(?::\d+){1,2}$")


@dataclass(frozen=True)
class KeywordHit:
    """A line (1-based) containing at least one keyword."""

    line: int
    text: str


def stable_unique(values: Iterable[T]) -> list[T]:
    """Drop duplicates, keeping first-seen order."""
    seen: set[T] = set()
    out: list[T] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        out.append(value)
    return out


def heuristic_keywords(question: str | None) -> list[str]:
    """Split a question into identifier-like tokens of 3+ characters, max 12."""
    if not question:
        return []
    tokens = [t for t in _TOKEN_SPLIT_RE.split(str(question)) if len(t) >= MIN_KEYWORD_LENGTH]
    return stable_unique(tokens)[:MAX_KEYWORDS]


def has_line_break(value: str) -> bool:
    """References are single-line, so names containing CR or LF cannot be reported."""
    return "\n" in value or "\r" in value


def is_within(path: Path, root: Path) -> bool:
    """Path containment on resolved paths (not a string prefix test)."""
    return path == root or path.is_relative_to(root)


def to_workspace_relative(path: str | Path, roots: list[str]) -> str:
    """Express ``path`` relative to the first root containing it, POSIX style."""
    resolved = Path(path)
    for root in roots:
        root_path = Path(root)
        if is_within(resolved, root_path):
            rel = resolved.relative_to(root_path).as_posix()
            return rel if rel else "."
    return resolved.as_posix()


def strip_line_suffix(reference: str) -> str:
    """``src/a.py:12`` -> ``src/a.py``; plain paths pass through."""
    match = _LINE_SUFFIX_RE.match(reference)
    return match.group("path") if match else reference


def resolve_reference(reference: str, roots: list[str]) -> Path | None:
    """Resolve a reference to an absolute path inside one of ``roots``.

    Returns None for empty references and for any reference whose resolved
    location (symlinks included) escapes every root.
    """
    if not isinstance(reference, str) or not reference.strip():
        return None

    file_part = strip_line_suffix(reference.strip())
    candidate = Path(file_part)
    bases = [None] if candidate.is_absolute() else roots

    contained: list[Path] = []
    for base in bases:
        absolute = candidate if base is None else Path(base) / candidate
        try:
            resolved = absolute.resolve()
        except (OSError, RuntimeError):
            continue
        if any(is_within(resolved, Path(root)) for root in roots):
            contained.append(resolved)

    # With overlapping roots prefer the one where the file actually exists
    for resolved in contained:
        if resolved.exists():
            return resolved
    return contained[0] if contained else None


def find_keyword_hits(lines: list[str], keywords: list[str]) -> list[KeywordHit]:
    """Lines containing any keyword, case-insensitive substring match."""
    needles = [str(k).lower() for k in keywords if str(k).strip()]
    if not needles:
        return []
    return [
        KeywordHit(line=index + 1, text=line)
        for index, line in enumerate(lines)
        if any(needle in line.lower() for needle in needles)
    ]
