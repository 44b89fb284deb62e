"""Discover project roots by looking for .git folders and manifest files."""

from __future__ import annotations

import json
import logging
import os
import tomllib
from collections import deque
from pathlib import Path

from codescout.research import InvalidArgumentError
from codescout.schemas import Codebase, CodebaseListing, CodebaseScanStats
from codescout.subagents.references import stable_unique, to_workspace_relative

logger = logging.getLogger(__name__)

DEFAULT_IGNORES = frozenset({
    ".git",
    "node_modules",
    ".venv",
    "venv",
    ".cache",
    "__pycache__",
    "dist",
    "build",
    ".test-tmp",
    "artifacts",
})

# (file name, tag) in reporting order
MANIFESTS: tuple[tuple[str, str], ...] = (
    ("package.json", "node"),
    ("pyproject.toml", "python"),
    ("requirements.txt", "python"),
    ("Pipfile", "python"),
    ("poetry.lock", "python"),
    ("Cargo.toml", "rust"),
    ("go.mod", "go"),
    ("Gemfile", "ruby"),
    ("pom.xml", "java"),
    ("build.gradle", "java"),
    ("CMakeLists.txt", "cpp"),
    ("Makefile", "build"),
)

MAX_MANIFEST_BYTES = 256 * 1024


def _read_small(path: Path, max_bytes: int = MAX_MANIFEST_BYTES) -> str | None:
    try:
        if not path.is_file() or path.stat().st_size > max_bytes:
            return None
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _name_from_package_json(path: Path) -> str | None:
    raw = _read_small(path)
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    name = data.get("name") if isinstance(data, dict) else None
    return name.strip() if isinstance(name, str) and name.strip() else None


def _name_from_toml(path: Path, *tables: str) -> str | None:
    raw = _read_small(path)
    if raw is None:
        return None
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return None
    for table in tables:
        section = data
        for key in table.split("."):
            section = section.get(key, {}) if isinstance(section, dict) else {}
        name = section.get("name") if isinstance(section, dict) else None
        if isinstance(name, str) and name.strip():
            return name.strip()
    return None


def infer_project_name(directory: Path, manifests: list[str]) -> str:
    """Prefer a name declared in a manifest, else the folder name."""
    name = None
    if "package.json" in manifests:
        name = _name_from_package_json(directory / "package.json")
    if name is None and "Cargo.toml" in manifests:
        name = _name_from_toml(directory / "Cargo.toml", "package")
    if name is None and "pyproject.toml" in manifests:
        name = _name_from_toml(directory / "pyproject.toml", "project", "tool.poetry")
    return name or directory.name


def _check_int(label: str, value: object, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        kind = "non-negative" if minimum == 0 else "positive"
        raise InvalidArgumentError(f"Invalid input: {label} must be a {kind} integer")


def list_codebases(
    roots: list[str],
    max_depth: int = 4,
    max_dirs: int = 20_000,
    max_projects: int = 500,
    include_non_git: bool = True,
    include_nested: bool = False,
) -> CodebaseListing:
    """Breadth-first search for project roots under ``roots``.

    A directory is a project when it contains ``.git`` or, with
    ``include_non_git``, a known manifest. Git repositories are not descended
    into unless ``include_nested`` is set. No file contents are searched.

    Args:
        roots: Resolved directories to search
        max_depth: Directory depth below each root
        max_dirs: Directories visited before stopping
        max_projects: Projects found before stopping
        include_non_git: Treat manifest-only directories as projects
        include_nested: Keep searching inside git repositories

    Returns:
        CodebaseListing sorted by project root
    """
    _check_int("maxDepth", max_depth, minimum=0)
    _check_int("maxDirs", max_dirs, minimum=1)
    _check_int("maxProjects", max_projects, minimum=1)

    resolved_roots = sorted({str(Path(root).resolve()) for root in roots})
    queue = deque((Path(root), 0) for root in resolved_roots)
    seen: set[Path] = set()
    projects: dict[str, Codebase] = {}
    dirs_scanned = 0
    truncated = False

    while queue:
        if dirs_scanned >= max_dirs or len(projects) >= max_projects:
            truncated = True
            break

        directory, depth = queue.popleft()
        if directory in seen:
            continue
        seen.add(directory)
        dirs_scanned += 1

        try:
            with os.scandir(directory) as it:
                entries = {entry.name: entry for entry in it}
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            continue

        git_entry = entries.get(".git")
        has_git = git_entry is not None and (git_entry.is_dir() or git_entry.is_file())
        manifests = [
            name for name, _ in MANIFESTS if name in entries and entries[name].is_file()
        ]

        if has_git or (include_non_git and manifests):
            rel = to_workspace_relative(directory, resolved_roots)
            if rel not in projects:
                projects[rel] = Codebase(
                    root=rel,
                    git=has_git,
                    tags=stable_unique(tag for name, tag in MANIFESTS if name in manifests),
                    manifests=sorted(manifests),
                    name=infer_project_name(directory, manifests),
                )

        if depth >= max_depth or (has_git and not include_nested):
            continue

        for name in sorted(entries):
            entry = entries[name]
            if name in DEFAULT_IGNORES or not entry.is_dir(follow_symlinks=False):
                continue
            queue.append((Path(entry.path), depth + 1))

    ordered = [projects[key] for key in sorted(projects)]
    return CodebaseListing(
        roots_searched=resolved_roots,
        projects=ordered,
        stats=CodebaseScanStats(
            dirs_scanned=dirs_scanned,
            projects_found=len(ordered),
            truncated=truncated,
            max_depth=max_depth,
            max_dirs=max_dirs,
            max_projects=max_projects,
        ),
    )
