"""Subagents for codescout research."""

from codescout.subagents.analyzer import run_analyzer_subagent
from codescout.subagents.file_scanner import find_files, search_files_for_any
from codescout.subagents.locator import run_locator_subagent
from codescout.subagents.pattern_finder import run_pattern_finder_subagent

__all__ = [
    "find_files",
    "search_files_for_any",
    "run_locator_subagent",
    "run_analyzer_subagent",
    "run_pattern_finder_subagent",
]
