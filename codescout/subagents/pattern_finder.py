"""Pattern-finder subagent: a few representative code snippets."""

from __future__ import annotations

import logging
from contextlib import aclosing

from codescout.config import Config
from codescout.redaction import redact_text
from codescout.runtime.cancellation import CancellationToken
from codescout.schemas import SubagentResult, confidence_for
from codescout.subagents.candidates import ReadStats, read_candidates
from codescout.subagents.references import find_keyword_hits, stable_unique

logger = logging.getLogger(__name__)


def build_snippet(lines: list[str], index: int, context_lines: int) -> str:
    """Line ``index`` (0-based) with ``context_lines`` of context either side."""
    start = max(0, index - context_lines)
    end = min(len(lines), index + context_lines + 1)
    return "\n".join(lines[start:end])


async def run_pattern_finder_subagent(
    question: str,
    roots: list[str],
    candidate_references: list[str],
    keywords: list[str],
    config: Config,
    token: CancellationToken | None = None,
) -> SubagentResult:
    """Collect up to ``compaction.maxPatterns`` example snippets.

    Unlike the analyzer the cap is global across candidates: scanning stops
    as soon as enough examples are found.

    Raises:
        TaskCanceledError: If the token trips before a candidate is read
    """
    max_files = config.compaction.max_pattern_files
    max_examples = config.compaction.max_patterns
    context_lines = config.compaction.snippet_context_lines

    candidates = stable_unique(candidate_references)[:max_files]
    if not candidates:
        return SubagentResult(
            summary="No candidate files to search for patterns (locator returned no references).",
            confidence=confidence_for(0),
        )

    stats = ReadStats(max_bytes=config.pattern_bytes_budget)
    references: list[str] = []
    findings: list[str] = []

    async with aclosing(read_candidates(candidates, roots, stats, token=token)) as files:
        async for candidate in files:
            for hit in find_keyword_hits(candidate.lines, keywords):
                if len(references) >= max_examples:
                    break
                line_ref = f"{candidate.path}:{hit.line}"
                snippet = build_snippet(candidate.lines, hit.line - 1, context_lines)
                references.append(line_ref)
                findings.append(f"{line_ref}\n{redact_text(snippet).strip()}")
            if len(references) >= max_examples:
                break

    logger.debug(f"Pattern finder collected {len(references)} example(s) for: {question!r}")

    refs = sorted(set(references))
    return SubagentResult(
        summary=f"Found {len(refs)} example(s) across {len(candidates)} file(s).",
        references=refs,
        key_findings=stable_unique(findings)[:max_examples],
        confidence=confidence_for(len(refs)),
        notes="pattern scan hit max byte budget" if stats.budget_hit else None,
    )
