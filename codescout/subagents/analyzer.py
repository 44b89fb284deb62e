"""Analyzer subagent: line-precise evidence from the Locator's candidates."""

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

# Matching lines kept per file
MAX_HITS_PER_FILE = 6

# Characters of line text kept per finding
MAX_FINDING_CHARS = 200


async def run_analyzer_subagent(
    question: str,
    roots: list[str],
    candidate_references: list[str],
    keywords: list[str],
    config: Config,
    token: CancellationToken | None = None,
) -> SubagentResult:
    """Scan candidate files line by line for keyword evidence.

    At most six matching lines per file are kept. Each finding is the
    reference followed by the redacted, trimmed line text.

    Raises:
        TaskCanceledError: If the token trips before a candidate is read
    """
    max_files = config.compaction.max_analyzer_files
    max_findings = config.compaction.max_key_findings

    candidates = stable_unique(candidate_references)[:max_files]
    if not candidates:
        return SubagentResult(
            summary="No candidate files to analyze (locator returned no references).",
            confidence=confidence_for(0),
        )

    stats = ReadStats(max_bytes=config.analyzer_bytes_budget)
    references: list[str] = []
    findings: list[str] = []

    async with aclosing(read_candidates(candidates, roots, stats, token=token)) as files:
        async for candidate in files:
            for hit in find_keyword_hits(candidate.lines, keywords)[:MAX_HITS_PER_FILE]:
                line_ref = f"{candidate.path}:{hit.line}"
                references.append(line_ref)
                if len(findings) < max_findings:
                    code = redact_text(hit.text.strip())[:MAX_FINDING_CHARS]
                    findings.append(f"{line_ref} {code}")

    logger.debug(f"Analyzer read {stats.files_read} file(s), {stats.bytes_read} bytes for: {question!r}")

    refs = sorted(set(references))
    return SubagentResult(
        summary=f"Scanned {len(candidates)} file(s) for evidence; found {len(refs)} match reference(s).",
        references=refs,
        key_findings=stable_unique(findings)[:max_findings],
        confidence=confidence_for(len(refs)),
        notes="analysis hit max byte budget" if stats.budget_hit else None,
    )
