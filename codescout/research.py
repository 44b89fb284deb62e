"""Research pipeline: locator, then analyzer and pattern finder, then synthesis."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from codescout.artifacts import write_research_artifact
from codescout.config import Config
from codescout.providers import CompletionProvider
from codescout.redaction import redact_json
from codescout.runtime.cancellation import CancellationToken
from codescout.runtime.task_runtime import SubagentRuntime, Task
from codescout.schemas import ResearchReport
from codescout.subagents.analyzer import run_analyzer_subagent
from codescout.subagents.locator import run_locator_subagent
from codescout.subagents.pattern_finder import run_pattern_finder_subagent
from codescout.subagents.references import heuristic_keywords, is_within
from codescout.synthesis import synthesize_report

logger = logging.getLogger(__name__)


class InvalidArgumentError(ValueError):
    """Raised for bad caller input before any subagent is started."""

    pass


def resolve_requested_roots(requested: Any, allowed: list[str]) -> list[str]:
    """Validate requested roots against the allow-list.

    Args:
        requested: None (search every allowed root) or a list of paths
        allowed: Configured, resolved workspace roots

    Returns:
        Sorted, unique, resolved roots

    Raises:
        InvalidArgumentError: If a root is malformed or outside every allowed root
    """
    allowed_paths = [Path(root).resolve() for root in allowed]
    if requested is None:
        return sorted({str(p) for p in allowed_paths})
    if not isinstance(requested, (list, tuple)):
        raise InvalidArgumentError("Invalid roots; expected array of strings")

    resolved: set[str] = set()
    for root in requested:
        if not isinstance(root, str) or not root.strip():
            raise InvalidArgumentError(f"Invalid root {root!r}; expected non-empty string")
        path = Path(root).expanduser().resolve()
        if not any(is_within(path, allowed_root) for allowed_root in allowed_paths):
            raise InvalidArgumentError(f"Root not allowed: {path}")
        resolved.add(str(path))
    return sorted(resolved)


def _validate_deadline(deadline_ms: Any) -> int | None:
    if deadline_ms is None:
        return None
    if isinstance(deadline_ms, bool) or not isinstance(deadline_ms, int) or deadline_ms <= 0:
        raise InvalidArgumentError("Invalid input: deadlineMs must be a positive integer")
    return deadline_ms


async def run_research(
    question: str,
    roots: list[str] | None = None,
    deadline_ms: int | None = None,
    token: CancellationToken | None = None,
    *,
    config: Config,
    runtime: SubagentRuntime,
    provider: CompletionProvider | None = None,
) -> ResearchReport:
    """Answer ``question`` with locator, analyzer and pattern-finder subagents.

    Input is validated before anything runs. After that the call always
    returns a report: each subagent's outcome (ok, timeout, canceled, error)
    is recorded in its own TaskResult and the synthesis merges whatever
    succeeded.

    Args:
        question: Natural-language question
        roots: Subset of the configured roots to search (None for all)
        deadline_ms: Per-subagent deadline override
        token: External cancellation token shared by all subagents
        config: Validated configuration
        runtime: Task runtime backed by the shared worker pool
        provider: Optional completion provider for keyword refinement

    Returns:
        ResearchReport (not yet redacted)

    Raises:
        InvalidArgumentError: For a blank question, bad roots or bad deadline
    """
    question = str(question or "").strip()
    if not question:
        raise InvalidArgumentError("Invalid input: question is required")
    searched = resolve_requested_roots(roots, config.roots)
    deadline_ms = _validate_deadline(deadline_ms)

    logger.info(f"Research started: roots={searched}, deadline_ms={deadline_ms}")

    # Line-level scans use the deterministic heuristic keywords
    keywords = heuristic_keywords(question)

    locator = await runtime.run(
        Task(
            role="locator",
            deadline_ms=deadline_ms,
            run=lambda t: run_locator_subagent(question, searched, config, provider=provider, token=t),
        ),
        token,
    )
    candidates = locator.value.references if locator.ok else []

    analyzer, patterns = await asyncio.gather(
        runtime.run(
            Task(
                role="analyzer",
                deadline_ms=deadline_ms,
                run=lambda t: run_analyzer_subagent(question, searched, candidates, keywords, config, token=t),
            ),
            token,
        ),
        runtime.run(
            Task(
                role="pattern_finder",
                deadline_ms=deadline_ms,
                run=lambda t: run_pattern_finder_subagent(question, searched, candidates, keywords, config, token=t),
            ),
            token,
        ),
    )

    synthesis = synthesize_report(question, locator, analyzer, patterns)
    logger.info(
        f"Research finished: locator={locator.status.value}, analyzer={analyzer.status.value}, "
        f"patterns={patterns.status.value}, references={len(synthesis.references)}"
    )

    return ResearchReport(
        question=question,
        roots_searched=searched,
        locator=locator,
        analyzer=analyzer,
        patterns=patterns,
        synthesis=synthesis,
    )


async def research_codebase(
    question: str,
    roots: list[str] | None = None,
    deadline_ms: int | None = None,
    artifact: bool | dict[str, Any] = False,
    token: CancellationToken | None = None,
    *,
    config: Config,
    runtime: SubagentRuntime,
    provider: CompletionProvider | None = None,
) -> dict[str, Any]:
    """Run research and return the redacted, JSON-ready payload for transports.

    ``artifact`` may be True or ``{"dir": ...}``; a Markdown artifact is only
    written when ``artifacts.enabled`` is set in the config.
    """
    report = await run_research(
        question,
        roots=roots,
        deadline_ms=deadline_ms,
        token=token,
        config=config,
        runtime=runtime,
        provider=provider,
    )
    payload = report.to_payload()

    artifact_path = None
    if artifact and config.artifacts.enabled:
        directory = artifact.get("dir") if isinstance(artifact, dict) else None
        artifact_path = await asyncio.to_thread(
            write_research_artifact,
            payload,
            directory or config.artifacts.dir,
            max_bytes=config.limits.max_bytes_read,
        )
    elif artifact:
        logger.info("Artifact requested but artifacts.enabled is false")

    payload["artifact"] = artifact_path
    return redact_json(payload)
