"""Locator subagent: find candidate files for a question."""

from __future__ import annotations

import json
import logging

from codescout.config import Config
from codescout.providers import CompletionProvider
from codescout.redaction import redact_text
from codescout.runtime.cancellation import CancellationToken
from codescout.schemas import ScanBudget, SubagentResult, confidence_for
from codescout.subagents.file_scanner import DEFAULT_MAX_MATCHES, find_files, search_files_for_any
from codescout.subagents.references import (
    MAX_KEYWORDS,
    heuristic_keywords,
    stable_unique,
    to_workspace_relative,
)

logger = logging.getLogger(__name__)

# Keywords listed in the key finding
KEYWORDS_SHOWN = 8

KEYWORD_SYSTEM_PROMPT = "You extract search keywords as strict JSON."


def _build_keyword_prompt(question: str) -> str:
    return "\n".join([
        "Extract 3-8 concise search keywords from the question.",
        'Return strict JSON: {"keywords":["..."]}. No other text.',
        f"Question: {question}",
    ])


def _parse_keywords(content: str) -> list[str] | None:
    """Pull a cleaned keyword list out of the model's JSON answer."""
    parsed = json.loads(content)
    keywords = parsed.get("keywords") if isinstance(parsed, dict) else None
    if not isinstance(keywords, list):
        return None
    cleaned = [str(k).strip() for k in keywords if str(k).strip()]
    return cleaned[:MAX_KEYWORDS] or None


async def extract_keywords(
    question: str,
    provider: CompletionProvider | None = None,
    token: CancellationToken | None = None,
) -> list[str]:
    """Heuristic keywords, optionally replaced by ones from ``provider``.

    The remote path never fails the caller: any error, cancellation or
    malformed answer falls back to the heuristic list.
    """
    fallback = heuristic_keywords(question)
    if provider is None:
        return fallback

    try:
        content = await provider.complete(
            messages=[
                {"role": "system", "content": KEYWORD_SYSTEM_PROMPT},
                {"role": "user", "content": _build_keyword_prompt(question)},
            ],
            temperature=0,
            max_tokens=128,
            token=token,
        )
        keywords = _parse_keywords(content)
    except Exception as e:
        logger.info(f"Keyword extraction via {provider.name} failed, using heuristics: {e}")
        return fallback

    if not keywords:
        logger.info("Provider returned no usable keywords, using heuristics")
        return fallback
    return keywords


async def run_locator_subagent(
    question: str,
    roots: list[str],
    config: Config,
    provider: CompletionProvider | None = None,
    token: CancellationToken | None = None,
) -> SubagentResult:
    """Locate files under ``roots`` mentioning keywords from ``question``.

    Returns only path references, never file contents.

    Args:
        question: Natural-language question
        roots: Resolved workspace roots to search
        config: Validated configuration (limits apply)
        provider: Optional completion provider for keyword refinement
        token: Cancellation token polled between directories and files

    Returns:
        SubagentResult whose references are root-relative file paths
    """
    keywords = await extract_keywords(question, provider=provider, token=token)
    logger.debug(f"Locator keywords: {keywords}")

    file_scan = await find_files(
        roots,
        ScanBudget(max_files=config.limits.max_files_read),
        token=token,
    )
    match_scan = await search_files_for_any(
        file_scan.files,
        keywords,
        ScanBudget(max_bytes=config.limits.max_bytes_read, max_matches=DEFAULT_MAX_MATCHES),
        token=token,
    )

    references = sorted(to_workspace_relative(path, roots) for path in stable_unique(match_scan.matches))

    notes = []
    if file_scan.truncated:
        notes.append("file scan hit limits.maxFilesRead")
    if match_scan.truncated:
        notes.append("content scan hit limits.maxBytesRead and/or maxMatches")

    shown = ", ".join(keywords[:KEYWORDS_SHOWN])
    if len(keywords) > KEYWORDS_SHOWN:
        shown += ", …"

    return SubagentResult(
        summary=f"Found {len(references)} relevant file(s).",
        references=references,
        key_findings=[redact_text(f"Keywords: {shown}")],
        confidence=confidence_for(len(references)),
        notes="; ".join(notes) if notes else None,
    )
