"""Markdown artifacts for research reports."""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from codescout.redaction import redact_text

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n\n_(truncated)_\n"


def _section(title: str, items: list[str]) -> list[str]:
    lines = [f"## {title}", ""]
    if not items:
        lines.append("_none_")
    for item in items:
        first, _, rest = item.partition("\n")
        lines.append(f"- {first}")
        if rest:
            lines.extend(["", "  ```", *[f"  {line}" for line in rest.split("\n")], "  ```"])
    lines.append("")
    return lines


def render_markdown(report: dict[str, Any]) -> str:
    """Render a report payload (wire field names) as Markdown."""
    synthesis = report.get("synthesis") or {}
    lines = [
        "# Research report",
        "",
        f"**Question:** {report.get('question', '')}",
        "",
        "**Roots searched:**",
        "",
        *[f"- `{root}`" for root in report.get("rootsSearched", [])],
        "",
        "## Subagents",
        "",
        "| role | status | elapsed ms | notes |",
        "|---|---|---|---|",
    ]
    for role in ("locator", "analyzer", "patterns"):
        result = report.get(role) or {}
        value = result.get("value") or {}
        error = result.get("error") or {}
        notes = value.get("notes") or error.get("message") or ""
        elapsed = (result.get("timing") or {}).get("elapsedMs", "")
        lines.append(f"| {role} | {result.get('status', 'missing')} | {elapsed} | {notes} |")

    lines += ["", "## Summary", "", synthesis.get("summary", ""), ""]
    lines += _section("Key findings", synthesis.get("key_findings", []))
    lines += _section("References", [f"`{ref}`" for ref in synthesis.get("references", [])])
    return "\n".join(lines)


def write_research_artifact(
    report: dict[str, Any],
    directory: str | Path,
    cwd: str | Path | None = None,
    max_bytes: int | None = None,
) -> str:
    """Write a redacted Markdown rendering of ``report``.

    Args:
        report: Report payload as produced by ResearchReport.to_payload()
        directory: Output directory, relative paths resolve against ``cwd``
        cwd: Base for relative directories (defaults to the process cwd)
        max_bytes: Truncate the document to this many bytes

    Returns:
        Absolute path of the written file
    """
    base = Path(cwd) if cwd else Path.cwd()
    out_dir = Path(directory)
    if not out_dir.is_absolute():
        out_dir = base / out_dir
    out_dir.mkdir(parents=True, exist_ok=True)

    content = redact_text(render_markdown(report))
    encoded = content.encode("utf-8")
    if max_bytes is not None and len(encoded) > max_bytes:
        keep = max(0, max_bytes - len(TRUNCATION_MARKER.encode("utf-8")))
        content = encoded[:keep].decode("utf-8", errors="ignore") + TRUNCATION_MARKER

    digest = hashlib.sha256(json.dumps(report, sort_keys=True, default=str).encode("utf-8")).hexdigest()
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    path = (out_dir / f"research-{stamp}-{digest[:8]}.md").resolve()
    path.write_text(content, encoding="utf-8")

    logger.info(f"Wrote research artifact: {path}")
    return str(path)
