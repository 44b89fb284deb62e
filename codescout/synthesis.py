"""Deterministic merge of subagent results into one report section."""

from __future__ import annotations

from codescout.redaction import redact_text
from codescout.schemas import SubagentResult, SynthesisResult, TaskResult, confidence_for
from codescout.subagents.references import stable_unique

MAX_SYNTHESIS_FINDINGS = 24


def _value_of(result: TaskResult | None) -> SubagentResult | None:
    if result is None or not result.ok or not isinstance(result.value, SubagentResult):
        return None
    return result.value


def synthesize_report(
    question: str,
    locator: TaskResult | None,
    analyzer: TaskResult | None,
    patterns: TaskResult | None,
    max_findings: int = MAX_SYNTHESIS_FINDINGS,
) -> SynthesisResult:
    """Merge whichever subagents succeeded. Never raises.

    References are unioned, deduplicated and sorted; findings are unioned in
    subagent order, deduplicated and capped. The result is partial when any
    subagent did not finish with status ok.
    """
    roles = {"locator": locator, "analyzer": analyzer, "patterns": patterns}
    succeeded = {role: _value_of(result) for role, result in roles.items()}

    references: list[str] = []
    findings: list[str] = []
    notes: list[str] = []
    for role, value in succeeded.items():
        if value is None:
            continue
        references.extend(value.references)
        findings.extend(value.key_findings)
        if value.notes:
            notes.append(f"{role}: {value.notes}")

    present = {role: result for role, result in roles.items() if result is not None}
    partial = any(not result.ok for result in present.values())
    statuses = ", ".join(f"{role}: {result.status.value}" for role, result in present.items())

    merged_refs = sorted(set(references))
    return SynthesisResult(
        summary=redact_text(f"{'Partial results' if partial else 'Results'} for: {question} ({statuses})"),
        references=merged_refs,
        key_findings=stable_unique(findings)[:max_findings],
        confidence=confidence_for(len(merged_refs)),
        notes="; ".join(notes) if notes else None,
        partial=partial,
    )
