"""Pydantic schemas for codescout results and reports."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_serializer,
    model_validator,
)


class Confidence(str, Enum):
    """Coarse confidence derived from reference counts."""

    LOW = "low"
    MED = "med"
    HIGH = "high"


class TaskStatus(str, Enum):
    """Outcome of one subagent run."""

    OK = "ok"
    TIMEOUT = "timeout"
    CANCELED = "canceled"
    ERROR = "error"


def confidence_for(reference_count: int) -> Confidence:
    """Map a reference count to a confidence rating (0 / <5 / >=5)."""
    if reference_count <= 0:
        return Confidence.LOW
    if reference_count < 5:
        return Confidence.MED
    return Confidence.HIGH


# --- Scanner ---


class ScanBudget(BaseModel):
    """Ceilings for one scanner invocation."""

    model_config = ConfigDict(frozen=True)

    max_files: int = Field(default=10_000, gt=0)
    max_bytes: int = Field(default=1024 * 1024, gt=0)
    max_matches: int = Field(default=200, gt=0)


class FileScan(BaseModel):
    """Result of enumerating files under the workspace roots."""

    files: list[str] = Field(default_factory=list)
    truncated: bool = False


class MatchScan(BaseModel):
    """Result of searching candidate files for keywords."""

    matches: list[str] = Field(default_factory=list)
    truncated: bool = False
    bytes_read: int = 0
    files_scanned: int = 0


# --- Subagent results ---


class SubagentResult(BaseModel):
    """Normalized output shared by every subagent."""

    summary: str
    references: list[str] = Field(default_factory=list)
    key_findings: list[str] = Field(default_factory=list)
    confidence: Confidence = Confidence.LOW
    notes: str | None = None

    @field_validator("references")
    @classmethod
    def _sorted_unique_references(cls, value: list[str]) -> list[str]:
        for ref in value:
            if not ref or "\n" in ref:
                raise ValueError(f"Invalid reference: {ref!r}")
        return sorted(set(value))


class SynthesisResult(SubagentResult):
    """Merged result of all subagents."""

    partial: bool = False


# --- Runtime envelope ---


class TaskError(BaseModel):
    """Serialized failure of a task."""

    name: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException | None) -> TaskError:
        if exc is None:
            return cls(name="Error", message="Unknown error")
        return cls(name=type(exc).__name__, message=str(exc) or type(exc).__name__)


class TaskTiming(BaseModel):
    """Wall-clock start (epoch ms) and elapsed duration of a task."""

    model_config = ConfigDict(populate_by_name=True)

    started_at: int = Field(..., alias="startedAt")
    elapsed_ms: float = Field(..., alias="elapsedMs", ge=0)


class TaskResult(BaseModel):
    """Uniform envelope for the outcome of a task run.

    Exactly one of ``value`` (status ok) or ``error`` (any other status) is
    meaningful; the serialized form omits the other key.
    """

    model_config = ConfigDict(frozen=True)

    status: TaskStatus
    value: Any = None
    error: TaskError | None = None
    timing: TaskTiming

    @model_validator(mode="after")
    def _check_envelope(self) -> TaskResult:
        if self.status is TaskStatus.OK and self.error is not None:
            raise ValueError("ok results must not carry an error")
        if self.status is not TaskStatus.OK:
            if self.error is None:
                raise ValueError(f"{self.status.value} results require an error")
            if self.value is not None:
                raise ValueError(f"{self.status.value} results must not carry a value")
        return self

    @model_serializer(mode="wrap")
    def _omit_absent(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        data.pop("error" if self.status is TaskStatus.OK else "value", None)
        return data

    @property
    def ok(self) -> bool:
        return self.status is TaskStatus.OK


# --- Research report ---


class ResearchReport(BaseModel):
    """Everything produced for one research question."""

    model_config = ConfigDict(populate_by_name=True)

    question: str
    roots_searched: list[str] = Field(..., alias="rootsSearched")
    locator: TaskResult
    analyzer: TaskResult
    patterns: TaskResult
    synthesis: SynthesisResult

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict using the wire field names."""
        return self.model_dump(mode="json", by_alias=True)


# --- Request Schemas ---


class ResearchConstraints(BaseModel):
    """Caller-supplied limits for one research request."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    deadline_ms: int | None = Field(default=None, alias="deadlineMs")


class ResearchRequest(BaseModel):
    """Request to research a question across workspace roots."""

    model_config = ConfigDict(extra="forbid")

    question: str = Field(..., description="Natural-language question about the code")
    roots: list[str] | None = Field(
        default=None,
        description="Subset of configured roots to search (defaults to all)",
    )
    constraints: ResearchConstraints = Field(default_factory=ResearchConstraints)
    artifact: bool | dict[str, str] = Field(
        default=False,
        description="Write a Markdown artifact (true or {'dir': ...})",
    )


class CodebasesRequest(BaseModel):
    """Request to discover project roots."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    roots: list[str] | None = None
    max_depth: int = Field(default=4, alias="maxDepth")
    max_dirs: int = Field(default=20_000, alias="maxDirs")
    max_projects: int = Field(default=500, alias="maxProjects")
    include_non_git: bool = Field(default=True, alias="includeNonGit")
    include_nested: bool = Field(default=False, alias="includeNested")


# --- Response Schemas ---


class ErrorResponse(BaseModel):
    """Error response for failed requests."""

    detail: str
    error_code: str | None = None


# --- Codebase discovery ---


class Codebase(BaseModel):
    """A directory that looks like a project root."""

    root: str
    git: bool
    tags: list[str] = Field(default_factory=list)
    manifests: list[str] = Field(default_factory=list)
    name: str


class CodebaseScanStats(BaseModel):
    """Bookkeeping for one codebase discovery walk."""

    model_config = ConfigDict(populate_by_name=True)

    dirs_scanned: int = Field(0, alias="dirsScanned")
    projects_found: int = Field(0, alias="projectsFound")
    truncated: bool = False
    max_depth: int = Field(..., alias="maxDepth")
    max_dirs: int = Field(..., alias="maxDirs")
    max_projects: int = Field(..., alias="maxProjects")


class CodebaseListing(BaseModel):
    """Projects discovered under the searched roots."""

    model_config = ConfigDict(populate_by_name=True)

    roots_searched: list[str] = Field(..., alias="rootsSearched")
    projects: list[Codebase] = Field(default_factory=list)
    stats: CodebaseScanStats


# --- Health Check ---


class HealthResponse(BaseModel):
    """Health check response."""

    broker: str = "healthy"
    provider: str = "disabled"
    active_tasks: int = 0
    queue_depth: int = 0
