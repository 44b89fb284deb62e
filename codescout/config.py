"""Configuration loading and validation for codescout."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeInt,
    PositiveInt,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CODESCOUT_CONFIG"
DEFAULT_CONFIG_FILENAME = "codescout.config.json"

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"

LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ConfigError(ValueError):
    """Raised when configuration cannot be loaded or is invalid."""

    pass


class _Section(BaseModel):
    """Config sections accept camelCase keys (file format) or snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class LimitsConfig(_Section):
    max_files_read: PositiveInt = 50
    max_bytes_read: PositiveInt = 1024 * 1024


class RuntimeConfig(_Section):
    max_concurrent_tasks: PositiveInt = 4
    default_deadline_ms: PositiveInt = 30_000


class CompactionConfig(_Section):
    """Per-subagent ceilings; byte budgets fall back to limits.maxBytesRead."""

    max_analyzer_files: PositiveInt = 5
    max_analyzer_bytes_read: PositiveInt | None = None
    max_pattern_files: PositiveInt = 10
    max_pattern_bytes_read: PositiveInt | None = None
    max_patterns: PositiveInt = 6
    max_key_findings: PositiveInt = 12
    snippet_context_lines: NonNegativeInt = 0


class ArtifactsConfig(_Section):
    enabled: bool = False
    dir: str = "artifacts"


class ProviderConfig(_Section):
    """Optional remote completion endpoint used to refine keywords."""

    kind: Literal["lmstudio-openai", "ollama"] | None = None
    base_url: str | None = None
    model: str | None = None
    api_key: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("kind", mode="before")
    @classmethod
    def _blank_kind_is_disabled(cls, value: Any) -> Any:
        if value in ("", False):
            return None
        return value

    @model_validator(mode="after")
    def _require_endpoint(self) -> ProviderConfig:
        if self.kind is None:
            return self
        if not self.base_url and self.kind == "ollama":
            self.base_url = DEFAULT_OLLAMA_BASE_URL
        if not self.base_url:
            raise ValueError(f'provider.baseUrl is required for provider.kind "{self.kind}"')
        if not self.model:
            raise ValueError(f'provider.model is required for provider.kind "{self.kind}"')
        self.base_url = self.base_url.rstrip("/")
        return self


class LoggingConfig(_Section):
    level: Literal["error", "warn", "info", "debug"] = "info"


class Config(_Section):
    """Validated codescout configuration."""

    roots: list[str] = Field(default_factory=lambda: ["."])
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    compaction: CompactionConfig = Field(default_factory=CompactionConfig)
    artifacts: ArtifactsConfig = Field(default_factory=ArtifactsConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_path: str | None = Field(default=None, exclude=True)

    @field_validator("roots", mode="before")
    @classmethod
    def _normalize_roots(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            raise ValueError("expected a list of directory paths")
        resolved = set()
        for root in value:
            if not isinstance(root, (str, os.PathLike)) or not str(root).strip():
                raise ValueError(f"invalid root {root!r}; expected non-empty path")
            resolved.add(str(Path(root).expanduser().resolve()))
        if not resolved:
            raise ValueError("at least one root is required")
        return sorted(resolved)

    @property
    def analyzer_bytes_budget(self) -> int:
        return self.compaction.max_analyzer_bytes_read or self.limits.max_bytes_read

    @property
    def pattern_bytes_budget(self) -> int:
        return self.compaction.max_pattern_bytes_read or self.limits.max_bytes_read


def resolve_config_path(cwd: Path, env: Mapping[str, str]) -> Path | None:
    """Locate the config file: $CODESCOUT_CONFIG, else ./codescout.config.json."""
    from_env = env.get(CONFIG_ENV_VAR, "").strip()
    if from_env:
        return (cwd / from_env).resolve()

    default_path = cwd / DEFAULT_CONFIG_FILENAME
    return default_path if default_path.exists() else None


def load_config(
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> Config:
    """Load and validate configuration.

    Relative roots are resolved against ``cwd``. Provider endpoint, model and
    API key fall back to CODESCOUT_BASE_URL, CODESCOUT_MODEL and
    CODESCOUT_API_KEY.

    Args:
        cwd: Directory used to find the config file and resolve roots
        env: Environment mapping (defaults to os.environ)

    Returns:
        Validated Config

    Raises:
        ConfigError: If the file cannot be parsed or a value is invalid
    """
    cwd = Path(cwd).resolve() if cwd else Path.cwd()
    env = os.environ if env is None else env

    config_path = resolve_config_path(cwd, env)
    raw: dict[str, Any] = {}
    if config_path is not None:
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Failed to read config at {config_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse JSON config at {config_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Config at {config_path} must be a JSON object")

    roots = raw.get("roots", ["."])
    if isinstance(roots, list):
        raw["roots"] = [
            str(cwd / root) if isinstance(root, str) and root.strip() else root for root in roots
        ]

    provider = dict(raw.get("provider") or {})
    if provider.get("kind"):
        provider.setdefault("baseUrl", env.get("CODESCOUT_BASE_URL") or None)
        provider.setdefault("model", env.get("CODESCOUT_MODEL") or None)
        provider.setdefault("apiKey", env.get("CODESCOUT_API_KEY") or None)
        raw["provider"] = provider

    try:
        config = Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(_describe_validation_error(e)) from e

    config.config_path = str(config_path) if config_path else None
    return config


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "config"
        parts.append(f"Invalid {location}: {item['msg']}")
    return "; ".join(parts)


def configure_logging(level: str = "info") -> None:
    """Send log records to stderr; stdout carries MCP traffic."""
    logging.basicConfig(
        level=LOG_LEVELS.get(level, logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
