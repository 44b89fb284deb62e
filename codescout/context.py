"""Process-wide wiring: config, worker pool, runtime and provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from codescout.config import Config, configure_logging, load_config
from codescout.providers import CompletionProvider, create_provider
from codescout.runtime.task_runtime import SubagentRuntime
from codescout.runtime.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a transport needs to serve research requests."""

    config: Config
    worker_pool: WorkerPool
    runtime: SubagentRuntime
    provider: CompletionProvider | None = None

    @classmethod
    def from_config(cls, config: Config, provider: CompletionProvider | None = None) -> AppContext:
        """Build one shared pool and runtime sized from ``config.runtime``."""
        worker_pool = WorkerPool(max_concurrent=config.runtime.max_concurrent_tasks)
        runtime = SubagentRuntime(
            worker_pool=worker_pool,
            default_deadline_ms=config.runtime.default_deadline_ms,
        )
        return cls(
            config=config,
            worker_pool=worker_pool,
            runtime=runtime,
            provider=provider if provider is not None else create_provider(config),
        )


# Global context instance
_context_instance: AppContext | None = None


def get_context() -> AppContext:
    """Get or create the global context from the on-disk configuration."""
    global _context_instance
    if _context_instance is None:
        config = load_config()
        configure_logging(config.logging.level)
        logger.info(f"Loaded config from {config.config_path or 'defaults'}: roots={config.roots}")
        _context_instance = AppContext.from_config(config)
    return _context_instance


def set_context(context: AppContext | None) -> None:
    """Replace (or with None, reset) the global context."""
    global _context_instance
    _context_instance = context
