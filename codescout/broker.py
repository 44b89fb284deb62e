"""HTTP broker exposing codescout research over FastAPI."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from codescout import __version__
from codescout.codebases import list_codebases
from codescout.context import get_context
from codescout.research import InvalidArgumentError, research_codebase, resolve_requested_roots
from codescout.schemas import CodebasesRequest, ErrorResponse, HealthResponse, ResearchRequest

logger = logging.getLogger(__name__)

app = FastAPI(
    title="codescout broker",
    description="HTTP broker for budgeted codebase research subagents",
    version=__version__,
)


@app.post("/research")
async def research(request: ResearchRequest) -> dict[str, Any]:
    """Run locator, analyzer and pattern-finder subagents for a question.

    Args:
        request: ResearchRequest with the question and optional roots

    Returns:
        Redacted research report with one TaskResult per subagent
    """
    ctx = get_context()
    logger.info(f"Received research request: roots={request.roots}")
    return await research_codebase(
        request.question,
        roots=request.roots,
        deadline_ms=request.constraints.deadline_ms,
        artifact=request.artifact,
        config=ctx.config,
        runtime=ctx.runtime,
        provider=ctx.provider,
    )


@app.get("/roots")
async def roots() -> dict[str, list[str]]:
    """List configured workspace roots (the read allow-list)."""
    return {"roots": get_context().config.roots}


@app.post("/codebases")
async def codebases(request: CodebasesRequest) -> dict[str, Any]:
    """Discover project roots under the configured roots (no content search)."""
    ctx = get_context()
    searched = resolve_requested_roots(request.roots, ctx.config.roots)
    listing = await asyncio.to_thread(
        list_codebases,
        searched,
        max_depth=request.max_depth,
        max_dirs=request.max_dirs,
        max_projects=request.max_projects,
        include_non_git=request.include_non_git,
        include_nested=request.include_nested,
    )
    return listing.model_dump(mode="json", by_alias=True)


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Check broker, worker pool and provider health."""
    ctx = get_context()

    provider_status = "disabled"
    if ctx.provider is not None:
        provider_status = "healthy" if await ctx.provider.check_health() else "unhealthy"

    return HealthResponse(
        broker="healthy",
        provider=provider_status,
        active_tasks=ctx.worker_pool.active,
        queue_depth=ctx.worker_pool.queued,
    )


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request, exc: InvalidArgumentError) -> JSONResponse:
    """Reject bad caller input."""
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(detail=str(exc), error_code="INVALID_ARGUMENT").model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            detail=str(exc),
            error_code="INTERNAL_ERROR",
        ).model_dump(),
    )
