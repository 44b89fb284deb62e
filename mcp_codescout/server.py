"""MCP server exposing codescout research tools over stdio."""

import asyncio

from mcp.server.fastmcp import FastMCP

from codescout import __version__
from codescout.codebases import list_codebases as discover_codebases
from codescout.context import get_context
from codescout.research import research_codebase as run_research_codebase
from codescout.research import resolve_requested_roots

mcp = FastMCP("codescout")


@mcp.tool()
async def ping() -> dict:
    """Check that the server is alive."""
    return {"ok": True, "name": "codescout", "version": __version__}


@mcp.tool()
async def list_roots() -> dict:
    """List the configured workspace roots. Only these can be searched."""
    return {"roots": get_context().config.roots}


@mcp.tool()
async def list_codebases(
    roots: list[str] | None = None,
    max_depth: int = 4,
    max_dirs: int = 20000,
    max_projects: int = 500,
    include_non_git: bool = True,
    include_nested: bool = False,
) -> dict:
    """Find project roots (.git folders and manifest files) under the workspace.

    Args:
        roots: Subset of configured roots to search (defaults to all)
        max_depth: Directory depth below each root
        max_dirs: Directories visited before stopping
        max_projects: Projects found before stopping
        include_non_git: Report manifest-only directories too
        include_nested: Keep searching inside git repositories

    Returns:
        Projects with their tags and manifests, plus scan stats
    """
    ctx = get_context()
    searched = resolve_requested_roots(roots, ctx.config.roots)
    listing = await asyncio.to_thread(
        discover_codebases,
        searched,
        max_depth=max_depth,
        max_dirs=max_dirs,
        max_projects=max_projects,
        include_non_git=include_non_git,
        include_nested=include_nested,
    )
    return listing.model_dump(mode="json", by_alias=True)


@mcp.tool()
async def research_codebase(
    question: str,
    roots: list[str] | None = None,
    constraints: dict | None = None,
    artifact: bool | dict[str, str] = False,
) -> dict:
    """Answer a question about the code with budgeted subagents.

    A locator finds candidate files, then an analyzer and a pattern finder
    read them in parallel. Each subagent reports ok/timeout/canceled/error
    on its own; the synthesis merges whatever succeeded.

    Args:
        question: Natural-language question about the code
        roots: Subset of configured roots to search (defaults to all)
        constraints: Optional {"deadlineMs": int} per-subagent deadline
        artifact: Also write a Markdown report, true or {"dir": ...} (needs artifacts.enabled)

    Returns:
        Redacted report with locator, analyzer, patterns and synthesis
    """
    ctx = get_context()
    deadline_ms = (constraints or {}).get("deadlineMs")
    return await run_research_codebase(
        question,
        roots=roots,
        deadline_ms=deadline_ms,
        artifact=artifact,
        config=ctx.config,
        runtime=ctx.runtime,
        provider=ctx.provider,
    )


if __name__ == "__main__":
    mcp.run()
