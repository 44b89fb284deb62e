"""CLI for codescout - budgeted codebase research and MCP server."""

from __future__ import annotations

import asyncio
import json

import click

from codescout.config import ConfigError
from codescout.research import InvalidArgumentError


def _load_context():
    from codescout.context import get_context

    try:
        return get_context()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(version="0.1.0", prog_name="codescout")
def main() -> None:
    """codescout - Research a codebase with budgeted, cancellable subagents.

    Ask natural-language questions about the code under the configured
    workspace roots.
    """
    pass


@main.command()
@click.argument("question")
@click.option(
    "--root", "-r",
    "roots",
    multiple=True,
    help="Configured root to search (repeatable, defaults to all roots)",
)
@click.option(
    "--deadline-ms", "-d",
    type=int,
    default=None,
    help="Per-subagent deadline in milliseconds",
)
@click.option(
    "--artifact",
    is_flag=True,
    help="Write a Markdown report (requires artifacts.enabled)",
)
@click.option(
    "--raw",
    is_flag=True,
    help="Output raw JSON instead of formatted text",
)
def research(
    question: str,
    roots: tuple[str, ...],
    deadline_ms: int | None,
    artifact: bool,
    raw: bool,
) -> None:
    """Research a question across the workspace roots.

    \b
    Example:
        codescout research "where is the worker pool drained"
        codescout research "config loading" --root ./src --deadline-ms 5000
    """
    from codescout.research import research_codebase

    ctx = _load_context()

    try:
        payload = asyncio.run(
            research_codebase(
                question,
                roots=list(roots) or None,
                deadline_ms=deadline_ms,
                artifact=artifact,
                config=ctx.config,
                runtime=ctx.runtime,
                provider=ctx.provider,
            )
        )
    except InvalidArgumentError as e:
        raise click.BadParameter(str(e)) from e

    if raw:
        click.echo(json.dumps(payload, indent=2))
        return

    synthesis = payload["synthesis"]

    # Formatted output
    click.echo(f"\n{'=' * 60}")
    click.echo(f"Question: {payload['question']}")
    click.echo(f"Roots: {', '.join(payload['rootsSearched'])}")
    click.echo(f"{'=' * 60}\n")

    for role in ("locator", "analyzer", "patterns"):
        result = payload[role]
        elapsed = result["timing"]["elapsedMs"]
        detail = result["error"]["message"] if "error" in result else result["value"]["summary"]
        click.echo(f"  [{result['status']:>8}] {role} ({elapsed:.0f} ms): {detail}")

    click.echo(f"\n{'─' * 60}")
    click.echo(f"Summary (confidence: {synthesis['confidence']}):")
    click.echo(f"{'─' * 60}")
    click.echo(synthesis["summary"])

    if synthesis["key_findings"]:
        click.echo("\nKey findings:")
        for finding in synthesis["key_findings"]:
            click.echo(f"  - {finding.splitlines()[0]}")

    if synthesis["references"]:
        click.echo(f"\nReferences ({len(synthesis['references'])}):")
        for ref in synthesis["references"]:
            click.echo(f"  {ref}")
    else:
        click.echo("\nNo references found.")

    if synthesis.get("notes"):
        click.echo(f"\nNotes: {synthesis['notes']}")
    if payload.get("artifact"):
        click.echo(f"\nArtifact: {payload['artifact']}")
    click.echo()


@main.command()
@click.option("--max-depth", default=4, help="Directory depth below each root")
@click.option("--include-nested", is_flag=True, help="Search inside git repositories too")
@click.option("--git-only", is_flag=True, help="Only report directories with .git")
@click.option("--raw", is_flag=True, help="Output raw JSON instead of formatted text")
def codebases(max_depth: int, include_nested: bool, git_only: bool, raw: bool) -> None:
    """List project roots found under the workspace roots."""
    from codescout.codebases import list_codebases

    ctx = _load_context()

    try:
        listing = list_codebases(
            ctx.config.roots,
            max_depth=max_depth,
            include_non_git=not git_only,
            include_nested=include_nested,
        )
    except InvalidArgumentError as e:
        raise click.BadParameter(str(e)) from e

    if raw:
        click.echo(json.dumps(listing.model_dump(mode="json", by_alias=True), indent=2))
        return

    if listing.projects:
        click.echo(f"Found {len(listing.projects)} projects:")
        for project in listing.projects:
            tags = ", ".join(project.tags) or "-"
            marker = "git" if project.git else "   "
            click.echo(f"  {marker}  {project.root}  ({project.name}; {tags})")
    else:
        click.echo("No projects found.")

    if listing.stats.truncated:
        click.echo(f"(stopped early after {listing.stats.dirs_scanned} directories)")


@main.command()
def roots() -> None:
    """List configured workspace roots."""
    ctx = _load_context()
    for root in ctx.config.roots:
        click.echo(root)


@main.command()
@click.option("--port", default=8000, help="Port to run the broker on")
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(port: int, host: str, reload: bool) -> None:
    """Start the codescout HTTP broker server."""
    import uvicorn

    click.echo(f"Starting codescout broker on {host}:{port}")
    uvicorn.run(
        "codescout.broker:app",
        host=host,
        port=port,
        reload=reload,
    )


@main.command()
def mcp() -> None:
    """Run the MCP server over stdio.

    \b
    Configure in .mcp.json:
        {
            "mcpServers": {
                "codescout": {
                    "command": "codescout",
                    "args": ["mcp"]
                }
            }
        }
    """
    from mcp_codescout.server import mcp as mcp_server
    mcp_server.run()


if __name__ == "__main__":
    main()
