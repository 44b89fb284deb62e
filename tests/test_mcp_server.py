"""Tests for the MCP tool functions."""

import pytest

from codescout.config import Config
from codescout.context import AppContext, set_context
from codescout.research import InvalidArgumentError
from mcp_codescout.server import list_codebases, list_roots, ping, research_codebase


@pytest.fixture(autouse=True)
def context(service_project):
    set_context(AppContext.from_config(Config(roots=[str(service_project)])))
    yield
    set_context(None)


class TestMcpTools:
    """Test tools return JSON-ready dicts."""

    @pytest.mark.asyncio
    async def test_ping(self):
        assert await ping() == {"ok": True, "name": "codescout", "version": "0.1.0"}

    @pytest.mark.asyncio
    async def test_list_roots(self, service_project):
        assert await list_roots() == {"roots": [str(service_project.resolve())]}

    @pytest.mark.asyncio
    async def test_list_codebases(self, service_project):
        (service_project / "src" / "package.json").write_text('{"name": "svc"}')

        data = await list_codebases()

        assert [p["name"] for p in data["projects"]] == ["svc"]
        assert "dirsScanned" in data["stats"]

    @pytest.mark.asyncio
    async def test_research_codebase(self):
        data = await research_codebase(
            "Where is FooService defined?", constraints={"deadlineMs": 5000}
        )

        assert data["patterns"]["status"] == "ok"
        assert "src/service.py:4" in data["synthesis"]["references"]

    @pytest.mark.asyncio
    async def test_research_codebase_rejects_bad_deadline(self):
        with pytest.raises(InvalidArgumentError):
            await research_codebase("FooService", constraints={"deadlineMs": -1})


class TestMcpArtifacts:
    """Test the artifact argument accepts a directory override."""

    @pytest.mark.asyncio
    async def test_artifact_dir_object(self, tmp_path, service_project):
        out_dir = tmp_path / "reports"
        set_context(AppContext.from_config(Config(roots=[str(service_project)], artifacts={"enabled": True})))

        data = await research_codebase("FooService", artifact={"dir": str(out_dir)})

        assert data["artifact"] is not None
        assert len(list(out_dir.glob("research-*.md"))) == 1
