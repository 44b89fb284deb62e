"""End-to-end tests for the research pipeline."""

import asyncio
import json

import pytest
from unittest.mock import patch

from codescout.config import Config
from codescout.research import InvalidArgumentError, research_codebase, run_research
from codescout.runtime.cancellation import CancellationSource
from codescout.schemas import TaskStatus

QUESTION = "Where is FooService defined?"


class TestRunResearch:
    """Test the locator, analyzer, pattern-finder and synthesis flow."""

    @pytest.mark.asyncio
    async def test_full_pipeline(self, service_project, workspace_config, runtime):
        report = await run_research(QUESTION, config=workspace_config, runtime=runtime)

        assert report.question == QUESTION
        assert report.roots_searched == workspace_config.roots
        assert report.locator.status == TaskStatus.OK
        assert report.analyzer.status == TaskStatus.OK
        assert report.patterns.status == TaskStatus.OK
        assert report.locator.value.references == ["src/app.py", "src/service.py"]
        assert "src/service.py:4" in report.analyzer.value.references
        assert report.synthesis.references == [
            "src/app.py",
            "src/app.py:1",
            "src/app.py:3",
            "src/service.py",
            "src/service.py:4",
        ]
        assert report.synthesis.partial is False

    @pytest.mark.asyncio
    async def test_deterministic(self, service_project, workspace_config, runtime):
        """Same workspace and question give the same synthesis."""
        first = await run_research(QUESTION, config=workspace_config, runtime=runtime)
        second = await run_research(QUESTION, config=workspace_config, runtime=runtime)

        assert first.synthesis == second.synthesis
        assert first.locator.value == second.locator.value

    @pytest.mark.asyncio
    async def test_payload_uses_wire_names(self, service_project, workspace_config, runtime):
        payload = (await run_research(QUESTION, config=workspace_config, runtime=runtime)).to_payload()

        assert set(payload) == {"question", "rootsSearched", "locator", "analyzer", "patterns", "synthesis"}
        assert "error" not in payload["locator"]
        assert set(payload["locator"]["timing"]) == {"startedAt", "elapsedMs"}

    @pytest.mark.asyncio
    async def test_analyzer_timeout_keeps_other_results(self, service_project, workspace_config, runtime):
        """A subagent that misses its deadline does not fail the report."""

        async def stuck(*args, token=None):
            while True:
                token.raise_if_cancelled()
                await asyncio.sleep(0.01)

        with patch("codescout.research.run_analyzer_subagent", new=stuck):
            report = await run_research(
                QUESTION, deadline_ms=300, config=workspace_config, runtime=runtime
            )

        assert report.locator.status == TaskStatus.OK
        assert report.analyzer.status == TaskStatus.TIMEOUT
        assert report.patterns.status == TaskStatus.OK
        assert report.synthesis.partial is True
        assert "src/service.py" in report.synthesis.references

    @pytest.mark.asyncio
    async def test_pattern_finder_error(self, service_project, workspace_config, runtime):
        async def broken(*args, token=None):
            raise RuntimeError("pattern index corrupt")

        with patch("codescout.research.run_pattern_finder_subagent", new=broken):
            report = await run_research(QUESTION, config=workspace_config, runtime=runtime)

        assert report.patterns.status == TaskStatus.ERROR
        assert report.patterns.error.name == "RuntimeError"
        assert report.analyzer.status == TaskStatus.OK
        assert report.synthesis.partial is True

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, service_project, workspace_config, runtime):
        source = CancellationSource()
        source.cancel("caller went away")

        report = await run_research(QUESTION, token=source.token, config=workspace_config, runtime=runtime)

        assert report.locator.status == TaskStatus.CANCELED
        assert report.analyzer.status == TaskStatus.CANCELED
        assert report.patterns.status == TaskStatus.CANCELED
        assert report.synthesis.references == []
        assert report.synthesis.partial is True


class TestResearchValidation:
    """Test that bad input fails before any subagent runs."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question", ["", "   ", None])
    async def test_blank_question(self, workspace_config, runtime, question):
        with pytest.raises(InvalidArgumentError, match="question"):
            await run_research(question, config=workspace_config, runtime=runtime)

    @pytest.mark.asyncio
    async def test_root_outside_allow_list(self, tmp_path, workspace_config, runtime):
        other = tmp_path / "other"
        other.mkdir()

        with pytest.raises(InvalidArgumentError, match="Root not allowed"):
            await run_research(QUESTION, roots=[str(other)], config=workspace_config, runtime=runtime)

    @pytest.mark.asyncio
    async def test_roots_must_be_a_list(self, workspace_config, runtime):
        with pytest.raises(InvalidArgumentError):
            await run_research(QUESTION, roots="src", config=workspace_config, runtime=runtime)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("deadline", [0, -5, 1.5, True])
    async def test_invalid_deadline(self, workspace_config, runtime, deadline):
        with pytest.raises(InvalidArgumentError, match="deadlineMs"):
            await run_research(QUESTION, deadline_ms=deadline, config=workspace_config, runtime=runtime)

    @pytest.mark.asyncio
    async def test_subdirectory_root_allowed(self, service_project, workspace_config, runtime):
        report = await run_research(
            QUESTION,
            roots=[str(service_project / "src")],
            config=workspace_config,
            runtime=runtime,
        )

        assert report.locator.value.references == ["app.py", "service.py"]


class TestResearchCodebase:
    """Test the transport-facing payload."""

    @pytest.mark.asyncio
    async def test_secrets_never_leave_the_payload(self, service_project, workspace_config, runtime):
        secret = "ghp_" + "Zx9" * 12
        (service_project / "src" / "keys.py").write_text(f'FooService_KEY = "{secret}"\n')

        payload = await research_codebase(QUESTION, config=workspace_config, runtime=runtime)

        assert "src/keys.py:1" in payload["synthesis"]["references"]
        assert secret not in json.dumps(payload)
        assert payload["artifact"] is None

    @pytest.mark.asyncio
    async def test_secret_in_question_never_leaves_the_payload(self, service_project, workspace_config, runtime):
        """A token typed into the question is redacted everywhere it is echoed."""
        secret = "ghp_" + "Mn4" * 12

        payload = await research_codebase(
            f"Where is FooService used with {secret}?", config=workspace_config, runtime=runtime
        )

        assert payload["locator"]["status"] == "ok"
        assert "[REDACTED]" in payload["question"]
        assert "[REDACTED]" in payload["synthesis"]["summary"]
        assert secret not in json.dumps(payload)

    @pytest.mark.asyncio
    async def test_artifact_written_when_enabled(self, tmp_path, service_project, runtime):
        secret = "ghp_" + "Qw7" * 12
        (service_project / "src" / "keys.py").write_text(f'FooService_KEY = "{secret}"\n')
        out_dir = tmp_path / "out"
        config = Config(roots=[str(service_project)], artifacts={"enabled": True, "dir": str(out_dir)})

        payload = await research_codebase(QUESTION, artifact=True, config=config, runtime=runtime)

        written = list(out_dir.glob("research-*.md"))
        assert len(written) == 1
        assert payload["artifact"] is not None
        content = written[0].read_text()
        assert "# Research report" in content
        assert "src/service.py:4" in content
        assert secret not in content

    @pytest.mark.asyncio
    async def test_artifact_ignored_when_disabled(self, tmp_path, service_project, workspace_config, runtime):
        payload = await research_codebase(
            QUESTION, artifact={"dir": str(tmp_path / "out")}, config=workspace_config, runtime=runtime
        )

        assert payload["artifact"] is None
        assert not (tmp_path / "out").exists()
