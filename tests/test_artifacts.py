"""Tests for Markdown research artifacts."""

from codescout.artifacts import TRUNCATION_MARKER, render_markdown, write_research_artifact

REPORT = {
    "question": "Where is FooService defined?",
    "rootsSearched": ["/work"],
    "locator": {
        "status": "ok",
        "value": {"summary": "Found 1 relevant file(s).", "notes": None},
        "timing": {"startedAt": 0, "elapsedMs": 3.2},
    },
    "analyzer": {
        "status": "timeout",
        "error": {"name": "TaskTimeoutError", "message": "Timed out after 25ms"},
        "timing": {"startedAt": 0, "elapsedMs": 25.4},
    },
    "patterns": {
        "status": "ok",
        "value": {"summary": "Found 1 example(s).", "notes": None},
        "timing": {"startedAt": 0, "elapsedMs": 4.0},
    },
    "synthesis": {
        "summary": "Partial results for: Where is FooService defined?",
        "references": ["src/service.py", "src/service.py:4"],
        "key_findings": ["src/service.py:4\nclass FooService:"],
        "confidence": "med",
        "notes": None,
        "partial": True,
    },
}


class TestRenderMarkdown:
    """Test Markdown rendering of a report payload."""

    def test_sections(self):
        md = render_markdown(REPORT)

        assert md.startswith("# Research report")
        assert "**Question:** Where is FooService defined?" in md
        assert "| analyzer | timeout | 25.4 | Timed out after 25ms |" in md
        assert "- `src/service.py:4`" in md
        assert "  class FooService:" in md


class TestWriteResearchArtifact:
    """Test writing artifacts to disk."""

    def test_writes_file(self, tmp_path):
        path = write_research_artifact(REPORT, "artifacts", cwd=tmp_path)

        written = tmp_path / "artifacts"
        files = list(written.glob("research-*.md"))
        assert len(files) == 1
        assert str(files[0].resolve()) == path
        assert files[0].read_text() == render_markdown(REPORT)

    def test_redacts_secrets(self, tmp_path):
        secret = "ghp_" + "k" * 30
        report = dict(REPORT, question=f"who uses {secret}")

        path = write_research_artifact(report, tmp_path)

        assert secret not in open(path).read()

    def test_truncates_to_max_bytes(self, tmp_path):
        path = write_research_artifact(REPORT, tmp_path, max_bytes=120)

        content = open(path).read()
        assert content.endswith(TRUNCATION_MARKER)
        assert len(content.encode("utf-8")) <= 120
