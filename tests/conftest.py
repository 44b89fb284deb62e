"""Pytest configuration and fixtures for codescout tests."""

import pytest
from pathlib import Path

from codescout.config import Config
from codescout.runtime.task_runtime import SubagentRuntime
from codescout.runtime.worker_pool import WorkerPool


@pytest.fixture
def tmp_workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace directory for tests."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def sample_python_files(tmp_workspace: Path) -> Path:
    """Create a small Python project for the subagents to search."""
    (tmp_workspace / "main.py").write_text(
        '''"""Main module."""

from utils.helpers import add


def main():
    """Entry point."""
    print(add(1, 2))


if __name__ == "__main__":
    main()
'''
    )

    utils_dir = tmp_workspace / "utils"
    utils_dir.mkdir()
    (utils_dir / "__init__.py").write_text('"""Utils package."""\n')
    (utils_dir / "helpers.py").write_text(
        '''"""Helper functions."""

def add(a: int, b: int) -> int:
    """Add two numbers."""
    return a + b

def multiply(a: int, b: int) -> int:
    """Multiply two numbers."""
    return a * b
'''
    )

    return tmp_workspace


@pytest.fixture
def service_project(tmp_workspace: Path) -> Path:
    """A project where FooService is defined once and used twice."""
    src = tmp_workspace / "src"
    src.mkdir()
    (src / "service.py").write_text(
        "import logging\n"
        "\n"
        "\n"
        "class FooService:\n"
        "    def run(self):\n"
        "        return 1\n"
    )
    (src / "app.py").write_text(
        "from service import FooService\n"
        "\n"
        "service = FooService()\n"
    )
    (tmp_workspace / "README.md").write_text("# Demo\n\nNothing to see here.\n")
    return tmp_workspace


@pytest.fixture
def workspace_config(tmp_workspace: Path) -> Config:
    """Config whose only root is the temporary workspace."""
    return Config(roots=[str(tmp_workspace)])


@pytest.fixture
def runtime() -> SubagentRuntime:
    """Runtime with a small shared pool and a generous deadline."""
    return SubagentRuntime(worker_pool=WorkerPool(max_concurrent=4), default_deadline_ms=5000)
