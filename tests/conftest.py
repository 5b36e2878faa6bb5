"""Shared fixtures: fake process runner, sample project, tree snapshots."""

from __future__ import annotations

from pathlib import Path

import pytest

from changegate.apply.verify import ProcessOutcome
from changegate.pipeline import SafetyPipeline
from changegate.schemas.config import GateConfig


class FakeRunner:
    """ProcessRunner fake keyed on the command name.

    ``codes`` maps an executable name to an exit code; ``None`` simulates
    a missing tool and ``"timeout"`` a timeout. Unlisted commands pass.
    """

    def __init__(self) -> None:
        self.codes: dict[str, int | str | None] = {}
        self.outputs: dict[str, str] = {}
        self.calls: list[list[str]] = []

    def run(self, args: list[str], cwd: Path, timeout: int) -> ProcessOutcome:
        self.calls.append(list(args))
        name = args[0]
        code = self.codes.get(name, 0)
        if code is None:
            return ProcessOutcome(returncode=-1, output=f"Command not found: {name}", missing=True)
        if code == "timeout":
            return ProcessOutcome(returncode=-1, output="timed out", timed_out=True)
        return ProcessOutcome(returncode=int(code), output=self.outputs.get(name, ""))


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def project(tmp_path):
    """A small project with two existing source files."""
    root = tmp_path / "project"
    (root / "pkg").mkdir(parents=True)
    (root / "pkg" / "__init__.py").write_text("")
    (root / "pkg" / "core.py").write_text("def greet(name):\n    return 'hi ' + name\n")
    (root / "README.md").write_text("# sample\n")
    return root


@pytest.fixture
def make_pipeline(project, runner):
    def _make(config: GateConfig | None = None, **kwargs) -> SafetyPipeline:
        return SafetyPipeline(project, config or GateConfig(), runner=runner, **kwargs)
    return _make


def tree_state(root: Path) -> dict[str, bytes]:
    """Every file under ``root`` except the snapshot store, with its bytes."""
    state: dict[str, bytes] = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root)
        if rel.parts and rel.parts[0] == ".changegate":
            continue
        if path.is_file():
            state[rel.as_posix()] = path.read_bytes()
        elif path.is_dir():
            state[rel.as_posix() + "/"] = b""
    return state


@pytest.fixture
def tree():
    return tree_state
