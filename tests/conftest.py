"""Shared fixtures for addonkit tests."""

import json
import shutil
import subprocess
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from addonkit.config.schemas import AddonsFile
from addonkit.core.addon import Addon, AddonsConfiguration
from addonkit.utils.process import Shell


class FakeShell(Shell):
    """Shell that records commands instead of running them."""

    def __init__(self, working_dir: Path, recorder: "ShellRecorder"):
        super().__init__(working_dir)
        self._recorder = recorder

    def run_unchecked(self, executable: str, *args: str) -> subprocess.CompletedProcess[str]:
        argv = [executable, *args]
        self._recorder.calls.append((self.working_dir, argv))
        return self._recorder.result_for(argv)


class ShellRecorder:
    """Creates fake shells and records every command they are asked to run.

    Results default to a successful exit with no output. Use ``respond`` to
    script the result of a command.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[Path, list[str]]] = []
        self._results: dict[tuple[str, ...], tuple[int, str, str]] = {}

    def respond(self, *argv: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self._results[argv] = (returncode, stdout, stderr)

    def result_for(self, argv: list[str]) -> subprocess.CompletedProcess[str]:
        returncode, stdout, stderr = self._results.get(tuple(argv), (0, "", ""))
        return subprocess.CompletedProcess(argv, returncode, stdout, stderr)

    def factory(self, working_dir: Path) -> Shell:
        return FakeShell(working_dir, self)

    @property
    def commands(self) -> list[list[str]]:
        return [argv for _, argv in self.calls]

    def commands_in(self, working_dir: Path) -> list[list[str]]:
        return [argv for cwd, argv in self.calls if cwd == working_dir]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="addonkit_test_"))
    yield path
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def temp_project(temp_dir: Path) -> Path:
    """Create a temporary project directory."""
    project_dir = temp_dir / "project"
    project_dir.mkdir()
    return project_dir


@pytest.fixture
def shell_recorder() -> ShellRecorder:
    return ShellRecorder()


@pytest.fixture
def addons_config(temp_project: Path) -> AddonsConfiguration:
    """Default configuration for the temporary project."""
    return AddonsConfiguration.from_addons_file(temp_project, AddonsFile())


def write_addons_file(directory: Path, data: dict[str, Any], name: str = "addons.json") -> Path:
    """Write an addons manifest into a directory."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(json.dumps(data, indent=2))
    return path


def make_addon(
    name: str = "my_addon",
    url: str = "https://example.com/my_addon.git",
    checkout: str = "main",
    subfolder: str = "",
    source: str = "remote",
    manifest_path: Path = Path("/project/addons.json"),
    content_hash: str | None = None,
) -> Addon:
    """Build a resolved addon with sensible defaults."""
    return Addon(
        name=name,
        manifest_path=manifest_path,
        url=url,
        checkout=checkout,
        subfolder=subfolder,
        source=source,  # type: ignore[arg-type]
        content_hash=content_hash,
    )


@pytest.fixture(name="make_addon")
def make_addon_fixture():
    """Factory for resolved addons."""
    return make_addon


@pytest.fixture(name="write_addons_file")
def write_addons_file_fixture():
    """Writer for addons manifests."""
    return write_addons_file
