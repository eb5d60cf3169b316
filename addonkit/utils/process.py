"""Run external programs (git, rsync, robocopy) in a working directory."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class ProcessError(Exception):
    """An external program failed or could not be started."""

    def __init__(
        self,
        message: str,
        args: list[str] | None = None,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command = args or []
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


class Shell:
    """Runs programs with a fixed working directory.

    Two call modes are offered: `run` raises ProcessError on a non-zero
    exit code, `run_unchecked` returns the completed process regardless.
    """

    def __init__(self, working_dir: Path):
        self.working_dir = Path(working_dir)

    def run(self, executable: str, *args: str) -> subprocess.CompletedProcess[str]:
        """Run a program, raising if it exits with a non-zero code.

        Args:
            executable: Program to run (e.g. "git")
            *args: Program arguments

        Returns:
            Completed process

        Raises:
            ProcessError: If the program fails or is not installed
        """
        result = self.run_unchecked(executable, *args)
        if result.returncode != 0:
            cmd = " ".join([executable, *args])
            logger.error("Command failed in %s: %s - %s", self.working_dir, cmd, result.stderr.strip())
            raise ProcessError(
                f"Command failed: {cmd}\n{result.stderr}",
                args=[executable, *args],
                exit_code=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    def run_unchecked(self, executable: str, *args: str) -> subprocess.CompletedProcess[str]:
        """Run a program and return its result whatever the exit code.

        Args:
            executable: Program to run
            *args: Program arguments

        Returns:
            Completed process

        Raises:
            ProcessError: If the program is not installed
        """
        cmd = [executable, *args]
        logger.debug("Running in %s: %s", self.working_dir, " ".join(cmd))
        if not self.working_dir.is_dir():
            raise ProcessError(
                f"Working directory does not exist: {self.working_dir}",
                args=cmd,
            )
        try:
            return subprocess.run(
                cmd,
                cwd=self.working_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            logger.error("%s is not installed or not in PATH", executable)
            raise ProcessError(
                f"{executable} is not installed or not in PATH",
                args=cmd,
            ) from e


def create_shell(working_dir: Path) -> Shell:
    """Create a shell rooted at a directory."""
    return Shell(working_dir)
