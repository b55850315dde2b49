"""Subprocess invocation for external build tools."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class ProcessError(RuntimeError):
    """External process could not be started."""

    def __init__(self, message: str, *, executable: str) -> None:
        super().__init__(message)
        self.executable = executable


class ExecutableNotFoundError(ProcessError):
    """The executable does not exist or is not on PATH."""


class ProcessStartError(ProcessError):
    """The executable exists but the OS refused to start it."""


@dataclass(slots=True, frozen=True)
class ProcessResult:
    """Outcome of one external process run."""

    exit_code: int | None
    signal: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessInvoker(Protocol):
    """Callable that runs an external executable to completion."""

    def __call__(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        quiet: bool = False,
    ) -> ProcessResult:
        """Run ``args`` and report how the process ended."""


def run_process(
    args: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    quiet: bool = False,
) -> ProcessResult:
    """Run an executable with inherited stdio and wait for it to exit.

    ``env`` entries are layered on top of the current environment and only
    reach the child process. With ``quiet`` the child gets no stdin and its
    output is discarded, which suits availability probes.
    """

    argv = list(args)
    if not argv:
        raise ValueError("Process arguments must not be empty.")

    child_env = None
    if env:
        child_env = os.environ.copy()
        child_env.update(env)

    stream = subprocess.DEVNULL if quiet else None
    logger.debug("Spawning %s", argv)
    try:
        completed = subprocess.run(  # noqa: S603
            argv,
            env=child_env,
            cwd=cwd,
            stdin=stream,
            stdout=stream,
            stderr=stream,
            check=False,
        )
    except FileNotFoundError as error:
        if cwd is not None and not Path(cwd).is_dir():
            raise ProcessStartError(
                f"Failed to start {argv[0]}: working directory does not exist: {cwd}",
                executable=argv[0],
            ) from error
        raise ExecutableNotFoundError(
            f"Executable not found: {argv[0]}",
            executable=argv[0],
        ) from error
    except OSError as error:
        raise ProcessStartError(
            f"Failed to start {argv[0]}: {error}",
            executable=argv[0],
        ) from error

    return _to_result(completed.returncode)


def _to_result(returncode: int) -> ProcessResult:
    if returncode >= 0:
        return ProcessResult(exit_code=returncode)
    try:
        signal_name = signal.Signals(-returncode).name
    except ValueError:
        signal_name = f"SIG{-returncode}"
    return ProcessResult(exit_code=None, signal=signal_name)
