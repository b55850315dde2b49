"""Shared test fixtures."""

from __future__ import annotations

import stat
import sys
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from site_harness.config import AssetSettings, ServerSettings, Settings
from site_harness.process import ProcessResult


class RecordingNotifier:
    """Notifier double counting reloads and collecting notifications."""

    def __init__(self) -> None:
        self.reloads = 0
        self.messages: list[str] = []

    def reload(self) -> None:
        self.reloads += 1

    def notify(self, message: str) -> None:
        self.messages.append(message)


class RecordingInvoker:
    """Process invoker double: records calls, answers from a per-binary table."""

    def __init__(self, outcomes: Mapping[str, ProcessResult | Exception] | None = None) -> None:
        self.outcomes = dict(outcomes or {})
        self.calls: list[dict[str, object]] = []

    def __call__(
        self,
        args: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        quiet: bool = False,
    ) -> ProcessResult:
        self.calls.append({"args": list(args), "env": dict(env or {}), "cwd": cwd, "quiet": quiet})
        outcome = self.outcomes.get(args[0], ProcessResult(exit_code=0))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def binaries(self) -> list[str]:
        return [str(call["args"][0]) for call in self.calls]  # type: ignore[index]


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def project_settings(tmp_path: Path) -> Settings:
    """Settings rooted in an empty temp project; dev server on an ephemeral port."""

    return Settings(
        project_dir=tmp_path,
        assets=AssetSettings(),
        server=ServerSettings(
            port=0,
            ui_port=None,
            open_browser=False,
            watch_interval_seconds=0.05,
        ),
    )


@pytest.fixture()
def write_executable(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a fake executable backed by a Python script into ``tmp_path/bin``."""

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(parents=True, exist_ok=True)

    def _write(name: str, script: str) -> Path:
        implementation = bin_dir / f"{name}_impl.py"
        implementation.write_text(script.strip() + "\n", "utf-8")
        launcher = bin_dir / name
        launcher.write_text(
            f'#!/usr/bin/env sh\nexec "{sys.executable}" "{implementation}" "$@"\n',
            "utf-8",
        )
        launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR)
        return launcher

    return _write


@pytest.fixture()
def make_invoker() -> Callable[..., RecordingInvoker]:
    return RecordingInvoker
