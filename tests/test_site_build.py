from __future__ import annotations

import os

import allure
import pytest

from site_harness.build.hugo import HUGO_FAILED_MESSAGE, HUGO_FAILED_NOTICE, build_args, build_site
from site_harness.build.toolchain import ASCIIDOCTOR_MISSING_MESSAGE, check_asciidoctor
from site_harness.config import HugoSettings
from site_harness.process import ExecutableNotFoundError, ProcessResult, ProcessStartError
from site_harness.taskgraph import TaskError

pytestmark = [
    allure.epic("Build Orchestration"),
    allure.feature("Site Builder"),
]


@pytest.mark.parametrize(
    "extra",
    [
        (),
        ("--buildDrafts",),
        ("--buildDrafts", "--buildFuture"),
        ("--buildFuture", "-v", "--minify"),
    ],
)
def test_build_args_are_base_followed_by_extra(extra: tuple[str, ...]) -> None:
    hugo = HugoSettings()

    assert build_args(hugo, extra) == ["-d", "../dist", "-s", "site", "-v", *extra]


def test_build_site_defaults_environment_to_development(
    project_settings,
    notifier,
    make_invoker,
    monkeypatch,
) -> None:
    monkeypatch.delenv("HUGO_ENVIRONMENT", raising=False)
    invoker = make_invoker()

    build_site(settings=project_settings, notifier=notifier, invoker=invoker)

    [call] = invoker.calls
    assert call["args"] == ["hugo", "-d", "../dist", "-s", "site", "-v"]
    assert call["env"] == {"HUGO_ENVIRONMENT": "development"}
    assert call["cwd"] == project_settings.project_dir
    assert "HUGO_ENVIRONMENT" not in os.environ


def test_build_site_passes_explicit_environment_and_extra_args(
    project_settings,
    notifier,
    make_invoker,
) -> None:
    invoker = make_invoker()

    build_site(
        settings=project_settings,
        notifier=notifier,
        extra_args=project_settings.hugo.preview_args,
        environment="production",
        invoker=invoker,
    )

    [call] = invoker.calls
    assert call["args"][-2:] == ["--buildDrafts", "--buildFuture"]
    assert call["env"] == {"HUGO_ENVIRONMENT": "production"}


def test_build_site_success_reloads_once(project_settings, notifier, make_invoker) -> None:
    build_site(settings=project_settings, notifier=notifier, invoker=make_invoker())

    assert notifier.reloads == 1
    assert notifier.messages == []


@pytest.mark.parametrize(
    "outcome",
    [ProcessResult(exit_code=255), ProcessResult(exit_code=None, signal="SIGKILL")],
)
def test_build_site_failure_notifies_and_raises(
    project_settings,
    notifier,
    make_invoker,
    outcome: ProcessResult,
) -> None:
    invoker = make_invoker({"hugo": outcome})

    with pytest.raises(TaskError) as excinfo:
        build_site(settings=project_settings, notifier=notifier, invoker=invoker)

    assert excinfo.value.message == HUGO_FAILED_MESSAGE
    assert notifier.messages == [HUGO_FAILED_NOTICE]
    assert notifier.reloads == 0


def test_build_site_missing_binary_names_it(project_settings, notifier, make_invoker) -> None:
    invoker = make_invoker({"hugo": ExecutableNotFoundError("gone", executable="hugo")})

    with pytest.raises(TaskError, match="Hugo executable not found: hugo"):
        build_site(settings=project_settings, notifier=notifier, invoker=invoker)


@allure.feature("Toolchain Availability Check")
def test_asciidoctor_missing_fails_with_remediation(make_invoker) -> None:
    invoker = make_invoker(
        {"asciidoctor": ExecutableNotFoundError("raw os text", executable="asciidoctor")},
    )

    with pytest.raises(TaskError) as excinfo:
        check_asciidoctor(invoker=invoker)

    assert excinfo.value.message == ASCIIDOCTOR_MISSING_MESSAGE
    assert "raw os text" not in str(excinfo.value)
    assert invoker.calls[0]["quiet"] is True
    assert invoker.calls[0]["args"] == ["asciidoctor"]


@allure.feature("Toolchain Availability Check")
def test_asciidoctor_other_spawn_error_passes_through(make_invoker) -> None:
    error = ProcessStartError("permission denied", executable="asciidoctor")
    invoker = make_invoker({"asciidoctor": error})

    with pytest.raises(ProcessStartError) as excinfo:
        check_asciidoctor(invoker=invoker)

    assert excinfo.value is error


@allure.feature("Toolchain Availability Check")
@pytest.mark.parametrize(
    "outcome",
    [
        ProcessResult(exit_code=0),
        ProcessResult(exit_code=1),
        ProcessResult(exit_code=None, signal="SIGTERM"),
    ],
)
def test_asciidoctor_any_exit_counts_as_available(make_invoker, outcome) -> None:
    check_asciidoctor(invoker=make_invoker({"asciidoctor": outcome}))
