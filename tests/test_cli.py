from __future__ import annotations

import json
from pathlib import Path

import allure
from click.testing import CliRunner

from site_harness.build.toolchain import ASCIIDOCTOR_MISSING_MESSAGE
from site_harness.controllers import TaskCliController, TaskCommand
from site_harness.main import site_harness
from site_harness.taskgraph import TaskGraph

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Task Commands"),
]

FAKE_HUGO = """
import json
import os
import sys
from pathlib import Path

Path({record!r}).write_text(
    json.dumps(
        {{
            "argv": sys.argv[1:],
            "environment": os.environ.get("HUGO_ENVIRONMENT"),
            "cwd": os.getcwd(),
        }}
    ),
    "utf-8",
)
raise SystemExit({exit_code})
"""


def _fake_hugo(write_executable, record: Path, exit_code: int = 0) -> Path:
    return write_executable("hugo", FAKE_HUGO.format(record=str(record), exit_code=exit_code))


def test_tasks_lists_public_tasks_with_dependencies() -> None:
    result = CliRunner().invoke(site_harness, ["tasks"])

    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "Tasks:" in lines
    build_line = next(line for line in lines if line.strip().startswith("build "))
    assert "[sass, js, fonts, asciidoctor-check]" in build_line
    assert not any("#" in line for line in lines)


def test_hugo_command_runs_binary_with_development_environment(
    tmp_path: Path,
    write_executable,
    monkeypatch,
) -> None:
    record = tmp_path / "hugo.json"
    monkeypatch.setenv("SITE_HARNESS_HUGO_BIN", str(_fake_hugo(write_executable, record)))
    monkeypatch.delenv("HUGO_ENVIRONMENT", raising=False)

    result = CliRunner().invoke(site_harness, ["--project-dir", str(tmp_path), "hugo"])

    assert result.exit_code == 0, result.output
    recorded = json.loads(record.read_text("utf-8"))
    assert recorded["argv"] == ["-d", "../dist", "-s", "site", "-v"]
    assert recorded["environment"] == "development"
    assert Path(recorded["cwd"]).resolve() == tmp_path.resolve()


def test_failed_hugo_build_exits_nonzero(tmp_path: Path, write_executable, monkeypatch) -> None:
    record = tmp_path / "hugo.json"
    hugo = _fake_hugo(write_executable, record, exit_code=255)
    monkeypatch.setenv("SITE_HARNESS_HUGO_BIN", str(hugo))

    result = CliRunner().invoke(site_harness, ["--project-dir", str(tmp_path), "hugo"])

    assert result.exit_code == 1
    assert "'hugo' errored: Hugo build failed" in result.output


def test_build_without_asciidoctor_reports_remediation(
    tmp_path: Path,
    write_executable,
    monkeypatch,
) -> None:
    record = tmp_path / "hugo.json"
    monkeypatch.setenv("SITE_HARNESS_HUGO_BIN", str(_fake_hugo(write_executable, record)))
    monkeypatch.setenv("SITE_HARNESS_ASCIIDOCTOR_BIN", str(tmp_path / "missing" / "asciidoctor"))

    result = CliRunner().invoke(site_harness, ["--project-dir", str(tmp_path), "build"])

    assert result.exit_code == 1
    assert f"'build' errored: {ASCIIDOCTOR_MISSING_MESSAGE}" in result.output
    assert not record.exists()


def test_build_records_production_environment(
    tmp_path: Path,
    write_executable,
    monkeypatch,
) -> None:
    record = tmp_path / "hugo.json"
    monkeypatch.setenv("SITE_HARNESS_HUGO_BIN", str(_fake_hugo(write_executable, record)))
    asciidoctor = write_executable("asciidoctor", "raise SystemExit(1)")
    monkeypatch.setenv("SITE_HARNESS_ASCIIDOCTOR_BIN", str(asciidoctor))

    result = CliRunner().invoke(site_harness, ["--project-dir", str(tmp_path), "build-preview"])

    assert result.exit_code == 0, result.output
    recorded = json.loads(record.read_text("utf-8"))
    assert recorded["environment"] == "production"
    assert recorded["argv"][-2:] == ["--buildDrafts", "--buildFuture"]


def test_invalid_configuration_is_reported(monkeypatch) -> None:
    monkeypatch.setenv("SITE_HARNESS_SERVER_PORT", "0")

    result = CliRunner().invoke(site_harness, ["hugo"])

    assert result.exit_code == 1
    assert "Configuration error: SITE_HARNESS_SERVER_PORT out of range: 0" in result.output


def test_missing_project_dir_is_rejected_before_running(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        site_harness,
        ["--project-dir", str(tmp_path / "typo"), "hugo"],
    )

    assert result.exit_code == 2
    assert "--project-dir" in result.output
    assert "Hugo executable not found" not in result.output


def test_task_output_is_echoed_while_the_task_runs(tmp_path: Path) -> None:
    echoed: list[str] = []
    seen_during_run: list[list[str]] = []
    graph = TaskGraph()

    def long_running(ctx) -> None:
        ctx.emit("Serving dist at http://localhost:3000/")
        seen_during_run.append(list(echoed))

    graph.add_leaf("serve-forever", long_running)
    controller = TaskCliController(graph=graph, echo=echoed.append)

    result = controller.run(TaskCommand(task="serve-forever", project_dir=tmp_path))

    assert result.success
    assert seen_during_run == [["Serving dist at http://localhost:3000/"]]
    assert result.lines == []


def test_task_output_is_collected_without_echo(tmp_path: Path) -> None:
    graph = TaskGraph()
    graph.add_leaf("say", lambda ctx: ctx.emit("hello"))

    result = TaskCliController(graph=graph).run(TaskCommand(task="say", project_dir=tmp_path))

    assert result.lines == ["hello"]
