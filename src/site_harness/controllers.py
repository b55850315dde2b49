"""Controllers for task CLI commands."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from site_harness.config import Settings
from site_harness.process import ProcessInvoker, run_process
from site_harness.taskgraph import TaskError, TaskGraph, TaskGraphError
from site_harness.tasks import TaskContext, build_task_graph

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskCommand:
    """CLI input for one task run."""

    task: str
    project_dir: Path | None = None


@dataclass(slots=True)
class TaskRunResult:
    """Lines to print and overall outcome."""

    lines: list[str] = field(default_factory=list)
    success: bool = True


class TaskCliController:
    """Resolve settings, run a task and render the outcome.

    Lines emitted by a task go to ``echo`` as they happen when one is given;
    otherwise they are collected into the result.
    """

    def __init__(
        self,
        *,
        graph: TaskGraph | None = None,
        invoker: ProcessInvoker = run_process,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self.graph = graph or build_task_graph()
        self.invoker = invoker
        self.echo = echo

    def run(self, command: TaskCommand) -> TaskRunResult:
        result = TaskRunResult()
        try:
            settings = Settings.from_env(project_dir=command.project_dir)
            settings.validate()
        except ValueError as error:
            result.lines.append(f"Configuration error: {error}")
            result.success = False
            return result

        context = TaskContext(
            settings=settings,
            invoker=self.invoker,
            emit=self.echo or result.lines.append,
        )
        try:
            self.graph.run(command.task, context)
        except TaskGraphError as error:
            result.lines.append(str(error))
            result.success = False
        except TaskError as error:
            logger.debug("Task %s failed", error.task_name, exc_info=True)
            result.lines.append(f"'{command.task}' errored: {error.message}")
            result.success = False
        except KeyboardInterrupt:
            result.lines.append(f"'{command.task}' stopped.")
        return result

    def list_tasks(self) -> TaskRunResult:
        lines = ["Tasks:"]
        for descriptor in self.graph.describe():
            dependencies = self._public_dependencies(descriptor.name)
            suffix = f" [{', '.join(dependencies)}]" if dependencies else ""
            lines.append(f"  {descriptor.name:<18} {descriptor.description}{suffix}")
        return TaskRunResult(lines=lines)

    def _public_dependencies(self, name: str) -> list[str]:
        found: list[str] = []
        for dependency in self.graph.get(name).dependencies:
            descriptor = self.graph.get(dependency)
            if descriptor.anonymous:
                found.extend(self._public_dependencies(dependency))
            elif dependency not in found:
                found.append(dependency)
        return found
