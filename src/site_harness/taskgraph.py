"""Named task registry with parallel and sequential composition.

Tasks are either leaf actions (a callable receiving the run context) or
compositions of other tasks by name. A composition step may also be an
inline callable or a nested ``parallel(...)``/``series(...)`` group; those
are registered as anonymous tasks named after their parent. The graph is
validated before every run: all names must resolve and the dependency
edges must be acyclic.

A leaf fails by raising. The error travels up through every enclosing
composition and aborts the run; there is no retry.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

TaskAction = Callable[[Any], None]


class TaskKind(str, Enum):
    """How a task performs its work."""

    LEAF = "leaf"
    PARALLEL = "parallel"
    SERIES = "series"


@dataclass(slots=True, frozen=True)
class Composition:
    """Unnamed group usable as a step of another composition."""

    kind: TaskKind
    steps: tuple[TaskStep, ...]


TaskStep = str | TaskAction | Composition


def parallel(*steps: TaskStep) -> Composition:
    return Composition(TaskKind.PARALLEL, steps)


def series(*steps: TaskStep) -> Composition:
    return Composition(TaskKind.SERIES, steps)


class TaskGraphError(ValueError):
    """Invalid task declaration: duplicate name, unknown reference or cycle."""


class TaskError(RuntimeError):
    """A task failed; aborts the enclosing flow."""

    def __init__(self, task_name: str, message: str) -> None:
        super().__init__(message)
        self.task_name = task_name
        self.message = message

    def __str__(self) -> str:
        return f"{self.task_name}: {self.message}"


@dataclass(slots=True, frozen=True)
class TaskDescriptor:
    """One registered task."""

    name: str
    kind: TaskKind
    dependencies: tuple[str, ...] = ()
    action: TaskAction | None = None
    description: str = ""
    anonymous: bool = False


class TaskGraph:
    """Registry and executor for named tasks."""

    def __init__(self, *, max_workers: int = 8) -> None:
        self._tasks: dict[str, TaskDescriptor] = {}
        self._max_workers = max_workers

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def task(self, name: str, *, description: str = "") -> Callable[[TaskAction], TaskAction]:
        """Decorator registering a leaf action under ``name``."""

        def decorator(action: TaskAction) -> TaskAction:
            self.add_leaf(name, action, description=description)
            return action

        return decorator

    def add_leaf(self, name: str, action: TaskAction, *, description: str = "") -> None:
        self._register(
            TaskDescriptor(
                name=name,
                kind=TaskKind.LEAF,
                action=action,
                description=description or (getattr(action, "__doc__", None) or "").strip().split("\n")[0],
            ),
        )

    def parallel(self, name: str, *steps: TaskStep, description: str = "") -> None:
        """Register a group whose members run concurrently; all must succeed."""

        self._register_composite(name, TaskKind.PARALLEL, steps, description)

    def series(self, name: str, *steps: TaskStep, description: str = "") -> None:
        """Register a chain whose steps run one after another."""

        self._register_composite(name, TaskKind.SERIES, steps, description)

    def get(self, name: str) -> TaskDescriptor:
        try:
            return self._tasks[name]
        except KeyError as error:
            raise TaskGraphError(f"Task never defined: {name}") from error

    def describe(self, *, include_anonymous: bool = False) -> list[TaskDescriptor]:
        """Return registered tasks in declaration order."""

        return [
            descriptor
            for descriptor in self._tasks.values()
            if include_anonymous or not descriptor.anonymous
        ]

    def validate(self) -> None:
        """Check that every dependency resolves and the graph has no cycle."""

        for descriptor in self._tasks.values():
            for dependency in descriptor.dependencies:
                if dependency not in self._tasks:
                    raise TaskGraphError(
                        f"Task {descriptor.name!r} depends on undefined task {dependency!r}",
                    )

        visiting: set[str] = set()
        done: set[str] = set()

        def visit(name: str, path: list[str]) -> None:
            if name in done:
                return
            if name in visiting:
                cycle = " -> ".join([*path[path.index(name) :], name])
                raise TaskGraphError(f"Task dependency cycle: {cycle}")
            visiting.add(name)
            for dependency in self._tasks[name].dependencies:
                visit(dependency, [*path, name])
            visiting.discard(name)
            done.add(name)

        for name in self._tasks:
            visit(name, [])

    def run(self, name: str, context: Any) -> None:
        """Validate the graph and execute ``name``; raises ``TaskError`` on failure."""

        self.validate()
        self._execute(self.get(name), context)

    def _execute(self, descriptor: TaskDescriptor, context: Any) -> None:
        started = time.monotonic()
        if not descriptor.anonymous:
            logger.info("Starting '%s'...", descriptor.name)

        if descriptor.kind is TaskKind.LEAF:
            self._run_leaf(descriptor, context)
        elif descriptor.kind is TaskKind.SERIES:
            for dependency in descriptor.dependencies:
                self._execute(self._tasks[dependency], context)
        else:
            self._run_parallel(descriptor, context)

        if not descriptor.anonymous:
            logger.info(
                "Finished '%s' after %.2f s",
                descriptor.name,
                time.monotonic() - started,
            )

    def _run_leaf(self, descriptor: TaskDescriptor, context: Any) -> None:
        if descriptor.action is None:
            raise TaskGraphError(f"Task has no callable action: {descriptor.name}")
        try:
            descriptor.action(context)
        except TaskError:
            raise
        except Exception as error:
            raise TaskError(descriptor.name, str(error) or type(error).__name__) from error

    def _run_parallel(self, descriptor: TaskDescriptor, context: Any) -> None:
        members = [self._tasks[dependency] for dependency in descriptor.dependencies]
        if not members:
            return
        first_error: BaseException | None = None
        with ThreadPoolExecutor(
            max_workers=min(self._max_workers, len(members)),
            thread_name_prefix=f"task-{descriptor.name}",
        ) as executor:
            futures: dict[Future[None], str] = {
                executor.submit(self._execute, member, context): member.name
                for member in members
            }
            for future in as_completed(futures):
                error = future.exception()
                if error is None:
                    continue
                if first_error is None:
                    first_error = error
                else:
                    logger.debug("Ignoring later failure of '%s': %s", futures[future], error)
        if first_error is not None:
            raise first_error

    def _register_composite(
        self,
        name: str,
        kind: TaskKind,
        steps: Iterable[TaskStep],
        description: str,
        *,
        anonymous: bool = False,
    ) -> None:
        dependencies: list[str] = []
        for index, step in enumerate(steps):
            if isinstance(step, str):
                dependencies.append(step)
                continue
            step_name = f"{name}#{index}"
            dependencies.append(step_name)
            if isinstance(step, Composition):
                self._register_composite(step_name, step.kind, step.steps, "", anonymous=True)
                continue
            self._register(
                TaskDescriptor(
                    name=step_name,
                    kind=TaskKind.LEAF,
                    action=step,
                    anonymous=True,
                ),
            )
        self._register(
            TaskDescriptor(
                name=name,
                kind=kind,
                dependencies=tuple(dependencies),
                description=description,
                anonymous=anonymous,
            ),
        )

    def _register(self, descriptor: TaskDescriptor) -> None:
        if descriptor.name in self._tasks:
            raise TaskGraphError(f"Task already defined: {descriptor.name}")
        if descriptor.kind is TaskKind.LEAF and not callable(descriptor.action):
            raise TaskGraphError(f"Task has no callable action: {descriptor.name}")
        self._tasks[descriptor.name] = descriptor
