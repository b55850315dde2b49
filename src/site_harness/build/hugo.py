"""Hugo site build."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from site_harness.config import BUILD_ENVIRONMENT_VARIABLE, HugoSettings, Settings
from site_harness.process import ExecutableNotFoundError, ProcessInvoker, ProcessResult, run_process
from site_harness.server.base import ReloadNotifier
from site_harness.taskgraph import TaskError

logger = logging.getLogger(__name__)

HUGO_FAILED_MESSAGE = "Hugo build failed"
HUGO_FAILED_NOTICE = "Hugo build failed :("


def build_args(hugo: HugoSettings, extra_args: Sequence[str] = ()) -> list[str]:
    """Generator arguments: the fixed base set followed by ``extra_args``."""

    return [*hugo.base_args, *extra_args]


def build_site(  # noqa: PLR0913
    *,
    settings: Settings,
    notifier: ReloadNotifier,
    extra_args: Sequence[str] = (),
    environment: str | None = None,
    invoker: ProcessInvoker = run_process,
    task_name: str = "hugo",
) -> ProcessResult:
    """Run Hugo once and reload or notify connected clients.

    The build environment label goes to the Hugo process through
    ``HUGO_ENVIRONMENT`` only; the harness process environment is untouched.
    """

    label = environment or settings.hugo.default_environment
    argv = [settings.hugo.binary, *build_args(settings.hugo, extra_args)]
    logger.info("Building site (%s=%s): %s", BUILD_ENVIRONMENT_VARIABLE, label, " ".join(argv))

    try:
        result = invoker(
            argv,
            env={BUILD_ENVIRONMENT_VARIABLE: label},
            cwd=settings.project_dir,
        )
    except ExecutableNotFoundError as error:
        notifier.notify(HUGO_FAILED_NOTICE)
        raise TaskError(task_name, f"Hugo executable not found: {settings.hugo.binary}") from error

    if result.ok:
        notifier.reload()
        return result

    if result.signal is not None:
        logger.error("Hugo terminated by %s", result.signal)
    else:
        logger.error("Hugo exited with code %s", result.exit_code)
    notifier.notify(HUGO_FAILED_NOTICE)
    raise TaskError(task_name, HUGO_FAILED_MESSAGE)
