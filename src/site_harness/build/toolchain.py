"""Documentation toolchain availability probe."""

from __future__ import annotations

import logging

from site_harness.process import ExecutableNotFoundError, ProcessInvoker, run_process
from site_harness.taskgraph import TaskError

logger = logging.getLogger(__name__)

ASCIIDOCTOR_MISSING_MESSAGE = (
    "Asciidoctor is not installed. Please install asciidoctor "
    "or run the build via the included Docker container."
)


def check_asciidoctor(
    *,
    binary: str = "asciidoctor",
    invoker: ProcessInvoker = run_process,
    task_name: str = "asciidoctor-check",
) -> None:
    """Fail with a remediation hint when asciidoctor cannot be spawned.

    Presence is all that matters: any exit code, or termination by a signal,
    counts as available. Spawn errors other than a missing executable are
    re-raised unchanged.
    """

    try:
        result = invoker([binary], quiet=True)
    except ExecutableNotFoundError as error:
        raise TaskError(task_name, ASCIIDOCTOR_MISSING_MESSAGE) from error
    logger.debug("%s probe finished: exit=%s signal=%s", binary, result.exit_code, result.signal)
