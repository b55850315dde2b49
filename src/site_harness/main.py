"""CLI entrypoint for site-harness."""

import logging
import os
from pathlib import Path

import rich_click as click

from site_harness import __version__
from site_harness.controllers import TaskCliController, TaskCommand

click.rich_click.USE_MARKDOWN = True

TASK_HELP = {
    "hugo": "Build the site with Hugo.",
    "hugo-preview": "Build the site including drafts and future-dated content.",
    "sass": "Compile SCSS into compressed CSS and write source maps.",
    "js": "Reload connected browsers.",
    "fonts": "Copy fonts into a flat `dist/fonts` directory.",
    "asciidoctor-check": "Verify that asciidoctor is installed.",
    "server": "Build everything, then serve `dist` with live reload.",
    "server-preview": "Like `server`, with drafts and future-dated content.",
    "build": "Production build.",
    "build-preview": "Production build with drafts and future-dated content.",
    "test": "Dependency scan plus link check against a throwaway server.",
    "smoke": "Link check `TEST_URL`, or http://localhost:3000/ when unset.",
}


@click.group()
@click.version_option(version=__version__, prog_name="site-harness")
@click.option(
    "--project-dir",
    type=click.Path(path_type=Path, exists=True, file_okay=False),
    default=None,
    help="Site project directory. Defaults to the current directory.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Logging verbosity.",
)
@click.pass_context
def site_harness(ctx: click.Context, project_dir: Path | None, log_level: str) -> None:
    """Static-site build harness: Hugo, SCSS, fonts, dev server and link checks."""

    logging.basicConfig(
        level=log_level.upper(),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger(__name__).info("Current dir: %s", os.getcwd())
    ctx.obj = project_dir


@site_harness.command("tasks")
def list_tasks() -> None:
    """List tasks and what they depend on."""

    _emit_lines(TaskCliController().list_tasks().lines)


def _add_task_command(name: str, help_text: str) -> None:
    @site_harness.command(name, help=help_text)
    @click.pass_obj
    def command(project_dir: Path | None) -> None:
        controller = TaskCliController(echo=click.echo)
        result = controller.run(TaskCommand(task=name, project_dir=project_dir))
        _emit_lines(result.lines)
        if not result.success:
            raise click.ClickException(f"Task '{name}' failed.")


for _name, _help in TASK_HELP.items():
    _add_task_command(_name, _help)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    site_harness()
