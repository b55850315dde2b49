"""Declared site tasks and the flows composed from them."""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace

import httpx

from site_harness.build.assets import compile_stylesheets, flatten_fonts
from site_harness.build.hugo import build_site
from site_harness.build.toolchain import check_asciidoctor
from site_harness.checks.runners import run_smoke_test, run_tests
from site_harness.config import Settings
from site_harness.process import ProcessInvoker, run_process
from site_harness.server.base import NullNotifier, ReloadNotifier
from site_harness.server.devserver import DevServer
from site_harness.server.watcher import PollingWatcher
from site_harness.taskgraph import TaskError, TaskGraph, parallel

logger = logging.getLogger(__name__)

SASS_FAILED_NOTICE = "Sass compile failed :("


@dataclass(slots=True)
class TaskContext:
    """Everything a task needs; the notifier is the dev server when one runs."""

    settings: Settings
    invoker: ProcessInvoker = run_process
    notifier: ReloadNotifier = field(default_factory=NullNotifier)
    emit: Callable[[str], None] = lambda _line: None
    stop_event: threading.Event = field(default_factory=threading.Event)
    rng: random.Random = field(default_factory=random.Random)
    link_transport: httpx.BaseTransport | None = None
    on_server_ready: Callable[[DevServer], None] | None = None


def build_task_graph() -> TaskGraph:  # noqa: C901
    graph = TaskGraph()

    @graph.task("hugo", description="Build the site")
    def hugo(ctx: TaskContext) -> None:
        build_site(
            settings=ctx.settings,
            notifier=ctx.notifier,
            invoker=ctx.invoker,
            task_name="hugo",
        )

    @graph.task("hugo-preview", description="Build the site including drafts and future posts")
    def hugo_preview(ctx: TaskContext) -> None:
        build_site(
            settings=ctx.settings,
            notifier=ctx.notifier,
            extra_args=ctx.settings.hugo.preview_args,
            invoker=ctx.invoker,
            task_name="hugo-preview",
        )

    @graph.task("sass", description="Compile SCSS into compressed CSS with source maps")
    def sass(ctx: TaskContext) -> None:
        result = compile_stylesheets(ctx.settings.assets, ctx.settings.project_dir)
        if result.errors:
            ctx.notifier.notify(SASS_FAILED_NOTICE)
        if result.stylesheets:
            ctx.notifier.reload()

    @graph.task("js", description="Reload browsers")
    def js(ctx: TaskContext) -> None:
        ctx.notifier.reload()

    @graph.task("fonts", description="Copy fonts into a flat output directory")
    def fonts(ctx: TaskContext) -> None:
        assets = ctx.settings.assets
        flatten_fonts(
            ctx.settings.path(assets.fonts_source_dir),
            ctx.settings.path(assets.fonts_output_dir),
        )
        ctx.notifier.reload()

    @graph.task("asciidoctor-check", description="Check that asciidoctor is installed")
    def asciidoctor_check(ctx: TaskContext) -> None:
        check_asciidoctor(
            binary=ctx.settings.toolchain.asciidoctor_binary,
            invoker=ctx.invoker,
        )

    def serve(ctx: TaskContext, rebuild_task: str) -> None:
        settings = ctx.settings
        server = DevServer(
            base_dir=settings.path(settings.server.base_dir),
            host=settings.server.host,
            port=settings.server.port,
            ui_port=settings.server.ui_port,
            open_browser=settings.server.open_browser,
        )
        watcher = PollingWatcher(
            settings.project_dir,
            interval_seconds=settings.server.watch_interval_seconds,
        )
        with server:
            served = replace(ctx, notifier=server)
            watcher.watch(
                "stylesheets",
                settings.server.stylesheet_watch,
                lambda: graph.run("sass", served),
            )
            watcher.watch(
                "content",
                settings.server.content_watch,
                lambda: graph.run(rebuild_task, served),
                ignore=settings.server.content_watch_ignore,
            )
            watcher.start()
            ctx.emit(f"Serving {server.base_dir} at {server.url}")
            if ctx.on_server_ready is not None:
                ctx.on_server_ready(server)
            try:
                while not ctx.stop_event.wait(timeout=1.0):
                    pass
            finally:
                watcher.stop()

    def build_production(ctx: TaskContext, extra_args: tuple[str, ...], task_name: str) -> None:
        build_site(
            settings=ctx.settings,
            notifier=ctx.notifier,
            extra_args=extra_args,
            environment=ctx.settings.hugo.production_environment,
            invoker=ctx.invoker,
            task_name=task_name,
        )

    def test(ctx: TaskContext) -> None:
        result = run_tests(ctx.settings, rng=ctx.rng, transport=ctx.link_transport)
        if result.dependency_report is not None:
            report = result.dependency_report
            ctx.emit(
                "Dependency scan: "
                f"unused={len(report.dependencies)} "
                f"unused_dev={len(report.dev_dependencies)} "
                f"missing={len(report.missing)}",
            )
        _emit_link_report(ctx, result.link_report.summary_lines())
        if not result.link_report.ok:
            raise TaskError("test", f"{len(result.link_report.broken)} broken link(s) found")

    def smoke(ctx: TaskContext) -> None:
        report = run_smoke_test(ctx.settings, transport=ctx.link_transport)
        _emit_link_report(ctx, report.summary_lines())
        if not report.ok:
            raise TaskError("smoke", f"{len(report.broken)} broken link(s) found")

    graph.series(
        "server",
        parallel("hugo", "sass", "js", "fonts", "asciidoctor-check"),
        lambda ctx: serve(ctx, "hugo"),
        description="Build, then serve with live reload",
    )
    graph.series(
        "server-preview",
        parallel("hugo-preview", "sass", "js", "fonts", "asciidoctor-check"),
        lambda ctx: serve(ctx, "hugo-preview"),
        description="Build with drafts, then serve with live reload",
    )
    graph.series(
        "build",
        parallel("sass", "js", "fonts", "asciidoctor-check"),
        lambda ctx: build_production(ctx, (), "build"),
        description="Production build",
    )
    graph.series(
        "build-preview",
        parallel("sass", "js", "fonts", "asciidoctor-check"),
        lambda ctx: build_production(ctx, ctx.settings.hugo.preview_args, "build-preview"),
        description="Production build including drafts and future posts",
    )
    graph.add_leaf("test", test, description="Dependency scan and link check of the build output")
    graph.add_leaf("smoke", smoke, description="Link check TEST_URL or http://localhost:3000/")

    graph.validate()
    return graph


def _emit_link_report(ctx: TaskContext, lines: list[str]) -> None:
    for line in lines:
        ctx.emit(line)
