"""Test and smoke flows: dependency scan plus link check."""

from __future__ import annotations

import logging
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import httpx

from site_harness.checks.depcheck import DependencyAnalyzer, DepcheckOptions, DepcheckReport
from site_harness.checks.linkcheck import LinkChecker, LinkCheckReport
from site_harness.config import DepcheckSettings, LinkCheckSettings, Settings
from site_harness.server.devserver import DevServer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TestRunResult:
    """Joined outcome of the test flow."""

    __test__ = False

    port: int
    link_report: LinkCheckReport
    dependency_report: DepcheckReport | None


def pick_test_port(link_check: LinkCheckSettings, rng: random.Random | None = None) -> int:
    """Random port in ``[random_port_min, random_port_max)``."""

    chooser = rng or random.Random()
    return chooser.randrange(link_check.random_port_min, link_check.random_port_max)


def depcheck_options(depcheck: DepcheckSettings) -> DepcheckOptions:
    return DepcheckOptions(
        include_dev=depcheck.include_dev,
        ignore_bin_package=depcheck.ignore_bin_package,
        skip_missing=depcheck.skip_missing,
        ignore_dirs=depcheck.ignore_dirs,
        ignore_matches=depcheck.ignore_matches,
    )


def run_dependency_scan(project_dir: Path, options: DepcheckOptions) -> DepcheckReport | None:
    """Analyze dependency usage; findings and errors are only logged."""

    try:
        report = DependencyAnalyzer(options).run(project_dir)
    except Exception:
        logger.exception("Dependency scan failed")
        return None
    report.log()
    return report


def run_link_check(
    site_url: str,
    link_check: LinkCheckSettings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> LinkCheckReport:
    with LinkChecker(
        filter_level=link_check.filter_level,
        excluded_keywords=link_check.excluded_keywords,
        timeout_seconds=link_check.request_timeout_seconds,
        transport=transport,
    ) as checker:
        return checker.run(site_url)


def run_tests(
    settings: Settings,
    *,
    rng: random.Random | None = None,
    transport: httpx.BaseTransport | None = None,
) -> TestRunResult:
    """Scan dependencies while link-checking a throwaway server over the build output.

    Both operations are joined before returning.
    """

    port = pick_test_port(settings.link_check, rng)
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="depcheck") as executor:
        scan = executor.submit(
            run_dependency_scan,
            settings.project_dir,
            depcheck_options(settings.depcheck),
        )
        server = DevServer(
            base_dir=settings.path(settings.server.base_dir),
            host=settings.server.host,
            port=port,
            ui_port=port + 1,
            open_browser=False,
        )
        with server:
            link_report = run_link_check(
                f"http://localhost:{port}/",
                settings.link_check,
                transport=transport,
            )
        dependency_report = scan.result()
    return TestRunResult(port=port, link_report=link_report, dependency_report=dependency_report)


def run_smoke_test(
    settings: Settings,
    *,
    transport: httpx.BaseTransport | None = None,
) -> LinkCheckReport:
    """Link-check ``TEST_URL`` (or the local default)."""

    settings.validate_for_smoke()
    return run_link_check(settings.link_check.smoke_url, settings.link_check, transport=transport)
