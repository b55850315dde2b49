"""Post-build checks: dependency usage and broken links."""

from site_harness.checks.depcheck import DependencyAnalyzer, DepcheckOptions, DepcheckReport
from site_harness.checks.linkcheck import LinkChecker, LinkCheckReport, extract_links
from site_harness.checks.runners import run_smoke_test, run_tests

__all__ = [
    "DependencyAnalyzer",
    "DepcheckOptions",
    "DepcheckReport",
    "LinkCheckReport",
    "LinkChecker",
    "extract_links",
    "run_smoke_test",
    "run_tests",
]
