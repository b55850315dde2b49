"""Site crawler that reports broken links.

Pages on the start URL's origin are crawled breadth-first. Every link found
on a crawled page is checked once. The filter level selects which HTML
attributes count as links:

- 0: clickable links (``a``, ``area``)
- 1: + media, frames and ``meta`` refresh targets
- 2: + stylesheets, scripts and form targets
- 3: + every ``link`` element and citation/metadata attributes
"""

from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from urllib.parse import urldefrag, urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from site_harness import __version__

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"site-harness-linkcheck/{__version__}"

LINK_ATTRIBUTES: dict[int, tuple[tuple[str, str], ...]] = {
    0: (("a", "href"), ("area", "href")),
    1: (
        ("img", "src"),
        ("img", "srcset"),
        ("source", "src"),
        ("source", "srcset"),
        ("iframe", "src"),
        ("frame", "src"),
        ("embed", "src"),
        ("object", "data"),
        ("audio", "src"),
        ("video", "src"),
        ("video", "poster"),
        ("track", "src"),
        ("input", "src"),
        ("meta", "content"),
    ),
    2: (
        ("link", "href"),
        ("script", "src"),
        ("form", "action"),
        ("button", "formaction"),
    ),
    3: (
        ("blockquote", "cite"),
        ("q", "cite"),
        ("del", "cite"),
        ("ins", "cite"),
        ("img", "longdesc"),
        ("body", "background"),
        ("table", "background"),
        ("td", "background"),
        ("th", "background"),
        ("html", "manifest"),
    ),
}

_HEAD_REJECTED_STATUSES = frozenset({405, 501})
_CHECKED_SCHEMES = frozenset({"http", "https"})
_META_REFRESH_URL = re.compile(r"url\s*=\s*['\"]?([^'\"]+)", re.IGNORECASE)


@dataclass(slots=True)
class BrokenLink:
    """One broken link occurrence."""

    page: str
    url: str
    reason: str


@dataclass(slots=True)
class LinkStatus:
    """Cached check outcome for one URL."""

    url: str
    status_code: int | None
    error: str | None
    final_url: str = ""
    html: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.final_url:
            self.final_url = self.url

    @property
    def broken(self) -> bool:
        return self.error is not None


@dataclass(slots=True)
class LinkCheckReport:
    """Crawl summary."""

    site_url: str
    pages: list[str] = field(default_factory=list)
    checked: set[str] = field(default_factory=set)
    excluded: set[str] = field(default_factory=set)
    broken: list[BrokenLink] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.broken

    def summary_lines(self) -> list[str]:
        lines = [
            f"Link check: {self.site_url}",
            f"Pages crawled: {len(self.pages)}",
            f"Links checked: {len(self.checked)}",
            f"Links excluded: {len(self.excluded)}",
            f"Broken links: {len(self.broken)}",
        ]
        lines.extend(
            f"  BROKEN {item.url} on {item.page} ({item.reason})" for item in self.broken
        )
        return lines


def extract_links(html: str, page_url: str, filter_level: int) -> list[str]:
    """Return absolute link targets on a page, in document order."""

    soup = BeautifulSoup(html, "html.parser")
    base_tag = soup.find("base", href=True)
    base_url = urljoin(page_url, base_tag["href"]) if base_tag is not None else page_url

    wanted: dict[str, set[str]] = {}
    for level in range(filter_level + 1):
        for tag, attribute in LINK_ATTRIBUTES.get(level, ()):
            wanted.setdefault(tag, set()).add(attribute)

    links: list[str] = []
    for element in soup.find_all(list(wanted)):
        for attribute in sorted(wanted[element.name]):
            value = element.get(attribute)
            if not value or not isinstance(value, str):
                continue
            for target in _attribute_targets(element, attribute, value, filter_level):
                links.append(urljoin(base_url, target))
    return links


def _attribute_targets(element, attribute: str, value: str, filter_level: int) -> list[str]:
    if element.name == "meta":
        if str(element.get("http-equiv", "")).lower() != "refresh":
            return []
        match = _META_REFRESH_URL.search(value)
        return [match.group(1).strip()] if match else []
    if element.name == "link" and filter_level < 3:
        rel = element.get("rel") or []
        if "stylesheet" not in [item.lower() for item in rel]:
            return []
    if attribute == "srcset":
        return [
            candidate.split()[0] for candidate in value.split(",") if candidate.strip()
        ]
    stripped = value.strip()
    return [stripped] if stripped else []


class LinkChecker:
    """Crawl a site and check every link it references."""

    def __init__(
        self,
        *,
        filter_level: int = 3,
        excluded_keywords: tuple[str, ...] = (),
        timeout_seconds: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.filter_level = filter_level
        self.excluded_keywords = excluded_keywords
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            headers={"User-Agent": DEFAULT_USER_AGENT},
            follow_redirects=True,
            transport=transport,
        )
        self._statuses: dict[str, LinkStatus] = {}

    def run(self, site_url: str) -> LinkCheckReport:
        start = urldefrag(site_url).url
        report = LinkCheckReport(site_url=start)

        first = self._check(start, crawl=True)
        report.checked.add(start)
        if first.broken:
            self._record_broken(report, start, start, first)
        origin = _origin(first.final_url)

        pending = deque([start])
        queued = {start}
        crawled: set[str] = set()
        while pending:
            page_status = self._statuses[pending.popleft()]
            html = page_status.html
            if html is None:
                continue
            page_status.html = None
            # relative links resolve against the URL that was finally served
            page = urldefrag(page_status.final_url).url
            if page in crawled:
                continue
            crawled.add(page)
            report.pages.append(page)
            logger.info("Checking links on %s", page)
            for link in extract_links(html, page, self.filter_level):
                url = urldefrag(link).url
                if urlsplit(url).scheme not in _CHECKED_SCHEMES:
                    continue
                if self._is_excluded(url):
                    report.excluded.add(url)
                    continue
                same_origin = _origin(url) == origin
                status = self._check(url, crawl=same_origin and url not in queued)
                report.checked.add(url)
                if status.broken:
                    self._record_broken(report, page, url, status)
                elif (
                    same_origin
                    and url not in queued
                    and status.html is not None
                    and _origin(status.final_url) == origin
                ):
                    queued.add(url)
                    pending.append(url)

        logger.info(
            "Link check finished: %d page(s), %d link(s), %d excluded, %d broken",
            len(report.pages),
            len(report.checked),
            len(report.excluded),
            len(report.broken),
        )
        return report

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> LinkChecker:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _is_excluded(self, url: str) -> bool:
        return any(keyword in url for keyword in self.excluded_keywords)

    def _check(self, url: str, *, crawl: bool) -> LinkStatus:
        cached = self._statuses.get(url)
        if cached is not None:
            return cached
        try:
            if crawl:
                response = self._client.get(url)
            else:
                response = self._client.head(url)
                if response.status_code in _HEAD_REJECTED_STATUSES:
                    response = self._client.get(url)
        except httpx.HTTPError as exc:
            status = LinkStatus(url=url, status_code=None, error=str(exc) or type(exc).__name__)
        else:
            error = None if response.status_code < 400 else f"HTTP {response.status_code}"
            is_html = "html" in response.headers.get("content-type", "")
            status = LinkStatus(
                url=url,
                status_code=response.status_code,
                error=error,
                final_url=str(response.url),
                html=response.text if crawl and error is None and is_html else None,
            )
        self._statuses[url] = status
        return status

    @staticmethod
    def _record_broken(report: LinkCheckReport, page: str, url: str, status: LinkStatus) -> None:
        reason = status.error or "unknown"
        logger.warning("Broken link %s on %s (%s)", url, page, reason)
        report.broken.append(BrokenLink(page=page, url=url, reason=reason))


def _origin(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme, parts.netloc
