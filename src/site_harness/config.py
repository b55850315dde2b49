"""Runtime configuration for site build, dev server and checks."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

DEFAULT_SMOKE_URL = "http://localhost:3000/"
BUILD_ENVIRONMENT_VARIABLE = "HUGO_ENVIRONMENT"


@dataclass(slots=True)
class HugoSettings:
    """Static-site generator invocation settings."""

    binary: str = "hugo"
    base_args: tuple[str, ...] = ("-d", "../dist", "-s", "site", "-v")
    preview_args: tuple[str, ...] = ("--buildDrafts", "--buildFuture")
    default_environment: str = "development"
    production_environment: str = "production"


@dataclass(slots=True)
class AssetSettings:
    """Stylesheet and font pipeline locations, relative to the project dir."""

    scss_source_dir: Path = Path("site/themes/uncontained.io/src/scss")
    css_output_dir: Path = Path("site/themes/uncontained.io/static/dist/css")
    source_maps_dir: Path = Path("site/themes/uncontained.io/maps")
    css_output_style: str = "compressed"
    fonts_source_dir: Path = Path("src/fonts")
    fonts_output_dir: Path = Path("dist/fonts")


@dataclass(slots=True)
class ServerSettings:
    """Dev server settings."""

    base_dir: Path = Path("dist")
    host: str = "localhost"
    port: int = 3000
    ui_port: int | None = 3001
    open_browser: bool = True
    watch_interval_seconds: float = 0.5
    stylesheet_watch: tuple[str, ...] = ("site/themes/*/src/**/*.scss",)
    content_watch: tuple[str, ...] = ("site/**/*",)
    content_watch_ignore: tuple[str, ...] = ("site/themes/*/src/**",)


@dataclass(slots=True)
class ToolchainSettings:
    """External documentation toolchain probed before builds."""

    asciidoctor_binary: str = "asciidoctor"


@dataclass(slots=True)
class LinkCheckSettings:
    """Link checker settings shared by the test and smoke flows."""

    filter_level: int = 3
    excluded_keywords: tuple[str, ...] = (
        "cluster.local",
        "myorg.com",
        "wiki.jenkins-ci.org",
    )
    request_timeout_seconds: float = 15.0
    smoke_url: str = DEFAULT_SMOKE_URL
    random_port_min: int = 10_000
    random_port_max: int = 65_535


@dataclass(slots=True)
class DepcheckSettings:
    """Dependency-usage analyzer options."""

    include_dev: bool = True
    ignore_bin_package: bool = False
    skip_missing: bool = False
    ignore_dirs: tuple[str, ...] = ("sandbox", "dist", "bower_components")
    ignore_matches: tuple[str, ...] = ("grunt-*", "bootstrap*")


@dataclass(slots=True)
class Settings:
    """Harness settings grouped by concern."""

    project_dir: Path = Path(".")
    hugo: HugoSettings = field(default_factory=HugoSettings)
    assets: AssetSettings = field(default_factory=AssetSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    toolchain: ToolchainSettings = field(default_factory=ToolchainSettings)
    link_check: LinkCheckSettings = field(default_factory=LinkCheckSettings)
    depcheck: DepcheckSettings = field(default_factory=DepcheckSettings)

    @classmethod
    def from_env(cls, project_dir: Path | None = None) -> Settings:
        """Load settings from environment with defaults matching the site layout."""

        port = int(os.getenv("SITE_HARNESS_SERVER_PORT", "3000"))
        return cls(
            project_dir=project_dir or Path(os.getenv("SITE_HARNESS_PROJECT_DIR", ".")),
            hugo=HugoSettings(binary=os.getenv("SITE_HARNESS_HUGO_BIN", "hugo")),
            server=ServerSettings(
                port=port,
                ui_port=port + 1,
                open_browser=_env_bool("SITE_HARNESS_OPEN_BROWSER", default=True),
                watch_interval_seconds=float(
                    os.getenv("SITE_HARNESS_WATCH_INTERVAL_SECONDS", "0.5"),
                ),
            ),
            toolchain=ToolchainSettings(
                asciidoctor_binary=os.getenv("SITE_HARNESS_ASCIIDOCTOR_BIN", "asciidoctor"),
            ),
            link_check=LinkCheckSettings(
                request_timeout_seconds=float(
                    os.getenv("SITE_HARNESS_LINK_TIMEOUT_SECONDS", "15.0"),
                ),
                smoke_url=resolve_smoke_url(),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if settings cannot drive a run."""

        if not self.project_dir.is_dir():
            raise ValueError(f"Project directory does not exist: {self.project_dir}")
        if not self.hugo.binary.strip():
            raise ValueError("SITE_HARNESS_HUGO_BIN must not be empty.")
        if not self.toolchain.asciidoctor_binary.strip():
            raise ValueError("SITE_HARNESS_ASCIIDOCTOR_BIN must not be empty.")
        if not 0 < self.server.port < 65_536:
            raise ValueError(f"SITE_HARNESS_SERVER_PORT out of range: {self.server.port}")
        if self.server.watch_interval_seconds <= 0:
            raise ValueError("SITE_HARNESS_WATCH_INTERVAL_SECONDS must be > 0.")
        if self.link_check.request_timeout_seconds <= 0:
            raise ValueError("SITE_HARNESS_LINK_TIMEOUT_SECONDS must be > 0.")
        if not 0 <= self.link_check.filter_level <= 3:
            raise ValueError(
                f"Link check filter level must be between 0 and 3: {self.link_check.filter_level}",
            )

    def validate_for_smoke(self) -> None:
        """Raise configuration error if the smoke target is not an absolute URL."""

        parsed = urlparse(self.link_check.smoke_url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "Invalid TEST_URL: "
                f"{self.link_check.smoke_url!r}. Expected an absolute http:// or https:// URL.",
            )

    def path(self, relative: Path) -> Path:
        """Resolve a configured path against the project directory."""

        return self.project_dir / relative


def resolve_smoke_url(environ: dict[str, str] | None = None) -> str:
    """Return ``TEST_URL`` verbatim when set, else the local default."""

    env = os.environ if environ is None else environ
    value = env.get("TEST_URL")
    if value is None:
        return DEFAULT_SMOKE_URL
    return value


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
