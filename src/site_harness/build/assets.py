"""Stylesheet compilation and font flattening."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import sass

from site_harness.config import AssetSettings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StylesheetBuildResult:
    """Files written by one stylesheet compilation pass."""

    stylesheets: list[Path] = field(default_factory=list)
    source_maps: list[Path] = field(default_factory=list)
    errors: dict[Path, str] = field(default_factory=dict)


def compile_stylesheets(assets: AssetSettings, project_dir: Path) -> StylesheetBuildResult:
    """Compile every non-partial ``.scss`` file under the source dir.

    Output keeps the source tree layout below the CSS output dir; source maps
    go to the maps dir with the same relative layout. A file that fails to
    compile is logged and skipped, the remaining files are still compiled.
    """

    source_dir = project_dir / assets.scss_source_dir
    css_dir = project_dir / assets.css_output_dir
    maps_dir = project_dir / assets.source_maps_dir
    result = StylesheetBuildResult()
    if not source_dir.is_dir():
        logger.warning("Stylesheet source dir does not exist: %s", source_dir)
        return result

    for source in sorted(source_dir.rglob("*.scss")):
        if source.name.startswith("_"):
            continue
        relative = source.relative_to(source_dir).with_suffix(".css")
        css_path = css_dir / relative
        map_path = maps_dir / relative.with_name(relative.name + ".map")
        try:
            css, source_map = sass.compile(
                filename=str(source),
                output_style=assets.css_output_style,
                source_map_filename=str(map_path),
                output_filename_hint=str(css_path),
                source_map_contents=True,
            )
        except sass.CompileError as error:
            logger.error("Sass compile failed for %s:\n%s", source, error)
            result.errors[source] = str(error)
            continue
        css_path.parent.mkdir(parents=True, exist_ok=True)
        map_path.parent.mkdir(parents=True, exist_ok=True)
        css_path.write_text(css, "utf-8")
        map_path.write_text(source_map, "utf-8")
        result.stylesheets.append(css_path)
        result.source_maps.append(map_path)

    logger.info(
        "Compiled %d stylesheet(s), %d failed",
        len(result.stylesheets),
        len(result.errors),
    )
    return result


def flatten_fonts(source_dir: Path, output_dir: Path) -> list[Path]:
    """Copy every file below ``source_dir`` directly into ``output_dir``.

    Nested directories are dropped; each file keeps its base name. When two
    files share a base name the one sorted last wins.
    """

    if not source_dir.is_dir():
        logger.warning("Font source dir does not exist: %s", source_dir)
        return []

    written: dict[str, Path] = {}
    output_dir.mkdir(parents=True, exist_ok=True)
    for source in sorted(path for path in source_dir.rglob("*") if path.is_file()):
        target = output_dir / source.name
        shutil.copy2(source, target)
        written[source.name] = target
    logger.info("Copied %d font file(s) to %s", len(written), output_dir)
    return list(written.values())
