from __future__ import annotations

from pathlib import Path

import allure

from site_harness.build.assets import compile_stylesheets, flatten_fonts
from site_harness.config import AssetSettings

pytestmark = [
    allure.epic("Build Orchestration"),
    allure.feature("Asset Pipeline"),
]


def _assets() -> AssetSettings:
    return AssetSettings(
        scss_source_dir=Path("scss"),
        css_output_dir=Path("out/css"),
        source_maps_dir=Path("out/css/maps"),
        fonts_source_dir=Path("fonts"),
        fonts_output_dir=Path("dist/fonts"),
    )


def test_flatten_fonts_drops_nested_directories(tmp_path: Path) -> None:
    source = tmp_path / "fonts"
    (source / "roboto" / "bold").mkdir(parents=True)
    (source / "roboto" / "regular.woff2").write_bytes(b"regular")
    (source / "roboto" / "bold" / "bold.woff2").write_bytes(b"bold")
    (source / "icons.ttf").write_bytes(b"icons")
    output = tmp_path / "dist" / "fonts"

    written = flatten_fonts(source, output)

    assert sorted(path.name for path in written) == ["bold.woff2", "icons.ttf", "regular.woff2"]
    assert sorted(path.name for path in output.iterdir()) == [
        "bold.woff2",
        "icons.ttf",
        "regular.woff2",
    ]
    assert all(path.is_file() for path in output.iterdir())
    assert (output / "bold.woff2").read_bytes() == b"bold"


def test_flatten_fonts_missing_source_is_a_noop(tmp_path: Path) -> None:
    assert flatten_fonts(tmp_path / "absent", tmp_path / "out") == []
    assert not (tmp_path / "out").exists()


def test_compile_stylesheets_writes_css_and_source_maps(tmp_path: Path) -> None:
    scss = tmp_path / "scss"
    (scss / "pages").mkdir(parents=True)
    (scss / "_colors.scss").write_text("$accent: red;\n", "utf-8")
    (scss / "main.scss").write_text('@import "colors";\nbody { color: $accent; }\n', "utf-8")
    (scss / "pages" / "home.scss").write_text(".home { margin: 0; }\n", "utf-8")

    result = compile_stylesheets(_assets(), tmp_path)

    css_dir = tmp_path / "out" / "css"
    assert result.errors == {}
    assert sorted(result.stylesheets) == [css_dir / "main.css", css_dir / "pages" / "home.css"]
    assert "color:red" in (css_dir / "main.css").read_text("utf-8")
    assert (css_dir / "maps" / "main.css.map").is_file()
    assert (css_dir / "maps" / "pages" / "home.css.map").is_file()
    assert not (css_dir / "_colors.css").exists()


def test_compile_stylesheets_records_errors_and_keeps_going(tmp_path: Path) -> None:
    scss = tmp_path / "scss"
    scss.mkdir()
    (scss / "broken.scss").write_text("body { color: $undefined-variable; }\n", "utf-8")
    (scss / "fine.scss").write_text("a { color: blue; }\n", "utf-8")

    result = compile_stylesheets(_assets(), tmp_path)

    assert list(result.errors) == [scss / "broken.scss"]
    assert [path.name for path in result.stylesheets] == ["fine.css"]
    assert not (tmp_path / "out" / "css" / "broken.css").exists()


def test_compile_stylesheets_without_sources_writes_nothing(tmp_path: Path) -> None:
    result = compile_stylesheets(_assets(), tmp_path)

    assert result.stylesheets == []
    assert result.errors == {}
