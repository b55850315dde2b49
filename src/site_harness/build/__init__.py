"""Site build stages: Hugo, stylesheets, fonts and toolchain checks."""

from site_harness.build.assets import compile_stylesheets, flatten_fonts
from site_harness.build.hugo import build_args, build_site
from site_harness.build.toolchain import ASCIIDOCTOR_MISSING_MESSAGE, check_asciidoctor

__all__ = [
    "ASCIIDOCTOR_MISSING_MESSAGE",
    "build_args",
    "build_site",
    "check_asciidoctor",
    "compile_stylesheets",
    "flatten_fonts",
]
