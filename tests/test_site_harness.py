import allure
from click.testing import CliRunner

from site_harness import __version__
from site_harness.main import site_harness

pytestmark = [
    allure.epic("CLI"),
    allure.feature("Entrypoint"),
]


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(site_harness, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
