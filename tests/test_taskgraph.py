import allure
from click.testing import CliRunner

from taskgraph import __version__
from taskgraph.main import run

pytestmark = [
    allure.epic("Invocation Surface"),
    allure.feature("CLI"),
]


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(run, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
