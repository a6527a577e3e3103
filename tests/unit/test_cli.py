"""
Tests for the command-line interface.
"""

from pathlib import Path

import pytest
from click.testing import CliRunner

from cleanread import cli as cli_module
from cleanread.cli import cli


@pytest.fixture
def runner(monkeypatch):
    # Keep the process-wide logging setup untouched
    monkeypatch.setattr(cli_module, "configure_logging", lambda config: None)
    return CliRunner()


@pytest.fixture
def offline_config(tmp_path: Path) -> Path:
    path = tmp_path / "cleanread.yaml"
    path.write_text("reader:\n  enabled: false\nfetcher:\n  enabled: false\ncache:\n  backend: none\n")
    return path


@pytest.mark.unit
class TestExtractCommand:
    def test_extracts_html_file_as_json(self, runner, offline_config, tmp_path, article_html):
        page = tmp_path / "page.html"
        page.write_text(article_html)

        result = runner.invoke(cli, ["-c", str(offline_config), "extract", str(page), "--json"], obj={})

        assert result.exit_code == 0, result.output
        assert '"kind": "structured-document"' in result.output
        assert '"extraction_method": "structural"' in result.output
        assert "Paragraph 1 explains" in result.output

    def test_text_format(self, runner, offline_config, tmp_path, article_html):
        page = tmp_path / "page.html"
        page.write_text(article_html)

        result = runner.invoke(
            cli, ["-c", str(offline_config), "extract", str(page), "--format", "text", "--json"], obj={}
        )

        assert result.exit_code == 0, result.output
        assert '"kind": "plain-text"' in result.output

    def test_failure_exits_non_zero(self, runner, offline_config, tmp_path):
        page = tmp_path / "tiny.html"
        page.write_text("<html><body><p>Too short.</p></body></html>")

        result = runner.invoke(cli, ["-c", str(offline_config), "extract", str(page)], obj={})

        assert result.exit_code == 1

    def test_missing_input(self, runner, offline_config, tmp_path):
        result = runner.invoke(cli, ["-c", str(offline_config), "extract", str(tmp_path / "nope.html")], obj={})
        assert result.exit_code == 2


@pytest.mark.unit
class TestBatchCommand:
    def test_empty_url_file(self, runner, offline_config, tmp_path):
        url_file = tmp_path / "urls.txt"
        url_file.write_text("# nothing here\n\n")

        result = runner.invoke(cli, ["-c", str(offline_config), "batch", str(url_file)], obj={})

        assert result.exit_code == 1
