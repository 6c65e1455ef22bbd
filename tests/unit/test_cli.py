"""Unit tests for the command-line interface."""

import json

import pytest
import structlog
from typer.testing import CliRunner

from bundlesplit import cli
from bundlesplit.core.logging import setup_logging
from bundlesplit.services.assembly import VariantAssembler

runner = CliRunner()


@pytest.fixture
def logging_calls(monkeypatch):
    """Record setup_logging calls made by CLI commands instead of configuring."""
    calls = []
    monkeypatch.setattr(cli, "setup_logging", lambda config=None, **kwargs: calls.append(kwargs))
    return calls


@pytest.fixture
def toc_dir(temp_dir, legacy_bundle, build_config):
    """Directory holding the stored build result of the legacy bundle."""
    result = VariantAssembler(build_config).build(legacy_bundle).result
    (temp_dir / "toc.json").write_text(result.to_json(), encoding="utf-8")
    return temp_dir


class TestLoggingOptions:
    """Tests for log configuration from the command line."""

    def test_json_logs_flag_forces_json(self, toc_dir, logging_calls):
        result = runner.invoke(cli.app, ["variants", str(toc_dir), "--json-logs"])

        assert result.exit_code == 0
        assert logging_calls == [{"json_output": True}]

    def test_terminal_detection_by_default(self, toc_dir, logging_calls):
        """Test that without the flag the renderer is left to terminal detection."""
        result = runner.invoke(cli.app, ["variants", str(toc_dir)])

        assert result.exit_code == 0
        assert logging_calls == [{"json_output": None}]

    def test_select_configures_logging(self, toc_dir, temp_dir, logging_calls):
        spec = temp_dir / "device.json"
        spec.write_text(json.dumps({"sdkVersion": 19}), encoding="utf-8")

        result = runner.invoke(cli.app, ["select", str(toc_dir), "-d", str(spec), "--json-logs"])

        assert result.exit_code == 0
        assert "standalones/standalone-arm64-v8a.apk" in result.output
        assert logging_calls == [{"json_output": True}]

    def test_json_renderer_installed(self):
        try:
            setup_logging(json_output=True)
            assert isinstance(structlog.get_config()["processors"][-1], structlog.processors.JSONRenderer)

            setup_logging(json_output=False)
            assert isinstance(structlog.get_config()["processors"][-1], structlog.dev.ConsoleRenderer)
        finally:
            structlog.reset_defaults()


class TestBuildResultLoading:
    """Tests for reading stored build results."""

    def test_variants_listed(self, toc_dir, logging_calls):
        result = runner.invoke(cli.app, ["variants", str(toc_dir), "--family", "standalone"])

        assert result.exit_code == 0
        assert "Standalone variants" in result.output

    def test_missing_result(self, temp_dir, logging_calls):
        result = runner.invoke(cli.app, ["variants", str(temp_dir)])

        assert result.exit_code == 1
        assert "No build result found" in result.output

    def test_corrupt_result_reported(self, temp_dir, logging_calls):
        """Test that an unreadable toc.json exits cleanly instead of with a traceback."""
        (temp_dir / "toc.json").write_text("{not json", encoding="utf-8")

        result = runner.invoke(cli.app, ["variants", str(temp_dir)])

        assert result.exit_code == 1
        assert "Unreadable build result" in result.output
        assert not isinstance(result.exception, ValueError)

    def test_result_with_wrong_shape_reported(self, temp_dir, logging_calls):
        (temp_dir / "toc.json").write_text(json.dumps({"variants": "none"}), encoding="utf-8")

        result = runner.invoke(cli.app, ["select", str(temp_dir), "-d", str(temp_dir / "toc.json")])

        assert result.exit_code == 1
        assert "Unreadable build result" in result.output
