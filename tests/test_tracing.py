"""Tests for the optional MLflow tracing integration."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

import creator_intel_mcp.tracing as tracing


def _make_config(**overrides):
    """Build a mock ServerConfig with tracing-enabled defaults."""
    defaults = {
        "tracing_enabled": True,
        "mlflow_tracking_uri": "http://127.0.0.1:5001",
        "mlflow_experiment_name": "creator-intel-mcp",
    }
    defaults.update(overrides)
    cfg = MagicMock()
    for k, v in defaults.items():
        setattr(cfg, k, v)
    return cfg


@pytest.fixture()
def fake_mlflow(monkeypatch):
    """Pretend mlflow is installed and swap in a mock module."""
    mock_mlflow = MagicMock()
    monkeypatch.setattr(tracing, "_HAS_MLFLOW", True)
    monkeypatch.setattr(tracing, "mlflow", mock_mlflow, raising=False)
    return mock_mlflow


class TestIsEnabled:
    def test_true_when_installed_and_enabled(self, fake_mlflow):
        with patch("creator_intel_mcp.config.get_config", return_value=_make_config()):
            assert tracing.is_enabled() is True

    def test_false_when_not_installed(self, monkeypatch):
        monkeypatch.setattr(tracing, "_HAS_MLFLOW", False)
        assert tracing.is_enabled() is False

    def test_false_when_config_disabled(self, fake_mlflow):
        with patch("creator_intel_mcp.config.get_config", return_value=_make_config(tracing_enabled=False)):
            assert tracing.is_enabled() is False


class TestSetup:
    def test_calls_autolog(self, fake_mlflow):
        with patch("creator_intel_mcp.config.get_config", return_value=_make_config()):
            tracing.setup()

        fake_mlflow.set_tracking_uri.assert_called_once_with("http://127.0.0.1:5001")
        fake_mlflow.set_experiment.assert_called_once_with("creator-intel-mcp")
        fake_mlflow.gemini.autolog.assert_called_once()

    def test_noop_when_disabled(self, fake_mlflow):
        tracing.setup()
        fake_mlflow.set_tracking_uri.assert_not_called()

    def test_setup_failure_is_logged(self, fake_mlflow, caplog):
        fake_mlflow.set_tracking_uri.side_effect = ConnectionError("refused")
        with patch("creator_intel_mcp.config.get_config", return_value=_make_config()):
            tracing.setup()
        assert "MLflow tracing setup failed" in caplog.text


class TestTrace:
    def test_identity_when_disabled(self):
        async def tool():
            return "ok"

        assert tracing.trace(name="t", span_type="TOOL")(tool) is tool
        assert tracing.trace(tool) is tool

    def test_wraps_with_mlflow_when_enabled(self, fake_mlflow):
        sentinel = object()
        fake_mlflow.trace.return_value = sentinel
        with patch("creator_intel_mcp.config.get_config", return_value=_make_config()):
            assert tracing.trace(name="intel_sync_videos", span_type="TOOL") is sentinel
        fake_mlflow.trace.assert_called_once_with(None, name="intel_sync_videos", span_type="TOOL", attributes=None)


class TestShutdown:
    def test_flushes_when_enabled(self, fake_mlflow):
        with patch("creator_intel_mcp.config.get_config", return_value=_make_config()):
            tracing.shutdown()
        fake_mlflow.flush_trace_async_logging.assert_called_once()

    def test_noop_when_disabled(self, fake_mlflow):
        tracing.shutdown()
        fake_mlflow.flush_trace_async_logging.assert_not_called()
