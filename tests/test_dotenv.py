"""Tests for the dotenv auto-loader."""

from __future__ import annotations

import os

import pytest

import creator_intel_mcp.config as cfg_mod
from creator_intel_mcp.dotenv import load_dotenv, parse_dotenv


@pytest.fixture()
def env_file(tmp_path):
    def _write(text: str):
        path = tmp_path / ".env"
        path.write_text(text)
        return path

    return _write


class TestParseDotenv:
    """Unit tests for the .env file parser."""

    def test_quotes_comments_and_export(self, env_file):
        path = env_file(
            "# creator-intel settings\n"
            "\n"
            "INTEL_BATCH_SIZE=4\n"
            'WEAVIATE_URL="http://localhost:8080"\n'
            "export WEAVIATE_API_KEY='k3y'\n"
            "  INTEL_STORE_BACKEND  =  sqlite  \n"
        )
        assert parse_dotenv(path) == {
            "INTEL_BATCH_SIZE": "4",
            "WEAVIATE_URL": "http://localhost:8080",
            "WEAVIATE_API_KEY": "k3y",
            "INTEL_STORE_BACKEND": "sqlite",
        }

    def test_value_with_equals(self, env_file):
        """Only the first '=' splits key from value."""
        assert parse_dotenv(env_file("URL=https://host?a=1&b=2\n")) == {"URL": "https://host?a=1&b=2"}

    def test_malformed_and_empty(self, env_file):
        assert parse_dotenv(env_file("NO_EQUALS\n=orphan\nEMPTY=\n")) == {"EMPTY": ""}

    def test_missing_file(self, tmp_path):
        assert parse_dotenv(tmp_path / "nonexistent") == {}


class TestLoadDotenv:
    """Unit tests for env injection."""

    def test_injects_missing_vars(self, env_file, monkeypatch):
        monkeypatch.setenv("INTEL_CONCURRENCY", "")
        monkeypatch.delenv("INTEL_CONCURRENCY")
        injected = load_dotenv(env_file("INTEL_CONCURRENCY=3\n"))
        assert injected == {"INTEL_CONCURRENCY": "3"}
        assert os.environ["INTEL_CONCURRENCY"] == "3"

    def test_process_env_wins(self, env_file, monkeypatch):
        monkeypatch.setenv("INTEL_CONCURRENCY", "2")
        assert load_dotenv(env_file("INTEL_CONCURRENCY=5\n")) == {}
        assert os.environ["INTEL_CONCURRENCY"] == "2"

    @pytest.mark.parametrize("placeholder", ["", "$INTEL_CONCURRENCY", "${INTEL_CONCURRENCY}", "${INTEL_CONCURRENCY:-1}"])
    def test_placeholders_are_filled(self, env_file, monkeypatch, placeholder):
        monkeypatch.setenv("INTEL_CONCURRENCY", placeholder)
        assert load_dotenv(env_file("INTEL_CONCURRENCY=5\n")) == {"INTEL_CONCURRENCY": "5"}
        assert os.environ["INTEL_CONCURRENCY"] == "5"

    def test_other_placeholder_is_kept(self, env_file, monkeypatch):
        monkeypatch.setenv("INTEL_CONCURRENCY", "${OTHER_VAR}")
        assert load_dotenv(env_file("INTEL_CONCURRENCY=5\n")) == {}

    def test_get_config_reads_default_path(self, tmp_path, monkeypatch):
        path = tmp_path / "config.env"
        path.write_text("INTEL_BATCH_SIZE=9\n")
        monkeypatch.setattr("creator_intel_mcp.dotenv.DEFAULT_ENV_PATH", path)
        monkeypatch.setenv("INTEL_BATCH_SIZE", "")
        monkeypatch.delenv("INTEL_BATCH_SIZE")
        cfg_mod._config = None

        assert cfg_mod.get_config().intelligence_batch_size == 9
