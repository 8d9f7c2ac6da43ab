"""Shared test fixtures for creator-intel-mcp."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from creator_intel_mcp.models.intelligence import TranscriptRow
from creator_intel_mcp.store.memory import MemoryTableStore


def unwrap_tool(tool: Any) -> Any:
    """Extract the raw coroutine from a FastMCP FunctionTool, if wrapped.

    FastMCP 2.x wraps @server.tool functions in FunctionTool (not callable).
    FastMCP 3.x preserves the original function. This helper works with both.
    """
    return getattr(tool, "fn", tool)


@pytest.fixture(autouse=True, scope="session")
def _unwrap_fastmcp_tools():
    """Patch tool modules so FunctionTool objects become directly callable."""
    import creator_intel_mcp.tools.intelligence as intel_tools
    import creator_intel_mcp.tools.quality as quality_tools

    for mod in (intel_tools, quality_tools):
        for name in list(vars(mod)):
            obj = getattr(mod, name, None)
            if obj is not None and hasattr(obj, "fn") and not callable(obj):
                setattr(mod, name, obj.fn)


@pytest.fixture(autouse=True)
def _set_dummy_api_key(monkeypatch):
    """Ensure tests never hit real Gemini API."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key-not-real")


@pytest.fixture(autouse=True)
def _disable_tracing(monkeypatch):
    """Disable MLflow tracing in all tests to avoid real tracking-server calls."""
    monkeypatch.setenv("GEMINI_TRACING_ENABLED", "false")


@pytest.fixture(autouse=True)
def _isolate_dotenv(tmp_path, monkeypatch):
    """Prevent tests from loading the user's real ~/.config/creator-intel-mcp/.env."""
    monkeypatch.setattr(
        "creator_intel_mcp.dotenv.DEFAULT_ENV_PATH",
        tmp_path / "nonexistent.env",
    )


@pytest.fixture(autouse=True)
def _isolate_store(monkeypatch):
    """Fresh config, in-memory store and per-creator locks for every test."""
    import creator_intel_mcp.config as cfg_mod
    import creator_intel_mcp.intelligence.topics as topics_mod
    from creator_intel_mcp.store import reset_store

    monkeypatch.delenv("WEAVIATE_URL", raising=False)
    monkeypatch.delenv("INTEL_STORE_BACKEND", raising=False)
    cfg_mod._config = None
    reset_store()
    topics_mod._creator_locks.clear()
    yield
    cfg_mod._config = None
    reset_store()


@pytest.fixture()
def clean_config():
    """Reset the config singleton between tests."""
    import creator_intel_mcp.config as cfg_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None


@pytest.fixture()
def mock_gemini_client():
    """Patch GeminiClient.get(), .generate(), and .generate_structured() for unit tests."""
    with (
        patch("creator_intel_mcp.client.GeminiClient.get") as mock_get,
        patch(
            "creator_intel_mcp.client.GeminiClient.generate", new_callable=AsyncMock
        ) as mock_gen,
        patch(
            "creator_intel_mcp.client.GeminiClient.generate_structured",
            new_callable=AsyncMock,
        ) as mock_structured,
    ):
        client = MagicMock()
        mock_get.return_value = client
        yield {
            "get": mock_get,
            "generate": mock_gen,
            "generate_structured": mock_structured,
            "client": client,
        }


@pytest.fixture()
def store() -> MemoryTableStore:
    return MemoryTableStore()


@pytest.fixture()
def failing_store():
    """A store whose every operation raises, for persistence-error paths."""
    broken = MagicMock()
    for op in ("select", "upsert", "delete", "insert", "replace", "close"):
        setattr(broken, op, AsyncMock(side_effect=RuntimeError("connection reset")))
    return broken


def make_row(video_id: str, *, creator_id: str = "creator-1", **overrides: Any) -> TranscriptRow:
    """Build a transcript row with enough text to produce a non-trivial digest."""
    fields: dict[str, Any] = {
        "creator_id": creator_id,
        "video_id": video_id,
        "title": f"Letting go of anxiety, part {video_id}",
        "description": "A short talk on presence and fear.",
        "transcript_text": (
            "Welcome back. Today we talk about fear and presence. "
            "When you notice anxiety rising, remember to breathe slowly and let go of the story. "
            "Practice this every morning so that your mind learns a new pattern. "
            "Thanks for watching."
        ),
        "views": 1200,
    }
    fields.update(overrides)
    return TranscriptRow(**fields)


@pytest.fixture()
def make_transcript_row():
    return make_row


@pytest.fixture()
def mock_weaviate_client():
    """Patch WeaviateClient for unit tests — provides mock client + collection."""
    mock_client = MagicMock()
    mock_collection = MagicMock()
    mock_client.collections.get.return_value = mock_collection
    mock_client.collections.list_all.return_value = {}

    mock_collection.query.fetch_objects.return_value = MagicMock(objects=[])
    mock_collection.data.insert_many.return_value = MagicMock(has_errors=False, errors={})
    mock_collection.data.delete_many.return_value = MagicMock(successful=0)

    with (
        patch("creator_intel_mcp.weaviate_client._client", mock_client),
        patch("creator_intel_mcp.weaviate_client._schema_ensured", True),
        patch("creator_intel_mcp.weaviate_client.WeaviateClient.get", return_value=mock_client),
    ):
        yield {
            "client": mock_client,
            "collection": mock_collection,
        }
