"""Tests for the table store backends and the store factory."""

from __future__ import annotations

import json
import sqlite3
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import weaviate.util

from creator_intel_mcp.store import get_store
from creator_intel_mcp.store.base import TableStore, latest_generation, project
from creator_intel_mcp.store.memory import MemoryTableStore
from creator_intel_mcp.store.schema import (
    TOPIC_GRAPH,
    TOPIC_GRAPH_TABLE,
    VIDEO_INTELLIGENCE,
    VIDEO_INTELLIGENCE_TABLE,
    get_table,
)
from creator_intel_mcp.store.sqlite import SQLiteTableStore
from creator_intel_mcp.store.weaviate import WeaviateTableStore

VI_KEY = ("creator_id", "video_id")


def _intel(video_id: str, creator_id: str = "creator-1", **overrides) -> dict:
    row = {
        "creator_id": creator_id,
        "video_id": video_id,
        "transcript_checksum": f"sum-{video_id}",
        "semantic_title": f"Title {video_id}",
        "problem_statements": ["Overthinking", "Restless sleep"],
        "recommended_product_types": ["pdf_guide"],
        "confidence_score": 0.8,
        "metadata": {"source_views": 10, "source_title": "Raw"},
    }
    row.update(overrides)
    return row


def _topic(key: str, creator_id: str = "creator-1") -> dict:
    return {
        "creator_id": creator_id,
        "topic_key": key,
        "topic_label": key.title(),
        "supporting_video_ids": ["a"],
        "source_video_count": 1,
        "confidence_score": 0.5,
        "metadata": {},
    }


class TestHelpers:
    def test_project(self):
        assert project({"a": 1, "b": 2}, ["a", "c"]) == {"a": 1, "c": None}
        assert project({"a": 1}, None) == {"a": 1}

    def test_latest_generation(self):
        rows = [{"generation": 1, "k": "old"}, {"generation": 3, "k": "new"}, {"generation": None, "k": "none"}]
        assert latest_generation(rows) == [{"generation": 3, "k": "new"}]
        assert latest_generation([{"k": "x"}]) == [{"k": "x"}]
        assert latest_generation([]) == []

    def test_schema_lookup(self):
        assert get_table(VIDEO_INTELLIGENCE_TABLE) is VIDEO_INTELLIGENCE
        assert TOPIC_GRAPH.key == ("creator_id", "topic_key", "generation")
        with pytest.raises(KeyError):
            get_table("products")


@pytest.fixture(params=["memory", "sqlite"])
async def table_store(request, tmp_path):
    if request.param == "memory":
        backend = MemoryTableStore()
    else:
        backend = SQLiteTableStore(str(tmp_path / "intel.db"))
    yield backend
    await backend.close()


class TestTableStoreContract:
    async def test_satisfies_protocol(self, table_store):
        assert isinstance(table_store, TableStore)

    async def test_upsert_and_select_round_trip(self, table_store):
        await table_store.upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")], on_conflict=VI_KEY)
        (row,) = await table_store.select(VIDEO_INTELLIGENCE_TABLE, eq=("creator_id", "creator-1"))
        assert row["problem_statements"] == ["Overthinking", "Restless sleep"]
        assert row["metadata"] == {"source_views": 10, "source_title": "Raw"}
        assert row["confidence_score"] == 0.8

    async def test_select_projects_columns(self, table_store):
        await table_store.upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")], on_conflict=VI_KEY)
        rows = await table_store.select(
            VIDEO_INTELLIGENCE_TABLE, ["video_id", "transcript_checksum"], eq=("creator_id", "creator-1"),
        )
        assert rows == [{"video_id": "a", "transcript_checksum": "sum-a"}]

    async def test_upsert_overwrites_same_key(self, table_store):
        await table_store.upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a"), _intel("b")], on_conflict=VI_KEY)
        await table_store.upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a", semantic_title="New")], on_conflict=VI_KEY)
        rows = await table_store.select(VIDEO_INTELLIGENCE_TABLE, ["video_id", "semantic_title"], eq=("creator_id", "creator-1"))
        assert sorted((r["video_id"], r["semantic_title"]) for r in rows) == [("a", "New"), ("b", "Title b")]

    async def test_select_is_scoped(self, table_store):
        await table_store.upsert(
            VIDEO_INTELLIGENCE_TABLE, [_intel("a"), _intel("b", creator_id="creator-2")], on_conflict=VI_KEY,
        )
        rows = await table_store.select(VIDEO_INTELLIGENCE_TABLE, ["video_id"], eq=("creator_id", "creator-2"))
        assert rows == [{"video_id": "b"}]

    async def test_delete_returns_count(self, table_store):
        await table_store.upsert(
            VIDEO_INTELLIGENCE_TABLE,
            [_intel("a"), _intel("b"), _intel("c", creator_id="creator-2")],
            on_conflict=VI_KEY,
        )
        assert await table_store.delete(VIDEO_INTELLIGENCE_TABLE, eq=("creator_id", "creator-1")) == 2
        assert await table_store.select(VIDEO_INTELLIGENCE_TABLE, eq=("creator_id", "creator-1")) == []
        assert len(await table_store.select(VIDEO_INTELLIGENCE_TABLE, eq=("creator_id", "creator-2"))) == 1

    async def test_insert_rejects_duplicate_key(self, table_store):
        await table_store.insert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")])
        with pytest.raises((ValueError, sqlite3.IntegrityError)):
            await table_store.insert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")])

    async def test_replace_swaps_creator_rows(self, table_store):
        await table_store.replace(
            TOPIC_GRAPH_TABLE, [_topic("old-1"), _topic("old-2")], eq=("creator_id", "creator-1"), generation=1,
        )
        await table_store.replace(TOPIC_GRAPH_TABLE, [_topic("other", "creator-2")], eq=("creator_id", "creator-2"), generation=2)
        await table_store.replace(TOPIC_GRAPH_TABLE, [_topic("new")], eq=("creator_id", "creator-1"), generation=3)

        rows = await table_store.select(TOPIC_GRAPH_TABLE, ["topic_key", "generation"], eq=("creator_id", "creator-1"))
        assert rows == [{"topic_key": "new", "generation": 3}]
        others = await table_store.select(TOPIC_GRAPH_TABLE, ["topic_key"], eq=("creator_id", "creator-2"))
        assert others == [{"topic_key": "other"}]

    async def test_replace_does_not_mutate_input(self, table_store):
        rows = [_topic("t")]
        await table_store.replace(TOPIC_GRAPH_TABLE, rows, eq=("creator_id", "creator-1"), generation=7)
        assert "generation" not in rows[0]

    async def test_unknown_table(self, table_store):
        with pytest.raises(KeyError):
            await table_store.select("products", eq=("creator_id", "creator-1"))


class TestMemoryTableStore:
    async def test_returned_rows_are_copies(self, store):
        await store.upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")], on_conflict=VI_KEY)
        (row,) = await store.select(VIDEO_INTELLIGENCE_TABLE, eq=("creator_id", "creator-1"))
        row["problem_statements"].append("mutated")
        (again,) = await store.select(VIDEO_INTELLIGENCE_TABLE, eq=("creator_id", "creator-1"))
        assert again["problem_statements"] == ["Overthinking", "Restless sleep"]


class TestSQLiteTableStore:
    async def test_data_survives_reopen(self, tmp_path):
        path = str(tmp_path / "nested" / "intel.db")
        first = SQLiteTableStore(path)
        await first.upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")], on_conflict=VI_KEY)
        await first.close()

        second = SQLiteTableStore(path)
        rows = await second.select(VIDEO_INTELLIGENCE_TABLE, ["video_id"], eq=("creator_id", "creator-1"))
        await second.close()
        assert rows == [{"video_id": "a"}]

    async def test_upsert_requires_primary_key_conflict(self, tmp_path):
        backend = SQLiteTableStore(str(tmp_path / "intel.db"))
        with pytest.raises(ValueError, match="does not match key"):
            await backend.upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")], on_conflict=("video_id",))
        await backend.close()

    async def test_unknown_column_rejected(self, tmp_path):
        backend = SQLiteTableStore(str(tmp_path / "intel.db"))
        with pytest.raises(ValueError, match="Unknown columns"):
            await backend.select(VIDEO_INTELLIGENCE_TABLE, ["video_id; DROP TABLE x"], eq=("creator_id", "c"))
        await backend.close()

    async def test_failed_replace_keeps_previous_rows(self, tmp_path):
        backend = SQLiteTableStore(str(tmp_path / "intel.db"))
        await backend.replace(TOPIC_GRAPH_TABLE, [_topic("kept")], eq=("creator_id", "creator-1"), generation=1)
        with pytest.raises(sqlite3.IntegrityError):
            await backend.replace(
                TOPIC_GRAPH_TABLE, [_topic("dup"), _topic("dup")], eq=("creator_id", "creator-1"), generation=2,
            )
        rows = await backend.select(TOPIC_GRAPH_TABLE, ["topic_key"], eq=("creator_id", "creator-1"))
        await backend.close()
        assert rows == [{"topic_key": "kept"}]


class TestWeaviateTableStore:
    async def test_upsert_writes_deterministic_objects(self, mock_weaviate_client):
        backend = WeaviateTableStore()
        await backend.upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a", semantic_abstract=None)], on_conflict=VI_KEY)

        mock_weaviate_client["client"].collections.get.assert_called_with("VideoIntelligence")
        (obj,) = mock_weaviate_client["collection"].data.insert_many.call_args.args[0]
        assert str(obj.uuid) == str(weaviate.util.generate_uuid5("video_intelligence:creator-1:a"))
        assert json.loads(obj.properties["metadata"]) == {"source_views": 10, "source_title": "Raw"}
        assert "semantic_abstract" not in obj.properties

    async def test_upsert_requires_key_conflict(self, mock_weaviate_client):
        with pytest.raises(ValueError, match="does not match key"):
            await WeaviateTableStore().upsert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")], on_conflict=("video_id",))
        mock_weaviate_client["collection"].data.insert_many.assert_not_called()

    async def test_empty_write_skips_batch(self, mock_weaviate_client):
        await WeaviateTableStore().insert(VIDEO_INTELLIGENCE_TABLE, [])
        mock_weaviate_client["collection"].data.insert_many.assert_not_called()

    async def test_batch_errors_raise(self, mock_weaviate_client):
        mock_weaviate_client["collection"].data.insert_many.return_value = MagicMock(
            has_errors=True, errors={0: MagicMock(message="vectorizer unavailable")},
        )
        with pytest.raises(RuntimeError, match="vectorizer unavailable"):
            await WeaviateTableStore().insert(VIDEO_INTELLIGENCE_TABLE, [_intel("a")])

    async def test_select_decodes_json_columns(self, mock_weaviate_client):
        mock_weaviate_client["collection"].query.fetch_objects.return_value = MagicMock(objects=[
            MagicMock(properties={"video_id": "a", "metadata": '{"source_views": 3}', "problem_statements": ["x"]}),
        ])
        rows = await WeaviateTableStore().select(
            VIDEO_INTELLIGENCE_TABLE, ["video_id", "metadata", "problem_statements"], eq=("creator_id", "creator-1"),
        )
        assert rows == [{"video_id": "a", "metadata": {"source_views": 3}, "problem_statements": ["x"]}]
        kwargs = mock_weaviate_client["collection"].query.fetch_objects.call_args.kwargs
        assert kwargs["return_properties"] == ["video_id", "metadata", "problem_statements"]
        assert kwargs["filters"] is not None

    async def test_replace_inserts_before_deleting_older_generations(self, mock_weaviate_client):
        collection = mock_weaviate_client["collection"]
        order = []
        collection.data.insert_many.side_effect = lambda objs: order.append("insert") or MagicMock(has_errors=False)
        collection.data.delete_many.side_effect = lambda where: order.append("delete") or MagicMock(successful=2)

        await WeaviateTableStore().replace(TOPIC_GRAPH_TABLE, [_topic("t")], eq=("creator_id", "creator-1"), generation=5)

        assert order == ["insert", "delete"]
        (obj,) = collection.data.insert_many.call_args.args[0]
        assert obj.properties["generation"] == 5
        assert str(obj.uuid) == str(weaviate.util.generate_uuid5("creator_topic_graph:creator-1:t:5"))

    async def test_delete_returns_successful_count(self, mock_weaviate_client):
        mock_weaviate_client["collection"].data.delete_many.return_value = MagicMock(successful=4)
        assert await WeaviateTableStore().delete(VIDEO_INTELLIGENCE_TABLE, eq=("creator_id", "creator-1")) == 4

    async def test_close_closes_shared_client(self):
        with patch("creator_intel_mcp.store.weaviate.WeaviateClient.aclose", new_callable=AsyncMock) as aclose:
            await WeaviateTableStore().close()
        aclose.assert_awaited_once()


class TestGetStore:
    def test_defaults_to_memory(self):
        assert isinstance(get_store(), MemoryTableStore)
        assert get_store() is get_store()

    def test_weaviate_when_url_configured(self, monkeypatch):
        monkeypatch.setenv("WEAVIATE_URL", "http://localhost:8080")
        assert isinstance(get_store(), WeaviateTableStore)

    async def test_sqlite_backend(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INTEL_STORE_BACKEND", "sqlite")
        monkeypatch.setenv("INTEL_SQLITE_PATH", str(tmp_path / "intel.db"))
        backend = get_store()
        assert isinstance(backend, SQLiteTableStore)
        await backend.close()

    async def test_close_store_forgets_instance(self):
        from creator_intel_mcp.store import close_store

        first = get_store()
        await close_store()
        assert get_store() is not first
