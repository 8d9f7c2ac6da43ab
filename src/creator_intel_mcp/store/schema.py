"""Table definitions shared by every store backend.

Each ``TableDef`` describes one logical table: its store name, the Weaviate
collection that backs it, the key columns that identify a row, and typed
columns. SQLite derives its DDL from the same definitions and Weaviate
derives its collection properties from them, so the backends cannot drift.
"""

from __future__ import annotations

from dataclasses import dataclass, field

VIDEO_INTELLIGENCE_TABLE = "video_intelligence"
TOPIC_GRAPH_TABLE = "creator_topic_graph"


@dataclass
class ColumnDef:
    """Single column. ``data_type`` is one of text, text[], int, number, json.

    ``exact`` columns are matched on their whole value when filtered.
    """

    name: str
    data_type: str
    description: str = ""
    vectorize: bool = False
    exact: bool = False


@dataclass
class TableDef:
    """A logical table and the Weaviate collection mirroring it."""

    name: str
    collection: str
    description: str
    key: tuple[str, ...]
    columns: list[ColumnDef] = field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> ColumnDef | None:
        return next((c for c in self.columns if c.name == name), None)


VIDEO_INTELLIGENCE = TableDef(
    name=VIDEO_INTELLIGENCE_TABLE,
    collection="VideoIntelligence",
    description="Durable per-video semantic records, one per (creator, video)",
    key=("creator_id", "video_id"),
    columns=[
        ColumnDef("creator_id", "text", "Owning creator", exact=True),
        ColumnDef("video_id", "text", "Source video", exact=True),
        ColumnDef("transcript_checksum", "text", "Fingerprint of the source text that produced this record"),
        ColumnDef("semantic_title", "text", "Specific, product-worthy title", vectorize=True),
        ColumnDef("semantic_abstract", "text", "Short grounded abstract", vectorize=True),
        ColumnDef("problem_statements", "text[]", "Problems the video addresses", vectorize=True),
        ColumnDef("outcome_statements", "text[]", "Outcomes the video promises", vectorize=True),
        ColumnDef("audience_signals", "text[]", "Who the video is for"),
        ColumnDef("theme_phrases", "text[]", "Core themes", vectorize=True),
        ColumnDef("action_steps", "text[]", "Concrete practices"),
        ColumnDef("evidence_quotes", "text[]", "Short verbatim quotes"),
        ColumnDef("recommended_product_types", "text[]", "Subset of the product type enum"),
        ColumnDef("product_angle", "text", "Suggested product framing", vectorize=True),
        ColumnDef("confidence_score", "number", "Extraction confidence 0-1"),
        ColumnDef("metadata", "json", "Source title, description and views"),
        ColumnDef("updated_at", "text", "ISO timestamp of the last recompute"),
    ],
)

TOPIC_GRAPH = TableDef(
    name=TOPIC_GRAPH_TABLE,
    collection="CreatorTopicGraph",
    description="Product-worthy topic nodes per creator, replaced wholesale on each sync",
    key=("creator_id", "topic_key", "generation"),
    columns=[
        ColumnDef("creator_id", "text", "Owning creator", exact=True),
        ColumnDef("topic_key", "text", "Slug, unique per creator and generation", exact=True),
        ColumnDef("topic_label", "text", "Customer-facing topic label", vectorize=True),
        ColumnDef("problem_statement", "text", "Problem the topic solves", vectorize=True),
        ColumnDef("promise_statement", "text", "Transformation the topic promises", vectorize=True),
        ColumnDef("audience_fit", "text", "Audience description"),
        ColumnDef("supporting_video_ids", "text[]", "Videos that support the topic"),
        ColumnDef("evidence_quotes", "text[]", "Up to four deduplicated quotes"),
        ColumnDef("recommended_product_types", "text[]", "Subset of the product type enum"),
        ColumnDef("source_video_count", "int", "Number of supporting videos"),
        ColumnDef("confidence_score", "number", "Topic confidence 0-1"),
        ColumnDef("generation", "int", "Topic set generation; readers keep the newest"),
        ColumnDef("metadata", "json", "Free-form metadata"),
        ColumnDef("updated_at", "text", "ISO timestamp of the sync that wrote the row"),
    ],
)

ALL_TABLES: dict[str, TableDef] = {
    VIDEO_INTELLIGENCE.name: VIDEO_INTELLIGENCE,
    TOPIC_GRAPH.name: TOPIC_GRAPH,
}


def get_table(name: str) -> TableDef:
    """Look up a table definition by store name.

    Raises:
        KeyError: If *name* is not a known table.
    """
    try:
        return ALL_TABLES[name]
    except KeyError:
        raise KeyError(f"Unknown table: {name!r}") from None
