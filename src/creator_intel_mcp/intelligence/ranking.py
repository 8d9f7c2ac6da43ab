"""Topic ranking for product planning."""

from __future__ import annotations

from collections.abc import Iterable

from ..errors import StoreError
from ..models.intelligence import TopicGraphRow, TopicSuggestion
from ..store.base import TableStore, latest_generation
from ..store.schema import TOPIC_GRAPH_TABLE

MAX_SUGGESTIONS = 6

TOPIC_GRAPH_COLUMNS = [
    "topic_key", "topic_label", "problem_statement", "promise_statement", "audience_fit",
    "supporting_video_ids", "evidence_quotes", "recommended_product_types",
    "source_video_count", "confidence_score", "generation",
]


def _score(topic: TopicGraphRow, product_type: str, count: int) -> float:
    confidence = max(0.0, topic.confidence_score or 0.0)
    product_boost = 1.4 if product_type in (topic.recommended_product_types or []) else 0.0
    specificity_boost = 0.5 if len(topic.topic_label.split(" ")) >= 3 else 0.0
    return count * 1.6 + confidence * 2 + product_boost + specificity_boost


def rank_topic_suggestions_from_graph(
    topics: Iterable[TopicGraphRow | dict],
    product_type: str,
) -> list[TopicSuggestion]:
    """Rank topic rows for *product_type* and return the top six.

    Topics without supporting videos are dropped. Ties keep input order.
    """
    scored: list[tuple[float, TopicSuggestion]] = []
    for raw in topics:
        topic = raw if isinstance(raw, TopicGraphRow) else TopicGraphRow.model_validate(raw)
        count = max(0, topic.source_video_count or len(topic.supporting_video_ids or []))
        if count <= 0:
            continue
        scored.append((
            _score(topic, product_type, count),
            TopicSuggestion(
                topic=topic.topic_label,
                video_count=count,
                problem=topic.problem_statement or None,
                promise=topic.promise_statement or None,
                supporting_video_ids=topic.supporting_video_ids or [],
            ),
        ))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [suggestion for _, suggestion in scored[:MAX_SUGGESTIONS]]


async def load_ranked_topic_suggestions_from_graph(
    store: TableStore,
    creator_id: str,
    product_type: str,
) -> list[TopicSuggestion]:
    """Read the creator's newest topic generation and rank it.

    Raises:
        StoreError: If the topic graph cannot be read.
    """
    try:
        rows = await store.select(TOPIC_GRAPH_TABLE, TOPIC_GRAPH_COLUMNS, eq=("creator_id", creator_id))
    except Exception as exc:
        raise StoreError(f"Failed to load creator topic graph: {exc}") from exc
    return rank_topic_suggestions_from_graph(latest_generation(rows), product_type)
