"""Creator topic graph: clustering video intelligence into product-worthy topics.

``sync_creator_topic_graph`` reads every intelligence row for a creator,
asks the model to cluster them (falling back to deterministic bucketing),
and swaps the creator's topic set for the new one. Syncs for the same
creator are serialized in-process; each sync writes a fresh generation so
readers never see an empty or mixed set.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from ..client import GeminiClient
from ..config import get_config
from ..errors import StoreError
from ..models.intelligence import TopicGraphResponse, TopicNode, as_product_types, as_text_list
from ..prompts.intelligence import TOPIC_GRAPH_CLUSTER, TOPIC_GRAPH_SYSTEM
from ..store.base import TableStore
from ..store.schema import TOPIC_GRAPH_TABLE, VIDEO_INTELLIGENCE_TABLE
from ..types import DEFAULT_PRODUCT_TYPE
from .digest import normalize_array, normalize_whitespace, slugify

logger = logging.getLogger(__name__)

FALLBACK_TOPIC_CONFIDENCE = 0.45
FALLBACK_MAX_TOPICS = 6
MAX_TOPICS = 8
CLUSTERING_MAX_OUTPUT_TOKENS = 2600

INTELLIGENCE_COLUMNS = [
    "video_id", "semantic_title", "semantic_abstract", "problem_statements",
    "outcome_statements", "audience_signals", "theme_phrases", "action_steps",
    "evidence_quotes", "recommended_product_types", "product_angle", "confidence_score",
]

# creator_id -> (lock, syncs holding or waiting on it)
_creator_locks: dict[str, tuple[asyncio.Lock, int]] = {}


@asynccontextmanager
async def _creator_lock(creator_id: str) -> AsyncIterator[None]:
    """Serialize syncs for one creator. The entry is dropped once no sync needs it."""
    lock, users = _creator_locks.get(creator_id, (None, 0))
    if lock is None:
        lock = asyncio.Lock()
    _creator_locks[creator_id] = (lock, users + 1)
    try:
        async with lock:
            yield
    finally:
        lock, users = _creator_locks[creator_id]
        if users == 1:
            del _creator_locks[creator_id]
        else:
            _creator_locks[creator_id] = (lock, users - 1)


def fallback_topic_nodes(rows: Iterable[dict]) -> list[TopicNode]:
    """Bucket videos by the slug of their first problem, outcome or theme.

    Rows without a video id or any label are skipped. The result holds at
    most six buckets, ordered by supporting video count; ties keep
    first-seen order.
    """
    buckets: dict[str, TopicNode] = {}
    for row in rows:
        problems = as_text_list(row.get("problem_statements"))
        outcomes = as_text_list(row.get("outcome_statements"))
        themes = as_text_list(row.get("theme_phrases"))
        audiences = as_text_list(row.get("audience_signals"))
        quotes = as_text_list(row.get("evidence_quotes"))
        product_types = row.get("recommended_product_types")
        if not isinstance(product_types, list):
            product_types = [DEFAULT_PRODUCT_TYPE]
        video_id = row.get("video_id")

        label = next((v for v in (*problems[:1], *outcomes[:1], *themes[:1]) if v), "")
        if not label or not isinstance(video_id, str) or not video_id:
            continue

        key = slugify(label)
        node = buckets.get(key)
        if node is None:
            node = buckets[key] = TopicNode(
                topic_key=key,
                topic_label=label,
                problem_statement=problems[0] if problems and problems[0] else label,
                promise_statement=outcomes[0] if outcomes and outcomes[0] else label,
                audience_fit=audiences[0] if audiences else "",
                confidence=FALLBACK_TOPIC_CONFIDENCE,
            )

        if video_id not in node.supporting_video_ids:
            node.supporting_video_ids.append(video_id)
        node.evidence_quotes = normalize_array([*node.evidence_quotes, *quotes], 3)
        node.recommended_product_types = as_product_types([*node.recommended_product_types, *product_types])

    ranked = sorted(buckets.values(), key=lambda n: len(n.supporting_video_ids), reverse=True)
    return ranked[:FALLBACK_MAX_TOPICS]


def _format_intelligence(rows: Iterable[dict]) -> str:
    return "\n".join(
        json.dumps({
            "videoId": row.get("video_id"),
            "semanticTitle": row.get("semantic_title"),
            "abstract": row.get("semantic_abstract"),
            "problems": row.get("problem_statements"),
            "outcomes": row.get("outcome_statements"),
            "audiences": row.get("audience_signals"),
            "themes": row.get("theme_phrases"),
            "quotes": row.get("evidence_quotes"),
            "recommendedProductTypes": row.get("recommended_product_types"),
            "productAngle": row.get("product_angle"),
            "confidence": row.get("confidence_score"),
        })
        for row in rows
    )


async def generate_topic_graph(creator_display_name: str, rows: Sequence[dict]) -> list[TopicNode]:
    """Ask the model to cluster *rows* into at most eight normalized topic nodes.

    Supporting ids outside the supplied corpus are dropped, and so are topics
    left without a key, a label or any support. Later duplicates of a topic
    key are dropped. Provider errors propagate.
    """
    response = await GeminiClient.generate_structured(
        TOPIC_GRAPH_CLUSTER.format(creator=creator_display_name, intelligence=_format_intelligence(rows)),
        schema=TopicGraphResponse,
        system_instruction=TOPIC_GRAPH_SYSTEM,
        max_output_tokens=CLUSTERING_MAX_OUTPUT_TOKENS,
    )

    corpus = {str(row.get("video_id")) for row in rows}
    topics: list[TopicNode] = []
    seen: set[str] = set()
    for topic in response.topics:
        key = slugify(topic.topic_key or topic.topic_label)
        label = normalize_whitespace(topic.topic_label, 120)
        supporting = [vid for vid in topic.supporting_video_ids if vid in corpus]
        if not key or not label or not supporting or key in seen:
            logger.debug("Dropping topic %r (key=%r, support=%d)", label, key, len(supporting))
            continue
        seen.add(key)
        topics.append(TopicNode(
            topic_key=key,
            topic_label=label,
            problem_statement=normalize_whitespace(topic.problem_statement, 180),
            promise_statement=normalize_whitespace(topic.promise_statement, 180),
            audience_fit=normalize_whitespace(topic.audience_fit, 160),
            supporting_video_ids=supporting,
            evidence_quotes=normalize_array(topic.evidence_quotes, 4),
            recommended_product_types=topic.recommended_product_types or [DEFAULT_PRODUCT_TYPE],
            confidence=topic.confidence,
        ))
        if len(topics) >= MAX_TOPICS:
            break
    return topics


def _to_row(creator_id: str, topic: TopicNode, updated_at: str) -> dict:
    return {
        "creator_id": creator_id,
        "topic_key": topic.topic_key,
        "topic_label": topic.topic_label,
        "problem_statement": topic.problem_statement,
        "promise_statement": topic.promise_statement,
        "audience_fit": topic.audience_fit,
        "supporting_video_ids": topic.supporting_video_ids,
        "evidence_quotes": topic.evidence_quotes,
        "recommended_product_types": topic.recommended_product_types,
        "source_video_count": len(topic.supporting_video_ids),
        "confidence_score": topic.confidence,
        "metadata": {},
        "updated_at": updated_at,
    }


async def sync_creator_topic_graph(store: TableStore, creator_id: str, creator_display_name: str) -> int:
    """Rebuild and replace the creator's topic graph.

    Returns:
        Number of topic rows written; 0 when the creator has no intelligence
        rows or no topics survived (the stored graph is left untouched).

    Raises:
        StoreError: If loading intelligence rows or persisting topics fails.
    """
    async with _creator_lock(creator_id):
        try:
            rows = await store.select(VIDEO_INTELLIGENCE_TABLE, INTELLIGENCE_COLUMNS, eq=("creator_id", creator_id))
        except Exception as exc:
            raise StoreError(f"Failed to load video intelligence for topic graph: {exc}") from exc

        if not rows:
            return 0

        timeout = get_config().clustering_timeout_seconds
        try:
            topics = await asyncio.wait_for(generate_topic_graph(creator_display_name, rows), timeout=timeout)
        except Exception as exc:
            logger.warning(
                "Topic clustering failed for %s, using fallback buckets: %s",
                creator_id, str(exc) or type(exc).__name__,
            )
            topics = fallback_topic_nodes(rows)

        if not topics:
            logger.info("No topics produced for %s; keeping existing graph", creator_id)
            return 0

        updated_at = datetime.now(timezone.utc).isoformat()
        payload = [_to_row(creator_id, topic, updated_at) for topic in topics]
        try:
            await store.replace(TOPIC_GRAPH_TABLE, payload, eq=("creator_id", creator_id), generation=time.time_ns())
        except Exception as exc:
            raise StoreError(f"Failed to persist creator topic graph: {exc}", write=True) from exc

    logger.info("Wrote %d topics for %s", len(payload), creator_id)
    return len(payload)
