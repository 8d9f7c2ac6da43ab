"""Content intelligence tools — 3 tools on a FastMCP sub-server."""

from __future__ import annotations

import logging
from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field, ValidationError

from ..errors import make_tool_error
from ..intelligence.extractor import sync_video_intelligence
from ..intelligence.ranking import load_ranked_topic_suggestions_from_graph
from ..intelligence.topics import sync_creator_topic_graph
from ..models.intelligence import (
    TopicSuggestionsResult,
    TopicSyncResult,
    TranscriptRow,
    VideoSyncResult,
)
from ..store import get_store
from ..tracing import trace
from ..types import DEFAULT_PRODUCT_TYPE, CreatorId, ProductType, coerce_json_param

logger = logging.getLogger(__name__)
intelligence_server = FastMCP("intelligence")


def _parse_transcript_rows(creator_id: str, rows: list | str) -> list[TranscriptRow]:
    rows = coerce_json_param(rows, list)
    if not isinstance(rows, list):
        raise ValueError("transcript_rows must be a list of objects")
    return [TranscriptRow.model_validate({**row, "creator_id": creator_id}) for row in rows]


@intelligence_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
    )
)
@trace(name="intel_sync_videos", span_type="TOOL")
async def intel_sync_videos(
    creator_id: CreatorId,
    transcript_rows: Annotated[list[dict], Field(
        description="Transcript rows: video_id, title, description, transcript_text, views",
    )],
) -> dict:
    """Extract and store semantic intelligence for new or changed transcripts.

    Rows whose title, description and transcript are unchanged since the
    last sync are skipped without a model call. Extraction failures fall
    back to low-confidence records; only store failures are reported.

    Args:
        creator_id: Creator that owns the videos.
        transcript_rows: Current transcript rows for the creator.

    Returns:
        Dict matching VideoSyncResult (submitted and updated counts).
    """
    try:
        rows = _parse_transcript_rows(creator_id, transcript_rows)
    except (ValueError, TypeError, ValidationError) as exc:
        return make_tool_error(exc)

    try:
        updated = await sync_video_intelligence(get_store(), creator_id, rows)
    except Exception as exc:
        return make_tool_error(exc)
    return VideoSyncResult(creator_id=creator_id, submitted=len(rows), updated=updated).model_dump()


@intelligence_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True,
        idempotentHint=False,
        openWorldHint=True,
    )
)
@trace(name="intel_sync_topics", span_type="TOOL")
async def intel_sync_topics(
    creator_id: CreatorId,
    creator_display_name: Annotated[str, Field(description="Creator name shown to the clustering model")],
) -> dict:
    """Rebuild the creator's topic graph from stored video intelligence.

    The previous topic set stays readable until the new one is written.

    Args:
        creator_id: Creator whose topics to rebuild.
        creator_display_name: Human-readable creator name.

    Returns:
        Dict matching TopicSyncResult.
    """
    try:
        written = await sync_creator_topic_graph(get_store(), creator_id, creator_display_name)
    except Exception as exc:
        return make_tool_error(exc)
    return TopicSyncResult(creator_id=creator_id, topics_written=written).model_dump()


@intelligence_server.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=False))
@trace(name="intel_rank_topics", span_type="TOOL")
async def intel_rank_topics(
    creator_id: CreatorId,
    product_type: ProductType = DEFAULT_PRODUCT_TYPE,
) -> dict:
    """Rank the creator's stored topics for a product type.

    Args:
        creator_id: Creator whose topic graph to read.
        product_type: "pdf_guide", "mini_course", "challenge_7day", or "checklist_toolkit".

    Returns:
        Dict matching TopicSuggestionsResult with up to six suggestions.
    """
    try:
        suggestions = await load_ranked_topic_suggestions_from_graph(get_store(), creator_id, product_type)
    except Exception as exc:
        return make_tool_error(exc)
    return TopicSuggestionsResult(
        creator_id=creator_id,
        product_type=product_type,
        suggestions=suggestions,
    ).model_dump()
