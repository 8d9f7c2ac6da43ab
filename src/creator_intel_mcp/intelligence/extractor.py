"""Per-video semantic extraction and the ``sync_video_intelligence`` pipeline stage.

Only rows whose transcript checksum changed are sent to the model. Each
batch gets its own timeout; a failed or timed-out batch degrades to
deterministic fallback records instead of failing the sync. Store failures
are the only errors that propagate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from ..client import GeminiClient
from ..config import get_config
from ..errors import StoreError
from ..models.intelligence import TranscriptRow, VideoDigest, VideoIntelligenceBatch, VideoIntelligenceRecord
from ..prompts.intelligence import VIDEO_BLOCK, VIDEO_INTELLIGENCE_BATCH, VIDEO_INTELLIGENCE_SYSTEM
from ..store.base import TableStore
from ..store.schema import VIDEO_INTELLIGENCE, VIDEO_INTELLIGENCE_TABLE
from ..types import DEFAULT_PRODUCT_TYPE
from .checksum import select_stale_rows
from .digest import build_transcript_digest, normalize_array, normalize_whitespace

logger = logging.getLogger(__name__)

FALLBACK_CONFIDENCE = 0.35
EXTRACTION_MAX_OUTPUT_TOKENS = 3200


def batch_items(items: Sequence[Any], size: int) -> list[list[Any]]:
    """Split *items* into consecutive chunks of at most *size*."""
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def fallback_video_intelligence(digest: VideoDigest) -> VideoIntelligenceRecord:
    """Deterministic low-confidence record used when extraction is unavailable."""
    return VideoIntelligenceRecord(
        video_id=digest.video_id,
        semantic_title=digest.title,
        abstract=digest.description or digest.digest[:180],
        recommended_product_types=[DEFAULT_PRODUCT_TYPE],
        product_angle=digest.title,
        confidence=FALLBACK_CONFIDENCE,
    )


def _format_batch(batch: Sequence[VideoDigest]) -> str:
    videos = "\n\n".join(
        VIDEO_BLOCK.format(
            video_id=d.video_id,
            title=d.title,
            description=d.description or "n/a",
            views=d.views,
            digest=d.digest,
        )
        for d in batch
    )
    return VIDEO_INTELLIGENCE_BATCH.format(videos=videos)


async def generate_video_intelligence_batch(batch: Sequence[VideoDigest]) -> list[VideoIntelligenceRecord]:
    """Extract normalized intelligence for one batch of digests.

    Items whose ``videoId`` is blank or outside the batch are discarded.
    Provider and parsing errors propagate; the caller applies the fallback.
    """
    response = await GeminiClient.generate_structured(
        _format_batch(batch),
        schema=VideoIntelligenceBatch,
        model=get_config().flash_model,
        system_instruction=VIDEO_INTELLIGENCE_SYSTEM,
        max_output_tokens=EXTRACTION_MAX_OUTPUT_TOKENS,
    )

    batch_ids = {d.video_id for d in batch}
    records: list[VideoIntelligenceRecord] = []
    for item in response.items:
        if item.video_id not in batch_ids:
            logger.debug("Discarding extraction item for unknown video %r", item.video_id)
            continue
        records.append(VideoIntelligenceRecord(
            video_id=item.video_id,
            semantic_title=normalize_whitespace(item.semantic_title, 140),
            abstract=normalize_whitespace(item.abstract, 260),
            problems=normalize_array(item.problems),
            outcomes=normalize_array(item.outcomes),
            audiences=normalize_array(item.audiences, 4),
            themes=normalize_array(item.themes),
            action_steps=normalize_array(item.action_steps, 5),
            quotes=normalize_array(item.quotes, 4),
            recommended_product_types=item.recommended_product_types or [DEFAULT_PRODUCT_TYPE],
            product_angle=normalize_whitespace(item.product_angle, 180),
            confidence=item.confidence,
        ))
    return records


async def _extract_batch(
    batch: list[VideoDigest],
    semaphore: asyncio.Semaphore,
    timeout: float,
) -> dict[str, VideoIntelligenceRecord]:
    async with semaphore:
        try:
            generated = await asyncio.wait_for(generate_video_intelligence_batch(batch), timeout=timeout)
        except Exception as exc:
            logger.warning(
                "Video intelligence extraction failed for %d videos, using fallback: %s",
                len(batch), str(exc) or type(exc).__name__,
            )
            generated = []

    by_id = {record.video_id: record for record in generated}
    missing = [d for d in batch if d.video_id not in by_id]
    if generated and missing:
        logger.warning("Extraction omitted %d of %d videos, using fallback", len(missing), len(batch))
    for digest in missing:
        by_id[digest.video_id] = fallback_video_intelligence(digest)
    return by_id


def _to_row(
    creator_id: str,
    digest: VideoDigest,
    checksum: str,
    intel: VideoIntelligenceRecord,
    updated_at: str,
) -> dict:
    semantic_title = intel.semantic_title or digest.title
    return {
        "creator_id": creator_id,
        "video_id": digest.video_id,
        "transcript_checksum": checksum,
        "semantic_title": semantic_title,
        "semantic_abstract": intel.abstract or digest.description or digest.digest[:220],
        "problem_statements": intel.problems,
        "outcome_statements": intel.outcomes,
        "audience_signals": intel.audiences,
        "theme_phrases": intel.themes,
        "action_steps": intel.action_steps,
        "evidence_quotes": intel.quotes,
        "recommended_product_types": intel.recommended_product_types,
        "product_angle": intel.product_angle or semantic_title,
        "confidence_score": intel.confidence,
        "metadata": {
            "source_title": digest.title,
            "source_description": digest.description,
            "source_views": digest.views,
        },
        "updated_at": updated_at,
    }


async def sync_video_intelligence(
    store: TableStore,
    creator_id: str,
    transcript_rows: Iterable[TranscriptRow | dict],
) -> int:
    """Recompute and upsert intelligence for every transcript whose checksum changed.

    Args:
        store: Table store holding ``video_intelligence``.
        creator_id: Creator that owns the rows.
        transcript_rows: Rows (models or plain dicts) to consider.

    Returns:
        Number of records upserted; 0 when nothing was stale.

    Raises:
        StoreError: If loading existing checksums or the upsert fails.
    """
    rows = [r if isinstance(r, TranscriptRow) else TranscriptRow.model_validate(r) for r in transcript_rows]
    if not rows:
        return 0

    try:
        existing = await store.select(
            VIDEO_INTELLIGENCE_TABLE, ["video_id", "transcript_checksum"], eq=("creator_id", creator_id),
        )
    except Exception as exc:
        raise StoreError(f"Failed to load existing video intelligence: {exc}") from exc

    stored = {r["video_id"]: r.get("transcript_checksum") for r in existing}
    stale = select_stale_rows(rows, stored)
    if not stale:
        logger.info("Video intelligence for %s is current (%d rows checked)", creator_id, len(rows))
        return 0

    cfg = get_config()
    digests = [build_transcript_digest(row) for row, _ in stale]
    checksums = {row.video_id: checksum for row, checksum in stale}
    semaphore = asyncio.Semaphore(cfg.intelligence_concurrency)
    results = await asyncio.gather(*(
        _extract_batch(batch, semaphore, cfg.extraction_timeout_seconds)
        for batch in batch_items(digests, cfg.intelligence_batch_size)
    ))

    intel_by_id: dict[str, VideoIntelligenceRecord] = {}
    for by_id in results:
        intel_by_id.update(by_id)

    updated_at = datetime.now(timezone.utc).isoformat()
    payload = [
        _to_row(creator_id, d, checksums[d.video_id], intel_by_id[d.video_id], updated_at)
        for d in digests
    ]

    try:
        await store.upsert(VIDEO_INTELLIGENCE_TABLE, payload, on_conflict=VIDEO_INTELLIGENCE.key)
    except Exception as exc:
        raise StoreError(f"Failed to upsert video intelligence: {exc}", write=True) from exc

    logger.info("Upserted %d of %d video intelligence rows for %s", len(payload), len(rows), creator_id)
    return len(payload)

