"""Checksum gate — decides which transcripts need their intelligence recomputed.

The checksum is the only staleness signal: a stored record is current iff
hashing the present title, description and transcript reproduces its
``transcript_checksum``. Timestamps are never compared.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping

from ..models.intelligence import TranscriptRow

# Changing the algorithm invalidates every stored checksum and forces a full recompute.
CHECKSUM_ALGORITHM = "sha1"


def build_transcript_checksum(row: TranscriptRow) -> str:
    """Stable hex fingerprint over title, description and transcript text."""
    payload = f"{row.title or ''}\n{row.description or ''}\n{row.transcript_text}"
    # Lone surrogates (truncated emoji) hash as U+FFFD instead of raising
    payload = payload.encode("utf-16-le", "surrogatepass").decode("utf-16-le", "replace")
    return hashlib.new(CHECKSUM_ALGORITHM, payload.encode("utf-8")).hexdigest()


def select_stale_rows(
    rows: Iterable[TranscriptRow],
    stored_checksums: Mapping[str, str],
) -> list[tuple[TranscriptRow, str]]:
    """Return ``(row, checksum)`` pairs whose stored checksum is missing or different.

    Input order is preserved. If the same video appears twice, the last
    occurrence wins, matching last-write-wins upsert semantics.
    """
    stale: dict[str, tuple[TranscriptRow, str]] = {}
    for row in rows:
        checksum = build_transcript_checksum(row)
        stale.pop(row.video_id, None)
        if stored_checksums.get(row.video_id) != checksum:
            stale[row.video_id] = (row, checksum)
    return list(stale.values())
