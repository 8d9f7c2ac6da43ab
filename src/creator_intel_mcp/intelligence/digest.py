"""Transcript digests — a cheap proxy for "what is worth extracting".

A digest is the whitespace-normalized opening of the transcript followed
by up to four high-signal sentences, capped at ``DIGEST_MAX_CHARS``. It
bounds the prompt size of the extraction call; it is not semantic analysis.
"""

from __future__ import annotations

import re

from ..models.intelligence import TranscriptRow, VideoDigest

INTRO_CHARS = 420
DIGEST_MAX_CHARS = 2200
HIGHLIGHT_COUNT = 4
SENTENCE_MIN_CHARS = 36
SENTENCE_MAX_CHARS = 240

_WHITESPACE_RE = re.compile(r"\s+")
_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")
_INSTRUCTIONAL_RE = re.compile(
    r"\bhow to\b|\bwhen you\b|\bif you\b|\bso that\b|\blet go\b|\bremember\b|\bpractice\b|\bnotice\b",
    re.IGNORECASE,
)
_DIRECT_ADDRESS_RE = re.compile(r"\byou\b|\byour\b|\bwe\b|\bour\b", re.IGNORECASE)
_SALIENT_RE = re.compile(
    r"\bfear\b|\banxiety\b|\baging\b|\blove\b|\bpain\b|\bpresence\b"
    r"|\buncertainty\b|\bgrief\b|\brelationship\b|\bmind\b",
    re.IGNORECASE,
)
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def normalize_whitespace(value: str | None, max_len: int = 220) -> str:
    """Collapse whitespace, trim, and truncate to *max_len* characters."""
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip()[:max_len]


def normalize_array(values: list[str], max_items: int = 6) -> list[str]:
    """Whitespace-normalize items, drop blanks and case-insensitive duplicates."""
    seen: set[str] = set()
    normalized: list[str] = []
    for value in values:
        cleaned = normalize_whitespace(value, 180)
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        normalized.append(cleaned)
        if len(normalized) >= max_items:
            break
    return normalized


def slugify(value: str) -> str:
    """Lowercase slug of ``[a-z0-9]`` runs joined by hyphens, max 64 chars."""
    return _SLUG_RE.sub("-", value.lower()).strip("-")[:64]


def split_sentences(transcript: str) -> list[str]:
    """Split on sentence-ending punctuation and keep candidates of usable length."""
    collapsed = _WHITESPACE_RE.sub(" ", transcript)
    sentences = (s.strip() for s in _SENTENCE_BOUNDARY_RE.split(collapsed))
    return [s for s in sentences if SENTENCE_MIN_CHARS <= len(s) <= SENTENCE_MAX_CHARS]


def score_sentence(sentence: str) -> float:
    """Heuristic signal score for a candidate sentence."""
    score = 0.0
    if _INSTRUCTIONAL_RE.search(sentence):
        score += 2.4
    if _DIRECT_ADDRESS_RE.search(sentence):
        score += 1.0
    if _SALIENT_RE.search(sentence):
        score += 1.6
    if 70 <= len(sentence) <= 180:
        score += 1.2
    return score


def build_transcript_digest(row: TranscriptRow) -> VideoDigest:
    """Compress a transcript row into a ``VideoDigest``."""
    intro = normalize_whitespace(row.transcript_text, INTRO_CHARS)
    # sorted() is stable, so equal-scoring sentences keep transcript order
    highlights = sorted(split_sentences(row.transcript_text), key=score_sentence, reverse=True)
    parts = [part for part in [intro, *highlights[:HIGHLIGHT_COUNT]] if part]

    return VideoDigest(
        video_id=row.video_id,
        title=(
            normalize_whitespace(row.title, 140)
            or normalize_whitespace(row.description, 140)
            or "Untitled video"
        ),
        description=normalize_whitespace(row.description, 220),
        digest=" | ".join(parts)[:DIGEST_MAX_CHARS],
        views=row.views or 0,
    )
