"""Near-duplicate detection between a generated artifact and a creator's catalog.

Visible text is tokenized into lowercase alphanumeric words (length >= 3),
grouped into 4-word shingles, and compared by Jaccard similarity. Cost is
O(catalog size x document length), which is fine for tens to low hundreds
of prior artifacts.
"""

from __future__ import annotations

import math
import re
from collections.abc import Sequence

from ..models.quality import GateEvaluation

SHINGLE_SIZE = 4
MAX_CATALOG_SIMILARITY = 0.72
DISTINCTIVENESS_THRESHOLD = 28

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_NBSP_RE = re.compile(r"&nbsp;", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (builtin round() is banker's)."""
    return math.floor(value + 0.5)


def extract_text(html: str) -> str:
    """Visible text: scripts, styles and tags removed, whitespace collapsed."""
    text = _SCRIPT_RE.sub(" ", html)
    text = _STYLE_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    text = _NBSP_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def count_words(html: str) -> int:
    text = extract_text(html)
    return len(text.split(" ")) if text else 0


def tokenize_for_similarity(html: str) -> list[str]:
    text = _NON_ALNUM_RE.sub(" ", extract_text(html).lower())
    return [token for token in text.split() if len(token) >= 3]


def build_shingles(tokens: Sequence[str], size: int = SHINGLE_SIZE) -> set[str]:
    """Sliding-window word n-grams, step 1. Fewer than *size* tokens yields an empty set."""
    if len(tokens) < size:
        return set()
    return {" ".join(tokens[i:i + size]) for i in range(len(tokens) - size + 1)}


def jaccard(a: set[str], b: set[str]) -> float:
    """|A ∩ B| / |A ∪ B|; 0 when either set is empty."""
    if not a or not b:
        return 0.0
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return intersection / union if union else 0.0


def evaluate_distinctiveness(
    html: str,
    catalog_html: Sequence[str],
    *,
    max_similarity: float = MAX_CATALOG_SIMILARITY,
) -> tuple[GateEvaluation, float]:
    """Score how different *html* is from every prior artifact.

    Returns:
        ``(gate, highest_similarity)``. An empty catalog auto-passes at 100.
    """
    if not catalog_html:
        gate = GateEvaluation(
            key="distinctiveness",
            label="Distinctiveness",
            score=100,
            threshold=DISTINCTIVENESS_THRESHOLD,
            passed=True,
            notes=["No prior catalog entries available; uniqueness gate auto-passed."],
        )
        return gate, 0.0

    base = build_shingles(tokenize_for_similarity(html))
    highest = 0.0
    for prior in catalog_html:
        highest = max(highest, jaccard(base, build_shingles(tokenize_for_similarity(prior))))

    passed = highest <= max_similarity
    notes = [] if passed else [f"Similarity to existing catalog is high ({round_half_up(highest * 100)}%)."]
    gate = GateEvaluation(
        key="distinctiveness",
        label="Distinctiveness",
        score=round_half_up((1 - highest) * 100),
        threshold=DISTINCTIVENESS_THRESHOLD,
        passed=passed,
        notes=notes,
    )
    return gate, highest
