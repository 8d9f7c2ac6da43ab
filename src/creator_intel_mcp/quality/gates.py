"""Five-gate quality evaluation for generated product artifacts.

Each gate scores 0-100 (clamped) against its own threshold. The overall
score is a weighted sum with weights renormalized to 1, but passing is
decided per gate: one failing gate fails the artifact whatever the
overall score.

Gates:
    brandFidelity    brand tokens, creator handle, placeholder text (threshold 80)
    distinctiveness  near-duplicate check against the catalog (threshold 28)
    accessibility    lang, viewport, alt text, headings, legacy tags (threshold 70)
    contentDepth     word count against a per-product target, structure markers (threshold 75)
    evidenceLock     ``<!-- sources: ... -->`` coverage of declared videos (threshold 65)
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence

from ..models.quality import (
    BrandTokens,
    GateEvaluation,
    ProductQualityEvaluation,
    QualityWeights,
)
from ..types import GATE_KEYS
from .similarity import (
    MAX_CATALOG_SIMILARITY,
    count_words,
    evaluate_distinctiveness,
    round_half_up,
)

BRAND_THRESHOLD = 80
DEPTH_THRESHOLD = 75
ACCESSIBILITY_THRESHOLD = 70
EVIDENCE_THRESHOLD = 65

WORD_TARGETS: dict[str, int] = {
    "pdf_guide": 1400,
    "mini_course": 1200,
    "challenge_7day": 1000,
    "checklist_toolkit": 900,
}
DEFAULT_WORD_TARGET = 1000

STRUCTURE_MARKERS: dict[str, re.Pattern[str]] = {
    "pdf_guide": re.compile(r'id="chapter-\d+"', re.IGNORECASE),
    "mini_course": re.compile(r'id="module-\d+"', re.IGNORECASE),
    "challenge_7day": re.compile(r'id="day-\d+"', re.IGNORECASE),
    "checklist_toolkit": re.compile(r'id="category-\d+"', re.IGNORECASE),
}

DEFAULT_WEIGHTS: dict[str, float] = {
    "brandFidelity": 0.24,
    "distinctiveness": 0.20,
    "accessibility": 0.18,
    "contentDepth": 0.24,
    "evidenceLock": 0.14,
}

ALL_PASSED_FEEDBACK = (
    "All quality gates passed. Maintain current quality while applying only requested refinements."
)

_PLACEHOLDER_RE = re.compile(r"lorem ipsum|placeholder|coming soon|\[insert", re.IGNORECASE)
_HTML_LANG_RE = re.compile(r"<html[^>]*lang=", re.IGNORECASE)
_VIEWPORT_RE = re.compile(r"""<meta[^>]*name=["']viewport["']""", re.IGNORECASE)
_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_ALT_RE = re.compile(r"""\salt=["'][^"']*["']""", re.IGNORECASE)
_HEADING_RE = re.compile(r"<h[1-3]\b", re.IGNORECASE)
_LEGACY_RE = re.compile(r"<marquee\b|blink\b", re.IGNORECASE)
_SOURCES_RE = re.compile(r"<!--\s*sources:\s*([^>]+?)-->", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def _clamp(score: int) -> int:
    return max(0, min(100, score))


def _gate(key: str, label: str, score: int, threshold: int, notes: list[str]) -> GateEvaluation:
    score = _clamp(score)
    return GateEvaluation(
        key=key, label=label, score=score, threshold=threshold, passed=score >= threshold, notes=notes,
    )


def evaluate_brand_fidelity(html: str, brand_tokens: BrandTokens, creator_handle: str) -> GateEvaluation:
    notes: list[str] = []
    score = 100
    lower_html = html.lower()

    if brand_tokens.primary_color and brand_tokens.primary_color not in lower_html:
        score -= 22
        notes.append("Primary brand color token not found in generated markup.")
    if brand_tokens.secondary_color and brand_tokens.secondary_color not in lower_html:
        score -= 10
        notes.append("Secondary brand color token not found in generated markup.")
    if brand_tokens.font_family and brand_tokens.font_family not in lower_html:
        score -= 10
        notes.append("Creator font family token not found in generated markup.")
    handle = _WHITESPACE_RE.sub(" ", creator_handle.lower()).strip()
    if handle not in lower_html:
        score -= 8
        notes.append("Creator handle is not clearly represented in product content.")
    if _PLACEHOLDER_RE.search(html):
        score -= 30
        notes.append("Placeholder text detected.")

    return _gate("brandFidelity", "Brand Fidelity", score, BRAND_THRESHOLD, notes)


def evaluate_content_depth(
    html: str,
    product_type: str,
    *,
    word_targets: Mapping[str, int] = WORD_TARGETS,
) -> GateEvaluation:
    notes: list[str] = []
    words = count_words(html)
    target = word_targets.get(product_type, DEFAULT_WORD_TARGET)
    marker_re = STRUCTURE_MARKERS.get(product_type)
    markers = len(marker_re.findall(html)) if marker_re else 0

    score = min(100, round_half_up(words / target * 100))
    if markers >= 4:
        score = min(100, score + 8)
    elif markers <= 1:
        score -= 12
        notes.append("Expected product structure markers are sparse for this product type.")

    if words < target:
        notes.append(f"Content is under target depth ({words}/{target} words).")
    if _PLACEHOLDER_RE.search(html):
        score -= 25
        notes.append("Placeholder text detected.")

    return _gate("contentDepth", "Content Depth", score, DEPTH_THRESHOLD, notes)


def evaluate_accessibility(html: str) -> GateEvaluation:
    notes: list[str] = []
    score = 100

    if not _HTML_LANG_RE.search(html):
        score -= 15
        notes.append("`<html lang>` is missing.")
    if not _VIEWPORT_RE.search(html):
        score -= 15
        notes.append("Viewport meta tag is missing.")

    missing_alt = sum(1 for tag in _IMG_RE.findall(html) if not _ALT_RE.search(tag))
    if missing_alt:
        score -= min(25, 8 + missing_alt * 4)
        notes.append(f"{missing_alt} image tag(s) missing alt text.")

    if len(_HEADING_RE.findall(html)) < 4:
        score -= 10
        notes.append("Heading structure is shallow for a paid product.")
    if _LEGACY_RE.search(html):
        score -= 15
        notes.append("Non-accessible legacy visual tags detected.")

    return _gate("accessibility", "Accessibility Heuristics", score, ACCESSIBILITY_THRESHOLD, notes)


def extract_source_attributions(html: str) -> list[str]:
    """Every id listed in ``<!-- sources: a, b -->`` comments, in document order."""
    ids: list[str] = []
    for payload in _SOURCES_RE.findall(html):
        ids.extend(part.strip() for part in payload.split(",") if part.strip())
    return ids


def evaluate_evidence_lock(html: str, source_video_ids: Sequence[str]) -> GateEvaluation:
    notes: list[str] = []
    attributions = extract_source_attributions(html)

    if not source_video_ids:
        notes.append("No source video IDs were provided for strict evidence coverage scoring.")
        return _gate("evidenceLock", "Evidence Lock", 70 if attributions else 45, EVIDENCE_THRESHOLD, notes)

    referenced = {a.lower() for a in attributions}
    unique_markers = len(set(attributions))
    covered = sum(1 for vid in source_video_ids if vid.lower() in referenced)
    coverage_ratio = covered / len(source_video_ids)
    comment_score = min(1.0, unique_markers / max(2, len(source_video_ids) * 0.25))

    if coverage_ratio < 0.5:
        notes.append("Less than half of source videos are explicitly attributed in HTML comments.")
    if unique_markers < 2:
        notes.append("Very few source attribution markers were found.")

    score = round_half_up(coverage_ratio * 70 + comment_score * 30)
    return _gate("evidenceLock", "Evidence Lock", score, EVIDENCE_THRESHOLD, notes)


def normalize_weights(weights: QualityWeights | Mapping | None = None) -> dict[str, float]:
    """Merge a partial override with the defaults and renormalize to sum to 1.

    Negative, non-finite or non-numeric overrides are ignored. A total that
    is not a positive finite number falls back to the defaults.
    """
    if weights is None:
        return dict(DEFAULT_WEIGHTS)
    if not isinstance(weights, QualityWeights):
        weights = QualityWeights.model_validate(weights)

    overrides = {
        "brandFidelity": weights.brand_fidelity,
        "distinctiveness": weights.distinctiveness,
        "accessibility": weights.accessibility,
        "contentDepth": weights.content_depth,
        "evidenceLock": weights.evidence_lock,
    }
    merged = {key: DEFAULT_WEIGHTS[key] if value is None else value for key, value in overrides.items()}
    total = sum(merged.values())
    if not math.isfinite(total) or total <= 0:
        return dict(DEFAULT_WEIGHTS)
    return {key: value / total for key, value in merged.items()}


def evaluate_product_quality(
    html: str,
    product_type: str,
    source_video_ids: Sequence[str],
    catalog_html: Sequence[str],
    brand_tokens: BrandTokens | Mapping | None,
    creator_handle: str,
    quality_weights: QualityWeights | Mapping | None = None,
    *,
    max_similarity: float = MAX_CATALOG_SIMILARITY,
    word_targets: Mapping[str, int] = WORD_TARGETS,
) -> ProductQualityEvaluation:
    """Run all five gates over *html* and combine them.

    Args:
        html: Full artifact markup.
        product_type: One of the four product types; selects the word target
            and the structure marker pattern.
        source_video_ids: Videos the artifact claims to draw from.
        catalog_html: Markup of the creator's prior artifacts.
        brand_tokens: Primary/secondary color and font family; absent tokens skip their check.
        creator_handle: Public handle expected somewhere in the markup.
        quality_weights: Optional partial per-gate weight override.
        max_similarity: Highest catalog similarity that still passes distinctiveness.
        word_targets: Per-product-type word count targets for content depth.

    Returns:
        ProductQualityEvaluation with per-gate results and failing gates in fixed order.
    """
    if brand_tokens is None:
        brand_tokens = BrandTokens()
    elif not isinstance(brand_tokens, BrandTokens):
        brand_tokens = BrandTokens.model_validate(brand_tokens)

    distinctiveness, highest_similarity = evaluate_distinctiveness(
        html, catalog_html, max_similarity=max_similarity,
    )
    gates = {
        "brandFidelity": evaluate_brand_fidelity(html, brand_tokens, creator_handle),
        "distinctiveness": distinctiveness,
        "accessibility": evaluate_accessibility(html),
        "contentDepth": evaluate_content_depth(html, product_type, word_targets=word_targets),
        "evidenceLock": evaluate_evidence_lock(html, source_video_ids),
    }

    weights = normalize_weights(quality_weights)
    overall = round_half_up(sum(gates[key].score * weights[key] for key in GATE_KEYS))
    failing = [key for key in GATE_KEYS if not gates[key].passed]

    return ProductQualityEvaluation(
        overall_score=overall,
        overall_passed=not failing,
        gates=gates,
        failing_gates=failing,
        max_catalog_similarity=highest_similarity,
        word_count=count_words(html),
        source_comment_count=len(extract_source_attributions(html)),
    )


def build_quality_feedback_for_prompt(evaluation: ProductQualityEvaluation) -> str:
    """Numbered remediation lines for each failing gate, ready to feed back to a generator."""
    if evaluation.overall_passed:
        return ALL_PASSED_FEEDBACK

    lines = []
    for i, key in enumerate(evaluation.failing_gates, start=1):
        gate = evaluation.gates[key]
        notes = " | ".join(gate.notes) if gate.notes else "No detail provided."
        lines.append(f"{i}. {gate.label}: score {gate.score}/{gate.threshold}. Fixes needed: {notes}")
    return "\n".join(lines)


def is_evaluation_better(candidate: ProductQualityEvaluation, current: ProductQualityEvaluation) -> bool:
    """True when *candidate* should replace *current* as the kept revision.

    A passing evaluation beats a failing one; otherwise fewer failing gates
    wins; otherwise the higher overall score wins. Ties keep *current*.
    """
    if candidate.overall_passed != current.overall_passed:
        return candidate.overall_passed
    if len(candidate.failing_gates) != len(current.failing_gates):
        return len(candidate.failing_gates) < len(current.failing_gates)
    return candidate.overall_score > current.overall_score
