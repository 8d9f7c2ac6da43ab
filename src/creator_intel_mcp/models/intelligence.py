"""Video intelligence and topic graph models.

Two families live here:

* Extraction schemas (``VideoIntelligenceBatch``, ``TopicGraphResponse``)
  sent to Gemini via ``GeminiClient.generate_structured()``. They are
  deliberately lenient: unknown keys are ignored, missing keys take their
  defaults, and values of the wrong type are coerced to the default instead
  of failing the whole response. Keys are accepted in camelCase (the wire
  format the prompts ask for) or snake_case.
* Domain records (``TranscriptRow``, ``VideoDigest``,
  ``VideoIntelligenceRecord``, ``TopicNode``, ``TopicGraphRow``,
  ``TopicSuggestion``) used by the sync and ranking code.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..types import DEFAULT_PRODUCT_TYPE, PRODUCT_TYPES

_LENIENT = ConfigDict(
    extra="ignore",
    populate_by_name=True,
    alias_generator=AliasGenerator(validation_alias=to_camel),
)


def as_text(value: Any) -> str:
    """Return *value* if it is a string, else the empty string."""
    return value if isinstance(value, str) else ""


def as_text_list(value: Any) -> list[str]:
    """Keep the string members of a list; anything else becomes ``[]``."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def as_product_types(value: Any, max_items: int = 4) -> list[str]:
    """Filter to the product type enum, deduplicated, order preserved."""
    normalized: list[str] = []
    for item in as_text_list(value):
        if item not in PRODUCT_TYPES or item in normalized:
            continue
        normalized.append(item)
        if len(normalized) >= max_items:
            break
    return normalized


def as_confidence(value: Any, default: float = 0.5) -> float:
    """Coerce a confidence value into [0, 1], falling back to *default*."""
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return default
    if not isinstance(value, (int, float)) or value != value:
        return default
    return min(1.0, max(0.0, float(value)))


def _as_id(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, int):
        return str(value)
    return as_text(value).strip()


# ── Sync inputs and derived records ──────────────────────────────────────────


class TranscriptRow(BaseModel):
    """One transcript row handed to ``sync_video_intelligence``."""

    model_config = ConfigDict(extra="ignore")

    creator_id: str = ""
    video_id: str = Field(min_length=1)
    title: str | None = None
    description: str | None = None
    transcript_text: str = ""
    views: int = 0

    @field_validator("views", mode="before")
    @classmethod
    def _coerce_views(cls, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        return max(0, int(value))


class VideoDigest(BaseModel):
    """Bounded, information-dense compression of a transcript. Never persisted."""

    video_id: str
    title: str
    description: str = ""
    digest: str = ""
    views: int = 0


class VideoIntelligenceRecord(BaseModel):
    """Normalized per-video semantic record (model output or deterministic fallback)."""

    video_id: str
    semantic_title: str = ""
    abstract: str = ""
    problems: list[str] = Field(default_factory=list)
    outcomes: list[str] = Field(default_factory=list)
    audiences: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    action_steps: list[str] = Field(default_factory=list)
    quotes: list[str] = Field(default_factory=list)
    recommended_product_types: list[str] = Field(default_factory=lambda: [DEFAULT_PRODUCT_TYPE])
    product_angle: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class TopicNode(BaseModel):
    """A creator-level cluster of video intelligence representing one product angle."""

    topic_key: str
    topic_label: str
    problem_statement: str = ""
    promise_statement: str = ""
    audience_fit: str = ""
    supporting_video_ids: list[str] = Field(default_factory=list)
    evidence_quotes: list[str] = Field(default_factory=list)
    recommended_product_types: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class TopicGraphRow(BaseModel):
    """Persisted ``creator_topic_graph`` row as read back for ranking.

    Nullable columns stay nullable; ranking treats missing values as zero.
    """

    model_config = ConfigDict(extra="ignore")

    topic_key: str = ""
    topic_label: str = ""
    problem_statement: str | None = None
    promise_statement: str | None = None
    audience_fit: str | None = None
    supporting_video_ids: list[str] | None = None
    evidence_quotes: list[str] | None = None
    recommended_product_types: list[str] | None = None
    source_video_count: int | None = None
    confidence_score: float | None = None
    generation: int | None = None


class TopicSuggestion(BaseModel):
    """A ranked topic offered to product generation."""

    topic: str
    video_count: int
    problem: str | None = None
    promise: str | None = None
    supporting_video_ids: list[str] = Field(default_factory=list)


# ── Extraction schemas (lenient) ─────────────────────────────────────────────


class ExtractedVideoIntelligence(BaseModel):
    """One item of the per-batch extraction response."""

    model_config = _LENIENT

    video_id: str = ""
    semantic_title: str = ""
    abstract: str = ""
    problems: list[str] = Field(default_factory=list)
    outcomes: list[str] = Field(default_factory=list)
    audiences: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    action_steps: list[str] = Field(default_factory=list)
    quotes: list[str] = Field(default_factory=list)
    recommended_product_types: list[str] = Field(
        default_factory=list,
        description="Only pdf_guide, mini_course, challenge_7day, checklist_toolkit",
    )
    product_angle: str = ""
    confidence: float = Field(default=0.5, description="0-1 confidence in the extraction")

    @field_validator("video_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return _as_id(value)

    @field_validator("semantic_title", "abstract", "product_angle", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("problems", "outcomes", "audiences", "themes", "action_steps", "quotes", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> list[str]:
        return as_text_list(value)

    @field_validator("recommended_product_types", mode="before")
    @classmethod
    def _coerce_product_types(cls, value: Any) -> list[str]:
        return as_product_types(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> float:
        return as_confidence(value)


class VideoIntelligenceBatch(BaseModel):
    """Extraction response envelope: ``{"items": [...]}``."""

    model_config = _LENIENT

    items: list[ExtractedVideoIntelligence] = Field(default_factory=list)

    @field_validator("items", mode="before")
    @classmethod
    def _keep_objects(cls, value: Any) -> list[dict]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]


class ExtractedTopic(BaseModel):
    """One topic node proposed by the clustering call."""

    model_config = _LENIENT

    topic_key: str = ""
    topic_label: str = ""
    problem_statement: str = ""
    promise_statement: str = ""
    audience_fit: str = ""
    supporting_video_ids: list[str] = Field(default_factory=list)
    evidence_quotes: list[str] = Field(default_factory=list)
    recommended_product_types: list[str] = Field(default_factory=list)
    confidence: float = 0.5

    @field_validator(
        "topic_key", "topic_label", "problem_statement", "promise_statement", "audience_fit",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return as_text(value)

    @field_validator("supporting_video_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [vid for vid in (_as_id(item) for item in value) if vid]

    @field_validator("evidence_quotes", mode="before")
    @classmethod
    def _coerce_quotes(cls, value: Any) -> list[str]:
        return as_text_list(value)

    @field_validator("recommended_product_types", mode="before")
    @classmethod
    def _coerce_product_types(cls, value: Any) -> list[str]:
        return as_product_types(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _coerce_confidence(cls, value: Any) -> float:
        return as_confidence(value)


class TopicGraphResponse(BaseModel):
    """Clustering response envelope: ``{"topics": [...]}``."""

    model_config = _LENIENT

    topics: list[ExtractedTopic] = Field(default_factory=list)

    @field_validator("topics", mode="before")
    @classmethod
    def _keep_objects(cls, value: Any) -> list[dict]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]


# ── Tool result envelopes ────────────────────────────────────────────────────


class VideoSyncResult(BaseModel):
    """Output schema for intel_sync_videos."""

    creator_id: str
    submitted: int = Field(default=0, description="Transcript rows received")
    updated: int = Field(default=0, description="Intelligence records recomputed and upserted")


class TopicSyncResult(BaseModel):
    """Output schema for intel_sync_topics."""

    creator_id: str
    topics_written: int = 0


class TopicSuggestionsResult(BaseModel):
    """Output schema for intel_rank_topics."""

    creator_id: str
    product_type: str
    suggestions: list[TopicSuggestion] = Field(default_factory=list)
