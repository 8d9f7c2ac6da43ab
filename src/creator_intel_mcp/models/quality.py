"""Quality gate models — inputs and results of ``evaluate_product_quality``."""

from __future__ import annotations

import math
from typing import Any

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_CAMEL_OR_SNAKE = ConfigDict(
    extra="ignore",
    populate_by_name=True,
    alias_generator=AliasGenerator(validation_alias=to_camel),
)


class BrandTokens(BaseModel):
    """Creator brand tokens checked by the Brand Fidelity gate.

    Non-string or blank values are treated as absent, so the matching
    deduction is skipped rather than counted as a failure.
    """

    model_config = _CAMEL_OR_SNAKE

    primary_color: str | None = None
    secondary_color: str | None = None
    font_family: str | None = None

    @field_validator("primary_color", "secondary_color", "font_family", mode="before")
    @classmethod
    def _clean_token(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        cleaned = value.strip().lower()
        return cleaned or None


class QualityWeights(BaseModel):
    """Partial per-gate weight override. Unset gates fall back to defaults."""

    model_config = _CAMEL_OR_SNAKE

    brand_fidelity: float | None = None
    distinctiveness: float | None = None
    accessibility: float | None = None
    content_depth: float | None = None
    evidence_lock: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _drop_invalid(cls, value: Any) -> float | None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        try:
            number = float(value)
        except OverflowError:
            return None
        if not math.isfinite(number) or number < 0:
            return None
        return number


class GateEvaluation(BaseModel):
    """One independent pass/fail scoring criterion."""

    key: str
    label: str
    score: int = Field(ge=0, le=100)
    threshold: int
    passed: bool
    notes: list[str] = Field(default_factory=list)


class ProductQualityEvaluation(BaseModel):
    """Weighted five-gate evaluation of a generated artifact."""

    overall_score: int
    overall_passed: bool
    gates: dict[str, GateEvaluation]
    failing_gates: list[str] = Field(default_factory=list)
    max_catalog_similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    word_count: int = 0
    source_comment_count: int = 0


class QualityFeedbackResult(BaseModel):
    """Output schema for quality_feedback."""

    feedback: str
    overall_passed: bool
    overall_score: int
    failing_gates: list[str] = Field(default_factory=list)
