"""Quality gate tools — 3 tools on a FastMCP sub-server."""

from __future__ import annotations

from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..errors import make_tool_error
from ..models.quality import QualityFeedbackResult
from ..quality.gates import (
    build_quality_feedback_for_prompt,
    evaluate_product_quality,
    is_evaluation_better,
)
from ..tracing import trace
from ..types import ArtifactHtml, CreatorHandle, ProductType, coerce_json_param

quality_server = FastMCP("quality")

SourceVideoIds = Annotated[list[str] | None, Field(description="Video IDs the artifact claims to draw from")]
CatalogHtml = Annotated[list[str] | None, Field(description="HTML of the creator's prior artifacts")]
BrandTokensParam = Annotated[dict | None, Field(
    description="Brand tokens: primaryColor, secondaryColor, fontFamily",
)]
QualityWeightsParam = Annotated[dict | None, Field(
    description="Partial per-gate weight override, e.g. {\"contentDepth\": 0.4}",
)]

_READ_ONLY = ToolAnnotations(
    readOnlyHint=True,
    destructiveHint=False,
    idempotentHint=True,
    openWorldHint=False,
)


def _evaluate(html, product_type, source_video_ids, catalog_html, brand_tokens, creator_handle, quality_weights):
    return evaluate_product_quality(
        html,
        product_type,
        coerce_json_param(source_video_ids, list) or [],
        coerce_json_param(catalog_html, list) or [],
        coerce_json_param(brand_tokens, dict),
        creator_handle,
        coerce_json_param(quality_weights, dict),
    )


@quality_server.tool(annotations=_READ_ONLY)
@trace(name="quality_evaluate", span_type="TOOL")
async def quality_evaluate(
    html: ArtifactHtml,
    product_type: ProductType,
    source_video_ids: SourceVideoIds = None,
    catalog_html: CatalogHtml = None,
    brand_tokens: BrandTokensParam = None,
    creator_handle: CreatorHandle = "",
    quality_weights: QualityWeightsParam = None,
) -> dict:
    """Score a generated artifact against the five quality gates.

    Gates: brand fidelity, distinctiveness, accessibility, content depth and
    evidence lock. The artifact passes only when every gate passes.

    Args:
        html: Artifact markup.
        product_type: Declared product type.
        source_video_ids: Videos the artifact claims as sources.
        catalog_html: Prior artifacts from the same creator.
        brand_tokens: Creator brand tokens.
        creator_handle: Creator's public handle.
        quality_weights: Optional weight override for the overall score.

    Returns:
        Dict matching ProductQualityEvaluation.
    """
    try:
        evaluation = _evaluate(
            html, product_type, source_video_ids, catalog_html, brand_tokens, creator_handle, quality_weights,
        )
    except Exception as exc:
        return make_tool_error(exc)
    return evaluation.model_dump()


@quality_server.tool(annotations=_READ_ONLY)
@trace(name="quality_feedback", span_type="TOOL")
async def quality_feedback(
    html: ArtifactHtml,
    product_type: ProductType,
    source_video_ids: SourceVideoIds = None,
    catalog_html: CatalogHtml = None,
    brand_tokens: BrandTokensParam = None,
    creator_handle: CreatorHandle = "",
    quality_weights: QualityWeightsParam = None,
) -> dict:
    """Evaluate an artifact and return remediation text for a regeneration prompt.

    Returns:
        Dict matching QualityFeedbackResult.
    """
    try:
        evaluation = _evaluate(
            html, product_type, source_video_ids, catalog_html, brand_tokens, creator_handle, quality_weights,
        )
    except Exception as exc:
        return make_tool_error(exc)
    return QualityFeedbackResult(
        feedback=build_quality_feedback_for_prompt(evaluation),
        overall_passed=evaluation.overall_passed,
        overall_score=evaluation.overall_score,
        failing_gates=evaluation.failing_gates,
    ).model_dump()


@quality_server.tool(annotations=_READ_ONLY)
@trace(name="quality_compare", span_type="TOOL")
async def quality_compare(
    candidate_html: Annotated[str, Field(description="Revised artifact markup")],
    current_html: Annotated[str, Field(description="Currently kept artifact markup")],
    product_type: ProductType,
    source_video_ids: SourceVideoIds = None,
    catalog_html: CatalogHtml = None,
    brand_tokens: BrandTokensParam = None,
    creator_handle: CreatorHandle = "",
    quality_weights: QualityWeightsParam = None,
) -> dict:
    """Decide whether a revised artifact should replace the current one.

    A passing revision beats a failing one, then fewer failing gates wins,
    then the higher overall score. Ties keep the current artifact.

    Returns:
        Dict with keep ("candidate" or "current") and both scores.
    """
    try:
        candidate = _evaluate(
            candidate_html, product_type, source_video_ids, catalog_html,
            brand_tokens, creator_handle, quality_weights,
        )
        current = _evaluate(
            current_html, product_type, source_video_ids, catalog_html,
            brand_tokens, creator_handle, quality_weights,
        )
    except Exception as exc:
        return make_tool_error(exc)
    return {
        "keep": "candidate" if is_evaluation_better(candidate, current) else "current",
        "candidate_score": candidate.overall_score,
        "candidate_failing_gates": candidate.failing_gates,
        "current_score": current.overall_score,
        "current_failing_gates": current.failing_gates,
    }
