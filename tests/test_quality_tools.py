"""Tests for the quality gate MCP tools."""

from __future__ import annotations

import json

import creator_intel_mcp.tools.quality as quality_tools
from creator_intel_mcp.quality.gates import ALL_PASSED_FEEDBACK
from tests.conftest import unwrap_tool

quality_evaluate = unwrap_tool(quality_tools.quality_evaluate)
quality_feedback = unwrap_tool(quality_tools.quality_feedback)
quality_compare = unwrap_tool(quality_tools.quality_compare)

BRAND = {"primaryColor": "#2F855A", "fontFamily": "Lora"}


def _html(words: int = 1400, text: str = "") -> str:
    chapters = "".join(f'<h2 id="chapter-{i}"></h2>' for i in range(1, 6))
    return (
        '<html lang="en"><head><meta name="viewport" content="width=device-width"></head>'
        '<body style="color:#2f855a;font-family:lora" data-handle="calmcoach">'
        f"{chapters}<p>{' '.join(['breathe'] * words)} {text}</p>"
        "<!-- sources: v1, v2 --></body></html>"
    )


class TestQualityEvaluate:
    async def test_passing_artifact(self):
        result = await quality_evaluate(
            html=_html(), product_type="pdf_guide", source_video_ids=["v1", "v2"],
            brand_tokens=BRAND, creator_handle="calmcoach",
        )
        assert result["overall_passed"] is True
        assert result["overall_score"] == 100
        assert result["failing_gates"] == []
        assert result["gates"]["distinctiveness"]["notes"] == [
            "No prior catalog entries available; uniqueness gate auto-passed.",
        ]

    async def test_json_string_params(self):
        result = await quality_evaluate(
            html=_html(),
            product_type="pdf_guide",
            source_video_ids=json.dumps(["v1", "v2"]),
            catalog_html=json.dumps([_html()]),
            brand_tokens=json.dumps(BRAND),
            creator_handle="calmcoach",
            quality_weights=json.dumps({"distinctiveness": 0}),
        )
        assert result["failing_gates"] == ["distinctiveness"]
        assert result["overall_score"] == 100
        assert result["max_catalog_similarity"] == 1.0

    async def test_invalid_weights_type_returns_tool_error(self):
        result = await quality_evaluate(html=_html(), product_type="pdf_guide", quality_weights="not json")
        assert "error" in result


class TestQualityFeedback:
    async def test_all_passed(self):
        result = await quality_feedback(
            html=_html(), product_type="pdf_guide", source_video_ids=["v1", "v2"],
            brand_tokens=BRAND, creator_handle="calmcoach",
        )
        assert result["feedback"] == ALL_PASSED_FEEDBACK
        assert result["overall_passed"] is True

    async def test_failing_gates_listed(self):
        result = await quality_feedback(html="<p>lorem ipsum</p>", product_type="mini_course", creator_handle="calmcoach")
        assert result["overall_passed"] is False
        assert result["feedback"].startswith("1. Brand Fidelity")
        assert len(result["feedback"].splitlines()) == len(result["failing_gates"])


class TestQualityCompare:
    async def test_prefers_passing_candidate(self):
        result = await quality_compare(
            candidate_html=_html(), current_html=_html(text="coming soon"), product_type="pdf_guide",
            source_video_ids=["v1", "v2"], brand_tokens=BRAND, creator_handle="calmcoach",
        )
        assert result["keep"] == "candidate"
        assert result["current_failing_gates"] == ["brandFidelity"]

    async def test_tie_keeps_current(self):
        result = await quality_compare(
            candidate_html=_html(), current_html=_html(), product_type="pdf_guide",
            source_video_ids=["v1", "v2"], brand_tokens=BRAND, creator_handle="calmcoach",
        )
        assert result["keep"] == "current"
        assert result["candidate_score"] == result["current_score"]
