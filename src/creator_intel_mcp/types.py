"""Shared type aliases, enums and helpers for tool parameters."""

from __future__ import annotations

import json
from typing import Annotated, Literal

from pydantic import Field


def coerce_json_param(value: str | dict | list | None, expected_type: type) -> dict | list | None:
    """Parse MCP JSON-RPC string params back to dict/list.

    MCP transports may serialize dict/list params as JSON strings.

    Returns:
        Parsed value if coercion succeeded, original value otherwise.
    """
    if not isinstance(value, str):
        return value
    try:
        parsed = json.loads(value)
        if isinstance(parsed, expected_type):
            return parsed
    except (json.JSONDecodeError, TypeError):
        pass
    return value

# ── Literal enums ────────────────────────────────────────────────────────────

ProductType = Literal["pdf_guide", "mini_course", "challenge_7day", "checklist_toolkit"]
PRODUCT_TYPES: tuple[str, ...] = ("pdf_guide", "mini_course", "challenge_7day", "checklist_toolkit")
DEFAULT_PRODUCT_TYPE = "pdf_guide"

# Fixed enum order; failing gates are always reported in this order.
GATE_KEYS: tuple[str, ...] = (
    "brandFidelity", "distinctiveness", "accessibility", "contentDepth", "evidenceLock",
)

# ── Annotated aliases ────────────────────────────────────────────────────────

CreatorId = Annotated[str, Field(min_length=1, description="Creator identifier that owns the content library")]
CreatorHandle = Annotated[str, Field(description="Creator's public handle, e.g. 'mindfulmaya'")]
ArtifactHtml = Annotated[str, Field(description="Full HTML of the generated product artifact")]
