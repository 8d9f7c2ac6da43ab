"""Shared Gemini client — the semantic extraction service behind intelligence sync."""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, TypeVar

from google import genai
from google.genai import types
from pydantic import BaseModel

from .config import VALID_THINKING_LEVELS, get_config
from .retry import with_retry

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|```$", re.IGNORECASE)


def _resolve_thinking_level(value: str) -> str:
    """Normalize and validate a thinking level string.

    Raises:
        ValueError: If the level is not in VALID_THINKING_LEVELS.
    """
    level = value.strip().lower()
    if level not in VALID_THINKING_LEVELS:
        allowed = ", ".join(sorted(VALID_THINKING_LEVELS))
        raise ValueError(f"Invalid thinking level '{value}'. Allowed: {allowed}")
    return level


def extract_json_object(raw: str) -> dict | None:
    """Pull a JSON object out of a model response.

    Tolerates markdown fences and prose around the object by falling back
    to the outermost ``{...}`` span. Returns None when nothing parses.
    """
    cleaned = _FENCE_RE.sub("", raw.strip()).strip()
    candidates = [cleaned]
    first, last = cleaned.find("{"), cleaned.rfind("}")
    if 0 <= first < last:
        candidates.append(cleaned[first:last + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class GeminiClient:
    """Process-wide Gemini client pool (one client per API key)."""

    _clients: dict[str, genai.Client] = {}

    @classmethod
    def get(cls, api_key: str | None = None) -> genai.Client:
        """Return (or create) the shared client for *api_key*."""
        key = api_key or get_config().gemini_api_key or os.getenv("GEMINI_API_KEY", "")
        if not key:
            raise ValueError("No Gemini API key — set GEMINI_API_KEY or pass api_key explicitly")
        if key not in cls._clients:
            cls._clients[key] = genai.Client(api_key=key)
            logger.info("Created Gemini client (key …%s)", key[-4:])
        return cls._clients[key]

    @classmethod
    async def generate(
        cls,
        contents: Any,
        *,
        model: str | None = None,
        thinking_level: str | None = None,
        response_schema: dict | None = None,
        temperature: float | None = None,
        system_instruction: str | None = None,
        max_output_tokens: int | None = None,
        **kwargs: Any,
    ) -> str:
        """Free-text completion with optional JSON-constrained output.

        Args:
            contents: Prompt contents.
            model: Override model ID (defaults to config's default_model).
            thinking_level: Override thinking level.
            response_schema: JSON schema dict to constrain output format.
            temperature: Override temperature.
            system_instruction: System-level contract for the request.
            max_output_tokens: Completion budget.
            **kwargs: Forwarded to the underlying generate_content call.

        Returns:
            The model's text response with thinking parts stripped.
        """
        cfg = get_config()
        resolved_model = model or cfg.default_model
        resolved_thinking = _resolve_thinking_level(thinking_level or cfg.default_thinking_level)

        config = types.GenerateContentConfig(
            thinking_config=types.ThinkingConfig(thinking_level=resolved_thinking),
            temperature=temperature if temperature is not None else cfg.default_temperature,
        )
        if system_instruction:
            config.system_instruction = system_instruction
        if response_schema:
            config.response_mime_type = "application/json"
            config.response_json_schema = response_schema
        if max_output_tokens:
            config.max_output_tokens = max_output_tokens

        client = cls.get()
        response = await with_retry(
            lambda: client.aio.models.generate_content(
                model=resolved_model,
                contents=contents,
                config=config,
                **kwargs,
            )
        )

        parts = response.candidates[0].content.parts if response.candidates else []
        text_parts = [p.text for p in parts if p.text and not getattr(p, "thought", False)]
        return "\n".join(text_parts) if text_parts else (response.text or "")

    @classmethod
    async def generate_structured(
        cls,
        contents: Any,
        *,
        schema: type[ModelT],
        model: str | None = None,
        thinking_level: str | None = None,
        system_instruction: str | None = None,
        max_output_tokens: int | None = None,
        **kwargs: Any,
    ) -> ModelT:
        """Structured extraction request validated into a Pydantic model.

        The schema's defaults and coercion rules decide how much of a
        partial response survives; a response with no JSON object at all
        raises ValueError.

        Args:
            contents: User payload.
            schema: Pydantic model class defining the expected output shape.
            model: Override model ID.
            thinking_level: Override thinking level.
            system_instruction: System-level contract for the request.
            max_output_tokens: Completion budget.
            **kwargs: Forwarded to ``generate()``.

        Returns:
            Validated Pydantic model instance.
        """
        raw = await cls.generate(
            contents,
            model=model,
            thinking_level=thinking_level,
            system_instruction=system_instruction,
            response_schema=schema.model_json_schema(),
            max_output_tokens=max_output_tokens,
            **kwargs,
        )
        parsed = extract_json_object(raw)
        if parsed is None:
            raise ValueError(f"Gemini returned non-JSON: {raw[:200]!r}")
        return schema.model_validate(parsed)

    @classmethod
    async def close_all(cls) -> int:
        """Shut down all shared clients. Returns count closed."""
        count = 0
        for client in list(cls._clients.values()):
            try:
                await client.aio.close()
            except Exception as exc:
                logger.debug("Async client close failed: %s", exc)
            try:
                client.close()
            except Exception as exc:
                logger.debug("Client close failed: %s", exc)
            count += 1
        cls._clients.clear()
        logger.info("Closed %d Gemini client(s)", count)
        return count
