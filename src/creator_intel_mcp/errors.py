"""Structured error handling — error categories, classification, and tool error model."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCategory(str, Enum):
    """Categories of errors for diagnostics."""

    API_PERMISSION_DENIED = "API_PERMISSION_DENIED"
    API_QUOTA_EXCEEDED = "API_QUOTA_EXCEEDED"
    API_INVALID_ARGUMENT = "API_INVALID_ARGUMENT"
    NETWORK_ERROR = "NETWORK_ERROR"
    SCHEMA_VALIDATION_FAILED = "SCHEMA_VALIDATION_FAILED"
    STORE_READ = "STORE_READ"
    STORE_WRITE = "STORE_WRITE"
    WEAVIATE_CONNECTION = "WEAVIATE_CONNECTION"
    UNKNOWN = "UNKNOWN"


class StoreError(RuntimeError):
    """A persistence-tier failure.

    The message names the failing operation, e.g.
    ``"Failed to upsert video intelligence: ..."``. Sync operations let it
    propagate so the caller can retry or abort the pipeline stage.
    """

    def __init__(self, message: str, *, write: bool = False) -> None:
        super().__init__(message)
        self.write = write


class ToolError(BaseModel):
    """Structured error returned from any tool."""

    error: str
    category: str
    hint: str
    retryable: bool = False
    retry_after_seconds: int | None = None


def categorize_error(error: Exception) -> tuple[ErrorCategory, str]:
    """Map an exception to an ErrorCategory + human-readable hint."""
    if isinstance(error, StoreError):
        if error.write:
            return (
                ErrorCategory.STORE_WRITE,
                "Store write failed — the sync stage should be retried by the scheduler",
            )
        return (
            ErrorCategory.STORE_READ,
            "Store read failed — check store backend configuration and connectivity",
        )

    s = str(error).lower()

    if isinstance(error, TimeoutError) or "timeout" in s or "timed out" in s:
        return (
            ErrorCategory.NETWORK_ERROR,
            "Request timed out — try again or check connectivity",
        )
    if "403" in s or "permission" in s:
        return (
            ErrorCategory.API_PERMISSION_DENIED,
            "API key lacks permission for the requested model",
        )
    if "429" in s or "quota" in s or "resource_exhausted" in s:
        return (
            ErrorCategory.API_QUOTA_EXCEEDED,
            "Rate limit hit — wait and retry, or switch to the flash model",
        )
    if "invalid thinking level" in s or "invalid store backend" in s or "product type" in s:
        return (
            ErrorCategory.API_INVALID_ARGUMENT,
            "Invalid input parameter — check product type, thinking level and backend values",
        )
    if "400" in s:
        return (
            ErrorCategory.API_INVALID_ARGUMENT,
            "Bad request — check input format",
        )
    if "validation error" in s or "json" in s:
        return (
            ErrorCategory.SCHEMA_VALIDATION_FAILED,
            "Response did not match the expected schema",
        )
    if "weaviate" in s and ("connect" in s or "unreachable" in s or "refused" in s):
        return (
            ErrorCategory.WEAVIATE_CONNECTION,
            "Cannot reach Weaviate — check WEAVIATE_URL and network connectivity",
        )

    return (ErrorCategory.UNKNOWN, str(error))


def make_tool_error(error: Exception) -> dict:
    """Create a serialisable ToolError dict from an exception."""
    cat, hint = categorize_error(error)
    retryable = cat in {
        ErrorCategory.API_QUOTA_EXCEEDED,
        ErrorCategory.NETWORK_ERROR,
        ErrorCategory.WEAVIATE_CONNECTION,
        ErrorCategory.STORE_READ,
        ErrorCategory.STORE_WRITE,
    }
    return ToolError(
        error=str(error),
        category=cat.value,
        hint=hint,
        retryable=retryable,
        retry_after_seconds=60 if cat == ErrorCategory.API_QUOTA_EXCEEDED else None,
    ).model_dump(mode="json")
