"""Server configuration via environment variables."""

from __future__ import annotations

import os
from ipaddress import ip_address
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

VALID_THINKING_LEVELS = {"minimal", "low", "medium", "high"}
VALID_STORE_BACKENDS = {"memory", "sqlite", "weaviate"}


def _is_env_placeholder(value: str) -> bool:
    """Return True when *value* looks like an unresolved shell placeholder."""
    if value.startswith("${") and value.endswith("}"):
        inner = value[2:-1].strip()
        if ":-" in inner:
            inner = inner.split(":-", 1)[0].strip()
        return bool(inner) and all(ch.isalnum() or ch == "_" for ch in inner)
    if value.startswith("$"):
        inner = value[1:].strip()
        return bool(inner) and all(ch.isalnum() or ch == "_" for ch in inner)
    return False


def _normalize_weaviate_url(raw: str) -> str:
    """Normalize WEAVIATE_URL from env.

    Bare hostnames get ``http://`` for local/private hosts and ``https://``
    for everything else. Unresolved placeholders are treated as unset.
    """
    value = raw.strip()
    if not value or _is_env_placeholder(value):
        return ""

    if "://" in value:
        return value

    host = (urlparse(f"//{value}").hostname or "").lower()
    if not host:
        return ""

    is_local_or_private = host == "localhost"
    if not is_local_or_private:
        try:
            ip = ip_address(host)
            is_local_or_private = ip.is_loopback or ip.is_private
        except ValueError:
            is_local_or_private = False

    scheme = "http" if is_local_or_private else "https"
    normalized = f"{scheme}://{value}"
    return normalized if urlparse(normalized).hostname else ""


def _resolve_store_backend(raw: str, weaviate_url: str) -> str:
    """Pick the store backend: explicit env value wins, else weaviate when configured."""
    value = raw.strip().lower()
    if value:
        return value
    return "weaviate" if weaviate_url else "memory"


def _resolve_tracing_enabled(flag_value: str, tracking_uri: str) -> bool:
    """Derive tracing_enabled from env vars.

    ``GEMINI_TRACING_ENABLED=false`` always disables; otherwise tracing is
    on whenever ``MLFLOW_TRACKING_URI`` is set.
    """
    if flag_value.lower() == "false":
        return False
    return bool(tracking_uri)


class ServerConfig(BaseModel):
    """Runtime configuration resolved from environment."""

    gemini_api_key: str = Field(default="")
    default_model: str = Field(default="gemini-3.1-pro-preview")
    flash_model: str = Field(default="gemini-3-flash-preview")
    default_thinking_level: str = Field(default="high")
    default_temperature: float = Field(default=1.0)
    retry_max_attempts: int = Field(default=3)
    retry_base_delay: float = Field(default=1.0)
    retry_max_delay: float = Field(default=60.0)
    extraction_timeout_seconds: float = Field(default=90.0)
    clustering_timeout_seconds: float = Field(default=120.0)
    intelligence_batch_size: int = Field(default=6)
    intelligence_concurrency: int = Field(default=1)
    store_backend: str = Field(default="memory")
    sqlite_path: str = Field(default="")
    weaviate_url: str = Field(default="")
    weaviate_api_key: str = Field(default="")
    weaviate_enabled: bool = Field(default=False)
    tracing_enabled: bool = Field(default=False)
    mlflow_tracking_uri: str = Field(default="")
    mlflow_experiment_name: str = Field(default="creator-intel-mcp")

    @field_validator("default_thinking_level")
    @classmethod
    def validate_thinking_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in VALID_THINKING_LEVELS:
            allowed = ", ".join(sorted(VALID_THINKING_LEVELS))
            raise ValueError(f"Invalid thinking level '{value}'. Allowed: {allowed}")
        return level

    @field_validator("store_backend")
    @classmethod
    def validate_store_backend(cls, value: str) -> str:
        backend = value.strip().lower()
        if backend not in VALID_STORE_BACKENDS:
            allowed = ", ".join(sorted(VALID_STORE_BACKENDS))
            raise ValueError(f"Invalid store backend '{value}'. Allowed: {allowed}")
        return backend

    @field_validator("retry_max_attempts", "intelligence_batch_size", "intelligence_concurrency")
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Configuration values must be >= 1")
        return value

    @field_validator(
        "retry_base_delay",
        "retry_max_delay",
        "extraction_timeout_seconds",
        "clustering_timeout_seconds",
    )
    @classmethod
    def validate_positive_floats(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Delays and timeouts must be > 0")
        return value

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Build config from environment variables."""
        sqlite_default = str(Path.home() / ".cache" / "creator-intel-mcp" / "intel.db")
        weaviate_url = _normalize_weaviate_url(os.getenv("WEAVIATE_URL", ""))
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            default_model=os.getenv("GEMINI_MODEL", "gemini-3.1-pro-preview"),
            flash_model=os.getenv("GEMINI_FLASH_MODEL", "gemini-3-flash-preview"),
            default_thinking_level=os.getenv("GEMINI_THINKING_LEVEL", "high"),
            default_temperature=float(os.getenv("GEMINI_TEMPERATURE", "1.0")),
            retry_max_attempts=int(os.getenv("GEMINI_RETRY_MAX_ATTEMPTS", "3")),
            retry_base_delay=float(os.getenv("GEMINI_RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(os.getenv("GEMINI_RETRY_MAX_DELAY", "60.0")),
            extraction_timeout_seconds=float(os.getenv("INTEL_EXTRACTION_TIMEOUT", "90")),
            clustering_timeout_seconds=float(os.getenv("INTEL_CLUSTERING_TIMEOUT", "120")),
            intelligence_batch_size=int(os.getenv("INTEL_BATCH_SIZE", "6")),
            intelligence_concurrency=int(os.getenv("INTEL_CONCURRENCY", "1")),
            store_backend=_resolve_store_backend(os.getenv("INTEL_STORE_BACKEND", ""), weaviate_url),
            sqlite_path=os.getenv("INTEL_SQLITE_PATH", sqlite_default),
            weaviate_url=weaviate_url,
            weaviate_api_key=os.getenv("WEAVIATE_API_KEY", ""),
            weaviate_enabled=bool(weaviate_url),
            tracing_enabled=_resolve_tracing_enabled(
                os.getenv("GEMINI_TRACING_ENABLED", ""),
                os.getenv("MLFLOW_TRACKING_URI", ""),
            ),
            mlflow_tracking_uri=os.getenv("MLFLOW_TRACKING_URI", ""),
            mlflow_experiment_name=os.getenv("MLFLOW_EXPERIMENT_NAME", "creator-intel-mcp"),
        )


_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Return the global config singleton, creating it on first access.

    Loads ``~/.config/creator-intel-mcp/.env`` before reading env vars.
    Process environment always takes precedence over the config file.
    """
    global _config
    if _config is None:
        import logging

        from .dotenv import load_dotenv

        injected = load_dotenv()
        if injected:
            logger = logging.getLogger(__name__)
            logger.info(
                "Loaded %d var(s) from config: %s",
                len(injected),
                ", ".join(injected.keys()),
            )
        _config = ServerConfig.from_env()
    return _config


def update_config(**overrides: object) -> ServerConfig:
    """Patch the live config."""
    global _config
    cfg = get_config()
    data = cfg.model_dump()
    data.update({k: v for k, v in overrides.items() if v is not None})
    _config = ServerConfig(**data)
    return _config
