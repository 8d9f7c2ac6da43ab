"""Load environment variables from the shared ``creator-intel-mcp`` config file.

Values in ``~/.config/creator-intel-mcp/.env`` fill in variables that are
missing (or left as unresolved placeholders) in the process environment.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_ENV_PATH = Path.home() / ".config" / "creator-intel-mcp" / ".env"

_QUOTES = ('"', "'")


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    return value


def _needs_value(key: str, current: str | None) -> bool:
    """Return True when *current* is absent, blank, or a self-placeholder like ``${KEY}``."""
    if current is None:
        return True
    value = _strip_quotes(current.strip()).strip()
    if not value:
        return True
    if value in {f"${key}", f"${{{key}}}"}:
        return True
    return value.startswith(f"${{{key}:-") and value.endswith("}")


def parse_dotenv(path: Path) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines from *path*.

    Handles quoting, ``export`` prefixes, blank lines and ``#`` comments.
    Missing files yield an empty dict.
    """
    entries: dict[str, str] = {}
    if not path.is_file():
        return entries

    for raw_line in path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        line = line.removeprefix("export ")
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        entries[key] = _strip_quotes(value.strip())
    return entries


def load_dotenv(path: Path | None = None) -> dict[str, str]:
    """Inject values from *path* into ``os.environ`` where the env lacks them.

    Returns:
        The variables that were injected.
    """
    injected: dict[str, str] = {}
    for key, value in parse_dotenv(path or DEFAULT_ENV_PATH).items():
        if _needs_value(key, os.environ.get(key)):
            os.environ[key] = value
            injected[key] = value
    return injected
