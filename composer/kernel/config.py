"""
Composer configuration — all environment variables in one place.

Read from environment at import time. Every value has a working default,
so the kernel runs without any environment set up.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Kernel settings from environment variables."""

    # Builder history
    HISTORY_LIMIT: int = int(os.environ.get("COMPOSER_HISTORY_LIMIT", "50"))

    # Lock policy: title edits on a signed document
    ALLOW_TITLE_WHEN_LOCKED: bool = _env_bool("COMPOSER_ALLOW_TITLE_WHEN_LOCKED", False)

    # Block defaults
    DEFAULT_CURRENCY: str = os.environ.get("COMPOSER_DEFAULT_CURRENCY", "USD")


# Singleton instance
settings = Settings()

if settings.HISTORY_LIMIT < 1:
    raise RuntimeError("COMPOSER_HISTORY_LIMIT must be a positive integer")
