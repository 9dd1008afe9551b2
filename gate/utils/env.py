"""Environment variable parsing shared by the config loaders."""

from __future__ import annotations

import os
from typing import Optional


def env_str(name: str) -> Optional[str]:
    """Stripped value, or None when unset/blank."""
    return (os.getenv(name) or "").strip() or None


def env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def env_int(name: str, default: int) -> int:
    """Integer value; accepts `"30"` and `"30.0"`, falls back to `default` when blank or malformed."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default
