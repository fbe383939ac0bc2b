"""Utility helpers for paths, timestamps, and logging."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable


def ensure_dirs(*paths: str | Path | Iterable[str | Path]) -> None:
    """Create directories if they do not exist."""
    flat: list[str | Path] = []
    for item in paths:
        if isinstance(item, (list, tuple, set)):
            flat.extend(item)
        else:
            flat.append(item)
    for raw_path in flat:
        path = Path(raw_path).expanduser()
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)


def configure_logging() -> None:
    """Ensure logging has at least a basic configuration."""
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back on missing or bad values."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring invalid %s=%r", name, raw)
        return default


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring invalid %s=%r", name, raw)
        return default
