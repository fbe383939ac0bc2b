"""Trace logging for stage runs."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .schemas import Stage
from .utils import ensure_dirs, utc_now


def get_trace_path() -> Path:
    return Path(os.getenv("TRACE_PATH", "artifacts/traces.jsonl")).expanduser()


def log_trace_event(
    stage: Stage,
    status: str,
    project_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Append a structured trace event for a stage transition."""
    payload: Dict[str, Any] = {
        "timestamp": utc_now().isoformat(),
        "stage": stage.value,
        "status": status,
        "project_id": project_id,
    }
    if details:
        payload["details"] = details
    trace_path = get_trace_path()
    ensure_dirs(trace_path.parent)
    with trace_path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(payload) + "\n")
