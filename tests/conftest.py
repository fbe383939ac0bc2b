"""Shared fixtures: scripted backend, recorded sleeps, isolated paths."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable, List, Union

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from forge.schemas import GenerationRequest  # noqa: E402

ScriptItem = Union[str, BaseException]


class ScriptedBackend:
    """Backend double that replays a fixed sequence of replies and failures."""

    def __init__(self, script: Iterable[ScriptItem] = ()) -> None:
        self.script: List[ScriptItem] = list(script)
        self.requests: List[GenerationRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if not self.script:
            raise AssertionError("backend called more often than scripted")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def isolated_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("TRACE_PATH", str(tmp_path / "traces.jsonl"))
    monkeypatch.setenv("PROJECTS_DIR", str(tmp_path / "projects"))
    return tmp_path


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
