"""Stage orchestration: prerequisites, commits, and failure handling."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from conftest import ScriptedBackend  # noqa: E402
from forge.errors import (  # noqa: E402
    FailureKind,
    GenerationDiscardedError,
    GenerationExhaustedError,
    GenerationInProgressError,
    NonRetryableBackendError,
    PrerequisiteMissingError,
    TransientBackendError,
)
from forge.graph import advanceable_stages  # noqa: E402
from forge.orchestrator import StageOrchestrator  # noqa: E402
from forge.schemas import ProjectState, Stage  # noqa: E402


def _orchestrator(backend, sleep) -> StageOrchestrator:
    return StageOrchestrator(backend, "models/test", max_attempts=3, base_delay=1.0, sleep=sleep)


def _read_traces(tmp_path: Path) -> list:
    path = tmp_path / "traces.jsonl"
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


@pytest.mark.asyncio
async def test_idea_stage_writes_synthesized_idea(sleep_recorder, isolated_paths) -> None:
    backend = ScriptedBackend(["# Vision"])
    state = ProjectState(id="p1", idea_input="dog walking app")

    text = await _orchestrator(backend, sleep_recorder).advance(state, Stage.IDEA)

    assert text == "# Vision"
    assert state.synthesized_idea == "# Vision"
    assert state.current_stage == Stage.IDEA
    assert state.is_generating is False
    assert backend.requests[0].model == "models/test"
    statuses = [event["status"] for event in _read_traces(isolated_paths)]
    assert statuses == ["started", "completed"]


@pytest.mark.asyncio
async def test_empty_idea_input_is_rejected(sleep_recorder) -> None:
    backend = ScriptedBackend()
    with pytest.raises(PrerequisiteMissingError) as excinfo:
        await _orchestrator(backend, sleep_recorder).advance(ProjectState(id="p1"), Stage.IDEA)
    assert excinfo.value.stage == Stage.IDEA
    assert excinfo.value.prerequisite is None
    assert backend.calls == 0


@pytest.mark.asyncio
async def test_missing_prerequisite_never_calls_backend(sleep_recorder) -> None:
    backend = ScriptedBackend(["unused"])
    state = ProjectState(id="p1", idea_input="x", synthesized_idea="vision")

    with pytest.raises(PrerequisiteMissingError) as excinfo:
        await _orchestrator(backend, sleep_recorder).advance(state, Stage.PLANNING)

    assert excinfo.value.stage == Stage.PLANNING
    assert excinfo.value.prerequisite == Stage.PRD
    assert backend.calls == 0
    assert state.roadmap_output == ""
    assert state.is_generating is False


@pytest.mark.asyncio
async def test_research_stage_fills_mission_and_report_prompt(sleep_recorder) -> None:
    backend = ScriptedBackend(["Your mission is to find rivals."])
    state = ProjectState(id="p1", idea_input="raw", synthesized_idea="Vision Z")

    await _orchestrator(backend, sleep_recorder).advance(state, Stage.RESEARCH)

    assert state.research_mission == "Your mission is to find rivals."
    assert "Vision Z" in state.research_report_prompt
    assert state.current_stage == Stage.RESEARCH


@pytest.mark.asyncio
async def test_failure_leaves_outputs_untouched(sleep_recorder, isolated_paths) -> None:
    backend = ScriptedBackend([NonRetryableBackendError(FailureKind.POLICY)])
    state = ProjectState(id="p1", idea_input="x", synthesized_idea="vision", prd_output="old prd")
    before = state.model_dump()

    with pytest.raises(NonRetryableBackendError):
        await _orchestrator(backend, sleep_recorder).advance(state, Stage.PRD)

    assert state.model_dump() == before
    assert state.is_generating is False
    events = _read_traces(isolated_paths)
    assert events[-1]["status"] == "failed"
    assert events[-1]["details"]["error"] == "NonRetryableBackendError"


@pytest.mark.asyncio
async def test_exhausted_retries_clear_flag(sleep_recorder) -> None:
    backend = ScriptedBackend([TransientBackendError()] * 3)
    state = ProjectState(id="p1", idea_input="x")

    with pytest.raises(GenerationExhaustedError):
        await _orchestrator(backend, sleep_recorder).advance(state, Stage.IDEA)

    assert backend.calls == 3
    assert sleep_recorder.delays == [1.0, 2.0]
    assert state.synthesized_idea == ""
    assert state.is_generating is False


@pytest.mark.asyncio
async def test_concurrent_advance_is_rejected() -> None:
    release = asyncio.Event()

    class SlowBackend:
        async def generate(self, request):
            await release.wait()
            return "vision"

    orchestrator = StageOrchestrator(SlowBackend(), "models/test")
    state = ProjectState(id="p1", idea_input="x")
    first = asyncio.create_task(orchestrator.advance(state, Stage.IDEA))
    await asyncio.sleep(0)

    assert state.is_generating is True
    with pytest.raises(GenerationInProgressError):
        await orchestrator.advance(state, Stage.IDEA)

    release.set()
    assert await first == "vision"
    assert state.is_generating is False


@pytest.mark.asyncio
async def test_regenerating_upstream_keeps_downstream_outputs(sleep_recorder) -> None:
    backend = ScriptedBackend(["new prd"])
    state = ProjectState(
        id="p1",
        idea_input="x",
        synthesized_idea="vision",
        prd_output="old prd",
        roadmap_output="plan built on old prd",
    )

    await _orchestrator(backend, sleep_recorder).advance(state, Stage.PRD)

    assert state.prd_output == "new prd"
    assert state.roadmap_output == "plan built on old prd"
    assert state.current_stage == Stage.PRD


@pytest.mark.asyncio
async def test_full_pipeline_in_order(sleep_recorder) -> None:
    backend = ScriptedBackend(["vision", "mission", "prd", "plan", "design", "master prompt"])
    state = ProjectState(id="p1", idea_input="x")
    orchestrator = _orchestrator(backend, sleep_recorder)

    for stage in Stage:
        await orchestrator.advance(state, stage)

    assert state.code_prompt_output == "master prompt"
    assert state.design_system_output == "design"
    assert state.current_stage == Stage.CODE
    temperatures = [request.generation.temperature for request in backend.requests]
    assert temperatures == [0.7, 0.7, 0.7, 0.5, 0.9, 0.2]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("stage", "prerequisite"),
    [
        (Stage.RESEARCH, Stage.IDEA),
        (Stage.PRD, Stage.IDEA),
        (Stage.PLANNING, Stage.PRD),
        (Stage.DESIGN, Stage.PLANNING),
        (Stage.CODE, Stage.DESIGN),
    ],
)
async def test_each_stage_requires_its_prerequisite(stage, prerequisite, sleep_recorder) -> None:
    backend = ScriptedBackend(["unused"])
    outputs = {
        "synthesized_idea": "vision",
        "prd_output": "prd",
        "roadmap_output": "plan",
        "design_system_output": "design",
    }
    slot = {
        Stage.IDEA: "synthesized_idea",
        Stage.PRD: "prd_output",
        Stage.PLANNING: "roadmap_output",
        Stage.DESIGN: "design_system_output",
    }[prerequisite]
    outputs[slot] = ""
    state = ProjectState(id="p1", idea_input="x", **outputs)

    with pytest.raises(PrerequisiteMissingError) as excinfo:
        await _orchestrator(backend, sleep_recorder).advance(state, stage)

    assert excinfo.value.prerequisite == prerequisite
    assert backend.calls == 0


@pytest.mark.asyncio
async def test_output_arriving_after_reset_is_discarded(isolated_paths) -> None:
    release = asyncio.Event()

    class GatedBackend:
        async def generate(self, request):
            await release.wait()
            return "# PRD"

    orchestrator = StageOrchestrator(GatedBackend(), "models/test")
    state = ProjectState(id="p1", idea_input="x", synthesized_idea="vision")
    pending = asyncio.create_task(orchestrator.advance(state, Stage.PRD))
    await asyncio.sleep(0)

    state.reset()
    release.set()
    with pytest.raises(GenerationDiscardedError):
        await pending

    assert state.prd_output == ""
    assert state.synthesized_idea == ""
    assert state.current_stage == Stage.IDEA
    assert state.is_generating is False
    assert Stage.PLANNING not in advanceable_stages(state)
    assert _read_traces(isolated_paths)[-1]["status"] == "discarded"
