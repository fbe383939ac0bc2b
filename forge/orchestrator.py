"""Dependency-aware orchestration of the six generation stages."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Optional

from .context import assemble, best_idea_text
from .errors import (
    GenerationDiscardedError,
    GenerationInProgressError,
    PrerequisiteMissingError,
)
from .graph import STAGE_SPECS, missing_prerequisite, stale_stages
from .llm import CHAT_MODEL
from .prompts import build_research_report_prompt
from .schemas import GenerationRequest, ProjectState, Stage
from .tracing import log_trace_event
from .transport import GenerationBackend, SleepFn, generate_with_retry
from .utils import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


class StageOrchestrator:
    """Drive one stage at a time: check prerequisites, call the backend, commit.

    Writes are all-or-nothing. A failed call leaves every output slot as it was,
    and the in-progress flag is always cleared before the error propagates. Output
    that arrives after the project was reset is dropped.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        model: Optional[str] = None,
        *,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.model = model or CHAT_MODEL
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep

    def check_prerequisites(self, state: ProjectState, stage: Stage) -> None:
        if stage == Stage.IDEA and not state.idea_input.strip():
            raise PrerequisiteMissingError(stage, None)
        prerequisite = missing_prerequisite(state, stage)
        if prerequisite is not None:
            raise PrerequisiteMissingError(stage, prerequisite)

    def build_request(self, state: ProjectState, stage: Stage) -> GenerationRequest:
        return GenerationRequest.from_payload(self.model, assemble(state, stage))

    async def advance(self, state: ProjectState, stage: Stage) -> str:
        """Generate `stage` for `state` and store the artifact; returns the new text."""
        if state.is_generating:
            raise GenerationInProgressError(
                f"Project {state.id} already has a generation in flight."
            )
        self.check_prerequisites(state, stage)

        state.is_generating = True
        resets_before = state.reset_count
        started = time.monotonic()
        try:
            log_trace_event(stage, "started", state.id)
            request = self.build_request(state, stage)
            extras = self._derived_outputs(state, stage)
            logger.info(
                "Generating %s for project %s (%d parts)", stage.value, state.id, len(request.parts)
            )
            text = await generate_with_retry(
                self.backend,
                request,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                sleep=self.sleep,
            )
        except Exception as exc:
            logger.error("Stage %s failed for project %s: %s", stage.value, state.id, exc)
            log_trace_event(
                stage, "failed", state.id, {"error": type(exc).__name__, "message": str(exc)}
            )
            raise
        finally:
            state.is_generating = False

        if state.reset_count != resets_before:
            logger.warning(
                "Project %s was reset while %s was generating; output discarded",
                state.id,
                stage.value,
            )
            log_trace_event(stage, "discarded", state.id)
            raise GenerationDiscardedError(
                f"Project {state.id} was reset during the {stage.value} stage."
            )

        self._commit(state, stage, text, extras)
        elapsed = time.monotonic() - started
        log_trace_event(
            stage, "completed", state.id, {"chars": len(text), "seconds": round(elapsed, 3)}
        )
        stale = stale_stages(state, stage)
        if stale:
            logger.info(
                "Regenerated %s; downstream stages now stale: %s",
                stage.value,
                ", ".join(s.value for s in stale),
            )
        return text

    def _derived_outputs(self, state: ProjectState, stage: Stage) -> Dict[str, str]:
        if stage == Stage.RESEARCH:
            return {"research_report_prompt": build_research_report_prompt(best_idea_text(state))}
        return {}

    def _commit(
        self, state: ProjectState, stage: Stage, text: str, extras: Dict[str, str]
    ) -> None:
        spec = STAGE_SPECS[stage]
        setattr(state, spec.primary_slot, text)
        for slot, value in extras.items():
            setattr(state, slot, value)
        state.current_stage = stage