"""Assemble stage-specific multimodal payloads from project state."""

from __future__ import annotations

from typing import List

from .prompts import (
    CODE_TEMPLATE,
    DESIGN_TEMPLATE,
    GENERATION_PARAMETERS,
    PLAN_TEMPLATE,
    PRD_TEMPLATE,
    RESEARCH_MISSION_TEMPLATE,
    RESEARCH_SOURCE_TEMPLATE,
    SYSTEM_INSTRUCTIONS,
)
from .schemas import (
    BlobPart,
    DocumentKind,
    ProjectState,
    ResearchDocument,
    Stage,
    StagePayload,
    TextPart,
)

DESIGN_CONTEXT_CHARS = 3000
CODE_CONTEXT_CHARS = 12000
TRUNCATION_MARKER = "... (truncated for context)"


def truncate(text: str, limit: int) -> str:
    """Keep at most `limit` characters, marking the cut when one happens."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def best_idea_text(state: ProjectState) -> str:
    return state.synthesized_idea or state.idea_input


def _research_part(document: ResearchDocument) -> TextPart | BlobPart:
    if document.kind == DocumentKind.BINARY:
        return BlobPart(media_type=document.media_type, data=document.content)
    return TextPart(
        text=RESEARCH_SOURCE_TEMPLATE.format(name=document.name, content=document.content)
    )


def _parts_for(state: ProjectState, stage: Stage) -> List[TextPart | BlobPart]:
    if stage == Stage.IDEA:
        return [TextPart(text=state.idea_input)]
    if stage == Stage.RESEARCH:
        return [TextPart(text=RESEARCH_MISSION_TEMPLATE.format(idea=best_idea_text(state)))]
    if stage == Stage.PRD:
        parts: List[TextPart | BlobPart] = [
            TextPart(text=PRD_TEMPLATE.format(idea=best_idea_text(state)))
        ]
        parts.extend(_research_part(document) for document in state.research)
        return parts
    if stage == Stage.PLANNING:
        return [TextPart(text=PLAN_TEMPLATE.format(prd=state.prd_output))]
    if stage == Stage.DESIGN:
        return [
            TextPart(
                text=DESIGN_TEMPLATE.format(
                    prd=truncate(state.prd_output, DESIGN_CONTEXT_CHARS),
                    plan=truncate(state.roadmap_output, DESIGN_CONTEXT_CHARS),
                )
            )
        ]
    if stage == Stage.CODE:
        return [
            TextPart(
                text=CODE_TEMPLATE.format(
                    idea=truncate(best_idea_text(state), CODE_CONTEXT_CHARS),
                    design=truncate(state.design_system_output, CODE_CONTEXT_CHARS),
                    plan=truncate(state.roadmap_output, CODE_CONTEXT_CHARS),
                )
            )
        ]
    raise ValueError(f"Unknown stage: {stage!r}")


def assemble(state: ProjectState, stage: Stage) -> StagePayload:
    """Build the request payload for `stage`; prerequisites are assumed present."""
    return StagePayload(
        system_instruction=SYSTEM_INSTRUCTIONS[stage],
        generation=GENERATION_PARAMETERS[stage],
        parts=_parts_for(state, stage),
    )
