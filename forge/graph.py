"""Static stage dependency graph for the generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .schemas import ProjectState, Stage


@dataclass(frozen=True)
class StageSpec:
    stage: Stage
    label: str
    prerequisite: Optional[Stage]
    slots: Tuple[str, ...]

    @property
    def primary_slot(self) -> str:
        return self.slots[0]


# Research is a side branch off Idea: uploaded documents are optional, so PRD
# depends on the idea directly.
STAGE_SPECS: Dict[Stage, StageSpec] = {
    Stage.IDEA: StageSpec(Stage.IDEA, "Idea", None, ("synthesized_idea",)),
    Stage.RESEARCH: StageSpec(
        Stage.RESEARCH,
        "Research",
        Stage.IDEA,
        ("research_mission", "research_report_prompt"),
    ),
    Stage.PRD: StageSpec(Stage.PRD, "PRD", Stage.IDEA, ("prd_output",)),
    Stage.PLANNING: StageSpec(Stage.PLANNING, "Planning", Stage.PRD, ("roadmap_output",)),
    Stage.DESIGN: StageSpec(Stage.DESIGN, "Design", Stage.PLANNING, ("design_system_output",)),
    Stage.CODE: StageSpec(Stage.CODE, "Code", Stage.DESIGN, ("code_prompt_output",)),
}

STAGE_ORDER: List[Stage] = list(STAGE_SPECS)


def prerequisite_for(stage: Stage) -> Optional[Stage]:
    return STAGE_SPECS[stage].prerequisite


def stage_output(state: ProjectState, stage: Stage) -> str:
    """Return the primary artifact text a stage has written into `state`."""
    return getattr(state, STAGE_SPECS[stage].primary_slot)


def is_completed(state: ProjectState, stage: Stage) -> bool:
    return bool(stage_output(state, stage).strip())


def missing_prerequisite(state: ProjectState, stage: Stage) -> Optional[Stage]:
    """Return the prerequisite stage whose output is still empty, if any."""
    prerequisite = prerequisite_for(stage)
    if prerequisite is not None and not is_completed(state, prerequisite):
        return prerequisite
    return None


def advanceable_stages(state: ProjectState) -> List[Stage]:
    """Stages whose prerequisites are currently satisfied, in pipeline order."""
    ready = []
    for stage in STAGE_ORDER:
        if stage == Stage.IDEA and not state.idea_input.strip():
            continue
        if missing_prerequisite(state, stage) is None:
            ready.append(stage)
    return ready


def downstream_of(stage: Stage) -> List[Stage]:
    """Every stage that transitively depends on `stage`, in pipeline order."""
    affected = {stage}
    result: List[Stage] = []
    for candidate in STAGE_ORDER:
        prerequisite = prerequisite_for(candidate)
        if prerequisite in affected:
            affected.add(candidate)
            result.append(candidate)
    return result


def stale_stages(state: ProjectState, stage: Stage) -> List[Stage]:
    """Completed stages built on an older version of `stage`'s output."""
    return [candidate for candidate in downstream_of(stage) if is_completed(state, candidate)]


def _dot_header() -> str:
    return "digraph pipeline {\n  rankdir=LR;\n  node [fontsize=12];\n"


def _node(name: str, color: str) -> str:
    safe_name = name.replace(" ", "")
    return f'{safe_name} [label="{name}", shape=box, style="filled", color="{color}", fontcolor="white"]'


def build_stage_graph(state: ProjectState) -> str:
    """Return a Graphviz DOT string colouring stages by completion."""
    dot = _dot_header()
    nodes = []
    edges = []
    ready = set(advanceable_stages(state))
    for stage in STAGE_ORDER:
        spec = STAGE_SPECS[stage]
        if is_completed(state, stage):
            color = "#0f9d58"
        elif stage in ready:
            color = "#4C8BF5"
        else:
            color = "#5f6368"
        nodes.append(_node(spec.label, color))
        if spec.prerequisite is not None:
            edges.append(f"{STAGE_SPECS[spec.prerequisite].label} -> {spec.label}")

    dot += "  " + ";\n  ".join(nodes) + ";\n"
    if edges:
        dot += "  " + ";\n  ".join(edges) + ";\n"
    dot += "}\n"
    return dot
