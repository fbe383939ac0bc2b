"""CLI to run the generation pipeline for a new project."""

from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from forge.graph import STAGE_ORDER, STAGE_SPECS, build_stage_graph, stage_output
from forge.schemas import Stage
from forge.session import build_session
from forge.utils import configure_logging


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the idea-to-code-prompt pipeline")
    parser.add_argument("--idea", required=True, help="Raw product idea text")
    parser.add_argument(
        "--research",
        nargs="*",
        default=[],
        help="Research files (.pdf, .txt, .md, .json) to attach before the PRD stage",
    )
    parser.add_argument("--title", default="Untitled Project", help="Project title")
    parser.add_argument("--user", default=os.getenv("FORGE_USER", "local"), help="User id")
    parser.add_argument(
        "--until",
        choices=[stage.value for stage in STAGE_ORDER],
        default=Stage.CODE.value,
        help="Last stage to generate",
    )
    parser.add_argument("--graph", action="store_true", help="Print a DOT graph when done")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> None:
    session = build_session(args.user)
    project_id = await session.create_project(args.title)
    session.update_idea_input(args.idea)
    for path in args.research:
        file_path = Path(path).expanduser()
        media_type, _ = mimetypes.guess_type(file_path.name)
        with file_path.open("rb") as handle:
            document = session.add_research_document(file_path.name, handle, media_type)
        logging.getLogger(__name__).info("Attached %s (%s)", document.name, document.kind.value)

    last = STAGE_ORDER.index(Stage(args.until))
    try:
        for stage in STAGE_ORDER[: last + 1]:
            await session.advance_stage(stage)
            print(f"\n===== {STAGE_SPECS[stage].label} =====\n")
            print(stage_output(session.state, stage))
    finally:
        await session.close()
    print(f"\nSaved project {project_id} for user {args.user}")
    if args.graph:
        print(build_stage_graph(session.state))


def main() -> None:
    configure_logging()
    args = parse_args()
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
