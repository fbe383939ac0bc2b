"""CLI to list, inspect, and delete stored projects."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from forge.graph import STAGE_ORDER, STAGE_SPECS, is_completed
from forge.persistence import ProjectStore
from forge.storage import JsonFileStore
from forge.utils import configure_logging


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage stored Forge projects")
    parser.add_argument("--user", default=os.getenv("FORGE_USER", "local"), help="User id")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List projects, most recently updated first")
    show = sub.add_parser("show", help="Show stage progress for a project")
    show.add_argument("project_id")
    delete = sub.add_parser("delete", help="Delete a project")
    delete.add_argument("project_id")
    return parser.parse_args()


async def run(args: argparse.Namespace) -> int:
    projects = ProjectStore(JsonFileStore(), args.user)
    if args.command == "list":
        for meta in await projects.list_projects():
            stamp = meta.updated_at.isoformat() if meta.updated_at else "never"
            print(f"{meta.id}  {stamp}  {meta.title}")
        return 0

    if args.command == "show":
        state = await projects.load(args.project_id)
        if state is None:
            print(f"Project {args.project_id} not found")
            return 1
        print(f"{state.title} ({state.id}), current stage: {state.current_stage.value}")
        print(f"Research documents: {len(state.research)}")
        for stage in STAGE_ORDER:
            mark = "x" if is_completed(state, stage) else " "
            print(f"  [{mark}] {STAGE_SPECS[stage].label}")
        return 0

    await projects.delete(args.project_id)
    print(f"Deleted project {args.project_id}")
    return 0


def main() -> None:
    configure_logging()
    args = parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
