"""UI-facing session API: one signed-in user working on one active project."""

from __future__ import annotations

import logging
from typing import List, Optional, Set

from .errors import NoActiveProjectError
from .graph import advanceable_stages
from .ingestion import ByteSource, ingest_document
from .llm import GeminiBackend
from .orchestrator import StageOrchestrator
from .persistence import ProjectStore
from .schemas import (
    DEFAULT_TITLE,
    DocumentSource,
    ProjectMetadata,
    ProjectState,
    ResearchDocument,
    Stage,
)
from .storage import JsonFileStore
from .utils import configure_logging

configure_logging()
logger = logging.getLogger(__name__)


class ForgeSession:
    def __init__(
        self,
        user_id: str,
        projects: ProjectStore,
        orchestrator: StageOrchestrator,
    ) -> None:
        self.user_id = user_id
        self.projects = projects
        self.orchestrator = orchestrator
        self.state: Optional[ProjectState] = None
        self._deleted: Set[str] = set()

    def _require_state(self) -> ProjectState:
        if self.state is None:
            raise NoActiveProjectError("Create or load a project first.")
        return self.state

    def _touch(self) -> None:
        self.projects.schedule_save(self._require_state())

    async def _flush_previous(self) -> None:
        # The previous project's last edits must land before the next project loads.
        await self.projects.flush()

    async def advance_stage(self, stage: Stage) -> str:
        """Generate one stage for the active project and schedule an autosave."""
        state = self._require_state()
        text = await self.orchestrator.advance(state, stage)
        if self.state is state:
            self._touch()
        elif state.id not in self._deleted:
            await self.projects.save(state)
        return text

    def advanceable_stages(self) -> List[Stage]:
        return advanceable_stages(self._require_state())

    def add_research_document(
        self,
        name: str,
        stream: ByteSource,
        media_type: Optional[str] = None,
        source: DocumentSource = DocumentSource.UPLOAD,
    ) -> ResearchDocument:
        state = self._require_state()
        document = ingest_document(name, stream, media_type, source)
        state.research.append(document)
        self._touch()
        return document

    def remove_research_document(self, document_id: str) -> bool:
        state = self._require_state()
        remaining = [doc for doc in state.research if doc.id != document_id]
        if len(remaining) == len(state.research):
            return False
        state.research = remaining
        self._touch()
        return True

    def update_idea_input(self, text: str) -> None:
        self._require_state().idea_input = text
        self._touch()

    def rename_project(self, title: str) -> None:
        self._require_state().title = title
        self._touch()

    def reset_project(self) -> None:
        """Clear outputs, research, and idea input while keeping id and title."""
        self._require_state().reset()
        self._touch()

    async def create_project(self, title: str = DEFAULT_TITLE) -> str:
        await self._flush_previous()
        project_id = await self.projects.create(title)
        self.state = await self.projects.load(project_id)
        return project_id

    async def list_projects(self) -> List[ProjectMetadata]:
        return await self.projects.list_projects()

    async def load_project(self, project_id: str) -> Optional[ProjectState]:
        """Make `project_id` the active project; returns None if it does not exist."""
        await self._flush_previous()
        state = await self.projects.load(project_id)
        if state is None:
            return None
        self.state = state
        return state

    async def delete_project(self, project_id: str) -> None:
        """Delete a project. Deleting the active one leaves no project active."""
        await self.projects.delete(project_id)
        self._deleted.add(project_id)
        if self.state is not None and self.state.id == project_id:
            self.state = None
            logger.info("Active project %s deleted; caller must pick another", project_id)

    async def close(self) -> None:
        await self.projects.flush()


def build_session(user_id: str) -> ForgeSession:
    """Wire a session with the Gemini backend and the JSON file store."""
    projects = ProjectStore(JsonFileStore(), user_id)
    return ForgeSession(user_id, projects, StageOrchestrator(GeminiBackend()))
