"""Debounced autosave and project lifecycle on top of a document store."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from pydantic import ValidationError

from .errors import PersistenceError
from .schemas import DEFAULT_TITLE, ProjectMetadata, ProjectState
from .storage import DocumentStore
from .utils import configure_logging, env_float, utc_now

configure_logging()
logger = logging.getLogger(__name__)

AUTOSAVE_DELAY = env_float("AUTOSAVE_DELAY", 2.0)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class DebouncedTask:
    """Single-slot pending call that fires once a quiet period has elapsed.

    Each `schedule` replaces the pending arguments and restarts the timer, so a
    burst of calls delivers only the last arguments. Once the quiet period has
    passed the write is no longer cancellable; `flush` waits for it.
    """

    def __init__(self, delay: float, callback: Callable[..., Awaitable[None]]) -> None:
        self.delay = delay
        self._callback = callback
        self._args: Optional[Tuple[Any, ...]] = None
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._args is not None

    @property
    def pending_args(self) -> Optional[Tuple[Any, ...]]:
        return self._args

    def schedule(self, *args: Any) -> None:
        self._cancel_timer()
        self._args = args
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_fire())

    def cancel(self) -> bool:
        """Drop the pending call; returns True if there was one."""
        had_pending = self._args is not None
        self._cancel_timer()
        self._args = None
        return had_pending

    async def flush(self) -> None:
        """Run the pending call now, after any write already in progress."""
        self._cancel_timer()
        await self.wait_inflight()
        await self._fire()

    async def wait_inflight(self) -> None:
        """Wait for a call that has already started; a pending one stays pending."""
        inflight = self._inflight
        if inflight is not None and inflight is not asyncio.current_task():
            await inflight

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def _wait_then_fire(self) -> None:
        await asyncio.sleep(self.delay)
        self._timer = None
        self._inflight = asyncio.current_task()
        try:
            await self._fire()
        except Exception:  # noqa: BLE001
            logger.exception("Debounced call failed")
        finally:
            self._inflight = None

    async def _fire(self) -> None:
        args = self._args
        self._args = None
        if args is None:
            return
        await self._callback(*args)


class ProjectStore:
    """Project lifecycle for one user, with debounced autosave."""

    def __init__(
        self,
        store: DocumentStore,
        user_id: str,
        autosave_delay: Optional[float] = None,
    ) -> None:
        self.store = store
        self.user_id = user_id
        delay = AUTOSAVE_DELAY if autosave_delay is None else autosave_delay
        self._autosave = DebouncedTask(delay, self._autosave_write)

    @property
    def save_pending(self) -> bool:
        return self._autosave.pending

    async def create(self, title: str = DEFAULT_TITLE) -> str:
        """Allocate a project id and persist an empty project under it."""
        state = ProjectState(id=str(uuid.uuid4()), title=title)
        await self.save(state)
        logger.info("Created project %s (%s) for user %s", state.id, title, self.user_id)
        return state.id

    async def list_projects(self) -> List[ProjectMetadata]:
        entries = await asyncio.to_thread(self.store.list_metadata, self.user_id)
        projects = [ProjectMetadata.model_validate(entry) for entry in entries]
        projects.sort(key=lambda item: item.updated_at or _EPOCH, reverse=True)
        return projects

    async def load(self, project_id: str) -> Optional[ProjectState]:
        """Fetch a project; returns None when it does not exist."""
        record = await asyncio.to_thread(self.store.get, self.user_id, project_id)
        if record is None:
            logger.info("Project %s not found for user %s", project_id, self.user_id)
            return None
        try:
            return ProjectState.from_record(record)
        except ValidationError as exc:
            raise PersistenceError(f"Stored project {project_id} is invalid: {exc}") from exc

    async def delete(self, project_id: str) -> None:
        """Remove a project, after any autosave of it that is already writing."""
        self._discard_pending_for(project_id)
        await self._autosave.wait_inflight()
        self._discard_pending_for(project_id)
        await asyncio.to_thread(self.store.delete, self.user_id, project_id)

    def _discard_pending_for(self, project_id: str) -> None:
        pending = self._autosave.pending_args
        if pending is not None and pending[0].id == project_id:
            self._autosave.cancel()
            logger.info("Discarded pending save for deleted project %s", project_id)

    async def save(self, state: ProjectState, *, stamp: bool = True) -> None:
        """Write `state` immediately and refresh its index entry."""
        if stamp:
            state.updated_at = utc_now()
        record = state.to_record()
        await asyncio.to_thread(self.store.put, self.user_id, state.id, record)
        logger.debug("Saved project %s", state.id)

    def schedule_save(self, state: ProjectState) -> None:
        """Debounce a save of `state` as it is right now.

        The live state is stamped here, so it carries the same `updated_at` as the
        record the snapshot eventually writes.
        """
        state.updated_at = utc_now()
        self._autosave.schedule(state.model_copy(deep=True))

    async def flush(self) -> None:
        await self._autosave.flush()

    def discard_pending(self) -> bool:
        return self._autosave.cancel()

    async def _autosave_write(self, snapshot: ProjectState) -> None:
        try:
            await self.save(snapshot, stamp=False)
        except PersistenceError as exc:
            logger.error("Autosave of project %s dropped: %s", snapshot.id, exc)
