"""Per-user document stores holding serialized project state."""

from __future__ import annotations

import copy
import json
import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

from .errors import PersistenceError
from .utils import configure_logging, ensure_dirs

configure_logging()
logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"
_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]")


def get_projects_dir() -> Path:
    return Path(os.getenv("PROJECTS_DIR", ".data/projects")).expanduser()


class DocumentStore(Protocol):
    def get(self, user_id: str, project_id: str) -> Optional[dict]:
        ...

    def put(self, user_id: str, project_id: str, record: dict) -> None:
        ...

    def delete(self, user_id: str, project_id: str) -> None:
        ...

    def list_metadata(self, user_id: str) -> List[dict]:
        ...


def metadata_entry(project_id: str, record: dict) -> dict:
    return {
        "id": project_id,
        "title": record.get("title", ""),
        "updated_at": record.get("updated_at"),
    }


def _safe_segment(value: str) -> str:
    cleaned = _UNSAFE_SEGMENT.sub("_", value).strip(".")
    if not cleaned:
        raise PersistenceError(f"Invalid store key: {value!r}")
    return cleaned


class JsonFileStore:
    """One JSON file per project plus an `index.json` per user."""

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root).expanduser() if root is not None else get_projects_dir()

    def _user_dir(self, user_id: str) -> Path:
        return self.root / _safe_segment(user_id)

    def _project_path(self, user_id: str, project_id: str) -> Path:
        return self._user_dir(user_id) / f"{_safe_segment(project_id)}.json"

    def _index_path(self, user_id: str) -> Path:
        return self._user_dir(user_id) / INDEX_FILENAME

    def _read_index(self, user_id: str) -> Dict[str, dict]:
        path = self._index_path(user_id)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Index for user %s is corrupt; rebuilding it empty", user_id)
            return {}
        except OSError as exc:
            raise PersistenceError(f"Failed to read project index: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def _write_json(self, target: Path, payload: object) -> None:
        ensure_dirs(target.parent)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(target)

    def get(self, user_id: str, project_id: str) -> Optional[dict]:
        path = self._project_path(user_id, project_id)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Project file %s is corrupt; treating it as missing", path.name)
            return None
        except OSError as exc:
            raise PersistenceError(f"Failed to read project {project_id}: {exc}") from exc

    def put(self, user_id: str, project_id: str, record: dict) -> None:
        try:
            self._write_json(self._project_path(user_id, project_id), record)
            index = self._read_index(user_id)
            index[project_id] = metadata_entry(project_id, record)
            self._write_json(self._index_path(user_id), index)
        except OSError as exc:
            raise PersistenceError(f"Failed to write project {project_id}: {exc}") from exc
        logger.debug("Stored project %s for user %s", project_id, user_id)

    def delete(self, user_id: str, project_id: str) -> None:
        try:
            path = self._project_path(user_id, project_id)
            if path.exists():
                path.unlink()
            index = self._read_index(user_id)
            if index.pop(project_id, None) is not None:
                self._write_json(self._index_path(user_id), index)
        except OSError as exc:
            raise PersistenceError(f"Failed to delete project {project_id}: {exc}") from exc
        logger.info("Removed project %s for user %s", project_id, user_id)

    def list_metadata(self, user_id: str) -> List[dict]:
        return list(self._read_index(user_id).values())


class InMemoryStore:
    """Dictionary-backed store; set `fail = True` to simulate an unreachable backend."""

    def __init__(self) -> None:
        self.records: Dict[Tuple[str, str], dict] = {}
        self.writes: List[Tuple[str, str, dict]] = []
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise PersistenceError("In-memory store is unavailable")

    def get(self, user_id: str, project_id: str) -> Optional[dict]:
        self._check()
        record = self.records.get((user_id, project_id))
        return copy.deepcopy(record) if record is not None else None

    def put(self, user_id: str, project_id: str, record: dict) -> None:
        self._check()
        self.records[(user_id, project_id)] = copy.deepcopy(record)
        self.writes.append((user_id, project_id, copy.deepcopy(record)))

    def delete(self, user_id: str, project_id: str) -> None:
        self._check()
        self.records.pop((user_id, project_id), None)

    def list_metadata(self, user_id: str) -> List[dict]:
        self._check()
        return [
            metadata_entry(project_id, record)
            for (owner, project_id), record in self.records.items()
            if owner == user_id
        ]
