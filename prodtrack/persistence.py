from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .models import EDITABLE_FIELDS, Project, ProjectStatus, clean_project_fields, transition
from .seed import initial_projects

logger = logging.getLogger(__name__)

Watcher = Callable[[Optional[str]], None]

PROJECTS_KEY = "projects"


class LocalStateStore:
    """String key/value store kept in a single JSON file.

    Several processes may share the file. :meth:`poll` notices writes made by
    the others and hands the new raw value of each watched key to its watchers.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._watchers: Dict[str, List[Watcher]] = {}
        self._snapshot = self._read()

    def _read(self) -> Dict[str, str]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(text or "{}")
        except json.JSONDecodeError as exc:
            logger.error("unreadable local state %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(key): value for key, value in data.items() if isinstance(value, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    def get(self, key: str) -> Optional[str]:
        return self._snapshot.get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
        self._snapshot = data

    def watch(self, key: str, callback: Watcher) -> None:
        self._watchers.setdefault(key, []).append(callback)

    def poll(self) -> List[str]:
        previous = self._snapshot
        self._snapshot = self._read()
        changed = [
            key
            for key in set(previous) | set(self._snapshot)
            if previous.get(key) != self._snapshot.get(key)
        ]
        for key in sorted(changed):
            for callback in self._watchers.get(key, []):
                callback(self._snapshot.get(key))
        return sorted(changed)


def _decode_projects(raw: str) -> List[Project]:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("stored project list is not a JSON array")
    return [Project.from_dict(item) for item in data]


class LocalProjectList:
    """Project list persisted to a :class:`LocalStateStore` under one key.

    Read once when created, written after every mutation. Unreadable data
    falls back to the seed board. A newer list written by another process
    replaces the local one wholesale.
    """

    def __init__(
        self,
        store: LocalStateStore,
        key: str = PROJECTS_KEY,
        seed: Callable[[], List[Project]] = initial_projects,
    ) -> None:
        self.store = store
        self.key = key
        self.seed = seed
        self.projects = self._load()
        store.watch(key, self._on_external_change)

    def _load(self) -> List[Project]:
        raw = self.store.get(self.key)
        if not raw:
            return self.seed()
        try:
            return _decode_projects(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("could not parse stored projects, using seed data: %s", exc)
            return self.seed()

    def _on_external_change(self, raw: Optional[str]) -> None:
        if not raw:
            return
        try:
            self.projects = _decode_projects(raw)
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("ignoring unreadable project list from another writer: %s", exc)

    def save(self) -> None:
        self.store.set(self.key, json.dumps([project.to_dict() for project in self.projects]))

    def get(self, project_id: int) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def list(self, status: Optional[str] = None) -> List[Project]:
        if status is None:
            return list(self.projects)
        return [project for project in self.projects if project.status.value == status]

    def create(self, values: Optional[Mapping[str, Any]] = None) -> Project:
        cleaned = clean_project_fields(values or {})
        cleaned.setdefault("title", "New Project - Click to Edit Title")
        if "due_date" in cleaned and "original_due_date" not in cleaned:
            cleaned["original_due_date"] = cleaned["due_date"]
        cleaned["id"] = max((project.id for project in self.projects), default=0) + 1
        cleaned["status"] = ProjectStatus.ONGOING.value
        cleaned["created_at"] = datetime.utcnow().isoformat(timespec="seconds")
        project = Project.from_dict(cleaned)
        self.projects.insert(0, project)
        self.save()
        return project

    def update_match(self, project_id: int, updates: Mapping[str, Any]) -> Optional[Project]:
        unknown = [key for key in updates if key not in EDITABLE_FIELDS]
        if unknown:
            raise ValueError(f"Unknown project field: {unknown[0]}")
        project = self.get(project_id)
        if project is None:
            return None
        updated = Project.from_dict({**project.to_dict(), **updates})
        self.projects = [updated if item.id == project_id else item for item in self.projects]
        self.save()
        return updated

    def set_status(self, project_id: int, target: str) -> Optional[Project]:
        project = self.get(project_id)
        if project is None:
            return None
        status = transition(project.status, target)
        updated = replace(project, status=status)
        self.projects = [updated if item.id == project_id else item for item in self.projects]
        self.save()
        return updated

    def delete(self, project_id: int) -> bool:
        before = len(self.projects)
        self.projects = [item for item in self.projects if item.id != project_id]
        if len(self.projects) == before:
            return False
        self.save()
        return True
