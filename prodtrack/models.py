from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .hours import parse_hours
from .personnel import EDITORS, QC_PERSONNEL


class ProjectStatus(str, Enum):
    ONGOING = "ongoing"
    DONE = "done"
    ARCHIVED = "archived"


class InvalidTransition(ValueError):
    pass


class UnknownLogKind(LookupError):
    pass


STATUS_TRANSITIONS: Dict[ProjectStatus, Tuple[ProjectStatus, ...]] = {
    ProjectStatus.ONGOING: (ProjectStatus.DONE,),
    ProjectStatus.DONE: (ProjectStatus.ARCHIVED, ProjectStatus.ONGOING),
    ProjectStatus.ARCHIVED: (ProjectStatus.DONE,),
}


def coerce_status(value: Any) -> ProjectStatus:
    try:
        return ProjectStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown status: {value!r}") from None


def next_statuses(current: Any) -> Tuple[ProjectStatus, ...]:
    return STATUS_TRANSITIONS[coerce_status(current)]


def transition(current: Any, target: Any) -> ProjectStatus:
    source = coerce_status(current)
    destination = coerce_status(target)
    if destination not in STATUS_TRANSITIONS[source]:
        raise InvalidTransition(
            f"Cannot move a project from {source.value} to {destination.value}."
        )
    return destination


NUMERIC_FIELDS = ("est_rt", "total_edited", "remaining_raw")
BOOLEAN_FIELDS = ("is_on_hold", "is_new_edit")
TEXT_FIELDS = (
    "title",
    "notes",
    "editor",
    "editor_note",
    "master",
    "master_note",
    "pz_qc",
    "pz_qc_note",
)
DATE_FIELDS = ("due_date", "original_due_date")
EDITABLE_FIELDS = TEXT_FIELDS + DATE_FIELDS + NUMERIC_FIELDS + BOOLEAN_FIELDS


@dataclass
class Project:
    id: int
    title: str = ""
    due_date: Optional[str] = None
    original_due_date: Optional[str] = None
    notes: str = ""
    editor: str = ""
    editor_note: str = ""
    master: str = ""
    master_note: str = ""
    pz_qc: str = ""
    pz_qc_note: str = ""
    est_rt: float = 0.0
    total_edited: float = 0.0
    remaining_raw: float = 0.0
    is_on_hold: bool = False
    is_new_edit: bool = False
    status: ProjectStatus = ProjectStatus.ONGOING
    created_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Project":
        known = {f.name for f in fields(cls)}
        values = {key: data[key] for key in known if key in data}
        values.update(clean_project_fields(values))
        if "status" in values:
            values["status"] = coerce_status(values["status"])
        values["id"] = int(data["id"])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def _clean_date(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    datetime.strptime(text, "%Y-%m-%d")
    return text


def clean_project_fields(updates: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate editable project fields, raising ``ValueError`` on the first bad value."""
    cleaned: Dict[str, Any] = {}
    for key, value in updates.items():
        if key in NUMERIC_FIELDS:
            cleaned[key] = parse_hours(value)
        elif key in BOOLEAN_FIELDS:
            if isinstance(value, str):
                cleaned[key] = value.strip().lower() in ("1", "true", "yes", "on")
            else:
                cleaned[key] = bool(value)
        elif key in DATE_FIELDS:
            try:
                cleaned[key] = _clean_date(value)
            except ValueError:
                raise ValueError(f"Invalid date for {key}: {value!r}") from None
        elif key in TEXT_FIELDS:
            cleaned[key] = "" if value is None else str(value)
        elif key in ("id", "status", "created_at"):
            cleaned[key] = value
        else:
            raise ValueError(f"Unknown project field: {key}")
    return cleaned


PUNCH = "P"
ROLL = "R"
LOG_FLAGS = (PUNCH, ROLL)


@dataclass(frozen=True)
class LogKind:
    name: str
    table: str
    person_column: str
    roster: Tuple[str, ...]
    has_flag: bool = False
    has_note: bool = True
    project_field: str = "editor"


EDITOR_LOGS = LogKind(
    name="editor",
    table="productivity_logs",
    person_column="editor_name",
    roster=EDITORS,
    has_flag=True,
    project_field="editor",
)

QC_LOGS = LogKind(
    name="qc",
    table="qc_productivity_logs",
    person_column="qc_name",
    roster=QC_PERSONNEL,
    project_field="pz_qc",
)

LOG_KINDS: Dict[str, LogKind] = {kind.name: kind for kind in (EDITOR_LOGS, QC_LOGS)}


def get_log_kind(name: str) -> LogKind:
    try:
        return LOG_KINDS[name]
    except KeyError:
        raise UnknownLogKind(f"Unknown log kind: {name}") from None


@dataclass
class LogEntry:
    project_id: int
    person: str
    date: str
    hours_worked: float = 0.0
    note: Optional[str] = None
    flag: Optional[str] = None
    id: Optional[int] = field(default=None, compare=False)

    @property
    def key(self) -> Tuple[int, str, str]:
        return (self.project_id, self.person, self.date)

    def to_dict(self, kind: LogKind) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "project_id": self.project_id,
            kind.person_column: self.person,
            "date": self.date,
            "hours_worked": self.hours_worked,
        }
        if kind.has_note:
            data["note"] = self.note
        if kind.has_flag:
            data["flag"] = self.flag
        return data


def clean_flag(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().upper()
    if not text:
        return None
    if text not in LOG_FLAGS:
        raise ValueError(f"Unknown punch/roll flag: {value!r}")
    return text


def is_empty_entry(hours: float, note: Optional[str]) -> bool:
    return hours <= 0 and not (note or "").strip()
