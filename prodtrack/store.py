from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from .models import (
    EDITABLE_FIELDS,
    LogEntry,
    LogKind,
    Project,
    clean_project_fields,
    is_empty_entry,
    transition,
)

logger = logging.getLogger(__name__)

Connect = Callable[[], sqlite3.Connection]

SCHEMA = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    due_date TEXT,
    original_due_date TEXT,
    notes TEXT NOT NULL DEFAULT '',
    editor TEXT NOT NULL DEFAULT '',
    editor_note TEXT NOT NULL DEFAULT '',
    master TEXT NOT NULL DEFAULT '',
    master_note TEXT NOT NULL DEFAULT '',
    pz_qc TEXT NOT NULL DEFAULT '',
    pz_qc_note TEXT NOT NULL DEFAULT '',
    est_rt REAL NOT NULL DEFAULT 0,
    total_edited REAL NOT NULL DEFAULT 0,
    remaining_raw REAL NOT NULL DEFAULT 0,
    is_on_hold INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'ongoing'
);

CREATE TABLE IF NOT EXISTS productivity_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    editor_name TEXT NOT NULL,
    date TEXT NOT NULL,
    hours_worked REAL NOT NULL DEFAULT 0,
    note TEXT,
    flag TEXT,
    UNIQUE(project_id, editor_name, date)
);

CREATE TABLE IF NOT EXISTS qc_productivity_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    qc_name TEXT NOT NULL,
    date TEXT NOT NULL,
    hours_worked REAL NOT NULL DEFAULT 0,
    note TEXT,
    UNIQUE(project_id, qc_name, date)
);
"""

# Columns added after the first deployment; older databases get them on start-up.
LATE_COLUMNS = (
    ("projects", "is_new_edit INTEGER NOT NULL DEFAULT 0"),
)


class StoreError(RuntimeError):
    pass


def sqlite_connector(path: str) -> Connect:
    def connect() -> sqlite3.Connection:
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        return conn

    return connect


def init_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA)
    conn.commit()
    for table, column in LATE_COLUMNS:
        try:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {column}")
        except sqlite3.OperationalError:
            pass
    conn.commit()


@contextmanager
def _session(connect: Connect) -> Iterator[sqlite3.Connection]:
    try:
        conn = connect()
    except sqlite3.Error as exc:
        raise StoreError(str(exc)) from exc
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as exc:
        conn.rollback()
        logger.error("store operation failed: %s", exc)
        raise StoreError(str(exc)) from exc
    finally:
        conn.close()


def _now() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


class LogStore:
    """Row store for one productivity-log table, keyed by (project, person, date)."""

    def __init__(self, connect: Connect, kind: LogKind) -> None:
        self.connect = connect
        self.kind = kind

    def _entry(self, row: sqlite3.Row) -> LogEntry:
        keys = row.keys()
        return LogEntry(
            id=row["id"],
            project_id=row["project_id"],
            person=row[self.kind.person_column],
            date=row["date"],
            hours_worked=row["hours_worked"],
            note=row["note"] if "note" in keys else None,
            flag=row["flag"] if "flag" in keys else None,
        )

    def _where(
        self,
        project_id: Optional[int] = None,
        person: Optional[str] = None,
        date: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ):
        clauses: List[str] = []
        params: List[Any] = []
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        if person is not None:
            clauses.append(f"{self.kind.person_column} = ?")
            params.append(person)
        if date is not None:
            clauses.append("date = ?")
            params.append(date)
        if start is not None:
            clauses.append("date >= ?")
            params.append(start)
        if end is not None:
            clauses.append("date <= ?")
            params.append(end)
        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        return where, params

    def select(
        self,
        project_id: Optional[int] = None,
        person: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> List[LogEntry]:
        where, params = self._where(project_id=project_id, person=person, start=start, end=end)
        with _session(self.connect) as conn:
            rows = conn.execute(
                f"SELECT * FROM {self.kind.table}{where} ORDER BY date ASC, id ASC",
                params,
            ).fetchall()
        return [self._entry(row) for row in rows]

    def upsert(self, entry: LogEntry) -> None:
        column = self.kind.person_column
        columns = ["project_id", column, "date", "hours_worked"]
        values: List[Any] = [entry.project_id, entry.person, entry.date, entry.hours_worked]
        if self.kind.has_note:
            columns.append("note")
            values.append(entry.note)
        if self.kind.has_flag:
            columns.append("flag")
            values.append(entry.flag)
        updates = ", ".join(f"{name} = excluded.{name}" for name in columns[3:])
        with _session(self.connect) as conn:
            conn.execute(
                f"""
                INSERT INTO {self.kind.table} ({", ".join(columns)})
                VALUES ({", ".join("?" for _ in columns)})
                ON CONFLICT(project_id, {column}, date) DO UPDATE SET {updates}
                """,
                values,
            )

    def delete_match(
        self,
        project_id: int,
        person: str,
        date: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> int:
        where, params = self._where(
            project_id=project_id, person=person, date=date, start=start, end=end
        )
        with _session(self.connect) as conn:
            cur = conn.execute(f"DELETE FROM {self.kind.table}{where}", params)
            return cur.rowcount

    def write(self, entry: LogEntry) -> str:
        if is_empty_entry(entry.hours_worked, entry.note):
            self.delete_match(entry.project_id, entry.person, date=entry.date)
            return "delete"
        self.upsert(entry)
        return "upsert"


def _project(row: sqlite3.Row) -> Project:
    data: Dict[str, Any] = dict(row)
    data["is_on_hold"] = bool(data.get("is_on_hold"))
    data["is_new_edit"] = bool(data.get("is_new_edit"))
    return Project.from_dict(data)


class ProjectStore:
    def __init__(self, connect: Connect) -> None:
        self.connect = connect

    def list(self, status: Optional[str] = None) -> List[Project]:
        with _session(self.connect) as conn:
            if status is None:
                rows = conn.execute("SELECT * FROM projects ORDER BY id DESC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM projects WHERE status = ? ORDER BY id DESC", (status,)
                ).fetchall()
        return [_project(row) for row in rows]

    def get(self, project_id: int) -> Optional[Project]:
        with _session(self.connect) as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        return _project(row) if row is not None else None

    def create(self, values: Optional[Mapping[str, Any]] = None) -> Project:
        cleaned = clean_project_fields(values or {})
        cleaned.pop("id", None)
        cleaned.pop("created_at", None)
        cleaned.setdefault("title", "New Project - Click to Edit Title")
        if "due_date" in cleaned and "original_due_date" not in cleaned:
            cleaned["original_due_date"] = cleaned["due_date"]
        cleaned["status"] = "ongoing"
        cleaned["created_at"] = _now()
        columns = list(cleaned)
        with _session(self.connect) as conn:
            cur = conn.execute(
                f"INSERT INTO projects ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                [_column_value(cleaned[name]) for name in columns],
            )
            project_id = cur.lastrowid
        project = self.get(project_id)
        if project is None:
            raise StoreError(f"Project {project_id} vanished right after it was created.")
        return project

    def update_match(self, project_id: int, updates: Mapping[str, Any]) -> Optional[Project]:
        unknown = [key for key in updates if key not in EDITABLE_FIELDS]
        if unknown:
            raise ValueError(f"Unknown project field: {unknown[0]}")
        cleaned = clean_project_fields(updates)
        if cleaned:
            assignments = ", ".join(f"{name} = ?" for name in cleaned)
            with _session(self.connect) as conn:
                conn.execute(
                    f"UPDATE projects SET {assignments} WHERE id = ?",
                    [_column_value(value) for value in cleaned.values()] + [project_id],
                )
        return self.get(project_id)

    def set_status(self, project_id: int, target: str) -> Optional[Project]:
        project = self.get(project_id)
        if project is None:
            return None
        status = transition(project.status, target)
        with _session(self.connect) as conn:
            conn.execute("UPDATE projects SET status = ? WHERE id = ?", (status.value, project_id))
        project.status = status
        return project

    def delete(self, project_id: int) -> bool:
        with _session(self.connect) as conn:
            cur = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            if cur.rowcount == 0:
                return False
            for table in ("productivity_logs", "qc_productivity_logs"):
                conn.execute(f"DELETE FROM {table} WHERE project_id = ?", (project_id,))
        return True

    def refresh_total_edited(self, project_id: int, logs: LogStore) -> float:
        total = round(sum(entry.hours_worked for entry in logs.select(project_id=project_id)), 2)
        self.update_match(project_id, {"total_edited": total})
        return total


def _column_value(value: Any) -> Any:
    if isinstance(value, bool):
        return 1 if value else 0
    if hasattr(value, "value"):
        return value.value
    return value

