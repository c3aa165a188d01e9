from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from .buffer import CellEdited, EditBuffer, PersonAdded, Refreshed, RowCleared
from .debounce import KeyedDebouncer, TimerFactory
from .hours import format_hours
from .models import LogEntry, LogKind
from .rollups import project_week_total
from .store import LogStore, StoreError
from .weeks import DateLike, format_date, start_of_week, week_days

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[str], None]


def _log_error(message: str) -> None:
    logger.error("productivity log write failed: %s", message)


class ProjectWeekGrid:
    """Weekly hours grid for one project card.

    Edits land in the :class:`EditBuffer` straight away and reach the store
    through a per-(person, date) debounced write. Failed writes are reported
    through ``on_error`` and are neither retried nor rolled back.
    """

    def __init__(
        self,
        store: LogStore,
        project_id: int,
        anchor: DateLike,
        assigned: Optional[str] = None,
        delay: float = 0.75,
        on_error: Optional[ErrorHandler] = None,
        timer_factory: Optional[TimerFactory] = None,
        after_write: Optional[Callable[[int], None]] = None,
    ) -> None:
        self.store = store
        self.after_write = after_write
        self.project_id = project_id
        self.assigned = assigned or ""
        self.on_error = on_error or _log_error
        self._lock = threading.Lock()
        self.logs: List[LogEntry] = []
        self.buffer = EditBuffer(project_id)
        self._loaded = False
        self.week_start = start_of_week(anchor)
        self.set_week(anchor)
        self._writer = KeyedDebouncer(
            self._write,
            delay,
            key=lambda entry: (entry.person, entry.date),
            timer_factory=timer_factory,
        )

    @property
    def kind(self) -> LogKind:
        return self.store.kind

    def set_week(self, anchor: DateLike) -> None:
        start = start_of_week(anchor)
        if start != self.week_start:
            self._loaded = False
        self.week_start = start
        self.days = tuple(format_date(day) for day in week_days(self.week_start))

    def _keep(self):
        return (self.assigned,) if self.assigned else ()

    def refresh(self, focused: bool = False) -> EditBuffer:
        logs = self.store.select(project_id=self.project_id, start=self.days[0], end=self.days[-1])
        with self._lock:
            self.logs = logs
            # Nothing to protect until the buffer has been loaded once.
            self.buffer = self.buffer.apply(
                Refreshed(logs, focused=focused and self._loaded, keep=self._keep())
            )
            self._loaded = True
            return self.buffer

    def add_person(self, person: str) -> EditBuffer:
        with self._lock:
            self.buffer = self.buffer.apply(PersonAdded(person))
            return self.buffer

    def edit(
        self,
        person: str,
        date: str,
        hours_text: Optional[str] = None,
        note: Optional[str] = None,
        flag: Optional[str] = None,
    ) -> EditBuffer:
        if date not in self.days:
            raise ValueError(f"{date} is not a weekday of the week of {self.days[0]}.")
        if flag and not self.kind.has_flag:
            raise ValueError(f"{self.kind.name} logs do not carry a punch/roll flag.")
        event = CellEdited(person=person, date=date, hours_text=hours_text, note=note, flag=flag)
        with self._lock:
            self.buffer = self.buffer.apply(event)
            buffer = self.buffer
            # The write carries the cell as typed now, whatever the buffer holds when it fires.
            _, entry = buffer.write_intent(person, date)
        self._writer(entry)
        return buffer

    def _write(self, entry: LogEntry) -> None:
        try:
            action = self.store.write(entry)
            logger.debug("%s %s log %s", action, self.kind.name, entry.key)
            if self.after_write is not None:
                self.after_write(self.project_id)
        except StoreError as exc:
            self.on_error(str(exc))
            if self._writer.delay <= 0:
                raise

    def delete_row(self, person: str) -> int:
        removed = self.store.delete_match(
            self.project_id, person, start=self.days[0], end=self.days[-1]
        )
        if self.after_write is not None:
            self.after_write(self.project_id)
        with self._lock:
            self.buffer = self.buffer.apply(RowCleared(person, self.days))
        return removed

    def flush(self) -> None:
        self._writer.flush_all()

    def close(self) -> None:
        self._writer.cancel_all()

    @property
    def pending(self) -> List[Any]:
        return self._writer.pending_keys

    def week_total(self) -> float:
        return project_week_total(self.logs, self.project_id, self.days)

    def rows(self) -> List[Dict[str, Any]]:
        result = []
        for person in self.buffer.people():
            cells = {}
            for day in self.days:
                cell = self.buffer.cell(person, day)
                cells[day] = {"hours": cell.hours_text, "note": cell.note or ""}
                if self.kind.has_flag:
                    cells[day]["flag"] = cell.flag
            result.append(
                {
                    "person": person,
                    "cells": cells,
                    "total": format_hours(self.buffer.row_total(person, self.days)),
                }
            )
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_id": self.project_id,
            "kind": self.kind.name,
            "week_start": format_date(self.week_start),
            "days": list(self.days),
            "rows": self.rows(),
            "week_total": format_hours(self.week_total()),
            "pending": [list(key) for key in self.pending],
        }

