from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

from .hours import coerce_hours
from .models import LogEntry, clean_flag, is_empty_entry


@dataclass(frozen=True)
class Cell:
    hours_text: str = ""
    note: Optional[str] = None
    flag: Optional[str] = None

    @property
    def hours(self) -> float:
        return coerce_hours(self.hours_text)


@dataclass(frozen=True)
class Refreshed:
    logs: Sequence[LogEntry]
    focused: bool = False
    keep: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CellEdited:
    person: str
    date: str
    hours_text: Optional[str] = None
    note: Optional[str] = None
    flag: Optional[str] = None


@dataclass(frozen=True)
class RowCleared:
    person: str
    dates: Tuple[str, ...]


@dataclass(frozen=True)
class PersonAdded:
    person: str


BufferEvent = Union[Refreshed, CellEdited, RowCleared, PersonAdded]
Rows = Mapping[str, Mapping[str, Cell]]


def _hours_text(value: float) -> str:
    return format(value, ".10g")


@dataclass(frozen=True)
class EditBuffer:
    """Staged hours/notes for one project card, person -> date -> :class:`Cell`.

    Transitions never mutate; :meth:`apply` returns the next buffer.
    """

    project_id: int
    rows: Rows = field(default_factory=dict)

    @classmethod
    def from_logs(
        cls, project_id: int, logs: Iterable[LogEntry], keep: Iterable[str] = ()
    ) -> "EditBuffer":
        rows: Dict[str, Dict[str, Cell]] = {person: {} for person in keep if person}
        for entry in logs:
            if entry.project_id != project_id:
                continue
            rows.setdefault(entry.person, {})[entry.date] = Cell(
                hours_text=_hours_text(entry.hours_worked) if entry.hours_worked else "",
                note=entry.note,
                flag=entry.flag,
            )
        return cls(project_id=project_id, rows=rows)

    def apply(self, event: BufferEvent) -> "EditBuffer":
        if isinstance(event, Refreshed):
            if event.focused:
                return self
            return EditBuffer.from_logs(self.project_id, event.logs, keep=event.keep)
        if isinstance(event, CellEdited):
            return self._edit(event)
        if isinstance(event, RowCleared):
            return self._clear(event)
        if isinstance(event, PersonAdded):
            if not event.person or event.person in self.rows:
                return self
            rows = self._copy()
            rows[event.person] = {}
            return replace(self, rows=rows)
        raise TypeError(f"Unsupported buffer event: {event!r}")

    def _copy(self) -> Dict[str, Dict[str, Cell]]:
        return {person: dict(cells) for person, cells in self.rows.items()}

    def _edit(self, event: CellEdited) -> "EditBuffer":
        if not event.person:
            raise ValueError("Select a person before logging hours.")
        rows = self._copy()
        cells = rows.setdefault(event.person, {})
        current = cells.get(event.date, Cell())
        updated = current
        if event.hours_text is not None:
            updated = replace(updated, hours_text=event.hours_text)
        if event.note is not None:
            updated = replace(updated, note=event.note)
        if event.flag is not None:
            updated = replace(updated, flag=clean_flag(event.flag))
        cells[event.date] = updated
        return replace(self, rows=rows)

    def _clear(self, event: RowCleared) -> "EditBuffer":
        if event.person not in self.rows:
            return self
        rows = self._copy()
        remaining = {day: cell for day, cell in rows[event.person].items() if day not in event.dates}
        if remaining:
            rows[event.person] = remaining
        else:
            del rows[event.person]
        return replace(self, rows=rows)

    def cell(self, person: str, date: str) -> Cell:
        return self.rows.get(person, {}).get(date, Cell())

    def people(self) -> Tuple[str, ...]:
        return tuple(sorted(self.rows))

    def row_total(self, person: str, days: Iterable[str]) -> float:
        cells = self.rows.get(person, {})
        return sum(cells[day].hours for day in days if day in cells)

    def write_intent(self, person: str, date: str) -> Tuple[str, LogEntry]:
        cell = self.cell(person, date)
        entry = LogEntry(
            project_id=self.project_id,
            person=person,
            date=date,
            hours_worked=cell.hours,
            note=(cell.note or "").strip() or None,
            flag=cell.flag,
        )
        if is_empty_entry(entry.hours_worked, entry.note):
            return "delete", entry
        return "upsert", entry
