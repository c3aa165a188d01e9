from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .hours import format_hours
from .models import PUNCH, ROLL, LogEntry, Project
from .personnel import resolve_person_name
from .weeks import DateLike, format_date


DayLike = Union[str, DateLike]


def _day(value: DayLike) -> str:
    return value if isinstance(value, str) else format_date(value)


def _window(start: DayLike, end: DayLike) -> Tuple[str, str]:
    return _day(start), _day(end)


def project_week_total(logs: Iterable[LogEntry], project_id: int, days: Sequence[DayLike]) -> float:
    if not days:
        return 0.0
    first, last = _window(days[0], days[-1])
    return sum(
        entry.hours_worked
        for entry in logs
        if entry.project_id == project_id and first <= entry.date <= last
    )


def logs_for_person(
    logs: Iterable[LogEntry],
    person: str,
    start: DateLike,
    end: DateLike,
    canonical: Sequence[str] = (),
) -> List[LogEntry]:
    first, last = _window(start, end)
    target = resolve_person_name(person, canonical)
    return [
        entry
        for entry in logs
        if first <= entry.date <= last and resolve_person_name(entry.person, canonical) == target
    ]


def person_period_total(
    logs: Iterable[LogEntry],
    person: str,
    start: DateLike,
    end: DateLike,
    canonical: Sequence[str] = (),
) -> float:
    return sum(entry.hours_worked for entry in logs_for_person(logs, person, start, end, canonical))


def person_project_breakdown(
    logs: Iterable[LogEntry],
    person: str,
    start: DateLike,
    end: DateLike,
    titles: Mapping[int, str],
    canonical: Sequence[str] = (),
) -> List[Tuple[str, float]]:
    breakdown: Dict[str, float] = {}
    for entry in logs_for_person(logs, person, start, end, canonical):
        title = titles.get(entry.project_id) or f"Project ID: {entry.project_id}"
        breakdown[title] = breakdown.get(title, 0.0) + entry.hours_worked
    return sorted(breakdown.items(), key=lambda item: item[1], reverse=True)


def project_person_breakdown(
    logs: Iterable[LogEntry], project_id: int, canonical: Sequence[str] = ()
) -> Dict[str, float]:
    breakdown: Dict[str, float] = {}
    for entry in logs:
        if entry.project_id != project_id:
            continue
        name = resolve_person_name(entry.person, canonical)
        breakdown[name] = breakdown.get(name, 0.0) + entry.hours_worked
    return breakdown


def computed_total_edited(logs: Iterable[LogEntry], project_id: int) -> float:
    return round(sum(entry.hours_worked for entry in logs if entry.project_id == project_id), 2)


def with_computed_totals(projects: Iterable[Project], logs: Iterable[LogEntry]) -> List[Project]:
    """Copy ``projects`` with ``total_edited`` replaced by the sum of their logged hours."""
    totals: Dict[int, float] = {}
    for entry in logs:
        totals[entry.project_id] = totals.get(entry.project_id, 0.0) + entry.hours_worked
    result = []
    for project in projects:
        result.append(replace(project, total_edited=round(totals.get(project.id, 0.0), 2)))
    return result


@dataclass
class PersonSummary:
    name: str
    punch: float = 0.0
    roll: float = 0.0
    other: float = 0.0

    @property
    def total(self) -> float:
        return self.punch + self.roll + self.other

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "punch": round(self.punch, 2),
            "roll": round(self.roll, 2),
            "other": round(self.other, 2),
            "total": round(self.total, 2),
        }


def team_summary(
    logs: Iterable[LogEntry],
    people: Sequence[str],
    start: DateLike,
    end: DateLike,
) -> List[PersonSummary]:
    first, last = _window(start, end)
    summaries: Dict[str, PersonSummary] = {name: PersonSummary(name) for name in people}
    for entry in logs:
        if not first <= entry.date <= last:
            continue
        name = resolve_person_name(entry.person, people)
        summary = summaries.setdefault(name, PersonSummary(name))
        if entry.flag == PUNCH:
            summary.punch += entry.hours_worked
        elif entry.flag == ROLL:
            summary.roll += entry.hours_worked
        else:
            summary.other += entry.hours_worked
    roster_order = {name: index for index, name in enumerate(people)}
    return sorted(
        summaries.values(),
        key=lambda item: (-item.total, roster_order.get(item.name, len(roster_order)), item.name),
    )


def team_total(summary: Iterable[PersonSummary]) -> float:
    return sum(item.total for item in summary)


def whats_left(est_rt: Optional[float], total_edited: Optional[float], strip_zeros: bool = False) -> str:
    return format_hours((est_rt or 0.0) - (total_edited or 0.0), strip_zeros=strip_zeros)
