from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import LogEntry, Project, ProjectStatus, next_statuses
from .personnel import EDITORS, MASTERS, QC_PERSONNEL, find_canonical
from .rollups import project_person_breakdown, whats_left
from .weeks import parse_date

DEFAULT_CLIENT = "PRH"

# Checked in order; the first matching prefix decides the client.
CLIENT_PREFIXES: Tuple[Tuple[str, str], ...] = (
    ("AUDIBLE:", "AUDIBLE"),
    ("PODIUM:", "PODIUM"),
    ("CURATED", "CURATED AUDIO"),
    ("HAY HOUSE:", "HAY HOUSE"),
    ("ONS:", "ONS"),
    ("ANATOLE", "ANATOLE"),
    ("BLOOMSBURY", "Bloomsbury"),
    ("PRHA#:", "PRH"),
    ("PRH", "PRH"),
    ("YA", "PRH"),
)

DUE_SOON_DAYS = 7


def client_name(title: Optional[str]) -> str:
    upper = (title or "").upper()
    for prefix, label in CLIENT_PREFIXES:
        if upper.startswith(prefix):
            return label
    return DEFAULT_CLIENT


def group_by_client(projects: Iterable[Project]) -> List[Tuple[str, List[Project]]]:
    groups: Dict[str, List[Project]] = {}
    for project in projects:
        groups.setdefault(client_name(project.title), []).append(project)
    order = sorted(groups, key=lambda label: (label != DEFAULT_CLIENT, label.lower(), label))
    return [(label, groups[label]) for label in order]


def sort_by_due_date(projects: Iterable[Project]) -> List[Project]:
    # YYYY-MM-DD strings sort chronologically; missing dates go last.
    return sorted(projects, key=lambda project: (not project.due_date, project.due_date or ""))


def projects_for_page(projects: Iterable[Project], status: Any) -> List[Project]:
    wanted = ProjectStatus(status)
    return [project for project in projects if project.status == wanted]


def sort_page_by_due_date(projects: Sequence[Project], status: Any) -> List[Project]:
    wanted = ProjectStatus(status)
    current = [project for project in projects if project.status == wanted]
    others = [project for project in projects if project.status != wanted]
    return sort_by_due_date(current) + others


def editor_projects(projects: Iterable[Project]) -> List[Project]:
    return sort_by_due_date(projects_for_page(projects, ProjectStatus.ONGOING))


def qc_projects(projects: Iterable[Project]) -> List[Project]:
    active = (ProjectStatus.ONGOING, ProjectStatus.DONE)
    return sorted(
        (project for project in projects if project.status in active),
        key=lambda project: project.title.lower(),
    )


def due_date_alert(due_date: Optional[str], today: Optional[date] = None) -> Optional[str]:
    if not due_date:
        return None
    try:
        due = parse_date(due_date)
    except ValueError:
        return None
    remaining = (due - (today or date.today())).days
    if remaining < 0:
        return "overdue"
    if remaining <= DUE_SOON_DAYS:
        return "soon"
    return None


def due_date_changed(project: Project) -> bool:
    return bool(project.original_due_date) and project.due_date != project.original_due_date


def display_due_date(due_date: Optional[str]) -> str:
    if not due_date:
        return ""
    try:
        return parse_date(due_date).strftime("%m/%d/%y")
    except ValueError:
        return due_date


def personnel_matches(project: Project) -> Dict[str, Optional[str]]:
    return {
        "editor": find_canonical(project.editor, EDITORS),
        "master": find_canonical(project.master, MASTERS),
        "pz_qc": find_canonical(project.pz_qc, QC_PERSONNEL),
    }


def project_view(
    project: Project,
    logs: Optional[Sequence[LogEntry]] = None,
    today: Optional[date] = None,
    client_view: bool = False,
) -> Dict[str, Any]:
    data = project.to_dict()
    data["client"] = client_name(project.title)
    data["whats_left"] = whats_left(project.est_rt, project.total_edited)
    data["due_date_display"] = display_due_date(project.due_date)
    data["due_date_alert"] = due_date_alert(project.due_date, today)
    data["due_date_changed"] = due_date_changed(project)
    if client_view:
        return data
    data["next_statuses"] = [status.value for status in next_statuses(project.status)]
    data["personnel"] = personnel_matches(project)
    if logs is not None:
        breakdown = project_person_breakdown(logs, project.id, EDITORS)
        data["edited_by"] = {name: round(hours, 2) for name, hours in sorted(breakdown.items())}
    return data


def client_groups_view(
    projects: Iterable[Project], today: Optional[date] = None
) -> List[Mapping[str, Any]]:
    return [
        {
            "client": label,
            "projects": [project_view(project, today=today, client_view=True) for project in members],
        }
        for label, members in group_by_client(projects)
    ]
