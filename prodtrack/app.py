from __future__ import annotations

import atexit
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from flask import Flask, current_app, jsonify, redirect, request, url_for
from werkzeug.exceptions import HTTPException, NotFound

from .debounce import TimerFactory
from .grid import ProjectWeekGrid
from .hours import InvalidHours, format_hours, parse_hours
from .models import (
    EDITOR_LOGS,
    LOG_KINDS,
    InvalidTransition,
    LogKind,
    Project,
    UnknownLogKind,
    get_log_kind,
)
from .persistence import LocalProjectList, LocalStateStore
from .personnel import resolve_person_name
from .rollups import (
    person_period_total,
    person_project_breakdown,
    team_summary,
    team_total,
    with_computed_totals,
)
from .selectors import (
    client_groups_view,
    editor_projects,
    project_view,
    projects_for_page,
    qc_projects,
    sort_page_by_due_date,
)
from .store import LogStore, ProjectStore, StoreError, init_schema, sqlite_connector
from .weeks import TIMEFRAMES, format_date, period_bounds, period_label, shift_anchor

BASE_DIR = Path(__file__).resolve().parent
DATABASE_PATH = BASE_DIR / "prodtrack.db"
LOCAL_STATE_PATH = BASE_DIR / "local_state.json"
DEFAULT_DEBOUNCE_SECONDS = 0.75

VIEWS = ("manager", "client", "editor", "qc")

ProjectBackend = Union[ProjectStore, LocalProjectList]


@dataclass
class Services:
    projects: ProjectBackend
    logs: Dict[str, LogStore]
    debounce_seconds: float
    computed_totals: bool
    timer_factory: Optional[TimerFactory] = None
    grids: Dict[Tuple[str, int], ProjectWeekGrid] = field(default_factory=dict)
    alerts: List[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def flush_all(self) -> None:
        with self.lock:
            grids = list(self.grids.values())
        for grid in grids:
            grid.flush()


def create_app(test_config: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.update(
        SECRET_KEY="change-me",
        DATABASE=str(DATABASE_PATH),
        PROJECT_BACKEND="database",
        LOCAL_STATE_PATH=str(LOCAL_STATE_PATH),
        LOG_WRITE_DEBOUNCE_SECONDS=DEFAULT_DEBOUNCE_SECONDS,
        COMPUTED_TOTALS=True,
        LOG_LEVEL="INFO",
    )
    app.config.from_prefixed_env("PRODTRACK")
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config["LOG_LEVEL"])
    Path(app.config["DATABASE"]).parent.mkdir(parents=True, exist_ok=True)

    connect = sqlite_connector(app.config["DATABASE"])
    conn = connect()
    try:
        init_schema(conn)
    finally:
        conn.close()

    if app.config["PROJECT_BACKEND"] == "local":
        projects: ProjectBackend = LocalProjectList(LocalStateStore(app.config["LOCAL_STATE_PATH"]))
    else:
        projects = ProjectStore(connect)

    services = Services(
        projects=projects,
        logs={name: LogStore(connect, kind) for name, kind in LOG_KINDS.items()},
        debounce_seconds=float(app.config["LOG_WRITE_DEBOUNCE_SECONDS"]),
        computed_totals=bool(app.config["COMPUTED_TOTALS"]),
        timer_factory=app.config.get("LOG_WRITE_TIMER_FACTORY"),
    )
    app.extensions["prodtrack"] = services
    atexit.register(services.flush_all)

    @app.before_request
    def pick_up_external_changes() -> None:
        if isinstance(services.projects, LocalProjectList):
            services.projects.store.poll()

    register_error_handlers(app)
    register_routes(app)
    return app


def get_services() -> Services:
    return current_app.extensions["prodtrack"]


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValueError)
    def bad_value(exc: ValueError):
        return _error(str(exc), 400)

    @app.errorhandler(InvalidTransition)
    def bad_transition(exc: InvalidTransition):
        return _error(str(exc), 409)

    @app.errorhandler(UnknownLogKind)
    def unknown_kind(exc: UnknownLogKind):
        return _error(str(exc), 404)

    @app.errorhandler(StoreError)
    def store_failed(exc: StoreError):
        app.logger.error("store failure: %s", exc)
        return _error(str(exc), 502)

    @app.errorhandler(HTTPException)
    def http_error(exc: HTTPException):
        return _error(exc.description or exc.name, exc.code or 500)


def register_routes(app: Flask) -> None:
    @app.route("/")
    def index():
        return redirect(url_for("list_projects"))

    @app.route("/api/projects", methods=["GET"])
    def list_projects():
        services = get_services()
        view = request.args.get("view", "manager")
        if view not in VIEWS:
            return _error(f"Unknown view: {view}", 400)

        projects = services.projects.list()
        editor_logs = services.logs["editor"].select()
        if services.computed_totals:
            projects = with_computed_totals(projects, editor_logs)
        today = date.today()

        if view == "editor":
            return jsonify([project_view(p, editor_logs, today) for p in editor_projects(projects)])
        if view == "qc":
            return jsonify([project_view(p, editor_logs, today) for p in qc_projects(projects)])

        status = request.args.get("status", "ongoing")
        if request.args.get("sort") == "due_date":
            projects = sort_page_by_due_date(projects, status)
        page = projects_for_page(projects, status)
        if view == "client":
            return jsonify(client_groups_view(page, today))
        return jsonify([project_view(p, editor_logs, today) for p in page])

    @app.route("/api/projects", methods=["POST"])
    def create_project():
        data = request.get_json(silent=True) or {}
        project = get_services().projects.create(data)
        current_app.logger.info("created project %s", project.id)
        return jsonify(_present(project)), 201

    @app.route("/api/projects/<int:project_id>", methods=["GET"])
    def get_project(project_id: int):
        return jsonify(_present(_require_project(project_id)))

    @app.route("/api/projects/<int:project_id>", methods=["PATCH"])
    def update_project(project_id: int):
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict) or not data:
            return _error("No fields to update.", 400)
        if "status" in data:
            return _error("Use the status endpoint to change a project's status.", 400)
        services = get_services()
        _require_project(project_id)
        updated = services.projects.update_match(project_id, data)
        return jsonify(_present(updated))

    @app.route("/api/projects/<int:project_id>/status", methods=["POST"])
    def change_status(project_id: int):
        data = request.get_json(silent=True) or {}
        target = data.get("status")
        if not target:
            return _error("Missing status.", 400)
        _require_project(project_id)
        project = get_services().projects.set_status(project_id, target)
        current_app.logger.info("project %s moved to %s", project_id, project.status.value)
        return jsonify(_present(project))

    @app.route("/api/projects/<int:project_id>", methods=["DELETE"])
    def delete_project(project_id: int):
        services = get_services()
        if not services.projects.delete(project_id):
            return _error("Project not found.", 404)
        with services.lock:
            for key in [key for key in services.grids if key[1] == project_id]:
                services.grids.pop(key).close()
        return jsonify({"status": "ok"})

    @app.route("/api/logs/<kind_name>", methods=["GET"])
    def list_logs(kind_name: str):
        kind = get_log_kind(kind_name)
        project_id = request.args.get("project_id", type=int)
        entries = get_services().logs[kind.name].select(
            project_id=project_id,
            person=request.args.get("person") or None,
            start=_date_arg("start"),
            end=_date_arg("end"),
        )
        return jsonify([entry.to_dict(kind) for entry in entries])

    @app.route("/api/grid/<kind_name>/<int:project_id>", methods=["GET"])
    def show_grid(kind_name: str, project_id: int):
        kind = get_log_kind(kind_name)
        grid = _grid_for(kind, project_id, _anchor_date(), request.args.get("viewer"))
        grid.refresh(focused=_flag_arg("focused"))
        return jsonify(grid.to_dict())

    @app.route("/api/grid/<kind_name>/<int:project_id>/cells", methods=["PUT"])
    def edit_cell(kind_name: str, project_id: int):
        kind = get_log_kind(kind_name)
        error, cleaned = prepare_cell_payload(kind, request.get_json(silent=True) or {})
        if error:
            return _error(error, 400)
        grid = _grid_for(kind, project_id, cleaned["date"])
        grid.refresh(focused=True)
        grid.edit(
            cleaned["person"],
            cleaned["date"],
            hours_text=cleaned["hours"],
            note=cleaned["note"],
            flag=cleaned["flag"],
        )
        grid.refresh(focused=True)
        return jsonify(grid.to_dict())

    @app.route("/api/grid/<kind_name>/<int:project_id>/rows/<person>", methods=["DELETE"])
    def delete_row(kind_name: str, project_id: int, person: str):
        kind = get_log_kind(kind_name)
        grid = _grid_for(kind, project_id, _anchor_date())
        removed = grid.delete_row(person)
        current_app.logger.info(
            "deleted %s %s log rows for %s on project %s", removed, kind.name, person, project_id
        )
        grid.refresh()
        return jsonify(grid.to_dict())

    @app.route("/api/grid/<kind_name>/<int:project_id>/flush", methods=["POST"])
    def flush_grid(kind_name: str, project_id: int):
        kind = get_log_kind(kind_name)
        grid = _grid_for(kind, project_id, _anchor_date())
        grid.flush()
        grid.refresh()
        return jsonify(grid.to_dict())

    @app.route("/api/stats/<kind_name>/<person>", methods=["GET"])
    def personal_stats(kind_name: str, person: str):
        kind = get_log_kind(kind_name)
        timeframe, anchor = _period_args()
        start, end = period_bounds(timeframe, anchor)
        services = get_services()
        logs = services.logs[kind.name].select(start=format_date(start), end=format_date(end))
        titles = {project.id: project.title for project in services.projects.list()}
        name = resolve_person_name(person, kind.roster)
        total = person_period_total(logs, name, start, end, kind.roster)
        breakdown = person_project_breakdown(logs, name, start, end, titles, kind.roster)
        return jsonify(
            {
                "person": name,
                "timeframe": timeframe,
                "label": period_label(timeframe, anchor),
                "start": format_date(start),
                "end": format_date(end),
                "total": format_hours(total),
                "projects": [{"title": title, "hours": format_hours(hours)} for title, hours in breakdown],
                "prev": format_date(shift_anchor(timeframe, anchor, -1)),
                "next": format_date(shift_anchor(timeframe, anchor, 1)),
            }
        )

    @app.route("/api/team/<kind_name>", methods=["GET"])
    def team_productivity(kind_name: str):
        kind = get_log_kind(kind_name)
        timeframe, anchor = _period_args(default="week")
        if timeframe == "today":
            return _error("Team productivity is weekly or monthly.", 400)
        start, end = period_bounds(timeframe, anchor)
        logs = get_services().logs[kind.name].select(start=format_date(start), end=format_date(end))
        summary = team_summary(logs, kind.roster, start, end)
        return jsonify(
            {
                "timeframe": timeframe,
                "label": period_label(timeframe, anchor),
                "start": format_date(start),
                "end": format_date(end),
                "people": [item.to_dict() for item in summary],
                "total": format_hours(team_total(summary)),
            }
        )

    @app.route("/api/alerts", methods=["GET"])
    def pop_alerts():
        services = get_services()
        with services.lock:
            alerts = list(services.alerts)
            services.alerts.clear()
        return jsonify(alerts)


def prepare_cell_payload(
    kind: LogKind, payload: Mapping[str, object]
) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
    def _value(key: str) -> Optional[str]:
        value = payload.get(key)
        if value is None:
            return None
        return value if isinstance(value, str) else str(value)

    person = (_value("person") or "").strip()
    date_raw = (_value("date") or "").strip()
    if not person:
        return "Please select a person first.", None
    if not date_raw:
        return "Missing date.", None
    try:
        datetime.strptime(date_raw, "%Y-%m-%d")
    except ValueError:
        return "Invalid date.", None

    hours = _value("hours")
    if hours is not None:
        try:
            parse_hours(hours)
        except InvalidHours as exc:
            return str(exc), None
    note = _value("note")
    flag = _value("flag")
    if hours is None and note is None and flag is None:
        return "Nothing to update.", None
    if flag is not None and not kind.has_flag:
        return f"{kind.name} logs do not carry a punch/roll flag.", None

    cleaned = {
        "person": resolve_person_name(person, kind.roster),
        "date": date_raw,
        "hours": hours,
        "note": note,
        "flag": flag,
    }
    return None, cleaned


def _present(project: Project) -> Dict[str, Any]:
    services = get_services()
    editor_logs = services.logs["editor"].select(project_id=project.id)
    if services.computed_totals:
        project = with_computed_totals([project], editor_logs)[0]
    return project_view(project, editor_logs)


def _require_project(project_id: int):
    project = get_services().projects.get(project_id)
    if project is None:
        raise NotFound("Project not found.")
    return project


def _grid_for(
    kind: LogKind, project_id: int, anchor: Union[date, str], viewer: Optional[str] = None
) -> ProjectWeekGrid:
    services = get_services()
    project = _require_project(project_id)
    if isinstance(anchor, str):
        anchor = datetime.strptime(anchor, "%Y-%m-%d").date()
    assigned = resolve_person_name(getattr(project, kind.project_field), kind.roster)
    if viewer is not None and resolve_person_name(viewer, kind.roster) != assigned:
        assigned = ""
    logger = current_app.logger
    refresh_total = None
    if kind is EDITOR_LOGS and not services.computed_totals and isinstance(services.projects, ProjectStore):
        project_store = services.projects

        def refresh_total(changed_id: int) -> None:
            project_store.refresh_total_edited(changed_id, services.logs[kind.name])

    def alert(message: str) -> None:
        logger.error("failed to save %s log for project %s: %s", kind.name, project_id, message)
        with services.lock:
            services.alerts.append(f"Failed to save log: {message}")

    key = (kind.name, project_id)
    with services.lock:
        # Cards with nothing waiting to be written are rebuilt on the next request.
        idle = [other for other, cached in services.grids.items() if other != key and not cached.pending]
        for other in idle:
            del services.grids[other]
        grid = services.grids.get(key)
        if grid is None:
            grid = ProjectWeekGrid(
                services.logs[kind.name],
                project_id,
                anchor,
                assigned=assigned if assigned in kind.roster else None,
                delay=services.debounce_seconds,
                on_error=alert,
                timer_factory=services.timer_factory,
                after_write=refresh_total,
            )
            services.grids[key] = grid
        else:
            grid.set_week(anchor)
            grid.assigned = assigned if assigned in kind.roster else ""
    return grid


def _anchor_date() -> date:
    anchor = request.args.get("date")
    try:
        return datetime.strptime(anchor, "%Y-%m-%d").date() if anchor else date.today()
    except ValueError:
        return date.today()


def _date_arg(name: str) -> Optional[str]:
    value = request.args.get(name)
    if not value:
        return None
    datetime.strptime(value, "%Y-%m-%d")
    return value


def _flag_arg(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


def _period_args(default: str = "week") -> Tuple[str, date]:
    timeframe = request.args.get("timeframe", default)
    if timeframe not in TIMEFRAMES:
        raise ValueError(f"Unknown timeframe: {timeframe}")
    anchor = _anchor_date()
    step = request.args.get("step", 0, type=int)
    if step:
        anchor = shift_anchor(timeframe, anchor, step)
    return timeframe, anchor

