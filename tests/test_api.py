from prodtrack import create_app

WEEK_DATE = "2025-08-20"


def _create(client, **values):
    response = client.post("/api/projects", json=values)
    assert response.status_code == 201
    return response.get_json()


def _log(client, kind, project_id, **payload):
    return client.put(f"/api/grid/{kind}/{project_id}/cells", json=payload)


def test_index_redirects_to_project_list(client):
    response = client.get("/")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/api/projects")


def test_create_project_defaults(client):
    project = _create(client, due_date="2025-09-01", est_rt=10)
    assert project["title"] == "New Project - Click to Edit Title"
    assert project["status"] == "ongoing"
    assert project["original_due_date"] == "2025-09-01"
    assert project["whats_left"] == "10.00"
    assert project["client"] == "PRH"


def test_logging_hours_updates_totals(client):
    project = _create(client, title="AUDIBLE: Gold Medal Marine", est_rt=10)
    response = _log(client, "editor", project["id"], person="Glen", date="2025-08-18", hours="12.5", flag="P")
    assert response.status_code == 200
    grid = response.get_json()
    assert grid["week_start"] == "2025-08-18"
    assert grid["week_total"] == "12.50"
    assert grid["rows"][0]["person"] == "Glenn"
    assert grid["rows"][0]["total"] == "12.50"

    logs = client.get("/api/logs/editor", query_string={"project_id": project["id"]}).get_json()
    assert logs == [
        {
            "id": logs[0]["id"],
            "project_id": project["id"],
            "editor_name": "Glenn",
            "date": "2025-08-18",
            "hours_worked": 12.5,
            "note": None,
            "flag": "P",
        }
    ]

    shown = client.get(f"/api/projects/{project['id']}").get_json()
    assert shown["total_edited"] == 12.5
    assert shown["whats_left"] == "-2.50"
    assert shown["edited_by"] == {"Glenn": 12.5}


def test_clearing_a_cell_removes_the_log(client):
    project = _create(client)
    _log(client, "editor", project["id"], person="Alan", date="2025-08-19", hours="3")
    _log(client, "editor", project["id"], person="Alan", date="2025-08-19", hours="")
    assert client.get("/api/logs/editor").get_json() == []


def test_cell_payload_validation(client):
    project = _create(client)
    pid = project["id"]
    assert _log(client, "editor", pid, date="2025-08-18", hours="1").status_code == 400
    assert _log(client, "editor", pid, person="Alan", date="18/08/2025", hours="1").status_code == 400
    assert _log(client, "editor", pid, person="Alan", date="2025-08-18").status_code == 400
    bad_hours = _log(client, "editor", pid, person="Alan", date="2025-08-18", hours="abc")
    assert bad_hours.status_code == 400
    assert "error" in bad_hours.get_json()
    assert _log(client, "qc", pid, person="Rein", date="2025-08-18", hours="1", flag="P").status_code == 400
    assert _log(client, "editor", pid, person="Alan", date="2025-08-18", hours="1", flag="Z").status_code == 400
    assert _log(client, "editor", 999, person="Alan", date="2025-08-18", hours="1").status_code == 404


def test_unknown_log_kind(client):
    response = client.get("/api/logs/master")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Unknown log kind: master"}


def test_status_changes_follow_state_machine(client):
    pid = _create(client)["id"]
    response = client.post(f"/api/projects/{pid}/status", json={"status": "archived"})
    assert response.status_code == 409
    assert "error" in response.get_json()

    assert client.post(f"/api/projects/{pid}/status", json={"status": "done"}).status_code == 200
    assert client.post(f"/api/projects/{pid}/status", json={}).status_code == 400

    done = client.get("/api/projects", query_string={"status": "done"}).get_json()
    assert [p["id"] for p in done] == [pid]
    assert client.get("/api/projects").get_json() == []


def test_patch_project(client):
    pid = _create(client)["id"]
    response = client.patch(f"/api/projects/{pid}", json={"title": "PODIUM: Tyrant", "is_on_hold": True})
    assert response.status_code == 200
    assert response.get_json()["client"] == "PODIUM"
    assert response.get_json()["is_on_hold"] is True

    assert client.patch(f"/api/projects/{pid}", json={"status": "done"}).status_code == 400
    assert client.patch(f"/api/projects/{pid}", json={"est_rt": "-1"}).status_code == 400
    assert client.patch(f"/api/projects/{pid}", json={}).status_code == 400
    assert client.patch("/api/projects/999", json={"title": "x"}).status_code == 404


def test_delete_project(client):
    pid = _create(client)["id"]
    _log(client, "qc", pid, person="Rein", date="2025-08-18", hours="1")
    assert client.delete(f"/api/projects/{pid}").status_code == 200
    assert client.get(f"/api/projects/{pid}").status_code == 404
    assert client.get("/api/logs/qc").get_json() == []
    assert client.delete(f"/api/projects/{pid}").status_code == 404


def test_grid_shows_assigned_person(client):
    pid = _create(client, pz_qc="Laurain")["id"]
    grid = client.get(f"/api/grid/qc/{pid}", query_string={"date": WEEK_DATE}).get_json()
    assert grid["days"] == ["2025-08-18", "2025-08-19", "2025-08-20", "2025-08-21", "2025-08-22"]
    assert [row["person"] for row in grid["rows"]] == ["Lauraine"]
    assert "flag" not in grid["rows"][0]["cells"]["2025-08-18"]

    other = client.get(f"/api/grid/qc/{pid}", query_string={"date": WEEK_DATE, "viewer": "Sarah"})
    assert other.get_json()["rows"] == []


def test_delete_row_for_displayed_week(client):
    pid = _create(client)["id"]
    for day in ("2025-08-18", "2025-08-22", "2025-08-25"):
        _log(client, "editor", pid, person="Alan", date=day, hours="1")
    response = client.delete(f"/api/grid/editor/{pid}/rows/Alan", query_string={"date": WEEK_DATE})
    assert response.status_code == 200
    assert response.get_json()["rows"] == []
    assert [log["date"] for log in client.get("/api/logs/editor").get_json()] == ["2025-08-25"]


def test_flush_endpoint(client):
    pid = _create(client)["id"]
    response = client.post(f"/api/grid/editor/{pid}/flush", query_string={"date": WEEK_DATE})
    assert response.status_code == 200
    assert response.get_json()["pending"] == []


def test_personal_stats(client):
    first = _create(client, title="The Whistler")["id"]
    second = _create(client, title="Smart Mouth")["id"]
    _log(client, "editor", first, person="Glenn", date="2025-08-18", hours="2")
    _log(client, "editor", second, person="glenn", date="2025-08-19", hours="3.5")
    _log(client, "editor", second, person="Glenn", date="2025-09-01", hours="9")

    stats = client.get(
        "/api/stats/editor/glen", query_string={"timeframe": "week", "date": WEEK_DATE}
    ).get_json()
    assert stats["person"] == "Glenn"
    assert stats["start"] == "2025-08-18"
    assert stats["end"] == "2025-08-24"
    assert stats["total"] == "5.50"
    assert stats["projects"] == [
        {"title": "Smart Mouth", "hours": "3.50"},
        {"title": "The Whistler", "hours": "2.00"},
    ]
    assert stats["prev"] == "2025-08-13"
    assert stats["next"] == "2025-08-27"

    month = client.get(
        "/api/stats/editor/Glenn", query_string={"timeframe": "month", "date": WEEK_DATE, "step": 1}
    ).get_json()
    assert month["label"] == "September 2025"
    assert month["total"] == "9.00"

    bad = client.get("/api/stats/editor/Glenn", query_string={"timeframe": "year"})
    assert bad.status_code == 400


def test_team_summary_credits_canonical_names(client):
    pid = _create(client)["id"]
    _log(client, "qc", pid, person="Laurain", date="2025-08-18", hours="2")
    team = client.get("/api/team/qc", query_string={"timeframe": "week", "date": WEEK_DATE}).get_json()
    assert team["label"] == "Week of 2025-08-18"
    assert team["total"] == "2.00"
    assert [p["name"] for p in team["people"]] == ["Lauraine", "Jomar", "Sarah", "Rein"]
    assert team["people"][0]["other"] == 2

    today = client.get("/api/team/qc", query_string={"timeframe": "today"})
    assert today.status_code == 400


def test_views(client):
    _create(client, title="AUDIBLE: Only Rogue Actions", due_date="2025-09-02")
    _create(client, title="The Night That Finds Us All", due_date="2025-08-26")

    groups = client.get("/api/projects", query_string={"view": "client"}).get_json()
    assert [group["client"] for group in groups] == ["PRH", "AUDIBLE"]
    assert "personnel" not in groups[0]["projects"][0]

    editor = client.get("/api/projects", query_string={"view": "editor"}).get_json()
    assert [p["due_date"] for p in editor] == ["2025-08-26", "2025-09-02"]

    manager = client.get("/api/projects", query_string={"sort": "due_date"}).get_json()
    assert [p["due_date"] for p in manager] == ["2025-08-26", "2025-09-02"]

    assert client.get("/api/projects", query_string={"view": "nobody"}).status_code == 400


def test_alerts_start_empty(client):
    assert client.get("/api/alerts").get_json() == []


def test_stored_totals_when_computed_totals_disabled(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE": str(tmp_path / "stored.db"),
            "LOG_WRITE_DEBOUNCE_SECONDS": 0,
            "COMPUTED_TOTALS": False,
        }
    )
    client = app.test_client()
    pid = _create(client, est_rt=5)["id"]
    _log(client, "editor", pid, person="Alan", date="2025-08-18", hours="1.25")
    _log(client, "editor", pid, person="Jazz", date="2025-08-19", hours="2")
    shown = client.get(f"/api/projects/{pid}").get_json()
    assert shown["total_edited"] == 3.25
    assert shown["whats_left"] == "1.75"


def test_local_backend_starts_from_seed(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE": str(tmp_path / "logs.db"),
            "LOCAL_STATE_PATH": str(tmp_path / "state.json"),
            "PROJECT_BACKEND": "local",
            "LOG_WRITE_DEBOUNCE_SECONDS": 0,
        }
    )
    client = app.test_client()
    ongoing = client.get("/api/projects").get_json()
    assert len(ongoing) == 11
    assert all(p["status"] == "ongoing" for p in ongoing)

    created = _create(client, title="CURATED: Fresh")
    assert created["id"] == 67
    assert created["client"] == "CURATED AUDIO"
    assert (tmp_path / "state.json").exists()


def _debounced_client(tmp_path, clock):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE": str(tmp_path / "debounced.db"),
            "LOG_WRITE_DEBOUNCE_SECONDS": 0.75,
            "LOG_WRITE_TIMER_FACTORY": clock,
        }
    )
    return app.test_client()


def test_debounced_edit_lands_after_other_requests(tmp_path, clock):
    client = _debounced_client(tmp_path, clock)
    pid = _create(client)["id"]
    _log(client, "editor", pid, person="Jazz", date="2025-08-19", hours="1")
    clock.run_all()

    grid = _log(client, "editor", pid, person="Alan", date="2025-08-18", hours="5").get_json()
    assert grid["pending"] == [["Alan", "2025-08-18"]]
    assert grid["rows"][0]["cells"]["2025-08-18"]["hours"] == "5"
    assert [log["editor_name"] for log in client.get("/api/logs/editor").get_json()] == ["Jazz"]

    client.get(f"/api/grid/editor/{pid}", query_string={"date": "2025-08-27"})
    client.delete(f"/api/grid/editor/{pid}/rows/Jazz", query_string={"date": WEEK_DATE})
    client.get(f"/api/grid/editor/{pid}", query_string={"date": WEEK_DATE})
    clock.run_all()

    logs = client.get("/api/logs/editor").get_json()
    assert [(log["editor_name"], log["date"], log["hours_worked"]) for log in logs] == [
        ("Alan", "2025-08-18", 5)
    ]


def test_deleting_project_drops_its_pending_writes(tmp_path, clock):
    client = _debounced_client(tmp_path, clock)
    pid = _create(client)["id"]
    _log(client, "qc", pid, person="Rein", date="2025-08-18", hours="2")
    assert client.delete(f"/api/projects/{pid}").status_code == 200
    clock.run_all()
    assert client.get("/api/logs/qc").get_json() == []


def test_idle_grids_are_not_kept(app, client):
    first = _create(client)["id"]
    second = _create(client)["id"]
    client.get(f"/api/grid/editor/{first}", query_string={"date": WEEK_DATE})
    client.get(f"/api/grid/qc/{second}", query_string={"date": WEEK_DATE})
    assert list(app.extensions["prodtrack"].grids) == [("qc", second)]
