import pytest

from prodtrack import create_app
from prodtrack.models import EDITOR_LOGS, QC_LOGS
from prodtrack.store import LogStore, ProjectStore, init_schema, sqlite_connector


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class FakeClock:
    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [timer for timer in self.timers if not timer.cancelled]

    def run_all(self):
        for timer in list(self.timers):
            timer.fire()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def connect(tmp_path):
    connect = sqlite_connector(str(tmp_path / "tracker.db"))
    conn = connect()
    try:
        init_schema(conn)
    finally:
        conn.close()
    return connect


@pytest.fixture
def projects(connect):
    return ProjectStore(connect)


@pytest.fixture
def editor_logs(connect):
    return LogStore(connect, EDITOR_LOGS)


@pytest.fixture
def qc_logs(connect):
    return LogStore(connect, QC_LOGS)


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "DATABASE": str(tmp_path / "app.db"),
            "LOCAL_STATE_PATH": str(tmp_path / "local_state.json"),
            "LOG_WRITE_DEBOUNCE_SECONDS": 0,
        }
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
