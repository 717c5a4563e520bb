import sys, os, tempfile
from datetime import date, datetime, timedelta, timezone
import pytest

# Always force tests to use an isolated SQLite database file under a temp dir.
# Do this before importing any rotaclock_core modules (especially rotaclock_core.db).
if "ROTACLOCK_DB_URL" not in os.environ and "ROTACLOCK_DATABASE_URL" not in os.environ:
    _test_db_dir = tempfile.mkdtemp(prefix="rotaclock_test_db_")
    os.environ["ROTACLOCK_DB_URL"] = f"sqlite:///{os.path.join(_test_db_dir, 'test_rotaclock.db')}"
# Ensure repository root and package src dirs are on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
for p in (ROOT, os.path.join(ROOT, 'packages', 'core', 'src'), os.path.join(ROOT, 'apps', 'api', 'src')):
    if p not in sys.path:
        sys.path.insert(0, p)

from rotaclock_core import clock  # noqa: E402
from rotaclock_core.db import Base, SessionLocal, engine  # noqa: E402
from rotaclock_core.models import LabDay, LabStation  # noqa: E402

T0 = datetime(2026, 3, 2, 13, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Server clock stand-in; tests move it explicitly."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture(autouse=True)
def clean_tables():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    finally:
        session.close()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_clock(monkeypatch):
    fc = FakeClock()
    monkeypatch.setattr(clock, "utcnow", fc)
    return fc


@pytest.fixture
def lab_day(db):
    """Lab day L1 with a three-station roster."""
    db.add(LabDay(id="L1", date=date(2026, 3, 2), title="Trauma Rotations"))
    for n in (1, 2, 3):
        db.add(LabStation(id=f"S{n}", lab_day_id="L1", station_number=n, name=f"Station {n}"))
    db.commit()
    return "L1"


@pytest.fixture
def client(monkeypatch):
    from fastapi.testclient import TestClient
    from rotaclock_api.main import app
    monkeypatch.delenv("ROTACLOCK_READY_GATE", raising=False)
    return TestClient(app)
