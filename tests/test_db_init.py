from rotaclock_core.init_db import DEMO_LAB_DAY_ID, init_db
from rotaclock_core.db import Base, engine
from rotaclock_core import readiness
from rotaclock_core.models import LabDay


def test_init_db_idempotent(db):
    # Run twice with seeding on to ensure no duplicate demo rows.
    init_db(seed_demo=True)
    init_db(seed_demo=True)
    assert engine is not None
    assert {"lab_timer_state", "lab_timer_ready_status", "timer_display_tokens"} <= set(Base.metadata.tables)
    assert db.query(LabDay).count() == 1
    assert len(readiness.list_for_lab_day(db, DEMO_LAB_DAY_ID).stations) == 3


def test_init_db_without_seed(db):
    init_db(seed_demo=False)
    assert db.query(LabDay).count() == 0
