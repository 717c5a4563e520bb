from datetime import timedelta
import pytest
from rotaclock_core import clock, readiness, timer_store
from rotaclock_core.config import Settings
from rotaclock_core.db import Base, engine
from rotaclock_core.errors import ConflictError, InvalidActionError, NotFoundError, NotReadyError, ValidationError
from rotaclock_core.models import ReadyStatus
from conftest import T0


def at(seconds):
    return T0 + timedelta(seconds=seconds)


def remaining(timer, now):
    return clock.read(timer, now).remaining


def test_create_defaults(db):
    timer = timer_store.create_or_reset(db, "L1", 900, now=T0)
    assert timer.status == "stopped"
    assert timer.rotation_number == 1
    assert timer.rotation_acknowledged is True
    assert timer.debrief_seconds == 300
    assert timer.mode == "countdown"
    assert timer.started_at is None and timer.paused_at is None


def test_create_keeps_explicit_zero_debrief(db):
    assert timer_store.create_or_reset(db, "L1", 900, debrief_seconds=0, now=T0).debrief_seconds == 0


@pytest.mark.parametrize(
    "lab_day_id,duration,field",
    [(None, 900, "labDayId"), ("", 900, "labDayId"), ("L1", None, "durationSeconds")],
)
def test_create_names_missing_field(db, lab_day_id, duration, field):
    with pytest.raises(ValidationError, match=field):
        timer_store.create_or_reset(db, lab_day_id, duration)


def test_create_rejects_non_positive_duration(db):
    with pytest.raises(ValidationError):
        timer_store.create_or_reset(db, "L1", 0)


def test_create_resets_existing_row(db):
    timer_store.create_or_reset(db, "L1", 900, now=T0)
    timer_store.apply_patch(db, "L1", "start", now=T0)
    timer_store.apply_patch(db, "L1", "next", now=at(5))
    again = timer_store.create_or_reset(db, "L1", 600, mode="countup", now=at(10))
    assert again.rotation_number == 1
    assert again.duration_seconds == 600
    assert again.mode == "countup"
    assert db.query(type(again)).count() == 1


def test_get_missing_is_none(db):
    assert timer_store.get(db, "nope") is None


def test_patch_missing_timer_is_not_found(db):
    with pytest.raises(NotFoundError):
        timer_store.apply_patch(db, "L9", "start")


def test_patch_invalid_action(db):
    timer_store.create_or_reset(db, "L1", 900, now=T0)
    with pytest.raises(InvalidActionError):
        timer_store.apply_patch(db, "L1", "explode", now=T0)


def test_pause_resume_round_trip(db):
    timer_store.create_or_reset(db, "L1", 600, now=T0)
    timer_store.apply_patch(db, "L1", "start", now=T0)
    paused = timer_store.apply_patch(db, "L1", "pause", now=at(100))
    assert paused.elapsed_when_paused == 100
    assert remaining(paused, at(100)) == 500
    resumed = timer_store.apply_patch(db, "L1", "start", now=at(150))
    assert clock._utc(resumed.started_at) == at(50)
    assert remaining(resumed, at(150)) == 500


def test_stop_then_read_is_full_duration(db):
    timer_store.create_or_reset(db, "L1", 720, now=T0)
    timer_store.apply_patch(db, "L1", "start", now=T0)
    timer_store.apply_patch(db, "L1", "stop", now=at(300))
    timer = timer_store.get(db, "L1", now=at(301))
    assert remaining(timer, at(301)) == 720


def test_rotation_number_increments_by_one(db):
    timer_store.create_or_reset(db, "L1", 600, now=T0)
    seen = []
    for i in range(5):
        seen.append(timer_store.apply_patch(db, "L1", "next", now=at(i)).rotation_number)
    assert seen == [2, 3, 4, 5, 6]


def test_reset_keeps_rotation(db):
    timer_store.create_or_reset(db, "L1", 600, now=T0)
    timer_store.apply_patch(db, "L1", "next", now=T0)
    timer_store.apply_patch(db, "L1", "start", now=at(1))
    timer = timer_store.apply_patch(db, "L1", "reset", now=at(30))
    assert timer.rotation_number == 2
    assert timer.status == "stopped"


def test_next_clears_every_ready_flag(db, lab_day):
    timer_store.create_or_reset(db, lab_day, 600, now=T0)
    for station in ("S1", "S2", "S3"):
        readiness.set_ready(db, lab_day, station, f"{station}@example.edu", True, now=T0)
    timer_store.apply_patch(db, lab_day, "next", now=at(1))
    snapshot = readiness.list_for_lab_day(db, lab_day)
    assert len(snapshot.statuses) == 3
    assert all(s.is_ready is False for s in snapshot.statuses)


def test_next_leaves_other_lab_days_alone(db):
    timer_store.create_or_reset(db, "L1", 600, now=T0)
    readiness.set_ready(db, "L2", "S1", "a@example.edu", True, now=T0)
    timer_store.apply_patch(db, "L1", "next", now=at(1))
    assert readiness.list_for_lab_day(db, "L2").statuses[0].is_ready is True


def test_expiry_flips_acknowledgment_once(db):
    timer_store.create_or_reset(db, "L1", 900, debrief_seconds=180, now=T0)
    timer_store.apply_patch(db, "L1", "start", now=T0)
    assert timer_store.get(db, "L1", now=at(900)).rotation_acknowledged is True
    expired = timer_store.get(db, "L1", now=at(901))
    assert expired.rotation_acknowledged is False
    assert remaining(expired, at(901)) < 0
    # Operator dismisses the prompt; later reads do not raise it again.
    timer_store.apply_patch(db, "L1", "update", {"rotation_acknowledged": True}, now=at(905))
    assert timer_store.get(db, "L1", now=at(960)).rotation_acknowledged is True


def test_acknowledging_before_first_read_sticks(db):
    timer_store.create_or_reset(db, "L1", 60, now=T0)
    timer_store.apply_patch(db, "L1", "start", now=T0)
    timer_store.apply_patch(db, "L1", "update", {"rotation_acknowledged": True}, now=at(70))
    assert timer_store.get(db, "L1", now=at(80)).rotation_acknowledged is True


def test_fresh_start_rearms_expiry(db):
    timer_store.create_or_reset(db, "L1", 60, now=T0)
    timer_store.apply_patch(db, "L1", "start", now=T0)
    timer_store.get(db, "L1", now=at(61))
    timer_store.apply_patch(db, "L1", "next", now=at(62))
    timer_store.apply_patch(db, "L1", "start", now=at(100))
    assert timer_store.get(db, "L1", now=at(161)).rotation_acknowledged is False


def test_version_increments_and_guards_stale_writes(db):
    created = timer_store.create_or_reset(db, "L1", 600, now=T0)
    v1 = created.version
    started = timer_store.apply_patch(db, "L1", "start", expected_version=v1, now=at(1))
    assert started.version == v1 + 1
    with pytest.raises(ConflictError):
        timer_store.apply_patch(db, "L1", "start", expected_version=v1, now=at(2))
    # Without a token the write is last-write-wins.
    assert timer_store.apply_patch(db, "L1", "pause", now=at(3)).status == "paused"


def test_ready_gate_blocks_next_until_all_ready(db, lab_day):
    gated = Settings(ready_gate=True)
    timer_store.create_or_reset(db, lab_day, 600, now=T0)
    readiness.set_ready(db, lab_day, "S1", "a@example.edu", True, now=T0)
    with pytest.raises(NotReadyError):
        timer_store.apply_patch(db, lab_day, "next", now=at(1), settings=gated)
    assert timer_store.get(db, lab_day, now=at(1)).rotation_number == 1
    for station in ("S2", "S3"):
        readiness.set_ready(db, lab_day, station, "b@example.edu", True, now=at(2))
    assert timer_store.apply_patch(db, lab_day, "next", now=at(3), settings=gated).rotation_number == 2


def test_ready_gate_force(db, lab_day):
    timer_store.create_or_reset(db, lab_day, 600, now=T0)
    timer = timer_store.apply_patch(db, lab_day, "next", force=True, now=at(1), settings=Settings(ready_gate=True))
    assert timer.rotation_number == 2


def test_ready_gate_force_must_be_boolean(db, lab_day):
    timer_store.create_or_reset(db, lab_day, 600, now=T0)
    with pytest.raises(ValidationError):
        timer_store.apply_patch(db, lab_day, "next", force="false", now=at(1), settings=Settings(ready_gate=True))
    assert timer_store.get(db, lab_day, now=at(1)).rotation_number == 1


def test_next_advances_without_ready_status_table(db, lab_day):
    timer_store.create_or_reset(db, lab_day, 600, now=T0)
    ReadyStatus.__table__.drop(bind=engine)
    try:
        timer = timer_store.apply_patch(db, lab_day, "next", now=at(1), settings=Settings(ready_gate=True))
        assert timer.rotation_number == 2
        assert timer.status == "stopped"
        assert timer_store.get(db, lab_day, now=at(2)).rotation_number == 2
    finally:
        Base.metadata.create_all(bind=engine)


def test_listeners_receive_changes(db):
    events = []

    def listener(lab_day_id, action, payload):
        events.append((lab_day_id, action, payload["status"]))

    def broken(*_):
        raise RuntimeError("gone")

    timer_store.register_timer_listener(listener)
    timer_store.register_timer_listener(broken)
    try:
        timer_store.create_or_reset(db, "L1", 600, now=T0)
        timer_store.apply_patch(db, "L1", "start", now=T0)
    finally:
        timer_store.unregister_timer_listener(listener)
        timer_store.unregister_timer_listener(broken)
    assert events == [("L1", "create", "stopped"), ("L1", "start", "running")]
