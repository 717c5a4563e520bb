"""Timer state store: one ``TimerState`` row per lab day.

All writes go through here. Actions are planned by ``controller`` and
persisted in one transaction together with any readiness reset they cascade
into. Persisted changes are announced to in-process listeners so a push
channel can be layered on later without touching the state machine.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rotaclock_core import clock, readiness
from rotaclock_core.config import Settings
from rotaclock_core.controller import plan_action, validate_settings
from rotaclock_core.directory import LabDayDirectory
from rotaclock_core.errors import ConflictError, NotFoundError, NotReadyError, ValidationError, require
from rotaclock_core.models import TimerState, TimerStatus
from rotaclock_core.storage import guard_storage

logger = logging.getLogger("rotaclock_core.timer_store")

TimerListener = Callable[[str, str, Dict[str, Any]], None]
_timer_listeners: Set[TimerListener] = set()


def register_timer_listener(cb: TimerListener) -> None:
    _timer_listeners.add(cb)


def unregister_timer_listener(cb: TimerListener) -> None:
    _timer_listeners.discard(cb)


def _emit(lab_day_id: str, action: str, timer: TimerState) -> None:
    payload = timer.to_dict()
    for cb in list(_timer_listeners):
        try:
            cb(lab_day_id, action, payload)
        except Exception:
            logger.warning("timer.listener dropped cb=%r", cb)
            _timer_listeners.discard(cb)


def _find(db: Session, lab_day_id: str) -> Optional[TimerState]:
    return db.query(TimerState).filter(TimerState.lab_day_id == lab_day_id).first()


def _record_expiry(timer: TimerState, now: datetime) -> bool:
    """Raise the rotation prompt once per run when a countdown passes zero."""
    if timer.status != TimerStatus.RUNNING or timer.expiry_recorded:
        return False
    remaining = clock.remaining_seconds(
        timer.status, timer.started_at, timer.elapsed_when_paused,
        timer.duration_seconds, timer.debrief_seconds, now,
    )
    if remaining >= 0:
        return False
    timer.rotation_acknowledged = False
    timer.expiry_recorded = True
    return True


@guard_storage
def create_or_reset(
    db: Session,
    lab_day_id: str,
    duration_seconds: Optional[int],
    debrief_seconds: Optional[int] = None,
    mode: Optional[str] = None,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> TimerState:
    """Upsert a fresh stopped timer at rotation 1."""
    require(lab_day_id, "labDayId")
    require(duration_seconds, "durationSeconds")
    settings = settings or Settings()
    fields: Dict[str, Any] = {"duration_seconds": duration_seconds}
    fields["debrief_seconds"] = settings.default_debrief_seconds if debrief_seconds is None else debrief_seconds
    fields["mode"] = mode or settings.default_mode
    fields = validate_settings(fields)
    now = now or clock.utcnow()
    values = dict(
        fields,
        status=TimerStatus.STOPPED,
        started_at=None,
        paused_at=None,
        elapsed_when_paused=0,
        rotation_number=1,
        rotation_acknowledged=True,
        expiry_recorded=False,
        updated_at=now,
    )

    timer = _find(db, lab_day_id)
    if timer is None:
        timer = TimerState(lab_day_id=lab_day_id, version=1, created_at=now, **values)
        db.add(timer)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            timer = _find(db, lab_day_id)
            _assign(timer, values)
            db.commit()
    else:
        _assign(timer, values)
        db.commit()
    db.refresh(timer)
    logger.info(
        "timer.create lab_day=%s duration=%s debrief=%s mode=%s",
        lab_day_id, timer.duration_seconds, timer.debrief_seconds, timer.mode,
    )
    _emit(lab_day_id, "create", timer)
    return timer


def _assign(timer: TimerState, values: Dict[str, Any]) -> None:
    for k, v in values.items():
        setattr(timer, k, v)
    timer.version = (timer.version or 0) + 1


@guard_storage
def get(db: Session, lab_day_id: str, now: Optional[datetime] = None) -> Optional[TimerState]:
    """Return the lab day's timer, or None when it has never been created."""
    require(lab_day_id, "labDayId")
    timer = _find(db, lab_day_id)
    if timer is None:
        return None
    if _record_expiry(timer, now or clock.utcnow()):
        db.commit()
        db.refresh(timer)
        logger.info("timer.expired lab_day=%s rotation=%s", lab_day_id, timer.rotation_number)
        _emit(lab_day_id, "expire", timer)
    return timer


@guard_storage
def apply_patch(
    db: Session,
    lab_day_id: str,
    action: Optional[str],
    fields: Optional[Dict[str, Any]] = None,
    expected_version: Optional[int] = None,
    force: bool = False,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
    directory: Optional[LabDayDirectory] = None,
) -> TimerState:
    """Run ``action`` through the rotation controller and persist the result."""
    require(lab_day_id, "labDayId")
    if not isinstance(force, bool):
        raise ValidationError("force must be a boolean")
    now = now or clock.utcnow()
    settings = settings or Settings()
    timer = _find(db, lab_day_id)
    if timer is None:
        logger.warning("timer.patch not_found lab_day=%s action=%s", lab_day_id, action)
        raise NotFoundError("Timer not found")
    if expected_version is not None:
        if isinstance(expected_version, bool) or not isinstance(expected_version, int):
            raise ValidationError("expectedVersion must be an integer")
        if expected_version != timer.version:
            logger.warning(
                "timer.patch conflict lab_day=%s expected=%s actual=%s", lab_day_id, expected_version, timer.version
            )
            raise ConflictError(f"Timer changed (version {timer.version}); reload and retry")

    _record_expiry(timer, now)
    plan = plan_action(timer, action, fields, now)

    # A missing ready-status table must not roll back the timer change; it
    # reads as "no roster" and the rotation still advances.
    cascade = plan.clear_ready and readiness.table_exists(db)
    if plan.clear_ready and not cascade:
        logger.warning("timer.patch ready_status unavailable lab_day=%s action=%s", lab_day_id, plan.action)

    if cascade and settings.ready_gate and not force:
        snapshot = readiness.list_for_lab_day(db, lab_day_id, directory=directory)
        if snapshot.stations and not snapshot.all_ready:
            db.rollback()
            raise NotReadyError("Not every station is ready")

    if plan.updates:
        plan.updates["updated_at"] = now
        _assign(timer, plan.updates)
    if cascade:
        readiness.clear_all(db, lab_day_id, now=now, commit=False)
    db.commit()
    db.refresh(timer)
    logger.info(
        "timer.patch action=%s lab_day=%s status=%s rotation=%s version=%s",
        plan.action, lab_day_id, timer.status, timer.rotation_number, timer.version,
    )
    _emit(lab_day_id, plan.action, timer)
    return timer


__all__ = [
    "register_timer_listener",
    "unregister_timer_listener",
    "create_or_reset",
    "get",
    "apply_patch",
]
