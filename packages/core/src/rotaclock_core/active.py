"""Active-timer locator for the site-wide "a lab is live" banner."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from rotaclock_core.directory import LabDayDirectory, get_directory
from rotaclock_core.errors import StorageUnavailable
from rotaclock_core.models import TimerState, TimerStatus
from rotaclock_core.storage import guard_storage

logger = logging.getLogger("rotaclock_core.active")


@dataclass
class ActiveTimer:
    timer: Optional[TimerState] = None
    lab_day: Optional[dict] = None


@guard_storage
def _latest_active(db: Session) -> Optional[TimerState]:
    return (
        db.query(TimerState)
        .filter(TimerState.status.in_(TimerStatus.ACTIVE))
        .order_by(TimerState.updated_at.desc(), TimerState.id.desc())
        .first()
    )


def find_active(db: Session, directory: Optional[LabDayDirectory] = None) -> ActiveTimer:
    """Most recently touched running/paused timer, or an empty result.

    A missing table reads as "no lab is live". The lab-day lookup is
    decoration only: if it fails the timer is still returned.
    """
    try:
        timer = _latest_active(db)
    except StorageUnavailable:
        return ActiveTimer()
    if timer is None:
        return ActiveTimer()
    try:
        lab_day = (directory or get_directory()).describe(db, timer.lab_day_id)
    except Exception as e:
        logger.warning("active.lab_day lookup failed lab_day=%s err=%s", timer.lab_day_id, e)
        db.rollback()
        lab_day = None
    return ActiveTimer(timer=timer, lab_day=lab_day)


__all__ = ["ActiveTimer", "find_active"]
