"""Room display tokens.

A display is a kiosk screen in a room. It polls with an unguessable token
instead of a login, and shows either the timer of the lab day it is pinned to
or whichever lab timer is live.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from rotaclock_core import clock, timer_store
from rotaclock_core.active import find_active
from rotaclock_core.directory import LabDayDirectory, get_directory
from rotaclock_core.errors import NotFoundError, ValidationError, require
from rotaclock_core.models import TimerDisplay
from rotaclock_core.storage import guard_storage

logger = logging.getLogger("rotaclock_core.displays")

TIMER_TYPES = ("fixed", "mobile")
UPDATABLE = ("room_name", "lab_day_id", "timer_type", "is_active")


def _check_type(timer_type: str) -> str:
    if timer_type not in TIMER_TYPES:
        raise ValidationError(f"timer_type must be one of {', '.join(TIMER_TYPES)}")
    return timer_type


@guard_storage
def list_displays(db: Session) -> List[TimerDisplay]:
    return db.query(TimerDisplay).order_by(TimerDisplay.created_at.desc(), TimerDisplay.id.desc()).all()


@guard_storage
def create_display(
    db: Session,
    room_name: Optional[str],
    lab_day_id: Optional[str] = None,
    timer_type: Optional[str] = None,
    created_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TimerDisplay:
    require(room_name, "room_name")
    display = TimerDisplay(
        token=secrets.token_urlsafe(16),
        room_name=room_name,
        lab_day_id=lab_day_id or None,
        timer_type=_check_type(timer_type or "fixed"),
        is_active=True,
        created_by=created_by,
        created_at=now or clock.utcnow(),
    )
    db.add(display)
    db.commit()
    db.refresh(display)
    logger.info("display.create id=%s room=%s by=%s", display.id, room_name, created_by)
    return display


def _get(db: Session, display_id: int) -> TimerDisplay:
    display = db.query(TimerDisplay).filter(TimerDisplay.id == display_id).first()
    if not display:
        raise NotFoundError("Display not found")
    return display


@guard_storage
def update_display(db: Session, display_id: Optional[int], fields: Dict[str, Any]) -> TimerDisplay:
    require(display_id, "id")
    display = _get(db, display_id)
    for key, value in fields.items():
        if key not in UPDATABLE:
            raise ValidationError(f"unknown field {key}")
        if key == "room_name":
            require(value, "room_name")
        elif key == "timer_type":
            _check_type(value)
        elif key == "is_active" and not isinstance(value, bool):
            raise ValidationError("is_active must be a boolean")
        elif key == "lab_day_id":
            value = value or None
        setattr(display, key, value)
    db.commit()
    db.refresh(display)
    logger.info("display.update id=%s fields=%s", display_id, ",".join(sorted(fields)))
    return display


@guard_storage
def delete_display(db: Session, display_id: Optional[int]) -> None:
    require(display_id, "id")
    display = _get(db, display_id)
    db.delete(display)
    db.commit()
    logger.info("display.delete id=%s", display_id)


@guard_storage
def resolve(
    db: Session,
    token: str,
    now: Optional[datetime] = None,
    directory: Optional[LabDayDirectory] = None,
) -> Dict[str, Any]:
    """What a display should show right now."""
    display = db.query(TimerDisplay).filter(TimerDisplay.token == token).first()
    if not display or not display.is_active:
        raise NotFoundError("Display not found or inactive")
    directory = directory or get_directory()
    if display.lab_day_id:
        timer = timer_store.get(db, display.lab_day_id, now=now)
        lab_day = directory.describe(db, display.lab_day_id) if timer else None
    else:
        active = find_active(db, directory=directory)
        timer, lab_day = active.timer, active.lab_day
    return {"display": display, "timer": timer, "lab_day": lab_day}


__all__ = ["TIMER_TYPES", "list_displays", "create_display", "update_display", "delete_display", "resolve"]
