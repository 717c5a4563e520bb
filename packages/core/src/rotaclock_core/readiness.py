"""Readiness registry: one ready flag per station per lab day."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rotaclock_core import clock
from rotaclock_core.directory import LabDayDirectory, get_directory
from rotaclock_core.errors import ValidationError, require
from rotaclock_core.models import ReadyStatus
from rotaclock_core.storage import guard_storage

logger = logging.getLogger("rotaclock_core.readiness")


@dataclass
class ReadinessSnapshot:
    statuses: List[ReadyStatus] = field(default_factory=list)
    stations: List[dict] = field(default_factory=list)

    @property
    def all_ready(self) -> bool:
        """True when the roster is non-empty and every station is ready."""
        if not self.stations:
            return False
        ready = {s.station_id for s in self.statuses if s.is_ready}
        return all(str(st["id"]) in ready for st in self.stations)


def table_exists(db: Session) -> bool:
    """Whether the ready-status table is present on the session's connection."""
    return inspect(db.connection()).has_table(ReadyStatus.__tablename__)


@guard_storage
def set_ready(
    db: Session,
    lab_day_id: str,
    station_id: str,
    user_email: str,
    is_ready: bool,
    user_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ReadyStatus:
    """Upsert the flag for (lab day, station); the last writer wins."""
    require(lab_day_id, "labDayId")
    require(station_id, "stationId")
    require(user_email, "userEmail")
    if not isinstance(is_ready, bool):
        raise ValidationError("isReady must be a boolean")
    now = now or clock.utcnow()
    values = {"user_email": user_email, "user_name": user_name, "is_ready": is_ready, "updated_at": now}

    created = False
    status = _find(db, lab_day_id, station_id)
    if status is None:
        status = ReadyStatus(lab_day_id=lab_day_id, station_id=station_id, **values)
        db.add(status)
        try:
            db.commit()
            created = True
        except IntegrityError:
            # Another client inserted first; fall through to update.
            db.rollback()
            status = _find(db, lab_day_id, station_id)
    if not created:
        for k, v in values.items():
            setattr(status, k, v)
        db.commit()
    db.refresh(status)
    logger.info(
        "ready.set lab_day=%s station=%s ready=%s by=%s", lab_day_id, station_id, is_ready, user_email
    )
    return status


def _find(db: Session, lab_day_id: str, station_id: str) -> Optional[ReadyStatus]:
    return (
        db.query(ReadyStatus)
        .filter(ReadyStatus.lab_day_id == lab_day_id, ReadyStatus.station_id == station_id)
        .first()
    )


@guard_storage
def list_for_lab_day(db: Session, lab_day_id: str, directory: Optional[LabDayDirectory] = None) -> ReadinessSnapshot:
    require(lab_day_id, "labDayId")
    statuses = (
        db.query(ReadyStatus)
        .filter(ReadyStatus.lab_day_id == lab_day_id)
        .order_by(ReadyStatus.station_id)
        .all()
    )
    stations = (directory or get_directory()).stations_for(db, lab_day_id)
    return ReadinessSnapshot(statuses=statuses, stations=stations)


@guard_storage
def clear_all(db: Session, lab_day_id: str, now: Optional[datetime] = None, commit: bool = True) -> int:
    """Set every recorded flag of the lab day to not-ready. Returns rows touched."""
    require(lab_day_id, "labDayId")
    now = now or clock.utcnow()
    count = (
        db.query(ReadyStatus)
        .filter(ReadyStatus.lab_day_id == lab_day_id)
        .update({ReadyStatus.is_ready: False, ReadyStatus.updated_at: now}, synchronize_session=False)
    )
    if commit:
        db.commit()
    logger.info("ready.clear lab_day=%s rows=%d", lab_day_id, count)
    return count


@guard_storage
def delete_all(db: Session, lab_day_id: str) -> int:
    require(lab_day_id, "labDayId")
    count = db.query(ReadyStatus).filter(ReadyStatus.lab_day_id == lab_day_id).delete(synchronize_session=False)
    db.commit()
    logger.info("ready.delete lab_day=%s rows=%d", lab_day_id, count)
    return count


__all__ = ["ReadinessSnapshot", "table_exists", "set_ready", "list_for_lab_day", "clear_all", "delete_all"]
