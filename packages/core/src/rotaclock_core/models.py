"""ORM models."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, UniqueConstraint

from rotaclock_core.db import Base


def _utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if dt is None:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    dt = _utc(dt)
    return dt.isoformat().replace("+00:00", "Z") if dt else None


class TimerStatus:
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"

    ALL = (STOPPED, RUNNING, PAUSED)
    ACTIVE = (RUNNING, PAUSED)


class TimerState(Base):
    __tablename__ = "lab_timer_state"
    id = Column(Integer, primary_key=True)
    lab_day_id = Column(String, unique=True, index=True, nullable=False)
    status = Column(String, nullable=False, default=TimerStatus.STOPPED)
    started_at = Column(DateTime(timezone=True), nullable=True)
    paused_at = Column(DateTime(timezone=True), nullable=True)
    elapsed_when_paused = Column(Integer, nullable=False, default=0)
    duration_seconds = Column(Integer, nullable=False)
    debrief_seconds = Column(Integer, nullable=False, default=300)
    mode = Column(String, nullable=False, default="countdown")
    rotation_number = Column(Integer, nullable=False, default=1)
    rotation_acknowledged = Column(Boolean, nullable=False, default=True)
    # Set once the current run's expiry has flipped rotation_acknowledged off
    expiry_recorded = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lab_day_id": self.lab_day_id,
            "status": self.status,
            "started_at": _iso(self.started_at),
            "paused_at": _iso(self.paused_at),
            "elapsed_when_paused": self.elapsed_when_paused or 0,
            "duration_seconds": self.duration_seconds,
            "debrief_seconds": self.debrief_seconds,
            "mode": self.mode,
            "rotation_number": self.rotation_number,
            "rotation_acknowledged": bool(self.rotation_acknowledged),
            "version": self.version,
            "updated_at": _iso(self.updated_at),
        }


class ReadyStatus(Base):
    __tablename__ = "lab_timer_ready_status"
    __table_args__ = (UniqueConstraint("lab_day_id", "station_id", name="uq_ready_lab_day_station"),)
    id = Column(Integer, primary_key=True)
    lab_day_id = Column(String, index=True, nullable=False)
    station_id = Column(String, nullable=False)
    user_email = Column(String, nullable=False)
    user_name = Column(String, nullable=True)
    is_ready = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lab_day_id": self.lab_day_id,
            "station_id": self.station_id,
            "user_email": self.user_email,
            "user_name": self.user_name,
            "is_ready": bool(self.is_ready),
            "updated_at": _iso(self.updated_at),
        }


class LabDay(Base):
    """Minimal mirror of the portal's lab days, used for display metadata."""

    __tablename__ = "lab_days"
    id = Column(String, primary_key=True)
    date = Column(Date, nullable=False)
    title = Column(String, nullable=True)


class LabStation(Base):
    __tablename__ = "lab_stations"
    id = Column(String, primary_key=True)
    lab_day_id = Column(String, index=True, nullable=False)
    station_number = Column(Integer, nullable=False, default=1)
    name = Column(String, nullable=True)
    room = Column(String, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "lab_day_id": self.lab_day_id,
            "station_number": self.station_number,
            "name": self.name,
            "room": self.room,
        }


class TimerDisplay(Base):
    __tablename__ = "timer_display_tokens"
    id = Column(Integer, primary_key=True)
    token = Column(String, unique=True, index=True, nullable=False)
    room_name = Column(String, nullable=False)
    lab_day_id = Column(String, nullable=True)
    timer_type = Column(String, nullable=False, default="fixed")
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "token": self.token,
            "room_name": self.room_name,
            "lab_day_id": self.lab_day_id,
            "timer_type": self.timer_type,
            "is_active": bool(self.is_active),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }


__all__ = ["TimerStatus", "TimerState", "ReadyStatus", "LabDay", "LabStation", "TimerDisplay"]
