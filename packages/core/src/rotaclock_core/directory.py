"""Lab-day lookups owned by the wider portal.

The rotation clock only needs two things from the rest of the system: the
station roster of a lab day and a human label for it. ``SqlLabDayDirectory``
reads them from the ``lab_days``/``lab_stations`` tables; deployments with a
different source can install their own object via ``set_directory``.
"""
from __future__ import annotations

from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from rotaclock_core.models import LabDay, LabStation


class LabDayDirectory(Protocol):
    def stations_for(self, db: Session, lab_day_id: str) -> List[dict]: ...

    def describe(self, db: Session, lab_day_id: str) -> Optional[dict]: ...


def display_name(lab_day: LabDay) -> str:
    label = f"{lab_day.date.strftime('%a')}, {lab_day.date.strftime('%b')} {lab_day.date.day}"
    if lab_day.title:
        label = f"{label} - {lab_day.title}"
    return label


class SqlLabDayDirectory:
    def stations_for(self, db: Session, lab_day_id: str) -> List[dict]:
        rows = (
            db.query(LabStation)
            .filter(LabStation.lab_day_id == lab_day_id)
            .order_by(LabStation.station_number, LabStation.id)
            .all()
        )
        return [r.to_dict() for r in rows]

    def describe(self, db: Session, lab_day_id: str) -> Optional[dict]:
        lab_day = db.query(LabDay).filter(LabDay.id == lab_day_id).first()
        if not lab_day:
            return None
        return {
            "id": lab_day.id,
            "date": lab_day.date.isoformat(),
            "title": lab_day.title,
            "displayName": display_name(lab_day),
        }


_directory: LabDayDirectory = SqlLabDayDirectory()


def get_directory() -> LabDayDirectory:
    return _directory


def set_directory(directory: LabDayDirectory) -> None:
    global _directory
    _directory = directory


__all__ = ["LabDayDirectory", "SqlLabDayDirectory", "display_name", "get_directory", "set_directory"]
