"""Database initialization helper for Rotaclock.

Creates all tables and optional demo data (a lab day with a station roster).
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Optional
from sqlalchemy.orm import Session
from .config import Settings
from .db import Base, engine
from .models import LabDay, LabStation

logger = logging.getLogger("rotaclock_core.init_db")

DEMO_LAB_DAY_ID = "demo-lab-day"
DEMO_STATIONS = (
    ("demo-station-1", 1, "Trauma Assessment", "Sim Lab A"),
    ("demo-station-2", 2, "Cardiac Arrest", "Sim Lab A"),
    ("demo-station-3", 3, "Airway Management", "Sim Lab B"),
)


def init_db(seed_demo: Optional[bool] = None) -> None:
    """Create tables and optional seed records.

    Parameters
    ----------
    seed_demo: bool
        If True and the demo lab day is missing, create it with three stations.
        Defaults to ``ROTACLOCK_SEED_DEMO``.
    """
    Base.metadata.create_all(bind=engine)
    if seed_demo is None:
        seed_demo = Settings().seed_demo
    if not seed_demo:
        return
    with Session(engine) as session:
        if session.get(LabDay, DEMO_LAB_DAY_ID) is not None:
            return
        session.add(LabDay(id=DEMO_LAB_DAY_ID, date=date.today(), title="Demo Rotation Lab"))
        for station_id, number, name, room in DEMO_STATIONS:
            session.add(LabStation(id=station_id, lab_day_id=DEMO_LAB_DAY_ID, station_number=number, name=name, room=room))
        session.commit()
        logger.info("init_db.seed lab_day=%s stations=%d", DEMO_LAB_DAY_ID, len(DEMO_STATIONS))


if __name__ == "__main__":  # pragma: no cover
    init_db()
