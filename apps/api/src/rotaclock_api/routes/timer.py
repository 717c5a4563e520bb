from fastapi import APIRouter, Body, Depends
import logging
from pydantic import BaseModel
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from rotaclock_core import clock, timer_store
from rotaclock_core.active import find_active
from rotaclock_core.config import Settings
from rotaclock_core.db import get_db
from rotaclock_core.errors import RotaclockError, StorageUnavailable
from rotaclock_core.models import TimerState
from rotaclock_api.deps import current_actor, get_settings, http_error

router = APIRouter(prefix="/timer", tags=["timer"])
log = logging.getLogger("rotaclock_api")

# Accept the camelCase spelling used by the request envelope for patch fields.
FIELD_ALIASES = {
    "durationSeconds": "duration_seconds",
    "debriefSeconds": "debrief_seconds",
    "rotationAcknowledged": "rotation_acknowledged",
}


class TimerCreateRequest(BaseModel):
    labDayId: Optional[str] = None
    durationSeconds: Optional[int] = None
    debriefSeconds: Optional[int] = None
    mode: Optional[str] = None


def timer_payload(timer: Optional[TimerState], now) -> Dict[str, Any]:
    return {
        "timer": timer.to_dict() if timer else None,
        "clock": clock.read(timer, now).to_dict() if timer else None,
        "serverTime": clock.iso(now),
    }


@router.get("")
@router.get("/", include_in_schema=False)
def get_timer(labDayId: Optional[str] = None, db: Session = Depends(get_db)):
    now = clock.utcnow()
    try:
        timer = timer_store.get(db, labDayId, now=now)
    except StorageUnavailable as e:
        return {"timer": None, "clock": None, "tableExists": False, "error": str(e), "serverTime": clock.iso(now)}
    except RotaclockError as e:
        raise http_error(e)
    return timer_payload(timer, now)


@router.post("")
@router.post("/", include_in_schema=False)
def create_timer(
    request: TimerCreateRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: str = Depends(current_actor),
):
    now = clock.utcnow()
    try:
        timer = timer_store.create_or_reset(
            db,
            request.labDayId,
            request.durationSeconds,
            debrief_seconds=request.debriefSeconds,
            mode=request.mode,
            now=now,
            settings=settings,
        )
    except RotaclockError as e:
        log.warning("timer.create fail lab_day=%s err=%s actor=%s", request.labDayId, e, actor)
        raise http_error(e)
    log.info("timer.create ok lab_day=%s actor=%s", timer.lab_day_id, actor)
    return timer_payload(timer, now)


@router.patch("")
@router.patch("/", include_in_schema=False)
def patch_timer(
    payload: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    actor: str = Depends(current_actor),
):
    body = dict(payload)
    lab_day_id = body.pop("labDayId", None)
    action = body.pop("action", None)
    expected_version = body.pop("expectedVersion", None)
    force = body.pop("force", False)
    fields = {FIELD_ALIASES.get(k, k): v for k, v in body.items()}
    now = clock.utcnow()
    try:
        timer = timer_store.apply_patch(
            db,
            lab_day_id,
            action,
            fields=fields if action == "update" else None,
            expected_version=expected_version,
            force=force,
            now=now,
            settings=settings,
        )
    except RotaclockError as e:
        log.warning("timer.patch fail lab_day=%s action=%s err=%s actor=%s", lab_day_id, action, e, actor)
        raise http_error(e)
    log.info("timer.patch ok lab_day=%s action=%s actor=%s", lab_day_id, action, actor)
    return timer_payload(timer, now)


@router.get("/active")
def get_active_timer(db: Session = Depends(get_db)):
    now = clock.utcnow()
    active = find_active(db)
    body = timer_payload(active.timer, now)
    body["labDay"] = active.lab_day
    return body
