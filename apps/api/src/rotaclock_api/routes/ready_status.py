from fastapi import APIRouter, Depends
import logging
from pydantic import BaseModel
from typing import Optional
from sqlalchemy.orm import Session
from rotaclock_core import readiness
from rotaclock_core.db import get_db
from rotaclock_core.errors import RotaclockError, StorageUnavailable
from rotaclock_api.deps import current_actor, http_error

router = APIRouter(prefix="/ready-status", tags=["ready-status"])
log = logging.getLogger("rotaclock_api")


class ReadyStatusRequest(BaseModel):
    labDayId: Optional[str] = None
    stationId: Optional[str] = None
    userEmail: Optional[str] = None
    userName: Optional[str] = None
    isReady: Optional[bool] = None


@router.get("")
@router.get("/", include_in_schema=False)
def list_ready_statuses(labDayId: Optional[str] = None, db: Session = Depends(get_db)):
    try:
        snapshot = readiness.list_for_lab_day(db, labDayId)
    except StorageUnavailable as e:
        return {"readyStatuses": [], "allStations": [], "allReady": False, "tableExists": False, "error": str(e)}
    except RotaclockError as e:
        raise http_error(e)
    return {
        "readyStatuses": [s.to_dict() for s in snapshot.statuses],
        "allStations": snapshot.stations,
        "allReady": snapshot.all_ready,
    }


@router.post("")
@router.post("/", include_in_schema=False)
def set_ready_status(request: ReadyStatusRequest, db: Session = Depends(get_db)):
    try:
        status = readiness.set_ready(
            db,
            request.labDayId,
            request.stationId,
            request.userEmail,
            request.isReady,
            user_name=request.userName,
        )
    except RotaclockError as e:
        log.warning("ready.set fail lab_day=%s station=%s err=%s", request.labDayId, request.stationId, e)
        raise http_error(e)
    return {"status": status.to_dict()}


@router.delete("")
@router.delete("/", include_in_schema=False)
def delete_ready_statuses(labDayId: Optional[str] = None, db: Session = Depends(get_db), actor: str = Depends(current_actor)):
    try:
        count = readiness.delete_all(db, labDayId)
    except RotaclockError as e:
        raise http_error(e)
    log.info("ready.delete lab_day=%s rows=%d actor=%s", labDayId, count, actor)
    return {}
