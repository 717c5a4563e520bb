from fastapi import APIRouter, Depends
import logging
from pydantic import BaseModel
from typing import Optional
from sqlalchemy.orm import Session
from rotaclock_core import clock, displays
from rotaclock_core.db import get_db
from rotaclock_core.errors import RotaclockError, StorageUnavailable
from rotaclock_api.deps import current_actor, http_error
from rotaclock_api.routes.timer import timer_payload

router = APIRouter(prefix="/timer-display", tags=["timer-display"])
log = logging.getLogger("rotaclock_api")


class DisplayCreateRequest(BaseModel):
    room_name: Optional[str] = None
    lab_day_id: Optional[str] = None
    timer_type: Optional[str] = None


class DisplayUpdateRequest(BaseModel):
    id: Optional[int] = None
    room_name: Optional[str] = None
    lab_day_id: Optional[str] = None
    timer_type: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("")
@router.get("/", include_in_schema=False)
def list_displays(db: Session = Depends(get_db)):
    try:
        items = displays.list_displays(db)
    except StorageUnavailable:
        return {"tokens": [], "tableExists": False}
    return {"tokens": [d.to_dict() for d in items]}


@router.post("")
@router.post("/", include_in_schema=False)
def create_display(request: DisplayCreateRequest, db: Session = Depends(get_db), actor: str = Depends(current_actor)):
    try:
        display = displays.create_display(
            db,
            request.room_name,
            lab_day_id=request.lab_day_id,
            timer_type=request.timer_type,
            created_by=None if actor == "?" else actor,
        )
    except RotaclockError as e:
        raise http_error(e)
    return {"token": display.to_dict()}


@router.patch("")
@router.patch("/", include_in_schema=False)
def update_display(request: DisplayUpdateRequest, db: Session = Depends(get_db), actor: str = Depends(current_actor)):
    fields = request.model_dump(exclude_unset=True)
    display_id = fields.pop("id", None)
    try:
        display = displays.update_display(db, display_id, fields)
    except RotaclockError as e:
        raise http_error(e)
    log.info("display.update id=%s actor=%s", display_id, actor)
    return {"token": display.to_dict()}


@router.delete("")
@router.delete("/", include_in_schema=False)
def delete_display(id: Optional[int] = None, db: Session = Depends(get_db), actor: str = Depends(current_actor)):
    try:
        displays.delete_display(db, id)
    except RotaclockError as e:
        raise http_error(e)
    log.info("display.delete id=%s actor=%s", id, actor)
    return {}


@router.get("/{token}")
def poll_display(token: str, db: Session = Depends(get_db)):
    now = clock.utcnow()
    try:
        view = displays.resolve(db, token, now=now)
    except RotaclockError as e:
        raise http_error(e)
    body = timer_payload(view["timer"], now)
    body["display"] = view["display"].to_dict()
    body["labDay"] = view["lab_day"]
    return body
