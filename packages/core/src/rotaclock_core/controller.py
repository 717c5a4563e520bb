"""Rotation controller: the timer action state machine.

``plan_action`` never touches storage. It looks at the current row and the
server's ``now`` and returns the column updates to persist, plus whether the
lab day's ready flags must be cleared. Keeping the timestamp arithmetic here
means a resume is just a shifted ``started_at``: the running-state formula in
``clock`` stays the only definition of time remaining.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from rotaclock_core.clock import elapsed_seconds
from rotaclock_core.errors import InvalidActionError, ValidationError
from rotaclock_core.models import TimerStatus

logger = logging.getLogger("rotaclock_core.controller")

ACTIONS = ("start", "pause", "stop", "next", "reset", "update")

# Columns an `update` may patch. Timestamps and counters stay server-owned.
PATCHABLE_FIELDS = ("duration_seconds", "debrief_seconds", "mode", "rotation_acknowledged")
SERVER_FIELDS = (
    "id",
    "lab_day_id",
    "status",
    "started_at",
    "paused_at",
    "elapsed_when_paused",
    "rotation_number",
    "expiry_recorded",
    "version",
    "created_at",
    "updated_at",
)


def _zeroed() -> Dict[str, Any]:
    return {
        "status": TimerStatus.STOPPED,
        "started_at": None,
        "paused_at": None,
        "elapsed_when_paused": 0,
        "expiry_recorded": False,
    }


@dataclass
class RotationPlan:
    action: str
    updates: Dict[str, Any] = field(default_factory=dict)
    clear_ready: bool = False


def validate_settings(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Check and coerce a settings patch; raises ValidationError."""
    clean: Dict[str, Any] = {}
    for key, value in fields.items():
        if key in SERVER_FIELDS:
            raise ValidationError(f"{key} is managed by the server")
        if key not in PATCHABLE_FIELDS:
            raise ValidationError(f"unknown field {key}")
        if key in ("duration_seconds", "debrief_seconds"):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{key} must be an integer")
            number = value
            if key == "duration_seconds" and number <= 0:
                raise ValidationError("duration_seconds must be positive")
            if key == "debrief_seconds" and number < 0:
                raise ValidationError("debrief_seconds must not be negative")
            clean[key] = number
        elif key == "mode":
            if not isinstance(value, str) or not value.strip():
                raise ValidationError("mode must be a non-empty string")
            clean[key] = value
        else:
            if not isinstance(value, bool):
                raise ValidationError(f"{key} must be a boolean")
            clean[key] = value
    return clean


def plan_action(timer, action: Optional[str], fields: Optional[Dict[str, Any]], now: datetime) -> RotationPlan:
    """Compute the column updates for ``action`` applied to ``timer`` at ``now``."""
    if action not in ACTIONS:
        raise InvalidActionError("Invalid action")
    plan = RotationPlan(action=action)

    if action == "start":
        if timer.status == TimerStatus.PAUSED:
            # Fold the time already run into a virtual start.
            plan.updates = {
                "status": TimerStatus.RUNNING,
                "started_at": now - timedelta(seconds=timer.elapsed_when_paused or 0),
                "paused_at": None,
            }
        else:
            plan.updates = {
                "status": TimerStatus.RUNNING,
                "started_at": now,
                "paused_at": None,
                "elapsed_when_paused": 0,
                "expiry_recorded": False,
            }
    elif action == "pause":
        if timer.status == TimerStatus.RUNNING and timer.started_at is not None:
            plan.updates = {
                "status": TimerStatus.PAUSED,
                "paused_at": now,
                "elapsed_when_paused": max(0, elapsed_seconds(timer.started_at, now)),
            }
        else:
            logger.debug("controller.pause ignored status=%s lab_day=%s", timer.status, timer.lab_day_id)
    elif action in ("stop", "reset"):
        plan.updates = _zeroed()
    elif action == "next":
        plan.updates = _zeroed()
        plan.updates["rotation_number"] = (timer.rotation_number or 1) + 1
        plan.updates["rotation_acknowledged"] = True
        plan.clear_ready = True
    else:  # update
        patch = validate_settings(fields or {})
        if "mode" in patch and patch["mode"] != timer.mode and timer.status == TimerStatus.STOPPED:
            patch.update(_zeroed())
        plan.updates = patch
    return plan


__all__ = ["ACTIONS", "PATCHABLE_FIELDS", "RotationPlan", "plan_action", "validate_settings"]
