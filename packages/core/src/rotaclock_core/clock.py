"""Elapsed-time calculator for the shared rotation clock.

Everything here is pure: callers pass the server's ``now`` explicitly so a
display never measures time with its own clock. ``utcnow`` is the single
place the server reads wall time.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional

from rotaclock_core.models import TimerStatus, _utc


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(dt: datetime) -> str:
    return _utc(dt).isoformat().replace("+00:00", "Z")


def elapsed_seconds(start: datetime, now: datetime) -> int:
    """Whole seconds from ``start`` to ``now`` (floored)."""
    return math.floor((_utc(now) - _utc(start)).total_seconds())


def elapsed_for(status: str, started_at: Optional[datetime], elapsed_when_paused: int, server_now: datetime) -> int:
    if status == TimerStatus.RUNNING and started_at is not None:
        return elapsed_seconds(started_at, server_now)
    if status == TimerStatus.PAUSED:
        return elapsed_when_paused or 0
    return 0


def remaining_seconds(
    status: str,
    started_at: Optional[datetime],
    elapsed_when_paused: int,
    duration_seconds: int,
    debrief_seconds: int,
    server_now: datetime,
    countdown: str = "main",
) -> int:
    """Seconds left on the main countdown, or on the debrief countdown.

    The main value goes negative once a running countdown expires. The debrief
    countdown is the final ``debrief_seconds`` of the main one: it holds at
    ``debrief_seconds`` until the window opens and bottoms out at 0.
    """
    main = duration_seconds - elapsed_for(status, started_at, elapsed_when_paused, server_now)
    if countdown == "main":
        return main
    if countdown != "debrief":
        raise ValueError(f"unknown countdown {countdown!r}")
    return max(0, min(main, debrief_seconds or 0))


@dataclass
class ClockReading:
    elapsed: int
    remaining: int
    display_seconds: int
    display: str
    phase: str
    debrief_remaining: int
    rotation_prompt: bool

    def to_dict(self) -> dict:
        return asdict(self)


def read(timer, server_now: datetime) -> ClockReading:
    """Interpret a TimerState row (or any object with the same fields)."""
    elapsed = elapsed_for(timer.status, timer.started_at, timer.elapsed_when_paused, server_now)
    remaining = timer.duration_seconds - elapsed
    debrief = timer.debrief_seconds or 0
    if timer.mode == "countdown":
        display = max(0, remaining)
    else:
        display = min(elapsed, timer.duration_seconds)

    if timer.status == TimerStatus.STOPPED:
        phase = "idle"
    elif timer.status == TimerStatus.PAUSED:
        phase = "paused"
    elif remaining <= 0:
        phase = "expired"
    elif remaining <= debrief:
        phase = "debrief"
    else:
        phase = "work"

    return ClockReading(
        elapsed=elapsed,
        remaining=remaining,
        display_seconds=display,
        display=format_clock(display),
        phase=phase,
        debrief_remaining=remaining if phase == "debrief" else 0,
        rotation_prompt=remaining < 0 and not timer.rotation_acknowledged,
    )


def format_clock(seconds: int) -> str:
    """Render ``M:SS`` or ``H:MM:SS``; the sign is dropped."""
    s = abs(int(seconds))
    hrs, rem = divmod(s, 3600)
    mins, secs = divmod(rem, 60)
    if hrs:
        return f"{hrs}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


__all__ = [
    "utcnow",
    "iso",
    "elapsed_seconds",
    "elapsed_for",
    "remaining_seconds",
    "ClockReading",
    "read",
    "format_clock",
]
