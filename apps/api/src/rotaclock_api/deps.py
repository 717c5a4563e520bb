"""Shared request dependencies for the route modules."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Header, HTTPException

from rotaclock_core.config import Settings
from rotaclock_core.errors import RotaclockError

log = logging.getLogger("rotaclock_api")


def get_settings() -> Settings:
    return Settings()


def current_actor(x_user_email: Optional[str] = Header(None)) -> str:
    """Identity string forwarded by the portal's auth proxy; only used for logs."""
    return x_user_email or "?"


def http_error(e: RotaclockError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


__all__ = ["get_settings", "current_actor", "http_error"]
