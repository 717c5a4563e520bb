"""Error kinds raised by the core and translated to HTTP by the API layer."""
from __future__ import annotations

from sqlalchemy.exc import OperationalError, ProgrammingError


class RotaclockError(Exception):
    status_code = 500


class ValidationError(RotaclockError):
    """Missing or invalid required field."""

    status_code = 400


class NotFoundError(RotaclockError):
    status_code = 404


class InvalidActionError(RotaclockError):
    status_code = 400


class ConflictError(RotaclockError):
    """Stale ``expectedVersion`` on a timer patch."""

    status_code = 409


class NotReadyError(RotaclockError):
    """Rotation refused because not every station declared ready."""

    status_code = 409


class StorageUnavailable(RotaclockError):
    """Backing table missing or misconfigured."""

    status_code = 503


_MISSING_TABLE_MARKERS = ("no such table", "does not exist", "undefinedtable")


def is_missing_table(exc: Exception) -> bool:
    if not isinstance(exc, (OperationalError, ProgrammingError)):
        return False
    text = str(getattr(exc, "orig", None) or exc).lower()
    return any(m in text for m in _MISSING_TABLE_MARKERS)


def require(value, name: str):
    """Return ``value`` or raise ValidationError naming the missing field."""
    if value is None or (isinstance(value, str) and value.strip() == ""):
        raise ValidationError(f"{name} is required")
    return value


__all__ = [
    "RotaclockError",
    "ValidationError",
    "NotFoundError",
    "InvalidActionError",
    "ConflictError",
    "NotReadyError",
    "StorageUnavailable",
    "is_missing_table",
    "require",
]
