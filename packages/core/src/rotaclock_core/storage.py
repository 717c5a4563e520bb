"""Translate a missing backing table into StorageUnavailable."""
from __future__ import annotations

import functools
import logging
import re

from sqlalchemy.exc import OperationalError, ProgrammingError

from rotaclock_core.errors import StorageUnavailable, is_missing_table

logger = logging.getLogger("rotaclock_core.storage")

# sqlite: "no such table: x"; postgres: 'relation "x" does not exist'
_TABLE_RE = re.compile(r'no such table:\s*([\w.]+)|relation "([\w.]+)" does not exist', re.IGNORECASE)


def _table_name(exc: Exception) -> str:
    m = _TABLE_RE.search(str(getattr(exc, "orig", None) or exc))
    if not m:
        return "Storage"
    return m.group(1) or m.group(2)


def guard_storage(fn):
    """Wrap a ``fn(db, ...)`` store function."""

    @functools.wraps(fn)
    def wrapper(db, *args, **kwargs):
        try:
            return fn(db, *args, **kwargs)
        except (OperationalError, ProgrammingError) as e:
            if not is_missing_table(e):
                raise
            db.rollback()
            logger.warning("storage.unavailable op=%s err=%s", fn.__name__, getattr(e, "orig", e))
            raise StorageUnavailable(f"{_table_name(e)} table not yet created - run migration") from e

    return wrapper


__all__ = ["guard_storage"]
