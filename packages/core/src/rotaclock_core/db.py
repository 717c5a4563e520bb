"""Database setup.

Provides SQLAlchemy engine, session factory, and declarative base.

Defaults to an on-disk SQLite database under ``data/rotaclock.db`` at the
repository root, but respects an explicit environment override via
``ROTACLOCK_DB_URL`` (or ``ROTACLOCK_DATABASE_URL``) for testing or custom
setups.
"""
from __future__ import annotations

import os
from typing import Iterator
from urllib.parse import urlparse

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from rotaclock_core.config import Settings

_settings = Settings()
_settings.load_backend_env()

# Allow env override for test or custom environments
_env_url = os.getenv("ROTACLOCK_DB_URL") or os.getenv("ROTACLOCK_DATABASE_URL")
if _env_url:
    # If pointing to a SQLite file, ensure its directory exists
    parsed = urlparse(_env_url)
    if parsed.scheme == "sqlite" and parsed.path and parsed.path != ":memory:":
        _dir = os.path.dirname(parsed.path)
        if _dir:
            os.makedirs(_dir, exist_ok=True)
    DATABASE_URL = _env_url
else:
    _data_dir = _settings.data_dir()
    os.makedirs(_data_dir, exist_ok=True)
    DATABASE_URL = f"sqlite:///{os.path.join(_data_dir, 'rotaclock.db')}"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    """Yield a SQLAlchemy session and ensure it's closed after use."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = [
    "DATABASE_URL",
    "engine",
    "SessionLocal",
    "Base",
    "get_db",
]
