"""Core domain & services for Rotaclock.

Contains the lab-day rotation clock, readiness registry, persistence models,
and configuration. The HTTP layer lives in ``rotaclock_api``.
"""

from .config import Settings  # noqa: F401
