"""Runtime configuration read from the environment."""
from dataclasses import dataclass, field
from typing import Optional, List
import os
import sys
from pathlib import Path
from dotenv import load_dotenv  # type: ignore


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    return val if val not in (None, "") else default


def _env_flag(name: str, default: bool = False) -> bool:
    val = _env(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    val = _env(name)
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default


def _env_list(name: str, default: str) -> List[str]:
    raw = _env(name, default) or ""
    return [p.strip() for p in raw.split(",") if p.strip()]


@dataclass
class Settings:
    db_url: Optional[str] = field(default_factory=lambda: _env("ROTACLOCK_DB_URL") or _env("ROTACLOCK_DATABASE_URL"))
    default_debrief_seconds: int = field(default_factory=lambda: _env_int("ROTACLOCK_DEFAULT_DEBRIEF", 300))
    default_mode: str = field(default_factory=lambda: _env("ROTACLOCK_DEFAULT_MODE", "countdown") or "countdown")
    # When on, `next` is refused until every station of the roster is ready.
    ready_gate: bool = field(default_factory=lambda: _env_flag("ROTACLOCK_READY_GATE", False))
    seed_demo: bool = field(default_factory=lambda: _env_flag("ROTACLOCK_SEED_DEMO", False))
    cors_origins: List[str] = field(default_factory=lambda: _env_list("ROTACLOCK_CORS_ORIGINS", "*"))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO") or "INFO")

    def _bundle_base(self) -> Optional[str]:
        base = getattr(sys, "_MEIPASS", None)
        if base and os.path.isdir(base):
            return base
        return None

    def repo_root(self) -> str:
        base = self._bundle_base()
        if base:  # Frozen bundle base (PyInstaller, etc.)
            return base
        # Walk upward from this file looking for project markers
        cur = os.path.abspath(os.path.dirname(__file__))
        for _ in range(8):
            if os.path.exists(os.path.join(cur, "pyproject.toml")) and os.path.isdir(os.path.join(cur, "packages")):
                return cur
            parent = os.path.dirname(cur)
            if parent == cur:
                break
            cur = parent
        # Fallback: 4 levels up from packages/core/src/rotaclock_core
        return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../../../"))

    def data_dir(self) -> str:
        return os.path.join(self.repo_root(), "data")

    def load_backend_env(self) -> None:
        """Load canonical backend env file if present (idempotent)."""
        env_file = Path(self.repo_root()) / "config" / "env" / ".env.backend"
        if env_file.exists():
            load_dotenv(env_file, override=False)

    def resolve_path(self, p: Optional[str]) -> Optional[str]:
        if not p:
            return None
        if os.path.isabs(p):
            return p
        return os.path.abspath(os.path.join(self.repo_root(), p))


__all__ = ["Settings"]
