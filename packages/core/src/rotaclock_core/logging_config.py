"""Central logging configuration helper."""
from __future__ import annotations
import logging
import logging.config
import os
from io import StringIO
from pathlib import Path
import re

DEFAULT_CONFIG_PATHS = [
    Path("config/logging.ini"),
]


class RedactionFilter(logging.Filter):
    """Mask display tokens so kiosk URLs never land in log files."""

    TOKEN_PATTERNS = [
        re.compile(r"(/timer-display/)([A-Za-z0-9_\-]{8,})"),
        re.compile(r"([?&])token=([^&\s]+)", re.IGNORECASE),
        re.compile(r"(\"?token\"?\s*[:=]\s*\"?)([A-Za-z0-9._~+\-=/]+)(\"?)", re.IGNORECASE),
    ]

    @classmethod
    def redact(cls, s: str) -> str:
        out = cls.TOKEN_PATTERNS[0].sub(r"\1[REDACTED]", s)
        out = cls.TOKEN_PATTERNS[1].sub(r"\1token=[REDACTED]", out)
        out = cls.TOKEN_PATTERNS[2].sub(r"\1[REDACTED]\3", out)
        return out

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        # Format first when args are present, then replace msg/args to avoid double format.
        if record.args:
            record.msg = self.redact(record.getMessage())
            record.args = None
        elif isinstance(record.msg, str):
            record.msg = self.redact(record.msg)
        return True


def _candidate_paths(config_file: str | os.PathLike[str] | None) -> Path | None:
    if config_file:
        return Path(config_file)
    for p in DEFAULT_CONFIG_PATHS:
        if p.exists():
            return p
    # Fall back to the repo copy when started from another working directory
    from rotaclock_core.config import Settings
    repo_cfg = Path(Settings().repo_root()) / "config" / "logging.ini"
    return repo_cfg if repo_cfg.exists() else None


def configure_logging(level: str | None = None, config_file: str | os.PathLike[str] | None = None) -> None:
    """Configure logging using an INI template.

    If the config contains the placeholder __LOG_LEVEL__, it is replaced with
    the effective log level before passing to logging.config.fileConfig.
    """
    lvl = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    cfg_path = _candidate_paths(config_file)
    if not cfg_path or not cfg_path.exists():
        logging.basicConfig(level=getattr(logging, lvl, logging.INFO), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    else:
        text = cfg_path.read_text(encoding="utf-8").replace("__LOG_LEVEL__", lvl)
        # Ensure logs directory exists for FileHandlers
        Path("logs").mkdir(exist_ok=True)
        logging.config.fileConfig(StringIO(text), disable_existing_loggers=False)

    redactor = RedactionFilter()
    seen_handlers = set()

    def _attach(logger: logging.Logger) -> None:
        for h in logger.handlers:
            if id(h) in seen_handlers:
                continue
            h.addFilter(redactor)
            seen_handlers.add(id(h))
        logger.addFilter(redactor)

    _attach(logging.getLogger())  # root
    for name in list(logging.root.manager.loggerDict.keys()):  # type: ignore[attr-defined]
        obj = logging.root.manager.loggerDict[name]  # type: ignore[attr-defined]
        if isinstance(obj, logging.Logger):
            _attach(obj)


__all__ = ["configure_logging", "RedactionFilter"]
