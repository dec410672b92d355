"""Logging setup.

Log files live in ``log_dir`` (relative to CWD by default) and rotate daily
through TimedRotatingFileHandler; the console gets the same records.

- Rotation: daily (midnight, UTC).
- Retention: ``retention_days`` files (default 30).
- Level: ``level`` (default INFO).
"""
from __future__ import annotations

import glob
import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler

_LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LOG_FILE = "adsync.log"

# Handlers we installed, so that a second setup_logging() replaces them.
_file_handler: logging.Handler | None = None
_console_handler: logging.Handler | None = None


def setup_logging(
    level: str = "INFO",
    retention_days: int = 30,
    log_dir: str = "logs",
    console: bool = True,
) -> None:
    """Configure the root logger.

    - File handler: rotated by date.
    - Console handler: stderr, optional.
    - The level applies to both.
    """
    global _file_handler, _console_handler

    level_str = (level or "INFO").strip().upper()
    if level_str not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        level_str = "INFO"
    log_level = getattr(logging, level_str, logging.INFO)

    retention_days = max(1, min(365, int(retention_days or 30)))

    root = logging.getLogger()

    if _file_handler and _file_handler in root.handlers:
        root.removeHandler(_file_handler)
        _file_handler.close()
    if _console_handler and _console_handler in root.handlers:
        root.removeHandler(_console_handler)
    _file_handler = None
    _console_handler = None

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh = TimedRotatingFileHandler(
            os.path.join(log_dir, _LOG_FILE),
            when="midnight",
            interval=1,
            backupCount=retention_days,
            encoding="utf-8",
            utc=True,
        )
        fh.suffix = "%Y-%m-%d"
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)
        _file_handler = fh
        _cleanup_old_logs(log_dir, retention_days)

    if console:
        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)
        _console_handler = ch

    root.setLevel(log_level)

    # Transport libraries are chatty at DEBUG.
    for noisy in ("urllib3", "requests_ntlm", "spnego", "ldap3"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    logging.getLogger("adsync").debug(
        "Logging configured: level=%s, retention=%d days, dir=%s",
        level_str, retention_days, log_dir or "-",
    )


def _cleanup_old_logs(log_dir: str, retention_days: int) -> None:
    """Remove rotated files older than retention_days."""
    cutoff = time.time() - (retention_days * 86400)
    for f in glob.glob(os.path.join(log_dir, _LOG_FILE + ".*")):
        try:
            if os.path.getmtime(f) < cutoff:
                os.remove(f)
        except OSError:
            continue
