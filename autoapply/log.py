"""Logging setup shared by every module and script — stdlib only.

Console output goes to stdout; a daily file ``logs/autoapply_YYYY-MM-DD.log``
keeps DEBUG detail unless AUTOAPPLY_LOG_FILE=0.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_QUIET = ("urllib3", "requests")
_configured = False
_console: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    if not _configured:
        configure()
    return logging.getLogger(name)


def _file_logging_enabled() -> bool:
    return os.environ.get("AUTOAPPLY_LOG_FILE", "1").lower() not in ("0", "false", "no")


def configure(level: str | None = None, log_dir: Path | None = None) -> None:
    """Install the console (and file) handlers once; later calls only adjust the level."""
    global _configured, _console
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    numeric = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(numeric)
    for noisy in _QUIET:
        logging.getLogger(noisy).setLevel(max(numeric, logging.WARNING))

    if _console is not None:
        _console.setLevel(numeric)
    if _configured or root.handlers:
        _configured = True
        return
    _configured = True

    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)
    _console = logging.StreamHandler(sys.stdout)
    _console.setLevel(numeric)
    _console.setFormatter(formatter)
    root.addHandler(_console)

    if not _file_logging_enabled():
        return

    directory = Path(log_dir or os.environ.get("AUTOAPPLY_LOG_DIR") or DEFAULT_LOG_DIR)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(directory / f"autoapply_{datetime.now():%Y-%m-%d}.log", encoding="utf-8")
    except OSError as exc:
        root.warning("File logging disabled, cannot write to %s: %s", directory, exc)
        return
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    root.addHandler(fh)
