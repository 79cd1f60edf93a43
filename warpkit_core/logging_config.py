"""
Structured logging configuration for warpkit.

Supports two output formats:
  - **human** – coloured, single-line, readable
  - **json**  – newline-delimited JSON for log aggregators

Usage:
    from warpkit_core.logging_config import setup_logging
    setup_logging(level="DEBUG", fmt="json", log_file="warpkit.log")

Loggers never receive passwords or key material; pipeline messages carry
only addresses, nonces and transaction hashes.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_SECRETS: set[str] = set()
_MASK = "***"


def register_secret(value: str) -> None:
    """Mask *value* wherever it would appear in a log line (e.g. a password)."""
    if value:
        _SECRETS.add(value)


def clear_secrets() -> None:
    _SECRETS.clear()


class _RedactingFilter(logging.Filter):
    """Replace registered secrets in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        if _SECRETS:
            msg = record.getMessage()
            for secret in _SECRETS:
                msg = msg.replace(secret, _MASK)
            record.msg = msg
            record.args = None
        return True


class _JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        phase = getattr(record, "phase", None)
        if phase:
            log_obj["phase"] = phase
        if record.exc_info and record.exc_info[1]:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


class _HumanFormatter(logging.Formatter):
    """Coloured, concise single-line format."""

    COLOURS = {
        "DEBUG": "\033[36m",     # cyan
        "INFO": "\033[32m",      # green
        "WARNING": "\033[33m",   # yellow
        "ERROR": "\033[31m",     # red
        "CRITICAL": "\033[1;31m",  # bold red
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        phase = getattr(record, "phase", None)
        tag = f" ({phase})" if phase else ""
        return (
            f"{colour}{ts} [{record.levelname:<7}]{self.RESET} "
            f"{record.name}{tag}: {record.getMessage()}"
        )


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger for the entire application.

    Parameters
    ----------
    level : str
        One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
    fmt : str
        ``"human"`` for coloured single-line output, ``"json"`` for
        newline-delimited JSON.
    log_file : str, optional
        If provided, logs are *also* written to this file (always in JSON
        format for machine parsing).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    root.handlers.clear()
    redact = _RedactingFilter()

    console = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        console.setFormatter(_JSONFormatter())
    else:
        console.setFormatter(_HumanFormatter())
    console.addFilter(redact)
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path))
        fh.setFormatter(_JSONFormatter())
        fh.addFilter(redact)
        root.addHandler(fh)

    # aiohttp logs full request URLs at DEBUG; keep it at WARNING.
    logging.getLogger("aiohttp").setLevel(max(root.level, logging.WARNING))
