"""Logging setup for the gigmarket backend.

Routes get their logger through ``get_logger``; the first call installs a
stdout handler on the root logger unless one is already configured.
"""

import logging
import os
import sys

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_configured = False


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    global _configured
    if not _configured:
        configure_logging()
        _configured = True
    return logging.getLogger(name)


def configure_logging(level_name: str | None = None) -> None:
    level_name = (level_name or os.environ.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if root.handlers:
        return

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    root.addHandler(console)


def log_request_outcome(logger: logging.Logger, action: str, user_id: str, **details) -> None:
    """One-line audit record for a state-changing request."""
    extra = " | ".join(f"{k}={v}" for k, v in details.items() if v is not None)
    logger.info(f"{action} | user={user_id}" + (f" | {extra}" if extra else ""))
