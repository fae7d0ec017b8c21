"""Small shared helpers for the engine and the batch driver."""
from __future__ import annotations

from typing import Optional


def format_exception_short(exc: BaseException) -> str:
    """Return ``Type: message`` on a single line."""

    message = str(exc).splitlines()[0] if str(exc) else ""
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def log_stage(logger_obj, label: str, *, extra: Optional[dict] = None) -> None:
    """Lightweight stage logger wrapper."""

    if logger_obj is None:
        return
    if extra:
        logger_obj.info("stage=%s %s", label, extra)
    else:
        logger_obj.info("stage=%s", label)


__all__ = [
    "format_exception_short",
    "log_stage",
]
