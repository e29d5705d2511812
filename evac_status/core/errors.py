"""
Shared error types and error-logging helpers.
"""

from __future__ import annotations

import logging
from typing import Optional


class EvacuationError(RuntimeError):
    """Base class for errors raised by the evacuation backend."""


class FaceApiError(EvacuationError):
    """The upstream face API failed or returned an unusable response."""

    def __init__(self, message: str, *, url: str | None = None, status_code: Optional[int] = None) -> None:
        self.url = url
        self.status_code = status_code
        detail = message
        if status_code is not None:
            detail = f"{detail} status={status_code}"
        if url:
            detail = f"{detail} url={url}"
        super().__init__(detail)


class ManualOverrideError(EvacuationError):
    """A manual status override could not be persisted."""


def _format_extra(extra: dict | None) -> str:
    if not extra:
        return ""
    parts: list[str] = []
    for key, value in extra.items():
        if value is None:
            continue
        parts.append(f"{key}={value}")
    return f" {' '.join(parts)}" if parts else ""


def log_exception(logger: logging.Logger, msg: str, *, extra: dict | None = None, exc: Exception | None = None) -> None:
    """
    Log an exception with context. Uses logger.exception for stack traces.
    """
    suffix = _format_extra(extra)
    if exc is not None:
        logger.error(f"{msg}{suffix}: {exc}", exc_info=exc)
        return
    logger.exception(f"{msg}{suffix}")
