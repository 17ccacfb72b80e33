"""
Error kinds raised by the tournament services.

Each error carries a machine-readable ``kind``, the HTTP status it maps to,
a human-readable ``detail`` and optional ``context`` that is returned to
the caller alongside the detail.
"""

import logging
from functools import wraps
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class TournamentError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "error"
    status_code = 500

    def __init__(self, detail: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "error": self.kind, "detail": self.detail}
        body.update(self.context)
        return body


class ValidationError(TournamentError):
    """Malformed or inconsistent submission. Correctable by the submitter."""

    kind = "validation_error"
    status_code = 400

    def __init__(self, detail: str, field: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        context = dict(context or {})
        if field is not None:
            context.setdefault("field", field)
        super().__init__(detail, context)
        self.field = field


class NotFoundError(TournamentError):
    """Unknown player, match or phase identifier."""

    kind = "not_found"
    status_code = 404


class ConflictError(TournamentError):
    """Duplicate identifier, or a record changed underneath a write."""

    kind = "conflict"
    status_code = 409


class PersistenceError(TournamentError):
    """
    Store failure. Not correctable by the submitter.

    ``stage`` names the step that failed and ``progress`` records what had
    been done before it, so operators can tell how far a multi-step write got.
    """

    kind = "persistence_error"
    status_code = 500

    def __init__(self, detail: str, stage: str, progress: Optional[Dict[str, Any]] = None):
        super().__init__(detail, {"stage": stage, "progress": progress or {}})
        self.stage = stage
        self.progress = progress or {}


def store_errors(stage: str):
    """
    Decorator for async service calls: a store failure that escapes the
    call surfaces as a PersistenceError for ``stage``.

    Writes that track their own stage and progress convert their failures
    before this wrapper sees them.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as e:
                logger.error(f"Store failure in {func.__name__} ({stage}): {e}", exc_info=True)
                raise PersistenceError(
                    f"Could not complete {stage}: store failure", stage=stage
                ) from e
        return wrapper
    return decorator
