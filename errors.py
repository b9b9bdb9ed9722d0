"""
Error taxonomy shared by repositories, access control and routers.

Every error carries the HTTP status the exception handlers in ``main`` render
it with, so repositories raise typed conditions and never build responses.
"""
import logging
from typing import Any, Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, key: str = "error"):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        # envelope key the message is rendered under ("error" or "message")
        self.key = key


class ValidationError(AppError):
    status_code = 400


class NotFound(AppError):
    status_code = 404


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class Conflict(AppError):
    status_code = 400


class UpstreamError(AppError):
    status_code = 500


class Outcome(NamedTuple):
    ok: bool
    value: Any = None
    error: Optional[BaseException] = None


def best_effort(action: Callable[..., Any], *args: Any, description: str, **kwargs: Any) -> Outcome:
    """Run a non-critical side effect; failures are logged, never raised."""
    try:
        return Outcome(True, action(*args, **kwargs))
    except Exception as exc:
        logger.warning("%s failed: %s", description, exc)
        return Outcome(False, error=exc)
