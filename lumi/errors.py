"""Error taxonomy shared by workflows, stores and HTTP handlers."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError


class LumiError(Exception):
    """Base class for all lumi errors."""

    retryable: bool = True


class NonRetryableError(LumiError):
    """Failure that retrying cannot fix; the run fails on first raise."""

    retryable = False


class ValidationFailed(NonRetryableError):
    """Malformed or missing request fields."""

    def __init__(self, message: str, issues: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.issues = issues or []


class UnknownEventError(ValidationFailed):
    """Envelope name has no registered payload schema."""


class ConfigurationError(NonRetryableError):
    """Required credentials or identifiers are absent."""


class IllegalTransitionError(NonRetryableError):
    """Check-in analysis status moved outside its state machine."""


class TransientError(LumiError):
    """Network, timeout or rate-limit failure against an upstream."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AlertDeliveryError(TransientError):
    """No recipient of an alert could be notified."""


def is_retryable(error: BaseException) -> bool:
    """Classify ``error`` for the retry policy."""
    if isinstance(error, ValidationError):
        return False
    if isinstance(error, LumiError):
        return error.retryable
    return True


def validation_issues(exc: ValidationError) -> list[dict[str, Any]]:
    """Flatten a pydantic error into JSON-safe per-field issues."""
    return [
        {
            "path": [str(part) for part in err.get("loc", ())],
            "message": err.get("msg", ""),
            "code": err.get("type", "invalid"),
        }
        for err in exc.errors()
    ]
