"""
Error types raised by the Report Studio services.

Every error carries the user-facing message, a machine-readable ``error_code``
and the HTTP status the API answers with. The message is what the admin
console shows in its error banner, so it is written for end users.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ReportStudioError(RuntimeError):
    """
    Base class for domain errors.

    Attributes:
        message: Human-readable message returned as ``error`` in the envelope.
        detail: Optional diagnostic text (entity kind and id, failing table).
        error_code: Value returned as ``code`` in the envelope.
        request_id: Filled in by the API layer once the error reaches it.
    """

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, detail: str | None = None, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.error_code = error_code or self.code
        self.request_id: str | None = None

    def __str__(self) -> str:
        return self.message

    def log(self, level: int | None = None) -> None:
        if level is None:
            level = logging.ERROR if self.status_code >= 500 else logging.INFO
        logger.log(
            level,
            self.message,
            extra={
                "error_code": self.error_code,
                "detail": self.detail,
                "request_id": self.request_id,
                "exception_type": type(self).__name__,
            },
        )


class ValidationError(ReportStudioError):
    """A request field is missing, malformed, or references an unknown entity."""

    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message, detail=f"Field: {field}" if field else None)


class MissingRequiredFieldError(ValidationError):
    def __init__(self, field_name: str, *, message: str | None = None) -> None:
        super().__init__(message or f"{field_name} is required.", field=field_name)


class NotFoundError(ReportStudioError):
    code = "not_found"
    status_code = 404

    def __init__(self, message: str, *, resource_type: str | None = None, resource_id: str | None = None) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        detail = None
        if resource_type and resource_id:
            detail = f"{resource_type} {resource_id!r}"
        super().__init__(message, detail=detail)


class PermissionDeniedError(ReportStudioError):
    """The acting user may not perform the operation (unlock, decide an approval, ...)."""

    code = "permission_denied"
    status_code = 403

    def __init__(self, message: str, *, user_id: str | None = None) -> None:
        self.user_id = user_id
        super().__init__(message, detail=f"User: {user_id}" if user_id else None)


class ConflictError(ReportStudioError):
    """The entity's current state does not allow the operation."""

    code = "conflict"
    status_code = 409


class PeriodLockedError(ConflictError):
    code = "period_locked"

    def __init__(self, period_name: str | None = None, *, message: str | None = None) -> None:
        self.period_name = period_name
        if message is None:
            label = f"Reporting period '{period_name}'" if period_name else "Reporting period"
            message = f"{label} is locked. Unlock the period before making changes."
        super().__init__(message)


class DatabaseError(ReportStudioError):
    """The SQLite document store rejected a read or write."""

    code = "database_error"

    def __init__(self, message: str, *, operation: str | None = None, table: str | None = None) -> None:
        self.operation = operation
        self.table = table
        parts = [f"{label}: {value}" for label, value in (("Operation", operation), ("Table", table)) if value]
        super().__init__(message, detail="; ".join(parts) or None)


def exception_to_http_status(exc: ReportStudioError) -> int:
    return exc.status_code
