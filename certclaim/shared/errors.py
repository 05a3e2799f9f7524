"""Error taxonomy for certificate issuance.

Every error carries the HTTP status the web layer answers with, a short
machine-readable ``reason`` and a human message naming the exact cause.
"""

from __future__ import annotations

from datetime import datetime

from .time import fmt_dt


class IssuanceError(Exception):
    status_code = 500
    reason = "error"

    def __init__(self, message: str, *, reason: str | None = None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason

    def to_dict(self) -> dict:
        return {"error": self.message, "reason": self.reason}


class ValidationError(IssuanceError):
    """Missing or malformed caller input. No record is created."""

    status_code = 400
    reason = "invalid"


class NotFoundError(IssuanceError):
    status_code = 404
    reason = "not_found"


class GateError(IssuanceError):
    """The event is not accepting claims (inactive or past its deadline)."""

    status_code = 403

    def __init__(
        self, message: str, *, reason: str, deadline: datetime | None = None
    ):
        super().__init__(message, reason=reason)
        self.deadline = deadline

    @classmethod
    def inactive(cls) -> "GateError":
        return cls("This event is no longer active.", reason="inactive")

    @classmethod
    def expired(cls, deadline: datetime) -> "GateError":
        return cls(
            f"The claim period ended on {fmt_dt(deadline)} UTC.",
            reason="expired",
            deadline=deadline,
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.deadline is not None:
            data["deadline"] = self.deadline.isoformat()
        return data


class UnauthorizedError(IssuanceError):
    """Name is not on the event whitelist."""

    status_code = 403
    reason = "unauthorized"


class TemplateUnavailableError(IssuanceError):
    status_code = 404
    reason = "template_unavailable"


class RenderError(IssuanceError):
    status_code = 500
    reason = "render_failed"


class TemplateError(RenderError):
    """Template bytes are not a usable PDF (unparseable or zero pages)."""

    reason = "invalid_template"


class StorageError(IssuanceError):
    status_code = 500
    reason = "storage_failed"


class IssuanceFailed(IssuanceError):
    """Raised after a reserved certificate had to be rolled back.

    ``cause`` is the original error; status and reason follow it so the
    caller still sees why the claim failed.
    """

    def __init__(self, cause: BaseException):
        if isinstance(cause, IssuanceError):
            message = cause.message
            reason = cause.reason
            self.status_code = cause.status_code
        else:
            message = "Certificate could not be processed."
            reason = RenderError.reason
        super().__init__(message, reason=reason)
        self.cause = cause
