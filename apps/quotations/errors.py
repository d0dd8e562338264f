"""Typed results returned by the quotation workflow and conversions.

These are values, not exceptions: callers check ``isinstance(result,
QuotationError)`` and turn the error into a response with ``as_response()``.
"""

from dataclasses import dataclass
from typing import ClassVar, Optional

from apps.common.exceptions import error_response


@dataclass(frozen=True)
class ValidationIssue:
    type: str
    message: str
    room_id: Optional[str] = None
    room_name: Optional[str] = None

    def as_dict(self):
        data = {"type": self.type, "message": self.message}
        if self.room_id is not None:
            data["room_id"] = str(self.room_id)
            data["room_name"] = self.room_name
        return data


@dataclass(frozen=True)
class QuotationError:
    code: ClassVar[str] = "error"
    http_status: ClassVar[int] = 400

    @property
    def detail(self):
        return "Request failed"

    def payload(self):
        return {}

    def as_response(self):
        return error_response(self.code, self.detail, status_code=self.http_status, **self.payload())


@dataclass(frozen=True)
class ValidationFailed(QuotationError):
    issues: tuple = ()
    requested: str = "saved"
    code: ClassVar[str] = "validation_failed"

    @property
    def detail(self):
        return f"The quotation is not ready to be {self.requested}."

    def payload(self):
        return {"errors": [issue.as_dict() for issue in self.issues], "requested": self.requested}

    def has_issue(self, issue_type, room_id=None):
        return any(
            issue.type == issue_type and (room_id is None or str(issue.room_id) == str(room_id))
            for issue in self.issues
        )


@dataclass(frozen=True)
class InvalidTransition(QuotationError):
    current: str = ""
    requested: str = ""
    code: ClassVar[str] = "invalid_transition"

    @property
    def detail(self):
        return f"Cannot move a quotation from '{self.current}' to '{self.requested}'."

    def payload(self):
        return {"current": self.current, "requested": self.requested}


@dataclass(frozen=True)
class AlreadyConverted(QuotationError):
    target: str = ""
    existing_id: Optional[str] = None
    code: ClassVar[str] = "already_converted"

    @property
    def detail(self):
        return f"The quotation was already converted to a {self.target.replace('_', ' ')}."

    def payload(self):
        return {"target": self.target, "existing_id": str(self.existing_id)}


@dataclass(frozen=True)
class NotApproved(QuotationError):
    status: str = ""
    code: ClassVar[str] = "not_approved"

    @property
    def detail(self):
        return f"Only approved quotations can be invoiced (current status: '{self.status}')."

    def payload(self):
        return {"current": self.status}
