"""Closed error taxonomy raised by every team, inventory and subscription component."""
from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

from fastapi import HTTPException, status


class ErrorKind(str, Enum):
    """Machine-readable identifiers surfaced to API callers."""

    VALIDATION = "validation_error"
    AUTHENTICATION_REQUIRED = "authentication_required"
    FORBIDDEN = "forbidden"
    NOT_MEMBER = "not_member"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    NO_SUBSCRIPTION = "no_subscription"


class StatusClass(str, Enum):
    """Transport-agnostic status families the boundary maps to responses."""

    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


_HTTP_STATUS: Dict[StatusClass, int] = {
    StatusClass.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    StatusClass.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    StatusClass.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    StatusClass.CONFLICT: status.HTTP_409_CONFLICT,
}


class DomainError(Exception):
    """Base class for actionable failures surfaced to API callers.

    Subclasses pin the ``kind`` and ``status_class``; callers only pick the
    message and optional structured detail.
    """

    kind: ClassVar[ErrorKind]
    status_class: ClassVar[StatusClass]
    default_message: ClassVar[str] = "Request failed"

    def __init__(self, message: Optional[str] = None, *, detail: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.default_message
        self.detail: Dict[str, Any] = dict(detail) if detail else {}
        super().__init__(self.message)

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def status_code(self) -> int:
        return _HTTP_STATUS[self.status_class]

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        base: Dict[str, Any] = {"error": self.code, "message": self.message}
        base.update(self.detail)
        return base

    def to_http_exception(self) -> HTTPException:
        """Convert the domain error into a FastAPI HTTPException."""

        return HTTPException(status_code=self.status_code, detail=dict(self.payload))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, detail={self.detail!r})"


class ValidationError(DomainError):
    kind = ErrorKind.VALIDATION
    status_class = StatusClass.BAD_REQUEST
    default_message = "Invalid request data"


class AuthenticationRequired(DomainError):
    kind = ErrorKind.AUTHENTICATION_REQUIRED
    status_class = StatusClass.UNAUTHORIZED
    default_message = "Provide the user id"


class Forbidden(DomainError):
    kind = ErrorKind.FORBIDDEN
    status_class = StatusClass.UNAUTHORIZED
    default_message = "You don't have permission to do that"


class NotMember(DomainError):
    kind = ErrorKind.NOT_MEMBER
    status_class = StatusClass.UNAUTHORIZED
    default_message = "You are not a member of this team"


class NotFound(DomainError):
    kind = ErrorKind.NOT_FOUND
    status_class = StatusClass.NOT_FOUND
    default_message = "Resource not found"


class Conflict(DomainError):
    kind = ErrorKind.CONFLICT
    status_class = StatusClass.CONFLICT
    default_message = "Request conflicts with the current state"


class SubscriptionExpired(DomainError):
    kind = ErrorKind.SUBSCRIPTION_EXPIRED
    status_class = StatusClass.BAD_REQUEST
    default_message = "Subscription is expired"


class NoSubscription(DomainError):
    kind = ErrorKind.NO_SUBSCRIPTION
    status_class = StatusClass.BAD_REQUEST
    default_message = "Team doesn't have any subscription"


DOMAIN_ERRORS: Tuple[Type[DomainError], ...] = (
    ValidationError,
    AuthenticationRequired,
    Forbidden,
    NotMember,
    NotFound,
    Conflict,
    SubscriptionExpired,
    NoSubscription,
)


__all__ = [
    "AuthenticationRequired",
    "Conflict",
    "DOMAIN_ERRORS",
    "DomainError",
    "ErrorKind",
    "Forbidden",
    "NoSubscription",
    "NotFound",
    "NotMember",
    "StatusClass",
    "SubscriptionExpired",
    "ValidationError",
]
