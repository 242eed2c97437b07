"""Error taxonomy for group operations.

Every failure a request can hit is raised as a ``GroupServiceError`` subclass
and rendered by the API layer into the error envelope::

    {"status": "error", "data": null,
     "messages": [{"code": "missing", "field": "shortName"}]}

Keycloak failures are translated into this taxonomy before they reach the
client; the provider's own response body is never forwarded.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional

ERROR_STATUS = "error"


@dataclass(frozen=True)
class ErrorMessage:
    """A single entry of the error envelope's ``messages`` list."""
    code: str
    field: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        message = {"code": self.code}
        if self.field is not None:
            message["field"] = self.field
        if self.detail is not None:
            message["detail"] = self.detail
        return message


class GroupServiceError(Exception):
    """Base error with an HTTP status and one or more error messages."""

    code = "error"
    status = 500

    def __init__(self, detail: Optional[str] = None, field: Optional[str] = None):
        self.detail = detail
        self.field = field
        super().__init__(detail or self.code)

    @property
    def messages(self) -> list[ErrorMessage]:
        return [ErrorMessage(self.code, self.field, self.detail)]

    def to_dict(self) -> dict:
        """Convert to the error envelope."""
        return {
            "status": ERROR_STATUS,
            "data": None,
            "messages": [message.to_dict() for message in self.messages],
        }


class TokenMissing(GroupServiceError):
    code = "token_missing"
    status = 401


class ClaimMissing(GroupServiceError):
    code = "claim_missing"
    status = 401


class RealmNotFound(GroupServiceError):
    code = "realm_not_found"
    status = 401


class Unauthorized(GroupServiceError):
    code = "unauthorized"
    status = 403


class ValidationFailed(GroupServiceError):
    """One or more request fields are missing or invalid; all are reported."""

    code = "validation_failed"
    status = 400

    def __init__(self, errors: Iterable[ErrorMessage]):
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} validation error(s)")

    @property
    def messages(self) -> list[ErrorMessage]:
        return list(self.errors)


class MissingParameter(GroupServiceError):
    code = "missing"
    status = 400


class UnsupportedMediaType(GroupServiceError):
    code = "invalid_content_type"
    status = 415


class GroupNotFound(GroupServiceError):
    code = "group_not_found"
    status = 404


class GroupNotExist(GroupServiceError):
    code = "not_exist"
    status = 404


class UserNotFound(GroupServiceError):
    code = "user_not_found"
    status = 404


class GroupAlreadyExists(GroupServiceError):
    code = "group_already_exists"
    status = 409


class DependencyUnavailable(GroupServiceError):
    code = "dependency_unavailable"
    status = 503


class ProviderError(GroupServiceError):
    code = "provider_error"
    status = 502


class TokenVerificationFailed(ProviderError):
    """Keycloak rejected the caller's token (HTTP 401)."""

    code = "token_verification_failed"
    status = 401
