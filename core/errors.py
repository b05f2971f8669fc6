"""
core/errors.py -- Error taxonomy for the account lifecycle.

Every error a caller can cause is a GatekeeperError subclass carrying the
HTTP status the routing layer should use, a stable machine-readable code,
a human message, and an optional list of detail strings. The API layer
renders all of them into the same envelope:

    {"success": false, "message": "...", "errors": ["..."]}

InternalFaultError is the only class whose cause is logged server-side with
full detail. Its message is always the opaque "internal server error".

Layer rule: core/ is the kernel. No imports from api/, accounts/, auth/, mail/.
"""

from __future__ import annotations


class GatekeeperError(Exception):
    """Base class for errors returned to API callers as typed results."""

    status_code: int = 500
    error_code: str = "internal_error"
    default_message: str = "internal server error"

    def __init__(self, message: str | None = None, errors: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)


class ValidationFailedError(GatekeeperError):
    """Caller-supplied fields are malformed."""

    status_code = 400
    error_code = "validation_failed"
    default_message = "request body was incomplete"


class ConflictError(GatekeeperError):
    """An account with this email already exists."""

    status_code = 409
    error_code = "conflict"
    default_message = "errors occurred while registering"

    def __init__(self, message: str | None = None, errors: list[str] | None = None) -> None:
        super().__init__(message, errors or ["user already exists"])


class InvalidCredentialsError(GatekeeperError):
    """Login failed. Deliberately identical for unknown email and wrong password."""

    status_code = 401
    error_code = "invalid_credentials"
    default_message = "errors occurred while authenticating"

    def __init__(self) -> None:
        super().__init__(None, ["invalid credentials"])


class InvalidTokenError(GatekeeperError):
    """An activation or reset token failed to decode, expired, or no longer resolves."""

    status_code = 400
    error_code = "invalid_token"
    default_message = "token is invalid or has expired"


class NotFoundError(GatekeeperError):
    status_code = 404
    error_code = "not_found"
    default_message = "user not found"


class UnauthenticatedError(GatekeeperError):
    """Raised by the access guard when no valid session token is presented."""

    status_code = 401
    error_code = "unauthenticated"
    default_message = "errors occurred while authenticating"

    def __init__(self, reason: str = "not authorized") -> None:
        super().__init__(None, [reason])


class InternalFaultError(GatekeeperError):
    """Store, hasher or codec failure not attributable to the caller."""


class DuplicateKeyError(Exception):
    """Raised by the credential store when a uniqueness constraint is violated.

    Not a GatekeeperError: the store has no opinion about HTTP. The account
    service translates it into ConflictError.
    """

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"duplicate value for unique field {field!r}")
