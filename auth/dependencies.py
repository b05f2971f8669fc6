"""
auth/dependencies.py -- Access guard and its FastAPI Depends() helper.

Two places a session token may arrive, checked in priority order:
  1. x-auth-token header -- the header the original web client sends.
  2. Authorization: Bearer <token> header -- generic API clients.

authenticate() is the transport-free guard: token in, Identity out, or
UnauthenticatedError. require_identity() adapts it to FastAPI.

The guard hands back an Identity value; it never writes to request.state
and never loads the User record. Protected routes receive the Identity as a
parameter and load what they need through the account service.

Layer rule: no imports from accounts/ or mail/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import Identity, TokenPurpose
from auth.tokens import decode_token
from core.errors import UnauthenticatedError

TOKEN_HEADER = "x-auth-token"


def authenticate(raw_token: str | None) -> Identity:
    """Return the Identity asserted by a session token.

    Raises UnauthenticatedError when the token is missing, fails signature
    verification, has expired, or was minted for another purpose (an
    activation or reset token is never a session credential).
    """
    if not raw_token:
        raise UnauthenticatedError("no token")
    user_id = decode_token(raw_token, TokenPurpose.session)
    if user_id is None:
        raise UnauthenticatedError("not authorized")
    return Identity(user_id=user_id)


def extract_token(request: Request) -> str | None:
    """Pull the raw session token from the request headers, if any."""
    token = request.headers.get(TOKEN_HEADER, "").strip()
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def require_identity(request: Request) -> Identity:
    """Require a valid session token. Raises UnauthenticatedError (HTTP 401).

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(identity: Identity = Depends(require_identity)): ...
    """
    return authenticate(extract_token(request))
