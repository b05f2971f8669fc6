"""
auth/tokens.py -- Signed, expiring bearer tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the subject (user id), a purpose tag, the issue time and the expiry.
       Decoding returns None on any failure -- callers turn that into the
       appropriate typed error (401 for sessions, 400 for activation/reset).

  Purpose tag: session, activation and reset tokens share one encoding and
       differ in TTL. Without a tag in the signed payload, a leaked 10-minute
       reset token would also be accepted as a session credential. Every
       consumer passes the purpose it expects and decode_token() rejects any
       other.

  Single use: activation and reset tokens are NOT consumed. A token stays
       valid until its exp claim passes. Closing that would need a server-side
       record of consumed tokens.

  SECRET_KEY: sourced from core.config.get_settings() once at module load and
       never rotated at runtime.

Layer rule: no imports from api/, accounts/, or mail/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import TokenPurpose
from core.config import get_settings

logger = logging.getLogger("gatekeeper.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_SECRET_KEY = _settings.secret_key
_ALGORITHM = "HS256"


def encode_token(
    subject_id: str,
    ttl_seconds: int,
    purpose: TokenPurpose = TokenPurpose.session,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed JWT asserting subject_id until issued_at + ttl_seconds.

    Args:
        subject_id:  User id stored as the JWT subject claim.
        ttl_seconds: Lifetime in seconds. The absolute expiry is embedded.
        purpose:     What the token may be used for (see module docstring).
        issued_at:   Issue instant; defaults to now (UTC). Tests backdate it
                     to produce already-expired tokens.
    """
    iat = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": str(subject_id),
        "purpose": TokenPurpose(purpose).value,
        "iat": iat,
        "exp": iat + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(payload, _SECRET_KEY, algorithm=_ALGORITHM)


def decode_token(token: str | None, purpose: TokenPurpose | None = None) -> str | None:
    """Verify a JWT and return its subject id, or None on any failure.

    Fails closed on: empty or malformed input, signature mismatch, expiry in
    the past, a missing subject, and -- when purpose is given -- a purpose tag
    that does not match. The payload is never read before the signature has
    been verified.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, _SECRET_KEY, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        return None
    if purpose is not None and payload.get("purpose") != TokenPurpose(purpose).value:
        logger.info("Rejected token with purpose %r where %r was expected", payload.get("purpose"), purpose.value)
        return None
    return subject
