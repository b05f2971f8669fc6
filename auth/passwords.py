"""
auth/passwords.py -- bcrypt password hashing.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x
rejects. Direct usage has no compatibility shim.

Each secret embeds its own salt and cost factor ("$2b$10$..."), so the
configured work factor can be raised later without invalidating secrets that
were hashed at the old cost.

Layer rule: no imports from api/, accounts/, or mail/.
"""

from __future__ import annotations

import bcrypt

from core.config import get_settings

# bcrypt only looks at the first 72 bytes. Longer inputs are rejected by the
# account service before they reach hash_password().
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt secret for the plaintext password.

    rounds defaults to Settings.bcrypt_rounds. Two calls with the same
    plaintext return different secrets because gensalt() draws a fresh salt.
    """
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, secret: str | None) -> bool:
    """Return True if the plaintext matches the stored secret.

    Never raises: an empty, truncated or otherwise malformed secret simply
    fails verification. The comparison inside bcrypt.checkpw is constant-time.
    """
    if not secret:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), secret.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Timing equalization dummy secret [C1].
# Computed once at module load. login() verifies against it when the email
# is unknown so response time does not reveal whether an account exists.
DUMMY_SECRET: str = hash_password("gatekeeper_timing_dummy")
