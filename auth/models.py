"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these types only own the shape.

Layer rule: no imports from api/, accounts/, mail/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Gender(str, Enum):
    male = "male"
    female = "female"
    diverse = "diverse"
    undisclosed = "undisclosed"


class TokenPurpose(str, Enum):
    """What a signed token may be used for. Embedded in the signed payload."""

    session = "session"
    activation = "activation"
    reset = "reset"


@dataclass
class User:
    """One registered account.

    id is assigned by UserStore.create() and never changes. email is the
    lookup key for login, registration and forgot-password; the store holds
    at most one record per email (case-sensitive, as stored).

    password_secret is the bcrypt output. It must never leave the service
    layer -- use UserProfile for anything returned to a client.

    verified starts False and is flipped to True exactly once by activation.
    avatar_url is derived from the email at creation and never re-derived.
    """

    email: str
    password_secret: str
    first_name: str
    last_name: str
    id: str | None = None
    verified: bool = False
    avatar_url: str | None = None
    gender: Gender | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class UserProfile:
    """Client-safe projection of a User: no password secret."""

    id: str
    email: str
    first_name: str
    last_name: str
    verified: bool
    avatar_url: str | None
    gender: Gender | None
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_user(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id or "",
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            verified=user.verified,
            avatar_url=user.avatar_url,
            gender=user.gender,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as established by the access guard.

    Produced by auth.dependencies.authenticate() and passed explicitly into
    protected operations. Carries only the subject id; loading the User is
    the protected operation's job.
    """

    user_id: str
