"""
accounts/service.py -- Account lifecycle: register, login, activate,
forgot-password, reset-password, profile.

State per email address:

    NonExistent --register--> Registered(unverified) --activate--> Registered(verified)

Password reset mutates the secret without changing that state. Nothing here
deletes an account.

Concurrency: every method is a coroutine. Store calls and bcrypt are blocking,
so they run in the threadpool (run_in_threadpool) and never stall the event
loop. The service holds no locks and no per-request state. Races between
concurrent requests are settled by the store: UNIQUE(email) decides which of
two simultaneous registrations wins, and the loser is reported as the same
ConflictError the pre-check would have raised [M1].

Email sending goes through MailDispatcher and is never awaited here. A
registration whose activation email fails is still a successful registration.

Known limitation: activation and reset tokens are not consumed. Each stays
valid until it expires, so a reset link can be used more than once within its
10 minutes.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from jose import JWTError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from auth.avatar import GravatarResolver
from auth.models import Gender, TokenPurpose, User, UserProfile
from auth.passwords import DUMMY_SECRET, MAX_PASSWORD_BYTES, hash_password, verify_password
from auth.store import UserStore
from auth.tokens import decode_token, encode_token
from core.config import Settings, get_settings
from core.errors import (
    ConflictError,
    DuplicateKeyError,
    InternalFaultError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ValidationFailedError,
)
from mail import templates
from mail.dispatch import MailDispatcher

logger = logging.getLogger("gatekeeper.accounts")

# ---------------------------------------------------------------------------
# Field rules -- shared with api/models.py so both layers reject the same input
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
EMAIL_MIN_LENGTH = 6
EMAIL_MAX_LENGTH = 32
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 32
NAME_MAX_LENGTH = 32

_EMAIL_RE = re.compile(EMAIL_PATTERN)


@dataclass(frozen=True)
class SessionToken:
    token: str
    expires_in: int


@dataclass(frozen=True)
class RegistrationResult:
    user: UserProfile
    session: SessionToken


class AccountService:
    """Orchestrates the account lifecycle over the store, hasher, codec and mailer.

    Usage:
        service = AccountService(UserStore(), MailDispatcher(notifier))
        result = await service.register("a@x.com", "secret1", "Ada", "Lovelace")
    """

    def __init__(
        self,
        store: UserStore,
        mailer: MailDispatcher,
        avatars: GravatarResolver | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._mailer = mailer
        self._avatars = avatars or GravatarResolver()
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        gender: Gender | None = None,
    ) -> RegistrationResult:
        """Create an unverified account, email an activation link, and log the user in.

        Raises ValidationFailedError for malformed fields and ConflictError if
        the email is taken -- whether found by the pre-check or by the store's
        UNIQUE constraint when a concurrent registration got there first.
        """
        _check_email(email)
        _check_password(password)
        problems = [p for p in (_name_problem("first name", first_name), _name_problem("last name", last_name)) if p]
        if problems:
            raise ValidationFailedError(errors=problems)

        if await self._offload(self._store.find_by_email, email) is not None:
            raise ConflictError()

        secret = await run_in_threadpool(hash_password, password, self._settings.bcrypt_rounds)
        candidate = User(
            email=email,
            password_secret=secret,
            first_name=first_name,
            last_name=last_name,
            avatar_url=self._avatar_for(email),
            gender=gender,
        )
        try:
            user = await self._offload(self._store.create, candidate)
        except DuplicateKeyError:
            logger.info("Registration lost a concurrent race on an existing email")
            raise ConflictError() from None

        logger.info("Registered user %s", user.id)
        activation = self._mint(user.id, self._settings.action_token_expire_seconds, TokenPurpose.activation)
        self._mailer.dispatch(
            user.email,
            templates.ACTIVATION_SUBJECT,
            templates.activation_email(
                user.first_name,
                templates.activation_link(self._settings.client_url, activation),
                self._settings.action_token_expire_seconds,
            ),
        )
        return RegistrationResult(user=UserProfile.from_user(user), session=self._session_for(user.id))

    async def login(self, email: str, password: str) -> SessionToken:
        """Exchange email + password for a session token.

        Unknown email and wrong password raise the identical
        InvalidCredentialsError. bcrypt runs in both cases (against a dummy
        secret when the email is unknown) so timing does not tell them apart
        [C1]. Unverified accounts may log in.
        """
        if not email or not password:
            raise ValidationFailedError(errors=["email and password are required"])
        user = await self._offload(self._store.find_by_email, email)
        secret = user.password_secret if user is not None else DUMMY_SECRET
        matches = await run_in_threadpool(verify_password, password, secret)
        if user is None or not matches:
            raise InvalidCredentialsError()
        logger.info("User %s logged in", user.id)
        return self._session_for(user.id)

    async def activate(self, token: str) -> UserProfile:
        """Mark the token's subject as verified. Idempotent for verified accounts."""
        user_id = decode_token(token, TokenPurpose.activation)
        if user_id is None:
            raise InvalidTokenError()
        user = await self._offload(self._store.find_by_id, user_id)
        if user is None:
            raise InvalidTokenError()
        if not user.verified:
            await self._offload(self._store.update, user.id, verified=True)
            user.verified = True
            logger.info("User %s activated", user.id)
        return UserProfile.from_user(user)

    async def forgot_password(self, email: str) -> None:
        """Email a reset link if the account exists.

        Returns normally either way. Callers must answer with the same
        envelope whether or not a message was sent.
        """
        _check_email(email)
        user = await self._offload(self._store.find_by_email, email)
        if user is None:
            return
        token = self._mint(user.id, self._settings.action_token_expire_seconds, TokenPurpose.reset)
        self._mailer.dispatch(
            user.email,
            templates.RESET_SUBJECT,
            templates.reset_email(
                user.first_name,
                templates.reset_link(self._settings.client_url, token),
                self._settings.action_token_expire_seconds,
            ),
        )
        logger.info("Password reset requested for user %s", user.id)

    async def reset_password(self, token: str, new_password: str) -> None:
        """Replace the password secret of the reset token's subject."""
        _check_password(new_password)
        user_id = decode_token(token, TokenPurpose.reset)
        if user_id is None:
            raise InvalidTokenError()
        user = await self._offload(self._store.find_by_id, user_id)
        if user is None:
            raise InvalidTokenError()
        secret = await run_in_threadpool(hash_password, new_password, self._settings.bcrypt_rounds)
        if not await self._offload(self._store.update, user.id, password_secret=secret):
            raise InvalidTokenError()
        logger.info("Password reset for user %s", user.id)

    async def get_profile(self, user_id: str) -> UserProfile:
        user = await self._offload(self._store.find_by_id, user_id)
        if user is None:
            raise NotFoundError()
        return UserProfile.from_user(user)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _offload(self, fn, *args, **kwargs):
        """Run a blocking store call in the threadpool; database faults become InternalFaultError."""
        try:
            return await run_in_threadpool(fn, *args, **kwargs)
        except SQLAlchemyError as exc:
            logger.exception("Credential store failure in %s", getattr(fn, "__name__", fn))
            raise InternalFaultError() from exc

    def _mint(self, user_id: str, ttl_seconds: int, purpose: TokenPurpose) -> str:
        try:
            return encode_token(user_id, ttl_seconds, purpose)
        except JWTError as exc:
            logger.exception("Token signing failed")
            raise InternalFaultError() from exc

    def _session_for(self, user_id: str) -> SessionToken:
        ttl = self._settings.session_token_expire_seconds
        return SessionToken(token=self._mint(user_id, ttl, TokenPurpose.session), expires_in=ttl)

    def _avatar_for(self, email: str) -> str:
        try:
            return self._avatars.url_for(email)
        except Exception:
            logger.warning("Avatar resolver failed; using default avatar", exc_info=True)
            return self._settings.default_avatar_url


# ---------------------------------------------------------------------------
# Field checks -- the API layer validates first; these re-reject anything that
# reaches the service by another path.
# ---------------------------------------------------------------------------


def _check_email(email: str) -> None:
    if not email:
        raise ValidationFailedError(errors=["email field is required"])
    if not EMAIL_MIN_LENGTH <= len(email) <= EMAIL_MAX_LENGTH:
        raise ValidationFailedError(
            errors=[f"email must be {EMAIL_MIN_LENGTH} to {EMAIL_MAX_LENGTH} characters"]
        )
    if not _EMAIL_RE.match(email):
        raise ValidationFailedError(errors=["please include a valid email"])


def _check_password(password: str) -> None:
    if not password:
        raise ValidationFailedError(errors=["password field is required"])
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        raise ValidationFailedError(
            errors=[f"please enter a password with {PASSWORD_MIN_LENGTH} to {PASSWORD_MAX_LENGTH} characters"]
        )
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationFailedError(errors=[f"password must not exceed {MAX_PASSWORD_BYTES} bytes"])


def _name_problem(label: str, value: str) -> str | None:
    if not value or not value.strip():
        return f"{label} field is required"
    if len(value) > NAME_MAX_LENGTH:
        return f"{label} can't be longer than {NAME_MAX_LENGTH} characters"
    return None
