"""
tests/conftest.py -- Shared test fixtures for Gatekeeper.

This module provides:
  - RecordingNotifier: in-memory Notifier that records every message and can
    be told to fail, so tests can observe (or break) email delivery.
  - store / notifier / mailer / service: an isolated AccountService stack on
    a throwaway SQLite file per test.
  - api_client: TestClient over the real FastAPI app with a patched lifespan
    that wires in the same kind of isolated stack.

Design: SQLite file databases under tmp_path (not :memory:) because store
calls run in the threadpool. A plain :memory: DB is per-connection and would
present a blank schema to each worker thread.

DEBUG and BCRYPT_ROUNDS must be set before any auth/core import so
get_settings() auto-generates SECRET_KEY instead of raising ValueError, and
so hashing stays fast in tests.
"""

from __future__ import annotations

import os
import re
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
# TestClient sends Host: testserver, which TrustedHostMiddleware must accept.
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from accounts.service import AccountService
from api.main import app
from auth.store import UserStore
from mail.dispatch import MailDispatcher

_ACTIVATION_LINK_RE = re.compile(r"/users/activate/([A-Za-z0-9_\-\.]+)")
_RESET_LINK_RE = re.compile(r"/users/password/reset/([A-Za-z0-9_\-\.]+)")


# ---------------------------------------------------------------------------
# Notifier double
# ---------------------------------------------------------------------------


@dataclass
class SentMail:
    to: str
    subject: str
    html: str

    def activation_token(self) -> str | None:
        match = _ACTIVATION_LINK_RE.search(self.html)
        return match.group(1) if match else None

    def reset_token(self) -> str | None:
        match = _RESET_LINK_RE.search(self.html)
        return match.group(1) if match else None


class RecordingNotifier:
    """Notifier that keeps messages in memory.

    Set fail=True to make every send() raise, mimicking an unreachable relay.
    """

    def __init__(self) -> None:
        self.sent: list[SentMail] = []
        self.fail = False
        self.opened = False
        self.closed = False

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    async def send(self, to_email: str, subject: str, html_body: str) -> bool:
        if self.fail:
            raise ConnectionRefusedError("relay unavailable")
        self.sent.append(SentMail(to=to_email, subject=subject, html=html_body))
        return True


# ---------------------------------------------------------------------------
# Service-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path) -> Generator[UserStore, None, None]:
    s = UserStore(db_url=f"sqlite:///{tmp_path / 'users.db'}")
    yield s
    s.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def mailer(notifier: RecordingNotifier) -> MailDispatcher:
    return MailDispatcher(notifier)


@pytest.fixture
def service(store: UserStore, mailer: MailDispatcher) -> AccountService:
    return AccountService(store, mailer)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, notifier: RecordingNotifier):
    """Return an async context manager that replaces the real lifespan.

    Wires test collaborators into app.state so TestClient routes see an
    isolated database and a recording notifier rather than SMTP.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        await notifier.open()
        app.state.user_store = user_store
        app.state.notifier = notifier
        app.state.mailer = MailDispatcher(notifier)
        app.state.account_service = AccountService(user_store, app.state.mailer)
        yield
        await app.state.mailer.drain(timeout=2)
        await notifier.close()

    return test_lifespan


@pytest.fixture
def api_client(tmp_path) -> Generator[tuple[TestClient, RecordingNotifier], None, None]:
    """Yield (client, notifier) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers, exception handlers and middleware.
    """
    user_store = UserStore(db_url=f"sqlite:///{tmp_path / 'api_users.db'}")
    notifier = RecordingNotifier()
    app.router.lifespan_context = _patch_lifespan(user_store, notifier)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, notifier

    user_store.close()
