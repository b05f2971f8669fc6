"""Unit tests for auth/dependencies.py -- the access guard.

Covers:
- missing token -> UnauthenticatedError
- bad signature / expired / wrong-purpose token -> UnauthenticatedError
- valid session token -> Identity carrying the subject id, no store access
- token extraction from x-auth-token and Authorization: Bearer headers
"""

from datetime import datetime, timedelta, timezone

import pytest
from starlette.requests import Request

from auth.dependencies import authenticate, extract_token, require_identity
from auth.models import Identity, TokenPurpose
from auth.tokens import encode_token
from core.errors import UnauthenticatedError

_USER_ID = "0123456789abcdef0123456789abcdef"


def _request(headers: dict[str, str]) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
    }
    return Request(scope)


class TestAuthenticate:
    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, token) -> None:
        with pytest.raises(UnauthenticatedError) as exc_info:
            authenticate(token)
        assert exc_info.value.status_code == 401

    def test_valid_session_token(self) -> None:
        identity = authenticate(encode_token(_USER_ID, 60, TokenPurpose.session))
        assert identity == Identity(user_id=_USER_ID)

    def test_expired_session_token(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(seconds=2)
        with pytest.raises(UnauthenticatedError):
            authenticate(encode_token(_USER_ID, 1, TokenPurpose.session, issued_at=issued))

    @pytest.mark.parametrize("purpose", [TokenPurpose.activation, TokenPurpose.reset])
    def test_non_session_token_rejected(self, purpose: TokenPurpose) -> None:
        with pytest.raises(UnauthenticatedError):
            authenticate(encode_token(_USER_ID, 600, purpose))

    def test_tampered_token_rejected(self) -> None:
        token = encode_token(_USER_ID, 60)
        with pytest.raises(UnauthenticatedError):
            authenticate(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))

    def test_missing_and_invalid_have_same_status(self) -> None:
        with pytest.raises(UnauthenticatedError) as missing:
            authenticate(None)
        with pytest.raises(UnauthenticatedError) as invalid:
            authenticate("garbage")
        assert missing.value.status_code == invalid.value.status_code == 401


class TestExtractToken:
    def test_x_auth_token_header(self) -> None:
        assert extract_token(_request({"x-auth-token": "abc"})) == "abc"

    def test_bearer_header(self) -> None:
        assert extract_token(_request({"Authorization": "Bearer abc"})) == "abc"

    def test_x_auth_token_wins(self) -> None:
        assert extract_token(_request({"x-auth-token": "first", "Authorization": "Bearer second"})) == "first"

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer "}])
    def test_no_token(self, headers: dict[str, str]) -> None:
        assert extract_token(_request(headers)) is None

    def test_require_identity_end_to_end(self) -> None:
        token = encode_token(_USER_ID, 60)
        assert require_identity(_request({"x-auth-token": token})).user_id == _USER_ID
