"""Unit tests for auth/tokens.py -- JWT encode/decode.

Covers:
- decode(encode(id, ttl)) returns id while the token is fresh
- expired tokens are rejected (issued with ttl=1s, 2s in the past)
- any character change in the signed payload is rejected
- a payload re-signed with another key, or forged without a signature, is rejected
- purpose tags: a token is only accepted where its purpose is expected
- malformed input never raises
"""

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.models import TokenPurpose
from auth.tokens import decode_token, encode_token

_USER_ID = "3f2b8c0e9d7a4e51b6c2d1a0f9e8d7c6"


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


class TestRoundTrip:
    def test_fresh_token_decodes_to_subject(self) -> None:
        token = encode_token(_USER_ID, 60)
        assert decode_token(token) == _USER_ID

    def test_token_is_url_safe(self) -> None:
        token = encode_token(_USER_ID, 60, TokenPurpose.activation)
        allowed = set("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.")
        assert set(token) <= allowed

    def test_expiry_is_issue_time_plus_ttl(self) -> None:
        issued = datetime(2030, 1, 1, tzinfo=timezone.utc)
        token = encode_token(_USER_ID, 600, TokenPurpose.reset, issued_at=issued)
        claims = jwt.get_unverified_claims(token)
        assert claims["exp"] - claims["iat"] == 600
        assert claims["purpose"] == "reset"
        assert claims["sub"] == _USER_ID


class TestExpiry:
    def test_expired_token_rejected(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(seconds=2)
        token = encode_token(_USER_ID, 1, issued_at=issued)
        assert decode_token(token) is None

    def test_token_still_valid_before_expiry(self) -> None:
        issued = datetime.now(timezone.utc) - timedelta(seconds=2)
        token = encode_token(_USER_ID, 60, issued_at=issued)
        assert decode_token(token) == _USER_ID


class TestTampering:
    def test_every_payload_character_flip_rejected(self) -> None:
        token = encode_token(_USER_ID, 600)
        header, payload, signature = token.split(".")
        for i, ch in enumerate(payload):
            replacement = "A" if ch != "A" else "B"
            tampered = f"{header}.{payload[:i]}{replacement}{payload[i + 1:]}.{signature}"
            assert decode_token(tampered) is None, f"flip at payload index {i} was accepted"

    def test_swapped_payload_rejected(self) -> None:
        token = encode_token(_USER_ID, 600)
        header, _payload, signature = token.split(".")
        claims = jwt.get_unverified_claims(token)
        claims["sub"] = "someone-else"
        forged = f"{header}.{_b64(claims)}.{signature}"
        assert decode_token(forged) is None

    def test_wrong_key_rejected(self) -> None:
        exp = datetime.now(timezone.utc) + timedelta(minutes=5)
        forged = jwt.encode({"sub": _USER_ID, "purpose": "session", "exp": exp}, "x" * 64, algorithm="HS256")
        assert decode_token(forged) is None

    def test_unsigned_token_rejected(self) -> None:
        exp = int((datetime.now(timezone.utc) + timedelta(minutes=5)).timestamp())
        forged = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64({'sub': _USER_ID, 'purpose': 'session', 'exp': exp})}."
        assert decode_token(forged) is None


class TestPurpose:
    @pytest.mark.parametrize("purpose", list(TokenPurpose))
    def test_matching_purpose_accepted(self, purpose: TokenPurpose) -> None:
        assert decode_token(encode_token(_USER_ID, 60, purpose), purpose) == _USER_ID

    @pytest.mark.parametrize(
        ("minted", "expected"),
        [
            (TokenPurpose.reset, TokenPurpose.session),
            (TokenPurpose.activation, TokenPurpose.session),
            (TokenPurpose.session, TokenPurpose.activation),
            (TokenPurpose.activation, TokenPurpose.reset),
        ],
    )
    def test_mismatched_purpose_rejected(self, minted: TokenPurpose, expected: TokenPurpose) -> None:
        assert decode_token(encode_token(_USER_ID, 60, minted), expected) is None


class TestMalformed:
    @pytest.mark.parametrize("token", [None, "", "abc", "a.b.c", "....", "Bearer xyz"])
    def test_garbage_returns_none(self, token) -> None:
        assert decode_token(token) is None
