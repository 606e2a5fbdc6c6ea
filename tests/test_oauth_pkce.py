# Tests for PKCE verification.
# Created: 2026-10-08

import base64
import hashlib
import secrets
from datetime import UTC, datetime, timedelta

import pytest

from keyhouse.oauth2.errors import InvalidRequest
from keyhouse.oauth2.models import AuthorizationCode
from keyhouse.oauth2.pkce import s256_challenge, verify_challenge


def _code(challenge, method):
    now = datetime.now(UTC)
    return AuthorizationCode(
        code_hash="h",
        client_id="c",
        user_id="u",
        scope=["read"],
        redirect_uri="https://app.example/cb",
        code_challenge=challenge,
        code_challenge_method=method,
        created_at=now,
        expires_at=now + timedelta(minutes=10),
    )


class TestS256Challenge:
    def test_rfc7636_appendix_b(self):
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
        assert s256_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_no_padding(self):
        assert "=" not in s256_challenge(secrets.token_urlsafe(32))

    def test_matches_manual_computation(self):
        verifier = "abc123"
        expected = base64.urlsafe_b64encode(hashlib.sha256(b"abc123").digest()).rstrip(b"=")
        assert s256_challenge(verifier) == expected.decode()


class TestVerifyChallenge:
    def test_s256_correct(self):
        verifier = secrets.token_urlsafe(48)
        assert verify_challenge(_code(s256_challenge(verifier), "S256"), verifier)

    def test_s256_wrong(self):
        verifier = secrets.token_urlsafe(48)
        assert not verify_challenge(_code(s256_challenge(verifier), "S256"), verifier + "x")

    def test_s256_rejects_challenge_as_verifier(self):
        challenge = s256_challenge("abc123")
        assert not verify_challenge(_code(challenge, "S256"), challenge)

    def test_short_verifier_is_accepted(self):
        assert verify_challenge(_code(s256_challenge("abc123"), "S256"), "abc123")
        assert verify_challenge(_code("x", "plain"), "x")

    def test_plain(self):
        assert verify_challenge(_code("same-value", "plain"), "same-value")
        assert not verify_challenge(_code("same-value", "plain"), "other-value")

    def test_missing_verifier(self):
        assert not verify_challenge(_code(s256_challenge("abc123"), "S256"), None)
        assert not verify_challenge(_code(s256_challenge("abc123"), "S256"), "")

    def test_no_challenge_skips(self):
        assert verify_challenge(_code(None, None), None)

    def test_unknown_method(self):
        with pytest.raises(InvalidRequest):
            verify_challenge(_code("x", "S512"), "x")
