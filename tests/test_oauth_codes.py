# Tests for authorization code issuance.
# Created: 2026-10-08

from datetime import timedelta

import pytest

from keyhouse.oauth2.codes import CODE_TTL, CodeIssuer
from keyhouse.oauth2.errors import InvalidRequest, InvalidScope, UnauthorizedClient
from keyhouse.oauth2.pkce import s256_challenge
from keyhouse.oauth2.storage import CODE
from keyhouse.oauth2.tokens import hash_token


@pytest.fixture
def issuer(store):
    return CodeIssuer(store)


class TestIssue:
    def test_issue_persists_hashed_code(self, issuer, ctx, alice, confidential_client, store):
        client, _ = confidential_client
        record, raw = issuer.issue(ctx, client, alice, "read", "https://app.example/cb")
        assert len(raw) >= 43  # 32 random bytes, base64url
        assert record.code_hash == hash_token(raw)
        stored = store.get(CODE, record.code_hash)
        assert stored is not None
        assert stored.user_id == "u1"
        assert stored.consumed is False
        assert store.get(CODE, raw) is None

    def test_expiry_is_ten_minutes(self, issuer, ctx, alice, confidential_client):
        client, _ = confidential_client
        record, _ = issuer.issue(ctx, client, alice, None, "https://app.example/cb")
        assert CODE_TTL == timedelta(minutes=10)
        assert record.expires_at - ctx.now == CODE_TTL

    def test_default_scope_is_read(self, issuer, ctx, alice, confidential_client):
        client, _ = confidential_client
        record, _ = issuer.issue(ctx, client, alice, None, "https://app.example/cb")
        assert record.scope == ["read"]

    def test_scope_order_is_kept(self, issuer, ctx, alice, confidential_client):
        client, _ = confidential_client
        record, _ = issuer.issue(ctx, client, alice, "write read", "https://app.example/cb")
        assert record.scope == ["write", "read"]

    def test_scope_not_allowed(self, issuer, ctx, alice, confidential_client):
        client, _ = confidential_client
        with pytest.raises(InvalidScope):
            issuer.issue(ctx, client, alice, "read admin", "https://app.example/cb")

    def test_unregistered_redirect(self, issuer, ctx, alice, confidential_client):
        client, _ = confidential_client
        with pytest.raises(InvalidRequest):
            issuer.issue(ctx, client, alice, "read", "https://evil.example/cb")

    def test_codes_are_unique(self, issuer, ctx, alice, confidential_client):
        client, _ = confidential_client
        raws = {issuer.issue(ctx, client, alice, "read", "https://app.example/cb")[1] for _ in range(50)}
        assert len(raws) == 50


class TestPKCEParameters:
    def test_s256(self, issuer, ctx, alice, public_client):
        challenge = s256_challenge("abc123")
        record, _ = issuer.issue(
            ctx, public_client, alice, "read", "http://127.0.0.1:8765/cb", challenge, "S256"
        )
        assert record.code_challenge == challenge
        assert record.code_challenge_method == "S256"

    def test_method_defaults_to_plain(self, issuer, ctx, alice, public_client):
        record, _ = issuer.issue(
            ctx, public_client, alice, "read", "http://127.0.0.1:8765/cb", "challenge"
        )
        assert record.code_challenge_method == "plain"

    def test_unknown_method(self, issuer, ctx, alice, public_client):
        with pytest.raises(InvalidRequest):
            issuer.issue(
                ctx, public_client, alice, "read", "http://127.0.0.1:8765/cb", "x", "S512"
            )

    def test_method_without_challenge(self, issuer, ctx, alice, confidential_client):
        client, _ = confidential_client
        with pytest.raises(InvalidRequest):
            issuer.issue(ctx, client, alice, "read", "https://app.example/cb", None, "S256")

    def test_public_client_requires_pkce(self, issuer, ctx, alice, public_client):
        with pytest.raises(InvalidRequest, match="PKCE"):
            issuer.issue(ctx, public_client, alice, "read", "http://127.0.0.1:8765/cb")

    def test_confidential_client_may_skip_pkce(self, issuer, ctx, alice, confidential_client):
        client, _ = confidential_client
        record, _ = issuer.issue(ctx, client, alice, "read", "https://app.example/cb")
        assert record.code_challenge is None


def test_grant_not_allowed(server, issuer, ctx, alice):
    client, _ = server.register_client(
        ctx, "Refresh only", ["https://app.example/cb"], grant_types=["refresh_token"]
    )
    with pytest.raises(UnauthorizedClient):
        issuer.issue(ctx, client, alice, "read", "https://app.example/cb")
