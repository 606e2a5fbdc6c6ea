# Tests for revocation and introspection.
# Created: 2026-10-09

from dataclasses import replace

import pytest

from keyhouse.oauth2.storage import ACCESS_TOKEN, REFRESH_TOKEN
from keyhouse.oauth2.tokens import ACCESS_TOKEN_TTL, hash_token


@pytest.fixture
def pair(server, ctx):
    return server.tokens.issue_pair(ctx, "c1", "u1", ["read", "write"])


class TestIntrospect:
    def test_active_access_token(self, server, ctx, pair):
        result = server.introspect(ctx, pair.access_token)
        assert result.active is True
        assert result.scope == ["read", "write"]
        assert result.client_id == "c1"
        assert result.user_id == "u1"
        assert result.token_type == ACCESS_TOKEN
        body = result.to_response()
        assert body["scope"] == "read write"
        assert body["sub"] == "u1"
        assert isinstance(body["exp"], int)

    def test_active_refresh_token(self, server, ctx, pair):
        result = server.introspect(ctx, pair.refresh_token)
        assert result.active is True
        assert result.token_type == REFRESH_TOKEN

    def test_unknown_token(self, server, ctx):
        result = server.introspect(ctx, "kh_at_unknown")
        assert result.active is False
        assert result.to_response() == {"active": False}

    def test_expired_token(self, server, ctx, pair):
        later = replace(ctx, now=ctx.now + ACCESS_TOKEN_TTL)
        result = server.introspect(later, pair.access_token)
        assert result.to_response() == {"active": False}
        assert result.client_id is None

    def test_revoked_round_trip(self, server, ctx, pair):
        assert server.introspect(ctx, pair.access_token).active is True
        server.revoke(ctx, pair.access_token)
        assert server.introspect(ctx, pair.access_token).active is False


class TestRevoke:
    def test_revoke_access_token_leaves_refresh(self, server, ctx, pair):
        server.revoke(ctx, pair.access_token)
        assert server.introspect(ctx, pair.access_token).active is False
        assert server.introspect(ctx, pair.refresh_token).active is True

    def test_revoke_refresh_token_revokes_family(self, server, ctx, pair):
        server.revoke(ctx, pair.refresh_token, "refresh_token")
        assert server.introspect(ctx, pair.refresh_token).active is False
        assert server.introspect(ctx, pair.access_token).active is False

    def test_wrong_hint_still_finds_token(self, server, ctx, pair):
        server.revoke(ctx, pair.access_token, "refresh_token")
        assert server.introspect(ctx, pair.access_token).active is False

    def test_unknown_hint_is_ignored(self, server, ctx, pair):
        server.revoke(ctx, pair.access_token, "id_token")
        assert server.introspect(ctx, pair.access_token).active is False

    def test_unknown_token_is_silent(self, server, ctx):
        assert server.inspector.revoke(ctx, "kh_at_unknown") is None
        server.revoke(ctx, "")

    def test_revoke_twice(self, server, ctx, pair):
        server.revoke(ctx, pair.access_token)
        server.revoke(ctx, pair.access_token)
        record = server.tokens.lookup(ctx, hash_token(pair.access_token), ACCESS_TOKEN)
        assert record.revoked is True

    def test_revocation_is_audited_without_token_value(self, server, ctx, pair, audit):
        server.revoke(ctx, pair.access_token)
        log = audit.log_path.read_text()
        assert "token_revoked" in log
        assert pair.access_token not in log
