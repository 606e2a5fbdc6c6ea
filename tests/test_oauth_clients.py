# Tests for the client registry.
# Created: 2026-10-08

import pytest

from keyhouse.oauth2.clients import ClientRegistry, is_absolute_uri
from keyhouse.oauth2.errors import InvalidClient, InvalidRequest, StorageUnavailable
from keyhouse.oauth2.models import Client
from keyhouse.oauth2.storage import CLIENT


@pytest.fixture
def registry(store):
    return ClientRegistry(store)


class TestRegister:
    def test_confidential_client_gets_secret(self, registry, ctx, store):
        client, secret = registry.register(ctx, "Web", ["https://app.example/cb"])
        assert client.client_id.startswith("kh_")
        assert secret.startswith("kh_cs_")
        assert client.is_confidential
        stored = store.get(CLIENT, client.client_id)
        assert stored.secret_hash != secret
        assert secret not in stored.model_dump_json()

    def test_public_client_has_no_secret(self, registry, ctx):
        client, secret = registry.register(
            ctx, "CLI", ["http://127.0.0.1:9000/cb"], confidential=False
        )
        assert secret is None
        assert not client.is_confidential

    def test_defaults(self, registry, ctx):
        client, _ = registry.register(ctx, "Web", ["https://app.example/cb"])
        assert client.allowed_scopes == ["read"]
        assert client.allowed_grants == ["authorization_code", "refresh_token"]

    def test_scope_string_is_parsed(self, registry, ctx):
        client, _ = registry.register(ctx, "Web", ["https://app.example/cb"], "read write read")
        assert client.allowed_scopes == ["read", "write"]

    def test_unique_ids(self, registry, ctx):
        ids = {registry.register(ctx, "Web", ["https://a.example/cb"])[0].client_id for _ in range(20)}
        assert len(ids) == 20

    @pytest.mark.parametrize("uri", ["/relative/cb", "app.example/cb", "https://app.example/cb#frag"])
    def test_rejects_non_absolute_redirect(self, registry, ctx, uri):
        with pytest.raises(InvalidRequest):
            registry.register(ctx, "Web", [uri])

    def test_requires_redirect_uri(self, registry, ctx):
        with pytest.raises(InvalidRequest):
            registry.register(ctx, "Web", [])

    def test_requires_name(self, registry, ctx):
        with pytest.raises(InvalidRequest):
            registry.register(ctx, "  ", ["https://app.example/cb"])

    def test_rejects_unknown_grant(self, registry, ctx):
        with pytest.raises(InvalidRequest, match="password"):
            registry.register(ctx, "Web", ["https://app.example/cb"], grant_types=["password"])

    def test_id_collision_is_fatal(self, registry, ctx, monkeypatch):
        monkeypatch.setattr(registry.store, "create", lambda kind, key, record: False)
        with pytest.raises(StorageUnavailable):
            registry.register(ctx, "Web", ["https://app.example/cb"])


class TestLookup:
    def test_get_unknown(self, registry, ctx):
        with pytest.raises(InvalidClient):
            registry.get(ctx, "kh_nope")

    def test_validate_redirect_uri_exact_match(self):
        client = Client(client_id="c", client_name="x", redirect_uris=["https://app.example/cb"])
        assert ClientRegistry.validate_redirect_uri(client, "https://app.example/cb")
        assert not ClientRegistry.validate_redirect_uri(client, "https://app.example/cb/")
        assert not ClientRegistry.validate_redirect_uri(client, "https://app.example/cb?x=1")
        assert not ClientRegistry.validate_redirect_uri(client, "")

    def test_is_absolute_uri(self):
        assert is_absolute_uri("https://app.example/cb")
        assert is_absolute_uri("http://127.0.0.1:8080/cb")
        assert not is_absolute_uri("cb")


class TestAuthenticate:
    def test_confidential_with_secret(self, registry, ctx):
        client, secret = registry.register(ctx, "Web", ["https://app.example/cb"])
        assert registry.authenticate(ctx, client.client_id, secret).client_id == client.client_id

    def test_confidential_bad_secret(self, registry, ctx):
        client, _ = registry.register(ctx, "Web", ["https://app.example/cb"])
        with pytest.raises(InvalidClient):
            registry.authenticate(ctx, client.client_id, "kh_cs_wrong")

    def test_confidential_missing_secret(self, registry, ctx):
        client, _ = registry.register(ctx, "Web", ["https://app.example/cb"])
        with pytest.raises(InvalidClient):
            registry.authenticate(ctx, client.client_id, None)

    def test_public_needs_no_secret(self, registry, ctx):
        client, _ = registry.register(ctx, "CLI", ["http://127.0.0.1/cb"], confidential=False)
        assert registry.authenticate(ctx, client.client_id, None).client_id == client.client_id
