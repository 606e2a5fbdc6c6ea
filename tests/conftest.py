# Shared test fixtures.
# Created: 2026-10-08

import pytest

from keyhouse.config import reset_settings
from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.models import User
from keyhouse.oauth2.server import AuthorizationServer, reset_oauth_server
from keyhouse.oauth2.storage import MemoryStore
from keyhouse.security.audit import AuditLogger, reset_audit_logger
from keyhouse.security.rate_limiter import authorize_limiter, token_limiter


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep settings, audit log and file store out of the real home directory."""
    monkeypatch.setenv("KEYHOUSE_CONFIG_DIR", str(tmp_path / "config"))
    reset_settings()
    reset_audit_logger()
    reset_oauth_server()
    authorize_limiter.reset()
    token_limiter.reset()
    yield
    reset_settings()
    reset_audit_logger()
    reset_oauth_server()


@pytest.fixture
def audit(tmp_path):
    return AuditLogger(log_path=tmp_path / "audit.jsonl")


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def server(store, audit):
    return AuthorizationServer(store, audit=audit)


@pytest.fixture
def ctx():
    return RequestContext.create()


@pytest.fixture
def alice():
    return User(id="u1", username="alice", email="alice@example.com", name="Alice")


@pytest.fixture
def confidential_client(server, ctx):
    """(client, secret) for a confidential client allowed read + write."""
    return server.register_client(
        ctx, "Web App", ["https://app.example/cb", "https://app.example/other"], "read write"
    )


@pytest.fixture
def public_client(server, ctx):
    client, _ = server.register_client(
        ctx, "Desktop App", ["http://127.0.0.1:8765/cb"], "read", confidential=False
    )
    return client
