# Client Registry: register, look up and authenticate OAuth2 clients.
# Created: 2026-10-03
#
# Client secrets use the format kh_cs_<random> and are shown once at
# registration. Only sha256 hashes are stored.

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from urllib.parse import urlsplit

from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.errors import InvalidClient, InvalidRequest, StorageUnavailable
from keyhouse.oauth2.models import DEFAULT_SCOPE, SUPPORTED_GRANTS, Client, parse_scope
from keyhouse.oauth2.storage import CLIENT, Store

logger = logging.getLogger(__name__)

_CLIENT_ID_PREFIX = "kh_"
_SECRET_PREFIX = "kh_cs_"


def _hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode()).hexdigest()


def is_absolute_uri(uri: str) -> bool:
    """True for URIs with a scheme and authority and no fragment."""
    try:
        parts = urlsplit(uri)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc) and not parts.fragment


class ClientRegistry:
    """Validates and stores OAuth2 client records."""

    def __init__(self, store: Store):
        self.store = store

    def register(
        self,
        ctx: RequestContext,
        name: str,
        redirect_uris: list[str],
        scopes: str | list[str] | None = None,
        confidential: bool = True,
        grant_types: list[str] | None = None,
    ) -> tuple[Client, str | None]:
        """Register a new client. Returns (client, plaintext_secret).

        The secret is None for public clients and cannot be retrieved later.
        """
        if not name or not name.strip():
            raise InvalidRequest("client_name is required")
        if not redirect_uris:
            raise InvalidRequest("At least one redirect_uri is required")
        for uri in redirect_uris:
            if not is_absolute_uri(uri):
                raise InvalidRequest(f"redirect_uri must be an absolute URI: {uri}")

        grants = list(grant_types) if grant_types else list(SUPPORTED_GRANTS)
        unknown = set(grants) - set(SUPPORTED_GRANTS)
        if unknown:
            raise InvalidRequest(f"Unsupported grant_types: {', '.join(sorted(unknown))}")

        allowed_scopes = parse_scope(scopes) or list(DEFAULT_SCOPE)

        secret = f"{_SECRET_PREFIX}{secrets.token_urlsafe(32)}" if confidential else None
        client = Client(
            client_id=f"{_CLIENT_ID_PREFIX}{secrets.token_urlsafe(16)}",
            client_name=name.strip(),
            secret_hash=_hash_secret(secret) if secret else None,
            redirect_uris=list(dict.fromkeys(redirect_uris)),
            allowed_grants=grants,
            allowed_scopes=allowed_scopes,
            created_at=ctx.now,
        )

        if not self.store.create(CLIENT, client.client_id, client):
            raise StorageUnavailable(f"client_id collision for {client.client_id}")

        logger.info(
            "Registered %s client %s (%s)",
            "confidential" if confidential else "public",
            client.client_id,
            client.client_name,
        )
        return client, secret

    def get(self, ctx: RequestContext, client_id: str) -> Client:
        client = self.store.get(CLIENT, client_id) if client_id else None
        if client is None:
            raise InvalidClient("Unknown client")
        return client

    @staticmethod
    def validate_redirect_uri(client: Client, uri: str) -> bool:
        """Exact string match against the registered redirect URIs."""
        if not uri or not is_absolute_uri(uri):
            return False
        return uri in client.redirect_uris

    def authenticate(
        self, ctx: RequestContext, client_id: str, client_secret: str | None
    ) -> Client:
        """Resolve *client_id* and check its secret if it is confidential."""
        client = self.get(ctx, client_id)
        if not client.is_confidential:
            return client

        if not client_secret:
            raise InvalidClient("Client authentication required")
        if not hmac.compare_digest(_hash_secret(client_secret), client.secret_hash or ""):
            logger.warning("Client secret mismatch for %s", client_id)
            raise InvalidClient("Client authentication failed")
        return client
