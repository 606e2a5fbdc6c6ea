# OAuth2 Authorization Server with PKCE support.
# Created: 2026-10-06
#
# Wires the client registry, code issuer, token issuer, grant exchanger and
# token inspector around a single Store, and records audit events. The HTTP
# layer talks to this facade only.

from __future__ import annotations

import logging
from collections.abc import Mapping

from keyhouse.config import Settings, get_settings
from keyhouse.oauth2.clients import ClientRegistry
from keyhouse.oauth2.codes import CodeIssuer
from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.errors import InvalidGrant, InvalidRequest, OAuthError
from keyhouse.oauth2.grants import GrantExchanger
from keyhouse.oauth2.introspection import TokenInspector
from keyhouse.oauth2.models import (
    PKCE_METHODS,
    SUPPORTED_GRANTS,
    AccessToken,
    Client,
    Introspection,
    TokenPair,
)
from keyhouse.oauth2.storage import FileStore, MemoryStore, Store
from keyhouse.oauth2.tokens import TokenIssuer
from keyhouse.security.audit import AuditLogger, AuditSeverity, get_audit_logger

logger = logging.getLogger(__name__)

TOKEN_AUTH_METHODS = ["client_secret_basic", "client_secret_post", "none"]


class AuthorizationServer:
    """OAuth2 authorization server with PKCE."""

    def __init__(self, store: Store | None = None, audit: AuditLogger | None = None):
        self.store: Store = store if store is not None else MemoryStore()
        self._audit = audit
        self.registry = ClientRegistry(self.store)
        self.codes = CodeIssuer(self.store)
        self.tokens = TokenIssuer(self.store)
        self.grants = GrantExchanger(self.registry, self.codes, self.tokens)
        self.inspector = TokenInspector(self.tokens)

    @property
    def audit(self) -> AuditLogger:
        if self._audit is None:
            self._audit = get_audit_logger()
        return self._audit

    def register_client(
        self,
        ctx: RequestContext,
        name: str,
        redirect_uris: list[str],
        scope: str | list[str] | None = None,
        confidential: bool = True,
        grant_types: list[str] | None = None,
    ) -> tuple[Client, str | None]:
        client, secret = self.registry.register(
            ctx, name, redirect_uris, scope, confidential=confidential, grant_types=grant_types
        )
        self.audit.log_oauth_event(
            action="client_registered",
            actor=client.client_id,
            target=f"client:{client.client_id}",
            confidential=confidential,
            redirect_uris=client.redirect_uris,
        )
        return client, secret

    def authorize(
        self,
        ctx: RequestContext,
        client: Client,
        redirect_uri: str,
        scope: str | None = None,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> str:
        """Issue an authorization code for the user on *ctx*. Returns the raw code."""
        if ctx.user is None:
            raise InvalidRequest("An authenticated user is required")

        record, raw = self.codes.issue(
            ctx,
            client,
            ctx.user,
            scope,
            redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        )
        self.audit.log_oauth_event(
            action="code_issued",
            actor=client.client_id,
            target=f"user:{ctx.user.id}",
            scope=record.scope,
            pkce=record.code_challenge_method,
        )
        return raw

    def token(
        self, ctx: RequestContext, grant_type: str | None, params: Mapping[str, str | None]
    ) -> TokenPair:
        """Run the token endpoint for *grant_type*."""
        client_id = params.get("client_id") or ""
        try:
            pair = self.grants.exchange(ctx, grant_type, params)
        except OAuthError as exc:
            self.audit.log_oauth_event(
                action="grant_failed",
                actor=client_id,
                target=f"grant:{grant_type}",
                status="error",
                severity=AuditSeverity.ALERT
                if isinstance(exc, InvalidGrant)
                else AuditSeverity.WARNING,
                error=exc.error,
                description=exc.description,
            )
            raise

        self.audit.log_oauth_event(
            action="token_refreshed" if grant_type == "refresh_token" else "token_issued",
            actor=client_id,
            target=f"grant:{grant_type}",
            scope=pair.scope,
        )
        return pair

    def revoke(
        self, ctx: RequestContext, token: str, token_type_hint: str | None = None
    ) -> None:
        kind = self.inspector.revoke(ctx, token, token_type_hint)
        if kind is not None:
            self.audit.log_oauth_event(action="token_revoked", actor="", target=kind)

    def introspect(
        self, ctx: RequestContext, token: str, token_type_hint: str | None = None
    ) -> Introspection:
        return self.inspector.introspect(ctx, token, token_type_hint)

    def verify_access_token(self, ctx: RequestContext, access_token: str) -> AccessToken | None:
        """Verify an access token and return the token record if valid."""
        return self.tokens.validate_access_token(ctx, access_token)

    def metadata(self, issuer: str, scopes_supported: list[str] | None = None) -> dict:
        """Authorization server metadata (RFC 8414)."""
        issuer = issuer.rstrip("/")
        doc = {
            "issuer": issuer,
            "authorization_endpoint": f"{issuer}/oauth/authorize",
            "token_endpoint": f"{issuer}/oauth/token",
            "registration_endpoint": f"{issuer}/oauth/applications",
            "revocation_endpoint": f"{issuer}/oauth/revoke",
            "introspection_endpoint": f"{issuer}/oauth/introspect",
            "response_types_supported": ["code"],
            "grant_types_supported": list(SUPPORTED_GRANTS),
            "code_challenge_methods_supported": list(PKCE_METHODS),
            "token_endpoint_auth_methods_supported": TOKEN_AUTH_METHODS,
            "revocation_endpoint_auth_methods_supported": TOKEN_AUTH_METHODS,
        }
        if scopes_supported:
            doc["scopes_supported"] = list(scopes_supported)
        return doc


def build_store(settings: Settings | None = None) -> Store:
    """Create the store configured in *settings* (default: the process settings)."""
    settings = settings or get_settings()
    if settings.storage_backend == "memory":
        return MemoryStore()
    path = settings.resolved_storage_path()
    logger.info("Using file store at %s", path)
    return FileStore(path)


# Singleton
_server: AuthorizationServer | None = None


def get_oauth_server() -> AuthorizationServer:
    global _server
    if _server is None:
        _server = AuthorizationServer(build_store())
    return _server


def reset_oauth_server() -> None:
    """Reset singleton (for testing)."""
    global _server
    _server = None
