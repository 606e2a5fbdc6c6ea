# Code Issuer: create and persist authorization codes.
# Created: 2026-10-03

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from keyhouse.oauth2.clients import ClientRegistry
from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.errors import InvalidRequest, InvalidScope, UnauthorizedClient
from keyhouse.oauth2.models import (
    DEFAULT_SCOPE,
    GRANT_AUTHORIZATION_CODE,
    PKCE_METHODS,
    PKCE_PLAIN,
    AuthorizationCode,
    Client,
    User,
    parse_scope,
)
from keyhouse.oauth2.storage import CODE, Store
from keyhouse.oauth2.tokens import hash_token

logger = logging.getLogger(__name__)

CODE_TTL = timedelta(minutes=10)


class CodeIssuer:
    """Issues authorization codes bound to client, user, scope and redirect URI."""

    def __init__(self, store: Store):
        self.store = store

    def issue(
        self,
        ctx: RequestContext,
        client: Client,
        user: User,
        scope: str | list[str] | None,
        redirect_uri: str,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> tuple[AuthorizationCode, str]:
        """Create an authorization code. Returns (record, raw_code).

        The record is persisted before the raw code is returned.
        """
        if GRANT_AUTHORIZATION_CODE not in client.allowed_grants:
            raise UnauthorizedClient("Client may not use the authorization_code grant")

        if not ClientRegistry.validate_redirect_uri(client, redirect_uri):
            raise InvalidRequest("redirect_uri is not registered for this client")

        requested = parse_scope(scope) or list(DEFAULT_SCOPE)
        not_allowed = [s for s in requested if s not in client.allowed_scopes]
        if not_allowed:
            raise InvalidScope(f"Scope not allowed for this client: {' '.join(not_allowed)}")

        code_challenge = code_challenge or None
        code_challenge_method = code_challenge_method or None
        if code_challenge is None:
            if code_challenge_method is not None:
                raise InvalidRequest("code_challenge_method given without code_challenge")
            if not client.is_confidential:
                raise InvalidRequest("Public clients must use PKCE (code_challenge required)")
        else:
            code_challenge_method = code_challenge_method or PKCE_PLAIN
            if code_challenge_method not in PKCE_METHODS:
                raise InvalidRequest(
                    f"Unsupported code_challenge_method: {code_challenge_method}"
                )

        raw = secrets.token_urlsafe(32)
        record = AuthorizationCode(
            code_hash=hash_token(raw),
            client_id=client.client_id,
            user_id=user.id,
            scope=requested,
            redirect_uri=redirect_uri,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
            created_at=ctx.now,
            expires_at=ctx.now + CODE_TTL,
        )
        self.store.put(CODE, record.code_hash, record)

        logger.debug("Issued authorization code for client %s", client.client_id)
        return record, raw

    def get(self, ctx: RequestContext, raw_code: str) -> AuthorizationCode | None:
        if not raw_code:
            return None
        return self.store.get(CODE, hash_token(raw_code))
