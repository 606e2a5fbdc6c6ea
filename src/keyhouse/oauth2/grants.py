# Grant Exchanger: the token endpoint state machine.
# Created: 2026-10-04
#
# Credentials move issued -> consumed | expired | revoked, and never back
# once a grant has succeeded. A grant that fails to store its new tokens
# undoes its own consume/revoke step.
# Single use is enforced by compare-and-set at the store, never by a
# read-check-write here.

from __future__ import annotations

import logging
from collections.abc import Mapping

from keyhouse.oauth2 import pkce
from keyhouse.oauth2.clients import ClientRegistry
from keyhouse.oauth2.codes import CodeIssuer
from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.errors import (
    InvalidClient,
    InvalidGrant,
    InvalidRequest,
    InvalidScope,
    StorageUnavailable,
    UnauthorizedClient,
    UnsupportedGrantType,
)
from keyhouse.oauth2.models import (
    GRANT_AUTHORIZATION_CODE,
    GRANT_REFRESH_TOKEN,
    Client,
    RefreshToken,
    TokenPair,
    parse_scope,
)
from keyhouse.oauth2.storage import ACCESS_TOKEN, CODE, REFRESH_TOKEN
from keyhouse.oauth2.tokens import TokenIssuer, hash_token, is_active

logger = logging.getLogger(__name__)


def _require(params: Mapping[str, str | None], *names: str) -> None:
    missing = [n for n in names if not params.get(n)]
    if missing:
        raise InvalidRequest(f"Missing required parameter(s): {', '.join(missing)}")


class GrantExchanger:
    """Consumes authorization codes and refresh tokens, drives the TokenIssuer."""

    def __init__(self, registry: ClientRegistry, codes: CodeIssuer, tokens: TokenIssuer):
        self.registry = registry
        self.codes = codes
        self.tokens = tokens

    def exchange(
        self, ctx: RequestContext, grant_type: str | None, params: Mapping[str, str | None]
    ) -> TokenPair:
        if not grant_type:
            raise InvalidRequest("Missing required parameter(s): grant_type")
        if grant_type == GRANT_AUTHORIZATION_CODE:
            return self.exchange_authorization_code(
                ctx,
                code=params.get("code") or "",
                redirect_uri=params.get("redirect_uri") or "",
                client_id=params.get("client_id") or "",
                client_secret=params.get("client_secret"),
                code_verifier=params.get("code_verifier"),
            )
        if grant_type == GRANT_REFRESH_TOKEN:
            return self.exchange_refresh_token(
                ctx,
                refresh_token=params.get("refresh_token") or "",
                client_id=params.get("client_id") or "",
                client_secret=params.get("client_secret"),
                scope=params.get("scope"),
            )
        raise UnsupportedGrantType(f"Unsupported grant_type: {grant_type}")

    def _authenticate(
        self,
        ctx: RequestContext,
        bound_client_id: str,
        client_id: str,
        client_secret: str | None,
        grant_type: str,
    ) -> Client:
        if client_id != bound_client_id:
            raise InvalidClient("Client does not match the grant")
        client = self.registry.authenticate(ctx, client_id, client_secret)
        if grant_type not in client.allowed_grants:
            raise UnauthorizedClient(f"Client may not use the {grant_type} grant")
        return client

    def exchange_authorization_code(
        self,
        ctx: RequestContext,
        code: str,
        redirect_uri: str,
        client_id: str,
        client_secret: str | None = None,
        code_verifier: str | None = None,
    ) -> TokenPair:
        _require(
            {"code": code, "redirect_uri": redirect_uri, "client_id": client_id},
            "code",
            "redirect_uri",
            "client_id",
        )

        record = self.codes.get(ctx, code)
        if record is None:
            raise InvalidGrant("Unknown authorization code")
        if record.consumed:
            raise InvalidGrant("Authorization code has already been used")
        if record.expires_at <= ctx.now:
            raise InvalidGrant("Authorization code has expired")

        client = self._authenticate(
            ctx, record.client_id, client_id, client_secret, GRANT_AUTHORIZATION_CODE
        )

        if redirect_uri != record.redirect_uri:
            raise InvalidGrant("redirect_uri does not match the authorization request")

        if record.code_challenge is not None:
            if not code_verifier:
                raise InvalidGrant("code_verifier is required")
            if not pkce.verify_challenge(record, code_verifier):
                raise InvalidGrant("PKCE verification failed")
        else:
            if not client.is_confidential:
                raise InvalidGrant("Public clients must use PKCE")
            if code_verifier:
                raise InvalidGrant("code_verifier presented for a code issued without PKCE")

        if not self.codes.store.compare_and_set(CODE, record.code_hash, "consumed", False, True):
            logger.warning("Lost code redemption race for client %s", client.client_id)
            raise InvalidGrant("Authorization code has already been used")

        try:
            return self.tokens.issue_pair(
                ctx,
                client_id=client.client_id,
                user_id=record.user_id,
                scope=record.scope,
                include_refresh=GRANT_REFRESH_TOKEN in client.allowed_grants,
            )
        except StorageUnavailable:
            # Nothing was issued; hand the code back so the client can retry.
            self.codes.store.compare_and_set(CODE, record.code_hash, "consumed", True, False)
            raise

    def exchange_refresh_token(
        self,
        ctx: RequestContext,
        refresh_token: str,
        client_id: str,
        client_secret: str | None = None,
        scope: str | list[str] | None = None,
    ) -> TokenPair:
        _require(
            {"refresh_token": refresh_token, "client_id": client_id},
            "refresh_token",
            "client_id",
        )

        record = self.tokens.lookup(ctx, hash_token(refresh_token), REFRESH_TOKEN)
        if not isinstance(record, RefreshToken) or not is_active(record, ctx):
            raise InvalidGrant("Refresh token is invalid, expired or revoked")

        client = self._authenticate(
            ctx, record.client_id, client_id, client_secret, GRANT_REFRESH_TOKEN
        )

        requested = parse_scope(scope)
        if requested:
            extra = [s for s in requested if s not in record.scope]
            if extra:
                raise InvalidScope(f"Scope exceeds the original grant: {' '.join(extra)}")
            new_scope = requested
        else:
            new_scope = list(record.scope)

        # Rotation: whoever flips `revoked` first owns this refresh token.
        if not self.tokens.revoke(ctx, record.token_hash, REFRESH_TOKEN):
            raise InvalidGrant("Refresh token has already been used")
        access_revoked = bool(record.access_token_hash) and self.tokens.revoke(
            ctx, record.access_token_hash, ACCESS_TOKEN
        )

        try:
            return self.tokens.issue_pair(
                ctx, client_id=client.client_id, user_id=record.user_id, scope=new_scope
            )
        except StorageUnavailable:
            # Only undo what this call revoked.
            if access_revoked:
                self.tokens.reinstate(ctx, record.access_token_hash, ACCESS_TOKEN)
            self.tokens.reinstate(ctx, record.token_hash, REFRESH_TOKEN)
            raise
