# Revocation (RFC 7009) and introspection (RFC 7662).
# Created: 2026-10-04

from __future__ import annotations

import logging

from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.models import AccessToken, Introspection, RefreshToken
from keyhouse.oauth2.storage import ACCESS_TOKEN, REFRESH_TOKEN
from keyhouse.oauth2.tokens import TokenIssuer, hash_token, is_active

logger = logging.getLogger(__name__)


def _lookup_order(token_type_hint: str | None) -> tuple[str, str]:
    # Unknown hints are ignored (RFC 7009 section 2.2.1).
    if token_type_hint == REFRESH_TOKEN:
        return (REFRESH_TOKEN, ACCESS_TOKEN)
    return (ACCESS_TOKEN, REFRESH_TOKEN)


class TokenInspector:
    """Looks up, revokes and reports on issued tokens."""

    def __init__(self, tokens: TokenIssuer):
        self.tokens = tokens

    def find(
        self, ctx: RequestContext, token: str, token_type_hint: str | None = None
    ) -> tuple[str, AccessToken | RefreshToken] | tuple[None, None]:
        if not token:
            return None, None
        token_hash = hash_token(token)
        for kind in _lookup_order(token_type_hint):
            record = self.tokens.lookup(ctx, token_hash, kind)
            if record is not None:
                return kind, record
        return None, None

    def revoke(
        self, ctx: RequestContext, token: str, token_type_hint: str | None = None
    ) -> str | None:
        """Revoke *token* if it is known. Returns the kind revoked, if any.

        Callers must respond identically whether or not anything matched.
        Revoking a refresh token also revokes its paired access token.
        """
        kind, record = self.find(ctx, token, token_type_hint)
        if record is None:
            return None
        if isinstance(record, RefreshToken):
            self.tokens.revoke_family(ctx, record)
        else:
            self.tokens.revoke(ctx, record.token_hash, ACCESS_TOKEN)
        return kind

    def introspect(
        self, ctx: RequestContext, token: str, token_type_hint: str | None = None
    ) -> Introspection:
        kind, record = self.find(ctx, token, token_type_hint)
        if record is None or not is_active(record, ctx):
            return Introspection(active=False)
        return Introspection(
            active=True,
            scope=list(record.scope),
            client_id=record.client_id,
            user_id=record.user_id,
            expires_at=record.expires_at,
            token_type=kind,
        )
