# Token Issuer: mint, look up and revoke access/refresh tokens.
# Created: 2026-10-03
#
# Tokens use the format kh_at_<random> / kh_rt_<random> for easy
# identification. Only sha256 hashes are stored; the raw values leave the
# server exactly once, in the response that issues them.

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta

from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.errors import StorageUnavailable
from keyhouse.oauth2.models import AccessToken, RefreshToken, TokenPair
from keyhouse.oauth2.storage import ACCESS_TOKEN, REFRESH_TOKEN, Store

logger = logging.getLogger(__name__)

# Token lifetimes
ACCESS_TOKEN_TTL = timedelta(hours=1)
REFRESH_TOKEN_TTL = timedelta(days=30)

_ACCESS_PREFIX = "kh_at_"
_REFRESH_PREFIX = "kh_rt_"
_TOKEN_BYTES = 32

TOKEN_KINDS = (ACCESS_TOKEN, REFRESH_TOKEN)


def hash_token(raw: str) -> str:
    return hashlib.sha256(raw.encode()).hexdigest()


def is_active(record: AccessToken | RefreshToken, ctx: RequestContext) -> bool:
    return not record.revoked and record.expires_at > ctx.now


class TokenIssuer:
    """Issues token pairs and manages their revocation state."""

    def __init__(self, store: Store):
        self.store = store

    def issue_pair(
        self,
        ctx: RequestContext,
        client_id: str,
        user_id: str,
        scope: list[str],
        include_refresh: bool = True,
    ) -> TokenPair:
        """Mint an access token and, optionally, a paired refresh token."""
        raw_access = f"{_ACCESS_PREFIX}{secrets.token_urlsafe(_TOKEN_BYTES)}"
        access = AccessToken(
            token_hash=hash_token(raw_access),
            client_id=client_id,
            user_id=user_id,
            scope=list(scope),
            created_at=ctx.now,
            expires_at=ctx.now + ACCESS_TOKEN_TTL,
        )
        self.store.put(ACCESS_TOKEN, access.token_hash, access)

        raw_refresh = None
        if include_refresh:
            raw_refresh = f"{_REFRESH_PREFIX}{secrets.token_urlsafe(_TOKEN_BYTES)}"
            refresh = RefreshToken(
                token_hash=hash_token(raw_refresh),
                client_id=client_id,
                user_id=user_id,
                scope=list(scope),
                created_at=ctx.now,
                expires_at=ctx.now + REFRESH_TOKEN_TTL,
                access_token_hash=access.token_hash,
            )
            try:
                self.store.put(REFRESH_TOKEN, refresh.token_hash, refresh)
            except StorageUnavailable:
                # Never leave half a pair behind.
                self.store.delete(ACCESS_TOKEN, access.token_hash)
                raise

        logger.debug(
            "Issued token pair for client %s (access %s…)", client_id, access.token_hash[:8]
        )
        return TokenPair(
            access_token=raw_access,
            refresh_token=raw_refresh,
            scope=list(scope),
            expires_in=int(ACCESS_TOKEN_TTL.total_seconds()),
        )

    def lookup(
        self, ctx: RequestContext, token_hash: str, kind: str
    ) -> AccessToken | RefreshToken | None:
        if kind not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind: {kind}")
        return self.store.get(kind, token_hash)

    def revoke(self, ctx: RequestContext, token_hash: str, kind: str) -> bool:
        """Revoke one token. Idempotent; returns True only if state changed."""
        if kind not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind: {kind}")
        changed = self.store.compare_and_set(kind, token_hash, "revoked", False, True)
        if changed:
            logger.debug("Revoked %s %s…", kind, token_hash[:8])
        return changed

    def reinstate(self, ctx: RequestContext, token_hash: str, kind: str) -> bool:
        """Undo a revocation made by a grant that then failed to issue tokens."""
        if kind not in TOKEN_KINDS:
            raise ValueError(f"Unknown token kind: {kind}")
        return self.store.compare_and_set(kind, token_hash, "revoked", True, False)

    def revoke_family(self, ctx: RequestContext, refresh: RefreshToken) -> bool:
        """Revoke a refresh token together with its paired access token.

        Returns True if this call revoked the refresh token, False if it was
        already revoked (e.g. by a concurrent rotation).
        """
        changed = self.revoke(ctx, refresh.token_hash, REFRESH_TOKEN)
        if refresh.access_token_hash:
            self.revoke(ctx, refresh.access_token_hash, ACCESS_TOKEN)
        return changed

    def validate_access_token(self, ctx: RequestContext, raw: str) -> AccessToken | None:
        """Return the access token record if *raw* is currently usable."""
        if not raw:
            return None
        record = self.store.get(ACCESS_TOKEN, hash_token(raw))
        if record is None or not is_active(record, ctx):
            return None
        return record
