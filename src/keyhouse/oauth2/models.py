# OAuth2 data models.
# Created: 2026-10-02
#
# Stored records are pydantic models so the file store can round-trip them
# through JSON. In-flight values (users, token pairs, introspection results)
# are plain dataclasses.

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, Field

GRANT_AUTHORIZATION_CODE = "authorization_code"
GRANT_REFRESH_TOKEN = "refresh_token"
SUPPORTED_GRANTS = (GRANT_AUTHORIZATION_CODE, GRANT_REFRESH_TOKEN)

PKCE_PLAIN = "plain"
PKCE_S256 = "S256"
PKCE_METHODS = (PKCE_PLAIN, PKCE_S256)

DEFAULT_SCOPE = ["read"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def parse_scope(scope: str | list[str] | None) -> list[str]:
    """Normalise a scope string or list into an ordered, de-duplicated list."""
    if not scope:
        return []
    items = scope.split() if isinstance(scope, str) else scope
    seen: list[str] = []
    for item in items:
        item = item.strip()
        if item and item not in seen:
            seen.append(item)
    return seen


def format_scope(scope: list[str]) -> str:
    return " ".join(scope)


class Client(BaseModel):
    """Registered OAuth2 client (application)."""

    client_id: str
    client_name: str
    secret_hash: str | None = None  # None for public clients
    redirect_uris: list[str] = Field(default_factory=list)
    allowed_grants: list[str] = Field(default_factory=lambda: list(SUPPORTED_GRANTS))
    allowed_scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPE))
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_confidential(self) -> bool:
        return self.secret_hash is not None


class AuthorizationCode(BaseModel):
    """Short-lived, single-use authorization code (stored by hash)."""

    code_hash: str
    client_id: str
    user_id: str
    scope: list[str]
    redirect_uri: str
    code_challenge: str | None = None
    code_challenge_method: str | None = None  # "plain" | "S256"
    created_at: datetime
    expires_at: datetime
    consumed: bool = False


class AccessToken(BaseModel):
    token_hash: str
    client_id: str
    user_id: str
    scope: list[str]
    created_at: datetime
    expires_at: datetime
    revoked: bool = False


class RefreshToken(BaseModel):
    token_hash: str
    client_id: str
    user_id: str
    scope: list[str]
    created_at: datetime
    expires_at: datetime
    revoked: bool = False
    access_token_hash: str | None = None  # paired access token


@dataclass(frozen=True)
class User:
    """Authenticated end user, owned by the external identity store."""

    id: str
    username: str
    email: str = ""
    name: str = ""


@dataclass
class TokenPair:
    """Raw token values, returned exactly once to the caller."""

    access_token: str
    scope: list[str]
    expires_in: int
    refresh_token: str | None = None
    token_type: str = "bearer"

    def to_response(self) -> dict:
        body = {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "scope": format_scope(self.scope),
        }
        if self.refresh_token is not None:
            body["refresh_token"] = self.refresh_token
        return body


@dataclass
class Introspection:
    """Result of token introspection (RFC 7662)."""

    active: bool
    scope: list[str] | None = None
    client_id: str | None = None
    user_id: str | None = None
    expires_at: datetime | None = None
    token_type: str | None = None

    def to_response(self) -> dict:
        if not self.active:
            return {"active": False}
        return {
            "active": True,
            "scope": format_scope(self.scope or []),
            "client_id": self.client_id,
            "sub": self.user_id,
            "exp": int(self.expires_at.timestamp()) if self.expires_at else None,
            "token_type": self.token_type,
        }
