# OAuth2 schemas.
# Created: 2026-10-07

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _FormModel(BaseModel):
    """Form/JSON bodies: unknown parameters are ignored (RFC 6749 section 3.2)."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class RegisterClientRequest(BaseModel):
    """Dynamic client registration request."""

    client_name: str = Field(..., min_length=1, max_length=200)
    redirect_uris: list[str] = Field(..., min_length=1)
    scope: str | None = None
    grant_types: list[str] | None = None
    token_endpoint_auth_method: Literal[
        "client_secret_basic", "client_secret_post", "none"
    ] = "client_secret_basic"


class ClientRegistrationResponse(BaseModel):
    """Registered client. ``client_secret`` is shown once and is null for public clients."""

    client_id: str
    client_secret: str | None = None
    client_name: str
    redirect_uris: list[str]
    grant_types: list[str]
    response_types: list[str] = ["code"]
    scope: str
    token_endpoint_auth_method: str
    client_id_issued_at: int


class TokenRequest(_FormModel):
    """Token endpoint parameters for every supported grant."""

    grant_type: str | None = None
    code: str | None = None
    redirect_uri: str | None = None
    code_verifier: str | None = None
    refresh_token: str | None = None
    scope: str | None = None
    client_id: str | None = None
    client_secret: str | None = None


class TokenResponse(BaseModel):
    """OAuth2 token response."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int
    scope: str


class TokenLookupRequest(_FormModel):
    """Revocation / introspection request."""

    token: str = Field(..., min_length=1)
    token_type_hint: str | None = None


class IntrospectionResponse(BaseModel):
    """RFC 7662 introspection response. Only ``active`` is set for inactive tokens."""

    active: bool
    scope: str | None = None
    client_id: str | None = None
    sub: str | None = None
    exp: int | None = None
    token_type: str | None = None


class OAuthErrorResponse(BaseModel):
    error: str
    error_description: str | None = None
