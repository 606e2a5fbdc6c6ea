# OAuth2 authorization core.
# Created: 2026-10-02

from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.errors import (
    InvalidClient,
    InvalidGrant,
    InvalidRequest,
    InvalidScope,
    OAuthError,
    StorageUnavailable,
    UnauthorizedClient,
    UnsupportedGrantType,
)
from keyhouse.oauth2.models import User
from keyhouse.oauth2.server import AuthorizationServer, get_oauth_server, reset_oauth_server

__all__ = [
    "AuthorizationServer",
    "InvalidClient",
    "InvalidGrant",
    "InvalidRequest",
    "InvalidScope",
    "OAuthError",
    "RequestContext",
    "StorageUnavailable",
    "UnauthorizedClient",
    "UnsupportedGrantType",
    "User",
    "get_oauth_server",
    "reset_oauth_server",
]
