# OAuth2 error taxonomy.
# Created: 2026-10-02
#
# Error codes follow RFC 6749 section 5.2. Storage failures are kept outside
# the OAuth vocabulary and surface as 503s.

from __future__ import annotations


class OAuthError(Exception):
    """Base class for protocol errors reported to the client."""

    error = "invalid_request"
    status_code = 400

    def __init__(self, description: str = ""):
        super().__init__(description or self.error)
        self.description = description

    def to_dict(self) -> dict[str, str]:
        body = {"error": self.error}
        if self.description:
            body["error_description"] = self.description
        return body


class InvalidRequest(OAuthError):
    error = "invalid_request"


class InvalidClient(OAuthError):
    error = "invalid_client"
    status_code = 401


class InvalidGrant(OAuthError):
    error = "invalid_grant"


class UnauthorizedClient(OAuthError):
    error = "unauthorized_client"


class UnsupportedGrantType(OAuthError):
    error = "unsupported_grant_type"


class InvalidScope(OAuthError):
    error = "invalid_scope"


class UnsupportedResponseType(OAuthError):
    error = "unsupported_response_type"


class StorageUnavailable(Exception):
    """The store could not complete an operation (connectivity, constraint)."""


class InvalidCredentials(Exception):
    """Raised by an Authenticator when a username/password pair is rejected."""
