"""PKCE (RFC 7636) verification.

``S256`` compares BASE64URL(SHA256(verifier)) without padding against the
stored challenge; ``plain`` compares the verifier itself. Comparisons are
constant-time.
"""

from __future__ import annotations

import base64
import hashlib
import hmac

from keyhouse.oauth2.errors import InvalidRequest
from keyhouse.oauth2.models import PKCE_PLAIN, PKCE_S256, AuthorizationCode

__all__ = ["s256_challenge", "verify_challenge"]


def s256_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode()).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode()


def verify_challenge(code: AuthorizationCode, verifier: str | None) -> bool:
    """Check *verifier* against the challenge bound to *code*.

    A code issued without a challenge verifies trivially; whether that is
    acceptable for the client is the grant exchanger's decision.
    """
    if code.code_challenge is None:
        return True

    method = code.code_challenge_method or PKCE_PLAIN
    if method not in (PKCE_PLAIN, PKCE_S256):
        raise InvalidRequest(f"Unsupported code_challenge_method: {method}")

    if not verifier:
        return False

    expected = s256_challenge(verifier) if method == PKCE_S256 else verifier
    return hmac.compare_digest(expected.encode(), code.code_challenge.encode())
