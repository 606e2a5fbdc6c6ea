# User authentication capability.
# Created: 2026-10-05
#
# Keyhouse never checks passwords itself. The application embedding it
# provides an Authenticator; /oauth/authorize resolves HTTP Basic credentials
# through it. Upstream middleware may instead set ``request.state.user``.

from __future__ import annotations

from typing import Protocol

from keyhouse.oauth2.errors import InvalidCredentials
from keyhouse.oauth2.models import User

__all__ = ["Authenticator", "InvalidCredentials", "User"]


class Authenticator(Protocol):
    """Resolves username/password credentials to a user."""

    def authenticate(self, username: str, password: str) -> User:
        """Return the user, or raise :class:`InvalidCredentials`."""
        ...
