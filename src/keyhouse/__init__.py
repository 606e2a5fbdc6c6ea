"""Keyhouse: an embeddable OAuth 2.1 authorization server."""
