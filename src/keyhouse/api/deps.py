# Shared FastAPI dependencies for the API layer.
# Created: 2026-10-07

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Iterator
from typing import TypeVar
from urllib.parse import unquote_plus

from fastapi import Depends, HTTPException, Request
from pydantic import BaseModel, ValidationError

from keyhouse.config import Settings, get_settings
from keyhouse.identity import Authenticator
from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.errors import InvalidClient, InvalidCredentials, InvalidRequest
from keyhouse.oauth2.models import User
from keyhouse.oauth2.server import AuthorizationServer, get_oauth_server
from keyhouse.security.rate_limiter import RateLimiter, authorize_limiter, token_limiter

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def get_server(request: Request) -> AuthorizationServer:
    """The app's AuthorizationServer, falling back to the process singleton."""
    server = getattr(request.app.state, "oauth_server", None)
    return server if server is not None else get_oauth_server()


def get_app_settings(request: Request) -> Settings:
    """Settings the app was built with, falling back to the process settings."""
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def store_handle(server: AuthorizationServer = Depends(get_server)) -> Iterator[None]:
    """Hold a store handle for the lifetime of the request.

    Released on every exit path, including errors raised by the endpoint.
    """
    with server.store.acquire():
        yield


def request_context(request: Request) -> RequestContext:
    return RequestContext.create(user=getattr(request.state, "user", None))


def _parse_basic(request: Request) -> tuple[str, str] | None:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "basic" or not value:
        return None
    try:
        decoded = base64.b64decode(value.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def current_user(request: Request) -> User:
    """Resolve the end user for /oauth/authorize.

    Prefers a user set by upstream middleware, then HTTP Basic credentials
    checked by the configured Authenticator.
    """
    user = getattr(request.state, "user", None)
    if user is not None:
        return user

    authenticator: Authenticator | None = getattr(request.app.state, "authenticator", None)
    credentials = _parse_basic(request)
    if authenticator is not None and credentials is not None:
        try:
            user = authenticator.authenticate(*credentials)
        except InvalidCredentials:
            logger.info("Rejected credentials for user %r", credentials[0])
        else:
            request.state.user = user
            return user

    raise HTTPException(
        status_code=401,
        detail="Authentication required",
        headers={"WWW-Authenticate": 'Basic realm="keyhouse"'},
    )


async def read_params(request: Request) -> dict[str, str]:
    """Read a form-encoded or JSON request body into a flat dict."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise InvalidRequest("Malformed JSON body") from None
        if not isinstance(body, dict):
            raise InvalidRequest("JSON body must be an object")
        return {k: v for k, v in body.items() if isinstance(v, str)}

    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


def parse_body(model: type[M], params: dict[str, str]) -> M:
    try:
        return model.model_validate(params)
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][-1]) for err in exc.errors() if err["loc"])
        raise InvalidRequest(f"Invalid or missing parameter(s): {fields}") from None


def client_credentials(
    request: Request, client_id: str | None, client_secret: str | None
) -> tuple[str | None, str | None]:
    """Merge client_secret_basic and client_secret_post credentials.

    RFC 6749 section 2.3: a client must not use more than one method.
    """
    basic = _parse_basic(request)
    if basic is None:
        return client_id, client_secret
    if client_secret:
        raise InvalidRequest("Multiple client authentication methods used")
    basic_id, basic_secret = (unquote_plus(part) for part in basic)
    if client_id and client_id != basic_id:
        raise InvalidClient("client_id does not match the Authorization header")
    return basic_id, basic_secret


def rate_limit(limiter: RateLimiter):
    """FastAPI dependency enforcing *limiter* per client IP."""

    async def _check(request: Request) -> None:
        if not getattr(request.app.state, "rate_limit_enabled", True):
            return
        client_ip = request.client.host if request.client else "unknown"
        info = limiter.check(client_ip)
        if not info.allowed:
            raise HTTPException(
                status_code=429, detail="Too many requests", headers=info.headers()
            )

    return _check


limit_authorize = rate_limit(authorize_limiter)
limit_token = rate_limit(token_limiter)
