# OAuth2 router: authorize, token, revoke, introspect.
# Created: 2026-10-07

from __future__ import annotations

import logging
from dataclasses import replace
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from keyhouse.api.deps import (
    client_credentials,
    current_user,
    get_server,
    limit_authorize,
    limit_token,
    parse_body,
    read_params,
    request_context,
    store_handle,
)
from keyhouse.api.schemas.oauth2 import (
    IntrospectionResponse,
    OAuthErrorResponse,
    TokenLookupRequest,
    TokenRequest,
    TokenResponse,
)
from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.errors import InvalidRequest, OAuthError, UnsupportedResponseType
from keyhouse.oauth2.models import User
from keyhouse.oauth2.server import AuthorizationServer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth2"], dependencies=[Depends(store_handle)])

_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


def _redirect(redirect_uri: str, params: dict[str, str]) -> RedirectResponse:
    """Append *params* to *redirect_uri*, keeping any query it already has."""
    parts = urlsplit(redirect_uri)
    query = parse_qsl(parts.query, keep_blank_values=True) + list(params.items())
    return RedirectResponse(urlunsplit(parts._replace(query=urlencode(query))), status_code=302)


@router.get("/oauth/authorize", dependencies=[Depends(limit_authorize)])
async def authorize(
    client_id: str = Query(""),
    redirect_uri: str = Query(""),
    response_type: str = Query(""),
    scope: str | None = Query(None),
    state: str | None = Query(None),
    code_challenge: str | None = Query(None),
    code_challenge_method: str | None = Query(None),
    user: User = Depends(current_user),
    server: AuthorizationServer = Depends(get_server),
    ctx: RequestContext = Depends(request_context),
):
    """Issue an authorization code for the authenticated user and redirect back."""
    if not client_id:
        raise InvalidRequest("client_id is required")
    client = await run_in_threadpool(server.registry.get, ctx, client_id)

    # Never redirect to a URI we have not verified; report these errors directly.
    if not server.registry.validate_redirect_uri(client, redirect_uri):
        raise InvalidRequest("redirect_uri is missing or not registered for this client")

    extra = {"state": state} if state else {}
    try:
        if response_type != "code":
            raise UnsupportedResponseType("Only response_type=code is supported")
        code = await run_in_threadpool(
            server.authorize,
            replace(ctx, user=user),
            client,
            redirect_uri,
            scope,
            code_challenge=code_challenge,
            code_challenge_method=code_challenge_method,
        )
    except OAuthError as exc:
        logger.info("Authorization request rejected for %s: %s", client_id, exc.error)
        return _redirect(redirect_uri, {**exc.to_dict(), **extra})

    return _redirect(redirect_uri, {"code": code, **extra})


@router.post(
    "/oauth/token",
    response_model=TokenResponse,
    responses={400: {"model": OAuthErrorResponse}, 401: {"model": OAuthErrorResponse}},
    dependencies=[Depends(limit_token)],
)
async def token(
    request: Request,
    server: AuthorizationServer = Depends(get_server),
    ctx: RequestContext = Depends(request_context),
):
    """Exchange an authorization code or refresh token for a token pair."""
    body = parse_body(TokenRequest, await read_params(request))
    client_id, client_secret = client_credentials(request, body.client_id, body.client_secret)
    params = body.model_dump() | {"client_id": client_id, "client_secret": client_secret}

    pair = await run_in_threadpool(server.token, ctx, body.grant_type, params)
    return JSONResponse(pair.to_response(), headers=_NO_STORE)


@router.post("/oauth/revoke", dependencies=[Depends(limit_token)])
async def revoke(
    request: Request,
    server: AuthorizationServer = Depends(get_server),
    ctx: RequestContext = Depends(request_context),
):
    """Revoke an access or refresh token. Responds 200 whether or not it existed."""
    body = parse_body(TokenLookupRequest, await read_params(request))
    await run_in_threadpool(server.revoke, ctx, body.token, body.token_type_hint)
    return JSONResponse({}, headers=_NO_STORE)


@router.post(
    "/oauth/introspect",
    response_model=IntrospectionResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(limit_token)],
)
async def introspect(
    request: Request,
    server: AuthorizationServer = Depends(get_server),
    ctx: RequestContext = Depends(request_context),
):
    """Report whether a token is active, with its metadata when it is."""
    body = parse_body(TokenLookupRequest, await read_params(request))
    result = await run_in_threadpool(server.introspect, ctx, body.token, body.token_type_hint)
    return IntrospectionResponse(**result.to_response())
