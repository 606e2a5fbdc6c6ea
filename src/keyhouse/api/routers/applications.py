# Client registration router.
# Created: 2026-10-07

from __future__ import annotations

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from keyhouse.api.deps import get_server, request_context, store_handle
from keyhouse.api.schemas.oauth2 import ClientRegistrationResponse, RegisterClientRequest
from keyhouse.oauth2.context import RequestContext
from keyhouse.oauth2.models import format_scope
from keyhouse.oauth2.server import AuthorizationServer

router = APIRouter(tags=["Applications"], dependencies=[Depends(store_handle)])


@router.post(
    "/oauth/applications",
    response_model=ClientRegistrationResponse,
    status_code=201,
)
async def register_application(
    body: RegisterClientRequest,
    server: AuthorizationServer = Depends(get_server),
    ctx: RequestContext = Depends(request_context),
):
    """Register a client. The client secret is returned only once."""
    confidential = body.token_endpoint_auth_method != "none"
    client, secret = await run_in_threadpool(
        server.register_client,
        ctx,
        body.client_name,
        body.redirect_uris,
        body.scope,
        confidential=confidential,
        grant_types=body.grant_types,
    )
    return ClientRegistrationResponse(
        client_id=client.client_id,
        client_secret=secret,
        client_name=client.client_name,
        redirect_uris=client.redirect_uris,
        grant_types=client.allowed_grants,
        scope=format_scope(client.allowed_scopes),
        token_endpoint_auth_method=body.token_endpoint_auth_method,
        client_id_issued_at=int(client.created_at.timestamp()),
    )
