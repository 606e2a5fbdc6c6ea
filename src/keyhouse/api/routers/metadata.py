# Authorization server metadata (RFC 8414).
# Created: 2026-10-07

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from keyhouse.api.deps import get_app_settings, get_server
from keyhouse.config import Settings
from keyhouse.oauth2.server import AuthorizationServer

router = APIRouter(tags=["Metadata"])


@router.get("/.well-known/oauth-authorization-server")
async def authorization_server_metadata(
    request: Request,
    server: AuthorizationServer = Depends(get_server),
    settings: Settings = Depends(get_app_settings),
):
    """Static discovery document listing endpoints and supported methods."""
    issuer = settings.issuer_url or str(request.base_url)
    return server.metadata(issuer, scopes_supported=settings.scopes_supported)
