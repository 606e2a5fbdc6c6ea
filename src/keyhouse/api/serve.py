"""Keyhouse API server.

Builds the FastAPI application exposing the OAuth2 endpoints and translates
core exceptions into OAuth-shaped error responses.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from keyhouse.config import Settings, get_settings
from keyhouse.identity import Authenticator
from keyhouse.oauth2.errors import InvalidClient, InvalidRequest, OAuthError, StorageUnavailable
from keyhouse.oauth2.server import AuthorizationServer, build_store
from keyhouse.security.audit import AuditLogger

logger = logging.getLogger(__name__)

_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


async def _oauth_error_handler(request: Request, exc: OAuthError) -> JSONResponse:
    headers = dict(_NO_STORE)
    if isinstance(exc, InvalidClient) and request.headers.get(
        "Authorization", ""
    ).lower().startswith("basic"):
        headers["WWW-Authenticate"] = 'Basic realm="keyhouse"'
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(str(err["loc"][-1]) for err in exc.errors() if err.get("loc"))
    return await _oauth_error_handler(
        request, InvalidRequest(f"Invalid or missing parameter(s): {fields}")
    )


async def _storage_error_handler(request: Request, exc: StorageUnavailable) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OAuthError, _oauth_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StorageUnavailable, _storage_error_handler)


def create_api_app(
    server: AuthorizationServer | None = None,
    authenticator: Authenticator | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    *server* defaults to the process singleton, or to a server built from
    *settings* when those are given. *authenticator* resolves HTTP Basic
    credentials on /oauth/authorize.
    """
    from keyhouse.api.routers import mount_routers

    if settings is None:
        settings = get_settings()
    elif server is None:
        server = AuthorizationServer(
            build_store(settings), audit=AuditLogger(enabled=settings.audit_enabled)
        )

    app = FastAPI(
        title="Keyhouse",
        description="OAuth 2.1 authorization server.",
        version="1.0.0",
    )
    app.state.oauth_server = server
    app.state.settings = settings
    app.state.authenticator = authenticator
    app.state.rate_limit_enabled = settings.rate_limit_enabled

    if authenticator is None:
        logger.warning("No authenticator configured; /oauth/authorize needs upstream auth")

    if settings.cors_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allowed_origins,
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    install_error_handlers(app)
    mount_routers(app)
    return app


def run_api_server(host: str = "127.0.0.1", port: int = 8888, dev: bool = False) -> None:
    """Start the API server with uvicorn."""
    import uvicorn

    logger.info("Keyhouse listening on http://%s:%d", host, port)
    logger.info(
        "Metadata: http://%s:%d/.well-known/oauth-authorization-server", host, port
    )

    if dev:
        import pathlib

        src_dir = str(pathlib.Path(__file__).resolve().parent.parent)
        uvicorn.run(
            "keyhouse.api.serve:create_api_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            reload_dirs=[src_dir],
            reload_includes=["*.py"],
            log_level="debug",
        )
    else:
        uvicorn.run(create_api_app(), host=host, port=port, log_config=None)
