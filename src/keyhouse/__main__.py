"""Keyhouse entry point.

Examples:
  keyhouse serve                     Start the authorization server
  keyhouse serve --port 9000         Bind a different port
  keyhouse register "My App" https://app.example/cb
                                     Register a client and print its secret
"""

import argparse
import json
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from keyhouse.config import get_settings
from keyhouse.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _version() -> str:
    try:
        return get_version("keyhouse")
    except PackageNotFoundError:
        return "unknown"


def run_register(name: str, redirect_uris: list[str], scope: str | None, public: bool) -> int:
    """Register a client against the configured store and print it as JSON."""
    from keyhouse.oauth2 import OAuthError, RequestContext, get_oauth_server

    try:
        client, secret = get_oauth_server().register_client(
            RequestContext.create(), name, redirect_uris, scope, confidential=not public
        )
    except OAuthError as exc:
        logger.error("Registration failed: %s", exc.description or exc.error)
        return 1

    print(
        json.dumps(
            {
                "client_id": client.client_id,
                "client_secret": secret,
                "redirect_uris": client.redirect_uris,
                "scope": " ".join(client.allowed_scopes),
            },
            indent=2,
        )
    )
    return 0


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    setup_logging(level=settings.log_level)

    parser = argparse.ArgumentParser(
        description="Keyhouse - OAuth 2.1 authorization server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {_version()}")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Start the authorization server")
    serve.add_argument("--host", type=str, default=None, help="Host to bind")
    serve.add_argument("--port", "-p", type=int, default=None, help="Port to bind")
    serve.add_argument("--dev", action="store_true", help="Development mode with auto-reload")

    register = sub.add_parser("register", help="Register an OAuth client")
    register.add_argument("name", help="Client (application) name")
    register.add_argument("redirect_uris", nargs="+", help="Allowed redirect URIs")
    register.add_argument("--scope", default=None, help="Space-separated allowed scopes")
    register.add_argument(
        "--public", action="store_true", help="Public client (no secret, PKCE required)"
    )

    args = parser.parse_args()

    if args.command == "register":
        raise SystemExit(run_register(args.name, args.redirect_uris, args.scope, args.public))

    if args.command == "serve":
        from keyhouse.api.serve import run_api_server

        try:
            run_api_server(
                host=args.host or settings.host,
                port=args.port or settings.port,
                dev=args.dev,
            )
        except KeyboardInterrupt:
            logger.info("Keyhouse stopped.")
        return

    parser.print_help()


if __name__ == "__main__":
    main()
