# Router aggregation.
# Created: 2026-10-07

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

_ROUTERS: list[tuple[str, str, str]] = [
    # (module_path, attr_name, tag)
    ("keyhouse.api.routers.applications", "router", "Applications"),
    ("keyhouse.api.routers.oauth2", "router", "OAuth2"),
    ("keyhouse.api.routers.metadata", "router", "Metadata"),
]


def mount_routers(app: FastAPI) -> None:
    """Mount every router on *app* at the application root."""
    for module_path, attr_name, tag in _ROUTERS:
        mod = importlib.import_module(module_path)
        app.include_router(getattr(mod, attr_name))
        logger.debug("Mounted router: %s (%s)", module_path, tag)
