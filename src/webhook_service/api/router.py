"""API router composition for aiohttp."""
from __future__ import annotations

from aiohttp import web

from webhook_service.api.routes import inbound, webhooks


def setup_routes(app: web.Application, *, inbound_enabled: bool = False) -> None:
    """Attach domain routes to the aiohttp application."""
    app.add_routes(webhooks.routes)
    if inbound_enabled:
        app.add_routes(inbound.routes)
