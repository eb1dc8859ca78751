"""Provider callbacks. Signatures are checked by the signature middleware."""
from __future__ import annotations

import structlog
from aiohttp import web

from webhook_service.api.utils import read_json

logger = structlog.get_logger(__name__)

INBOUND_PREFIX = "/inbound/"

routes = web.RouteTableDef()


@routes.post("/inbound/{provider}")
async def receive_callback(request: web.Request):
    provider = request.match_info["provider"]
    body = await read_json(request)
    logger.info(
        "inbound_callback_received",
        provider=provider,
        event=body.get("event") or body.get("type"),
        size=request.content_length,
    )
    return web.json_response({"status": "accepted", "provider": provider}, status=202)
