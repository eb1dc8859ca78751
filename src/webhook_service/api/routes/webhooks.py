"""Webhook subscription endpoints."""
from __future__ import annotations

from aiohttp import web
from pydantic import ValidationError as PydanticValidationError

from webhook_service.api.utils import (
    bad_request,
    json_error,
    limit_param,
    parse_bool,
    parse_uuid,
    read_json,
)
from webhook_service.core.exceptions import NotFoundError, ValidationError
from webhook_service.domain.dto import SubscriptionCreateDTO, SubscriptionUpdateDTO
from webhook_service.domain.enums import EventType
from webhook_service.services.dependencies import get_components, get_registry

routes = web.RouteTableDef()


# Static paths are registered before /webhooks/{webhook_id}.


@routes.get("/webhooks/events/available")
async def available_events(request: web.Request):
    categories: dict[str, list[str]] = {}
    for event in EventType:
        categories.setdefault(event.category, []).append(event.value)
    return web.json_response(
        {
            "all": [e.value for e in EventType],
            "categories": categories,
            "descriptions": {e.value: e.description for e in EventType},
        }
    )


@routes.get("/webhooks/events/recent")
async def recent_events(request: web.Request):
    limit = limit_param(request)
    events = await get_components(request).event_log.list_recent(limit)
    return web.json_response(
        {"events": [e.model_dump(mode="json") for e in events], "total": len(events)}
    )


@routes.get("/webhooks/deliveries")
async def pending_deliveries(request: web.Request):
    limit = limit_param(request)
    attempts = await get_components(request).queue.list_pending(limit)
    return web.json_response(
        {
            "deliveries": [a.model_dump(mode="json") for a in attempts],
            "total": len(attempts),
        }
    )


@routes.get("/webhooks/stats")
async def webhook_stats(request: web.Request):
    stats = await get_components(request).stats.collect()
    return web.json_response(stats.model_dump())


@routes.get("/webhooks")
async def list_webhooks(request: web.Request):
    query = request.rel_url.query
    active = parse_bool(query.get("active"), "active")
    items = await get_registry(request).list(scope=query.get("scope") or None, active=active)
    return web.json_response([item.public_dump() for item in items])


@routes.post("/webhooks")
async def create_webhook(request: web.Request):
    body = await read_json(request)
    try:
        dto = SubscriptionCreateDTO.model_validate(body)
        sub = await get_registry(request).create(
            url=dto.url,
            events=dto.events,
            secret=dto.secret,
            name=dto.name,
            description=dto.description,
            scope=dto.scope,
        )
    except (PydanticValidationError, ValidationError) as exc:
        raise bad_request(exc) from exc
    # The secret is only ever returned here.
    payload = sub.public_dump()
    payload["secret"] = sub.secret
    return web.json_response(payload, status=201)


@routes.get("/webhooks/{webhook_id}")
async def get_webhook(request: web.Request):
    webhook_id = parse_uuid(request.match_info["webhook_id"], "webhook_id")
    sub = await get_registry(request).get(webhook_id)
    if sub is None:
        raise json_error(web.HTTPNotFound, "Webhook not found")
    return web.json_response(sub.public_dump())


@routes.patch("/webhooks/{webhook_id}")
async def update_webhook(request: web.Request):
    webhook_id = parse_uuid(request.match_info["webhook_id"], "webhook_id")
    body = await read_json(request)
    try:
        dto = SubscriptionUpdateDTO.model_validate(body)
        sub = await get_registry(request).update(webhook_id, dto)
    except (PydanticValidationError, ValidationError) as exc:
        raise bad_request(exc) from exc
    except NotFoundError as exc:
        raise json_error(web.HTTPNotFound, str(exc)) from exc
    return web.json_response(sub.public_dump())


@routes.delete("/webhooks/{webhook_id}")
async def delete_webhook(request: web.Request):
    webhook_id = parse_uuid(request.match_info["webhook_id"], "webhook_id")
    if not await get_registry(request).delete(webhook_id):
        raise json_error(web.HTTPNotFound, "Webhook not found")
    return web.Response(status=204)


@routes.post("/webhooks/{webhook_id}/test")
async def test_webhook(request: web.Request):
    webhook_id = parse_uuid(request.match_info["webhook_id"], "webhook_id")
    try:
        result = await get_registry(request).test(webhook_id)
    except NotFoundError as exc:
        raise json_error(web.HTTPNotFound, str(exc)) from exc
    return web.json_response(result.model_dump())
