from __future__ import annotations

import json

import pytest
from aiohttp import web

from webhook_service.main import create_app
from webhook_service.middleware.signature import create_signature_middleware
from webhook_service.settings import Settings
from webhook_service.signing import format_signature_header, sign

SECRET = "inbound-secret"
BODY = json.dumps({"event": "payment.captured", "id": "evt_1"}).encode()


@pytest.fixture
async def inbound_client(aiohttp_client, components):
    app_settings = Settings(
        env="development",
        storage_backend="memory",
        inbound_webhook_secret=SECRET,
    )
    app = create_app(app_settings, components, run_scheduler=False)
    return await aiohttp_client(app)


@pytest.mark.asyncio
async def test_valid_signature_is_accepted(inbound_client):
    resp = await inbound_client.post(
        "/inbound/stripe",
        data=BODY,
        headers={"X-Flowventory-Signature": format_signature_header(BODY, SECRET)},
    )
    assert resp.status == 202
    assert await resp.json() == {"status": "accepted", "provider": "stripe"}


@pytest.mark.asyncio
async def test_fallback_header_without_prefix(inbound_client):
    resp = await inbound_client.post(
        "/inbound/razorpay", data=BODY, headers={"X-Signature": sign(BODY, SECRET)}
    )
    assert resp.status == 202


@pytest.mark.asyncio
async def test_missing_signature(inbound_client):
    resp = await inbound_client.post("/inbound/stripe", data=BODY)
    assert resp.status == 401
    assert await resp.json() == {"error": "Missing signature header"}


@pytest.mark.asyncio
async def test_wrong_signature(inbound_client):
    resp = await inbound_client.post(
        "/inbound/stripe",
        data=BODY,
        headers={"X-Flowventory-Signature": format_signature_header(BODY, "wrong")},
    )
    assert resp.status == 401
    assert await resp.json() == {"error": "Invalid signature"}


@pytest.mark.asyncio
async def test_tampered_body(inbound_client):
    resp = await inbound_client.post(
        "/inbound/stripe",
        data=BODY + b" ",
        headers={"X-Flowventory-Signature": format_signature_header(BODY, SECRET)},
    )
    assert resp.status == 401


@pytest.mark.asyncio
async def test_routes_outside_prefix_are_not_checked(inbound_client):
    resp = await inbound_client.get("/webhooks")
    assert resp.status == 200


@pytest.mark.asyncio
async def test_inbound_route_absent_without_secret(service_client):
    resp = await service_client.post("/inbound/stripe", data=BODY)
    assert resp.status == 404


@pytest.mark.asyncio
async def test_internal_error_is_500(aiohttp_client, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("webhook_service.middleware.signature.verify", explode)

    async def handler(request):
        return web.Response(text="unreachable")

    app = web.Application(
        middlewares=[
            create_signature_middleware(
                SECRET, path_prefix="/inbound/", signature_header="X-Flowventory-Signature"
            )
        ]
    )
    app.router.add_post("/inbound/x", handler)
    client = await aiohttp_client(app)

    resp = await client.post("/inbound/x", data=BODY, headers={"X-Signature": "abc"})
    assert resp.status == 500
    assert await resp.json() == {"error": "Signature verification failed"}
