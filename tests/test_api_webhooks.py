from __future__ import annotations

import json
import uuid

import pytest

from webhook_service.signing import verify


async def create_webhook(client, url, events=("order.created",), **extra):
    resp = await client.post("/webhooks", json={"url": url, "events": list(events), **extra})
    assert resp.status == 201, await resp.text()
    return await resp.json()


@pytest.mark.asyncio
async def test_healthcheck(service_client):
    resp = await service_client.get("/health")
    assert resp.status == 200
    body = await resp.json()
    assert body["status"] == "ok"
    assert body["service"] == "webhook-service"
    assert "X-Trace-Id" in resp.headers
    assert "X-Request-Id" in resp.headers


@pytest.mark.asyncio
async def test_create_returns_secret_once(service_client):
    created = await create_webhook(service_client, "http://example.com/hook", name="orders")
    assert len(created["secret"]) == 64
    assert created["has_secret"] is True
    assert created["events"] == ["order.created"]
    assert created["active"] is True

    resp = await service_client.get(f"/webhooks/{created['id']}")
    assert resp.status == 200
    fetched = await resp.json()
    assert "secret" not in fetched
    assert fetched["has_secret"] is True
    assert fetched["name"] == "orders"

    resp = await service_client.get("/webhooks")
    listing = await resp.json()
    assert len(listing) == 1
    assert "secret" not in listing[0]


@pytest.mark.asyncio
async def test_create_validation_errors(service_client):
    resp = await service_client.post(
        "/webhooks", json={"url": "http://example.com/hook", "events": ["order.nope"]}
    )
    assert resp.status == 400
    body = await resp.json()
    assert body["error"] == "Invalid events"
    assert body["invalid_events"] == ["order.nope"]
    assert "invoice.paid" in body["available_events"]

    resp = await service_client.post("/webhooks", json={"url": "", "events": ["order.created"]})
    assert resp.status == 400
    assert (await resp.json())["error"] == "URL is required"

    resp = await service_client.post("/webhooks", json={"url": "http://example.com/hook"})
    assert resp.status == 400

    resp = await service_client.post("/webhooks", data="not json")
    assert resp.status == 400
    assert (await resp.json())["error"] == "Invalid JSON payload"


@pytest.mark.asyncio
async def test_list_filters(service_client):
    a = await create_webhook(service_client, "http://a.example/hook", scope="ws-1")
    await create_webhook(service_client, "http://b.example/hook", scope="ws-2")
    resp = await service_client.patch(f"/webhooks/{a['id']}", json={"active": False})
    assert resp.status == 200

    resp = await service_client.get("/webhooks", params={"scope": "ws-1"})
    assert [w["id"] for w in await resp.json()] == [a["id"]]
    resp = await service_client.get("/webhooks", params={"active": "true"})
    assert [w["url"] for w in await resp.json()] == ["http://b.example/hook"]
    resp = await service_client.get("/webhooks", params={"active": "maybe"})
    assert resp.status == 400


@pytest.mark.asyncio
async def test_patch_and_delete(service_client):
    created = await create_webhook(service_client, "http://example.com/hook")
    webhook_id = created["id"]

    resp = await service_client.patch(
        f"/webhooks/{webhook_id}", json={"events": ["invoice.paid", "invoice.created"]}
    )
    assert resp.status == 200
    assert (await resp.json())["events"] == ["invoice.paid", "invoice.created"]

    resp = await service_client.patch(f"/webhooks/{webhook_id}", json={})
    assert resp.status == 400
    assert (await resp.json())["error"] == "No valid fields to update"

    resp = await service_client.patch(f"/webhooks/{webhook_id}", json={"secret": "x"})
    assert resp.status == 400

    resp = await service_client.patch(f"/webhooks/{uuid.uuid4()}", json={"name": "x"})
    assert resp.status == 404

    resp = await service_client.delete(f"/webhooks/{webhook_id}")
    assert resp.status == 204
    resp = await service_client.delete(f"/webhooks/{webhook_id}")
    assert resp.status == 404
    resp = await service_client.get(f"/webhooks/{webhook_id}")
    assert resp.status == 404


@pytest.mark.asyncio
async def test_invalid_id_is_bad_request(service_client):
    resp = await service_client.get("/webhooks/not-a-uuid")
    assert resp.status == 400


@pytest.mark.asyncio
async def test_test_endpoint(service_client, subscriber):
    created = await create_webhook(service_client, subscriber.url)
    resp = await service_client.post(f"/webhooks/{created['id']}/test")
    assert resp.status == 200
    result = await resp.json()
    assert result["success"] is True
    assert result["status_code"] == 200
    assert result["error"] is None
    assert isinstance(result["response_time_ms"], int)

    subscriber.default_status = 500
    resp = await service_client.post(f"/webhooks/{created['id']}/test")
    assert resp.status == 200
    result = await resp.json()
    assert result["success"] is False
    assert result["status_code"] == 500

    resp = await service_client.post(f"/webhooks/{uuid.uuid4()}/test")
    assert resp.status == 404


@pytest.mark.asyncio
async def test_available_events(service_client):
    resp = await service_client.get("/webhooks/events/available")
    body = await resp.json()
    assert len(body["all"]) == 11
    assert "test.webhook" not in body["all"]
    assert body["categories"]["invoices"] == [
        "invoice.created",
        "invoice.paid",
        "invoice.status_changed",
    ]
    assert body["categories"]["inventory"] == ["inventory.adjusted", "inventory.low_stock"]
    assert body["descriptions"]["order.created"] == "Triggered when a new order is created"


@pytest.mark.asyncio
async def test_stats_events_and_deliveries(service_client, components, clock):
    await create_webhook(service_client, "http://a.example/hook")
    b = await create_webhook(service_client, "http://b.example/hook")
    await service_client.patch(f"/webhooks/{b['id']}", json={"active": False})
    await components.publisher.publish("order.created", {"n": 1})
    clock.advance(7200)
    await components.publisher.publish("invoice.paid", {"n": 2})

    resp = await service_client.get("/webhooks/stats")
    assert await resp.json() == {
        "total_webhooks": 2,
        "active_webhooks": 1,
        "queue_length": 1,
        "recent_events": 1,
    }

    resp = await service_client.get("/webhooks/events/recent", params={"limit": "10"})
    events = (await resp.json())["events"]
    assert [e["event_type"] for e in events] == ["invoice.paid", "order.created"]

    resp = await service_client.get("/webhooks/deliveries")
    deliveries = (await resp.json())["deliveries"]
    assert [d["url"] for d in deliveries] == ["http://a.example/hook"]


@pytest.mark.asyncio
async def test_failed_then_successful_delivery(service_client, components, subscriber, clock):
    subscriber.statuses = [500, 200]
    created = await create_webhook(
        service_client, subscriber.url, events=["order.status_changed"], secret="topsecret"
    )

    await components.publisher.publish("order.status_changed", {"order_id": 42, "status": "shipped"})
    assert await components.scheduler.run_pass() == 1

    resp = await service_client.get(f"/webhooks/{created['id']}")
    after_failure = await resp.json()
    assert after_failure["failure_count"] == 1
    assert after_failure["last_status"] == 500

    (pending,) = await components.queue.list_pending()
    assert pending.attempt_number == 2

    clock.advance(60)
    assert await components.scheduler.run_pass() == 1

    resp = await service_client.get(f"/webhooks/{created['id']}")
    healed = await resp.json()
    assert healed["failure_count"] == 0
    assert healed["last_status"] == 200
    assert await components.queue.count() == 0

    (first_headers, first_body), (second_headers, second_body) = subscriber.requests
    assert first_body == second_body
    assert first_headers["X-Flowventory-Id"] == second_headers["X-Flowventory-Id"]
    assert verify(second_body, second_headers["X-Flowventory-Signature"], "topsecret")
    assert json.loads(second_body)["data"] == {"order_id": 42, "status": "shipped"}
