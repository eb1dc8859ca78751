from __future__ import annotations

import json
from datetime import timedelta

import pytest
from aiohttp import web

from webhook_service.domain.enums import DeliveryOutcome
from webhook_service.services.delivery import DeliveryWorker
from webhook_service.services.sender import WebhookSender
from webhook_service.signing import verify

from tests.utils import SubscriberStub


async def publish_and_claim(publisher, queue, clock):
    await publisher.publish("order.created", {"order_id": 1})
    (attempt,) = await queue.claim_due(clock.now, clock.now - timedelta(minutes=5), 10)
    return attempt


@pytest.mark.asyncio
async def test_success_removes_attempt_and_records_health(
    registry, publisher, queue, components, subscriber, clock
):
    sub = await registry.create(subscriber.url, ["order.created"], secret="k")
    attempt = await publish_and_claim(publisher, queue, clock)

    outcome = await components.worker.process(attempt)

    assert outcome is DeliveryOutcome.DELIVERED
    assert await queue.count() == 0
    healthy = await registry.get(sub.id)
    assert healthy.last_status == 200
    assert healthy.last_success_at == clock.now
    assert healthy.failure_count == 0

    headers, body = subscriber.requests[0]
    assert headers["Content-Type"] == "application/json"
    assert headers["User-Agent"] == "Flowventory-Hook/1.0"
    assert headers["X-Flowventory-Event"] == "order.created"
    assert headers["X-Flowventory-Id"] == attempt.payload["id"]
    assert verify(body, headers["X-Flowventory-Signature"], "k")
    assert json.loads(body) == attempt.payload


@pytest.mark.asyncio
async def test_failure_schedules_retry(registry, publisher, queue, components, subscriber, clock):
    subscriber.statuses = [500]
    sub = await registry.create(subscriber.url, ["order.created"])
    attempt = await publish_and_claim(publisher, queue, clock)

    outcome = await components.worker.process(attempt)

    assert outcome is DeliveryOutcome.RETRY_SCHEDULED
    stored = await queue.get(attempt.id)
    assert stored.attempt_number == 2
    assert stored.status_code == 500
    assert stored.response_body == "upstream exploded"
    assert stored.error == "HTTP 500"
    assert stored.attempted_at == clock.now
    assert stored.next_retry_at == clock.now + timedelta(seconds=60)
    assert stored.locked_at is None
    failing = await registry.get(sub.id)
    assert failing.failure_count == 1
    assert failing.last_status == 500


@pytest.mark.asyncio
async def test_last_attempt_failure_is_terminal(
    registry, publisher, queue, components, subscriber, clock
):
    subscriber.default_status = 502
    sub = await registry.create(subscriber.url, ["order.created"])
    attempt = await publish_and_claim(publisher, queue, clock)
    attempt.attempt_number = attempt.max_attempts

    outcome = await components.worker.process(attempt)

    assert outcome is DeliveryOutcome.FAILED
    assert await queue.count() == 0
    final = await registry.get(sub.id)
    assert final.active is True
    assert final.failure_count == 1


@pytest.mark.asyncio
async def test_deleted_subscription_discards_attempt(
    registry, publisher, queue, components, subscriber, clock
):
    sub = await registry.create(subscriber.url, ["order.created"])
    attempt = await publish_and_claim(publisher, queue, clock)
    await registry.delete(sub.id)

    assert await components.worker.process(attempt) is DeliveryOutcome.DISCARDED
    assert await queue.count() == 0
    assert subscriber.requests == []


@pytest.mark.asyncio
async def test_inactive_subscription_discards_attempt(
    registry, publisher, queue, components, subscriber, clock
):
    sub = await registry.create(subscriber.url, ["order.created"])
    attempt = await publish_and_claim(publisher, queue, clock)
    await registry.update(sub.id, {"active": False})

    assert await components.worker.process(attempt) is DeliveryOutcome.DISCARDED
    assert await queue.count() == 0
    assert subscriber.requests == []


@pytest.mark.asyncio
async def test_uses_current_subscription_url(
    registry, publisher, queue, components, aiohttp_server, clock
):
    old, new = SubscriberStub(), SubscriberStub()
    old.url = str((await aiohttp_server(old.app)).make_url("/hook"))
    new.url = str((await aiohttp_server(new.app)).make_url("/hook"))
    sub = await registry.create(old.url, ["order.created"], secret="old")
    attempt = await publish_and_claim(publisher, queue, clock)
    await registry.update(sub.id, {"url": new.url})

    assert await components.worker.process(attempt) is DeliveryOutcome.DELIVERED
    assert old.requests == []
    headers, body = new.requests[0]
    assert verify(body, headers["X-Flowventory-Signature"], "old")


@pytest.mark.asyncio
async def test_timeout_is_retried(registry, publisher, queue, subscriber, components, clock):
    subscriber.delay = 1.0
    sender = WebhookSender(timeout_seconds=0.2)
    worker = DeliveryWorker(registry, queue, sender, clock=clock)
    sub = await registry.create(subscriber.url, ["order.created"])
    attempt = await publish_and_claim(publisher, queue, clock)
    try:
        outcome = await worker.process(attempt)
    finally:
        await sender.close()

    assert outcome is DeliveryOutcome.RETRY_SCHEDULED
    stored = await queue.get(attempt.id)
    assert stored.status_code is None
    assert "timed out" in stored.error
    assert (await registry.get(sub.id)).failure_count == 1


@pytest.mark.asyncio
async def test_network_error_is_retried(registry, publisher, queue, components, clock):
    # Nothing listens on port 1
    sub = await registry.create("http://127.0.0.1:1/hook", ["order.created"])
    attempt = await publish_and_claim(publisher, queue, clock)

    assert await components.worker.process(attempt) is DeliveryOutcome.RETRY_SCHEDULED
    stored = await queue.get(attempt.id)
    assert stored.status_code is None
    assert stored.error
    failing = await registry.get(sub.id)
    assert failing.failure_count == 1
    assert failing.last_status is None


@pytest.mark.asyncio
async def test_response_body_is_truncated(
    registry, publisher, queue, components, aiohttp_server, clock
):
    async def handler(request):
        return web.Response(status=500, text="x" * 5000)

    app = web.Application()
    app.router.add_post("/hook", handler)
    server = await aiohttp_server(app)
    await registry.create(str(server.make_url("/hook")), ["order.created"])
    attempt = await publish_and_claim(publisher, queue, clock)

    await components.worker.process(attempt)

    stored = await queue.get(attempt.id)
    assert stored.response_body == "x" * 1000
