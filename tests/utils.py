from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from aiohttp import web

START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class SubscriberStub:
    """Local HTTP endpoint answering with a scripted sequence of statuses."""

    def __init__(self, statuses: list[int] | None = None, default_status: int = 200):
        self.statuses = list(statuses or [])
        self.default_status = default_status
        self.delay = 0.0
        self.requests: list[tuple[dict[str, str], bytes]] = []
        self.url = ""
        self.app = web.Application()
        self.app.router.add_post("/hook", self.handle)

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.read()
        self.requests.append((dict(request.headers), body))
        if self.delay:
            await asyncio.sleep(self.delay)
        status = self.statuses.pop(0) if self.statuses else self.default_status
        return web.Response(status=status, text="ok" if status < 300 else "upstream exploded")


async def wait_until(predicate, timeout: float = 3.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)
