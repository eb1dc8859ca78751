"""Signed HTTP POST of a webhook envelope."""
from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any

import aiohttp
from aiohttp import ClientSession, ClientTimeout

from webhook_service.core.exceptions import (
    DeliveryHTTPError,
    DeliveryNetworkError,
    DeliveryTimeoutError,
)
from webhook_service.settings import Settings
from webhook_service.signing import format_signature_header


def encode_envelope(envelope: dict[str, Any]) -> bytes:
    """Compact JSON; the signature is computed over exactly these bytes."""
    return json.dumps(envelope, separators=(",", ":"), ensure_ascii=False, default=str).encode(
        "utf-8"
    )


@dataclass
class SendResult:
    status_code: int
    body: str
    elapsed_ms: int


class WebhookSender:
    """Owns the outbound ``ClientSession`` and the wire headers."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        user_agent: str = "Flowventory-Hook/1.0",
        product_name: str = "Flowventory",
    ):
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.event_header = f"X-{product_name}-Event"
        self.id_header = f"X-{product_name}-Id"
        self.signature_header = f"X-{product_name}-Signature"
        self._session: ClientSession | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebhookSender":
        return cls(
            timeout_seconds=settings.webhook_request_timeout_seconds,
            user_agent=settings.webhook_user_agent,
            product_name=settings.webhook_product_name,
        )

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=self.timeout_seconds))
        return self._session

    async def close(self, _app: Any = None) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def build_headers(self, body: bytes, envelope: dict[str, Any], secret: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            self.event_header: str(envelope["event"]),
            self.id_header: str(envelope["id"]),
            self.signature_header: format_signature_header(body, secret),
        }

    async def send(self, url: str, envelope: dict[str, Any], secret: str) -> SendResult:
        """POST the envelope once.

        Raises :class:`DeliveryHTTPError` for non-2xx answers,
        :class:`DeliveryTimeoutError` and :class:`DeliveryNetworkError` when no
        answer arrives.
        """
        body = encode_envelope(envelope)
        headers = self.build_headers(body, envelope, secret)
        started = time.monotonic()
        try:
            async with self._get_session().post(
                url, data=body, headers=headers, allow_redirects=False
            ) as resp:
                text = await resp.text(errors="replace")
                status = resp.status
        except asyncio.TimeoutError as exc:
            raise DeliveryTimeoutError(
                f"Request timed out after {self.timeout_seconds:g}s"
            ) from exc
        except aiohttp.ClientError as exc:
            raise DeliveryNetworkError(str(exc) or type(exc).__name__) from exc
        elapsed_ms = int((time.monotonic() - started) * 1000)
        if not 200 <= status < 300:
            raise DeliveryHTTPError(status, text)
        return SendResult(status_code=status, body=text, elapsed_ms=elapsed_ms)
