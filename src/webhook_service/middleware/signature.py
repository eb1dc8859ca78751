"""Signature verification for callbacks that providers send to us."""
from __future__ import annotations

import structlog
from aiohttp import web

from webhook_service.core.exceptions import SignatureMismatchError
from webhook_service.signing import verify

logger = structlog.get_logger(__name__)

FALLBACK_SIGNATURE_HEADER = "X-Signature"


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def check_request_signature(
    request: web.Request,
    secret: str,
    header_names: tuple[str, ...],
) -> None:
    """Raise :class:`SignatureMismatchError` unless the raw body is signed with ``secret``."""
    signature = next(
        (request.headers[name] for name in header_names if request.headers.get(name)),
        None,
    )
    if signature is None:
        raise SignatureMismatchError("Missing signature header")
    body = await request.read()
    if not verify(body, signature, secret):
        raise SignatureMismatchError("Invalid signature")


def create_signature_middleware(
    secret: str,
    *,
    path_prefix: str,
    signature_header: str,
):
    """Reject unsigned or wrongly signed requests under ``path_prefix``.

    Routes outside the prefix pass through untouched.
    """
    header_names = (signature_header, FALLBACK_SIGNATURE_HEADER)

    @web.middleware
    async def signature_middleware(request: web.Request, handler):
        if not request.path.startswith(path_prefix):
            return await handler(request)
        try:
            await check_request_signature(request, secret, header_names)
        except SignatureMismatchError as exc:
            logger.warning("inbound_signature_rejected", reason=str(exc))
            return _error(401, str(exc))
        except Exception:
            logger.exception("inbound_signature_check_failed")
            return _error(500, "Signature verification failed")
        return await handler(request)

    return signature_middleware
