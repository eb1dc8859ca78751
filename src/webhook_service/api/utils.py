"""Helper utilities for API handlers."""
from __future__ import annotations

import json
from typing import Any, Type
from uuid import UUID

from aiohttp import web
from pydantic import ValidationError as PydanticValidationError

from webhook_service.core.exceptions import ValidationError


def json_error(
    exc_cls: Type[web.HTTPException], message: str, **details: Any
) -> web.HTTPException:
    """Build an HTTP error whose body is ``{"error": message, **details}``."""
    return exc_cls(
        text=json.dumps({"error": message, **details}),
        content_type="application/json",
    )


def bad_request(exc: ValidationError | PydanticValidationError) -> web.HTTPException:
    if isinstance(exc, PydanticValidationError):
        details = json.loads(exc.json(include_url=False))
        return json_error(web.HTTPBadRequest, "Invalid request body", details=details)
    return json_error(web.HTTPBadRequest, exc.message, **exc.details)


async def read_json(request: web.Request) -> dict[str, Any]:
    """Parse JSON body from request, raising HTTPBadRequest on invalid input."""
    try:
        data = await request.json()
    except ValueError as exc:
        raise json_error(web.HTTPBadRequest, "Invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise json_error(web.HTTPBadRequest, "JSON body must be an object")
    return data


def parse_uuid(value: str, label: str) -> UUID:
    try:
        uuid_str = value if isinstance(value, str) else str(value)
        return UUID(uuid_str)
    except (ValueError, TypeError) as exc:
        raise json_error(web.HTTPBadRequest, f"Invalid {label}") from exc


def parse_bool(value: str | None, label: str) -> bool | None:
    if value is None or value == "":
        return None
    lowered = value.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise json_error(web.HTTPBadRequest, f"Invalid {label}")


def limit_param(
    request: web.Request,
    *,
    default_limit: int = 50,
    max_limit: int = 1000,
) -> int:
    try:
        limit = int(request.rel_url.query.get("limit", str(default_limit)))
    except ValueError as exc:
        raise json_error(web.HTTPBadRequest, "limit must be an integer") from exc
    if limit <= 0:
        limit = default_limit
    return min(limit, max_limit)
