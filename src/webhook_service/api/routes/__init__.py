"""Route modules."""

from . import inbound, webhooks

__all__ = [
    "inbound",
    "webhooks",
]
