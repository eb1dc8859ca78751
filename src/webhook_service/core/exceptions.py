"""Common exceptions for domain, repository and delivery layers."""
from __future__ import annotations

from typing import Any


class WebhookServiceError(Exception):
    """Base error for service layer."""


class ValidationError(WebhookServiceError):
    """Raised when registry or publish input is malformed."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class RepositoryError(WebhookServiceError):
    """Raised when repository operations fail."""


class NotFoundError(RepositoryError):
    """Raised when requested entity is missing."""


class PersistenceError(RepositoryError):
    """Raised when a durable store cannot be read or written."""


class SignatureMismatchError(WebhookServiceError):
    """Raised when an inbound callback carries a missing or wrong signature."""


class DeliveryError(WebhookServiceError):
    """Base for every outbound delivery failure; all of them are retried alike."""

    status_code: int | None = None
    response_body: str | None = None


class DeliveryTimeoutError(DeliveryError):
    """The subscriber did not answer within the request timeout."""


class DeliveryNetworkError(DeliveryError):
    """Connection-level failure (DNS, refused, reset, TLS)."""


class DeliveryHTTPError(DeliveryError):
    """The subscriber answered with a non-2xx status."""

    def __init__(self, status_code: int, response_body: str | None = None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.response_body = response_body
