"""Domain enums for webhook events and delivery outcomes."""
from __future__ import annotations

from enum import Enum

TEST_EVENT_TYPE = "test.webhook"


class EventType(str, Enum):
    """Event types a subscription may listen to."""

    PRODUCT_CREATED = "product.created"
    PRODUCT_UPDATED = "product.updated"
    INVENTORY_ADJUSTED = "inventory.adjusted"
    INVENTORY_LOW_STOCK = "inventory.low_stock"
    ORDER_CREATED = "order.created"
    ORDER_STATUS_CHANGED = "order.status_changed"
    SHIPMENT_CREATED = "shipment.created"
    SHIPMENT_STATUS_CHANGED = "shipment.status_changed"
    INVOICE_CREATED = "invoice.created"
    INVOICE_PAID = "invoice.paid"
    INVOICE_STATUS_CHANGED = "invoice.status_changed"

    @property
    def category(self) -> str:
        prefix = self.value.split(".", 1)[0]
        return f"{prefix}s" if prefix != "inventory" else prefix

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS: dict[EventType, str] = {
    EventType.PRODUCT_CREATED: "Triggered when a new product is created",
    EventType.PRODUCT_UPDATED: "Triggered when a product is updated",
    EventType.INVENTORY_ADJUSTED: "Triggered when inventory levels are adjusted",
    EventType.INVENTORY_LOW_STOCK: "Triggered when inventory falls below reorder point",
    EventType.ORDER_CREATED: "Triggered when a new order is created",
    EventType.ORDER_STATUS_CHANGED: "Triggered when an order status changes",
    EventType.SHIPMENT_CREATED: "Triggered when a shipment is created",
    EventType.SHIPMENT_STATUS_CHANGED: "Triggered when shipment status changes",
    EventType.INVOICE_CREATED: "Triggered when a new invoice is created",
    EventType.INVOICE_PAID: "Triggered when an invoice is marked as paid",
    EventType.INVOICE_STATUS_CHANGED: "Triggered when invoice status changes",
}


class DeliveryOutcome(str, Enum):
    """Result of processing one delivery attempt."""

    DELIVERED = "delivered"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"
    DISCARDED = "discarded"
