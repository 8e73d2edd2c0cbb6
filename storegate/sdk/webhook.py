"""Payment provider webhook verification.

Signature header format: ``t=<unix-ms>,v1=<hex hmac-sha256>``. The HMAC is
computed over ``"<t>.<raw body>"`` with the shared webhook secret. Events
older than five minutes are rejected.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

MAX_TIMESTAMP_AGE_MS = 300_000


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


EVENT_STATUS: dict[str, OrderStatus] = {
    "charge:confirmed": OrderStatus.COMPLETED,
    "charge:failed": OrderStatus.FAILED,
    "charge:pending": OrderStatus.PENDING,
}


class WebhookEvent(BaseModel):
    """Payment event delivered by the checkout provider."""

    id: str | None = None
    type: str = Field(..., description="Event type, e.g. charge:confirmed")
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def charge_code(self) -> str | None:
        return self.data.get("code")

    @property
    def order_id(self) -> str | None:
        metadata = self.data.get("metadata") or {}
        return metadata.get("order_id")


class WebhookRejected(Exception):
    """Webhook request refused before any side effect ran."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


OnStatus = Callable[[str, OrderStatus, WebhookEvent], None]


def _parse_header(signature_header: str) -> tuple[str, str]:
    """Split the header into (timestamp, signature) values."""
    timestamp_part, signature_part = signature_header.split(',')[:2]
    return timestamp_part.split('=', 1)[1], signature_part.split('=', 1)[1]


def verify_webhook_signature(raw_body: str, signature_header: str, secret: str) -> bool:
    """Check the HMAC-SHA256 signature of a webhook body."""
    try:
        timestamp, signature = _parse_header(signature_header)
    except (ValueError, IndexError):
        logger.warning("Malformed webhook signature header")
        return False

    message = f"{timestamp}.{raw_body}".encode('utf-8')
    expected = hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.encode('utf-8'), expected.encode('utf-8'))


def validate_webhook_timestamp(signature_header: str, now_ms: int | None = None, max_age_ms: int = MAX_TIMESTAMP_AGE_MS) -> bool:
    """Reject headers whose timestamp is older than `max_age_ms`."""
    try:
        timestamp = int(_parse_header(signature_header)[0])
    except (ValueError, IndexError):
        logger.warning("Malformed webhook timestamp")
        return False

    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    return now_ms - timestamp <= max_age_ms


def parse_webhook_event(raw_body: str) -> WebhookEvent:
    try:
        return WebhookEvent.model_validate(json.loads(raw_body))
    except (json.JSONDecodeError, ValidationError) as e:
        raise WebhookRejected(400, f"Invalid webhook payload: {e}")


def handle_webhook(
    raw_body: str,
    signature_header: str | None,
    secret: str | None,
    on_status: OnStatus,
    now_ms: int | None = None,
) -> OrderStatus | None:
    """Verify a webhook and apply its order-status update.

    Returns the status applied, or None for event types that are ignored.
    Raises WebhookRejected for missing configuration, stale or badly
    signed requests and unparseable payloads. An exception from
    `on_status` is logged and the event still counts as handled.
    """
    if not signature_header:
        raise WebhookRejected(400, "Missing signature")
    if not secret:
        logger.error("Webhook secret is not configured")
        raise WebhookRejected(500, "Configuration error")
    if not validate_webhook_timestamp(signature_header, now_ms):
        raise WebhookRejected(400, "Webhook timestamp expired")
    if not verify_webhook_signature(raw_body, signature_header, secret):
        raise WebhookRejected(401, "Invalid signature")

    event = parse_webhook_event(raw_body)
    status = EVENT_STATUS.get(event.type)
    if status is None:
        logger.info("Unhandled webhook event type: %s", event.type)
        return None
    if not event.order_id:
        raise WebhookRejected(400, f"Event {event.type} has no order_id")

    logger.info("Charge %s: order %s -> %s", event.charge_code, event.order_id, status.value)
    try:
        on_status(event.order_id, status, event)
    except Exception:
        # still acknowledged; a non-2xx makes the provider redeliver
        logger.exception("Failed to apply %s to order %s", status.value, event.order_id)
    return status
