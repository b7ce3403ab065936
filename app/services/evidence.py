"""Completion evidence, one type per channel.

The reconciler dispatches on these types exhaustively, so adding a channel
means adding a type here and a branch there.
"""

import json
from dataclasses import dataclass

WEBHOOK_PAYMENT_LINK_PAID = "payment_link.paid"
WEBHOOK_ORDER_PAID = "order.paid"
WEBHOOK_PAYMENT_CAPTURED = "payment.captured"

CHANNEL_WEBHOOK = "webhook"
CHANNEL_REDIRECT = "redirect"
CHANNEL_POLL = "poll"


@dataclass(frozen=True)
class WebhookEvidence:
    """Server-to-server push. Nothing in ``raw_body`` is trusted until the signature checks out."""

    raw_body: bytes
    signature: str | None

    channel = CHANNEL_WEBHOOK


@dataclass(frozen=True)
class RedirectEvidence:
    """Client-supplied callback parameters (browser redirect or checkout widget)."""

    reference_id: str
    payment_id: str | None
    status: str | None
    signature: str | None
    user_id: int | None = None
    # Checkout widget callbacks are always signed; a bad signature there is rejected outright.
    signature_required: bool = False

    channel = CHANNEL_REDIRECT

    @property
    def claims_paid(self) -> bool:
        return (self.status or "").strip().lower() == "paid"


@dataclass(frozen=True)
class PollRequest:
    """Authenticated "is it paid yet?" request; carries no payment claim at all."""

    reference_id: str
    user_id: int

    channel = CHANNEL_POLL


Evidence = WebhookEvidence | RedirectEvidence | PollRequest


@dataclass(frozen=True)
class WebhookEvent:
    event: str
    reference_id: str | None
    payment_id: str | None

    @property
    def is_payment_event(self) -> bool:
        return self.event in {WEBHOOK_PAYMENT_LINK_PAID, WEBHOOK_ORDER_PAID, WEBHOOK_PAYMENT_CAPTURED}


def _object(value, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Webhook {where} must be a JSON object")
    return value


def _entity(payload: dict, name: str) -> dict:
    section = _object(payload.get(name), name)
    return _object(section.get("entity"), f"{name}.entity")


def _identifier(value) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError("Webhook identifiers must be strings")
    return value


def parse_webhook_event(raw_body: bytes) -> WebhookEvent:
    """Extract ``(event, reference, payment)`` from a verified webhook body.

    Raises ValueError when the body or any section of it is not a JSON object.
    """
    data = json.loads(raw_body)
    if not isinstance(data, dict):
        raise ValueError("Webhook body must be a JSON object")

    event = str(data.get("event") or "")
    payload = _object(data.get("payload"), "payload")
    payment = _entity(payload, "payment")
    payment_id = _identifier(payment.get("id"))

    if event == WEBHOOK_PAYMENT_LINK_PAID:
        reference_id = _identifier(_entity(payload, "payment_link").get("id"))
    else:
        reference_id = _identifier(_entity(payload, "order").get("id")) or _identifier(payment.get("order_id"))

    return WebhookEvent(event=event, reference_id=reference_id, payment_id=payment_id)
