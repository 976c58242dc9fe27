import json
from typing import Any, Dict, Optional

from pydantic import BaseModel

from storefront.exceptions import MalformedEventError

HANDLED_EVENTS = {"payment.captured", "order.paid"}


class PaymentEvent(BaseModel):
    """Canonical form of a handled gateway event, whatever entity it carried."""

    kind: str
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    amount: int                       # minor units (paise)
    email: Optional[str] = None
    notes: Dict[str, Any] = {}

    @property
    def notes_email(self) -> Optional[str]:
        return self.notes.get("email") or None

    @property
    def notes_user_id(self) -> Optional[str]:
        return self.notes.get("userId") or self.notes.get("user_id") or None


def parse_envelope(raw_body: bytes) -> Dict[str, Any]:
    envelope = json.loads(raw_body)
    if not isinstance(envelope, dict):
        raise MalformedEventError("Webhook body is not a JSON object")
    return envelope


def event_kind(envelope: Dict[str, Any]) -> Optional[str]:
    return envelope.get("event")


def normalize_event(envelope: Dict[str, Any]) -> PaymentEvent:
    payload = envelope.get("payload") or {}

    if payload.get("payment"):
        entity = payload["payment"].get("entity") or {}
        payment_id = entity.get("id")
        order_id = entity.get("order_id") or entity.get("id")
    elif payload.get("order"):
        entity = payload["order"].get("entity") or {}
        payment_id = None
        order_id = entity.get("order_id") or entity.get("id")
    else:
        raise MalformedEventError("Event carries neither a payment nor an order entity")

    if not order_id:
        raise MalformedEventError("Event entity has no order identifier")

    amount = entity.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise MalformedEventError(f"Event entity for {order_id} has no integer amount: {amount!r}")

    notes = entity.get("notes")
    # Razorpay sends an empty list when no notes were set
    if not isinstance(notes, dict):
        notes = {}

    return PaymentEvent(
        kind=envelope.get("event"),
        gateway_order_id=order_id,
        gateway_payment_id=payment_id,
        amount=amount,
        email=entity.get("email") or None,
        notes=notes,
    )
