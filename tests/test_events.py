import json

import pytest

from storefront.events import event_kind, normalize_event, parse_envelope
from storefront.exceptions import MalformedEventError


def test_payment_entity_is_normalized():
    envelope = {
        "event": "payment.captured",
        "payload": {"payment": {"entity": {
            "id": "pay_1",
            "order_id": "order_abc",
            "amount": 150000,
            "email": "entity@example.com",
            "notes": {"email": "a@b.com", "userId": "user_9"},
        }}},
    }
    event = normalize_event(envelope)

    assert event.kind == "payment.captured"
    assert event.gateway_order_id == "order_abc"
    assert event.gateway_payment_id == "pay_1"
    assert event.amount == 150000
    assert event.email == "entity@example.com"
    assert event.notes_email == "a@b.com"
    assert event.notes_user_id == "user_9"


def test_order_entity_uses_its_own_id():
    envelope = {
        "event": "order.paid",
        "payload": {"order": {"entity": {"id": "order_xyz", "amount": 50000, "notes": []}}},
    }
    event = normalize_event(envelope)

    assert event.gateway_order_id == "order_xyz"
    assert event.gateway_payment_id is None
    assert event.notes == {}
    assert event.notes_email is None


def test_payment_entity_wins_when_both_present():
    envelope = {
        "event": "order.paid",
        "payload": {
            "payment": {"entity": {"id": "pay_2", "order_id": "order_1", "amount": 100}},
            "order": {"entity": {"id": "order_1", "amount": 100}},
        },
    }
    event = normalize_event(envelope)
    assert event.gateway_payment_id == "pay_2"


def test_envelope_without_entity_is_malformed():
    with pytest.raises(MalformedEventError):
        normalize_event({"event": "payment.captured", "payload": {}})


def test_parse_envelope_rejects_non_object():
    with pytest.raises(MalformedEventError):
        parse_envelope(json.dumps([1, 2, 3]).encode())


def test_event_kind_read_from_envelope():
    assert event_kind(parse_envelope(b'{"event": "refund.created"}')) == "refund.created"


@pytest.mark.parametrize("amount", [None, "150000", 1500.5, True])
def test_entity_without_integer_amount_is_malformed(amount):
    entity = {"id": "pay_1", "order_id": "order_abc"}
    if amount is not None:
        entity["amount"] = amount
    with pytest.raises(MalformedEventError):
        normalize_event({"event": "payment.captured", "payload": {"payment": {"entity": entity}}})
