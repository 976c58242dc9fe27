import json

import pytest

from storefront.exceptions import AuthenticationError
from storefront.signature import verify_signature
from conftest import WEBHOOK_SECRET, sign


def test_valid_signature_passes():
    body = b'{"event":"payment.captured"}'
    verify_signature(body, sign(body), WEBHOOK_SECRET)


def test_mismatched_signature_rejected():
    body = b'{"event":"payment.captured"}'
    with pytest.raises(AuthenticationError) as exc:
        verify_signature(body, sign(b'{"event":"order.paid"}'), WEBHOOK_SECRET)
    assert exc.value.message == "Signature mismatch"


def test_wrong_secret_rejected():
    body = b'{"event":"payment.captured"}'
    with pytest.raises(AuthenticationError):
        verify_signature(body, sign(body, "some_other_secret"), WEBHOOK_SECRET)


@pytest.mark.parametrize("signature, secret", [
    (None, WEBHOOK_SECRET),
    ("", WEBHOOK_SECRET),
    ("abc123", None),
    ("abc123", ""),
])
def test_missing_secret_or_header_fails_closed(signature, secret):
    with pytest.raises(AuthenticationError) as exc:
        verify_signature(b"{}", signature, secret)
    assert exc.value.message == "Security protocol missing"


def test_reserialized_body_does_not_verify():
    """The digest covers the exact bytes sent, not an equivalent JSON document."""
    original = b'{"event": "payment.captured", "payload": {}}'
    reserialized = json.dumps(json.loads(original), separators=(",", ":")).encode()
    with pytest.raises(AuthenticationError):
        verify_signature(reserialized, sign(original), WEBHOOK_SECRET)


def test_non_ascii_signature_is_a_mismatch():
    body = b'{"event":"payment.captured"}'
    with pytest.raises(AuthenticationError) as exc:
        verify_signature(body, "éabc", WEBHOOK_SECRET)
    assert exc.value.message == "Signature mismatch"
