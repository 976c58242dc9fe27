import hashlib
import hmac
import logging
from typing import Optional

from storefront.exceptions import AuthenticationError

logger = logging.getLogger(__name__)


def verify_signature(payload: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    """
    Check a Razorpay webhook signature: hex HMAC-SHA256 of the raw body.

    `payload` must be the body exactly as received. Parsing and re-serializing
    the JSON first changes the bytes and breaks the digest.
    """
    if not secret or not signature:
        logger.error("Webhook rejected: secret configured=%s, signature present=%s",
                     bool(secret), bool(signature))
        raise AuthenticationError("Security protocol missing")

    expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    # Headers arrive latin-1 decoded; compare_digest only accepts ASCII str, so compare bytes
    if not hmac.compare_digest(expected.encode("ascii"), signature.encode("latin-1", "replace")):
        logger.error("Webhook rejected: signature mismatch")
        raise AuthenticationError("Signature mismatch")
