"""
Razorpay webhook signature verification.

The digest is computed over the body exactly as it arrived on the wire.
Never pass a re-serialized JSON object here: key order and whitespace changes
break otherwise valid signatures.
"""
import hashlib
import hmac
from typing import Optional


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of raw_body keyed with secret."""
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def verify(raw_body: bytes, signature_header: Optional[str], secret: Optional[str]) -> bool:
    """
    Return True when signature_header is the HMAC of raw_body under secret.

    Returns False, never raises, when the header or secret is missing or the
    digest does not match.
    """
    if not signature_header or not secret:
        return False
    if not isinstance(raw_body, (bytes, bytearray)):
        return False
    digest = compute_signature(bytes(raw_body), secret)
    try:
        return hmac.compare_digest(digest, signature_header)
    except TypeError:
        # Non-ASCII header values cannot be compared in constant time
        return False
