"""Webhook signature check for `t=<unix>,v1=<hex>` headers (HMAC-SHA256 over "t.payload")."""

import hashlib
import hmac
import time

from tutorbook.errors import SignatureVerificationError


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def _parse_header(header: str) -> tuple[int, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise SignatureVerificationError("Malformed signature timestamp") from None
        elif key == "v1":
            signatures.append(value)
    if timestamp is None or not signatures:
        raise SignatureVerificationError("Signature header is missing t or v1")
    return timestamp, signatures


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance_seconds: int = 300,
    now: float | None = None,
) -> None:
    """Raise SignatureVerificationError unless `header` signs `payload` recently enough."""
    if not header:
        raise SignatureVerificationError("No signature provided")
    if not secret:
        raise SignatureVerificationError("Webhook secret is not configured")

    timestamp, signatures = _parse_header(header)
    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise SignatureVerificationError("Signature does not match payload")

    current = time.time() if now is None else now
    if tolerance_seconds > 0 and abs(current - timestamp) > tolerance_seconds:
        raise SignatureVerificationError("Signature timestamp outside tolerance")
