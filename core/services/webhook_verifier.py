"""
Provider webhook authentication.

    expected = hex(HMAC-SHA256(secret, f"{timestamp}.{raw_body}"))
    header   = "v1=<hex>"

The timestamp (unix seconds) must be within the tolerance window of the local
clock, and the comparison is constant time. Every malformed input fails closed
with `InvalidSignature`.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from typing import Optional, Union

from core.services.exceptions import InvalidSignature, StaleTimestamp

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "v1="
DEFAULT_TOLERANCE_SEC = 5 * 60

Body = Union[bytes, bytearray, str]


def _as_bytes(value: Body) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return value.encode("utf-8")


def _signed_payload(timestamp: str, body: Body) -> bytes:
    return timestamp.encode("utf-8") + b"." + _as_bytes(body)


def compute_signature_hex(body: Body, timestamp: str, secret: str) -> str:
    return hmac.new(_as_bytes(secret), _signed_payload(timestamp, body), hashlib.sha256).hexdigest()


def create_webhook_signature(body: Body, timestamp: Union[str, int], secret: str) -> str:
    """
    Header value a provider would send for `body` at `timestamp`.
    """
    return SIGNATURE_PREFIX + compute_signature_hex(body, str(timestamp), secret)


def verify_webhook_signature(
    body: Body,
    signature: Optional[str],
    timestamp: Optional[str],
    secret: str,
    *,
    now: Optional[float] = None,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SEC,
) -> None:
    """
    Raise `StaleTimestamp` or `InvalidSignature` unless the triple is authentic.
    """
    if not secret:
        logger.warning("Webhook rejected: no signing secret configured")
        raise InvalidSignature("Webhook secret is not configured")

    ts_raw = (timestamp or "").strip()
    try:
        ts = int(ts_raw)
    except ValueError:
        logger.warning("Webhook rejected: malformed timestamp header %r", timestamp)
        raise InvalidSignature("Malformed timestamp header") from None

    current = time.time() if now is None else float(now)
    try:
        skew = abs(current - ts)
    except OverflowError:
        logger.warning("Webhook rejected: timestamp header out of range")
        raise InvalidSignature("Malformed timestamp header") from None
    if skew > tolerance_seconds:
        logger.warning("Webhook rejected: timestamp skew %.0fs exceeds %ss", skew, tolerance_seconds)
        raise StaleTimestamp(skew, tolerance_seconds)

    sig_raw = (signature or "").strip()
    if not sig_raw.startswith(SIGNATURE_PREFIX):
        logger.warning("Webhook rejected: signature header missing %s prefix", SIGNATURE_PREFIX)
        raise InvalidSignature("Malformed signature header")

    try:
        received = bytes.fromhex(sig_raw[len(SIGNATURE_PREFIX):])
    except ValueError:
        logger.warning("Webhook rejected: signature is not hex")
        raise InvalidSignature("Malformed signature header") from None

    expected = hmac.new(_as_bytes(secret), _signed_payload(ts_raw, body), hashlib.sha256).digest()
    if not hmac.compare_digest(expected, received):
        logger.warning("Webhook rejected: signature mismatch")
        raise InvalidSignature("Signature mismatch")


def is_webhook_authentic(body: Body, signature: Optional[str], timestamp: Optional[str], secret: str, **kwargs) -> bool:
    try:
        verify_webhook_signature(body, signature, timestamp, secret, **kwargs)
    except (StaleTimestamp, InvalidSignature):
        return False
    return True
