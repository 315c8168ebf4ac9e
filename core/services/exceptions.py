# core/services/exceptions.py
from __future__ import annotations

from typing import Any, Optional


class PaymentCoreError(Exception):
    """
    Root of every error raised by the payment core.
    """


class ValidationError(PaymentCoreError, ValueError):
    """
    Malformed input or a missing required field. Never retried internally.
    """


class PairNotSupported(ValidationError):
    def __init__(self, pair: str) -> None:
        super().__init__(f"Unsupported currency pair: {pair}")
        self.pair = pair


class NotFoundError(PaymentCoreError, LookupError):
    def __init__(self, kind: str, ref: str) -> None:
        super().__init__(f"{kind} {ref} not found")
        self.kind = kind
        self.ref = ref


class NoRouteAvailable(PaymentCoreError):
    """
    None of the allowed chains could be quoted.
    """

    def __init__(self, chains: Any, failures: Optional[dict[str, str]] = None) -> None:
        super().__init__(f"No route available for chains: {', '.join(str(c) for c in chains)}")
        self.chains = list(chains)
        self.failures = failures or {}


class ProviderUnavailable(PaymentCoreError):
    """
    An oracle or provider call failed or timed out.
    """

    def __init__(self, service: str, reason: str) -> None:
        super().__init__(f"{service} unavailable: {reason}")
        self.service = service
        self.reason = reason


class CircuitOpenError(ProviderUnavailable):
    def __init__(self, name: str) -> None:
        super().__init__(name, "circuit open")


class TransferStateError(PaymentCoreError):
    """
    Operation not allowed in the transfer's current state.
    """


class IdempotencyInProgress(PaymentCoreError):
    def __init__(self, key: str) -> None:
        super().__init__(f"A request with Idempotency-Key '{key}' is still being processed")
        self.key = key


class WebhookAuthenticationError(PaymentCoreError):
    """
    Inbound webhook could not be authenticated. Always fail closed.
    """


class StaleTimestamp(WebhookAuthenticationError):
    def __init__(self, skew_seconds: float, tolerance_seconds: int) -> None:
        super().__init__(f"Webhook timestamp outside tolerance ({skew_seconds:.0f}s > {tolerance_seconds}s)")
        self.skew_seconds = skew_seconds
        self.tolerance_seconds = tolerance_seconds


class InvalidSignature(WebhookAuthenticationError):
    pass
