from __future__ import annotations

from enum import StrEnum


class TransferStatus(StrEnum):
    """
    Provider transfer lifecycle.

    pending -> running -> complete | failed. COMPLETE and FAILED are terminal.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferStatus.COMPLETE, TransferStatus.FAILED)


class WalletState(StrEnum):
    LIVE = "LIVE"
    COLD = "COLD"


class TransferErrorCode(StrEnum):
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    NETWORK_CONGESTION = "NETWORK_CONGESTION"
    INVALID_DESTINATION = "INVALID_DESTINATION"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TEMPORARY_UNAVAILABLE = "TEMPORARY_UNAVAILABLE"
    USER_CANCELLED = "USER_CANCELLED"


TRANSFER_ERROR_MESSAGES: dict[TransferErrorCode, str] = {
    TransferErrorCode.INSUFFICIENT_FUNDS: "Wallet balance insufficient for transfer amount plus fees",
    TransferErrorCode.NETWORK_CONGESTION: "Network congestion caused transfer timeout",
    TransferErrorCode.INVALID_DESTINATION: "Destination address validation failed",
    TransferErrorCode.RATE_LIMIT_EXCEEDED: "Transfer rate limit exceeded, please wait before retrying",
    TransferErrorCode.TEMPORARY_UNAVAILABLE: "Service temporarily unavailable, please retry",
    TransferErrorCode.USER_CANCELLED: "Transfer cancelled by user",
}

# codes the mock provider may pick when simulating a random settlement failure
RANDOM_FAILURE_CODES: tuple[TransferErrorCode, ...] = (
    TransferErrorCode.NETWORK_CONGESTION,
    TransferErrorCode.INVALID_DESTINATION,
    TransferErrorCode.RATE_LIMIT_EXCEEDED,
    TransferErrorCode.TEMPORARY_UNAVAILABLE,
)
