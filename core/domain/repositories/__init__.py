from .idempotency_repository_interface import IdempotencyRepository
from .transfer_execution_repository_interface import TransferExecutionRepository
from .webhook_event_repository_interface import WebhookEventRepository

__all__ = [
    "IdempotencyRepository",
    "TransferExecutionRepository",
    "WebhookEventRepository",
]
