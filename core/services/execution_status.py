"""
Mirror provider transfer outcomes onto execution records.

Used by the webhook receiver and, in mock mode, by the provider's settlement
listener. An execution already in a terminal status is never touched.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from core.domain.entities.transfer_execution_entity import TransferExecutionEntity
from core.domain.enums.transfer_enums import TransferStatus
from core.domain.repositories.transfer_execution_repository_interface import TransferExecutionRepository

logger = logging.getLogger(__name__)


class RuleEngineNotifier(Protocol):
    def transfer_settled(self, execution: TransferExecutionEntity) -> None:
        ...


class LoggingRuleEngineNotifier:
    def __init__(self, *, user_notifications: bool = False) -> None:
        self.user_notifications = bool(user_notifications)

    def transfer_settled(self, execution: TransferExecutionEntity) -> None:
        logger.info(
            "Rule engine notified: execution=%s rule=%s transfer=%s status=%s",
            execution.id,
            execution.rule_id,
            execution.transfer_id,
            execution.status,
        )
        if self.user_notifications:
            logger.info("User notification queued for user=%s execution=%s", execution.user_id, execution.id)


def apply_transfer_update(
    repo: TransferExecutionRepository,
    *,
    transfer_id: str,
    status: TransferStatus | str,
    transaction_hash: Optional[str] = None,
    error_code: Optional[str] = None,
    notifier: Optional[RuleEngineNotifier] = None,
) -> Optional[TransferExecutionEntity]:
    """
    Returns the updated execution, or None when there is no open execution
    for `transfer_id`.

    A completion without a transaction hash keeps the execution open as
    `running`; a later update carrying the hash completes it.
    """
    status = TransferStatus(status)
    if status == TransferStatus.COMPLETE and not (transaction_hash or "").strip():
        logger.warning("Transfer %s reported complete without a transaction hash; kept running", transfer_id)
        status = TransferStatus.RUNNING
    updates = {"status": status.value}
    if status == TransferStatus.COMPLETE:
        updates["transaction_hash"] = transaction_hash
    elif status == TransferStatus.FAILED:
        updates["error_code"] = error_code

    updated = repo.update_status_if_open(transfer_id, updates)
    if updated is None:
        logger.info("No open execution for transfer %s; status %s ignored", transfer_id, status.value)
        return None

    logger.info("Execution %s for transfer %s is now %s", updated.id, transfer_id, status.value)
    if status.is_terminal and notifier is not None:
        notifier.transfer_settled(updated)
    return updated
