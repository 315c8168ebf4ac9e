from __future__ import annotations

from enum import StrEnum


class IdempotencyStatus(StrEnum):
    """
    IN_PROGRESS: key claimed, wrapped operation running.
    COMPLETED: response stored; replays return it verbatim.
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
