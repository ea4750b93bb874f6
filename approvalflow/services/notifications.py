"""Approver notification hook.

Delivery (email, chat, push) belongs to a collaborator. The workflow only
announces that an expense now waits on a given approver; the default
notifier writes that to the log.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger("approvalflow.notifications")


class Notifier(Protocol):
    def next_approver_pending(
        self, expense_id: int, approval_id: int, approver_id: int
    ) -> None: ...


class LoggingNotifier:
    def next_approver_pending(
        self, expense_id: int, approval_id: int, approver_id: int
    ) -> None:
        logger.info(
            "approval %s now waiting on approver %s",
            approval_id,
            approver_id,
            extra={"expense_id": expense_id, "approval_id": approval_id, "user_id": approver_id},
        )


__all__ = ["Notifier", "LoggingNotifier"]
