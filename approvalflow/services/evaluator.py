"""Approval decision processing.

`decide_approval` records one approver's decision and re-derives the status
of the parent expense. Everything from reading the approval row to writing
the expense status happens inside one database transaction, and the status
write is additionally guarded by the expense `version`, so two approvers
deciding at the same time can never both act on a stale view.

An expense that reached approved or rejected keeps that status forever.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Set

from approvalflow.core.errors import (
    ConcurrencyConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from approvalflow.db.dal import Database
from approvalflow.models import DECISIONS, TERMINAL_STATUSES, UserIdentity
from approvalflow.services import rules as rule_eval
from approvalflow.services.notifications import LoggingNotifier, Notifier

logger = logging.getLogger("approvalflow.evaluator")


@dataclass
class DecisionOutcome:
    approval: Dict[str, Any]
    previous_status: str
    expense_status: str
    matched_rule: Optional[Dict[str, Any]] = None
    next_approval: Optional[Dict[str, Any]] = None
    replayed: bool = False

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.expense_status

    def as_dict(self) -> Dict[str, Any]:
        return {
            "approval": self.approval,
            "expense_status": self.expense_status,
            "status_changed": self.status_changed,
            "matched_rule_position": self.matched_rule["position"]
            if self.matched_rule
            else None,
            "next_approver_id": self.next_approval["approver_id"]
            if self.next_approval
            else None,
            "replayed": self.replayed,
        }


def _designated_approvers(snapshot: List[Dict[str, Any]]) -> Set[int]:
    return {
        int(r["specific_approver_id"])
        for r in snapshot
        if r["rule_type"] in ("specific_approver", "hybrid")
        and r["specific_approver_id"] is not None
    }


def _authorize(
    approval: Dict[str, Any],
    expense: Dict[str, Any],
    snapshot: List[Dict[str, Any]],
    actor: UserIdentity,
) -> None:
    """Assigned approver, company admin, or a rule's designated approver.

    A designated approver may act on any approval row of the expense, even
    without a row of their own.
    """
    if actor.company_id != expense["company_id"]:
        # Other tenants' approvals are indistinguishable from missing ones
        raise NotFoundError("approval not found")
    if actor.id == approval["approver_id"] or actor.role == "admin":
        return
    if actor.id in _designated_approvers(snapshot):
        return
    raise ForbiddenError(
        "only the assigned approver, an admin or a designated approver may decide"
    )


def decide_approval(
    db: Database,
    approval_id: int,
    status: str,
    comments: Optional[str],
    actor: UserIdentity,
    notifier: Optional[Notifier] = None,
) -> DecisionOutcome:
    if status not in DECISIONS:
        raise ValidationError(f"decision must be one of {sorted(DECISIONS)}")

    with db.transaction() as cur:
        approval = db.get_approval(approval_id, cur=cur)
        if not approval:
            raise NotFoundError("approval not found")
        expense = db.get_expense(approval["expense_id"], cur=cur)
        if not expense:
            raise NotFoundError("expense not found")
        snapshot = db.list_rule_snapshot(expense["id"], active_only=True, cur=cur)
        _authorize(approval, expense, snapshot, actor)
        current = expense["status"]

        if approval["status"] != "pending":
            if approval["status"] != status:
                raise ValidationError(
                    f"approval already {approval['status']}; decisions are final"
                )
            return DecisionOutcome(
                approval=approval,
                previous_status=current,
                expense_status=current,
                replayed=True,
            )

        db.record_decision(approval_id, status, comments, cur=cur)
        approvals = db.list_approvals(expense["id"], cur=cur)
        approval = next(a for a in approvals if a["id"] == approval_id)

        if current in TERMINAL_STATUSES:
            logger.info(
                "decision recorded on finalized expense; status kept",
                extra={"expense_id": expense["id"], "approval_id": approval_id, "status": current},
            )
            return DecisionOutcome(
                approval=approval, previous_status=current, expense_status=current
            )

        matched = rule_eval.first_matching_rule(snapshot, approvals, actor.id, status)
        new_status = rule_eval.resolve_status(current, matched is not None, approvals)

        next_approval = None
        if status == "approved" and new_status == "pending":
            next_approval = rule_eval.next_pending_approver(
                approvals, approval["sequence_order"]
            )

        if new_status != current:
            if not db.update_expense_status(
                expense["id"], new_status, expense["version"], cur=cur
            ):
                raise ConcurrencyConflictError(
                    f"expense {expense['id']} changed during evaluation; retry the decision"
                )

    outcome = DecisionOutcome(
        approval=approval,
        previous_status=current,
        expense_status=new_status,
        matched_rule=matched,
        next_approval=next_approval,
    )
    if outcome.status_changed:
        logger.info(
            "expense %s -> %s%s",
            current,
            new_status,
            f" (rule #{matched['position']} {matched['rule_type']})" if matched else "",
            extra={"expense_id": expense["id"], "approval_id": approval_id, "status": new_status},
        )
    elif next_approval is not None:
        (notifier or LoggingNotifier()).next_approver_pending(
            expense["id"], next_approval["id"], next_approval["approver_id"]
        )
    return outcome


__all__ = ["DecisionOutcome", "decide_approval"]
