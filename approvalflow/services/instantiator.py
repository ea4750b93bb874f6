"""Workflow instantiation for a newly submitted expense.

Runs once per expense, right after the expense row is committed:

1. Read the company's chain (ascending sequence_order) and active rules.
2. Resolve every chain step to a concrete approver:
     employee -> the submitter
     manager  -> the submitter's manager, if a relationship exists
     admin    -> the company's earliest-created admin, if any
   Steps that resolve to nobody, or to an approver already assigned on this
   expense, produce no row and are reported in `InstantiationResult.unresolved`.
3. Write one pending approval row per resolved step and freeze the active
   rules onto the expense, all in a single transaction.

A failure is logged and returned in the result; the expense itself stays
committed so submission is never blocked by workflow problems.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from approvalflow.core.errors import ValidationError
from approvalflow.db.dal import Database
from approvalflow.models import UserIdentity
from approvalflow.models.constants import (
    UNRESOLVED_DUPLICATE,
    UNRESOLVED_NO_ADMIN,
    UNRESOLVED_NO_MANAGER,
)
from approvalflow.services.directory import Directory

logger = logging.getLogger("approvalflow.instantiator")

NO_APPROVERS_REASON = "no approvers assigned"


@dataclass
class UnresolvedStep:
    sequence_order: int
    approver_role: str
    reason: str


@dataclass
class InstantiationResult:
    expense_id: int
    approvals: List[Dict[str, Any]] = field(default_factory=list)
    rules_snapshotted: int = 0
    unresolved: List[UnresolvedStep] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def flagged(self) -> bool:
        return not self.ok or not self.approvals

    @property
    def reason(self) -> Optional[str]:
        if self.error:
            return f"workflow instantiation failed: {self.error}"
        if not self.approvals:
            return NO_APPROVERS_REASON
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "approvals_created": len(self.approvals),
            "rules_snapshotted": self.rules_snapshotted,
            "unresolved": [vars(u) for u in self.unresolved],
            "flagged": self.flagged,
            "reason": self.reason,
        }


def resolve_chain(
    steps: Sequence[Dict[str, Any]],
    submitter: UserIdentity,
    directory: Directory,
) -> Tuple[List[Tuple[Dict[str, Any], int]], List[UnresolvedStep]]:
    """Map chain steps to approver ids without touching the database."""
    resolved: List[Tuple[Dict[str, Any], int]] = []
    unresolved: List[UnresolvedStep] = []
    assigned: set[int] = set()
    manager_id = admin_id = None
    manager_looked_up = admin_looked_up = False

    for step in steps:
        role = step["approver_role"]
        approver_id: Optional[int] = None
        reason = None
        if role == "employee":
            approver_id = submitter.id
        elif role == "manager":
            if not manager_looked_up:
                manager_id = directory.resolve_manager(submitter.id, submitter.company_id)
                manager_looked_up = True
            approver_id = manager_id
            reason = UNRESOLVED_NO_MANAGER
        elif role == "admin":
            if not admin_looked_up:
                admin_id = directory.find_admin(submitter.company_id)
                admin_looked_up = True
            approver_id = admin_id
            reason = UNRESOLVED_NO_ADMIN

        if approver_id is None:
            unresolved.append(
                UnresolvedStep(step["sequence_order"], role, reason or "unknown_role")
            )
            continue
        if approver_id in assigned:
            unresolved.append(
                UnresolvedStep(step["sequence_order"], role, UNRESOLVED_DUPLICATE)
            )
            continue
        assigned.add(approver_id)
        resolved.append((step, approver_id))
    return resolved, unresolved


def instantiate_workflow(
    db: Database,
    directory: Directory,
    expense: Dict[str, Any],
    submitter: UserIdentity,
) -> InstantiationResult:
    expense_id = int(expense["id"])
    result = InstantiationResult(expense_id=expense_id)
    try:
        with db.transaction() as cur:
            if db.list_approvals(expense_id, cur=cur) or db.list_rule_snapshot(
                expense_id, cur=cur
            ):
                raise ValidationError(
                    f"workflow already instantiated for expense {expense_id}"
                )
            steps = db.list_chain_steps(submitter.company_id, cur=cur)
            rules = db.list_rules(submitter.company_id, active_only=True, cur=cur)
            resolved, unresolved = resolve_chain(steps, submitter, directory)

            for position, rule in enumerate(rules, start=1):
                db.insert_rule_snapshot(expense_id, rule, position, cur=cur)
            approvals = []
            for step, approver_id in resolved:
                approval_id = db.insert_approval(
                    expense_id, approver_id, step["sequence_order"], cur=cur
                )
                approvals.append(db.get_approval(approval_id, cur=cur))
    except Exception as exc:
        logger.exception(
            "workflow instantiation failed",
            extra={"expense_id": expense_id, "company_id": submitter.company_id},
        )
        result.error = str(exc)
        return result

    result.approvals = approvals
    result.rules_snapshotted = len(rules)
    result.unresolved = unresolved
    for u in unresolved:
        logger.warning(
            "chain step %s (%s) unresolved: %s",
            u.sequence_order,
            u.approver_role,
            u.reason,
            extra={"expense_id": expense_id},
        )
    if result.flagged:
        logger.warning(result.reason, extra={"expense_id": expense_id})
    else:
        logger.info(
            "workflow created with %d approvals and %d rules",
            len(approvals),
            len(rules),
            extra={"expense_id": expense_id},
        )
    return result


__all__ = [
    "InstantiationResult",
    "UnresolvedStep",
    "resolve_chain",
    "instantiate_workflow",
    "NO_APPROVERS_REASON",
]
