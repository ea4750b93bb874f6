"""Conditional rule evaluation and expense status resolution.

Rules are evaluated in snapshot `position` order and the first rule whose
condition holds wins. A matching rule can only ever approve an expense:
rejection comes solely from an approval row being rejected.

Rule conditions:
  - percentage: approved rows / all rows * 100 >= percentage_threshold
  - specific_approver: the acting user is the rule's approver and approves
  - hybrid: either of the two conditions above

A percentage condition with a missing or zero threshold never holds, and
neither does one evaluated over zero approval rows. Rule validation refuses
a zero threshold, so only rows written around it can carry one.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

Row = Dict[str, Any]


def approved_percentage(approvals: Sequence[Row]) -> Optional[float]:
    if not approvals:
        return None
    approved = sum(1 for a in approvals if a["status"] == "approved")
    return approved / len(approvals) * 100


def percentage_condition(rule: Row, approvals: Sequence[Row]) -> bool:
    threshold = rule.get("percentage_threshold")
    if not threshold:
        return False
    pct = approved_percentage(approvals)
    return pct is not None and pct >= float(threshold)


def specific_approver_condition(rule: Row, acting_user_id: int, decision: str) -> bool:
    approver_id = rule.get("specific_approver_id")
    return (
        approver_id is not None
        and int(approver_id) == acting_user_id
        and decision == "approved"
    )


def rule_holds(
    rule: Row, approvals: Sequence[Row], acting_user_id: int, decision: str
) -> bool:
    kind = rule["rule_type"]
    if kind == "percentage":
        return percentage_condition(rule, approvals)
    if kind == "specific_approver":
        return specific_approver_condition(rule, acting_user_id, decision)
    if kind == "hybrid":
        return specific_approver_condition(
            rule, acting_user_id, decision
        ) or percentage_condition(rule, approvals)
    raise ValueError(f"unknown rule_type '{kind}'")


def first_matching_rule(
    rules: Iterable[Row],
    approvals: Sequence[Row],
    acting_user_id: int,
    decision: str,
) -> Optional[Row]:
    for rule in rules:
        if not rule.get("is_active", True):
            continue
        if rule_holds(rule, approvals, acting_user_id, decision):
            return rule
    return None


def resolve_status(current: str, should_approve: bool, approvals: Sequence[Row]) -> str:
    """Derive the expense status; first match wins.

    should_approve -> approved; every row approved -> approved; any row
    rejected -> rejected; otherwise the current status is kept.
    """
    if should_approve:
        return "approved"
    if approvals and all(a["status"] == "approved" for a in approvals):
        return "approved"
    if any(a["status"] == "rejected" for a in approvals):
        return "rejected"
    return current


def next_pending_approver(approvals: List[Row], after_sequence: int) -> Optional[Row]:
    """Pending row with the lowest sequence_order after `after_sequence`."""
    later = [
        a
        for a in approvals
        if a["status"] == "pending" and a["sequence_order"] > after_sequence
    ]
    return min(later, key=lambda a: (a["sequence_order"], a["id"])) if later else None


__all__ = [
    "approved_percentage",
    "percentage_condition",
    "specific_approver_condition",
    "rule_holds",
    "first_matching_rule",
    "resolve_status",
    "next_pending_approver",
]
