"""Company-scoped configuration of approval chains and rules.

Rows belonging to another company are reported as missing. Rule definitions
are validated as a whole (after merging partial updates) before they are
persisted:
  - percentage rules need a percentage_threshold
  - specific_approver rules need a specific_approver_id
  - hybrid rules need both
  - the specific approver must be a user of the same company
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from approvalflow.core.errors import NotFoundError, ValidationError
from approvalflow.db.dal import Database
from approvalflow.models import ChainStepIn, RuleIn, RuleUpdate

logger = logging.getLogger("approvalflow.configuration")


# ----------------------------------------------------------------------
# Chain steps
def list_chain(db: Database, company_id: int) -> List[Dict[str, Any]]:
    return db.list_chain_steps(company_id)


def _owned_step(db: Database, company_id: int, step_id: int) -> Dict[str, Any]:
    step = db.get_chain_step(step_id)
    if not step or step["company_id"] != company_id:
        raise NotFoundError("approval chain step not found")
    return step


def add_chain_step(db: Database, company_id: int, payload: ChainStepIn) -> Dict[str, Any]:
    step_id = db.insert_chain_step(company_id, payload.approver_role, payload.sequence_order)
    logger.info(
        "chain step %s added at position %s",
        payload.approver_role,
        payload.sequence_order,
        extra={"company_id": company_id},
    )
    return _owned_step(db, company_id, step_id)


def change_chain_step_role(
    db: Database, company_id: int, step_id: int, approver_role: str
) -> Dict[str, Any]:
    _owned_step(db, company_id, step_id)
    db.update_chain_step_role(step_id, approver_role)
    return _owned_step(db, company_id, step_id)


def remove_chain_step(db: Database, company_id: int, step_id: int) -> None:
    _owned_step(db, company_id, step_id)
    db.delete_chain_step(step_id)


def reorder_chain(
    db: Database, company_id: int, step_ids: Sequence[int]
) -> List[Dict[str, Any]]:
    db.reorder_chain_steps(company_id, step_ids)
    logger.info("chain reordered: %s", list(step_ids), extra={"company_id": company_id})
    return db.list_chain_steps(company_id)


# ----------------------------------------------------------------------
# Rules
def validate_rule_definition(
    db: Database, company_id: int, values: Dict[str, Any]
) -> Dict[str, Any]:
    rule_type = values.get("rule_type")
    threshold = values.get("percentage_threshold")
    approver_id = values.get("specific_approver_id")

    if threshold is not None and not (0 <= float(threshold) <= 100):
        raise ValidationError("percentage_threshold must be between 0 and 100")
    if rule_type in ("percentage", "hybrid") and threshold is None:
        raise ValidationError(f"{rule_type} rules require percentage_threshold")
    if rule_type in ("percentage", "hybrid") and float(threshold) == 0:
        # 0% would approve on any decision, rejections included
        raise ValidationError(f"{rule_type} rules need a percentage_threshold above 0")
    if rule_type in ("specific_approver", "hybrid") and approver_id is None:
        raise ValidationError(f"{rule_type} rules require specific_approver_id")
    if approver_id is not None:
        user = db.get_user(approver_id)
        if not user or user["company_id"] != company_id:
            raise ValidationError(
                f"specific approver {approver_id} is not a member of this company"
            )
    return values


def list_rules(
    db: Database, company_id: int, active_only: bool = False
) -> List[Dict[str, Any]]:
    return db.list_rules(company_id, active_only=active_only)


def get_rule(db: Database, company_id: int, rule_id: int) -> Dict[str, Any]:
    rule = db.get_rule(rule_id)
    if not rule or rule["company_id"] != company_id:
        raise NotFoundError("approval rule not found")
    return rule


def create_rule(db: Database, company_id: int, payload: RuleIn) -> Dict[str, Any]:
    values = validate_rule_definition(db, company_id, payload.model_dump())
    rule_id = db.insert_rule(company_id, **values)
    logger.info("approval rule %s created (%s)", rule_id, payload.rule_type, extra={"company_id": company_id})
    return get_rule(db, company_id, rule_id)


def update_rule(
    db: Database, company_id: int, rule_id: int, payload: RuleUpdate
) -> Dict[str, Any]:
    existing = get_rule(db, company_id, rule_id)
    changes = payload.model_dump(include=payload.model_fields_set)
    for required in ("rule_type", "is_active"):
        if required in changes and changes[required] is None:
            raise ValidationError(f"{required} cannot be cleared")
    merged = {**existing, **changes}
    validate_rule_definition(db, company_id, merged)
    db.update_rule(rule_id, changes)
    return get_rule(db, company_id, rule_id)


def delete_rule(db: Database, company_id: int, rule_id: int) -> None:
    get_rule(db, company_id, rule_id)
    db.delete_rule(rule_id)


__all__ = [
    "list_chain",
    "add_chain_step",
    "change_chain_step_role",
    "remove_chain_step",
    "reorder_chain",
    "validate_rule_definition",
    "list_rules",
    "get_rule",
    "create_rule",
    "update_rule",
    "delete_rule",
]
