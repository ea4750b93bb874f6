"""Expense submission and company-scoped expense lookups."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from approvalflow.core.errors import NotFoundError, ValidationError
from approvalflow.db.dal import Database
from approvalflow.models import STATUSES, ExpenseIn, UserIdentity
from approvalflow.services.directory import Directory
from approvalflow.services.instantiator import InstantiationResult, instantiate_workflow


def create_expense(
    db: Database,
    directory: Directory,
    payload: ExpenseIn,
    submitter: UserIdentity,
) -> Tuple[Dict[str, Any], InstantiationResult]:
    """Persist a pending expense, then build its approval workflow.

    The expense commits first; workflow problems are reported in the returned
    result and never undo the submission.
    """
    expense_id = db.insert_expense(submitter.company_id, submitter.id, payload)
    expense = db.get_expense(expense_id)
    if not expense:
        raise NotFoundError("expense not found after insert")
    result = instantiate_workflow(db, directory, expense, submitter)
    return expense, result


def get_company_expense(db: Database, company_id: int, expense_id: int) -> Dict[str, Any]:
    expense = db.get_expense(expense_id)
    if not expense or expense["company_id"] != company_id:
        raise NotFoundError("expense not found")
    return expense


def list_company_expenses(
    db: Database, company_id: int, status: Optional[str] = None
) -> List[Dict[str, Any]]:
    if status is not None and status not in STATUSES:
        raise ValidationError(f"status must be one of {sorted(STATUSES)}")
    return db.list_expenses(company_id, status=status)


__all__ = ["create_expense", "get_company_expense", "list_company_expenses"]
