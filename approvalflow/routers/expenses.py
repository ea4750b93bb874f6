from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from approvalflow.db.dal import Database
from approvalflow.models import (
    ApprovalOut,
    ExpenseCreateResponse,
    ExpenseIn,
    ExpenseOut,
    SnapshotRuleOut,
    UserIdentity,
)
from approvalflow.routers.deps import get_current_user, get_db, get_directory
from approvalflow.services import expenses as expense_service
from approvalflow.services.directory import Directory

router = APIRouter(prefix="/expenses", tags=["expenses"])


class PendingApprovalItem(ExpenseOut):
    approval_id: int
    approval_status: str
    approval_sequence: int


# Routes -----------------------------------------------------------
@router.post(
    "/",
    response_model=ExpenseCreateResponse,
    status_code=201,
    summary="Submit an expense and build its approval workflow",
)
async def create_expense(
    payload: ExpenseIn,
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
    directory: Directory = Depends(get_directory),
):
    expense, workflow = expense_service.create_expense(db, directory, payload, user)
    return {"expense": expense, "workflow": workflow.summary()}


@router.get("/", response_model=List[ExpenseOut], summary="List company expenses")
async def list_expenses(
    status: Optional[str] = Query(None, description="Filter: pending|approved|rejected"),
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return expense_service.list_company_expenses(db, user.company_id, status=status)


@router.get("/pending", response_model=List[ExpenseOut], summary="List pending company expenses")
async def list_pending_expenses(
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return expense_service.list_company_expenses(db, user.company_id, status="pending")


@router.get(
    "/pending-for-approver",
    response_model=List[PendingApprovalItem],
    summary="Expenses waiting on the caller's decision",
)
async def list_pending_for_approver(
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return db.list_pending_for_approver(user.id)


@router.get("/{expense_id}", response_model=ExpenseOut, summary="Get an expense")
async def get_expense(
    expense_id: int,
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return expense_service.get_company_expense(db, user.company_id, expense_id)


@router.get(
    "/{expense_id}/approvals",
    response_model=List[ApprovalOut],
    summary="Approval rows of an expense in chain order",
)
async def list_expense_approvals(
    expense_id: int,
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    expense_service.get_company_expense(db, user.company_id, expense_id)
    return db.list_approvals(expense_id)


@router.get(
    "/{expense_id}/rules",
    response_model=List[SnapshotRuleOut],
    summary="Rules frozen onto an expense at submission",
)
async def list_expense_rules(
    expense_id: int,
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    expense_service.get_company_expense(db, user.company_id, expense_id)
    return db.list_rule_snapshot(expense_id)
