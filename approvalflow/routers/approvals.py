from fastapi import APIRouter, Depends

from approvalflow.db.dal import Database
from approvalflow.models import ApprovalDecisionIn, DecisionOut, UserIdentity
from approvalflow.routers.deps import get_current_user, get_db, get_notifier
from approvalflow.services.evaluator import decide_approval
from approvalflow.services.notifications import Notifier

router = APIRouter(prefix="/expense-approvals", tags=["approvals"])


@router.patch(
    "/{approval_id}",
    response_model=DecisionOut,
    summary="Approve or reject an expense approval and re-derive the expense status",
)
async def decide(
    approval_id: int,
    payload: ApprovalDecisionIn,
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    outcome = decide_approval(
        db,
        approval_id,
        payload.status,
        payload.comments,
        actor=user,
        notifier=notifier,
    )
    return outcome.as_dict()
