from typing import List

from fastapi import APIRouter, Depends, Query, status

from approvalflow.db.dal import Database
from approvalflow.models import RuleIn, RuleOut, RuleUpdate, UserIdentity
from approvalflow.routers.deps import get_current_user, get_db, require_admin
from approvalflow.services import configuration

router = APIRouter(prefix="/approval-rules", tags=["approval-rules"])


@router.get("/", response_model=List[RuleOut], summary="List company approval rules")
async def list_rules(
    active_only: bool = Query(False, description="Only rules with is_active=true"),
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return configuration.list_rules(db, user.company_id, active_only=active_only)


@router.post(
    "/",
    response_model=RuleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an approval rule",
)
async def create_rule(
    payload: RuleIn,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return configuration.create_rule(db, admin.company_id, payload)


@router.get("/{rule_id}", response_model=RuleOut, summary="Get an approval rule")
async def get_rule(
    rule_id: int,
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return configuration.get_rule(db, user.company_id, rule_id)


@router.patch("/{rule_id}", response_model=RuleOut, summary="Edit an approval rule (partial)")
async def update_rule(
    rule_id: int,
    payload: RuleUpdate,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return configuration.update_rule(db, admin.company_id, rule_id, payload)


@router.delete("/{rule_id}", status_code=204, summary="Delete an approval rule")
async def delete_rule(
    rule_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    configuration.delete_rule(db, admin.company_id, rule_id)
    return None
