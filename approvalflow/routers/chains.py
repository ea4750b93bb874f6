from typing import List

from fastapi import APIRouter, Depends, status

from approvalflow.db.dal import Database
from approvalflow.models import (
    ChainReorderIn,
    ChainStepIn,
    ChainStepOut,
    ChainStepUpdate,
    UserIdentity,
)
from approvalflow.routers.deps import get_current_user, get_db, require_admin
from approvalflow.services import configuration

router = APIRouter(prefix="/approval-chains", tags=["approval-chains"])


@router.get("/", response_model=List[ChainStepOut], summary="List the company chain in order")
async def list_chain(
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return configuration.list_chain(db, user.company_id)


@router.post(
    "/",
    response_model=ChainStepOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add a chain step",
)
async def add_step(
    payload: ChainStepIn,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return configuration.add_chain_step(db, admin.company_id, payload)


@router.put(
    "/order",
    response_model=List[ChainStepOut],
    summary="Renumber the whole chain following the given step order",
)
async def reorder(
    payload: ChainReorderIn,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return configuration.reorder_chain(db, admin.company_id, payload.step_ids)


@router.patch("/{step_id}", response_model=ChainStepOut, summary="Change a step's approver role")
async def update_step(
    step_id: int,
    payload: ChainStepUpdate,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return configuration.change_chain_step_role(
        db, admin.company_id, step_id, payload.approver_role
    )


@router.delete("/{step_id}", status_code=204, summary="Delete a chain step")
async def delete_step(
    step_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    configuration.remove_chain_step(db, admin.company_id, step_id)
    return None
