from typing import List

from fastapi import APIRouter, Depends, status

from approvalflow.core.errors import NotFoundError, ValidationError
from approvalflow.db.dal import Database
from approvalflow.models import ManagerRelationshipIn, ManagerRelationshipOut, UserIdentity
from approvalflow.routers.deps import get_current_user, get_db, require_admin

router = APIRouter(prefix="/manager-relationships", tags=["directory"])


@router.get("/", response_model=List[ManagerRelationshipOut], summary="List manager relationships")
async def list_relationships(
    user: UserIdentity = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    return db.list_manager_relationships(user.company_id)


@router.post(
    "/",
    response_model=ManagerRelationshipOut,
    status_code=status.HTTP_201_CREATED,
    summary="Assign a manager to an employee",
)
async def create_relationship(
    payload: ManagerRelationshipIn,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    for user_id in (payload.employee_id, payload.manager_id):
        member = db.get_user(user_id)
        if not member or member["company_id"] != admin.company_id:
            raise ValidationError(f"user {user_id} is not a member of this company")
    rel_id = db.create_manager_relationship(
        admin.company_id, payload.employee_id, payload.manager_id
    )
    return db.get_manager_relationship(rel_id)


@router.delete("/{relationship_id}", status_code=204, summary="Remove a manager relationship")
async def delete_relationship(
    relationship_id: int,
    admin: UserIdentity = Depends(require_admin),
    db: Database = Depends(get_db),
):
    rel = db.get_manager_relationship(relationship_id)
    if not rel or rel["company_id"] != admin.company_id:
        raise NotFoundError("manager relationship not found")
    db.delete_manager_relationship(relationship_id)
    return None
