from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import Role


class UserIdentity(BaseModel):
    """Resolved caller / approver identity supplied by the directory."""

    id: int
    company_id: int
    role: Role


class ManagerRelationshipIn(BaseModel):
    employee_id: int = Field(..., gt=0)
    manager_id: int = Field(..., gt=0)

    @model_validator(mode="after")
    def _not_self_managed(self) -> "ManagerRelationshipIn":
        if self.employee_id == self.manager_id:
            raise ValueError("an employee cannot be their own manager")
        return self


class ManagerRelationshipOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    employee_id: int
    manager_id: int
    created_at: Optional[datetime] = None
