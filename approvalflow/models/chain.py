from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import Role


class ChainStepIn(BaseModel):
    approver_role: Role
    sequence_order: int = Field(..., gt=0)


class ChainStepUpdate(BaseModel):
    approver_role: Role


class ChainStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    approver_role: Role
    sequence_order: int
    created_at: datetime
    updated_at: datetime


class ChainReorderIn(BaseModel):
    """Full ordered list of step ids; positions become sequence 1..n."""

    step_ids: List[int] = Field(..., min_length=1)

    @field_validator("step_ids")
    @classmethod
    def _no_duplicates(cls, v: List[int]) -> List[int]:
        if len(set(v)) != len(v):
            raise ValueError("step_ids must not contain duplicates")
        return v
