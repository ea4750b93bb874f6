from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import Decision, Status


class ApprovalDecisionIn(BaseModel):
    status: Decision
    comments: Optional[str] = Field(None, max_length=2000)


class ApprovalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    expense_id: int
    approver_id: int
    status: Status
    sequence_order: int
    comments: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class DecisionOut(BaseModel):
    approval: ApprovalOut
    expense_status: Status
    status_changed: bool
    matched_rule_position: Optional[int] = None
    next_approver_id: Optional[int] = None
    replayed: bool = False
