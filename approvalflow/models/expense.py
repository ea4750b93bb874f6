from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import date, datetime

from .constants import Status


class ExpenseIn(BaseModel):
    amount: float = Field(..., gt=0)
    currency: str = Field(..., min_length=3, max_length=3)
    description: Optional[str] = None
    expense_date: date

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError("currency must be a 3-letter code")
        return v.upper()

    @field_validator("expense_date")
    @classmethod
    def date_not_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("expense_date cannot be in the future")
        return v


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: float
    currency: str
    description: Optional[str] = None
    expense_date: date
    company_id: int
    submitter_id: int
    status: Status
    version: int
    created_at: datetime
    updated_at: datetime


class UnresolvedStepOut(BaseModel):
    sequence_order: int
    approver_role: str
    reason: str


class WorkflowSummary(BaseModel):
    approvals_created: int
    rules_snapshotted: int
    unresolved: List[UnresolvedStepOut] = []
    flagged: bool
    reason: Optional[str] = None


class ExpenseCreateResponse(BaseModel):
    expense: ExpenseOut
    workflow: WorkflowSummary
