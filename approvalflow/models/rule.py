from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import RuleType


class RuleIn(BaseModel):
    rule_type: RuleType
    percentage_threshold: Optional[float] = Field(None, ge=0, le=100)
    specific_approver_id: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None
    is_active: bool = True


class RuleUpdate(BaseModel):
    """Partial update model.

    Fields left out keep their stored value; fields sent as null are cleared.
    The merged rule is re-validated as a whole before it is persisted.
    """

    rule_type: Optional[RuleType] = None
    percentage_threshold: Optional[float] = Field(None, ge=0, le=100)
    specific_approver_id: Optional[int] = Field(None, gt=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _at_least_one(self) -> "RuleUpdate":
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided for update")
        return self


class RuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    rule_type: RuleType
    percentage_threshold: Optional[float] = None
    specific_approver_id: Optional[int] = None
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class SnapshotRuleOut(BaseModel):
    """A rule as it was frozen onto an expense at submission time."""

    approval_rule_id: Optional[int] = None
    position: int
    rule_type: RuleType
    percentage_threshold: Optional[float] = None
    specific_approver_id: Optional[int] = None
    is_active: bool
