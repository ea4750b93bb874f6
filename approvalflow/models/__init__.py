"""Pydantic domain models for the expense approval workflow."""

from .constants import (
    ROLES,
    RULE_TYPES,
    STATUSES,
    TERMINAL_STATUSES,
    DECISIONS,
)  # re-export
from .expense import ExpenseIn, ExpenseOut, ExpenseCreateResponse, WorkflowSummary
from .chain import ChainStepIn, ChainStepOut, ChainStepUpdate, ChainReorderIn
from .rule import RuleIn, RuleOut, RuleUpdate, SnapshotRuleOut
from .approval import ApprovalDecisionIn, ApprovalOut, DecisionOut
from .directory import ManagerRelationshipIn, ManagerRelationshipOut, UserIdentity

__all__ = [
    "ROLES",
    "RULE_TYPES",
    "STATUSES",
    "TERMINAL_STATUSES",
    "DECISIONS",
    "ExpenseIn",
    "ExpenseOut",
    "ExpenseCreateResponse",
    "WorkflowSummary",
    "ChainStepIn",
    "ChainStepOut",
    "ChainStepUpdate",
    "ChainReorderIn",
    "RuleIn",
    "RuleOut",
    "RuleUpdate",
    "SnapshotRuleOut",
    "ApprovalDecisionIn",
    "ApprovalOut",
    "DecisionOut",
    "ManagerRelationshipIn",
    "ManagerRelationshipOut",
    "UserIdentity",
]
