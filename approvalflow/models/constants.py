"""Domain constants and enumerations for validation.

Kept as plain sets/literals; the database CHECK constraints mirror them.
"""

from typing import Literal, Set

ROLES: Set[str] = {"admin", "manager", "employee"}
RULE_TYPES: Set[str] = {"percentage", "specific_approver", "hybrid"}
STATUSES: Set[str] = {"pending", "approved", "rejected"}
TERMINAL_STATUSES: Set[str] = {"approved", "rejected"}
DECISIONS: Set[str] = {"approved", "rejected"}

Role = Literal["admin", "manager", "employee"]
RuleType = Literal["percentage", "specific_approver", "hybrid"]
Status = Literal["pending", "approved", "rejected"]
Decision = Literal["approved", "rejected"]

# Reasons reported for chain steps that did not produce an approval row
UNRESOLVED_NO_MANAGER = "no_manager"
UNRESOLVED_NO_ADMIN = "no_admin"
UNRESOLVED_DUPLICATE = "duplicate_approver"
