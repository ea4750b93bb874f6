"""Database schema DDL definitions and initialization utilities.

Tables owned by the directory collaborator:
  - companies: tenant records
  - users: company members with a role (admin | manager | employee)
  - manager_relationships: employee -> manager mapping (one per employee/company)

Tables owned by the approval workflow:
  - expenses: submitted expenses; status is derived by the evaluator
  - approval_chain_steps: ordered approver roles per company
  - approval_rules: conditional approval rules per company
  - expense_approvals: one row per (expense, approver) created at submission
  - expense_approval_rules: frozen copy of the rules active at submission
  - metadata: key/value store (schema version)
"""

from __future__ import annotations
import sqlite3
from typing import Sequence
from pathlib import Path

BASIC_UTC_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"

COMPANIES_DDL = f"""
CREATE TABLE IF NOT EXISTS companies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    country TEXT NOT NULL,
    default_currency TEXT NOT NULL DEFAULT 'USD',
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

USERS_DDL = f"""
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL,
    email TEXT NOT NULL UNIQUE,
    full_name TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'employee' CHECK (role IN ('admin','manager','employee')),
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (company_id) REFERENCES companies(id) ON DELETE CASCADE
);
"""

MANAGER_RELATIONSHIPS_DDL = f"""
CREATE TABLE IF NOT EXISTS manager_relationships (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL,
    employee_id INTEGER NOT NULL,
    manager_id INTEGER NOT NULL,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    UNIQUE(employee_id, company_id),
    FOREIGN KEY (company_id) REFERENCES companies(id) ON DELETE CASCADE,
    FOREIGN KEY (employee_id) REFERENCES users(id) ON DELETE CASCADE,
    FOREIGN KEY (manager_id) REFERENCES users(id) ON DELETE CASCADE
);
"""

EXPENSES_DDL = f"""
CREATE TABLE IF NOT EXISTS expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL,
    submitter_id INTEGER NOT NULL,
    amount REAL NOT NULL,
    currency TEXT NOT NULL,
    description TEXT,
    expense_date TEXT NOT NULL, -- ISO date (YYYY-MM-DD)
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','approved','rejected')),
    version INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (company_id) REFERENCES companies(id) ON DELETE CASCADE,
    FOREIGN KEY (submitter_id) REFERENCES users(id)
);
"""

APPROVAL_CHAIN_STEPS_DDL = f"""
CREATE TABLE IF NOT EXISTS approval_chain_steps (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL,
    approver_role TEXT NOT NULL CHECK (approver_role IN ('admin','manager','employee')),
    sequence_order INTEGER NOT NULL,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    UNIQUE(company_id, sequence_order),
    FOREIGN KEY (company_id) REFERENCES companies(id) ON DELETE CASCADE
);
"""

APPROVAL_RULES_DDL = f"""
CREATE TABLE IF NOT EXISTS approval_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id INTEGER NOT NULL,
    rule_type TEXT NOT NULL CHECK (rule_type IN ('percentage','specific_approver','hybrid')),
    percentage_threshold REAL CHECK (
        percentage_threshold IS NULL OR (percentage_threshold >= 0 AND percentage_threshold <= 100)
    ),
    specific_approver_id INTEGER,
    description TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    FOREIGN KEY (company_id) REFERENCES companies(id) ON DELETE CASCADE,
    FOREIGN KEY (specific_approver_id) REFERENCES users(id) ON DELETE SET NULL
);
"""

EXPENSE_APPROVALS_DDL = f"""
CREATE TABLE IF NOT EXISTS expense_approvals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    expense_id INTEGER NOT NULL,
    approver_id INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','approved','rejected')),
    sequence_order INTEGER NOT NULL,
    comments TEXT,
    decided_at TEXT,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    UNIQUE(expense_id, approver_id),
    FOREIGN KEY (expense_id) REFERENCES expenses(id) ON DELETE CASCADE,
    FOREIGN KEY (approver_id) REFERENCES users(id)
);
"""

# Rule columns are copied so later edits to approval_rules never reach an
# existing expense.
EXPENSE_APPROVAL_RULES_DDL = f"""
CREATE TABLE IF NOT EXISTS expense_approval_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    expense_id INTEGER NOT NULL,
    approval_rule_id INTEGER,
    position INTEGER NOT NULL,
    rule_type TEXT NOT NULL,
    percentage_threshold REAL,
    specific_approver_id INTEGER,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW}),
    UNIQUE(expense_id, approval_rule_id),
    UNIQUE(expense_id, position),
    FOREIGN KEY (expense_id) REFERENCES expenses(id) ON DELETE CASCADE,
    FOREIGN KEY (approval_rule_id) REFERENCES approval_rules(id) ON DELETE SET NULL
);
"""

METADATA_DDL = f"""
CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT ({BASIC_UTC_NOW})
);
"""

USERS_COMPANY_ROLE_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_users_company_role ON users(company_id, role);"
)
EXPENSES_COMPANY_STATUS_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expenses_company_status ON expenses(company_id, status);"
)
APPROVAL_RULES_COMPANY_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_approval_rules_company ON approval_rules(company_id, is_active);"
)
EXPENSE_APPROVALS_EXPENSE_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expense_approvals_expense ON expense_approvals(expense_id, sequence_order);"
)
EXPENSE_APPROVALS_APPROVER_INDEX_DDL = (
    "CREATE INDEX IF NOT EXISTS idx_expense_approvals_approver ON expense_approvals(approver_id, status);"
)

DDL_ORDER: Sequence[str] = (
    COMPANIES_DDL,
    USERS_DDL,
    MANAGER_RELATIONSHIPS_DDL,
    EXPENSES_DDL,
    APPROVAL_CHAIN_STEPS_DDL,
    APPROVAL_RULES_DDL,
    EXPENSE_APPROVALS_DDL,
    EXPENSE_APPROVAL_RULES_DDL,
    METADATA_DDL,
)


def init_db(path: Path) -> None:
    """Create all tables idempotently.

    Parameters
    ----------
    path: Path to SQLite database file.
    """
    conn = sqlite3.connect(path)
    try:
        cur = conn.cursor()
        for ddl in DDL_ORDER:
            cur.execute(ddl)
        _ensure_indexes(cur)
        conn.commit()
    finally:
        conn.close()


def _ensure_indexes(cur: sqlite3.Cursor) -> None:
    """Create indexes, tolerating legacy schemas missing indexed columns."""
    for ddl in (
        USERS_COMPANY_ROLE_INDEX_DDL,
        EXPENSES_COMPANY_STATUS_INDEX_DDL,
        APPROVAL_RULES_COMPANY_INDEX_DDL,
        EXPENSE_APPROVALS_EXPENSE_INDEX_DDL,
        EXPENSE_APPROVALS_APPROVER_INDEX_DDL,
    ):
        try:
            cur.execute(ddl)
        except sqlite3.OperationalError:
            # Legacy tables may lack columns; migration handles re-creation.
            continue
