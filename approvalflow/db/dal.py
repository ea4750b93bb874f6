"""Data Access Layer for the approval workflow.

Responsibilities
----------------
- Provide CRUD helpers for the directory tables (companies, users, manager
  relationships) so the directory adapter and seeding have one access path.
- Persist chain steps, rules, expenses, approval rows and rule snapshots.
- Offer `transaction()` so services can run a multi-row read-modify-write on
  one consistent view. Most helpers accept an optional cursor: when given they
  run inside the caller's transaction and never commit on their own.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import sqlite3
from typing import Any, Dict, Iterator, List, Optional, Sequence

from approvalflow.core.errors import NotFoundError, ValidationError
from approvalflow.models import ExpenseIn

UTC_NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ','now')"
RULE_COLUMNS = (
    "rule_type",
    "percentage_threshold",
    "specific_approver_id",
    "description",
    "is_active",
)


def _row(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    return dict(row) if row else None


class Database:
    def __init__(self, db_path: Path, busy_timeout: float = 5.0):
        self.db_path = db_path
        self.busy_timeout = busy_timeout

    # ------------------------------------------------------------------
    # Connection helpers
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run a block inside one write transaction.

        BEGIN IMMEDIATE takes the database write lock up front, so every read
        made through the yielded cursor sees the same state until COMMIT.
        Any exception rolls the whole block back and propagates.
        """
        conn = self._connect()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE")
            cur = conn.cursor()
            try:
                yield cur
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def _use(self, cur: Optional[sqlite3.Cursor]) -> Iterator[sqlite3.Cursor]:
        """Yield the caller's cursor, or a short-lived one that commits on exit."""
        if cur is not None:
            yield cur
            return
        conn = self._connect()
        try:
            with conn:
                yield conn.cursor()
        finally:
            conn.close()

    def get_metadata(self, key: str) -> Optional[str]:
        with self._use(None) as cur:
            cur.execute("SELECT value FROM metadata WHERE key = ?", (key,))
            row = cur.fetchone()
            return row[0] if row else None

    # ------------------------------------------------------------------
    # Directory: companies & users
    def create_company(
        self, name: str, country: str, default_currency: str = "USD"
    ) -> int:
        with self._use(None) as cur:
            cur.execute(
                "INSERT INTO companies (name, country, default_currency) VALUES (?, ?, ?)",
                (name, country, default_currency.upper()),
            )
            return int(cur.lastrowid)

    def get_company(self, company_id: int) -> Optional[Dict[str, Any]]:
        with self._use(None) as cur:
            cur.execute("SELECT * FROM companies WHERE id = ?", (company_id,))
            return _row(cur.fetchone())

    def create_user(
        self, company_id: int, email: str, full_name: str, role: str = "employee"
    ) -> int:
        with self._use(None) as cur:
            try:
                cur.execute(
                    f"""
                    INSERT INTO users (company_id, email, full_name, role, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ({UTC_NOW_SQL}), ({UTC_NOW_SQL}))
                    """,
                    (company_id, email.strip().lower(), full_name, role),
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError(f"cannot create user: {exc}", conflict=True) from exc
            return int(cur.lastrowid)

    def get_user(
        self, user_id: int, cur: Optional[sqlite3.Cursor] = None
    ) -> Optional[Dict[str, Any]]:
        with self._use(cur) as c:
            c.execute(
                "SELECT id, company_id, email, full_name, role, created_at FROM users WHERE id = ?",
                (user_id,),
            )
            return _row(c.fetchone())

    def list_users(self, company_id: int) -> List[Dict[str, Any]]:
        with self._use(None) as cur:
            cur.execute(
                "SELECT id, company_id, email, full_name, role, created_at FROM users "
                "WHERE company_id = ? ORDER BY id",
                (company_id,),
            )
            return [dict(r) for r in cur.fetchall()]

    def find_admin(
        self, company_id: int, cur: Optional[sqlite3.Cursor] = None
    ) -> Optional[int]:
        """Earliest-created admin of the company; ties go to the lowest id."""
        with self._use(cur) as c:
            c.execute(
                """
                SELECT id FROM users
                WHERE company_id = ? AND role = 'admin'
                ORDER BY created_at ASC, id ASC
                LIMIT 1
                """,
                (company_id,),
            )
            row = c.fetchone()
            return int(row[0]) if row else None

    # ------------------------------------------------------------------
    # Directory: manager relationships
    def create_manager_relationship(
        self, company_id: int, employee_id: int, manager_id: int
    ) -> int:
        with self._use(None) as cur:
            try:
                cur.execute(
                    """
                    INSERT INTO manager_relationships (company_id, employee_id, manager_id)
                    VALUES (?, ?, ?)
                    """,
                    (company_id, employee_id, manager_id),
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError(
                    "employee already has a manager in this company", conflict=True
                ) from exc
            return int(cur.lastrowid)

    def get_manager_relationship(self, relationship_id: int) -> Optional[Dict[str, Any]]:
        with self._use(None) as cur:
            cur.execute(
                "SELECT * FROM manager_relationships WHERE id = ?", (relationship_id,)
            )
            return _row(cur.fetchone())

    def get_manager_id(
        self, employee_id: int, company_id: int, cur: Optional[sqlite3.Cursor] = None
    ) -> Optional[int]:
        with self._use(cur) as c:
            c.execute(
                """
                SELECT manager_id FROM manager_relationships
                WHERE employee_id = ? AND company_id = ?
                """,
                (employee_id, company_id),
            )
            row = c.fetchone()
            return int(row[0]) if row else None

    def list_manager_relationships(self, company_id: int) -> List[Dict[str, Any]]:
        with self._use(None) as cur:
            cur.execute(
                "SELECT * FROM manager_relationships WHERE company_id = ? ORDER BY id",
                (company_id,),
            )
            return [dict(r) for r in cur.fetchall()]

    def delete_manager_relationship(self, relationship_id: int) -> None:
        with self._use(None) as cur:
            cur.execute(
                "DELETE FROM manager_relationships WHERE id = ?", (relationship_id,)
            )
            if cur.rowcount == 0:
                raise NotFoundError("manager relationship not found")

    # ------------------------------------------------------------------
    # Expenses
    def insert_expense(
        self,
        company_id: int,
        submitter_id: int,
        expense: ExpenseIn,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> int:
        with self._use(cur) as c:
            c.execute(
                f"""
                INSERT INTO expenses (
                    company_id, submitter_id, amount, currency, description,
                    expense_date, status, version, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, 'pending', 1, ({UTC_NOW_SQL}), ({UTC_NOW_SQL}))
                """,
                (
                    company_id,
                    submitter_id,
                    expense.amount,
                    expense.currency,
                    expense.description,
                    expense.expense_date.isoformat(),
                ),
            )
            return int(c.lastrowid)

    def get_expense(
        self, expense_id: int, cur: Optional[sqlite3.Cursor] = None
    ) -> Optional[Dict[str, Any]]:
        with self._use(cur) as c:
            c.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,))
            return _row(c.fetchone())

    def list_expenses(
        self, company_id: int, status: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        clauses = ["company_id = ?"]
        params: List[Any] = [company_id]
        if status:
            clauses.append("status = ?")
            params.append(status)
        where = " WHERE " + " AND ".join(clauses)
        with self._use(None) as cur:
            cur.execute(
                f"SELECT * FROM expenses{where} ORDER BY created_at DESC, id DESC",
                params,
            )
            return [dict(r) for r in cur.fetchall()]

    def update_expense_status(
        self,
        expense_id: int,
        status: str,
        expected_version: int,
        cur: sqlite3.Cursor,
    ) -> bool:
        """Compare-and-set the status; False when the version moved on."""
        cur.execute(
            f"""
            UPDATE expenses
            SET status = ?, version = version + 1, updated_at = ({UTC_NOW_SQL})
            WHERE id = ? AND version = ?
            """,
            (status, expense_id, expected_version),
        )
        return cur.rowcount == 1

    # ------------------------------------------------------------------
    # Approval chain steps
    def list_chain_steps(
        self, company_id: int, cur: Optional[sqlite3.Cursor] = None
    ) -> List[Dict[str, Any]]:
        with self._use(cur) as c:
            c.execute(
                """
                SELECT * FROM approval_chain_steps
                WHERE company_id = ?
                ORDER BY sequence_order ASC
                """,
                (company_id,),
            )
            return [dict(r) for r in c.fetchall()]

    def get_chain_step(self, step_id: int) -> Optional[Dict[str, Any]]:
        with self._use(None) as cur:
            cur.execute("SELECT * FROM approval_chain_steps WHERE id = ?", (step_id,))
            return _row(cur.fetchone())

    def insert_chain_step(
        self, company_id: int, approver_role: str, sequence_order: int
    ) -> int:
        with self._use(None) as cur:
            try:
                cur.execute(
                    f"""
                    INSERT INTO approval_chain_steps (
                        company_id, approver_role, sequence_order, created_at, updated_at
                    ) VALUES (?, ?, ?, ({UTC_NOW_SQL}), ({UTC_NOW_SQL}))
                    """,
                    (company_id, approver_role, sequence_order),
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError(
                    f"sequence_order {sequence_order} already used in this company's chain",
                    conflict=True,
                ) from exc
            return int(cur.lastrowid)

    def update_chain_step_role(self, step_id: int, approver_role: str) -> None:
        with self._use(None) as cur:
            cur.execute(
                f"""
                UPDATE approval_chain_steps
                SET approver_role = ?, updated_at = ({UTC_NOW_SQL})
                WHERE id = ?
                """,
                (approver_role, step_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError("approval chain step not found")

    def delete_chain_step(self, step_id: int) -> None:
        with self._use(None) as cur:
            cur.execute("DELETE FROM approval_chain_steps WHERE id = ?", (step_id,))
            if cur.rowcount == 0:
                raise NotFoundError("approval chain step not found")

    def reorder_chain_steps(self, company_id: int, step_ids: Sequence[int]) -> None:
        """Renumber the whole chain to 1..n following `step_ids` atomically.

        Steps are first parked on negative numbers so no intermediate state
        collides with the (company_id, sequence_order) unique index.
        """
        with self.transaction() as cur:
            cur.execute(
                "SELECT id FROM approval_chain_steps WHERE company_id = ?",
                (company_id,),
            )
            existing = {int(r[0]) for r in cur.fetchall()}
            requested = list(step_ids)
            if set(requested) != existing or len(requested) != len(existing):
                raise ValidationError(
                    "reorder must list every chain step of the company exactly once"
                )
            for idx, step_id in enumerate(requested, start=1):
                cur.execute(
                    "UPDATE approval_chain_steps SET sequence_order = ? WHERE id = ?",
                    (-idx, step_id),
                )
            cur.execute(
                f"""
                UPDATE approval_chain_steps
                SET sequence_order = -sequence_order, updated_at = ({UTC_NOW_SQL})
                WHERE company_id = ?
                """,
                (company_id,),
            )

    # ------------------------------------------------------------------
    # Approval rules
    def list_rules(
        self,
        company_id: int,
        active_only: bool = False,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> List[Dict[str, Any]]:
        query = "SELECT * FROM approval_rules WHERE company_id = ?"
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY id ASC"
        with self._use(cur) as c:
            c.execute(query, (company_id,))
            return [dict(r) for r in c.fetchall()]

    def get_rule(self, rule_id: int) -> Optional[Dict[str, Any]]:
        with self._use(None) as cur:
            cur.execute("SELECT * FROM approval_rules WHERE id = ?", (rule_id,))
            return _row(cur.fetchone())

    def insert_rule(
        self,
        company_id: int,
        rule_type: str,
        percentage_threshold: Optional[float] = None,
        specific_approver_id: Optional[int] = None,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> int:
        with self._use(None) as cur:
            try:
                cur.execute(
                    f"""
                    INSERT INTO approval_rules (
                        company_id, rule_type, percentage_threshold, specific_approver_id,
                        description, is_active, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ({UTC_NOW_SQL}), ({UTC_NOW_SQL}))
                    """,
                    (
                        company_id,
                        rule_type,
                        percentage_threshold,
                        specific_approver_id,
                        description,
                        1 if is_active else 0,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError(f"invalid approval rule: {exc}") from exc
            return int(cur.lastrowid)

    def update_rule(self, rule_id: int, values: Dict[str, Any]) -> None:
        fields = [k for k in RULE_COLUMNS if k in values]
        if not fields:
            return
        params: List[Any] = []
        for k in fields:
            v = values[k]
            params.append((1 if v else 0) if k == "is_active" else v)
        assignments = ", ".join(f"{k} = ?" for k in fields)
        with self._use(None) as cur:
            try:
                cur.execute(
                    f"UPDATE approval_rules SET {assignments}, updated_at = ({UTC_NOW_SQL}) WHERE id = ?",
                    (*params, rule_id),
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError(f"invalid approval rule: {exc}") from exc
            if cur.rowcount == 0:
                raise NotFoundError("approval rule not found")

    def delete_rule(self, rule_id: int) -> None:
        with self._use(None) as cur:
            cur.execute("DELETE FROM approval_rules WHERE id = ?", (rule_id,))
            if cur.rowcount == 0:
                raise NotFoundError("approval rule not found")

    # ------------------------------------------------------------------
    # Expense approvals
    def insert_approval(
        self,
        expense_id: int,
        approver_id: int,
        sequence_order: int,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> int:
        with self._use(cur) as c:
            try:
                c.execute(
                    f"""
                    INSERT INTO expense_approvals (
                        expense_id, approver_id, status, sequence_order, created_at, updated_at
                    ) VALUES (?, ?, 'pending', ?, ({UTC_NOW_SQL}), ({UTC_NOW_SQL}))
                    """,
                    (expense_id, approver_id, sequence_order),
                )
            except sqlite3.IntegrityError as exc:
                raise ValidationError(
                    f"approver {approver_id} already assigned to expense {expense_id}",
                    conflict=True,
                ) from exc
            return int(c.lastrowid)

    def get_approval(
        self, approval_id: int, cur: Optional[sqlite3.Cursor] = None
    ) -> Optional[Dict[str, Any]]:
        with self._use(cur) as c:
            c.execute("SELECT * FROM expense_approvals WHERE id = ?", (approval_id,))
            return _row(c.fetchone())

    def list_approvals(
        self, expense_id: int, cur: Optional[sqlite3.Cursor] = None
    ) -> List[Dict[str, Any]]:
        with self._use(cur) as c:
            c.execute(
                """
                SELECT * FROM expense_approvals
                WHERE expense_id = ?
                ORDER BY sequence_order ASC, id ASC
                """,
                (expense_id,),
            )
            return [dict(r) for r in c.fetchall()]

    def record_decision(
        self,
        approval_id: int,
        status: str,
        comments: Optional[str],
        cur: sqlite3.Cursor,
    ) -> None:
        cur.execute(
            f"""
            UPDATE expense_approvals
            SET status = ?, comments = ?, decided_at = ({UTC_NOW_SQL}),
                updated_at = ({UTC_NOW_SQL})
            WHERE id = ?
            """,
            (status, comments, approval_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError("approval not found")

    def list_pending_for_approver(self, approver_id: int) -> List[Dict[str, Any]]:
        """Pending approval rows of `approver_id` on expenses still awaiting a decision."""
        with self._use(None) as cur:
            cur.execute(
                """
                SELECT e.*, a.id AS approval_id, a.status AS approval_status,
                       a.sequence_order AS approval_sequence
                FROM expense_approvals a
                JOIN expenses e ON e.id = a.expense_id
                WHERE a.approver_id = ? AND a.status = 'pending' AND e.status = 'pending'
                ORDER BY e.created_at DESC, a.sequence_order ASC
                """,
                (approver_id,),
            )
            return [dict(r) for r in cur.fetchall()]

    # ------------------------------------------------------------------
    # Rule snapshot
    def insert_rule_snapshot(
        self,
        expense_id: int,
        rule: Dict[str, Any],
        position: int,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> None:
        with self._use(cur) as c:
            c.execute(
                """
                INSERT INTO expense_approval_rules (
                    expense_id, approval_rule_id, position, rule_type,
                    percentage_threshold, specific_approver_id, is_active
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    expense_id,
                    rule["id"],
                    position,
                    rule["rule_type"],
                    rule.get("percentage_threshold"),
                    rule.get("specific_approver_id"),
                    1 if rule.get("is_active", True) else 0,
                ),
            )

    def list_rule_snapshot(
        self,
        expense_id: int,
        active_only: bool = False,
        cur: Optional[sqlite3.Cursor] = None,
    ) -> List[Dict[str, Any]]:
        query = (
            "SELECT approval_rule_id, position, rule_type, percentage_threshold, "
            "specific_approver_id, is_active FROM expense_approval_rules WHERE expense_id = ?"
        )
        if active_only:
            query += " AND is_active = 1"
        query += " ORDER BY position ASC"
        with self._use(cur) as c:
            c.execute(query, (expense_id,))
            return [dict(r) for r in c.fetchall()]


__all__ = ["Database"]
