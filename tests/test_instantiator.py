"""Tests for workflow instantiation on expense submission."""

import sqlite3

from approvalflow.db.seed import seed_demo_company
from approvalflow.services.instantiator import NO_APPROVERS_REASON, instantiate_workflow


def test_one_approval_per_resolved_step(db, org, submit):
    expense, result = submit(org["employee_id"])

    approvals = db.list_approvals(expense["id"])
    assert result.ok and not result.flagged
    assert len(approvals) == len(result.approvals) == 2
    assert [(a["approver_id"], a["sequence_order"]) for a in approvals] == [
        (org["manager_id"], 1),
        (org["admin_id"], 2),
    ]
    assert all(a["status"] == "pending" for a in approvals)
    assert db.get_expense(expense["id"])["status"] == "pending"


def test_employee_step_resolves_to_submitter(db, db_path, submit):
    ids = seed_demo_company(db_path, name="Solo", chain=("employee",))
    expense, result = submit(ids["employee_id"])
    assert [a["approver_id"] for a in result.approvals] == [ids["employee_id"]]


def test_missing_manager_skips_step_and_flags_expense(db, db_path, submit):
    ids = seed_demo_company(db_path, name="Flat", chain=("manager",), with_manager=False)
    expense, result = submit(ids["employee_id"])

    assert db.list_approvals(expense["id"]) == []
    assert result.ok
    assert result.flagged
    assert result.reason == NO_APPROVERS_REASON
    assert [(u.sequence_order, u.reason) for u in result.unresolved] == [(1, "no_manager")]
    assert db.get_expense(expense["id"])["status"] == "pending"


def test_partial_resolution_counts_only_resolved_steps(db, db_path, submit):
    ids = seed_demo_company(
        db_path, name="Partial", chain=("manager", "admin"), with_manager=False
    )
    expense, result = submit(ids["employee_id"])
    approvals = db.list_approvals(expense["id"])
    assert len(approvals) == 1 < len(db.list_chain_steps(ids["company_id"]))
    assert approvals[0]["approver_id"] == ids["admin_id"]
    assert approvals[0]["sequence_order"] == 2


def test_admin_without_admin_user_is_unresolved(db, submit):
    company_id = db.create_company("NoAdmin", "DE", "EUR")
    employee_id = db.create_user(company_id, "e@noadmin.test", "E", "employee")
    db.insert_chain_step(company_id, "admin", 1)

    _, result = submit(employee_id)
    assert result.approvals == []
    assert result.unresolved[0].reason == "no_admin"


def test_admin_choice_is_earliest_created(db, db_path, org, submit):
    later_admin = db.create_user(org["company_id"], "second@admin.test", "Second", "admin")
    assert db.find_admin(org["company_id"]) == org["admin_id"]

    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "UPDATE users SET created_at = '2000-01-01T00:00:00.000Z' WHERE id = ?",
            (later_admin,),
        )
    _, result = submit(org["employee_id"])
    assert result.approvals[-1]["approver_id"] == later_admin


def test_same_approver_twice_is_reported_not_duplicated(db, db_path, submit):
    ids = seed_demo_company(db_path, name="Twice", chain=("admin", "admin"))
    expense, result = submit(ids["employee_id"])

    assert len(db.list_approvals(expense["id"])) == 1
    assert [(u.sequence_order, u.reason) for u in result.unresolved] == [
        (2, "duplicate_approver")
    ]


def test_rule_snapshot_is_immune_to_later_edits(db, org, submit):
    first = db.insert_rule(org["company_id"], "percentage", percentage_threshold=60)
    db.insert_rule(org["company_id"], "percentage", percentage_threshold=10, is_active=False)
    second = db.insert_rule(
        org["company_id"], "specific_approver", specific_approver_id=org["admin_id"]
    )
    expense, result = submit(org["employee_id"])
    assert result.rules_snapshotted == 2

    db.update_rule(first, {"percentage_threshold": 99, "is_active": False})
    db.delete_rule(second)

    snapshot = db.list_rule_snapshot(expense["id"])
    assert [(r["position"], r["rule_type"], r["percentage_threshold"]) for r in snapshot] == [
        (1, "percentage", 60),
        (2, "specific_approver", None),
    ]
    assert all(r["is_active"] for r in snapshot)
    assert snapshot[1]["approval_rule_id"] is None
    assert snapshot[1]["specific_approver_id"] == org["admin_id"]


def test_failure_keeps_expense_and_writes_nothing(db, org, submit, monkeypatch):
    db.insert_rule(org["company_id"], "percentage", percentage_threshold=50)

    def broken_insert(*args, **kwargs):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(db, "insert_approval", broken_insert)
    expense, result = submit(org["employee_id"])

    assert not result.ok
    assert result.flagged
    assert "disk I/O error" in result.reason
    assert db.get_expense(expense["id"])["status"] == "pending"
    assert db.list_approvals(expense["id"]) == []
    assert db.list_rule_snapshot(expense["id"]) == []


def test_runs_only_once_per_expense(db, directory, org, submit, identity):
    expense, _ = submit(org["employee_id"])
    again = instantiate_workflow(db, directory, expense, identity(org["employee_id"]))
    assert not again.ok
    assert "already instantiated" in again.error
    assert len(db.list_approvals(expense["id"])) == 2
