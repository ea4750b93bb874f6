"""HTTP-level tests through the FastAPI application."""

from datetime import date

from approvalflow.db.dal import Database
from approvalflow.db.seed import seed_demo_company


def _expense_payload(**overrides):
    body = {
        "amount": 120.5,
        "currency": "eur",
        "description": "Train to Berlin",
        "expense_date": date.today().isoformat(),
    }
    body.update(overrides)
    return body


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["schema_version"] == 1


def test_identity_header_required(client, api_org):
    resp = client.get("/expenses/")
    assert resp.status_code == 401
    assert resp.json()["error"] == "unauthorized"


def test_unknown_user_is_not_found(client, api_org, as_user):
    resp = client.get("/expenses/", headers=as_user(424242))
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_full_sequential_flow(client, api_org, as_user, notifier):
    resp = client.post(
        "/expenses/", json=_expense_payload(), headers=as_user(api_org["employee_id"])
    )
    assert resp.status_code == 201
    body = resp.json()
    expense = body["expense"]
    assert expense["status"] == "pending"
    assert expense["currency"] == "EUR"
    assert body["workflow"]["approvals_created"] == 2
    assert body["workflow"]["flagged"] is False

    approvals = client.get(
        f"/expenses/{expense['id']}/approvals", headers=as_user(api_org["employee_id"])
    ).json()
    assert [a["approver_id"] for a in approvals] == [
        api_org["manager_id"],
        api_org["admin_id"],
    ]

    waiting = client.get(
        "/expenses/pending-for-approver", headers=as_user(api_org["manager_id"])
    ).json()
    assert [w["approval_id"] for w in waiting] == [approvals[0]["id"]]

    first = client.patch(
        f"/expense-approvals/{approvals[0]['id']}",
        json={"status": "approved", "comments": "fine"},
        headers=as_user(api_org["manager_id"]),
    )
    assert first.status_code == 200
    assert first.json()["expense_status"] == "pending"
    assert first.json()["next_approver_id"] == api_org["admin_id"]
    assert notifier.calls == [(expense["id"], approvals[1]["id"], api_org["admin_id"])]

    second = client.patch(
        f"/expense-approvals/{approvals[1]['id']}",
        json={"status": "approved"},
        headers=as_user(api_org["admin_id"]),
    )
    assert second.json()["expense_status"] == "approved"
    assert second.json()["status_changed"] is True

    fetched = client.get(
        f"/expenses/{expense['id']}", headers=as_user(api_org["employee_id"])
    ).json()
    assert fetched["status"] == "approved"
    assert fetched["version"] == 2


def test_unassigned_user_cannot_decide(client, api_org, as_user):
    expense = client.post(
        "/expenses/", json=_expense_payload(), headers=as_user(api_org["employee_id"])
    ).json()["expense"]
    approvals = client.get(
        f"/expenses/{expense['id']}/approvals", headers=as_user(api_org["employee_id"])
    ).json()
    resp = client.patch(
        f"/expense-approvals/{approvals[0]['id']}",
        json={"status": "approved"},
        headers=as_user(api_org["employee_id"]),
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"


def test_decision_on_missing_approval(client, api_org, as_user):
    resp = client.patch(
        "/expense-approvals/9999",
        json={"status": "approved"},
        headers=as_user(api_org["admin_id"]),
    )
    assert resp.status_code == 404
    assert resp.json() == {"error": "not_found", "detail": "approval not found"}


def test_invalid_decision_body(client, api_org, as_user):
    resp = client.patch(
        "/expense-approvals/1",
        json={"status": "maybe"},
        headers=as_user(api_org["admin_id"]),
    )
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


def test_expense_without_approvers_is_flagged(client, api_org, as_user):
    admin = as_user(api_org["admin_id"])
    rel = client.get("/manager-relationships/", headers=admin).json()[0]
    assert client.delete(f"/manager-relationships/{rel['id']}", headers=admin).status_code == 204
    chain = client.get("/approval-chains/", headers=admin).json()
    admin_step = [s for s in chain if s["approver_role"] == "admin"][0]
    assert client.delete(f"/approval-chains/{admin_step['id']}", headers=admin).status_code == 204

    body = client.post(
        "/expenses/", json=_expense_payload(), headers=as_user(api_org["employee_id"])
    ).json()
    assert body["workflow"]["approvals_created"] == 0
    assert body["workflow"]["flagged"] is True
    assert body["workflow"]["reason"] == "no approvers assigned"
    assert body["workflow"]["unresolved"] == [
        {"sequence_order": 1, "approver_role": "manager", "reason": "no_manager"}
    ]

    pending = client.get("/expenses/pending", headers=admin).json()
    assert [e["id"] for e in pending] == [body["expense"]["id"]]


def test_chain_configuration_endpoints(client, api_org, as_user):
    admin = as_user(api_org["admin_id"])
    created = client.post(
        "/approval-chains/",
        json={"approver_role": "employee", "sequence_order": 3},
        headers=admin,
    )
    assert created.status_code == 201

    dup = client.post(
        "/approval-chains/",
        json={"approver_role": "admin", "sequence_order": 3},
        headers=admin,
    )
    assert dup.status_code == 409
    assert dup.json()["error"] == "validation_error"

    ids = [s["id"] for s in client.get("/approval-chains/", headers=admin).json()]
    reordered = client.put(
        "/approval-chains/order", json={"step_ids": list(reversed(ids))}, headers=admin
    )
    assert reordered.status_code == 200
    assert [s["id"] for s in reordered.json()] == list(reversed(ids))
    assert [s["sequence_order"] for s in reordered.json()] == [1, 2, 3]

    patched = client.patch(
        f"/approval-chains/{ids[0]}", json={"approver_role": "admin"}, headers=admin
    )
    assert patched.json()["approver_role"] == "admin"


def test_configuration_requires_admin(client, api_org, as_user):
    manager = as_user(api_org["manager_id"])
    resp = client.post(
        "/approval-rules/",
        json={"rule_type": "percentage", "percentage_threshold": 50},
        headers=manager,
    )
    assert resp.status_code == 403
    assert client.get("/approval-rules/", headers=manager).status_code == 200


def test_rule_endpoints_and_snapshot(client, api_org, as_user):
    admin = as_user(api_org["admin_id"])
    bad = client.post(
        "/approval-rules/",
        json={"rule_type": "percentage", "percentage_threshold": 150},
        headers=admin,
    )
    assert bad.status_code == 422

    incomplete = client.post(
        "/approval-rules/", json={"rule_type": "hybrid", "percentage_threshold": 50}, headers=admin
    )
    assert incomplete.status_code == 400

    rule = client.post(
        "/approval-rules/",
        json={"rule_type": "specific_approver", "specific_approver_id": api_org["admin_id"]},
        headers=admin,
    ).json()
    assert rule["is_active"] is True

    expense = client.post(
        "/expenses/", json=_expense_payload(), headers=as_user(api_org["employee_id"])
    ).json()["expense"]

    off = client.patch(f"/approval-rules/{rule['id']}", json={"is_active": False}, headers=admin)
    assert off.json()["is_active"] is False

    snapshot = client.get(f"/expenses/{expense['id']}/rules", headers=admin).json()
    assert snapshot == [
        {
            "approval_rule_id": rule["id"],
            "position": 1,
            "rule_type": "specific_approver",
            "percentage_threshold": None,
            "specific_approver_id": api_org["admin_id"],
            "is_active": True,
        }
    ]

    approvals = client.get(f"/expenses/{expense['id']}/approvals", headers=admin).json()
    decided = client.patch(
        f"/expense-approvals/{approvals[1]['id']}", json={"status": "approved"}, headers=admin
    ).json()
    assert decided["expense_status"] == "approved"
    assert decided["matched_rule_position"] == 1

    assert client.delete(f"/approval-rules/{rule['id']}", headers=admin).status_code == 204
    assert client.get(f"/approval-rules/{rule['id']}", headers=admin).status_code == 404


def test_expenses_are_company_scoped(client, api_org, settings, as_user):
    other = seed_demo_company(settings.db_path, name="Globex")
    expense = client.post(
        "/expenses/", json=_expense_payload(), headers=as_user(api_org["employee_id"])
    ).json()["expense"]
    resp = client.get(f"/expenses/{expense['id']}", headers=as_user(other["admin_id"]))
    assert resp.status_code == 404
    assert client.get("/expenses/", headers=as_user(other["admin_id"])).json() == []


def test_manager_relationship_validation(client, api_org, as_user):
    admin = as_user(api_org["admin_id"])
    dup = client.post(
        "/manager-relationships/",
        json={"employee_id": api_org["employee_id"], "manager_id": api_org["admin_id"]},
        headers=admin,
    )
    assert dup.status_code == 409

    self_managed = client.post(
        "/manager-relationships/",
        json={"employee_id": api_org["manager_id"], "manager_id": api_org["manager_id"]},
        headers=admin,
    )
    assert self_managed.status_code == 422

    created = client.post(
        "/manager-relationships/",
        json={"employee_id": api_org["manager_id"], "manager_id": api_org["admin_id"]},
        headers=admin,
    )
    assert created.status_code == 201
    assert created.json()["company_id"] == api_org["company_id"]


def test_unknown_route_shape(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_designated_approver_outside_chain(client, api_org, as_user, settings):
    admin = as_user(api_org["admin_id"])
    cfo = Database(settings.db_path).create_user(
        api_org["company_id"], "cfo@acme.test", "Cfo", "manager"
    )
    zero = client.post(
        "/approval-rules/",
        json={"rule_type": "percentage", "percentage_threshold": 0},
        headers=admin,
    )
    assert zero.status_code == 400
    rule = client.post(
        "/approval-rules/",
        json={"rule_type": "specific_approver", "specific_approver_id": cfo},
        headers=admin,
    )
    assert rule.status_code == 201

    expense = client.post(
        "/expenses/", json=_expense_payload(), headers=as_user(api_org["employee_id"])
    ).json()["expense"]
    approvals = client.get(f"/expenses/{expense['id']}/approvals", headers=admin).json()

    resp = client.patch(
        f"/expense-approvals/{approvals[0]['id']}",
        json={"status": "approved"},
        headers=as_user(cfo),
    )
    assert resp.status_code == 200
    assert resp.json()["expense_status"] == "approved"
    assert resp.json()["matched_rule_position"] == 1

    for approver in ("manager_id", "admin_id"):
        waiting = client.get(
            "/expenses/pending-for-approver", headers=as_user(api_org[approver])
        ).json()
        assert waiting == []
