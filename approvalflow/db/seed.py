"""Seeding helpers for a demo organization.

`seed_demo_company` creates a company with one admin, one manager and one
employee reporting to that manager, plus a two-step chain
(manager, then admin). Returns the created ids so callers (tests, local
demos) can address them. Re-running creates a fresh company.
"""

from __future__ import annotations
from pathlib import Path
from typing import Dict, Sequence

from .dal import Database
from .migrate import apply_migrations

DEFAULT_CHAIN: Sequence[str] = ("manager", "admin")


def seed_demo_company(
    db_path: Path,
    name: str = "Acme Corp",
    chain: Sequence[str] = DEFAULT_CHAIN,
    with_manager: bool = True,
) -> Dict[str, int]:
    apply_migrations(db_path)  # ensure tables exist
    db = Database(db_path)
    company_id = db.create_company(name, "US", "USD")
    slug = f"{name.lower().replace(' ', '-')}-{company_id}"
    admin_id = db.create_user(company_id, f"admin@{slug}.test", "Ada Admin", "admin")
    manager_id = db.create_user(
        company_id, f"manager@{slug}.test", "Max Manager", "manager"
    )
    employee_id = db.create_user(
        company_id, f"employee@{slug}.test", "Eve Employee", "employee"
    )
    if with_manager:
        db.create_manager_relationship(company_id, employee_id, manager_id)
    for seq, role in enumerate(chain, start=1):
        db.insert_chain_step(company_id, role, seq)
    return {
        "company_id": company_id,
        "admin_id": admin_id,
        "manager_id": manager_id,
        "employee_id": employee_id,
    }
