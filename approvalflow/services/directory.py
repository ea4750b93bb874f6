"""Organization directory adapter.

The workflow only needs three questions answered by the directory: who is
this user, who manages this employee, and which admin stands in for the
`admin` chain role. `Directory` names that contract; `SqliteDirectory`
answers it from the directory tables living in the same database.
"""

from __future__ import annotations

from typing import Optional, Protocol

from approvalflow.core.errors import NotFoundError
from approvalflow.db.dal import Database
from approvalflow.models import UserIdentity


class Directory(Protocol):
    def resolve_user(self, user_id: int) -> Optional[UserIdentity]: ...

    def resolve_manager(self, employee_id: int, company_id: int) -> Optional[int]: ...

    def find_admin(self, company_id: int) -> Optional[int]: ...


class SqliteDirectory:
    def __init__(self, db: Database):
        self.db = db

    def resolve_user(self, user_id: int) -> Optional[UserIdentity]:
        row = self.db.get_user(user_id)
        if not row:
            return None
        return UserIdentity(id=row["id"], company_id=row["company_id"], role=row["role"])

    def resolve_manager(self, employee_id: int, company_id: int) -> Optional[int]:
        return self.db.get_manager_id(employee_id, company_id)

    def find_admin(self, company_id: int) -> Optional[int]:
        return self.db.find_admin(company_id)


def require_user(directory: Directory, user_id: int) -> UserIdentity:
    user = directory.resolve_user(user_id)
    if user is None:
        raise NotFoundError(f"user {user_id} not found")
    return user


__all__ = ["Directory", "SqliteDirectory", "require_user"]
