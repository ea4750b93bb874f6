"""FastAPI dependencies shared by the routers."""

from fastapi import Depends, HTTPException, Request

from approvalflow.core.config import Settings
from approvalflow.db.dal import Database
from approvalflow.models import UserIdentity
from approvalflow.services.directory import Directory, SqliteDirectory, require_user
from approvalflow.services.notifications import LoggingNotifier, Notifier


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(settings: Settings = Depends(get_app_settings)) -> Database:
    return Database(settings.db_path, busy_timeout=settings.db_busy_timeout_seconds)


def get_directory(db: Database = Depends(get_db)) -> Directory:
    return SqliteDirectory(db)


def get_notifier(request: Request) -> Notifier:
    return getattr(request.app.state, "notifier", None) or LoggingNotifier()


def get_current_user(
    request: Request,
    settings: Settings = Depends(get_app_settings),
    directory: Directory = Depends(get_directory),
) -> UserIdentity:
    """Caller identity, already authenticated upstream and passed as a header."""
    raw = request.headers.get(settings.identity_header)
    if raw is None:
        raise HTTPException(status_code=401, detail=f"missing {settings.identity_header} header")
    try:
        user_id = int(raw)
    except ValueError:
        raise HTTPException(status_code=401, detail=f"invalid {settings.identity_header} header")
    return require_user(directory, user_id)


def require_admin(user: UserIdentity = Depends(get_current_user)) -> UserIdentity:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="admin role required")
    return user
