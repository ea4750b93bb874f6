from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from approvalflow.db.dal import Database
from approvalflow.db.migrate import SCHEMA_VERSION_KEY
from approvalflow.routers.deps import get_db

router = APIRouter(tags=["health"])


@router.get("/health", summary="Liveness and schema version")
async def health(db: Database = Depends(get_db)):
    version = db.get_metadata(SCHEMA_VERSION_KEY)
    return {
        "status": "ok",
        "schema_version": int(version) if version else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
