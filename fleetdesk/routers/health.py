"""
System health check endpoint.
Returns status of backend + DB + remote record store (when configured).
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from fleetdesk.database import get_db
from fleetdesk.config import settings
from fleetdesk.services.session_service import WorkflowSessionManager, get_sessions
from datetime import datetime, timezone

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db), sessions: WorkflowSessionManager = Depends(get_sessions)):
    result = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backend": "ok",
        "database": "unknown",
        "record_store": settings.RECORD_STORE_BACKEND,
        "active_sessions": len(sessions),
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    if settings.RECORD_STORE_BACKEND == "http":
        try:
            resp = requests.get(f"{settings.RECORD_STORE_URL.rstrip('/')}/api/deployments",
                                params={"limit": 1}, timeout=3)
            result["record_store"] = "ok" if resp.status_code == 200 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            result["record_store"] = "unreachable"
            result["status"] = "degraded"
        except Exception as e:
            result["record_store"] = f"error: {str(e)}"
            result["status"] = "degraded"

    return result
