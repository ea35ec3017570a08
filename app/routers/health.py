"""Health and readiness endpoints for deployment platforms."""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import services
from app.config import get_settings
from database.connection import get_db
from utils.time import iso_utc

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness check - always ok while the process is serving."""
    settings = get_settings()
    return {
        "status": "ok",
        "ts": iso_utc(),
        "environment": settings.environment,
        "classifier": type(services.intent_classifier).__name__,
        "whatsapp_configured": bool(getattr(services.whatsapp_client, "enabled", False)),
    }


@router.get("/readiness")
async def readiness(db: Session = Depends(get_db)):
    """Readiness check - checks database connectivity."""
    try:
        db.execute(text("SELECT 1"))
        return {"ready": True, "ts": iso_utc(), "database": "connected"}
    except SQLAlchemyError as e:
        return {"ready": False, "ts": iso_utc(), "database": f"error: {str(e)}"}
