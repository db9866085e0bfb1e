"""Health check endpoints."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime, timezone
import time

from app.config.database import get_db
from app.config.celery import celery_app
from app.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

API_VERSION = "1.0.0"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic liveness check.

    Use `/api/v1/health/detailed` to include database and Celery status.
    """
    return HealthResponse(status="healthy", version=API_VERSION)


@router.get("/health/detailed")
async def detailed_health_check(db: Session = Depends(get_db)):
    """
    Detailed health check including the database and Celery workers.
    """
    health_status = {
        "status": "healthy",
        "version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "components": {},
    }

    try:
        start = time.time()
        db.execute(text("SELECT 1"))
        response_time = (time.time() - start) * 1000
        health_status["components"]["database"] = {
            "status": "healthy",
            "response_time_ms": round(response_time, 2),
        }
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        logger.error("Database health check failed", error=str(e))

    try:
        active_workers = celery_app.control.inspect(timeout=1.0).active()
        if active_workers:
            health_status["components"]["celery"] = {
                "status": "healthy",
                "active_workers": len(active_workers),
                "worker_names": list(active_workers.keys()),
            }
        else:
            health_status["status"] = "degraded"
            health_status["components"]["celery"] = {
                "status": "unhealthy",
                "error": "No active workers found",
            }
            logger.warning("Celery health check: No active workers")
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["components"]["celery"] = {"status": "unhealthy", "error": str(e)}
        logger.error("Celery health check failed", error=str(e))

    return health_status
