"""
Health and readiness endpoints
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from variant_engine.core.config import config
from variant_engine.core.logger import logger
from variant_engine.db.mongodb import ping

router = APIRouter()

start_time = time.time()


@router.get("/health")
def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": config.service_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": config.service_version,
        "uptime": time.time() - start_time,
    }


@router.get("/health/ready")
async def readiness_check():
    """Readiness check: the service is ready once MongoDB answers a ping"""
    check_start = time.time()
    try:
        await ping()
    except Exception as e:
        logger.warning(
            f"Readiness check failed: {e}",
            metadata={"event": "readiness_check_failed", "database": config.mongodb_database},
        )
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "service": config.service_name,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "errors": [f"database: {e}"],
            },
        )

    return {
        "status": "ready",
        "service": config.service_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": [{
            "name": "database",
            "status": "healthy",
            "response_time_ms": round((time.time() - check_start) * 1000, 2),
        }],
    }
