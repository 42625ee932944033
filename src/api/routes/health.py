"""Health check routes."""
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from api.deps import get_readonly_db
from core.config import get_settings
from core.logging_config import get_logger
from core.utils import utcnow

router = APIRouter()
LOGGER = get_logger(__name__)
SETTINGS = get_settings()


@router.get("")
async def health_check() -> Dict[str, Any]:
    """Liveness probe; no dependencies."""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "environment": SETTINGS.environment,
    }


@router.get("/detailed")
async def detailed_health_check(db: Session = Depends(get_readonly_db)) -> Dict[str, Any]:
    """Database connectivity plus which AI providers are configured."""
    status = "healthy"
    checks: Dict[str, Any] = {}

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy", "connected": True}
    except SQLAlchemyError as e:
        LOGGER.error(f"Database health check failed: {e}")
        status = "unhealthy"
        checks["database"] = {"status": "unhealthy", "error": str(e)}

    checks["openai"] = {"configured": SETTINGS.is_openai_enabled()}
    checks["anthropic"] = {"configured": SETTINGS.is_anthropic_enabled()}

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "checks": checks,
    }
