from fastapi import APIRouter, HTTPException
from typing import Dict, Any
import logging

from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.db.async_session import get_async_db_manager, check_async_database_health
from app.services.cache import cache_service

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/", response_model=Dict[str, Any])
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        dict: Basic health status
    """
    try:
        manager = await get_async_db_manager()
        connection_test = await manager.test_connection()
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")

    return {
        "status": "healthy" if connection_test else "unhealthy",
        "database": "connected" if connection_test else "disconnected",
        "cache": "enabled" if cache_service.enabled else "disabled",
        "whatsapp": "configured" if settings.GREEN_API_ID_INSTANCE and settings.GREEN_API_TOKEN_INSTANCE else "not configured",
        "service": "coachdesk-backend"
    }

@router.get("/database", response_model=Dict[str, Any])
async def database_health_check():
    """
    Database health check with connection pool information.

    Returns:
        dict: Database health status including pool details
    """
    health_status = await check_async_database_health()
    if health_status["status"] != "healthy":
        raise HTTPException(status_code=503, detail=health_status.get("error") or "Database unavailable")
    return health_status
