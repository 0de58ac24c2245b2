"""
Health check endpoints for the API.
"""
from fastapi import APIRouter, Depends
from typing import Dict, Any
from datetime import datetime

from triview.config import settings
from triview.dependencies import get_session, ViewSession
from triview.schemas.api_schemas import StoreStatus

router = APIRouter()

@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.
    Returns API status and version information.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT
    }

@router.get("/health/store", response_model=StoreStatus)
async def store_health(session: ViewSession = Depends(get_session)):
    """
    Store version, entity count and selection size.
    """
    return StoreStatus(
        name=session.store.name,
        version=session.store.version,
        entities=len(session.store),
        selected=session.selection.count(),
    )
