"""
Health check and status endpoints
"""
from fastapi import APIRouter, Request
from datetime import datetime, timezone
from orderhub.config import get_settings
from orderhub import __version__

settings = get_settings()

router = APIRouter()


@router.get("/health")
def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__
    }


@router.get("/status")
def get_status(request: Request):
    """Get system status"""
    service = getattr(request.app.state, "order_service", None)
    listener = getattr(request.app.state, "listener", None)
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "cache": {
            "orders": len(service.cache) if service else 0,
        },
        "orders": service.stats() if service else {},
        "listener": {
            "enabled": settings.enable_listener,
            "running": bool(listener and listener.running),
            "stream": settings.stream_name,
            "group": settings.stream_group,
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
