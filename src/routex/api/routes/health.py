"""Health check endpoints."""

from fastapi import APIRouter, Request

from routex.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "routex"}


@router.get("/health/detailed")
async def detailed_health(request: Request):
    """Detailed health check with configuration and engine state."""
    settings = get_settings()
    engine = request.app.state.engine
    data = {
        "status": "healthy" if engine is not None else "starting",
        "service": "routex",
        "version": "0.1.0",
        "config": settings.get_safe_dict(),
    }
    if engine is not None:
        data["engine"] = {
            "paused": engine.is_paused,
            "routes": len(engine.store.routes),
            "backends": len(engine.store.backends),
            "protocols": engine.protocol_status(),
        }
    return data
