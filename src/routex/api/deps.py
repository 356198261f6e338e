"""Shared request dependencies."""

from fastapi import Header, HTTPException, Request

from routex.assets import normalize_address
from routex.config import get_settings
from routex.errors import ValidationError
from routex.swap_engine.engine import SwapEngine


def get_swap_engine(request: Request) -> SwapEngine:
    engine = request.app.state.engine
    if engine is None:
        raise HTTPException(status_code=503, detail="Swap engine not initialized")
    return engine


async def get_caller(x_caller: str = Header(...)) -> str:
    """Address the request acts for, from the X-Caller header.

    The header is trusted as-is; swap endpoints pair it with
    ``require_api_token`` so only gateway clients holding the API token
    can name a caller.
    """
    try:
        return normalize_address(x_caller)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


async def require_admin_token(x_admin_token: str = Header(None)) -> bool:
    """Verify admin token from header.

    If ROUTEX_ADMIN_TOKEN is not set, allows access (dev mode).
    """
    settings = get_settings()

    if not settings.admin_token:
        return True

    if x_admin_token != settings.admin_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")

    return True


async def require_api_token(x_api_token: str = Header(None)) -> bool:
    """Verify the API token on caller-acting endpoints.

    If ROUTEX_API_TOKEN is not set, allows access (dev mode).
    """
    settings = get_settings()

    if not settings.api_token:
        return True

    if x_api_token != settings.api_token:
        raise HTTPException(status_code=401, detail="Invalid API token")

    return True
