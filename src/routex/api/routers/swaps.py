"""Swap execution and read-only view endpoints."""

from fastapi import APIRouter, Depends, Query

from routex.api.deps import get_caller, get_swap_engine, require_api_token
from routex.api.schemas import (
    AmountResponse,
    AutoSwapBody,
    BackendEntry,
    BackendSwapBody,
    PoolStatusResponse,
    RouteResponse,
    SelectorEntry,
    SlippageResponse,
    SwapBody,
    SwapRecordEntry,
    SwapResponse,
)
from routex.assets import normalize_address
from routex.ledger.database import get_db
from routex.ledger.repository import SwapRecordRepository
from routex.routing.models import SwapRequest
from routex.safety import get_blocked_attempts
from routex.swap_engine.engine import SwapEngine

router = APIRouter()


@router.post("/swaps", response_model=SwapResponse)
async def swap(
    body: SwapBody,
    _: bool = Depends(require_api_token),
    caller: str = Depends(get_caller),
    engine: SwapEngine = Depends(get_swap_engine),
) -> SwapResponse:
    """Swap through the configured route."""
    request = SwapRequest(
        asset_in=body.asset_in,
        asset_out=body.asset_out,
        amount_in=body.amount_in,
        backend=body.backend,
        min_amount_out=body.min_amount_out,
        route_data=body.route_bytes(),
    )
    result = await engine.swap_assets(request, caller, value=body.value)
    return SwapResponse.from_result(result)


@router.post("/swaps/auto", response_model=SwapResponse)
async def auto_swap(
    body: AutoSwapBody,
    _: bool = Depends(require_api_token),
    caller: str = Depends(get_caller),
    engine: SwapEngine = Depends(get_swap_engine),
) -> SwapResponse:
    """Swap via direct, reverse or bridged route."""
    result = await engine.auto_swap_assets(
        body.asset_in,
        body.asset_out,
        body.amount_in,
        body.min_amount_out,
        caller,
        value=body.value,
    )
    return SwapResponse.from_result(result)


@router.get("/swaps", response_model=list[SwapRecordEntry])
async def recent_swaps(limit: int = Query(50, ge=1, le=500), caller: str = Query(None)):
    """Recently persisted swap records."""
    async with get_db() as session:
        records = await SwapRecordRepository(session).list_recent(limit=limit, caller=caller)
        return [
            SwapRecordEntry(
                route_hash=r.route_hash,
                caller=r.caller,
                asset_in=r.asset_in,
                asset_out=r.asset_out,
                amount_in=r.amount_in,
                amount_out=r.amount_out,
                backend=r.backend,
                used_fallback=r.used_fallback,
                timestamp=r.timestamp,
            )
            for r in records
        ]


@router.post("/backends/swap", response_model=AmountResponse)
async def backend_swap(
    body: BackendSwapBody,
    _: bool = Depends(require_api_token),
    caller: str = Depends(get_caller),
    engine: SwapEngine = Depends(get_swap_engine),
) -> AmountResponse:
    """Forward call data to a registered backend."""
    amount_out = await engine.execute_backend_swap(
        body.backend,
        body.asset_in,
        body.asset_out,
        body.amount_in,
        body.call_bytes(),
        secret=body.secret,
        caller=caller,
    )
    return AmountResponse(amount_out=str(amount_out))


@router.get("/routes/{asset_in}/{asset_out}", response_model=RouteResponse)
async def get_route(asset_in: str, asset_out: str, engine: SwapEngine = Depends(get_swap_engine)):
    route = engine.get_route(normalize_address(asset_in), normalize_address(asset_out))
    if route is None:
        return RouteResponse(exists=False)
    return RouteResponse(
        exists=True,
        kind=route.kind,
        backend=route.backend_address,
        route_data="0x" + route.route_data().hex(),
    )


@router.get("/slippage/{asset_in}/{asset_out}", response_model=SlippageResponse)
async def get_slippage(asset_in: str, asset_out: str, engine: SwapEngine = Depends(get_swap_engine)):
    """Tolerance applied when no fresh quote is available."""
    bps, source = engine.slippage_in_effect(normalize_address(asset_in), normalize_address(asset_out))
    return SlippageResponse(bps=bps, source=source)


@router.get("/pools/{pool}", response_model=PoolStatusResponse)
async def get_pool(pool: str, engine: SwapEngine = Depends(get_swap_engine)):
    return PoolStatusResponse(**engine.pool_status(pool))


@router.get("/protocols")
async def get_protocols(engine: SwapEngine = Depends(get_swap_engine)) -> dict[str, bool]:
    return engine.protocol_status()


@router.get("/backends", response_model=list[BackendEntry])
async def list_backends(engine: SwapEngine = Depends(get_swap_engine)):
    return [
        BackendEntry(address=entry.address, name=entry.name, registered=entry.registered)
        for entry in engine.registered_backends()
    ]


@router.get("/selectors", response_model=list[SelectorEntry])
async def list_selectors(engine: SwapEngine = Depends(get_swap_engine)):
    """Blocked selectors with their rejection counts."""
    attempts = get_blocked_attempts()
    return [
        SelectorEntry(
            selector=entry["selector"],
            signature=entry["signature"],
            blocked_attempts=attempts.get(entry["signature"], 0),
        )
        for entry in engine.dangerous_selectors()
    ]
