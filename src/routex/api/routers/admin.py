"""Admin API endpoints (token-protected).

Requests act with the engine owner's role; route and backend changes still
need the operator secret.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from routex.api.deps import get_swap_engine, require_admin_token
from routex.api.schemas import (
    BackendBody,
    BackendEntry,
    PauseBody,
    PoolBody,
    PoolStatusResponse,
    RouteBody,
    RouteResponse,
    SlippageBody,
    TokenBody,
    WithdrawBody,
)
from routex.errors import InvalidRouteError
from routex.ledger.database import get_db
from routex.ledger.repository import ConfigRepository
from routex.routing.models import BackendKind, CompositeStep
from routex.swap_engine.engine import SwapEngine

router = APIRouter(prefix="/admin", tags=["admin"])


class StatusResponse(BaseModel):
    success: bool = True
    message: str


def _required(value: Optional[str], field: str, kind: BackendKind) -> str:
    if not value:
        raise InvalidRouteError(f"{kind.value} route needs '{field}'")
    return value


@router.post("/routes", response_model=RouteResponse)
async def configure_route(
    body: RouteBody,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> RouteResponse:
    """Configure a route of any kind for a pair."""
    owner = engine.owner
    if body.kind == BackendKind.DIRECT_POOL:
        route = await engine.configure_route(
            body.asset_in,
            body.asset_out,
            _required(body.pool, "pool", body.kind),
            body.fee,
            body.index_in,
            body.index_out,
            secret=body.secret,
            caller=owner,
        )
    elif body.kind == BackendKind.MULTI_HOP_PATH:
        path = _required(body.path, "path", body.kind)
        route = await engine.configure_multi_hop_route(
            body.asset_in,
            body.asset_out,
            _required(body.router, "router", body.kind),
            bytes.fromhex(path.removeprefix("0x")),
            secret=body.secret,
            caller=owner,
        )
    elif body.kind == BackendKind.DIRECT_MINT:
        route = await engine.configure_direct_mint_route(
            body.asset_in,
            body.asset_out,
            _required(body.minter, "minter", body.kind),
            secret=body.secret,
            caller=owner,
        )
    else:
        steps = [CompositeStep.from_dict(step.model_dump()) for step in body.steps]
        route = await engine.configure_composite_route(
            body.asset_in, body.asset_out, steps, secret=body.secret, caller=owner
        )

    return RouteResponse(
        exists=True,
        kind=route.kind,
        backend=route.backend_address,
        route_data="0x" + route.route_data().hex(),
    )


@router.delete("/routes/{asset_in}/{asset_out}", response_model=StatusResponse)
async def remove_route(
    asset_in: str,
    asset_out: str,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> StatusResponse:
    removed = await engine.remove_route(asset_in, asset_out, caller=engine.owner)
    return StatusResponse(
        success=removed is not None,
        message="Route removed" if removed is not None else "No route configured",
    )


@router.post("/slippage", response_model=StatusResponse)
async def set_slippage(
    body: SlippageBody,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> StatusResponse:
    await engine.set_slippage_tolerance(
        body.asset_in, body.asset_out, body.bps, caller=engine.owner
    )
    return StatusResponse(message=f"Slippage set to {body.bps} bps")


@router.post("/tokens", response_model=StatusResponse)
async def support_token(
    body: TokenBody,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> StatusResponse:
    info = await engine.support_token(
        body.address,
        body.decimals,
        body.category,
        caller=engine.owner,
        supported=body.supported,
        symbol=body.symbol,
    )
    return StatusResponse(message=f"Token {info.symbol or info.address} updated")


@router.post("/pools", response_model=PoolStatusResponse)
async def update_pool(
    body: PoolBody,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> PoolStatusResponse:
    """Whitelist and/or pause a pool."""
    owner = engine.owner
    if body.whitelisted is not None:
        await engine.whitelist_pool(body.pool, body.whitelisted, caller=owner)
    if body.paused is True:
        await engine.emergency_pause_pool(body.pool, caller=owner)
    elif body.paused is False:
        await engine.unpause_pool(body.pool, caller=owner)
    return PoolStatusResponse(**engine.pool_status(body.pool))


@router.post("/pause", response_model=StatusResponse)
async def pause(
    body: Optional[PauseBody] = None,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> StatusResponse:
    """Pause the engine, one protocol or one pool."""
    body = body or PauseBody()
    owner = engine.owner
    if body.protocol is not None:
        await engine.emergency_pause_protocol(body.protocol, caller=owner)
        return StatusResponse(message=f"Protocol {body.protocol.value} paused")
    if body.pool is not None:
        await engine.emergency_pause_pool(body.pool, caller=owner)
        return StatusResponse(message=f"Pool {body.pool} paused")
    await engine.pause(caller=owner)
    return StatusResponse(message="Engine paused")


@router.post("/unpause", response_model=StatusResponse)
async def unpause(
    body: Optional[PauseBody] = None,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> StatusResponse:
    body = body or PauseBody()
    owner = engine.owner
    if body.protocol is not None:
        await engine.unpause_protocol(body.protocol, caller=owner)
        return StatusResponse(message=f"Protocol {body.protocol.value} unpaused")
    if body.pool is not None:
        await engine.unpause_pool(body.pool, caller=owner)
        return StatusResponse(message=f"Pool {body.pool} unpaused")
    await engine.unpause(caller=owner)
    return StatusResponse(message="Engine unpaused")


@router.post("/withdraw", response_model=StatusResponse)
async def emergency_withdraw(
    body: WithdrawBody,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> StatusResponse:
    """Emergency withdraw; the engine must be paused."""
    await engine.emergency_withdraw(body.asset, body.amount, body.recipient, caller=engine.owner)
    return StatusResponse(message=f"Withdrew {body.amount} {body.asset}")


@router.post("/backends", response_model=BackendEntry)
async def register_backend(
    body: BackendBody,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> BackendEntry:
    entry = await engine.register_dex(body.address, body.name, secret=body.secret, caller=engine.owner)
    return BackendEntry(address=entry.address, name=entry.name, registered=entry.registered)


@router.delete("/backends/{address}", response_model=BackendEntry)
async def remove_backend(
    address: str,
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> BackendEntry:
    entry = await engine.remove_dex(address, caller=engine.owner)
    return BackendEntry(address=entry.address, name=entry.name, registered=entry.registered)


@router.post("/config/save", response_model=StatusResponse)
async def save_config(
    _: bool = Depends(require_admin_token),
    engine: SwapEngine = Depends(get_swap_engine),
) -> StatusResponse:
    """Persist the current configuration."""
    async with get_db() as session:
        await ConfigRepository(session).save_store(engine.store)
    return StatusResponse(message=f"Saved {len(engine.store.routes)} routes")
