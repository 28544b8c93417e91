from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.errors import ProviderError, RateLimitedError
from ..services.balances import BalanceService, get_balance_service

router = APIRouter(prefix="/portfolio")


def _require_address(address: Optional[str]) -> str:
    if not address:
        raise HTTPException(status_code=400, detail="Address is required")
    return address


def _provider_http_error(exc: ProviderError) -> HTTPException:
    if isinstance(exc, RateLimitedError):
        return HTTPException(status_code=429, detail="Rate limited. Please try again in a minute.")
    if exc.status_code is None:
        return HTTPException(status_code=500, detail=f"Failed to fetch data from Zerion: {exc}")
    return HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get("")
async def get_portfolio(
    address: Optional[str] = Query(default=None, description="Wallet address"),
    service: BalanceService = Depends(get_balance_service),
) -> Dict[str, Any]:
    """Raw Zerion positions for the supported chains (cached 60s)."""
    wallet = _require_address(address)
    try:
        return await service.get_portfolio_raw(wallet)
    except ProviderError as exc:
        raise _provider_http_error(exc)


@router.get("/chart")
async def get_chart(
    address: Optional[str] = Query(default=None, description="Wallet address"),
    period: str = Query(default="day", description="hour, day, week, month, year or max"),
    service: BalanceService = Depends(get_balance_service),
) -> Dict[str, Any]:
    """Zerion wallet value chart (cached 5 minutes); unknown periods mean day."""
    wallet = _require_address(address)
    try:
        return await service.get_chart(wallet, period)
    except ProviderError as exc:
        raise _provider_http_error(exc)


@router.get("/balances")
async def get_balances(
    address: Optional[str] = Query(default=None, description="Wallet address"),
    refresh: bool = Query(default=False, description="Bypass the cache"),
    service: BalanceService = Depends(get_balance_service),
) -> Dict[str, Any]:
    """Normalized balances with per-chain totals."""
    wallet = _require_address(address)
    try:
        unified = await service.get_unified_balance(wallet, force_refresh=refresh)
    except ProviderError as exc:
        raise _provider_http_error(exc)
    return unified.to_dict()
