"""
Flow preview endpoints.

Previews only: selection and route resolution run server-side, signing and
execution never do.
"""

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..core.constants import EARN_MARKETS, find_market
from ..core.errors import UnsupportedChainError
from ..core.models import AssetRef, Balance
from ..services.liquidity import LiquidityService
from ..services.routing import LifiRoutingService

router = APIRouter()


class BalanceIn(BaseModel):
    symbol: str
    chain: str
    amount: Decimal = Field(..., ge=0, description="Human-readable token amount")
    usd_value: Decimal = Field(..., ge=0, alias="usdValue")
    wallet: str
    address: Optional[str] = Field(default=None, description="Token contract; omit for native")
    decimals: Optional[int] = Field(default=None, ge=0, le=36)
    name: Optional[str] = None

    class Config:
        populate_by_name = True

    def to_balance(self) -> Balance:
        asset = AssetRef.build(
            symbol=self.symbol,
            address=self.address,
            chain=self.chain,
            decimals=self.decimals,
            name=self.name,
        )
        return Balance.from_human(asset, self.amount, self.usd_value, self.wallet, self.chain)


class SqueezePreviewRequest(BaseModel):
    flow: Literal["squeeze", "pull", "refuel"] = "squeeze"
    balances: List[BalanceIn]
    destination_chain_id: int = Field(..., alias="destinationChainId")
    destination_token: str = Field(default="USDC", alias="destinationToken")
    destination_address: str = Field(..., alias="destinationAddress")
    requested_usd: Optional[Decimal] = Field(default=None, gt=0, alias="requestedUsd")

    class Config:
        populate_by_name = True


class ZapPreviewRequest(BaseModel):
    balances: List[BalanceIn]
    chain_id: int = Field(..., alias="chainId")
    asset: str = Field(..., description="Market asset symbol, e.g. USDC")
    requested_usd: Decimal = Field(..., gt=0, alias="requestedUsd")
    wallet: str

    class Config:
        populate_by_name = True


_liquidity_service: Optional[LiquidityService] = None


def get_liquidity_service() -> LiquidityService:
    global _liquidity_service
    if _liquidity_service is None:
        _liquidity_service = LiquidityService(LifiRoutingService())
    return _liquidity_service


@router.post("/squeeze/preview")
async def squeeze_preview(
    request: SqueezePreviewRequest,
    service: LiquidityService = Depends(get_liquidity_service),
) -> Dict[str, Any]:
    balances = [b.to_balance() for b in request.balances]
    if request.flow != "squeeze" and request.requested_usd is None:
        raise HTTPException(status_code=400, detail=f"requestedUsd is required for {request.flow}")

    try:
        if request.flow == "pull":
            preview = await service.preview_pull(
                balances,
                request.requested_usd,
                request.destination_chain_id,
                request.destination_token,
                request.destination_address,
            )
        elif request.flow == "refuel":
            preview = await service.preview_refuel(
                balances,
                request.requested_usd,
                request.destination_chain_id,
                request.destination_address,
            )
        else:
            preview = await service.preview_squeeze(
                balances,
                request.destination_chain_id,
                request.destination_token,
                request.destination_address,
                requested_usd=request.requested_usd,
            )
    except UnsupportedChainError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"success": True, "preview": preview.to_dict()}


@router.get("/markets")
async def list_markets() -> Dict[str, Any]:
    return {
        "markets": [
            {
                "key": m.key,
                "chain": m.chain,
                "chainId": m.chain_id,
                "protocol": m.protocol,
                "asset": m.asset,
                "aToken": m.a_token,
                "underlying": m.underlying,
                "description": m.description,
            }
            for m in EARN_MARKETS
        ]
    }


@router.post("/zap/preview")
async def zap_preview(
    request: ZapPreviewRequest,
    service: LiquidityService = Depends(get_liquidity_service),
) -> Dict[str, Any]:
    market = find_market(request.chain_id, request.asset)
    if market is None:
        raise HTTPException(status_code=404, detail=f"No {request.asset} market on chain {request.chain_id}")

    balances = [b.to_balance() for b in request.balances]
    try:
        preview = await service.preview_zap(balances, request.requested_usd, market, request.wallet)
    except UnsupportedChainError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"success": True, "preview": preview.to_dict()}
