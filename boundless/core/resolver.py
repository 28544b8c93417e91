"""
Route resolution for squeeze/pull/refuel and zap plans.

Each source asset is resolved independently and concurrently. A failure
for one asset (unknown chain, no path, an upstream exception) turns that
asset into a skipped entry; it never aborts the others. Every input asset
ends up in exactly one of ``plan.routes`` or ``plan.skipped_assets``.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Union

from ..config import settings
from .chains import chain_name_to_id, destination_token_address, pool_address
from .constants import (
    ASSUMED_SLIPPAGE,
    DIRECT_DEPOSIT_GAS_USD,
    NO_ROUTES_REASON,
    OUTPUT_SANITY_MULTIPLE,
)
from .errors import NoRouteError
from .models import (
    Balance,
    DepositTarget,
    DirectCallSpec,
    ResolvedRoute,
    RoutePlan,
    SkippedAsset,
    SqueezeRequest,
    ZapRequest,
    from_smallest_unit,
)
from .routing import ContractCall, RouteRequest, RoutingService
from .tx_builder import encode_supply

logger = logging.getLogger(__name__)

Outcome = Union[ResolvedRoute, SkippedAsset]


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def is_direct_deposit(
    from_chain_id: int,
    asset_address: str,
    destination_chain_id: int,
    deposit: Optional[DepositTarget],
) -> bool:
    """Same chain, already the underlying token, and a pool to supply into."""
    if deposit is None or not deposit.can_deposit:
        return False
    if from_chain_id != destination_chain_id or deposit.chain_id != destination_chain_id:
        return False
    return asset_address.lower() == deposit.underlying_token.lower()


def estimate_output_usd(route: Dict[str, Any], input_usd: Decimal) -> Decimal:
    """USD value a route is expected to deliver.

    Prefers the service's own ``toAmountUSD``, then ``toAmount`` priced with
    ``toToken.priceUSD``, then the input minus an assumed slippage. Values
    above twice the input are treated as corrupt and clamped to the input.
    """
    value = _decimal(route.get("toAmountUSD"))

    if not value:
        to_token = route.get("toToken") or {}
        price = _decimal(to_token.get("priceUSD"))
        amount = _decimal(route.get("toAmount"))
        decimals = to_token.get("decimals")
        if price and amount and decimals is not None:
            value = from_smallest_unit(int(amount), int(decimals)) * price

    if not value or value < 0:
        value = input_usd * (Decimal("1") - ASSUMED_SLIPPAGE)

    if input_usd > 0 and value > input_usd * OUTPUT_SANITY_MULTIPLE:
        logger.warning("Route output %s too high for input %s, capping to input", value, input_usd)
        value = input_usd
    return value


def _quoted_output(route: Dict[str, Any]) -> int:
    raw = route.get("toAmountMin") or route.get("toAmount") or "0"
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0


class RouteResolver:
    """Turns selected balances into an executable ``RoutePlan``."""

    def __init__(
        self,
        routing: RoutingService,
        *,
        slippage: Optional[Decimal] = None,
        enable_auto_deposit: Optional[bool] = None,
    ) -> None:
        self._routing = routing
        self._slippage = slippage if slippage is not None else settings.default_slippage
        self._auto_deposit = (
            settings.enable_auto_deposit if enable_auto_deposit is None else enable_auto_deposit
        )

    async def resolve_squeeze(self, request: SqueezeRequest) -> RoutePlan:
        to_token = destination_token_address(request.destination_chain_id, request.destination_token)
        logger.info(
            "Resolving squeeze for %d assets -> chain %s token %s",
            len(request.assets),
            request.destination_chain_id,
            to_token,
        )
        return await self._resolve_all(
            request.assets,
            destination_chain_id=request.destination_chain_id,
            to_token=to_token,
            destination_address=request.destination_address,
            deposit=None,
        )

    async def resolve_zap(self, request: ZapRequest) -> RoutePlan:
        target_token = request.destination_underlying_token or request.destination_token
        deposit = None
        if request.destination_underlying_token:
            deposit = DepositTarget(
                chain_id=request.destination_chain_id,
                underlying_token=request.destination_underlying_token,
                pool_address=pool_address(request.destination_chain_id),
            )
        logger.info(
            "Resolving zap for %d assets -> chain %s token %s (pool %s)",
            len(request.assets),
            request.destination_chain_id,
            target_token,
            deposit.pool_address if deposit else None,
        )
        return await self._resolve_all(
            request.assets,
            destination_chain_id=request.destination_chain_id,
            to_token=target_token,
            destination_address=request.destination_address,
            deposit=deposit,
        )

    async def _resolve_all(
        self,
        assets: Sequence[Balance],
        *,
        destination_chain_id: int,
        to_token: str,
        destination_address: str,
        deposit: Optional[DepositTarget],
    ) -> RoutePlan:
        outcomes = await asyncio.gather(
            *(
                self._resolve_isolated(asset, destination_chain_id, to_token, destination_address, deposit)
                for asset in assets
            )
        )

        plan = RoutePlan()
        for outcome in outcomes:
            if isinstance(outcome, SkippedAsset):
                plan.skipped_assets.append(outcome)
                continue
            plan.routes.append(outcome)
            plan.total_input_usd += outcome.asset.usd_value
            plan.total_estimated_output_usd += outcome.estimated_output_usd
            plan.total_gas_cost_usd += outcome.estimated_gas_cost_usd

        logger.info("Resolved %d routes, skipped %d", len(plan.routes), len(plan.skipped_assets))
        return plan

    async def _resolve_isolated(
        self,
        asset: Balance,
        destination_chain_id: int,
        to_token: str,
        destination_address: str,
        deposit: Optional[DepositTarget],
    ) -> Outcome:
        try:
            return await self._resolve_asset(asset, destination_chain_id, to_token, destination_address, deposit)
        except NoRouteError as exc:
            logger.info("No route for %s to chain %s", asset.label, destination_chain_id)
            return SkippedAsset(asset=asset, reason=str(exc))
        except Exception as exc:
            logger.warning("Error resolving route for %s: %s", asset.label, exc, exc_info=True)
            return SkippedAsset(asset=asset, reason=str(exc) or exc.__class__.__name__)

    async def _resolve_asset(
        self,
        asset: Balance,
        destination_chain_id: int,
        to_token: str,
        destination_address: str,
        deposit: Optional[DepositTarget],
    ) -> Outcome:
        from_chain_id = chain_name_to_id(asset.chain)
        if from_chain_id is None:
            logger.warning("Skipping %s: unsupported chain", asset.label)
            return SkippedAsset(asset=asset, reason=f"unsupported chain: {asset.chain}")

        if is_direct_deposit(from_chain_id, asset.asset.address, destination_chain_id, deposit):
            return self._direct_route(asset, from_chain_id, deposit, destination_address)

        request = RouteRequest(
            from_chain_id=from_chain_id,
            to_chain_id=destination_chain_id,
            from_token=asset.asset.routing_address,
            to_token=to_token,
            from_amount=asset.raw_amount,
            from_address=asset.wallet,
            to_address=destination_address,
            slippage=self._slippage,
        )
        logger.debug(
            "Fetching route for %s: %s (%s decimals) = %s smallest units",
            asset.label,
            asset.amount,
            asset.asset.decimals,
            asset.raw_amount,
        )

        route = await self._routing.get_best_route(request)
        if not route:
            raise NoRouteError(NO_ROUTES_REASON)

        has_auto_deposit = False
        if deposit is not None and deposit.can_deposit and self._auto_deposit:
            compound = await self._try_auto_deposit(request, route, deposit, destination_address)
            if compound:
                route, has_auto_deposit = compound, True

        return ResolvedRoute(
            asset=asset,
            is_direct=False,
            external_route=route,
            estimated_output=_quoted_output(route),
            estimated_output_usd=estimate_output_usd(route, asset.usd_value),
            estimated_gas_cost_usd=_decimal(route.get("gasCostUSD")) or Decimal("0"),
            has_auto_deposit=has_auto_deposit,
        )

    def _direct_route(
        self,
        asset: Balance,
        chain_id: int,
        deposit: DepositTarget,
        destination_address: str,
    ) -> ResolvedRoute:
        logger.info("Direct deposit for %s into pool %s", asset.label, deposit.pool_address)
        call = DirectCallSpec(
            chain_id=chain_id,
            target_contract=deposit.pool_address,
            encoded_call=encode_supply(deposit.underlying_token, asset.raw_amount, destination_address),
            amount=asset.raw_amount,
            token=deposit.underlying_token,
        )
        return ResolvedRoute(
            asset=asset,
            is_direct=True,
            direct_call=call,
            estimated_output=asset.raw_amount,
            estimated_output_usd=asset.usd_value,
            estimated_gas_cost_usd=DIRECT_DEPOSIT_GAS_USD,
            has_auto_deposit=True,
        )

    async def _try_auto_deposit(
        self,
        request: RouteRequest,
        route: Dict[str, Any],
        deposit: DepositTarget,
        destination_address: str,
    ) -> Optional[Dict[str, Any]]:
        """Bridge + supply in one route; None means use the plain route."""
        amount = _quoted_output(route)
        if amount <= 0:
            return None
        call = ContractCall(
            to_contract=deposit.pool_address,
            call_data=encode_supply(deposit.underlying_token, amount, destination_address),
            from_token=deposit.underlying_token,
            from_amount=amount,
            approval_address=deposit.pool_address,
        )
        try:
            compound = await self._routing.get_contract_call_route(request, [call])
        except Exception as exc:
            logger.warning("Auto-deposit route failed, falling back to plain route: %s", exc)
            return None
        if not compound:
            logger.warning("Auto-deposit route unavailable, falling back to plain route")
        return compound or None


async def resolve_routes(
    routing: RoutingService,
    assets: List[Balance],
    destination_chain_id: int,
    destination_token: str,
    destination_address: str,
    *,
    destination_underlying_token: Optional[str] = None,
) -> RoutePlan:
    """Resolve a plan; passing an underlying token resolves it as a zap."""
    resolver = RouteResolver(routing)
    if destination_underlying_token:
        return await resolver.resolve_zap(
            ZapRequest(
                assets=assets,
                destination_chain_id=destination_chain_id,
                destination_token=destination_token,
                destination_address=destination_address,
                destination_underlying_token=destination_underlying_token,
            )
        )
    return await resolver.resolve_squeeze(
        SqueezeRequest(
            assets=assets,
            destination_chain_id=destination_chain_id,
            destination_token=destination_token,
            destination_address=destination_address,
        )
    )
