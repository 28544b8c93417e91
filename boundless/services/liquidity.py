"""
Liquidity flows: squeeze, pull, refuel and zap.

Each flow is a preview (select + resolve, no signing) followed by an
explicit ``execute`` once the user has confirmed the preview. Squeeze, pull
and refuel keep going after a failed route; zap stops at the first failure
because its post-bridge deposit depends on the bridge having landed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from ..core.chains import (
    chain_display_name,
    destination_token_address,
    is_destination_chain,
    native_symbol,
    pool_address,
)
from ..core.constants import EarnMarket
from ..core.errors import UnsupportedChainError
from ..core.executor import ExecutionEngine, StatusCallback
from ..core.models import (
    Balance,
    DepositTarget,
    ExecutionPolicy,
    ExecutionSummary,
    RoutePlan,
    SqueezeRequest,
    ZapRequest,
)
from ..core.resolver import RouteResolver
from ..core.routing import RoutingService
from ..core.selection import eligible_balances, is_insufficient, prioritize_for_market, select_assets, selected_total
from ..core.wallet import ActiveChainContext
from ..logging_config import bind_wallet

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


class FlowKind(str, Enum):
    SQUEEZE = "squeeze"
    PULL = "pull"
    REFUEL = "refuel"
    ZAP = "zap"


_POLICIES = {
    FlowKind.SQUEEZE: ExecutionPolicy.CONTINUE_ON_FAILURE,
    FlowKind.PULL: ExecutionPolicy.CONTINUE_ON_FAILURE,
    FlowKind.REFUEL: ExecutionPolicy.CONTINUE_ON_FAILURE,
    FlowKind.ZAP: ExecutionPolicy.HALT_ON_FAILURE,
}


@dataclass
class FlowPreview:
    """What a flow would do, shown to the user before anything is signed."""
    kind: FlowKind
    destination_chain_id: int
    destination_token: str
    destination_address: str
    selection: List[Balance]
    plan: RoutePlan
    requested_usd: Optional[Decimal] = None
    deposit_target: Optional[DepositTarget] = None
    market: Optional[EarnMarket] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def policy(self) -> ExecutionPolicy:
        return _POLICIES[self.kind]

    @property
    def selected_usd(self) -> Decimal:
        return selected_total(self.selection)

    @property
    def insufficient_balance(self) -> bool:
        if self.requested_usd is None:
            return False
        return is_insufficient(self.selection, self.requested_usd)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "destinationChainId": self.destination_chain_id,
            "destinationChain": chain_display_name(self.destination_chain_id),
            "destinationToken": self.destination_token,
            "destinationAddress": self.destination_address,
            "requestedUsd": str(self.requested_usd) if self.requested_usd is not None else None,
            "selectedUsd": str(self.selected_usd),
            "insufficientBalance": self.insufficient_balance,
            "selection": [b.to_dict() for b in self.selection],
            "plan": self.plan.to_dict(),
            "market": self.market.key if self.market else None,
            "policy": self.policy.value,
            "warnings": list(self.warnings),
        }


def _require_destination(chain_id: int) -> None:
    if not is_destination_chain(chain_id):
        raise UnsupportedChainError(chain_id, f"{chain_id} is not an allowed destination chain")


def _as_decimal(value: Amount) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


class LiquidityService:
    """
    Orchestrates selection, resolution and execution for every flow.

    Usage:
        service = LiquidityService(LifiRoutingService())
        preview = await service.preview_pull(balances, "250", 8453, "USDC", "0xabc...")
        if not preview.insufficient_balance:
            summary = await service.execute(preview, context, on_status)
    """

    def __init__(self, routing: RoutingService, resolver: Optional[RouteResolver] = None) -> None:
        self._routing = routing
        self._resolver = resolver or RouteResolver(routing)

    async def preview_squeeze(
        self,
        balances: Sequence[Balance],
        destination_chain_id: int,
        destination_token: str,
        destination_address: str,
        requested_usd: Optional[Amount] = None,
    ) -> FlowPreview:
        """Consolidate balances into one token on the destination chain.

        Without an amount every non-dust balance is used. Balances already on
        the destination chain are left alone either way, same as a pull.
        """
        _require_destination(destination_chain_id)
        bind_wallet(destination_address, FlowKind.SQUEEZE.value)

        requested = _as_decimal(requested_usd) if requested_usd is not None else None
        if requested is None:
            selection = eligible_balances(balances, exclude_chain=destination_chain_id)
        else:
            selection = select_assets(balances, requested, exclude_chain=destination_chain_id)
        return await self._preview(
            FlowKind.SQUEEZE, selection, destination_chain_id, destination_token, destination_address, requested
        )

    async def preview_pull(
        self,
        balances: Sequence[Balance],
        requested_usd: Amount,
        destination_chain_id: int,
        destination_token: str,
        destination_address: str,
    ) -> FlowPreview:
        """Move ``requested_usd`` worth of value from other chains to the destination."""
        _require_destination(destination_chain_id)
        bind_wallet(destination_address, FlowKind.PULL.value)

        requested = _as_decimal(requested_usd)
        selection = select_assets(balances, requested, exclude_chain=destination_chain_id)
        return await self._preview(
            FlowKind.PULL, selection, destination_chain_id, destination_token, destination_address, requested
        )

    async def preview_refuel(
        self,
        balances: Sequence[Balance],
        requested_usd: Amount,
        destination_chain_id: int,
        wallet: str,
    ) -> FlowPreview:
        """Top up the destination chain's gas token, back into the same wallet."""
        _require_destination(destination_chain_id)
        bind_wallet(wallet, FlowKind.REFUEL.value)

        requested = _as_decimal(requested_usd)
        selection = select_assets(balances, requested, exclude_chain=destination_chain_id)
        return await self._preview(
            FlowKind.REFUEL,
            selection,
            destination_chain_id,
            native_symbol(destination_chain_id),
            wallet,
            requested,
        )

    async def preview_zap(
        self,
        balances: Sequence[Balance],
        requested_usd: Amount,
        market: EarnMarket,
        wallet: str,
    ) -> FlowPreview:
        """Fund ``market`` and supply into it, preferring same-chain underlying first."""
        _require_destination(market.chain_id)
        bind_wallet(wallet, FlowKind.ZAP.value)

        requested = _as_decimal(requested_usd)
        ordered = prioritize_for_market(balances, market)
        selection = select_assets(ordered, requested, presorted=True)

        deposit = DepositTarget(
            chain_id=market.chain_id,
            underlying_token=market.underlying,
            pool_address=pool_address(market.chain_id),
        )
        plan = await self._resolver.resolve_zap(
            ZapRequest(
                assets=selection,
                destination_chain_id=market.chain_id,
                destination_token=market.underlying,
                destination_address=wallet,
                destination_underlying_token=market.underlying,
            )
        )
        preview = FlowPreview(
            kind=FlowKind.ZAP,
            destination_chain_id=market.chain_id,
            destination_token=market.underlying,
            destination_address=wallet,
            selection=selection,
            plan=plan,
            requested_usd=requested,
            deposit_target=deposit,
            market=market,
        )
        if not deposit.can_deposit:
            preview.warnings.append(f"no lending pool on {market.chain}; funds will not be deposited")
        return self._annotate(preview)

    async def execute(
        self,
        preview: FlowPreview,
        context: ActiveChainContext,
        on_status: Optional[StatusCallback] = None,
    ) -> ExecutionSummary:
        bind_wallet(context.address, preview.kind.value)
        logger.info(
            "Executing %s: %d routes (%s)",
            preview.kind.value,
            len(preview.plan.routes),
            preview.policy.value,
        )
        engine = ExecutionEngine(context, self._routing)
        return await engine.execute(
            preview.plan.routes,
            on_status,
            policy=preview.policy,
            deposit_target=preview.deposit_target,
        )

    async def _preview(
        self,
        kind: FlowKind,
        selection: List[Balance],
        destination_chain_id: int,
        destination_token: str,
        destination_address: str,
        requested_usd: Optional[Decimal],
    ) -> FlowPreview:
        plan = await self._resolver.resolve_squeeze(
            SqueezeRequest(
                assets=selection,
                destination_chain_id=destination_chain_id,
                destination_token=destination_token,
                destination_address=destination_address,
            )
        )
        preview = FlowPreview(
            kind=kind,
            destination_chain_id=destination_chain_id,
            destination_token=destination_token_address(destination_chain_id, destination_token),
            destination_address=destination_address,
            selection=selection,
            plan=plan,
            requested_usd=requested_usd,
        )
        return self._annotate(preview)

    @staticmethod
    def _annotate(preview: FlowPreview) -> FlowPreview:
        if preview.insufficient_balance:
            preview.warnings.append(
                f"selected ${preview.selected_usd} of ${preview.requested_usd} requested"
            )
        for skipped in preview.plan.skipped_assets:
            preview.warnings.append(f"skipped {skipped.asset.label}: {skipped.reason}")
        logger.info(
            "%s preview: %d routes, %d skipped, $%s selected",
            preview.kind.value,
            len(preview.plan.routes),
            len(preview.plan.skipped_assets),
            preview.selected_usd,
        )
        return preview
