"""
Sequential execution of a resolved plan.

Routes run one at a time: each needs a wallet signature and possibly a
chain switch, and later routes may depend on earlier ones having settled.
Individual route failures are recorded, never raised; what happens next is
decided by the ``ExecutionPolicy``. There are no retries: a failed route
stays failed and the caller re-resolves from scratch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence

from ..config import settings
from .errors import MalformedPlanError
from .models import (
    DepositTarget,
    ExecutionPolicy,
    ExecutionSummary,
    ResolvedRoute,
    RouteStatus,
)
from .routing import RoutingService
from .tx_builder import TransactionBuilder
from .wallet import ActiveChainContext

logger = logging.getLogger(__name__)

StatusCallback = Callable[[int, RouteStatus, Optional[str]], None]


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def validate_plan(routes: Sequence[ResolvedRoute]) -> None:
    """Reject plans that can't be executed as-is (already run, missing payloads)."""
    for index, route in enumerate(routes):
        if route.status is not RouteStatus.PENDING:
            raise MalformedPlanError(
                f"route {index} is {route.status.value}; re-resolve the plan instead of re-running it"
            )
        if not route.is_executable:
            raise MalformedPlanError(f"route {index} has neither a direct call nor an external route")


class ExecutionEngine:
    """Runs plans against one wallet context and one routing service."""

    def __init__(
        self,
        context: ActiveChainContext,
        routing: RoutingService,
        *,
        settle_seconds: Optional[float] = None,
    ) -> None:
        self._context = context
        self._routing = routing
        self._settle_seconds = (
            settings.post_bridge_settle_seconds if settle_seconds is None else settle_seconds
        )

    async def execute(
        self,
        routes: List[ResolvedRoute],
        on_status: Optional[StatusCallback] = None,
        *,
        policy: ExecutionPolicy = ExecutionPolicy.CONTINUE_ON_FAILURE,
        deposit_target: Optional[DepositTarget] = None,
    ) -> ExecutionSummary:
        """
        Execute ``routes`` in order.

        Args:
            routes: The plan's routes, all still pending
            on_status: Called with (index, status, error message) on every transition
            policy: Keep going after a failure, or stop at the first one
            deposit_target: For zaps, supply bridged funds into this pool afterwards

        Returns:
            ExecutionSummary where successful + failed == total
        """
        validate_plan(routes)
        summary = ExecutionSummary(total_routes=len(routes))

        for index, route in enumerate(routes):
            self._transition(route, index, RouteStatus.EXECUTING, on_status)
            try:
                if route.is_direct:
                    await self._execute_direct(route)
                else:
                    await self._execute_routed(route, deposit_target)
            except Exception as exc:
                message = _error_message(exc)
                logger.error("Route %d (%s) failed: %s", index, route.asset.label, message)
                self._transition(route, index, RouteStatus.FAILED, on_status, message)
                summary.record_failure(index, message)
                if policy is ExecutionPolicy.HALT_ON_FAILURE:
                    self._abandon_remaining(routes, index, summary, on_status)
                    break
                continue

            self._transition(route, index, RouteStatus.COMPLETED, on_status)
            summary.record_success(index)
            logger.info("Route %d (%s) completed", index, route.asset.label)

        logger.info(
            "Execution complete: %d/%d successful%s",
            summary.successful_routes,
            summary.total_routes,
            " (halted)" if summary.halted else "",
        )
        return summary

    def _transition(
        self,
        route: ResolvedRoute,
        index: int,
        status: RouteStatus,
        on_status: Optional[StatusCallback],
        message: Optional[str] = None,
    ) -> None:
        route.advance(status)
        if on_status is not None:
            on_status(index, status, message)

    def _abandon_remaining(
        self,
        routes: Sequence[ResolvedRoute],
        failed_index: int,
        summary: ExecutionSummary,
        on_status: Optional[StatusCallback],
    ) -> None:
        summary.halted = True
        message = f"not executed: halted after route {failed_index} failed"
        for index in range(failed_index + 1, len(routes)):
            self._transition(routes[index], index, RouteStatus.FAILED, on_status, message)
            summary.record_failure(index, message)

    async def _execute_direct(self, route: ResolvedRoute) -> None:
        call = route.direct_call
        await self._context.switch_to(call.chain_id)

        approve = TransactionBuilder.build_erc20_approve(
            chain_id=call.chain_id,
            owner_address=self._context.address,
            token_address=call.token,
            spender_address=call.target_contract,
            amount=call.amount,
            description=f"Approve {route.asset.asset.symbol} for deposit",
        )
        await self._context.send_and_confirm(approve)

        supply = TransactionBuilder.build_direct_deposit(call, self._context.address)
        await self._context.send_and_confirm(supply)

    async def _execute_routed(
        self,
        route: ResolvedRoute,
        deposit_target: Optional[DepositTarget],
    ) -> None:
        deposit_after = (
            deposit_target is not None and deposit_target.can_deposit and not route.has_auto_deposit
        )
        before = 0
        if deposit_after:
            before = await self._context.token_balance(
                deposit_target.chain_id, deposit_target.underlying_token
            )

        def on_update(update) -> None:
            logger.debug("Route update for %s: %s", route.asset.label, update)

        await self._routing.execute_route(route.external_route, self._context, on_update)

        if deposit_after:
            await self._deposit_bridged(deposit_target, before)

    async def _deposit_bridged(self, target: DepositTarget, balance_before: int) -> None:
        """Supply what the bridge delivered (balance delta) into the pool."""
        await self._context.switch_to(target.chain_id)
        if self._settle_seconds:
            await asyncio.sleep(self._settle_seconds)

        balance_after = await self._context.token_balance(target.chain_id, target.underlying_token)
        received = balance_after - balance_before
        if received <= 0:
            logger.warning(
                "No bridged %s balance arrived on chain %s; skipping deposit",
                target.underlying_token,
                target.chain_id,
            )
            return

        logger.info("Depositing %s bridged units into pool %s", received, target.pool_address)
        approve = TransactionBuilder.build_erc20_approve(
            chain_id=target.chain_id,
            owner_address=self._context.address,
            token_address=target.underlying_token,
            spender_address=target.pool_address,
            amount=received,
            description="Approve bridged funds for deposit",
        )
        await self._context.send_and_confirm(approve)

        supply = TransactionBuilder.build_supply(
            chain_id=target.chain_id,
            pool_address=target.pool_address,
            asset_address=target.underlying_token,
            amount=received,
            on_behalf_of=self._context.address,
        )
        await self._context.send_and_confirm(supply)


async def execute_routes(
    routes: List[ResolvedRoute],
    on_status: Optional[StatusCallback],
    *,
    context: ActiveChainContext,
    routing: RoutingService,
    policy: ExecutionPolicy = ExecutionPolicy.CONTINUE_ON_FAILURE,
    deposit_target: Optional[DepositTarget] = None,
) -> ExecutionSummary:
    engine = ExecutionEngine(context, routing)
    return await engine.execute(routes, on_status, policy=policy, deposit_target=deposit_target)
