"""
LI.FI implementation of the core ``RoutingService``.

Execution walks a route step by step on the caller's wallet context:
switch to the step's source chain, approve the spender if the allowance is
short, send the step transaction and, for bridges, poll LI.FI's status
endpoint until the destination side has settled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..config import settings
from ..core.chains import native_token_address
from ..core.errors import ProviderError, RouteExecutionError
from ..core.models import TransactionType
from ..core.routing import ContractCall, RouteRequest, RouteUpdateCallback, RoutingService
from ..core.tx_builder import TransactionBuilder
from ..core.wallet import ActiveChainContext
from ..providers.lifi import LifiProvider

logger = logging.getLogger(__name__)

# substatus values that mean the user did not receive the requested token
_UNSUCCESSFUL_SUBSTATUS = {"REFUNDED"}


def _sum_usd(costs: Optional[List[Dict[str, Any]]]) -> str:
    total = Decimal("0")
    for cost in costs or []:
        try:
            total += Decimal(str(cost.get("amountUSD") or "0"))
        except (InvalidOperation, ValueError):
            continue
    return str(total)


def quote_to_route(quote: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a single-step contract-calls quote in the route shape."""
    action = quote.get("action") or {}
    estimate = quote.get("estimate") or {}
    return {
        "id": quote.get("id"),
        "fromChainId": action.get("fromChainId"),
        "toChainId": action.get("toChainId"),
        "fromToken": action.get("fromToken"),
        "toToken": action.get("toToken"),
        "fromAmount": action.get("fromAmount"),
        "toAmount": estimate.get("toAmount"),
        "toAmountMin": estimate.get("toAmountMin"),
        "toAmountUSD": estimate.get("toAmountUSD"),
        "gasCostUSD": _sum_usd(estimate.get("gasCosts")),
        "containsContractCall": True,
        "steps": [quote],
    }


class LifiRoutingService(RoutingService):
    name = "lifi"

    def __init__(
        self,
        provider: Optional[LifiProvider] = None,
        *,
        poll_interval: Optional[float] = None,
        poll_timeout: Optional[float] = None,
    ) -> None:
        self._provider = provider or LifiProvider()
        self._poll_interval = poll_interval if poll_interval is not None else settings.status_poll_interval_seconds
        self._poll_timeout = poll_timeout if poll_timeout is not None else settings.status_poll_timeout_seconds

    async def get_best_route(self, request: RouteRequest) -> Optional[Dict[str, Any]]:
        try:
            routes = await self._provider.get_routes(
                from_chain_id=request.from_chain_id,
                to_chain_id=request.to_chain_id,
                from_token=request.from_token,
                to_token=request.to_token,
                from_amount=request.from_amount,
                from_address=request.from_address,
                to_address=request.to_address,
                slippage=float(request.slippage),
            )
        except ProviderError as exc:
            logger.warning(
                "LI.FI route request failed (%s -> %s): %s",
                request.from_chain_id,
                request.to_chain_id,
                exc,
            )
            return None

        if not routes:
            return None
        return routes[0]

    async def get_contract_call_route(
        self,
        request: RouteRequest,
        contract_calls: List[ContractCall],
    ) -> Optional[Dict[str, Any]]:
        calls = []
        for call in contract_calls:
            payload: Dict[str, Any] = {
                "fromAmount": str(call.from_amount),
                "fromTokenAddress": call.from_token,
                "toContractAddress": call.to_contract,
                "toContractCallData": call.call_data,
                "toContractGasLimit": str(call.gas_limit),
            }
            if call.approval_address:
                payload["toApprovalAddress"] = call.approval_address
            calls.append(payload)

        quote = await self._provider.get_contract_calls_quote(
            from_chain_id=request.from_chain_id,
            to_chain_id=request.to_chain_id,
            from_token=request.from_token,
            to_token=request.to_token,
            from_address=request.from_address,
            to_amount=sum(call.from_amount for call in contract_calls),
            contract_calls=calls,
            slippage=float(request.slippage),
        )
        if not quote:
            return None
        return quote_to_route(quote)

    async def execute_route(
        self,
        route: Dict[str, Any],
        context: ActiveChainContext,
        on_update: Optional[RouteUpdateCallback] = None,
    ) -> None:
        steps = route.get("steps") or []
        if not steps:
            raise RouteExecutionError(f"route {route.get('id')} has no steps")

        for index, step in enumerate(steps):
            tx_hash = await self._execute_step(step, context)
            if on_update is not None:
                on_update({"routeId": route.get("id"), "step": index, "txHash": tx_hash, "status": "DONE"})

    async def _execute_step(self, step: Dict[str, Any], context: ActiveChainContext) -> str:
        action = step.get("action") or {}
        from_chain = int(action["fromChainId"])
        to_chain = int(action.get("toChainId") or from_chain)

        await context.switch_to(from_chain)

        if not step.get("transactionRequest"):
            step = await self._provider.get_step_transaction(step)
        request = dict(step.get("transactionRequest") or {})
        request.setdefault("chainId", from_chain)
        request.setdefault("from", context.address)

        await self._ensure_allowance(step, context, from_chain)

        tx_type = TransactionType.BRIDGE if from_chain != to_chain else TransactionType.SWAP
        tx = TransactionBuilder.build_from_step_request(
            request,
            tx_type=tx_type,
            description=f"{step.get('tool', 'lifi')} {tx_type.value} step",
        )
        tx_hash = await context.send_and_confirm(tx)

        if from_chain != to_chain:
            await self._wait_for_bridge(tx_hash, step.get("tool"), from_chain, to_chain)
        return tx_hash

    async def _ensure_allowance(self, step: Dict[str, Any], context: ActiveChainContext, chain_id: int) -> None:
        action = step.get("action") or {}
        token = (action.get("fromToken") or {}).get("address")
        spender = (step.get("estimate") or {}).get("approvalAddress")
        if not token or not spender or token.lower() == native_token_address():
            return

        amount = int(action.get("fromAmount") or 0)
        allowance = await context.token_allowance(chain_id, token, spender)
        if allowance >= amount:
            return

        logger.info("Approving %s for %s (allowance %s < %s)", spender, token, allowance, amount)
        approve = TransactionBuilder.build_erc20_approve(
            chain_id=chain_id,
            owner_address=context.address,
            token_address=token,
            spender_address=spender,
            amount=amount,
        )
        await context.send_and_confirm(approve)

    async def _wait_for_bridge(
        self,
        tx_hash: str,
        bridge: Optional[str],
        from_chain: int,
        to_chain: int,
    ) -> Dict[str, Any]:
        deadline = time.monotonic() + self._poll_timeout
        while True:
            try:
                status = await self._provider.get_status(
                    tx_hash, bridge=bridge, from_chain_id=from_chain, to_chain_id=to_chain
                )
            except ProviderError as exc:
                logger.warning("Status poll for %s failed: %s", tx_hash, exc)
                status = {}

            state = status.get("status")
            if state == "DONE":
                if status.get("substatus") in _UNSUCCESSFUL_SUBSTATUS:
                    raise RouteExecutionError(
                        f"bridge transfer {tx_hash} was refunded",
                        tx_hash=tx_hash,
                        details=status,
                    )
                return status
            if state == "FAILED":
                message = status.get("substatusMessage") or "bridge transfer failed"
                raise RouteExecutionError(message, tx_hash=tx_hash, details=status)

            if time.monotonic() >= deadline:
                raise RouteExecutionError(f"timed out waiting for bridge transfer {tx_hash}", tx_hash=tx_hash)
            await asyncio.sleep(self._poll_interval)
