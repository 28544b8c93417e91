"""
Tests for sequential plan execution and failure policies.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from boundless.core.errors import MalformedPlanError
from boundless.core.executor import ExecutionEngine, execute_routes
from boundless.core.models import (
    AssetRef,
    Balance,
    DepositTarget,
    DirectCallSpec,
    ExecutionPolicy,
    ResolvedRoute,
    RouteStatus,
    TransactionType,
)
from boundless.core.tx_builder import encode_approve, encode_supply
from boundless.core.wallet import ActiveChainContext

WALLET = "0x1111111111111111111111111111111111111111"
USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
BASE_POOL = "0xA238Dd80C259a72e81d7e4664a9801593F98d1c5"


class RecordingSigner:
    """Wallet stub that records every transaction and serves balances in order."""

    def __init__(self, balances=None):
        self.address = WALLET
        self.sent = []
        self.switches = []
        self._balances = list(balances or [])

    async def switch_chain(self, chain_id):
        self.switches.append(chain_id)

    async def send_transaction(self, tx):
        self.sent.append(tx)
        return f"0xhash{len(self.sent)}"

    async def wait_for_receipt(self, chain_id, tx_hash):
        return {"status": "0x1", "transactionHash": tx_hash}

    async def call(self, chain_id, to, data):
        value = self._balances.pop(0) if self._balances else 0
        return "0x" + format(value, "064x")


def routed(chain="arbitrum", route_id="r"):
    asset = AssetRef.build("ETH", None, chain)
    return ResolvedRoute(
        asset=Balance.from_human(asset, "0.1", "300", WALLET),
        external_route={"id": route_id, "steps": []},
        estimated_output_usd=Decimal("295"),
    )


def direct(amount=500_000_000):
    asset = AssetRef.build("USDC", USDC_BASE, "base")
    spec = DirectCallSpec(
        chain_id=8453,
        target_contract=BASE_POOL,
        encoded_call=encode_supply(USDC_BASE, amount, WALLET),
        amount=amount,
        token=USDC_BASE,
    )
    return ResolvedRoute(
        asset=Balance.from_human(asset, "500", "500", WALLET),
        is_direct=True,
        direct_call=spec,
        has_auto_deposit=True,
    )


def failing_routing(fail_ids):
    routing = MagicMock()

    async def execute_route(route, context, on_update=None):
        if route["id"] in fail_ids:
            raise RuntimeError(f"{route['id']} rejected")

    routing.execute_route = AsyncMock(side_effect=execute_route)
    return routing


@pytest.mark.asyncio
async def test_continue_on_failure_runs_every_route():
    routes = [routed(route_id="a"), routed(route_id="b"), routed(route_id="c")]
    statuses = []
    engine = ExecutionEngine(ActiveChainContext(RecordingSigner()), failing_routing({"b"}), settle_seconds=0)

    summary = await engine.execute(routes, lambda i, s, m: statuses.append((i, s, m)))

    assert summary.successful_indices == [0, 2]
    assert summary.failed_indices == [1]
    assert summary.successful_routes + summary.failed_routes == summary.total_routes == 3
    assert summary.is_partial
    assert not summary.halted
    assert summary.errors[0].message == "b rejected"
    assert [r.status for r in routes] == [RouteStatus.COMPLETED, RouteStatus.FAILED, RouteStatus.COMPLETED]
    assert statuses[:2] == [(0, RouteStatus.EXECUTING, None), (0, RouteStatus.COMPLETED, None)]
    assert (1, RouteStatus.FAILED, "b rejected") in statuses


@pytest.mark.asyncio
async def test_halt_on_failure_stops_and_accounts_for_the_rest():
    routes = [routed(route_id="a"), routed(route_id="b"), routed(route_id="c")]
    routing = failing_routing({"a"})
    statuses = []
    engine = ExecutionEngine(ActiveChainContext(RecordingSigner()), routing, settle_seconds=0)

    summary = await engine.execute(
        routes,
        lambda i, s, m: statuses.append((i, s)),
        policy=ExecutionPolicy.HALT_ON_FAILURE,
    )

    assert routing.execute_route.await_count == 1
    assert summary.halted
    assert summary.successful_routes == 0
    assert summary.failed_indices == [0, 1, 2]
    assert summary.successful_routes + summary.failed_routes == summary.total_routes
    assert all(r.status is RouteStatus.FAILED for r in routes)
    assert (1, RouteStatus.EXECUTING) not in statuses
    assert summary.errors[1].message == "not executed: halted after route 0 failed"


@pytest.mark.asyncio
async def test_all_successful_summary():
    routes = [routed(route_id="a"), routed(route_id="b")]
    summary = await execute_routes(
        routes,
        None,
        context=ActiveChainContext(RecordingSigner()),
        routing=failing_routing(set()),
    )

    assert summary.is_success
    assert summary.errors == []


@pytest.mark.asyncio
async def test_direct_route_switches_chain_then_approves_and_supplies():
    signer = RecordingSigner()
    routing = failing_routing(set())
    engine = ExecutionEngine(ActiveChainContext(signer, chain_id=1), routing)

    summary = await engine.execute([direct()])

    assert summary.is_success
    routing.execute_route.assert_not_awaited()
    assert signer.switches == [8453]
    approve, supply = signer.sent
    assert approve.tx_type == TransactionType.APPROVE
    assert approve.to_address == USDC_BASE.lower()
    assert approve.data == encode_approve(BASE_POOL, 500_000_000)
    assert supply.tx_type == TransactionType.SUPPLY
    assert supply.to_address == BASE_POOL.lower()
    assert supply.data == encode_supply(USDC_BASE, 500_000_000, WALLET)


@pytest.mark.asyncio
async def test_bridged_funds_are_deposited_by_balance_delta():
    # balanceOf before the bridge, then after it settles
    signer = RecordingSigner(balances=[1_000_000, 251_000_000])
    target = DepositTarget(chain_id=8453, underlying_token=USDC_BASE, pool_address=BASE_POOL)
    engine = ExecutionEngine(ActiveChainContext(signer, chain_id=42161), failing_routing(set()), settle_seconds=0)

    summary = await engine.execute(
        [routed()],
        policy=ExecutionPolicy.HALT_ON_FAILURE,
        deposit_target=target,
    )

    assert summary.is_success
    assert signer.switches == [8453]
    approve, supply = signer.sent
    assert approve.data == encode_approve(BASE_POOL, 250_000_000)
    assert supply.data == encode_supply(USDC_BASE, 250_000_000, WALLET)


@pytest.mark.asyncio
async def test_no_deposit_when_nothing_arrived():
    signer = RecordingSigner(balances=[5, 5])
    target = DepositTarget(chain_id=8453, underlying_token=USDC_BASE, pool_address=BASE_POOL)
    engine = ExecutionEngine(ActiveChainContext(signer), failing_routing(set()), settle_seconds=0)

    summary = await engine.execute([routed()], deposit_target=target)

    assert summary.is_success
    assert signer.sent == []


@pytest.mark.asyncio
async def test_auto_deposit_routes_skip_post_bridge_deposit():
    signer = RecordingSigner(balances=[0, 100])
    route = routed()
    route.has_auto_deposit = True
    target = DepositTarget(chain_id=8453, underlying_token=USDC_BASE, pool_address=BASE_POOL)
    engine = ExecutionEngine(ActiveChainContext(signer), failing_routing(set()), settle_seconds=0)

    await engine.execute([route], deposit_target=target)

    assert signer.sent == []


@pytest.mark.asyncio
async def test_rejects_already_executed_plan():
    route = routed()
    route.advance(RouteStatus.EXECUTING)
    engine = ExecutionEngine(ActiveChainContext(RecordingSigner()), failing_routing(set()))

    with pytest.raises(MalformedPlanError):
        await engine.execute([route])


@pytest.mark.asyncio
async def test_rejects_route_without_payload():
    asset = AssetRef.build("ETH", None, "arbitrum")
    empty = ResolvedRoute(asset=Balance.from_human(asset, "1", "1", WALLET))
    engine = ExecutionEngine(ActiveChainContext(RecordingSigner()), failing_routing(set()))

    with pytest.raises(MalformedPlanError):
        await engine.execute([empty])
