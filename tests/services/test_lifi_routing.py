from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from boundless.core.errors import ProviderError, RouteExecutionError
from boundless.core.models import TransactionType
from boundless.core.routing import ContractCall, RouteRequest
from boundless.core.tx_builder import encode_approve
from boundless.core.wallet import ActiveChainContext
from boundless.services.routing import LifiRoutingService, quote_to_route

WALLET = "0x1111111111111111111111111111111111111111"
USDC_ARB = "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"
USDC_BASE = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
SPENDER = "0x1231DEB6f5749EF6cE6943a275A1D3E7486F4EaE"
BRIDGE_TARGET = "0x2222222222222222222222222222222222222222"


class Signer:
    def __init__(self, allowance=0):
        self.address = WALLET
        self.sent = []
        self.switches = []
        self.allowance = allowance

    async def switch_chain(self, chain_id):
        self.switches.append(chain_id)

    async def send_transaction(self, tx):
        self.sent.append(tx)
        return f"0xhash{len(self.sent)}"

    async def wait_for_receipt(self, chain_id, tx_hash):
        return {"status": 1}

    async def call(self, chain_id, to, data):
        return "0x" + format(self.allowance, "064x")


def request(**overrides):
    values = dict(
        from_chain_id=42161,
        to_chain_id=8453,
        from_token=USDC_ARB,
        to_token=USDC_BASE,
        from_amount=100_000_000,
        from_address=WALLET,
        to_address=WALLET,
    )
    values.update(overrides)
    return RouteRequest(**values)


def step(from_chain=42161, to_chain=8453, token=USDC_ARB, with_tx=True):
    data = {
        "id": "step-1",
        "tool": "across",
        "action": {
            "fromChainId": from_chain,
            "toChainId": to_chain,
            "fromToken": {"address": token},
            "fromAmount": "100000000",
        },
        "estimate": {"approvalAddress": SPENDER},
    }
    if with_tx:
        data["transactionRequest"] = {"to": BRIDGE_TARGET, "data": "0xabcdef", "value": "0x0", "chainId": from_chain}
    return data


def provider_mock(**returns):
    provider = MagicMock()
    for name, value in returns.items():
        setattr(provider, name, AsyncMock(return_value=value))
    return provider


@pytest.mark.asyncio
async def test_best_route_is_first_ranked():
    provider = provider_mock(get_routes=[{"id": "best"}, {"id": "second"}])
    service = LifiRoutingService(provider)

    assert (await service.get_best_route(request()))["id"] == "best"
    kwargs = provider.get_routes.await_args.kwargs
    assert kwargs["from_amount"] == 100_000_000
    assert kwargs["slippage"] == 0.005


@pytest.mark.asyncio
async def test_no_routes_and_provider_errors_mean_no_route():
    assert await LifiRoutingService(provider_mock(get_routes=[])).get_best_route(request()) is None

    failing = provider_mock()
    failing.get_routes = AsyncMock(side_effect=ProviderError("lifi", "500 upstream"))
    assert await LifiRoutingService(failing).get_best_route(request()) is None


@pytest.mark.asyncio
async def test_contract_call_route_wraps_quote():
    quote = {
        "id": "q1",
        "action": {"fromChainId": 42161, "toChainId": 8453, "fromAmount": "100000000"},
        "estimate": {"toAmount": "99000000", "toAmountMin": "98500000", "gasCosts": [{"amountUSD": "0.4"}, {"amountUSD": "0.1"}]},
    }
    provider = provider_mock(get_contract_calls_quote=quote)
    service = LifiRoutingService(provider)
    call = ContractCall(
        to_contract="0xA238Dd80C259a72e81d7e4664a9801593F98d1c5",
        call_data="0x617ba037",
        from_token=USDC_BASE,
        from_amount=98_500_000,
        approval_address="0xA238Dd80C259a72e81d7e4664a9801593F98d1c5",
    )

    route = await service.get_contract_call_route(request(), [call])

    assert route["steps"] == [quote]
    assert route["toAmountMin"] == "98500000"
    assert Decimal(route["gasCostUSD"]) == Decimal("0.5")
    sent = provider.get_contract_calls_quote.await_args.kwargs
    assert sent["to_amount"] == 98_500_000
    assert sent["contract_calls"][0]["toContractCallData"] == "0x617ba037"
    assert sent["contract_calls"][0]["toApprovalAddress"] == call.approval_address


def test_quote_to_route_tolerates_missing_costs():
    route = quote_to_route({"id": "q", "action": {}, "estimate": {}})
    assert route["gasCostUSD"] == "0"
    assert route["containsContractCall"]


@pytest.mark.asyncio
async def test_execute_cross_chain_step_approves_sends_and_waits():
    provider = provider_mock()
    provider.get_status = AsyncMock(side_effect=[{"status": "PENDING"}, {"status": "DONE", "substatus": "COMPLETED"}])
    signer = Signer(allowance=0)
    context = ActiveChainContext(signer, chain_id=1)
    updates = []

    await LifiRoutingService(provider, poll_interval=0).execute_route(
        {"id": "r1", "steps": [step()]}, context, updates.append
    )

    assert signer.switches == [42161]
    approve, bridge = signer.sent
    assert approve.tx_type == TransactionType.APPROVE
    assert approve.data == encode_approve(SPENDER, 100_000_000)
    assert bridge.tx_type == TransactionType.BRIDGE
    assert bridge.to_address == BRIDGE_TARGET
    assert provider.get_status.await_count == 2
    assert updates == [{"routeId": "r1", "step": 0, "txHash": "0xhash2", "status": "DONE"}]


@pytest.mark.asyncio
async def test_sufficient_allowance_and_native_token_skip_approval():
    provider = provider_mock(get_status={"status": "DONE"})
    signer = Signer(allowance=10**30)
    context = ActiveChainContext(signer)
    service = LifiRoutingService(provider, poll_interval=0)

    await service.execute_route({"id": "r", "steps": [step()]}, context)
    await service.execute_route(
        {"id": "r2", "steps": [step(token="0x0000000000000000000000000000000000000000")]}, context
    )

    assert [tx.tx_type for tx in signer.sent] == [TransactionType.BRIDGE, TransactionType.BRIDGE]


@pytest.mark.asyncio
async def test_missing_transaction_request_is_fetched():
    populated = step(from_chain=8453, to_chain=8453)
    provider = provider_mock(get_step_transaction=populated)
    signer = Signer(allowance=10**30)

    await LifiRoutingService(provider).execute_route(
        {"id": "swap", "steps": [step(from_chain=8453, to_chain=8453, with_tx=False)]},
        ActiveChainContext(signer),
    )

    provider.get_step_transaction.assert_awaited_once()
    (swap,) = signer.sent
    assert swap.tx_type == TransactionType.SWAP
    provider.get_status.assert_not_called()


@pytest.mark.asyncio
async def test_failed_bridge_raises():
    provider = provider_mock(get_status={"status": "FAILED", "substatusMessage": "slippage exceeded"})
    signer = Signer(allowance=10**30)

    with pytest.raises(RouteExecutionError, match="slippage exceeded"):
        await LifiRoutingService(provider, poll_interval=0).execute_route(
            {"id": "r", "steps": [step()]}, ActiveChainContext(signer)
        )


@pytest.mark.asyncio
async def test_refunded_bridge_raises():
    provider = provider_mock(get_status={"status": "DONE", "substatus": "REFUNDED"})

    with pytest.raises(RouteExecutionError, match="refunded"):
        await LifiRoutingService(provider, poll_interval=0).execute_route(
            {"id": "r", "steps": [step()]}, ActiveChainContext(Signer(allowance=10**30))
        )


@pytest.mark.asyncio
async def test_bridge_poll_times_out():
    provider = provider_mock(get_status={"status": "PENDING"})

    with pytest.raises(RouteExecutionError, match="timed out"):
        await LifiRoutingService(provider, poll_interval=0, poll_timeout=0).execute_route(
            {"id": "r", "steps": [step()]}, ActiveChainContext(Signer(allowance=10**30))
        )


@pytest.mark.asyncio
async def test_route_without_steps_raises():
    with pytest.raises(RouteExecutionError):
        await LifiRoutingService(provider_mock()).execute_route({"id": "empty"}, ActiveChainContext(Signer()))
