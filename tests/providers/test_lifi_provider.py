import json

import httpx
import pytest

from boundless.core.errors import ProviderError, RateLimitedError
from boundless.providers.lifi import LifiProvider

WALLET = "0x1111111111111111111111111111111111111111"


def transport(handler):
    calls = []

    def record(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    return httpx.MockTransport(record), calls


@pytest.mark.asyncio
async def test_get_routes_posts_integrator_fee_and_slippage():
    mock, calls = transport(lambda request: httpx.Response(200, json={"routes": [{"id": "a"}, {"id": "b"}]}))
    provider = LifiProvider(base_url="https://li.test/v1", api_key="secret", transport=mock)

    routes = await provider.get_routes(
        from_chain_id=42161,
        to_chain_id=8453,
        from_token="0x0000000000000000000000000000000000000000",
        to_token="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        from_amount=10**17,
        from_address=WALLET,
        slippage=0.005,
    )

    assert [r["id"] for r in routes] == ["a", "b"]
    (request,) = calls
    assert request.method == "POST"
    assert request.url.path == "/v1/advanced/routes"
    assert request.headers["x-lifi-api-key"] == "secret"
    body = json.loads(request.content)
    assert body["fromAmount"] == "100000000000000000"
    assert body["toAddress"] == WALLET
    assert body["options"]["integrator"] == "stoneplace"
    assert body["options"]["fee"] == 0.01
    assert body["options"]["slippage"] == 0.005


@pytest.mark.asyncio
async def test_no_api_key_header_when_unset():
    mock, calls = transport(lambda request: httpx.Response(200, json={"routes": []}))
    provider = LifiProvider(base_url="https://li.test/v1", api_key="", transport=mock)

    routes = await provider.get_routes(
        from_chain_id=1,
        to_chain_id=10,
        from_token="0x0000000000000000000000000000000000000000",
        to_token="0x0000000000000000000000000000000000000000",
        from_amount=1,
        from_address=WALLET,
    )

    assert routes == []
    assert "x-lifi-api-key" not in calls[0].headers


@pytest.mark.asyncio
async def test_status_query_params():
    mock, calls = transport(lambda request: httpx.Response(200, json={"status": "DONE"}))
    provider = LifiProvider(base_url="https://li.test/v1", transport=mock)

    status = await provider.get_status("0xabc", bridge="across", from_chain_id=42161, to_chain_id=8453)

    assert status["status"] == "DONE"
    params = calls[0].url.params
    assert params["txHash"] == "0xabc"
    assert params["bridge"] == "across"
    assert params["fromChain"] == "42161"
    assert params["toChain"] == "8453"


@pytest.mark.asyncio
async def test_rate_limit_and_http_errors():
    provider = LifiProvider(
        base_url="https://li.test/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(429, json={})),
    )
    with pytest.raises(RateLimitedError):
        await provider.get_step_transaction({"id": "s"})

    provider = LifiProvider(
        base_url="https://li.test/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(404, text="No available quotes")),
    )
    with pytest.raises(ProviderError) as excinfo:
        await provider.get_step_transaction({"id": "s"})
    assert excinfo.value.status_code == 404
    assert "No available quotes" in str(excinfo.value)


@pytest.mark.asyncio
async def test_network_errors_become_provider_errors():
    def fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = LifiProvider(base_url="https://li.test/v1", transport=httpx.MockTransport(fail))

    with pytest.raises(ProviderError):
        await provider.get_status("0xabc")
