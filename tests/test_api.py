from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from boundless.api.flows import get_liquidity_service
from boundless.cache import TTLCache
from boundless.config import settings
from boundless.core.errors import ProviderError, RateLimitedError
from boundless.main import app
from boundless.services.balances import BalanceService, get_balance_service
from boundless.services.liquidity import LiquidityService

WALLET = "0x1111111111111111111111111111111111111111"
USDC_ARB = "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"

POSITIONS = {
    "data": [
        {
            "type": "positions",
            "id": "usdc-base",
            "attributes": {
                "quantity": {"numeric": "25"},
                "value": 25.0,
                "fungible_info": {
                    "symbol": "USDC",
                    "name": "USD Coin",
                    "implementations": [
                        {"chain_id": "base", "address": "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913", "decimals": 6}
                    ],
                },
            },
            "relationships": {"chain": {"data": {"type": "chains", "id": "base"}}},
        }
    ]
}


def balance_payload(chain="arbitrum", usd="40"):
    return {
        "symbol": "USDC",
        "chain": chain,
        "amount": usd,
        "usdValue": usd,
        "wallet": WALLET,
        "address": USDC_ARB,
        "decimals": 6,
    }


@pytest.fixture
def zerion():
    provider = MagicMock()
    provider.get_positions = AsyncMock(return_value=POSITIONS)
    return provider


@pytest.fixture
def routing():
    routing = MagicMock()

    async def best(request):
        return {"id": f"route-{request.from_chain_id}", "toAmountUSD": "39.5", "gasCostUSD": "0.3", "steps": []}

    routing.get_best_route = AsyncMock(side_effect=best)
    routing.get_contract_call_route = AsyncMock(return_value=None)
    return routing


@pytest.fixture
def client(zerion, routing):
    balance_service = BalanceService(zerion, TTLCache(), chart_cache=TTLCache())
    app.dependency_overrides[get_balance_service] = lambda: balance_service
    app.dependency_overrides[get_liquidity_service] = lambda: LiquidityService(routing)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    body = client.get("/").json()
    assert body["name"] == "Boundless API"
    assert body["health"] == "/healthz"


def test_health_reports_providers(client, monkeypatch):
    monkeypatch.setattr(settings, "zerion_api_key", "")
    body = client.get("/healthz").json()

    assert set(body["providers"]) == {"zerion", "lifi"}
    assert body["status"] == "degraded"
    assert body["available_providers"] == 1
    assert body["total_providers"] == 2
    assert body["auto_deposit"] is False

    monkeypatch.setattr(settings, "zerion_api_key", "zk_test")
    assert client.get("/healthz").json()["status"] == "healthy"


def test_portfolio_requires_address(client):
    response = client.get("/portfolio")
    assert response.status_code == 400
    assert response.json()["detail"] == "Address is required"


def test_portfolio_returns_raw_payload(client, zerion):
    response = client.get("/portfolio", params={"address": WALLET})

    assert response.status_code == 200
    assert response.json() == POSITIONS
    zerion.get_positions.assert_awaited_once()


def test_portfolio_provider_errors_map_to_status(client, zerion):
    zerion.get_positions = AsyncMock(side_effect=RateLimitedError("zerion"))
    response = client.get("/portfolio", params={"address": WALLET})
    assert response.status_code == 429

    zerion.get_positions = AsyncMock(side_effect=ProviderError("zerion", "Zerion API error: 503", 503))
    assert client.get("/portfolio", params={"address": WALLET}).status_code == 503

    zerion.get_positions = AsyncMock(side_effect=ProviderError("zerion", "API key not configured"))
    assert client.get("/portfolio", params={"address": WALLET}).status_code == 500


def test_unified_balances(client):
    body = client.get("/portfolio/balances", params={"address": WALLET}).json()

    assert body["wallet"] == WALLET
    assert Decimal(body["totalUsd"]) == 25
    assert body["byChain"]["base"]["count"] == 1
    assert body["balances"][0]["rawAmount"] == "25000000"


def test_pull_preview(client):
    response = client.post(
        "/squeeze/preview",
        json={
            "flow": "pull",
            "balances": [balance_payload("arbitrum", "40"), balance_payload("base", "90")],
            "destinationChainId": 8453,
            "destinationAddress": WALLET,
            "requestedUsd": "30",
        },
    )

    assert response.status_code == 200
    preview = response.json()["preview"]
    assert preview["kind"] == "pull"
    assert [b["chain"] for b in preview["selection"]] == ["arbitrum"]
    assert Decimal(preview["selectedUsd"]) == 30
    assert preview["insufficientBalance"] is False
    assert preview["plan"]["routes"][0]["routeId"] == "route-42161"


def test_pull_without_amount_is_rejected(client):
    response = client.post(
        "/squeeze/preview",
        json={
            "flow": "pull",
            "balances": [balance_payload()],
            "destinationChainId": 8453,
            "destinationAddress": WALLET,
        },
    )
    assert response.status_code == 400


def test_disallowed_destination_is_rejected(client):
    response = client.post(
        "/squeeze/preview",
        json={"balances": [balance_payload()], "destinationChainId": 56, "destinationAddress": WALLET},
    )
    assert response.status_code == 400


def test_markets_listed(client):
    markets = client.get("/markets").json()["markets"]
    assert "8453:usdc" in [m["key"] for m in markets]


def test_zap_preview(client):
    response = client.post(
        "/zap/preview",
        json={"balances": [balance_payload()], "chainId": 8453, "asset": "usdc", "requestedUsd": "10", "wallet": WALLET},
    )

    assert response.status_code == 200
    preview = response.json()["preview"]
    assert preview["kind"] == "zap"
    assert preview["market"] == "8453:usdc"
    assert preview["policy"] == "halt_on_failure"


def test_zap_unknown_market(client):
    response = client.post(
        "/zap/preview",
        json={"balances": [], "chainId": 8453, "asset": "DOGE", "requestedUsd": "10", "wallet": WALLET},
    )
    assert response.status_code == 404


def test_chart_requires_address(client):
    assert client.get("/portfolio/chart").status_code == 400


def test_chart_defaults_to_day_and_is_cached(client, zerion):
    zerion.get_chart = AsyncMock(return_value={"data": {"attributes": {"points": [[1700000000, 25.0]]}}})

    first = client.get("/portfolio/chart", params={"address": WALLET})
    second = client.get("/portfolio/chart", params={"address": WALLET, "period": "day"})

    assert first.status_code == 200
    assert second.json() == first.json()
    zerion.get_chart.assert_awaited_once_with(WALLET, "day")


def test_chart_rate_limit_passthrough(client, zerion):
    zerion.get_chart = AsyncMock(side_effect=RateLimitedError("zerion"))

    response = client.get("/portfolio/chart", params={"address": WALLET, "period": "month"})

    assert response.status_code == 429
