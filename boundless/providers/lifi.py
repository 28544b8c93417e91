"""Async client for the LI.FI routing API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.errors import ProviderError, RateLimitedError


class LifiProvider:
    """Thin wrapper around https://li.quest/v1 endpoints.

    The integrator name and fee from settings are attached to every
    route/quote request; LI.FI deducts the fee itself.
    """

    name = "lifi"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_s: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.lifi_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.lifi_api_key
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": "BoundlessLifiClient/2025-10",
        }
        if self.api_key:
            headers["x-lifi-api-key"] = self.api_key
        return headers

    def _options(self, slippage: Optional[float] = None) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "integrator": settings.lifi_integrator,
            "order": "RECOMMENDED",
            "allowSwitchChain": True,
        }
        if settings.integrator_fee:
            options["fee"] = float(settings.integrator_fee)
        if slippage is not None:
            options["slippage"] = slippage
        return options

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=json, params=params, headers=self._headers())
        except httpx.RequestError as exc:
            raise ProviderError(self.name, f"request to {path} failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitedError(self.name)
        if response.status_code >= 400:
            detail = response.text or response.reason_phrase
            raise ProviderError(self.name, f"{path} returned {response.status_code}: {detail}", response.status_code)
        return response.json()

    async def get_routes(
        self,
        *,
        from_chain_id: int,
        to_chain_id: int,
        from_token: str,
        to_token: str,
        from_amount: int,
        from_address: str,
        to_address: Optional[str] = None,
        slippage: float = 0.005,
    ) -> List[Dict[str, Any]]:
        """Ranked routes for an exact-input transfer (best first)."""
        payload = {
            "fromChainId": from_chain_id,
            "toChainId": to_chain_id,
            "fromTokenAddress": from_token,
            "toTokenAddress": to_token,
            "fromAmount": str(from_amount),
            "fromAddress": from_address,
            "toAddress": to_address or from_address,
            "options": self._options(slippage),
        }
        data = await self._request("POST", "/advanced/routes", json=payload)
        return list(data.get("routes") or [])

    async def get_contract_calls_quote(
        self,
        *,
        from_chain_id: int,
        to_chain_id: int,
        from_token: str,
        to_token: str,
        from_address: str,
        to_amount: int,
        contract_calls: List[Dict[str, Any]],
        slippage: float = 0.005,
    ) -> Dict[str, Any]:
        """A single-step quote that bridges and then runs ``contract_calls``."""
        payload = {
            "fromChain": from_chain_id,
            "fromToken": from_token,
            "fromAddress": from_address,
            "toChain": to_chain_id,
            "toToken": to_token,
            "toAmount": str(to_amount),
            "contractCalls": contract_calls,
            "integrator": settings.lifi_integrator,
            "slippage": slippage,
        }
        if settings.integrator_fee:
            payload["fee"] = float(settings.integrator_fee)
        return await self._request("POST", "/quote/contractCalls", json=payload)

    async def get_step_transaction(self, step: Dict[str, Any]) -> Dict[str, Any]:
        """Populate ``transactionRequest`` for one route step."""
        return await self._request("POST", "/advanced/stepTransaction", json=step)

    async def get_status(
        self,
        tx_hash: str,
        *,
        bridge: Optional[str] = None,
        from_chain_id: Optional[int] = None,
        to_chain_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"txHash": tx_hash}
        if bridge:
            params["bridge"] = bridge
        if from_chain_id is not None:
            params["fromChain"] = from_chain_id
        if to_chain_id is not None:
            params["toChain"] = to_chain_id
        return await self._request("GET", "/status", params=params)
