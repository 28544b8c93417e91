"""Async client for the Zerion wallet API."""

from __future__ import annotations

import base64
from typing import Any, Dict, Iterable, Optional

import httpx

from ..config import settings
from ..core.constants import SUPPORTED_CHAINS
from ..core.errors import ProviderError, RateLimitedError

CHART_PERIODS = ("hour", "day", "week", "month", "year", "max")
DEFAULT_CHART_PERIOD = "day"


def normalize_chart_period(period: Optional[str]) -> str:
    """Unknown or missing periods fall back to ``day``."""
    value = (period or "").strip().lower()
    return value if value in CHART_PERIODS else DEFAULT_CHART_PERIOD


class ZerionProvider:
    """Wallet positions and value charts across the supported chains."""

    name = "zerion"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.zerion_api_key
        self.base_url = (base_url or settings.zerion_base_url).rstrip("/")
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self._transport = transport

    async def ready(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        # Zerion uses basic auth with the key as username and an empty password
        token = base64.b64encode(f"{self.api_key}:".encode()).decode()
        return {
            "authorization": f"Basic {token}",
            "accept": "application/json",
            "content-type": "application/json",
        }

    async def health_check(self) -> Dict[str, Any]:
        if not await self.ready():
            return {"status": "unavailable", "reason": "API key not configured"}
        return {"status": "healthy"}

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not await self.ready():
            raise ProviderError(self.name, "API key not configured")

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_s,
                transport=self._transport,
            ) as client:
                response = await client.get(path, params=params, headers=self._headers())
        except httpx.RequestError as exc:
            raise ProviderError(self.name, f"request failed: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitedError(self.name)
        if response.status_code >= 400:
            raise ProviderError(
                self.name,
                f"Zerion API error: {response.status_code}",
                response.status_code,
            )
        return response.json()

    async def get_positions(
        self,
        address: str,
        chains: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """Raw ``/wallets/{address}/positions`` payload (non-trash, USD, by value)."""
        params = {
            "filter[chain_ids]": ",".join(chains or SUPPORTED_CHAINS.keys()),
            "filter[trash]": "only_non_trash",
            "currency": "usd",
            "sort": "value",
        }
        return await self._get(f"/wallets/{address}/positions", params)

    async def get_chart(
        self,
        address: str,
        period: str = DEFAULT_CHART_PERIOD,
        chains: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """Raw ``/wallets/{address}/charts/{period}`` payload in USD."""
        params = {
            "currency": "usd",
            "filter[chain_ids]": ",".join(chains or SUPPORTED_CHAINS.keys()),
        }
        return await self._get(f"/wallets/{address}/charts/{normalize_chart_period(period)}", params)
