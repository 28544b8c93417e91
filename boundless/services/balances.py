"""
Balance aggregation.

Fetches wallet positions from Zerion and normalizes them into ``Balance``
records for the supported chains. Raw payloads are cached per address so
repeated page loads don't burn through the indexer's rate limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from eth_utils import to_checksum_address

from ..cache import TTLCache
from ..config import settings
from ..core.chains import chain_name_to_id, is_supported_chain, is_well_formed_address
from ..core.models import AssetRef, Balance
from ..providers.zerion import ZerionProvider, normalize_chart_period

logger = logging.getLogger(__name__)


@dataclass
class ChainTotals:
    total_usd: Decimal = Decimal("0")
    assets: List[Balance] = field(default_factory=list)


@dataclass
class UnifiedBalance:
    """All balances of one wallet, with per-chain totals."""
    wallet: str
    balances: List[Balance] = field(default_factory=list)
    total_usd: Decimal = Decimal("0")
    by_chain: Dict[str, ChainTotals] = field(default_factory=dict)

    @classmethod
    def from_balances(cls, wallet: str, balances: List[Balance]) -> "UnifiedBalance":
        result = cls(wallet=wallet, balances=list(balances))
        for balance in balances:
            result.total_usd += balance.usd_value
            bucket = result.by_chain.setdefault(balance.chain, ChainTotals())
            bucket.total_usd += balance.usd_value
            bucket.assets.append(balance)
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wallet": self.wallet,
            "totalUsd": str(self.total_usd),
            "balances": [b.to_dict() for b in self.balances],
            "byChain": {
                chain: {"totalUsd": str(totals.total_usd), "count": len(totals.assets)}
                for chain, totals in self.by_chain.items()
            },
        }


def _decimal(value: Any, default: str = "0") -> Decimal:
    try:
        return Decimal(str(value)) if value is not None else Decimal(default)
    except (InvalidOperation, ValueError):
        return Decimal(default)


def parse_position(position: Dict[str, Any], wallet: str) -> Optional[Balance]:
    """Normalize one Zerion position; None when it can't be used."""
    chain = ((position.get("relationships") or {}).get("chain") or {}).get("data", {}).get("id")
    if not chain:
        logger.debug("Skipping position %s: no chain", position.get("id"))
        return None

    attributes = position.get("attributes") or {}
    info = attributes.get("fungible_info")
    if not info:
        logger.debug("Skipping position %s: no fungible_info", position.get("id"))
        return None

    symbol = info.get("symbol") or "UNKNOWN"
    address = None
    decimals = info.get("decimals")
    for implementation in info.get("implementations") or []:
        if implementation.get("chain_id") == chain:
            address = implementation.get("address")
            # per-chain decimals win; the top-level field is usually absent
            if implementation.get("decimals") is not None:
                decimals = implementation.get("decimals")
            break
    if not address:
        # position ids look like "<token address>-<chain>-asset-asset"
        candidate = str(position.get("id", "")).split("-")[0]
        address = candidate if is_well_formed_address(candidate) else None
    if is_well_formed_address(address):
        address = to_checksum_address(address)

    asset = AssetRef.build(
        symbol=symbol,
        address=address,
        chain=chain,
        decimals=decimals,
        name=info.get("name"),
    )
    quantity = _decimal((attributes.get("quantity") or {}).get("numeric"))
    if quantity < 0:
        return None
    return Balance.from_human(
        asset=asset,
        amount=quantity,
        usd_value=_decimal(attributes.get("value")),
        wallet=wallet,
        chain=chain,
    )


def parse_positions(payload: Dict[str, Any], wallet: str) -> List[Balance]:
    balances: List[Balance] = []
    for position in payload.get("data") or []:
        try:
            balance = parse_position(position, wallet)
        except (ValueError, TypeError, AttributeError) as exc:
            logger.warning("Error parsing position %s: %s", position.get("id"), exc)
            continue
        if balance is None:
            continue
        if not is_supported_chain(balance.chain):
            logger.debug("Filtered out %s (unsupported chain)", balance.label)
            continue
        balances.append(balance)
    return balances


class BalanceService:
    """
    Cached wallet balances.

    Usage:
        service = get_balance_service()
        unified = await service.get_unified_balance("0x...")
        balances = await service.get_balances("0x...")
    """

    def __init__(
        self,
        provider: Optional[ZerionProvider] = None,
        cache: Optional[TTLCache] = None,
        chart_cache: Optional[TTLCache] = None,
    ) -> None:
        self._provider = provider or ZerionProvider()
        self._cache = cache or TTLCache(default_ttl=settings.balance_cache_ttl_seconds)
        # charts move slowly, so they get their own longer-lived cache
        self._chart_cache = chart_cache or TTLCache(default_ttl=settings.chart_cache_ttl_seconds)

    @staticmethod
    def _cache_key(address: str) -> str:
        return f"portfolio-{address.lower()}"

    async def get_chart(
        self,
        address: str,
        period: Optional[str] = None,
        force_refresh: bool = False,
    ) -> Dict[str, Any]:
        """Wallet value chart for ``period`` (unknown periods mean ``day``)."""
        chart_period = normalize_chart_period(period)
        key = f"chart-{address.lower()}-{chart_period}"
        if not force_refresh:
            cached = await self._chart_cache.get(key)
            if cached is not None:
                logger.debug("Returning cached chart for %s (%s)", address, chart_period)
                return cached

        logger.info("Fetching chart for %s (%s)", address, chart_period)
        payload = await self._provider.get_chart(address, chart_period)
        await self._chart_cache.set(key, payload)
        return payload

    async def get_portfolio_raw(self, address: str, force_refresh: bool = False) -> Dict[str, Any]:
        """Zerion positions payload, served from cache when fresh."""
        key = self._cache_key(address)
        if not force_refresh:
            cached = await self._cache.get(key)
            if cached is not None:
                logger.debug("Returning cached portfolio for %s", address)
                return cached

        logger.info("Fetching portfolio for %s", address)
        payload = await self._provider.get_positions(address)
        logger.info("Got %d positions for %s", len(payload.get("data") or []), address)
        await self._cache.set(key, payload)
        return payload

    async def get_balances(self, address: str, force_refresh: bool = False) -> List[Balance]:
        payload = await self.get_portfolio_raw(address, force_refresh=force_refresh)
        return parse_positions(payload, address)

    async def get_unified_balance(self, address: str, force_refresh: bool = False) -> UnifiedBalance:
        balances = await self.get_balances(address, force_refresh=force_refresh)
        return UnifiedBalance.from_balances(address, balances)

    async def get_chain_balances(self, address: str, chain: str) -> List[Balance]:
        chain_id = chain_name_to_id(chain)
        return [b for b in await self.get_balances(address) if b.chain_id == chain_id]

    async def clear_cache(self, address: Optional[str] = None) -> None:
        if address is None:
            await self._cache.clear()
            await self._chart_cache.clear()
        else:
            await self._cache.invalidate(self._cache_key(address))


_balance_service: Optional[BalanceService] = None


def get_balance_service() -> BalanceService:
    global _balance_service
    if _balance_service is None:
        _balance_service = BalanceService()
    return _balance_service
