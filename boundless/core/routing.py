"""Routing service boundary consumed by the resolver and execution engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from .constants import DEFAULT_SLIPPAGE
from .wallet import ActiveChainContext

RouteUpdateCallback = Callable[[Dict[str, Any]], None]


@dataclass(frozen=True)
class RouteRequest:
    from_chain_id: int
    to_chain_id: int
    from_token: str
    to_token: str
    from_amount: int
    from_address: str
    to_address: str
    slippage: Decimal = DEFAULT_SLIPPAGE

    @property
    def is_cross_chain(self) -> bool:
        return self.from_chain_id != self.to_chain_id


@dataclass(frozen=True)
class ContractCall:
    """A call the routing service performs on the destination chain after bridging."""
    to_contract: str
    call_data: str
    from_token: str
    from_amount: int
    approval_address: Optional[str] = None
    gas_limit: int = 300_000


class RoutingService(ABC):
    """Best-path quoting and execution for cross-chain swaps/bridges."""

    name: str

    @abstractmethod
    async def get_best_route(self, request: RouteRequest) -> Optional[Dict[str, Any]]:
        """Top-ranked path, or None when the service has no path."""
        pass

    @abstractmethod
    async def get_contract_call_route(
        self,
        request: RouteRequest,
        contract_calls: List[ContractCall],
    ) -> Optional[Dict[str, Any]]:
        """A path that also performs ``contract_calls`` at the destination."""
        pass

    @abstractmethod
    async def execute_route(
        self,
        route: Dict[str, Any],
        context: ActiveChainContext,
        on_update: Optional[RouteUpdateCallback] = None,
    ) -> None:
        """Run every leg of ``route``; returns once all legs are confirmed, raises on failure."""
        pass
