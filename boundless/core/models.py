"""
Value objects shared by selection, resolution and execution.

Amounts are integers in the token's smallest unit everywhere in the core;
``Balance.amount`` is the derived human-readable Decimal for display.
USD values are Decimals.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_DOWN, Decimal, localcontext
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .chains import (
    chain_name_to_id,
    is_native_symbol,
    is_well_formed_address,
    known_decimals,
    native_token_address,
)
from .errors import InvalidStatusTransition

# Enough digits for uint256 * USD ratios without rounding.
_WIDE_PRECISION = 100


def to_smallest_unit(amount: Union[str, Decimal, int, float], decimals: int) -> int:
    """Human decimal amount -> integer smallest units (floored)."""
    value = Decimal(str(amount))
    if value < 0:
        raise ValueError(f"negative amount: {amount}")
    with localcontext() as ctx:
        ctx.prec = _WIDE_PRECISION
        return int(value.scaleb(decimals).to_integral_value(rounding=ROUND_DOWN))


def from_smallest_unit(raw: int, decimals: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _WIDE_PRECISION
        return Decimal(raw).scaleb(-decimals)


# ---------------------------------------------------------------------------
# Tokens & balances
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NativeToken:
    """Chain gas token (ETH, BNB, ...)."""
    decimals: int = 18

    @property
    def address(self) -> str:
        return native_token_address()


@dataclass(frozen=True)
class Erc20Token:
    address: str
    decimals: int


TokenKind = Union[NativeToken, Erc20Token]


def resolve_token_kind(symbol: str, address: Optional[str], decimals: Optional[int]) -> TokenKind:
    """Classify a token once, from indexer data.

    Native when the symbol is a gas token or the address is not a usable
    ``0x`` address; decimals fall back to the well-known table.
    """
    resolved_decimals = known_decimals(symbol, decimals)
    if is_native_symbol(symbol) or not is_well_formed_address(address):
        return NativeToken(decimals=resolved_decimals)
    return Erc20Token(address=address, decimals=resolved_decimals)


@dataclass(frozen=True)
class AssetRef:
    symbol: str
    name: str
    address: str
    chain: str
    decimals: int
    kind: TokenKind

    @classmethod
    def build(
        cls,
        symbol: str,
        address: Optional[str],
        chain: str,
        decimals: Optional[int] = None,
        name: Optional[str] = None,
    ) -> "AssetRef":
        kind = resolve_token_kind(symbol, address, decimals)
        return cls(
            symbol=symbol,
            name=name or symbol,
            address=address or native_token_address(),
            chain=chain,
            decimals=kind.decimals,
            kind=kind,
        )

    @property
    def is_native(self) -> bool:
        return isinstance(self.kind, NativeToken)

    @property
    def routing_address(self) -> str:
        """Address to quote with: the native sentinel or the ERC-20 contract."""
        return self.kind.address


@dataclass(frozen=True)
class Balance:
    """A held amount of one asset in one wallet on one chain."""

    asset: AssetRef
    raw_amount: int
    usd_value: Decimal
    wallet: str
    chain: str

    @classmethod
    def from_human(
        cls,
        asset: AssetRef,
        amount: Union[str, Decimal],
        usd_value: Union[str, Decimal, float],
        wallet: str,
        chain: Optional[str] = None,
    ) -> "Balance":
        return cls(
            asset=asset,
            raw_amount=to_smallest_unit(amount, asset.decimals),
            usd_value=Decimal(str(usd_value)),
            wallet=wallet,
            chain=chain or asset.chain,
        )

    @property
    def amount(self) -> Decimal:
        return from_smallest_unit(self.raw_amount, self.asset.decimals)

    @property
    def chain_id(self) -> Optional[int]:
        return chain_name_to_id(self.chain)

    @property
    def label(self) -> str:
        return f"{self.asset.symbol} on {self.chain}"

    def portion(self, usd: Decimal) -> "Balance":
        """A new Balance worth ``usd`` with the raw amount scaled to match."""
        if self.usd_value <= 0:
            raise ValueError(f"cannot split {self.label}: no USD value")
        with localcontext() as ctx:
            ctx.prec = _WIDE_PRECISION
            raw = (Decimal(self.raw_amount) * usd / self.usd_value).to_integral_value(rounding=ROUND_DOWN)
        return replace(self, raw_amount=int(raw), usd_value=usd)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.asset.symbol,
            "name": self.asset.name,
            "address": self.asset.address,
            "chain": self.chain,
            "decimals": self.asset.decimals,
            "isNative": self.asset.is_native,
            "amount": str(self.amount),
            "rawAmount": str(self.raw_amount),
            "usdValue": str(self.usd_value),
            "wallet": self.wallet,
        }


# ---------------------------------------------------------------------------
# Routes & plans
# ---------------------------------------------------------------------------

class RouteStatus(str, Enum):
    """Per-route lifecycle. Linear, no backward transitions."""
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    RouteStatus.PENDING: {RouteStatus.EXECUTING, RouteStatus.FAILED},
    RouteStatus.EXECUTING: {RouteStatus.COMPLETED, RouteStatus.FAILED},
    RouteStatus.COMPLETED: set(),
    RouteStatus.FAILED: set(),
}


class ExecutionPolicy(str, Enum):
    CONTINUE_ON_FAILURE = "continue_on_failure"
    HALT_ON_FAILURE = "halt_on_failure"


@dataclass(frozen=True)
class DirectCallSpec:
    """A same-chain deposit that bypasses the routing service."""
    chain_id: int
    target_contract: str
    encoded_call: str
    amount: int
    token: str


@dataclass(frozen=True)
class DepositTarget:
    """Where zapped funds end up: the lending pool for an underlying token."""
    chain_id: int
    underlying_token: str
    pool_address: Optional[str]

    @property
    def can_deposit(self) -> bool:
        return bool(self.pool_address)


@dataclass
class ResolvedRoute:
    asset: Balance
    is_direct: bool = False
    direct_call: Optional[DirectCallSpec] = None
    external_route: Optional[Dict[str, Any]] = None
    estimated_output: int = 0
    estimated_output_usd: Decimal = Decimal("0")
    estimated_gas_cost_usd: Decimal = Decimal("0")
    has_auto_deposit: bool = False
    status: RouteStatus = RouteStatus.PENDING

    def advance(self, new_status: RouteStatus) -> None:
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(self.status, new_status)
        self.status = new_status

    @property
    def is_executable(self) -> bool:
        if self.is_direct:
            return self.direct_call is not None
        return bool(self.external_route)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset": self.asset.to_dict(),
            "isDirect": self.is_direct,
            "hasAutoDeposit": self.has_auto_deposit,
            "routeId": (self.external_route or {}).get("id"),
            "estimatedOutput": str(self.estimated_output),
            "estimatedOutputUsd": str(self.estimated_output_usd),
            "estimatedGasCostUsd": str(self.estimated_gas_cost_usd),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class SkippedAsset:
    asset: Balance
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.asset.asset.symbol,
            "chain": self.asset.chain,
            "usdValue": str(self.asset.usd_value),
            "reason": self.reason,
        }


@dataclass
class RoutePlan:
    """Resolved plan for a squeeze/pull/refuel/zap."""
    routes: List[ResolvedRoute] = field(default_factory=list)
    skipped_assets: List[SkippedAsset] = field(default_factory=list)
    total_input_usd: Decimal = Decimal("0")
    total_estimated_output_usd: Decimal = Decimal("0")
    total_gas_cost_usd: Decimal = Decimal("0")
    created_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def is_complete(self) -> bool:
        return not self.skipped_assets

    @property
    def has_routes(self) -> bool:
        return bool(self.routes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "routes": [route.to_dict() for route in self.routes],
            "skippedAssets": [skipped.to_dict() for skipped in self.skipped_assets],
            "totalInputUsd": str(self.total_input_usd),
            "totalEstimatedOutputUsd": str(self.total_estimated_output_usd),
            "totalGasCostUsd": str(self.total_gas_cost_usd),
            "isComplete": self.is_complete,
        }


@dataclass(frozen=True)
class SqueezeRequest:
    assets: List[Balance]
    destination_chain_id: int
    destination_token: str
    destination_address: str


@dataclass(frozen=True)
class ZapRequest:
    assets: List[Balance]
    destination_chain_id: int
    destination_token: str
    destination_address: str
    destination_underlying_token: Optional[str] = None


# ---------------------------------------------------------------------------
# Execution results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RouteError:
    index: int
    message: str


@dataclass
class ExecutionSummary:
    total_routes: int
    successful_indices: List[int] = field(default_factory=list)
    failed_indices: List[int] = field(default_factory=list)
    errors: List[RouteError] = field(default_factory=list)
    halted: bool = False

    @property
    def successful_routes(self) -> int:
        return len(self.successful_indices)

    @property
    def failed_routes(self) -> int:
        return len(self.failed_indices)

    @property
    def is_success(self) -> bool:
        return self.failed_routes == 0 and self.successful_routes == self.total_routes

    @property
    def is_partial(self) -> bool:
        return self.successful_routes > 0 and self.failed_routes > 0

    def record_success(self, index: int) -> None:
        self.successful_indices.append(index)

    def record_failure(self, index: int, message: str) -> None:
        self.failed_indices.append(index)
        self.errors.append(RouteError(index=index, message=message))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRoutes": self.total_routes,
            "successfulRoutes": self.successful_routes,
            "failedRoutes": self.failed_routes,
            "successfulIndices": list(self.successful_indices),
            "failedIndices": list(self.failed_indices),
            "errors": [{"index": e.index, "message": e.message} for e in self.errors],
            "halted": self.halted,
        }


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

class TransactionType(str, Enum):
    APPROVE = "approve"
    SUPPLY = "supply"
    BRIDGE = "bridge"
    SWAP = "swap"


@dataclass
class PreparedTransaction:
    """A transaction ready to be signed by the wallet."""
    tx_id: str
    tx_type: TransactionType
    chain_id: int
    from_address: str
    to_address: str
    data: str
    value: int = 0
    gas_limit: Optional[int] = None
    description: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Wallet-ready (EIP-1193 ``eth_sendTransaction``) params."""
        tx = {
            "from": self.from_address,
            "to": self.to_address,
            "data": self.data,
            "value": hex(self.value),
            "chainId": hex(self.chain_id),
        }
        if self.gas_limit:
            tx["gas"] = hex(self.gas_limit)
        return tx
