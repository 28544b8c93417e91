"""
Route resolution and execution core.

Usage:
    from boundless.core import (
        RouteResolver,
        ExecutionEngine,
        ExecutionPolicy,
        select_assets,
    )

    selection = select_assets(balances, Decimal("250"), exclude_chain="base")
    plan = await RouteResolver(routing).resolve_squeeze(
        SqueezeRequest(selection, 8453, "USDC", wallet)
    )
    summary = await ExecutionEngine(context, routing).execute(plan.routes, on_status)
"""

from .chains import chain_name_to_id, native_token_address
from .errors import (
    BoundlessError,
    ChainMismatchError,
    InvalidStatusTransition,
    MalformedPlanError,
    NoRouteError,
    ProviderError,
    RateLimitedError,
    RouteExecutionError,
    UnsupportedChainError,
)
from .executor import ExecutionEngine, execute_routes
from .models import (
    AssetRef,
    Balance,
    DepositTarget,
    DirectCallSpec,
    Erc20Token,
    ExecutionPolicy,
    ExecutionSummary,
    NativeToken,
    ResolvedRoute,
    RouteError,
    RoutePlan,
    RouteStatus,
    SkippedAsset,
    SqueezeRequest,
    TokenKind,
    ZapRequest,
)
from .resolver import RouteResolver, resolve_routes
from .routing import ContractCall, RouteRequest, RoutingService
from .selection import is_insufficient, prioritize_for_market, select_assets, selected_total
from .wallet import ActiveChainContext, WalletSigner

__all__ = [
    # Registry
    "chain_name_to_id",
    "native_token_address",
    # Errors
    "BoundlessError",
    "ChainMismatchError",
    "InvalidStatusTransition",
    "MalformedPlanError",
    "NoRouteError",
    "ProviderError",
    "RateLimitedError",
    "RouteExecutionError",
    "UnsupportedChainError",
    # Models
    "AssetRef",
    "Balance",
    "DepositTarget",
    "DirectCallSpec",
    "Erc20Token",
    "ExecutionPolicy",
    "ExecutionSummary",
    "NativeToken",
    "ResolvedRoute",
    "RouteError",
    "RoutePlan",
    "RouteStatus",
    "SkippedAsset",
    "SqueezeRequest",
    "TokenKind",
    "ZapRequest",
    # Selection
    "select_assets",
    "selected_total",
    "is_insufficient",
    "prioritize_for_market",
    # Resolution & execution
    "RouteResolver",
    "resolve_routes",
    "ExecutionEngine",
    "execute_routes",
    "ContractCall",
    "RouteRequest",
    "RoutingService",
    "ActiveChainContext",
    "WalletSigner",
]
