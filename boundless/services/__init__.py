from .balances import BalanceService, get_balance_service
from .liquidity import FlowKind, FlowPreview, LiquidityService
from .routing import LifiRoutingService

__all__ = [
    "BalanceService",
    "get_balance_service",
    "FlowKind",
    "FlowPreview",
    "LiquidityService",
    "LifiRoutingService",
]
