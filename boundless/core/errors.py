"""
Error taxonomy for route resolution and execution.

Resolution errors never escape the resolver: they become skipped assets.
Execution errors are captured per route. Only plan-shape errors
(``MalformedPlanError``, ``InvalidStatusTransition``) propagate to callers.
"""

from typing import Any, Dict, Optional


class BoundlessError(Exception):
    """Base exception for the orchestrator."""
    pass


class UnsupportedChainError(BoundlessError):
    """A chain name or id is not in the registry (or not an allowed destination)."""

    def __init__(self, chain: Any, message: Optional[str] = None):
        super().__init__(message or f"unsupported chain: {chain}")
        self.chain = chain


class NoRouteError(BoundlessError):
    """The routing service returned no path for a request."""
    pass


class ProviderError(BoundlessError):
    """An upstream HTTP API (indexer, routing service) failed."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class RateLimitedError(ProviderError):
    """Upstream answered 429."""

    def __init__(self, provider: str):
        super().__init__(provider, "rate limited, try again in a minute", status_code=429)


class RouteExecutionError(BoundlessError):
    """A signed step failed (rejected, reverted, bridge failure, timeout)."""

    def __init__(self, message: str, tx_hash: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.details = details or {}


class ChainMismatchError(RouteExecutionError):
    """A transaction was about to be sent on a chain the wallet is not on."""

    def __init__(self, expected: int, active: Optional[int]):
        super().__init__(f"wallet is on chain {active}, transaction targets chain {expected}")
        self.expected = expected
        self.active = active


class MalformedPlanError(BoundlessError, ValueError):
    """A plan handed to the execution engine cannot be executed as-is."""
    pass


class InvalidStatusTransition(BoundlessError):
    """A route status was moved backwards or out of its terminal state."""

    def __init__(self, current: Any, requested: Any):
        super().__init__(f"cannot move route from {current} to {requested}")
        self.current = current
        self.requested = requested
