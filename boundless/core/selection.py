"""
Asset selection: which balances cover a requested USD amount.

Pure functions, no I/O. Given identical input ordering the result is
identical, including the fractional split.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Union

from .chains import chain_name_to_id, same_chain
from .constants import DUST_THRESHOLD_USD, EarnMarket
from .models import Balance

ChainRef = Union[str, int]


def _as_decimal(value: Union[Decimal, int, float, str]) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def eligible_balances(
    balances: Iterable[Balance],
    exclude_chain: Optional[ChainRef] = None,
) -> List[Balance]:
    """Drop dust and anything on ``exclude_chain``; order preserved."""
    return [
        balance
        for balance in balances
        if balance.usd_value > DUST_THRESHOLD_USD
        and not (exclude_chain is not None and same_chain(balance.chain, exclude_chain))
    ]


def select_assets(
    balances: Sequence[Balance],
    requested_usd: Union[Decimal, int, float, str],
    exclude_chain: Optional[ChainRef] = None,
    *,
    presorted: bool = False,
) -> List[Balance]:
    """Greedily pick balances (largest first) until ``requested_usd`` is covered.

    The last balance taken is split when only part of it is needed. If the
    eligible balances can't cover the request, all of them are returned and
    the caller compares totals (see ``is_insufficient``).

    ``presorted`` keeps the caller's ordering instead of sorting by value.
    """
    remaining = _as_decimal(requested_usd)
    if remaining <= 0:
        return []

    pool = eligible_balances(balances, exclude_chain)
    if not presorted:
        # sorted() is stable: equal values keep input order
        pool = sorted(pool, key=lambda b: b.usd_value, reverse=True)

    selected: List[Balance] = []
    for balance in pool:
        if remaining <= 0:
            break
        if balance.usd_value <= remaining:
            selected.append(balance)
            remaining -= balance.usd_value
        else:
            selected.append(balance.portion(remaining))
            remaining = Decimal("0")
    return selected


def selected_total(balances: Iterable[Balance]) -> Decimal:
    return sum((b.usd_value for b in balances), Decimal("0"))


def is_insufficient(selection: Iterable[Balance], requested_usd: Union[Decimal, int, float, str]) -> bool:
    return selected_total(selection) < _as_decimal(requested_usd)


def prioritize_for_market(balances: Sequence[Balance], market: EarnMarket) -> List[Balance]:
    """Order zap sources for a lending market.

    1. same chain and already the market's underlying token (direct deposit)
    2. same chain
    3. anything but Ethereum mainnet, mainnet last
    4. USD value, highest first

    Dust and the market's own aToken are dropped.
    """
    underlying = market.underlying.lower()
    a_token = market.a_token.lower()

    def rank(balance: Balance):
        chain_id = chain_name_to_id(balance.chain)
        same = chain_id == market.chain_id
        is_underlying = same and balance.asset.address.lower() == underlying
        is_mainnet = chain_id == 1
        return (not is_underlying, not same, is_mainnet, -balance.usd_value)

    candidates = [
        balance
        for balance in eligible_balances(balances)
        if balance.asset.address.lower() != a_token
    ]
    return sorted(candidates, key=rank)
