"""
Chain/token registry lookups.

Upstream services disagree on chain naming ("bsc", "binance-smart-chain",
"bnbchain" all mean chain 56), so every name goes through
``normalize_chain_name`` before it is looked up.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Union

from .constants import (
    AAVE_V3_POOL_ADDRESSES,
    CHAIN_ALIASES,
    CHAIN_METADATA,
    DEFAULT_DECIMALS,
    DESTINATION_CHAIN_IDS,
    KNOWN_DECIMALS,
    NATIVE_SYMBOLS,
    NATIVE_TOKEN_ADDRESS,
    SUPPORTED_CHAINS,
    TOKEN_ADDRESSES,
    ZERO_ADDRESS,
)

logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_SEPARATORS_RE = re.compile(r"[\s\-_]")


def normalize_chain_name(name: str) -> str:
    return _SEPARATORS_RE.sub("", name.strip().lower())


def chain_name_to_id(name: Union[str, int, None]) -> Optional[int]:
    """Map any known spelling of a chain (or a numeric id) to its chain id."""
    if name is None:
        return None
    if isinstance(name, int):
        return name if name in CHAIN_METADATA else None

    normalized = normalize_chain_name(name)
    if not normalized:
        return None
    if normalized.isdigit():
        chain_id = int(normalized)
        return chain_id if chain_id in CHAIN_METADATA else None

    chain_id = CHAIN_ALIASES.get(normalized)
    if chain_id is None:
        logger.debug("Unknown chain name %r (normalized %r)", name, normalized)
    return chain_id


def chain_id_to_name(chain_id: int) -> str:
    """Indexer-style slug for a chain id (``"chain-<id>"`` if unknown)."""
    meta = CHAIN_METADATA.get(chain_id)
    return meta["slug"] if meta else f"chain-{chain_id}"


def chain_display_name(chain_id: int) -> str:
    meta = CHAIN_METADATA.get(chain_id)
    return meta["name"] if meta else f"Chain {chain_id}"


def same_chain(a: Union[str, int, None], b: Union[str, int, None]) -> bool:
    """True when both references resolve to the same chain id (or are equal strings)."""
    if a is None or b is None:
        return False
    id_a, id_b = chain_name_to_id(a), chain_name_to_id(b)
    if id_a is not None and id_b is not None:
        return id_a == id_b
    return str(a).strip().lower() == str(b).strip().lower()


def native_token_address() -> str:
    """Sentinel address the routing service uses for native gas tokens."""
    return NATIVE_TOKEN_ADDRESS


def native_symbol(chain_id: int) -> str:
    meta = CHAIN_METADATA.get(chain_id)
    return meta["native_symbol"] if meta else "ETH"


def is_supported_chain(name: Union[str, int]) -> bool:
    chain_id = chain_name_to_id(name)
    return chain_id is not None and chain_id in SUPPORTED_CHAINS.values()


def is_destination_chain(chain_id: int) -> bool:
    return chain_id in DESTINATION_CHAIN_IDS


def is_well_formed_address(address: Optional[str]) -> bool:
    return bool(address) and bool(_ADDRESS_RE.match(address))


def is_native_symbol(symbol: str) -> bool:
    return symbol.strip().upper() in NATIVE_SYMBOLS


def known_decimals(symbol: str, reported: Optional[int] = None) -> int:
    """Reported decimals when present, else the well-known table, else 18."""
    if reported:
        return int(reported)
    return KNOWN_DECIMALS.get(symbol.strip().upper(), DEFAULT_DECIMALS)


def destination_token_address(chain_id: int, token: str) -> str:
    """Resolve a destination token symbol (or pass through an address)."""
    if is_well_formed_address(token):
        return token
    symbol = token.strip().upper()
    if symbol in NATIVE_SYMBOLS:
        return NATIVE_TOKEN_ADDRESS
    addresses = TOKEN_ADDRESSES.get(chain_id, {})
    return addresses.get(symbol, NATIVE_TOKEN_ADDRESS)


def pool_address(chain_id: int) -> Optional[str]:
    """Aave V3 pool for a chain, or None when the protocol isn't deployed there."""
    address = AAVE_V3_POOL_ADDRESSES.get(chain_id)
    if not address or address.lower() == ZERO_ADDRESS:
        return None
    return address
