"""Static chain, token and lending-market tables."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, Optional, Tuple


NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"
ZERO_ADDRESS = NATIVE_TOKEN_ADDRESS

# Balances at or below this value are never used as a source.
DUST_THRESHOLD_USD = Decimal("0.01")
DEFAULT_SLIPPAGE = Decimal("0.005")
# Haircut applied when a route carries no usable output valuation.
ASSUMED_SLIPPAGE = Decimal("0.02")
# Quoted output above this multiple of the input is treated as corrupt.
OUTPUT_SANITY_MULTIPLE = Decimal("2")
DIRECT_DEPOSIT_GAS_USD = Decimal("0.10")

NO_ROUTES_REASON = "no routes found"

# Indexer (Zerion) chain names -> chain ids. Also the set of chains the
# routing service is asked about.
SUPPORTED_CHAINS: Dict[str, int] = {
    "ethereum": 1,
    "optimism": 10,
    "base": 8453,
    "arbitrum": 42161,
    "binance-smart-chain": 56,
    "scroll": 534352,
    "zksync-era": 324,
}

# Chains a plan may target.
DESTINATION_CHAIN_IDS: Tuple[int, ...] = (1, 10, 42161, 8453)

CHAIN_METADATA: Dict[int, Dict[str, str]] = {
    1: {"name": "Ethereum", "slug": "ethereum", "native_symbol": "ETH"},
    10: {"name": "Optimism", "slug": "optimism", "native_symbol": "ETH"},
    8453: {"name": "Base", "slug": "base", "native_symbol": "ETH"},
    42161: {"name": "Arbitrum", "slug": "arbitrum", "native_symbol": "ETH"},
    56: {"name": "BNB Chain", "slug": "binance-smart-chain", "native_symbol": "BNB"},
    534352: {"name": "Scroll", "slug": "scroll", "native_symbol": "ETH"},
    324: {"name": "zkSync Era", "slug": "zksync-era", "native_symbol": "ETH"},
}

# Keys are normalized: lowercase, no spaces, hyphens or underscores.
CHAIN_ALIASES: Dict[str, int] = {
    "ethereum": 1,
    "eth": 1,
    "mainnet": 1,
    "ethereummainnet": 1,
    "optimism": 10,
    "op": 10,
    "optimismmainnet": 10,
    "arbitrum": 42161,
    "arb": 42161,
    "arbitrumone": 42161,
    "arbitrummainnet": 42161,
    "base": 8453,
    "basemainnet": 8453,
    "bsc": 56,
    "binancesmartchain": 56,
    "bnb": 56,
    "bnbchain": 56,
    "bnbsmartchain": 56,
    "scroll": 534352,
    "scrollmainnet": 534352,
    "zksync": 324,
    "zksyncera": 324,
    "zksyncmainnet": 324,
}

NATIVE_SYMBOLS: FrozenSet[str] = frozenset({"ETH", "BNB", "MATIC", "AVAX"})

# Used when the indexer omits decimals.
KNOWN_DECIMALS: Dict[str, int] = {
    "USDC": 6,
    "USDT": 6,
    "USDT0": 6,
    "DAI": 18,
    "ETH": 18,
    "WETH": 18,
    "BNB": 18,
    "MATIC": 18,
}
DEFAULT_DECIMALS = 18

TOKEN_ADDRESSES: Dict[int, Dict[str, str]] = {
    1: {
        "USDC": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        "USDT": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
        "ETH": NATIVE_TOKEN_ADDRESS,
    },
    42161: {
        "USDC": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
        "USDT": "0xFd086bC7CD5C481DCC9C85ebE478A1C0b69FCbb9",
        "ETH": NATIVE_TOKEN_ADDRESS,
    },
    10: {
        "USDC": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
        "USDT": "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
        "ETH": NATIVE_TOKEN_ADDRESS,
    },
    8453: {
        "USDC": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        "WETH": "0x4200000000000000000000000000000000000006",
        "ETH": NATIVE_TOKEN_ADDRESS,
    },
}

# Aave V3 Pool contracts. BSC has no V3 deployment.
AAVE_V3_POOL_ADDRESSES: Dict[int, str] = {
    1: "0x87870Bca3F3f638F132C14298e9b39d798077922",
    10: "0x794a61358D6845594F94dc1DB02A252b5b4814aD",
    42161: "0x794a61358D6845594F94dc1DB02A252b5b4814aD",
    8453: "0xA238Dd80C259a72e81d7e4664a9801593F98d1c5",
    56: ZERO_ADDRESS,
}

AAVE_V3_TOKENS: Dict[int, Dict[str, str]] = {
    8453: {
        "USDC": "0x4e65fE4DbA92790696d040ac24Aa414708F5c0AB",
        "ETH": "0xD4a0e0b9149BCee3C920d2E00b5dE09138fd8bb7",
    },
    42161: {
        "USDC": "0x625E7708f30cA75bfd92586e17077590C60eb4cD",
        "ETH": "0xe50fA9b3c56FfB159cB0FCA61F5c9D750e8128c8",
    },
    10: {
        "USDC": "0x625E7708f30cA75bfd92586e17077590C60eb4cD",
        "ETH": "0xe50fA9b3c56FfB159cB0FCA61F5c9D750e8128c8",
    },
    1: {
        "USDC": "0x98C23E9d8f34FEFb1B7BD6a91B7FF122F4e16F5c",
        "ETH": "0x4d5F47FA6A74757f35C14fD3a6Ef8E3C9BC514E8",
    },
}


@dataclass(frozen=True)
class EarnMarket:
    """A lending market a zap can deposit into."""

    chain: str
    chain_id: int
    protocol: str
    asset: str
    a_token: str
    underlying: str
    description: str = ""

    @property
    def key(self) -> str:
        return f"{self.chain_id}:{self.asset}".lower()


EARN_MARKETS: Tuple[EarnMarket, ...] = (
    EarnMarket(
        chain="Base",
        chain_id=8453,
        protocol="Aave V3",
        asset="USDC",
        a_token=AAVE_V3_TOKENS[8453]["USDC"],
        underlying=TOKEN_ADDRESSES[8453]["USDC"],
        description="Supply USDC on Base",
    ),
    EarnMarket(
        chain="Base",
        chain_id=8453,
        protocol="Aave V3",
        asset="ETH",
        a_token=AAVE_V3_TOKENS[8453]["ETH"],
        underlying=TOKEN_ADDRESSES[8453]["WETH"],
        description="Supply ETH on Base",
    ),
    EarnMarket(
        chain="Arbitrum",
        chain_id=42161,
        protocol="Aave V3",
        asset="USDC",
        a_token=AAVE_V3_TOKENS[42161]["USDC"],
        underlying=TOKEN_ADDRESSES[42161]["USDC"],
        description="Supply USDC on Arbitrum",
    ),
    EarnMarket(
        chain="Optimism",
        chain_id=10,
        protocol="Aave V3",
        asset="USDC",
        a_token=AAVE_V3_TOKENS[10]["USDC"],
        underlying=TOKEN_ADDRESSES[10]["USDC"],
        description="Supply USDC on Optimism",
    ),
)


def find_market(chain_id: int, asset: str) -> Optional[EarnMarket]:
    for market in EARN_MARKETS:
        if market.chain_id == chain_id and market.asset.upper() == asset.upper():
            return market
    return None
