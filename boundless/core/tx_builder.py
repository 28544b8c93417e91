"""
Transaction builder for ERC-20 approvals and Aave V3 pool calls.

Calldata is encoded by hand: every call used here takes only static
``address``/``uint`` arguments, so each argument is one 32-byte word.
"""

import secrets
from typing import Any, Dict

from .models import DirectCallSpec, PreparedTransaction, TransactionType


ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"  # balanceOf(address)
AAVE_SUPPLY_SELECTOR = "0x617ba037"  # supply(address,uint256,address,uint16)

MAX_UINT256 = 2**256 - 1
MAX_UINT16 = 2**16 - 1


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"uint256 out of range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    addr = address.lower()
    if addr.startswith("0x"):
        addr = addr[2:]
    if len(addr) != 40:
        raise ValueError(f"invalid address: {address}")
    return addr.zfill(64)


def decode_uint256(data: str) -> int:
    """Decode the first word of an ``eth_call`` result."""
    body = data[2:] if data.startswith("0x") else data
    if not body:
        return 0
    return int(body[:64], 16)


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value)
    return int(text, 16) if text.startswith("0x") else int(text)


def encode_approve(spender: str, amount: int) -> str:
    return ERC20_APPROVE_SELECTOR + _encode_address(spender) + _encode_uint256(amount)


def encode_allowance(owner: str, spender: str) -> str:
    return ERC20_ALLOWANCE_SELECTOR + _encode_address(owner) + _encode_address(spender)


def encode_balance_of(owner: str) -> str:
    return ERC20_BALANCE_OF_SELECTOR + _encode_address(owner)


def encode_supply(asset: str, amount: int, on_behalf_of: str, referral_code: int = 0) -> str:
    if not 0 <= referral_code <= MAX_UINT16:
        raise ValueError(f"referral code out of range: {referral_code}")
    return (
        AAVE_SUPPLY_SELECTOR
        + _encode_address(asset)
        + _encode_uint256(amount)
        + _encode_address(on_behalf_of)
        + _encode_uint256(referral_code)
    )


class TransactionBuilder:
    """
    Builds wallet-ready transactions.

    Handles:
    - ERC20 approvals
    - Aave V3 supply
    - Direct deposit specs produced by the resolver
    - LI.FI step ``transactionRequest`` payloads
    """

    @staticmethod
    def generate_tx_id() -> str:
        return f"tx_{secrets.token_hex(16)}"

    @staticmethod
    def build_erc20_approve(
        chain_id: int,
        owner_address: str,
        token_address: str,
        spender_address: str,
        amount: int = MAX_UINT256,
        description: str = "",
    ) -> PreparedTransaction:
        """
        Build an ERC20 approval transaction.

        Args:
            chain_id: The chain ID
            owner_address: The token owner (sender)
            token_address: The ERC20 token contract
            spender_address: The address being approved to spend
            amount: The amount to approve (default: unlimited)
            description: Human-readable description
        """
        return PreparedTransaction(
            tx_id=TransactionBuilder.generate_tx_id(),
            tx_type=TransactionType.APPROVE,
            chain_id=chain_id,
            from_address=owner_address.lower(),
            to_address=token_address.lower(),
            data=encode_approve(spender_address, amount),
            value=0,
            description=description or f"Approve {spender_address[:10]}... to spend tokens",
        )

    @staticmethod
    def build_supply(
        chain_id: int,
        pool_address: str,
        asset_address: str,
        amount: int,
        on_behalf_of: str,
        referral_code: int = 0,
    ) -> PreparedTransaction:
        return PreparedTransaction(
            tx_id=TransactionBuilder.generate_tx_id(),
            tx_type=TransactionType.SUPPLY,
            chain_id=chain_id,
            from_address=on_behalf_of.lower(),
            to_address=pool_address.lower(),
            data=encode_supply(asset_address, amount, on_behalf_of, referral_code),
            value=0,
            description=f"Supply {amount} of {asset_address[:10]}... to pool",
        )

    @staticmethod
    def build_direct_deposit(spec: DirectCallSpec, from_address: str) -> PreparedTransaction:
        """The supply half of a direct deposit (approval is built separately)."""
        return PreparedTransaction(
            tx_id=TransactionBuilder.generate_tx_id(),
            tx_type=TransactionType.SUPPLY,
            chain_id=spec.chain_id,
            from_address=from_address.lower(),
            to_address=spec.target_contract.lower(),
            data=spec.encoded_call,
            value=0,
            description=f"Direct deposit of {spec.amount} {spec.token[:10]}...",
        )

    @staticmethod
    def build_from_step_request(
        request: Dict[str, Any],
        *,
        tx_type: TransactionType = TransactionType.BRIDGE,
        description: str = "",
    ) -> PreparedTransaction:
        """
        Build a transaction from a LI.FI step ``transactionRequest``.

        LI.FI sends hex strings for value/gasLimit/chainId; both hex and
        decimal are accepted.
        """
        to_address = request.get("to")
        if not to_address:
            raise ValueError("Step transaction request has no 'to' address")
        data = request.get("data") or "0x"
        gas_limit = _to_int(request.get("gasLimit")) or None

        return PreparedTransaction(
            tx_id=TransactionBuilder.generate_tx_id(),
            tx_type=tx_type,
            chain_id=_to_int(request.get("chainId")),
            from_address=str(request.get("from", "")).lower(),
            to_address=to_address.lower(),
            data=data if data.startswith("0x") else f"0x{data}",
            value=_to_int(request.get("value")),
            gas_limit=gas_limit,
            description=description,
        )
