"""
Wallet boundary: signer interface and the explicit active-chain context.

The connected wallet's current chain is global, mutable state. Everything
that signs goes through ``ActiveChainContext`` which switches chains
explicitly and refuses to send a transaction for any other chain.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from .errors import ChainMismatchError, RouteExecutionError
from .models import PreparedTransaction
from .tx_builder import decode_uint256, encode_allowance, encode_balance_of

logger = logging.getLogger(__name__)


class WalletSigner(ABC):
    """User-approved signing (browser wallet, Frame, a dev node, ...)."""

    address: str

    @abstractmethod
    async def switch_chain(self, chain_id: int) -> None:
        """Ask the wallet to switch its active chain."""
        pass

    @abstractmethod
    async def send_transaction(self, tx: PreparedTransaction) -> str:
        """Request a signature and broadcast; returns the tx hash."""
        pass

    @abstractmethod
    async def wait_for_receipt(self, chain_id: int, tx_hash: str) -> Dict[str, Any]:
        """Block until the transaction is mined; returns the receipt."""
        pass

    @abstractmethod
    async def call(self, chain_id: int, to: str, data: str) -> str:
        """Read-only ``eth_call``; returns the hex result."""
        pass


def _receipt_failed(receipt: Dict[str, Any]) -> bool:
    status = receipt.get("status")
    return status in (0, "0x0", "0")


class ActiveChainContext:
    """Tracks which chain the wallet is on. Not safe for concurrent use."""

    def __init__(self, signer: WalletSigner, chain_id: Optional[int] = None) -> None:
        self._signer = signer
        self._chain_id = chain_id

    @property
    def chain_id(self) -> Optional[int]:
        return self._chain_id

    @property
    def address(self) -> str:
        return self._signer.address

    async def switch_to(self, chain_id: int) -> None:
        if self._chain_id == chain_id:
            return
        logger.info("Switching wallet chain %s -> %s", self._chain_id, chain_id)
        await self._signer.switch_chain(chain_id)
        self._chain_id = chain_id

    async def send_and_confirm(self, tx: PreparedTransaction) -> str:
        """Sign, broadcast and wait for one transaction on the active chain."""
        if tx.chain_id != self._chain_id:
            raise ChainMismatchError(expected=tx.chain_id, active=self._chain_id)

        tx_hash = await self._signer.send_transaction(tx)
        logger.info("Sent %s tx %s on chain %s", tx.tx_type.value, tx_hash, tx.chain_id)

        receipt = await self._signer.wait_for_receipt(tx.chain_id, tx_hash)
        if _receipt_failed(receipt):
            raise RouteExecutionError(
                f"{tx.tx_type.value} transaction {tx_hash} reverted",
                tx_hash=tx_hash,
                details={"receipt": receipt},
            )
        return tx_hash

    async def token_balance(self, chain_id: int, token: str, owner: Optional[str] = None) -> int:
        result = await self._signer.call(chain_id, token, encode_balance_of(owner or self.address))
        return decode_uint256(result)

    async def token_allowance(self, chain_id: int, token: str, spender: str) -> int:
        result = await self._signer.call(chain_id, token, encode_allowance(self.address, spender))
        return decode_uint256(result)
