"""JSON-RPC wallet signer (Frame, a local dev node, any EIP-1193 bridge over HTTP)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..core.errors import ProviderError, RouteExecutionError
from ..core.models import PreparedTransaction
from ..core.wallet import WalletSigner

logger = logging.getLogger(__name__)


class WalletRpcError(ProviderError):
    def __init__(self, error: Any):
        message = error.get("message") if isinstance(error, dict) else str(error)
        super().__init__("wallet", message or "wallet RPC error")
        self.error = error


class RpcWalletSigner(WalletSigner):
    """Signs through a wallet that exposes JSON-RPC over HTTP.

    The wallet itself prompts the user; this class only forwards requests.
    """

    def __init__(
        self,
        address: str,
        *,
        rpc_url: Optional[str] = None,
        timeout_s: Optional[int] = None,
        receipt_poll_interval: float = 2.0,
        receipt_timeout_s: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.address = address
        self.rpc_url = rpc_url or settings.wallet_rpc_url
        self.timeout_s = timeout_s or settings.request_timeout_seconds
        self.receipt_poll_interval = receipt_poll_interval
        self.receipt_timeout_s = receipt_timeout_s or settings.receipt_timeout_seconds
        self._transport = transport
        self._request_id = 0

    async def _rpc_call(self, method: str, params: list) -> Any:
        self._request_id += 1
        async with httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport) as client:
            response = await client.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
            )
        response.raise_for_status()
        payload = response.json()
        if "error" in payload:
            raise WalletRpcError(payload["error"])
        return payload.get("result")

    async def switch_chain(self, chain_id: int) -> None:
        await self._rpc_call("wallet_switchEthereumChain", [{"chainId": hex(chain_id)}])

    async def send_transaction(self, tx: PreparedTransaction) -> str:
        logger.info("Requesting signature for %s (%s)", tx.tx_id, tx.description)
        return await self._rpc_call("eth_sendTransaction", [tx.to_dict()])

    async def wait_for_receipt(self, chain_id: int, tx_hash: str) -> Dict[str, Any]:
        deadline = time.monotonic() + self.receipt_timeout_s
        while True:
            receipt = await self._rpc_call("eth_getTransactionReceipt", [tx_hash])
            if receipt:
                return receipt
            if time.monotonic() >= deadline:
                raise RouteExecutionError(
                    f"timed out waiting for receipt of {tx_hash} on chain {chain_id}",
                    tx_hash=tx_hash,
                )
            await asyncio.sleep(self.receipt_poll_interval)

    async def call(self, chain_id: int, to: str, data: str) -> str:
        return await self._rpc_call("eth_call", [{"to": to, "data": data}, "latest"])
