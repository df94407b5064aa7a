"""Async JSON-RPC client for the ledger node."""

import itertools
from typing import Any, Optional

import httpx
import structlog

logger = structlog.get_logger()


class RpcError(Exception):
    """Ledger node unreachable or returned a JSON-RPC error."""


class JsonRpcClient:
    """Minimal JSON-RPC 2.0 client over HTTP."""

    def __init__(
        self,
        url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not url.strip():
            raise ValueError("url must be non-empty")
        self.url = url
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._ids = itertools.count(1)

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }

        try:
            response = await self.client.post(self.url, json=body)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RpcError(f"{method} failed: {e}") from e

        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise RpcError(f"{method} returned error: {message}")

        return data.get("result")

    async def block_number(self) -> int:
        return int(await self.call("eth_blockNumber"), 16)

    async def get_logs(
        self,
        address: str,
        topics: list,
        from_block: int,
        to_block: int
    ) -> list[dict]:
        result = await self.call("eth_getLogs", [{
            "address": address,
            "topics": topics,
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
        }])
        return result or []

    async def eth_call(self, to: str, data: str) -> str:
        return await self.call("eth_call", [{"to": to, "data": data}, "latest"])

    async def send_transaction(self, sender: str, to: str, data: str) -> str:
        return await self.call("eth_sendTransaction", [{"from": sender, "to": to, "data": data}])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def close(self):
        await self.client.aclose()
