"""Enforcement (guard) contract client."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol

import structlog

from ..rpc import JsonRpcClient, RpcError
from .abi import decode_words, encode_call

logger = structlog.get_logger()


@dataclass
class LockStatus:
    """On-chain lock state of a wallet."""
    is_locked: bool
    reason_code: int
    case_hash: str
    locked_at: int  # unix seconds

    def to_dict(self) -> dict:
        return {
            "is_locked": self.is_locked,
            "reason_code": self.reason_code,
            "case_hash": self.case_hash,
            "locked_at": self.locked_at,
        }


class GuardContract(Protocol):
    """Operations the protection service calls on the enforcement contract.

    Implementations raise RpcError for any failure.
    """

    async def lock_wallet(self, wallet: str, reason: str) -> str: ...

    async def update_risk_score(self, wallet: str, score: int) -> str: ...

    async def get_lock_status(self, wallet: str) -> LockStatus: ...

    async def close(self): ...


class JsonRpcGuardContract:
    """Guard contract over JSON-RPC, transacting from a node-managed account."""

    def __init__(
        self,
        rpc: JsonRpcClient,
        contract_address: str,
        sender: str,
        *,
        call_timeout: float = 15.0,
        receipt_timeout: float = 60.0,
        receipt_poll_interval: float = 2.0
    ):
        self.rpc = rpc
        self.contract_address = contract_address
        self.sender = sender
        self.call_timeout = call_timeout
        self.receipt_timeout = receipt_timeout
        self.receipt_poll_interval = receipt_poll_interval

    async def lock_wallet(self, wallet: str, reason: str) -> str:
        data = self._calldata("lockWallet", ["address", "string"], [wallet, reason])
        return await self._transact(data)

    async def update_risk_score(self, wallet: str, score: int) -> str:
        data = self._calldata("updateRiskScore", ["address", "uint8"], [wallet, score])
        return await self._transact(data)

    async def get_lock_status(self, wallet: str) -> LockStatus:
        data = self._calldata("getLockStatus", ["address"], [wallet])
        result = await self._bounded(self.rpc.eth_call(self.contract_address, data), self.call_timeout)

        try:
            words = decode_words(result or "0x")
        except (TypeError, ValueError) as e:
            raise RpcError(f"getLockStatus returned malformed data: {e}") from e
        if len(words) < 4:
            raise RpcError(f"getLockStatus returned {len(words)} words")

        return LockStatus(
            is_locked=int.from_bytes(words[0], "big") != 0,
            reason_code=int.from_bytes(words[1], "big"),
            case_hash="0x" + words[2].hex(),
            locked_at=int.from_bytes(words[3], "big")
        )

    @staticmethod
    def _calldata(name: str, types: list[str], values: list) -> str:
        try:
            return encode_call(name, types, values)
        except (TypeError, ValueError) as e:
            raise RpcError(f"cannot encode {name}: {e}") from e

    async def _transact(self, data: str) -> str:
        tx_hash = await self._bounded(
            self.rpc.send_transaction(self.sender, self.contract_address, data),
            self.call_timeout
        )
        receipt = await self._bounded(self._wait_for_receipt(tx_hash), self.receipt_timeout)

        if int(receipt.get("status", "0x0"), 16) != 1:
            raise RpcError(f"transaction {tx_hash} reverted")
        return tx_hash

    async def _wait_for_receipt(self, tx_hash: str) -> dict:
        while True:
            receipt = await self.rpc.get_transaction_receipt(tx_hash)
            if receipt:
                return receipt
            await asyncio.sleep(self.receipt_poll_interval)

    @staticmethod
    async def _bounded(coro, timeout: Optional[float]):
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise RpcError(f"guard call timed out after {timeout}s") from e

    async def close(self):
        await self.rpc.close()
