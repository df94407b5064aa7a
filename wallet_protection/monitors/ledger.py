"""Ledger contract event source: polls Transfer / Approval logs over JSON-RPC."""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from ..models import BlockMeta
from ..rpc import JsonRpcClient, RpcError

logger = structlog.get_logger()

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
# keccak256("Approval(address,address,uint256)")
APPROVAL_TOPIC = "0x8c5be1e5ebec7d5bd14f71427d1e84f3dd0314c0f7b2291e5b200ac8c7c3b925"

EventHandler = Callable[[str, str, int, BlockMeta], Awaitable[object]]


def topic_to_address(topic: str) -> str:
    """Indexed address topics are left-padded to 32 bytes."""
    return "0x" + topic[-40:].lower()


def log_position(log: dict) -> Optional[tuple[int, int]]:
    """(block, log index) of a mined log; None for pending or malformed logs."""
    try:
        return int(log["blockNumber"], 16), int(log.get("logIndex") or "0x0", 16)
    except (KeyError, TypeError, ValueError):
        return None


def decode_amount(data: str) -> int:
    if not data or data == "0x":
        return 0
    return int(data, 16)


class LedgerEventSource:
    """
    Polls the ledger contract for Transfer and Approval logs.

    Logs are delivered to the subscribed handlers one at a time in
    block / log-index order, so events for one account are handled
    in arrival order.
    """

    def __init__(
        self,
        rpc: JsonRpcClient,
        contract_address: str,
        *,
        poll_interval: float = 5.0,
        start_block: Optional[int] = None,
        max_blocks_per_poll: int = 2000,
        min_retry_delay: float = 1.0,
        max_retry_delay: float = 60.0
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.rpc = rpc
        self.contract_address = contract_address.lower()
        self.poll_interval = poll_interval
        self.max_blocks_per_poll = max_blocks_per_poll
        self.min_retry_delay = min_retry_delay
        self.max_retry_delay = max_retry_delay

        self.next_block = start_block
        self._on_transfer: Optional[EventHandler] = None
        self._on_approval: Optional[EventHandler] = None
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, on_transfer: EventHandler, on_approval: EventHandler):
        self._on_transfer = on_transfer
        self._on_approval = on_approval

    async def start(self):
        """Start polling. Raises RpcError when the node cannot be reached."""
        if self.is_running:
            return

        head = await self.rpc.block_number()
        if self.next_block is None:
            self.next_block = head + 1

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_forever())
        logger.info(
            "Ledger event source started",
            contract=self.contract_address,
            from_block=self.next_block,
            head=head
        )

    async def stop(self):
        """Unsubscribe and stop polling; the batch in flight finishes first."""
        self._stop_event.set()

        if self._task:
            await self._task
            self._task = None

        self._on_transfer = None
        self._on_approval = None

        logger.info("Ledger event source stopped")

    async def close(self):
        await self.rpc.close()

    async def _run_forever(self):
        delay = self.min_retry_delay

        while not self._stop_event.is_set():
            try:
                await self.poll_once()
                delay = self.min_retry_delay
                wait = self.poll_interval
            except RpcError as e:
                logger.warning("Ledger poll failed", error=str(e), retry_in=delay)
                wait = delay
                delay = min(delay * 2, self.max_retry_delay)
            except Exception as e:
                logger.exception("Ledger poll crashed", error=str(e), retry_in=delay)
                wait = delay
                delay = min(delay * 2, self.max_retry_delay)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait)
            except asyncio.TimeoutError:
                pass

    async def poll_once(self) -> int:
        """Fetch and dispatch logs up to the chain head. Returns logs handled."""
        head = await self.rpc.block_number()
        if self.next_block is None:
            self.next_block = head + 1
        if head < self.next_block:
            return 0

        to_block = min(head, self.next_block + self.max_blocks_per_poll - 1)
        logs = await self.rpc.get_logs(
            self.contract_address,
            [[TRANSFER_TOPIC, APPROVAL_TOPIC]],
            self.next_block,
            to_block
        )
        positioned = []
        for log in logs:
            position = log_position(log)
            if position is None:
                logger.warning("Skipping log without a block position", tx_hash=log.get("transactionHash"))
                continue
            positioned.append((position, log))
        positioned.sort(key=lambda item: item[0])

        for _, log in positioned:
            try:
                await self._dispatch(log)
            except Exception as e:
                # handler failures are isolated per event
                logger.exception(
                    "Event handler failed",
                    tx_hash=log.get("transactionHash"),
                    error=str(e)
                )

        self.next_block = to_block + 1
        return len(positioned)

    async def _dispatch(self, log: dict):
        topics = log.get("topics") or []
        if len(topics) < 3:
            return

        meta = BlockMeta(
            block_number=int(log["blockNumber"], 16),
            tx_hash=log.get("transactionHash", "")
        )
        first = topic_to_address(topics[1])
        second = topic_to_address(topics[2])
        amount = decode_amount(log.get("data", "0x"))

        signature = topics[0].lower()
        if signature == TRANSFER_TOPIC and self._on_transfer:
            await self._on_transfer(first, second, amount, meta)
        elif signature == APPROVAL_TOPIC and self._on_approval:
            await self._on_approval(first, second, amount, meta)
