"""
EVM Swap Collector

Subscribes to Swap logs of every active tracked pool over one websocket
connection per chain and yields decoded swap logs.
"""

import asyncio
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional, Tuple

from web3 import AsyncWeb3, Web3, WebSocketProvider

from swapwatch.core.backoff import ExponentialBackoff
from swapwatch.core.base import Collector
from swapwatch.core.context import ServiceContext
from swapwatch.core.events import EvmSwapLogEvent
from swapwatch.core.models import EVM_CHAINS, TrackedToken
from swapwatch.core.web3 import ERC20_DECIMALS_ABI, PAIR_ABI, SWAP_EVENT_TOPIC, decode_swap_log
from swapwatch.logger import logger

DEFAULT_DECIMALS = 18
BLOCK_TIMESTAMP_CACHE_SIZE = 256

# (token slot, tracked token decimals, counter-asset decimals)
PoolInfo = Tuple[int, int, int]


def default_web3_factory(ws_url: str, request_timeout: float) -> AsyncWeb3:
    return AsyncWeb3(WebSocketProvider(ws_url, request_timeout=request_timeout))


class EvmSwapCollector(Collector):
    """
    EVM swap collector

    For each configured chain, keeps one websocket connection with one
    `logs` subscription per tracked pool. Pools added or removed in storage
    are (un)subscribed on the next token refresh. A dropped connection is
    re-established with exponential backoff; swaps during the gap are missed.
    """

    __component_name__ = "evm_swaps"

    def __init__(
        self,
        context: ServiceContext,
        chains: Optional[List[Dict[str, Any]]] = None,
        chain: Optional[str] = None,
        ws_url: Optional[str] = None,
        token_refresh_interval: float = 60,
        request_timeout: float = 30,
        reconnect_initial: float = 1,
        reconnect_max: float = 60,
        queue_size: int = 1000,
        web3_factory: Optional[Callable[[str, float], AsyncWeb3]] = None,
    ):
        """
        Args:
            context: Shared services (tracked pools come from storage)
            chains: List of {"chain": ..., "ws_url": ...} entries
            chain: Single chain name, alternative to `chains`
            ws_url: Websocket endpoint for `chain`
            token_refresh_interval: Seconds between tracked-pool reloads
            request_timeout: Timeout for websocket requests in seconds
            reconnect_initial: First reconnect delay
            reconnect_max: Reconnect delay ceiling
            queue_size: Decoded events buffered before subscriptions block
            web3_factory: Builds an AsyncWeb3 for (ws_url, request_timeout)
        """
        super().__init__()

        endpoints = list(chains or [])
        if chain and ws_url:
            endpoints.append({"chain": chain, "ws_url": ws_url})
        if not endpoints:
            raise ValueError("At least one chain with a ws_url must be configured")

        self.endpoints: Dict[str, str] = {}
        for entry in endpoints:
            name = str(entry.get("chain", "")).lower()
            if name not in EVM_CHAINS:
                raise ValueError(f"Unsupported EVM chain: {name}")
            if not entry.get("ws_url"):
                raise ValueError(f"ws_url is required for {name}")
            self.endpoints[name] = entry["ws_url"]

        self.storage = context.storage
        self.token_refresh_interval = token_refresh_interval
        self.request_timeout = request_timeout
        self.reconnect_initial = reconnect_initial
        self.reconnect_max = reconnect_max
        self.web3_factory = web3_factory or default_web3_factory

        self._events: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._chain_tasks: List[asyncio.Task] = []
        self._backoffs: Dict[str, ExponentialBackoff] = {}
        self._pool_info: Dict[Tuple[str, str, str], PoolInfo] = {}
        self._block_timestamps: "OrderedDict[Tuple[str, int], datetime]" = OrderedDict()

    async def _start(self):
        for chain, ws_url in self.endpoints.items():
            self._chain_tasks.append(
                asyncio.create_task(self._run_chain(chain, ws_url), name=f"evm_swaps_{chain}")
            )

    async def _stop(self):
        for task in self._chain_tasks:
            task.cancel()
        await asyncio.gather(*self._chain_tasks, return_exceptions=True)
        self._chain_tasks = []

    async def events(self) -> AsyncGenerator[EvmSwapLogEvent, None]:
        if not self._running:
            await self.start()

        while self._running:
            try:
                event = await asyncio.wait_for(self._events.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            yield event

    async def _run_chain(self, chain: str, ws_url: str):
        backoff = self._backoffs[chain] = ExponentialBackoff(self.reconnect_initial, self.reconnect_max)

        while self._running:
            try:
                async with self.web3_factory(ws_url, self.request_timeout) as w3:
                    logger.info(f"Connected to {chain} websocket")
                    backoff.success()
                    await self._watch(chain, w3)
                if self._running:
                    raise ConnectionError("subscription stream ended")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._running:
                    break
                delay = backoff.failure()
                logger.warning(f"{chain} websocket connection lost ({e}), reconnecting in {delay:.1f}s")
                await asyncio.sleep(delay)

        logger.info(f"Stopped watching {chain}")

    async def _watch(self, chain: str, w3: AsyncWeb3):
        # subscription id -> tracked token
        subscriptions: Dict[str, TrackedToken] = {}
        await self.sync_subscriptions(chain, w3, subscriptions)
        refresher = asyncio.create_task(self._refresh_loop(chain, w3, subscriptions))

        try:
            async for payload in w3.socket.process_subscriptions():
                if not self._running:
                    break
                token = subscriptions.get(payload.get("subscription"))
                if token is None:
                    continue
                try:
                    event = await self.build_event(chain, w3, token, payload.get("result") or {})
                except Exception as e:
                    logger.error(f"Error decoding {chain} swap log for {token.symbol}: {e}")
                    continue
                if event:
                    await self._events.put(event)
        finally:
            refresher.cancel()
            try:
                await refresher
            except asyncio.CancelledError:
                pass

    async def _refresh_loop(self, chain: str, w3: AsyncWeb3, subscriptions: Dict[str, TrackedToken]):
        while self._running:
            await asyncio.sleep(self.token_refresh_interval)
            try:
                await self.sync_subscriptions(chain, w3, subscriptions)
            except Exception as e:
                logger.error(f"Error refreshing {chain} subscriptions: {e}")

    async def sync_subscriptions(
        self, chain: str, w3: AsyncWeb3, subscriptions: Dict[str, TrackedToken]
    ) -> None:
        """Make the live subscriptions match the active tracked pools of a chain"""
        tokens = await self.storage.list_active_tokens(chain)
        wanted = {token.id: token for token in tokens if token.pool_address}
        current = {token.id: sub_id for sub_id, token in subscriptions.items()}

        for token_id, sub_id in current.items():
            if token_id in wanted:
                # Pick up threshold/decoration changes
                subscriptions[sub_id] = wanted[token_id]
                continue
            token = subscriptions.pop(sub_id)
            try:
                await w3.eth.unsubscribe(sub_id)
            except Exception as e:
                logger.warning(f"Error unsubscribing {token.symbol} pool on {chain}: {e}")
            logger.info(f"Unsubscribed from {token.symbol} pool {token.pool_address} on {chain}")

        for token_id, token in wanted.items():
            if token_id in current:
                continue
            # A rejected pool is retried on the next refresh
            try:
                sub_id = await w3.eth.subscribe(
                    "logs",
                    {
                        "address": Web3.to_checksum_address(token.pool_address),
                        "topics": [SWAP_EVENT_TOPIC],
                    },
                )
            except Exception as e:
                logger.error(f"Error subscribing to {token.symbol} pool {token.pool_address} on {chain}: {e}")
                continue
            subscriptions[sub_id] = token
            logger.info(f"Subscribed to {token.symbol} pool {token.pool_address} on {chain}")

    async def build_event(
        self, chain: str, w3: AsyncWeb3, token: TrackedToken, log: Dict[str, Any]
    ) -> Optional[EvmSwapLogEvent]:
        decoded = decode_swap_log(log)
        if decoded is None:
            logger.debug(f"Ignoring malformed swap log on {chain} for {token.symbol}")
            return None

        pool_info = await self.get_pool_info(chain, w3, token)
        if pool_info is None:
            return None
        token_slot, token_decimals, counter_decimals = pool_info

        return EvmSwapLogEvent(
            token=token,
            block_timestamp=await self.get_block_timestamp(chain, w3, decoded["block_number"]),
            token_slot=token_slot,
            token_decimals=token_decimals,
            counter_decimals=counter_decimals,
            **decoded,
        )

    async def get_pool_info(self, chain: str, w3: AsyncWeb3, token: TrackedToken) -> Optional[PoolInfo]:
        """Tracked token's slot in the pool and both assets' decimals, cached per pool"""
        key = (chain, token.pool_address.lower(), token.token_address.lower())
        if key in self._pool_info:
            return self._pool_info[key]

        pair = w3.eth.contract(address=Web3.to_checksum_address(token.pool_address), abi=PAIR_ABI)
        token0 = await pair.functions.token0().call()
        token1 = await pair.functions.token1().call()

        tracked = token.token_address.lower()
        if token0.lower() == tracked:
            token_slot, counter = 0, token1
        elif token1.lower() == tracked:
            token_slot, counter = 1, token0
        else:
            logger.warning(
                f"Token {token.symbol} ({token.token_address}) is not in pool {token.pool_address} on {chain}"
            )
            return None

        info = (
            token_slot,
            await self._get_decimals(w3, token.token_address),
            await self._get_decimals(w3, counter),
        )
        self._pool_info[key] = info
        logger.debug(f"Pool {token.pool_address} on {chain}: {token.symbol} in slot {token_slot}")
        return info

    async def _get_decimals(self, w3: AsyncWeb3, address: str) -> int:
        contract = w3.eth.contract(address=Web3.to_checksum_address(address), abi=ERC20_DECIMALS_ABI)
        try:
            return int(await contract.functions.decimals().call())
        except Exception as e:
            logger.warning(f"Error reading decimals for {address}, assuming {DEFAULT_DECIMALS}: {e}")
            return DEFAULT_DECIMALS

    async def get_block_timestamp(self, chain: str, w3: AsyncWeb3, block_number: Optional[int]) -> datetime:
        if block_number is None:
            return datetime.now(timezone.utc)

        key = (chain, block_number)
        if key in self._block_timestamps:
            return self._block_timestamps[key]

        try:
            block = await w3.eth.get_block(block_number)
            timestamp = datetime.fromtimestamp(block["timestamp"], tz=timezone.utc)
        except Exception as e:
            logger.debug(f"Error fetching {chain} block {block_number}, using current time: {e}")
            return datetime.now(timezone.utc)

        self._block_timestamps[key] = timestamp
        if len(self._block_timestamps) > BLOCK_TIMESTAMP_CACHE_SIZE:
            self._block_timestamps.popitem(last=False)
        return timestamp
