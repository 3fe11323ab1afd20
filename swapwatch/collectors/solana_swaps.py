"""
Solana Swap Collector

Polls recent signatures for every active Solana tracked token and yields the
parsed transactions for the swap classifier.
"""

import asyncio
import time
from collections import OrderedDict
from typing import AsyncGenerator, Dict, List, Optional

import httpx

from swapwatch.core.backoff import ExponentialBackoff
from swapwatch.core.base import Collector
from swapwatch.core.context import ServiceContext
from swapwatch.core.events import SolanaTransactionEvent
from swapwatch.core.models import SOLANA, TrackedToken
from swapwatch.core.solana import RpcError, SolanaRpcClient
from swapwatch.logger import logger

# Signatures remembered per process so non-swap transactions are fetched once
SEEN_SIGNATURES_LIMIT = 5000


class SolanaSwapCollector(Collector):
    """
    Solana swap collector

    Every `polling_interval` seconds, for each active Solana token:
    getSignaturesForAddress(mint), skip failed or already stored signatures,
    getTransaction for the rest and yield them oldest first. A token whose
    signature list cannot be fetched backs off exponentially.
    """

    __component_name__ = "solana_swaps"

    def __init__(
        self,
        context: ServiceContext,
        rpc_url: str,
        polling_interval: float = 5,
        signatures_limit: int = 10,
        request_timeout: float = 10,
        token_refresh_interval: float = 60,
        commitment: str = "confirmed",
        backoff_initial: float = 5,
        backoff_max: float = 300,
        rpc_client: Optional[SolanaRpcClient] = None,
    ):
        """
        Args:
            context: Shared services (token list and dedup pre-check come from storage)
            rpc_url: Solana JSON-RPC endpoint
            polling_interval: Seconds between polling rounds
            signatures_limit: Signatures requested per token per round
            request_timeout: Per-request timeout in seconds
            token_refresh_interval: Seconds between tracked-token reloads
            commitment: RPC commitment level
            backoff_initial: First backoff delay for a failing token
            backoff_max: Backoff ceiling for a failing token
            rpc_client: Preconfigured RPC client (tests)
        """
        super().__init__()
        if signatures_limit < 1 or signatures_limit > 1000:
            raise ValueError("signatures_limit must be between 1 and 1000")

        self.storage = context.storage
        self.rpc = rpc_client or SolanaRpcClient(rpc_url, timeout=request_timeout, commitment=commitment)
        self.polling_interval = polling_interval
        self.signatures_limit = signatures_limit
        self.token_refresh_interval = token_refresh_interval
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max

        self.tokens: List[TrackedToken] = []
        self._last_refresh: Optional[float] = None
        self._backoffs: Dict[int, ExponentialBackoff] = {}
        self._seen: "OrderedDict[str, None]" = OrderedDict()

    async def _stop(self):
        await self.rpc.close()

    async def refresh_tokens(self, force: bool = False) -> None:
        """Reload the active Solana tokens when the refresh interval elapsed"""
        now = time.monotonic()
        if not force and self._last_refresh is not None and now - self._last_refresh < self.token_refresh_interval:
            return

        try:
            tokens = await self.storage.list_active_tokens(SOLANA)
        except Exception as e:
            logger.error(f"Error loading Solana tokens, keeping previous list: {e}")
            return

        self._last_refresh = now
        if [t.id for t in tokens] != [t.id for t in self.tokens]:
            logger.info(f"Monitoring {len(tokens)} Solana tokens")
        self.tokens = tokens

        active_ids = {token.id for token in tokens}
        for token_id in list(self._backoffs):
            if token_id not in active_ids:
                del self._backoffs[token_id]

    def _backoff_for(self, token: TrackedToken) -> ExponentialBackoff:
        if token.id not in self._backoffs:
            self._backoffs[token.id] = ExponentialBackoff(self.backoff_initial, self.backoff_max)
        return self._backoffs[token.id]

    def _mark_seen(self, signature: str) -> None:
        self._seen[signature] = None
        if len(self._seen) > SEEN_SIGNATURES_LIMIT:
            self._seen.popitem(last=False)

    async def poll_token(self, token: TrackedToken) -> AsyncGenerator[SolanaTransactionEvent, None]:
        """One polling round for a single token"""
        backoff = self._backoff_for(token)
        if not backoff.ready():
            return

        try:
            signatures = await self.rpc.get_signatures_for_address(
                token.token_address, limit=self.signatures_limit
            )
        except (httpx.HTTPError, RpcError) as e:
            delay = backoff.failure()
            logger.warning(
                f"Error fetching signatures for {token.symbol} ({token.token_address}), "
                f"retrying in {delay:.0f}s: {e}"
            )
            return
        backoff.success()

        # The RPC returns newest first
        for info in reversed(signatures):
            if not self._running:
                break

            signature = info.get("signature")
            if not signature or signature in self._seen:
                continue
            if info.get("err") is not None:
                self._mark_seen(signature)
                continue

            try:
                if await self.storage.has_transaction(SOLANA, signature):
                    self._mark_seen(signature)
                    continue

                tx = await self.rpc.get_transaction(signature)
            except Exception as e:
                logger.error(f"Error processing Solana transaction {signature}: {e}")
                continue

            if tx is None:
                logger.debug(f"Transaction {signature} not available yet")
                continue

            self._mark_seen(signature)
            yield SolanaTransactionEvent(
                token=token,
                signature=signature,
                slot=tx.get("slot") or info.get("slot") or 0,
                block_time=tx.get("blockTime") or info.get("blockTime"),
                transaction=tx,
            )

    async def events(self) -> AsyncGenerator[SolanaTransactionEvent, None]:
        if not self._running:
            await self.start()

        while self._running:
            await self.refresh_tokens()

            for token in self.tokens:
                if not self._running:
                    break
                async for event in self.poll_token(token):
                    yield event

            await asyncio.sleep(self.polling_interval)
