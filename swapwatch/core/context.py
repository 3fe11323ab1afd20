from dataclasses import dataclass, field
from typing import List

from swapwatch.core.cache import TTLCache
from swapwatch.core.models import TrackedToken
from swapwatch.core.policy import AlertPolicy
from swapwatch.core.storage import SwapStorage
from swapwatch.logger import logger
from swapwatch.services.mev import MevFilter
from swapwatch.services.price import PriceResolver


@dataclass
class ServiceContext:
    """
    Shared services handed to every component the builder creates

    One instance per process: the store, the TTL cache shared by price and
    blacklist lookups, and the policy table for the alert gate. Tokens in
    `token_seeds` are added to the store on startup unless the same
    (chain, address, channel) is already tracked.
    """

    storage: SwapStorage
    cache: TTLCache
    price_resolver: PriceResolver
    mev_filter: MevFilter
    policy: AlertPolicy = field(default_factory=AlertPolicy)
    token_seeds: List[TrackedToken] = field(default_factory=list)
    seed_mev_blacklist: bool = True

    async def initialize(self) -> None:
        await self.storage.initialize()

        for token in self.token_seeds:
            existing = await self.storage.find_tracked_token(
                token.chain, token.token_address, token.channel_id
            )
            if existing:
                logger.debug(f"Tracked token {token.symbol} on {token.chain} already stored")
                continue
            stored = await self.storage.add_tracked_token(token)
            logger.info(f"Seeded tracked token {stored.symbol} on {stored.chain} (id={stored.id})")

        if self.seed_mev_blacklist:
            await self.mev_filter.seed_known_bots()

    async def close(self) -> None:
        await self.price_resolver.close()
        await self.storage.close()
