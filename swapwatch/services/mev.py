from typing import Dict, Optional, Set

from swapwatch.core.cache import TTLCache
from swapwatch.core.storage import SwapStorage
from swapwatch.logger import logger

CACHE_KEY = "mev:blacklist"

# Known MEV bot wallets, seeded into an empty blacklist
KNOWN_MEV_BOTS = {
    "ethereum": [
        "0xae2fc483527b8ef99eb5d9b44875f005ba1fae13",  # jaredfromsubway.eth
        "0x00000000007f150bd6f54c40a34d7c3d5e9f56aa",
        "0x000000000035b5e5ad9019092c665357240f594e",
        "0x00000000009e50a7ddb7a81e3b6ad7fcf24bb292",
        "0x6980a47bee930a4584b09ee79ebe46484fbdbdd0",
        "0x51c72848c68a965f66fa7a88855f9f7784502a7f",
        "0xa57bd00134b2850b2a1c55860c9e9ea100fdd6cf",
    ],
    "bsc": [
        "0x8894e0a0c962cb723c1976a4421c95949be2d4e3",
    ],
    "solana": [
        "AxqeCjfz5Q4QR1cVkgaAK8LvXUAdXV5eM7yKwgKhPu3B",
        "JiToZu6RrFvTjsv2vqT5mJxYQ9L7L3qY5h7J7fFGzCuQ",
    ],
}


class MevFilter:
    """
    Answers "is this wallet excluded from alerts"

    The active blacklist is loaded from storage and kept in the injected
    TTLCache as {chain: {wallet, ...}}; entries with chain "all" apply to
    every chain. Addresses are compared lower-cased.
    """

    def __init__(self, storage: SwapStorage, cache: TTLCache, ttl: float = 60.0):
        self.storage = storage
        self.cache = cache
        self.ttl = ttl

    async def seed_known_bots(self) -> int:
        """Populate an empty blacklist with known MEV bots"""
        if await self.storage.count_blacklist() > 0:
            return 0

        logger.info("Initializing MEV blacklist with known bots...")
        added = 0
        for chain, wallets in KNOWN_MEV_BOTS.items():
            for wallet in wallets:
                await self.storage.add_to_blacklist(wallet, chain, "Known MEV bot", "system")
                added += 1
        self.invalidate()
        logger.info(f"Added {added} known MEV bots to blacklist")
        return added

    async def is_blacklisted(self, wallet_address: str, chain: str) -> bool:
        try:
            blacklist = await self._get_blacklist()
        except Exception as e:
            logger.error(f"Error checking MEV blacklist: {e}")
            return False

        normalized = wallet_address.lower()
        return normalized in blacklist.get(chain.lower(), set()) or normalized in blacklist.get("all", set())

    async def add(self, wallet_address: str, chain: str, reason: Optional[str] = None, added_by: Optional[str] = None) -> None:
        await self.storage.add_to_blacklist(wallet_address, chain, reason, added_by)
        self.invalidate()

    async def remove(self, wallet_address: str) -> None:
        await self.storage.remove_from_blacklist(wallet_address)
        self.invalidate()

    def invalidate(self) -> None:
        self.cache.delete(CACHE_KEY)

    async def _get_blacklist(self) -> Dict[str, Set[str]]:
        cached = self.cache.get(CACHE_KEY)
        if cached is not None:
            return cached

        blacklist: Dict[str, Set[str]] = {}
        for entry in await self.storage.get_blacklist():
            blacklist.setdefault(entry.chain, set()).add(entry.wallet_address.lower())

        self.cache.set(CACHE_KEY, blacklist, self.ttl)
        logger.debug(f"MEV blacklist cache refreshed: {sum(len(s) for s in blacklist.values())} entries")
        return blacklist
