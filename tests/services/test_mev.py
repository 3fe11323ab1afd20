from unittest.mock import AsyncMock

import pytest

from swapwatch.services.mev import KNOWN_MEV_BOTS, MevFilter


@pytest.mark.asyncio
async def test_seed_known_bots_once(mev_filter, storage):
    expected = sum(len(wallets) for wallets in KNOWN_MEV_BOTS.values())

    assert await mev_filter.seed_known_bots() == expected
    assert await mev_filter.seed_known_bots() == 0
    assert await storage.count_blacklist() == expected


@pytest.mark.asyncio
async def test_lookup_is_case_insensitive_and_chain_scoped(mev_filter):
    await mev_filter.add("0xBadBot", "ethereum", "sandwich")

    assert await mev_filter.is_blacklisted("0xbadbot", "ethereum")
    assert await mev_filter.is_blacklisted("0xBADBOT", "Ethereum")
    assert not await mev_filter.is_blacklisted("0xbadbot", "bsc")
    assert not await mev_filter.is_blacklisted("0xgood", "ethereum")


@pytest.mark.asyncio
async def test_all_chain_entries_apply_everywhere(mev_filter):
    await mev_filter.add("EverywhereBot", "all")

    for chain in ("solana", "ethereum", "bsc"):
        assert await mev_filter.is_blacklisted("EverywhereBot", chain)


@pytest.mark.asyncio
async def test_blacklist_cached_until_ttl(mev_filter, storage, clock):
    await mev_filter.is_blacklisted("x", "ethereum")
    # Written behind the filter's back: invisible until the cache expires
    await storage.add_to_blacklist("0xlate", "ethereum")

    assert not await mev_filter.is_blacklisted("0xlate", "ethereum")
    clock.advance(61)
    assert await mev_filter.is_blacklisted("0xlate", "ethereum")


@pytest.mark.asyncio
async def test_remove_invalidates_cache(mev_filter):
    await mev_filter.add("0xbot", "bsc")
    assert await mev_filter.is_blacklisted("0xbot", "bsc")

    await mev_filter.remove("0xBOT")
    assert not await mev_filter.is_blacklisted("0xbot", "bsc")


@pytest.mark.asyncio
async def test_lookup_failure_is_not_blacklisted(cache):
    storage = AsyncMock()
    storage.get_blacklist.side_effect = RuntimeError("db down")

    assert await MevFilter(storage, cache).is_blacklisted("0xany", "ethereum") is False
