import asyncio
from decimal import Decimal

import pytest

from swapwatch.core.models import CustomButton, Direction, EmojiTier, Media, TrackedToken
from swapwatch.core.storage import SQLiteSwapStorage, StorageError, create_swap_storage


@pytest.mark.asyncio
async def test_record_new_transaction(storage, solana_token, swap_factory):
    tx = await storage.record(swap_factory("sig-new"), solana_token, Decimal("75.5"))

    assert tx.created is True
    assert tx.id is not None
    assert tx.token_id == solana_token.id
    assert tx.direction == Direction.BUY
    assert tx.usd_value == Decimal("75.5")
    assert tx.alert_sent is False
    assert await storage.has_transaction("solana", "sig-new")


@pytest.mark.asyncio
async def test_record_is_idempotent(storage, solana_token, swap_factory):
    first = await storage.record(swap_factory("sig-dup"), solana_token, Decimal("10"))
    second = await storage.record(swap_factory("sig-dup", token_amount="999"), solana_token, Decimal("99"))

    assert first.created is True
    assert second.created is False
    assert second.id == first.id
    assert second.token_amount == Decimal("1000")
    assert len(await storage.get_recent_transactions(solana_token.id)) == 1


@pytest.mark.asyncio
async def test_concurrent_records_create_exactly_once(storage, solana_token, swap_factory):
    results = await asyncio.gather(
        *(storage.record(swap_factory("sig-race"), solana_token, Decimal("60")) for _ in range(10))
    )

    assert sum(1 for tx in results if tx.created) == 1
    assert len({tx.id for tx in results}) == 1

    stats = await storage.get_daily_stats("solana", solana_token.token_address)
    assert stats[0].buy_count == 1


@pytest.mark.asyncio
async def test_same_hash_on_different_chains_is_distinct(storage, solana_token, evm_token, swap_factory):
    a = await storage.record(swap_factory("0xabc", chain="solana"), solana_token)
    b = await storage.record(swap_factory("0xabc", chain="ethereum"), evm_token)

    assert a.created and b.created
    assert a.id != b.id


@pytest.mark.asyncio
async def test_record_unknown_usd_value(storage, solana_token, swap_factory):
    tx = await storage.record(swap_factory("sig-nousd"), solana_token, None)

    assert tx.usd_value is None
    stats = await storage.get_daily_stats("solana", solana_token.token_address)
    assert stats[0].volume_usd == 0


@pytest.mark.asyncio
async def test_daily_stats_unique_wallets(storage, solana_token, swap_factory):
    await storage.record(swap_factory("s1", wallet="alice"), solana_token, Decimal("100"))
    await storage.record(swap_factory("s2", wallet="alice"), solana_token, Decimal("50"))
    await storage.record(swap_factory("s3", wallet="bob"), solana_token, Decimal("25"))
    await storage.record(
        swap_factory("s4", wallet="alice", direction=Direction.SELL), solana_token, Decimal("10")
    )

    (stats,) = await storage.get_daily_stats("solana", solana_token.token_address)
    assert stats.buy_count == 3
    assert stats.sell_count == 1
    assert stats.unique_buyers == 2
    assert stats.unique_sellers == 1
    assert stats.volume_usd == pytest.approx(185)


@pytest.mark.asyncio
async def test_unique_wallets_shared_across_channels_on_same_token(storage, solana_token, swap_factory):
    second_channel = await storage.add_tracked_token(
        TrackedToken(
            chain="solana",
            token_address=solana_token.token_address,
            symbol="TEST",
            channel_id=-100999,
        )
    )

    await storage.record(swap_factory("c1", wallet="alice"), solana_token, Decimal("40"))
    await storage.record(swap_factory("c2", wallet="alice"), second_channel, Decimal("60"))

    (stats,) = await storage.get_daily_stats("solana", solana_token.token_address)
    assert stats.buy_count == 2
    assert stats.unique_buyers == 1
    assert stats.token_symbol == "TEST"


@pytest.mark.asyncio
async def test_mark_alert_sent(storage, solana_token, swap_factory):
    tx = await storage.record(swap_factory("sig-alert"), solana_token)
    await storage.mark_alert_sent(tx.id)

    stored = await storage.get_transaction("solana", "sig-alert")
    assert stored.alert_sent is True
    assert stored.created is False


@pytest.mark.asyncio
async def test_evm_token_requires_pool(storage):
    with pytest.raises(ValueError):
        await storage.add_tracked_token(
            TrackedToken(
                chain="bsc",
                token_address="0x55d398326f99059fF775485246999027B3197955",
                symbol="USDT",
                channel_id=1,
            )
        )


@pytest.mark.asyncio
async def test_list_and_deactivate_tokens(storage, solana_token, evm_token):
    assert [t.id for t in await storage.list_active_tokens()] == [solana_token.id, evm_token.id]
    assert [t.id for t in await storage.list_active_tokens("solana")] == [solana_token.id]
    assert [t.id for t in await storage.list_active_tokens(["ethereum", "bsc"])] == [evm_token.id]

    await storage.deactivate_tracked_token(solana_token.id)

    assert [t.id for t in await storage.list_active_tokens()] == [evm_token.id]
    token = await storage.get_tracked_token(solana_token.id)
    assert token.is_active is False


@pytest.mark.asyncio
async def test_find_tracked_token(storage, evm_token):
    found = await storage.find_tracked_token("Ethereum", evm_token.token_address, evm_token.channel_id)
    assert found.id == evm_token.id
    assert await storage.find_tracked_token("ethereum", evm_token.token_address, 999) is None


@pytest.mark.asyncio
async def test_token_decoration_round_trip(storage, solana_token):
    await storage.set_emoji_tiers(
        solana_token.id,
        [
            EmojiTier(min_usd=100, max_usd=None, emoji="🚀"),
            EmojiTier(min_usd=0, max_usd=100, emoji="🐟"),
        ],
    )
    await storage.set_buttons(solana_token.id, [CustomButton(text="Chart", url="https://example.com/c")])
    await storage.set_media(solana_token.id, Media(type="gif", url="https://example.com/buy.gif"))

    token = await storage.get_tracked_token(solana_token.id)
    assert [tier.emoji for tier in token.emoji_tiers] == ["🐟", "🚀"]
    assert token.buttons[0].text == "Chart"
    assert token.media.type == "gif"

    await storage.clear_media(solana_token.id)
    assert (await storage.get_tracked_token(solana_token.id)).media is None


@pytest.mark.asyncio
async def test_set_buttons_rejects_more_than_three(storage, solana_token):
    buttons = [CustomButton(text=f"b{i}", url="https://example.com") for i in range(4)]
    with pytest.raises(ValueError):
        await storage.set_buttons(solana_token.id, buttons)


@pytest.mark.asyncio
async def test_blacklist_persistence(storage):
    await storage.add_to_blacklist("0xABCDEF", "ethereum", "sandwich", "admin")
    await storage.add_to_blacklist("AllChainBot", "all")

    eth = await storage.get_blacklist("ethereum")
    assert {entry.wallet_address for entry in eth} == {"0xabcdef", "allchainbot"}
    assert {entry.wallet_address for entry in await storage.get_blacklist("bsc")} == {"allchainbot"}

    await storage.remove_from_blacklist("0xAbCdEf")
    assert {entry.wallet_address for entry in await storage.get_blacklist("ethereum")} == {"allchainbot"}
    # Soft delete keeps the row
    assert await storage.count_blacklist() == 2


@pytest.mark.asyncio
async def test_uninitialized_storage_raises(tmp_path):
    store = SQLiteSwapStorage(str(tmp_path / "never.db"))
    with pytest.raises(StorageError):
        await store.has_transaction("solana", "x")


def test_create_swap_storage():
    store = create_swap_storage({"type": "sqlite", "db_path": "data/test.db"})
    assert isinstance(store, SQLiteSwapStorage)
    assert store.db_path == "data/test.db"

    with pytest.raises(ValueError):
        create_swap_storage({"type": "postgres"})
