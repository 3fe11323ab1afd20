import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from swapwatch.collectors import SolanaSwapCollector
from swapwatch.core.events import SolanaTransactionEvent
from swapwatch.core.solana import RpcError


def parsed_tx(slot):
    return {"slot": slot, "blockTime": 1714564800 + slot, "meta": {"err": None}, "transaction": {}}


@pytest.fixture
def rpc():
    client = AsyncMock()
    client.get_transaction.side_effect = lambda signature: parsed_tx(int(signature[1:]))
    return client


@pytest.fixture
def collector(storage, rpc):
    collector = SolanaSwapCollector(
        context=MagicMock(storage=storage),
        rpc_url="https://rpc.example.com",
        polling_interval=0,
        rpc_client=rpc,
    )
    collector._running = True
    return collector


async def poll(collector, token):
    return [event async for event in collector.poll_token(token)]


@pytest.mark.asyncio
async def test_yields_transactions_oldest_first(collector, rpc, solana_token):
    rpc.get_signatures_for_address.return_value = [
        {"signature": "s3", "slot": 3},
        {"signature": "s2", "slot": 2},
        {"signature": "s1", "slot": 1},
    ]

    events = await poll(collector, solana_token)

    assert [event.signature for event in events] == ["s1", "s2", "s3"]
    assert all(isinstance(event, SolanaTransactionEvent) for event in events)
    assert events[0].slot == 1
    assert events[0].block_time == 1714564801
    assert events[0].token.id == solana_token.id
    rpc.get_signatures_for_address.assert_awaited_with(solana_token.token_address, limit=10)


@pytest.mark.asyncio
async def test_skips_failed_stored_and_seen_signatures(collector, rpc, storage, solana_token, swap_factory):
    await storage.record(swap_factory("s1"), solana_token, Decimal("10"))
    rpc.get_signatures_for_address.return_value = [
        {"signature": "s3"},
        {"signature": "s2", "err": {"InstructionError": [0, "Custom"]}},
        {"signature": "s1"},
    ]

    assert [event.signature for event in await poll(collector, solana_token)] == ["s3"]
    # Second round: everything is already known
    assert await poll(collector, solana_token) == []
    assert [call.args[0] for call in rpc.get_transaction.await_args_list] == ["s3"]


@pytest.mark.asyncio
async def test_unavailable_transaction_is_retried(collector, rpc, solana_token):
    rpc.get_signatures_for_address.return_value = [{"signature": "s7"}]
    rpc.get_transaction.side_effect = [None, parsed_tx(7)]

    assert await poll(collector, solana_token) == []
    assert [event.signature for event in await poll(collector, solana_token)] == ["s7"]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [httpx.ConnectError("connection refused"), RpcError("rate limited", 429)])
async def test_failing_token_backs_off(collector, rpc, solana_token, error):
    rpc.get_signatures_for_address.side_effect = error

    assert await poll(collector, solana_token) == []
    assert await poll(collector, solana_token) == []

    # The second round is skipped while the backoff delay runs
    assert rpc.get_signatures_for_address.await_count == 1
    assert collector._backoff_for(solana_token).failures == 1


@pytest.mark.asyncio
async def test_refresh_tokens_loads_active_solana_tokens(collector, storage, solana_token, evm_token):
    await collector.refresh_tokens(force=True)
    assert [token.id for token in collector.tokens] == [solana_token.id]

    await storage.deactivate_tracked_token(solana_token.id)

    # Within the refresh interval the previous list is kept
    await collector.refresh_tokens()
    assert len(collector.tokens) == 1

    await collector.refresh_tokens(force=True)
    assert collector.tokens == []


@pytest.mark.asyncio
async def test_stop_closes_rpc_client(collector, rpc):
    collector._running = False
    await collector.start()
    await collector.stop()

    rpc.close.assert_awaited_once()
    assert not collector.is_running


def test_rejects_invalid_signature_limit():
    with pytest.raises(ValueError):
        SolanaSwapCollector(
            context=MagicMock(),
            rpc_url="https://rpc.example.com",
            signatures_limit=0,
            rpc_client=AsyncMock(),
        )


@pytest.mark.asyncio
async def test_stop_ends_event_stream(storage, rpc, solana_token):
    rpc.get_signatures_for_address.return_value = [{"signature": "s2"}, {"signature": "s1"}]
    collector = SolanaSwapCollector(
        context=MagicMock(storage=storage),
        rpc_url="https://rpc.example.com",
        polling_interval=0.01,
        rpc_client=rpc,
    )

    stream = collector.events()
    first = await asyncio.wait_for(stream.__anext__(), timeout=5)
    await collector.stop()

    async def drain():
        return [event async for event in stream]

    # The round in flight stops at the next signature
    assert first.signature == "s1"
    assert await asyncio.wait_for(drain(), timeout=5) == []
    assert collector.is_running is False
    rpc.close.assert_awaited_once()
