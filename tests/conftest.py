from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from swapwatch.core.cache import TTLCache
from swapwatch.core.models import Direction, SwapEvent, TrackedToken
from swapwatch.core.storage import SQLiteSwapStorage
from swapwatch.services.mev import MevFilter
from swapwatch.services.price import PriceResolver

SOL_MINT = "So1TrackedMint1111111111111111111111111111"
PEPE = "0x6982508145454Ce325dDbE47a25d4ec3d2311933"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
PEPE_POOL = "0xA43fe16908251ee70EF74718545e4FE6C5cCEc9f"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(default_ttl=60, clock=clock)


@pytest_asyncio.fixture
async def storage(tmp_path):
    store = SQLiteSwapStorage(str(tmp_path / "swapwatch.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def solana_token(storage):
    return await storage.add_tracked_token(
        TrackedToken(
            chain="solana",
            token_address=SOL_MINT,
            symbol="TEST",
            channel_id=-100123,
            min_amount_usd=50,
            whale_threshold_usd=5000,
        )
    )


@pytest_asyncio.fixture
async def evm_token(storage):
    return await storage.add_tracked_token(
        TrackedToken(
            chain="ethereum",
            token_address=PEPE,
            pool_address=PEPE_POOL,
            symbol="PEPE",
            channel_id=-100456,
            min_amount_usd=50,
        )
    )


@pytest.fixture
def mev_filter(storage, cache):
    return MevFilter(storage, cache)


def make_swap(
    tx_hash: str = "sig1",
    chain: str = "solana",
    wallet: str = "Wallet1111",
    direction: Direction = Direction.BUY,
    token_amount: str = "1000",
    native_amount: str = "0.5",
) -> SwapEvent:
    return SwapEvent(
        chain=chain,
        tx_hash=tx_hash,
        wallet_address=wallet,
        direction=direction,
        token_amount=Decimal(token_amount),
        native_amount=Decimal(native_amount),
        block_number=100,
        timestamp=datetime.now(timezone.utc),
    )


@pytest.fixture
def swap_factory():
    return make_swap


def price_transport(native_prices=None, token_pairs=None, fail=False):
    """
    httpx.MockTransport serving CoinGecko simple/price and DexScreener tokens

    Records every requested URL on the returned transport's `requests` list.
    """
    native_prices = native_prices or {}
    token_pairs = token_pairs or {}
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(str(request.url))
        if fail:
            return httpx.Response(503)
        if request.url.path.endswith("/simple/price"):
            coin_id = request.url.params["ids"]
            if coin_id not in native_prices:
                return httpx.Response(200, json={})
            return httpx.Response(200, json={coin_id: {"usd": native_prices[coin_id]}})
        address = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={"pairs": token_pairs.get(address)})

    transport = httpx.MockTransport(handler)
    transport.requests = requests
    return transport


@pytest_asyncio.fixture
async def make_price_resolver(cache):
    clients = []

    def factory(**kwargs):
        transport = price_transport(**kwargs)
        client = httpx.AsyncClient(transport=transport)
        clients.append(client)
        resolver = PriceResolver(cache, client=client)
        resolver.transport = transport
        return resolver

    yield factory
    for client in clients:
        await client.aclose()
