"""
USD price resolution for swaps

Resolution order for a swap's USD value:
1. token amount x DexScreener unit price for the token address
2. native amount x CoinGecko price of the chain's native asset
3. unknown (None)

Every upstream lookup goes through the injected TTLCache first.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import httpx

from swapwatch.core.cache import TTLCache
from swapwatch.logger import logger

COINGECKO_API = "https://api.coingecko.com/api/v3"
DEXSCREENER_API = "https://api.dexscreener.com/latest/dex/tokens"

# Native symbol -> CoinGecko coin id
COINGECKO_IDS = {
    "SOL": "solana",
    "ETH": "ethereum",
    "BNB": "binancecoin",
}


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite() or result <= 0:
        return None
    return result


class PriceResolver:
    def __init__(
        self,
        cache: TTLCache,
        client: Optional[httpx.AsyncClient] = None,
        coingecko_url: str = COINGECKO_API,
        dexscreener_url: str = DEXSCREENER_API,
        timeout: float = 5.0,
        ttl: float = 60.0,
    ):
        """
        Args:
            cache: Shared TTL cache for quotes
            client: HTTP client; one with `timeout` is created when omitted
            coingecko_url: Market-data API base URL
            dexscreener_url: DEX-aggregator token endpoint
            timeout: Per-request timeout in seconds
            ttl: Lifetime of a cached quote in seconds
        """
        self.cache = cache
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self.coingecko_url = coingecko_url.rstrip("/")
        self.dexscreener_url = dexscreener_url.rstrip("/")
        self.timeout = timeout
        self.ttl = ttl

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def resolve_usd(
        self,
        chain: str,
        token_address: str,
        native_amount: Decimal,
        native_symbol: str,
        token_amount: Optional[Decimal] = None,
    ) -> Optional[Decimal]:
        """
        Resolve the USD value of a swap

        Returns:
            Optional[Decimal]: USD value, or None when no price source answered
        """
        if token_amount is not None and token_amount > 0:
            unit_price = await self.get_token_unit_price(token_address)
            if unit_price is not None:
                usd = token_amount * unit_price
                logger.debug(
                    f"Price calc (token-based) on {chain}: {token_amount} x ${unit_price} = ${usd:.2f}"
                )
                return usd
            logger.debug(
                f"DexScreener price not available for {token_address}, using {native_symbol}-based calculation"
            )

        native_price = await self.get_native_price(native_symbol)
        if native_price is None:
            logger.warning(f"Failed to get {native_symbol} price, USD value unknown")
            return None

        usd = native_amount * native_price
        logger.debug(
            f"Price calc ({native_symbol}-based) on {chain}: {native_amount} x ${native_price} = ${usd:.2f}"
        )
        return usd

    async def get_native_price(self, symbol: str) -> Optional[Decimal]:
        """USD price of a native asset (SOL/ETH/BNB)"""
        symbol = symbol.upper()
        cache_key = f"native:{symbol}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        coin_id = COINGECKO_IDS.get(symbol)
        if not coin_id:
            logger.warning(f"No market-data id for native symbol {symbol}")
            return None

        data = await self._get_json(
            f"{self.coingecko_url}/simple/price",
            params={"ids": coin_id, "vs_currencies": "usd"},
        )
        price = _to_decimal((data or {}).get(coin_id, {}).get("usd"))
        if price is not None:
            self.cache.set(cache_key, price, self.ttl)
        return price

    async def get_token_unit_price(self, token_address: str) -> Optional[Decimal]:
        """USD price of one token, from its most liquid DexScreener pair"""
        cache_key = f"dexscreener:{token_address}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        pair = await self._get_main_pair(token_address)
        price = _to_decimal(pair.get("priceUsd")) if pair else None
        if price is not None:
            self.cache.set(cache_key, price, self.ttl)
            logger.debug(f"DexScreener price for {token_address}: ${price}")
        return price

    async def get_market_cap(self, token_address: str) -> Optional[Decimal]:
        cache_key = f"marketcap:{token_address}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        pair = await self._get_main_pair(token_address)
        if not pair:
            return None
        market_cap = _to_decimal(pair.get("marketCap")) or _to_decimal(pair.get("fdv"))
        if market_cap is not None:
            self.cache.set(cache_key, market_cap, self.ttl)
        return market_cap

    async def _get_main_pair(self, token_address: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(f"{self.dexscreener_url}/{token_address}")
        pairs = (data or {}).get("pairs") or []
        if not pairs:
            return None
        return max(
            pairs,
            key=lambda pair: float((pair.get("liquidity") or {}).get("usd") or 0),
        )

    async def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Optional[Dict[str, Any]]:
        try:
            response = await self.client.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.debug(f"Price request to {url} failed: {e}")
            return None
        except ValueError as e:
            logger.debug(f"Invalid JSON from {url}: {e}")
            return None
