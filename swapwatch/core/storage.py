"""
Swap Storage Module

Durable state for the pipeline: tracked tokens, deduplicated swap
transactions, daily aggregates and the MEV blacklist.

The (chain, tx_hash) unique index on `transactions` is the serialization
point for dedup: every on-chain event is stored at most once no matter how
many times, or how concurrently, it is observed.
"""

import asyncio
import json
import os
import sqlite3
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

import aiosqlite

from swapwatch.core.models import (
    MAX_BUTTONS,
    CustomButton,
    DailyAggregate,
    Direction,
    EmojiTier,
    Media,
    MevBlacklistEntry,
    SwapEvent,
    TrackedToken,
    Transaction,
)
from swapwatch.logger import logger

SCHEMA = """
CREATE TABLE IF NOT EXISTS tracked_tokens (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chain TEXT NOT NULL,
    token_address TEXT NOT NULL,
    pool_address TEXT,
    symbol TEXT NOT NULL,
    name TEXT,
    channel_id INTEGER NOT NULL,
    min_amount REAL NOT NULL DEFAULT 0,
    min_amount_usd REAL NOT NULL DEFAULT 0,
    whale_threshold_usd REAL NOT NULL DEFAULT 0,
    emoji_tiers TEXT,
    buttons TEXT,
    media TEXT,
    mev_filter_enabled INTEGER NOT NULL DEFAULT 1,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    token_id INTEGER NOT NULL REFERENCES tracked_tokens(id),
    chain TEXT NOT NULL,
    tx_hash TEXT NOT NULL,
    wallet_address TEXT NOT NULL,
    direction TEXT NOT NULL,
    token_amount TEXT NOT NULL,
    native_amount TEXT NOT NULL,
    usd_value TEXT,
    timestamp TEXT NOT NULL,
    block_number INTEGER,
    alert_sent INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE (chain, tx_hash)
);

CREATE TABLE IF NOT EXISTS daily_stats (
    date TEXT NOT NULL,
    chain TEXT NOT NULL,
    token_address TEXT NOT NULL,
    token_symbol TEXT,
    buy_count INTEGER NOT NULL DEFAULT 0,
    sell_count INTEGER NOT NULL DEFAULT 0,
    volume_usd REAL NOT NULL DEFAULT 0,
    unique_buyers INTEGER NOT NULL DEFAULT 0,
    unique_sellers INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (date, chain, token_address)
);

CREATE TABLE IF NOT EXISTS mev_blacklist (
    wallet_address TEXT PRIMARY KEY,
    chain TEXT NOT NULL,
    reason TEXT,
    added_by TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tokens_chain_active ON tracked_tokens(chain, is_active);
CREATE INDEX IF NOT EXISTS idx_transactions_token_time ON transactions(token_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_transactions_wallet ON transactions(chain, wallet_address);
"""


class StorageError(Exception):
    """Raised when the store cannot complete a write"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SwapStorage(ABC):
    """Abstract base class for swap storage implementations"""

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    # Transactions

    @abstractmethod
    async def has_transaction(self, chain: str, tx_hash: str) -> bool:
        pass

    @abstractmethod
    async def get_transaction(self, chain: str, tx_hash: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def record(
        self, event: SwapEvent, token: TrackedToken, usd_value: Optional[Decimal] = None
    ) -> Transaction:
        """
        Persist a classified swap, idempotently on (chain, tx_hash)

        Returns the stored row. `Transaction.created` is True only when this
        call inserted it.
        """

    @abstractmethod
    async def mark_alert_sent(self, transaction_id: int) -> None:
        pass

    @abstractmethod
    async def get_recent_transactions(self, token_id: int, limit: int = 10) -> List[Transaction]:
        pass

    @abstractmethod
    async def get_daily_stats(self, chain: str, token_address: str, days: int = 7) -> List[DailyAggregate]:
        pass

    # Tracked tokens

    @abstractmethod
    async def add_tracked_token(self, token: TrackedToken) -> TrackedToken:
        pass

    @abstractmethod
    async def deactivate_tracked_token(self, token_id: int) -> None:
        pass

    @abstractmethod
    async def get_tracked_token(self, token_id: int) -> Optional[TrackedToken]:
        pass

    @abstractmethod
    async def find_tracked_token(
        self, chain: str, token_address: str, channel_id: int
    ) -> Optional[TrackedToken]:
        pass

    @abstractmethod
    async def list_active_tokens(self, chain: Union[str, Iterable[str], None] = None) -> List[TrackedToken]:
        pass

    # MEV blacklist

    @abstractmethod
    async def add_to_blacklist(
        self, wallet_address: str, chain: str, reason: Optional[str] = None, added_by: Optional[str] = None
    ) -> None:
        pass

    @abstractmethod
    async def remove_from_blacklist(self, wallet_address: str) -> None:
        pass

    @abstractmethod
    async def get_blacklist(self, chain: Optional[str] = None) -> List[MevBlacklistEntry]:
        pass

    @abstractmethod
    async def count_blacklist(self) -> int:
        pass


class SQLiteSwapStorage(SwapStorage):
    """Swap storage backed by a single aiosqlite connection"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None
        # Serializes multi-statement write units on the shared connection
        self._write_lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self.db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.executescript(SCHEMA)
        await self._connection.commit()
        logger.info(f"Swap storage initialized at {self.db_path}")

    async def close(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Swap storage closed")

    @property
    def conn(self) -> aiosqlite.Connection:
        if not self._connection:
            raise StorageError("Storage not initialized. Call initialize() first.")
        return self._connection

    # Transactions

    async def has_transaction(self, chain: str, tx_hash: str) -> bool:
        async with self.conn.execute(
            "SELECT 1 FROM transactions WHERE chain = ? AND tx_hash = ?", (chain, tx_hash)
        ) as cursor:
            return await cursor.fetchone() is not None

    async def get_transaction(self, chain: str, tx_hash: str) -> Optional[Transaction]:
        async with self.conn.execute(
            "SELECT * FROM transactions WHERE chain = ? AND tx_hash = ?", (chain, tx_hash)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_transaction(row) if row else None

    async def get_transaction_by_id(self, transaction_id: int) -> Optional[Transaction]:
        async with self.conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_transaction(row) if row else None

    async def record(
        self, event: SwapEvent, token: TrackedToken, usd_value: Optional[Decimal] = None
    ) -> Transaction:
        async with self._write_lock:
            existing = await self.get_transaction(event.chain, event.tx_hash)
            if existing:
                logger.debug(f"Transaction {event.tx_hash} already recorded")
                return existing

            try:
                cursor = await self.conn.execute(
                    """
                    INSERT INTO transactions (
                        token_id, chain, tx_hash, wallet_address, direction,
                        token_amount, native_amount, usd_value, timestamp,
                        block_number, alert_sent, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                    """,
                    (
                        token.id,
                        event.chain,
                        event.tx_hash,
                        event.wallet_address,
                        event.direction.value,
                        str(event.token_amount),
                        str(event.native_amount),
                        str(usd_value) if usd_value is not None else None,
                        _to_utc(event.timestamp).isoformat(),
                        event.block_number,
                        _utcnow().isoformat(),
                    ),
                )
                transaction_id = cursor.lastrowid
                await self.conn.commit()
            except sqlite3.IntegrityError:
                await self.conn.rollback()
                # Another writer (possibly another process) got there first
                logger.debug(f"Transaction {event.tx_hash} already exists (race condition)")
                existing = await self.get_transaction(event.chain, event.tx_hash)
                if existing is None:
                    raise StorageError(
                        f"Unique violation for {event.chain}:{event.tx_hash} but no row found"
                    )
                return existing
            except sqlite3.Error as e:
                await self.conn.rollback()
                raise StorageError(f"Error recording transaction {event.tx_hash}: {e}") from e

            logger.info(
                f"Transaction recorded: {event.direction.value} {event.token_amount} {token.symbol} "
                f"on {event.chain} ({event.tx_hash})"
            )

            try:
                await self._update_daily_stats(transaction_id, event, token, usd_value)
            except sqlite3.Error as e:
                await self.conn.rollback()
                logger.error(f"Error updating daily stats for {event.tx_hash}: {e}")

        transaction = await self.get_transaction_by_id(transaction_id)
        return transaction.model_copy(update={"created": True})

    async def _update_daily_stats(
        self,
        transaction_id: int,
        event: SwapEvent,
        token: TrackedToken,
        usd_value: Optional[Decimal],
    ) -> None:
        day = _to_utc(event.timestamp).date()
        is_buy = event.direction == Direction.BUY

        # Unique counters move only on a wallet's first trade of that side today,
        # across every channel tracking the same token
        async with self.conn.execute(
            """
            SELECT COUNT(*) FROM transactions t
            JOIN tracked_tokens tt ON tt.id = t.token_id
            WHERE tt.chain = ? AND tt.token_address = ? AND t.wallet_address = ?
              AND t.direction = ? AND substr(t.timestamp, 1, 10) = ? AND t.id != ?
            """,
            (
                event.chain,
                token.token_address,
                event.wallet_address,
                event.direction.value,
                day.isoformat(),
                transaction_id,
            ),
        ) as cursor:
            (previous,) = await cursor.fetchone()
        new_wallet = 1 if previous == 0 else 0

        buy = 1 if is_buy else 0
        sell = 0 if is_buy else 1
        volume = float(usd_value) if usd_value is not None else 0.0

        await self.conn.execute(
            """
            INSERT INTO daily_stats (
                date, chain, token_address, token_symbol, buy_count, sell_count,
                volume_usd, unique_buyers, unique_sellers
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (date, chain, token_address) DO UPDATE SET
                buy_count = buy_count + excluded.buy_count,
                sell_count = sell_count + excluded.sell_count,
                volume_usd = volume_usd + excluded.volume_usd,
                unique_buyers = unique_buyers + excluded.unique_buyers,
                unique_sellers = unique_sellers + excluded.unique_sellers
            """,
            (
                day.isoformat(),
                event.chain,
                token.token_address,
                token.symbol,
                buy,
                sell,
                volume,
                new_wallet * buy,
                new_wallet * sell,
            ),
        )
        await self.conn.commit()

    async def mark_alert_sent(self, transaction_id: int) -> None:
        async with self._write_lock:
            await self.conn.execute(
                "UPDATE transactions SET alert_sent = 1 WHERE id = ?", (transaction_id,)
            )
            await self.conn.commit()

    async def get_recent_transactions(self, token_id: int, limit: int = 10) -> List[Transaction]:
        async with self.conn.execute(
            "SELECT * FROM transactions WHERE token_id = ? ORDER BY timestamp DESC LIMIT ?",
            (token_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_transaction(row) for row in rows]

    async def get_daily_stats(self, chain: str, token_address: str, days: int = 7) -> List[DailyAggregate]:
        start = (_utcnow() - timedelta(days=days)).date()
        async with self.conn.execute(
            """
            SELECT * FROM daily_stats
            WHERE chain = ? AND token_address = ? AND date >= ?
            ORDER BY date DESC
            """,
            (chain, token_address, start.isoformat()),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            DailyAggregate(
                date=date.fromisoformat(row["date"]),
                chain=row["chain"],
                token_address=row["token_address"],
                token_symbol=row["token_symbol"],
                buy_count=row["buy_count"],
                sell_count=row["sell_count"],
                volume_usd=row["volume_usd"],
                unique_buyers=row["unique_buyers"],
                unique_sellers=row["unique_sellers"],
            )
            for row in rows
        ]

    # Tracked tokens

    async def add_tracked_token(self, token: TrackedToken) -> TrackedToken:
        if token.is_evm and not token.pool_address:
            raise ValueError(f"Pool address is required for {token.chain} tokens")

        created_at = _utcnow()
        async with self._write_lock:
            cursor = await self.conn.execute(
                """
                INSERT INTO tracked_tokens (
                    chain, token_address, pool_address, symbol, name, channel_id,
                    min_amount, min_amount_usd, whale_threshold_usd, emoji_tiers,
                    buttons, media, mev_filter_enabled, is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                """,
                (
                    token.chain,
                    token.token_address,
                    token.pool_address,
                    token.symbol,
                    token.name,
                    token.channel_id,
                    token.min_amount,
                    token.min_amount_usd,
                    token.whale_threshold_usd,
                    self._dump_list(token.emoji_tiers),
                    self._dump_list(token.buttons),
                    token.media.model_dump_json() if token.media else None,
                    1 if token.mev_filter_enabled else 0,
                    created_at.isoformat(),
                ),
            )
            await self.conn.commit()

        logger.info(
            f"Token {token.symbol} added for tracking in channel {token.channel_id} on {token.chain}"
        )
        return token.model_copy(update={"id": cursor.lastrowid, "is_active": True, "created_at": created_at})

    async def deactivate_tracked_token(self, token_id: int) -> None:
        async with self._write_lock:
            await self.conn.execute(
                "UPDATE tracked_tokens SET is_active = 0 WHERE id = ?", (token_id,)
            )
            await self.conn.commit()
        logger.info(f"Token {token_id} deactivated")

    async def get_tracked_token(self, token_id: int) -> Optional[TrackedToken]:
        async with self.conn.execute(
            "SELECT * FROM tracked_tokens WHERE id = ?", (token_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_token(row) if row else None

    async def find_tracked_token(
        self, chain: str, token_address: str, channel_id: int
    ) -> Optional[TrackedToken]:
        async with self.conn.execute(
            """
            SELECT * FROM tracked_tokens
            WHERE chain = ? AND token_address = ? AND channel_id = ? AND is_active = 1
            """,
            (chain.lower(), token_address, channel_id),
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_token(row) if row else None

    async def list_active_tokens(self, chain: Union[str, Iterable[str], None] = None) -> List[TrackedToken]:
        query = "SELECT * FROM tracked_tokens WHERE is_active = 1"
        params: List[Any] = []
        if chain is not None:
            chains = [chain] if isinstance(chain, str) else list(chain)
            query += f" AND chain IN ({', '.join('?' for _ in chains)})"
            params.extend(c.lower() for c in chains)
        query += " ORDER BY id"

        async with self.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_token(row) for row in rows]

    async def set_emoji_tiers(self, token_id: int, tiers: List[EmojiTier]) -> None:
        ordered = sorted(tiers, key=lambda tier: tier.min_usd)
        await self._update_token_column(token_id, "emoji_tiers", self._dump_list(ordered))

    async def set_buttons(self, token_id: int, buttons: List[CustomButton]) -> None:
        if len(buttons) > MAX_BUTTONS:
            raise ValueError(f"Maximum {MAX_BUTTONS} buttons allowed per token")
        await self._update_token_column(token_id, "buttons", self._dump_list(buttons))

    async def set_media(self, token_id: int, media: Optional[Media]) -> None:
        await self._update_token_column(token_id, "media", media.model_dump_json() if media else None)

    async def clear_media(self, token_id: int) -> None:
        await self.set_media(token_id, None)

    async def _update_token_column(self, token_id: int, column: str, value: Any) -> None:
        async with self._write_lock:
            await self.conn.execute(
                f"UPDATE tracked_tokens SET {column} = ? WHERE id = ?", (value, token_id)
            )
            await self.conn.commit()
        logger.info(f"Updated {column} for token {token_id}")

    # MEV blacklist

    async def add_to_blacklist(
        self, wallet_address: str, chain: str, reason: Optional[str] = None, added_by: Optional[str] = None
    ) -> None:
        normalized = wallet_address.lower()
        async with self._write_lock:
            await self.conn.execute(
                """
                INSERT INTO mev_blacklist (wallet_address, chain, reason, added_by, is_active, created_at)
                VALUES (?, ?, ?, ?, 1, ?)
                ON CONFLICT (wallet_address) DO UPDATE SET
                    is_active = 1, reason = excluded.reason, added_by = excluded.added_by
                """,
                (normalized, chain.lower(), reason, added_by, _utcnow().isoformat()),
            )
            await self.conn.commit()
        logger.info(f"Added {normalized} to MEV blacklist ({chain})")

    async def remove_from_blacklist(self, wallet_address: str) -> None:
        normalized = wallet_address.lower()
        async with self._write_lock:
            await self.conn.execute(
                "UPDATE mev_blacklist SET is_active = 0 WHERE wallet_address = ?", (normalized,)
            )
            await self.conn.commit()
        logger.info(f"Removed {normalized} from MEV blacklist")

    async def get_blacklist(self, chain: Optional[str] = None) -> List[MevBlacklistEntry]:
        query = "SELECT * FROM mev_blacklist WHERE is_active = 1"
        params: List[Any] = []
        if chain:
            query += " AND chain IN (?, 'all')"
            params.append(chain.lower())
        query += " ORDER BY created_at DESC"

        async with self.conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [
            MevBlacklistEntry(
                wallet_address=row["wallet_address"],
                chain=row["chain"],
                reason=row["reason"],
                added_by=row["added_by"],
                is_active=bool(row["is_active"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    async def count_blacklist(self) -> int:
        async with self.conn.execute("SELECT COUNT(*) FROM mev_blacklist") as cursor:
            (count,) = await cursor.fetchone()
        return count

    # Row mapping

    @staticmethod
    def _dump_list(items: List[Any]) -> Optional[str]:
        if not items:
            return None
        return json.dumps([item.model_dump() for item in items])

    @staticmethod
    def _row_to_transaction(row: aiosqlite.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            token_id=row["token_id"],
            chain=row["chain"],
            tx_hash=row["tx_hash"],
            wallet_address=row["wallet_address"],
            direction=Direction(row["direction"]),
            token_amount=Decimal(row["token_amount"]),
            native_amount=Decimal(row["native_amount"]),
            usd_value=Decimal(row["usd_value"]) if row["usd_value"] is not None else None,
            timestamp=datetime.fromisoformat(row["timestamp"]),
            block_number=row["block_number"],
            alert_sent=bool(row["alert_sent"]),
        )

    @staticmethod
    def _row_to_token(row: aiosqlite.Row) -> TrackedToken:
        return TrackedToken(
            id=row["id"],
            chain=row["chain"],
            token_address=row["token_address"],
            pool_address=row["pool_address"],
            symbol=row["symbol"],
            name=row["name"],
            channel_id=row["channel_id"],
            min_amount=row["min_amount"],
            min_amount_usd=row["min_amount_usd"],
            whale_threshold_usd=row["whale_threshold_usd"],
            emoji_tiers=json.loads(row["emoji_tiers"]) if row["emoji_tiers"] else [],
            buttons=json.loads(row["buttons"]) if row["buttons"] else [],
            media=json.loads(row["media"]) if row["media"] else None,
            mev_filter_enabled=bool(row["mev_filter_enabled"]),
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


def create_swap_storage(storage_config: Dict[str, Any]) -> SwapStorage:
    """
    Factory function to create a swap storage instance from configuration

    Raises:
        ValueError: If storage type is unknown
    """
    storage_type = storage_config.get("type", "sqlite")

    if storage_type == "sqlite":
        return SQLiteSwapStorage(storage_config.get("db_path", "data/swapwatch.db"))
    raise ValueError(f"Unknown storage type: {storage_type}")
