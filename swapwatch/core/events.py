from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from swapwatch.core.models import TrackedToken


class Event(BaseModel, ABC):
    """
    Base class for collector events

    Every event concerns one tracked token, so the chain comes from it;
    subclasses name the transaction the event was read from.
    """
    type: str = Field(...)
    token: TrackedToken

    class Config:
        frozen = True
        arbitrary_types_allowed = True

    @property
    def chain(self) -> str:
        return self.token.chain

    @property
    @abstractmethod
    def tx_hash(self) -> str:
        pass


class SolanaTransactionEvent(Event):
    """
    A parsed Solana transaction referencing a tracked mint

    `transaction` is the jsonParsed `getTransaction` result
    (keys: slot, blockTime, meta, transaction).
    """
    type: str = "solana_transaction"
    signature: str
    slot: int
    block_time: Optional[int] = None
    transaction: Dict[str, Any]

    @property
    def tx_hash(self) -> str:
        return self.signature

    @property
    def timestamp(self) -> datetime:
        if self.block_time is None:
            return datetime.now(timezone.utc)
        return datetime.fromtimestamp(self.block_time, tz=timezone.utc)

    def __str__(self) -> str:
        return (
            f"Solana Transaction Event:\n"
            f"  Token: {self.token.symbol}\n"
            f"  Signature: {self.signature}\n"
            f"  Slot: {self.slot}"
        )


class EvmSwapLogEvent(Event):
    """
    A decoded two-asset pool Swap log

    Raw amounts are integers in each asset's smallest unit; `token_slot`
    is the pool slot (0 or 1) holding the tracked token.
    """
    type: str = "evm_swap_log"
    transaction_hash: str
    log_index: Optional[int] = None
    block_number: int
    block_timestamp: datetime
    sender: str
    recipient: str
    amount0_in: int
    amount1_in: int
    amount0_out: int
    amount1_out: int
    token_slot: int
    token_decimals: int = 18
    counter_decimals: int = 18

    @property
    def tx_hash(self) -> str:
        return self.transaction_hash

    def __str__(self) -> str:
        return (
            f"EVM Swap Log Event:\n"
            f"  Chain: {self.chain}\n"
            f"  Token: {self.token.symbol} (slot {self.token_slot})\n"
            f"  Pool: {self.token.pool_address}\n"
            f"  TX Hash: {self.transaction_hash}\n"
            f"  Block: {self.block_number}\n"
            f"  In: {self.amount0_in}/{self.amount1_in} Out: {self.amount0_out}/{self.amount1_out}"
        )
