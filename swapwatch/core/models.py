"""
Domain models shared across the pipeline

Tracked tokens and their decoration, classified swaps, persisted
transactions, daily aggregates and gate decisions.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator
from web3 import Web3

SOLANA = "solana"
ETHEREUM = "ethereum"
BSC = "bsc"

EVM_CHAINS = (ETHEREUM, BSC)
SUPPORTED_CHAINS = (SOLANA, ETHEREUM, BSC)

NATIVE_SYMBOLS = {
    SOLANA: "SOL",
    ETHEREUM: "ETH",
    BSC: "BNB",
}

MAX_BUTTONS = 3

MEDIA_EXTENSIONS = {
    "gif": (".gif",),
    "image": (".jpg", ".jpeg", ".png", ".webp"),
    "video": (".mp4", ".webm", ".mov"),
}


def native_symbol_for(chain: str) -> str:
    """Native asset symbol for a chain (SOL/ETH/BNB)"""
    try:
        return NATIVE_SYMBOLS[chain]
    except KeyError:
        raise ValueError(f"Unsupported chain: {chain}") from None


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Direction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class EmojiTier(BaseModel):
    """USD value range [min_usd, max_usd) mapped to an emoji"""

    min_usd: float
    max_usd: Optional[float] = None
    emoji: str
    label: Optional[str] = None

    def matches(self, usd_value: float) -> bool:
        if usd_value < self.min_usd:
            return False
        return self.max_usd is None or usd_value < self.max_usd


class CustomButton(BaseModel):
    text: str
    url: str

    @field_validator("text")
    @classmethod
    def _check_text(cls, value: str) -> str:
        if not value or len(value) > 64:
            raise ValueError("Button text must be 1-64 characters")
        return value

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not _is_http_url(value):
            raise ValueError("Button URL must be a valid http(s) URL")
        return value


class Media(BaseModel):
    type: Literal["gif", "image", "video"]
    url: str

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str, info) -> str:
        if not _is_http_url(value):
            raise ValueError("Media URL must be a valid http(s) URL")
        media_type = info.data.get("type")
        if media_type:
            path = urlparse(value).path.lower()
            if not path.endswith(MEDIA_EXTENSIONS[media_type]):
                raise ValueError(
                    f"Media URL for {media_type} must end with one of {MEDIA_EXTENSIONS[media_type]}"
                )
        return value


class TrackedToken(BaseModel):
    """A (chain, token) pair watched on behalf of one destination channel"""

    id: Optional[int] = None
    chain: str
    token_address: str
    pool_address: Optional[str] = None
    symbol: str
    name: Optional[str] = None
    channel_id: int
    min_amount: float = 0.0
    min_amount_usd: float = 0.0
    whale_threshold_usd: float = 0.0
    emoji_tiers: List[EmojiTier] = Field(default_factory=list)
    buttons: List[CustomButton] = Field(default_factory=list)
    media: Optional[Media] = None
    mev_filter_enabled: bool = True
    is_active: bool = True
    created_at: Optional[datetime] = None

    @field_validator("chain")
    @classmethod
    def _check_chain(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_CHAINS:
            raise ValueError(f"Unsupported chain: {value}")
        return value

    @field_validator("buttons")
    @classmethod
    def _check_buttons(cls, value: List[CustomButton]) -> List[CustomButton]:
        if len(value) > MAX_BUTTONS:
            raise ValueError(f"Maximum {MAX_BUTTONS} buttons allowed per token")
        return value

    @model_validator(mode="after")
    def _check_evm_addresses(self) -> "TrackedToken":
        # Checksum casing is not enforced, only the 20-byte hex shape
        if self.chain in EVM_CHAINS:
            for field in ("token_address", "pool_address"):
                value = getattr(self, field)
                if value is not None and not Web3.is_address(value.lower()):
                    raise ValueError(f"Invalid {self.chain} {field}: {value}")
        return self

    @property
    def is_evm(self) -> bool:
        return self.chain in EVM_CHAINS

    @property
    def native_symbol(self) -> str:
        return native_symbol_for(self.chain)


class SwapEvent(BaseModel):
    """A classified swap, not yet persisted"""

    chain: str
    tx_hash: str
    wallet_address: str
    direction: Direction
    token_amount: Decimal
    native_amount: Decimal
    block_number: Optional[int] = None
    timestamp: datetime

    class Config:
        frozen = True


class Transaction(BaseModel):
    """Durable record of one classified swap, unique on (chain, tx_hash)"""

    id: int
    token_id: int
    chain: str
    tx_hash: str
    wallet_address: str
    direction: Direction
    token_amount: Decimal
    native_amount: Decimal
    usd_value: Optional[Decimal] = None
    timestamp: datetime
    block_number: Optional[int] = None
    alert_sent: bool = False
    # Set only on the instance returned by the record() call that inserted the row
    created: bool = Field(default=False, exclude=True)


class DailyAggregate(BaseModel):
    date: date
    chain: str
    token_address: str
    token_symbol: Optional[str] = None
    buy_count: int = 0
    sell_count: int = 0
    volume_usd: float = 0.0
    unique_buyers: int = 0
    unique_sellers: int = 0


class MevBlacklistEntry(BaseModel):
    wallet_address: str
    chain: str
    reason: Optional[str] = None
    added_by: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class GateDecision(BaseModel):
    """Outcome of the alert gate plus the decoration for the message"""

    emit: bool
    emoji: str = ""
    is_whale: bool = False
    reason: str = ""
    buttons: List[CustomButton] = Field(default_factory=list)
    media: Optional[Media] = None


class DispatchResult(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"
