from .base import (
    ERC20_DECIMALS_ABI,
    PAIR_ABI,
    SWAP_EVENT_TOPIC,
    decode_swap_log,
    to_hex,
    topic_to_address,
)

__all__ = [
    "ERC20_DECIMALS_ABI",
    "PAIR_ABI",
    "SWAP_EVENT_TOPIC",
    "decode_swap_log",
    "to_hex",
    "topic_to_address",
]
