from .evm_swaps import EvmSwapCollector
from .solana_swaps import SolanaSwapCollector

__all__ = ["EvmSwapCollector", "SolanaSwapCollector"]
