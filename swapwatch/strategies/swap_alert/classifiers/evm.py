"""
Classifier for two-asset pool Swap logs on EVM chains.
"""
from typing import Optional

from swapwatch.core.events import EvmSwapLogEvent
from swapwatch.core.models import EVM_CHAINS, Direction, SwapEvent, TrackedToken
from swapwatch.logger import logger
from swapwatch.strategies.swap_alert.classifiers.base import Classifier, scale_amount


class EvmClassifier(Classifier):
    """
    Classify a Uniswap-V2 style Swap log.

    With the tracked token in slot s and the counter-asset in slot o:
    - amount{s}Out > 0: the recipient received the token, a buy paid with amount{o}In
    - amount{s}In > 0: the recipient sold the token for amount{o}Out
    Both nonzero is a complex route and is discarded.
    """

    chains = EVM_CHAINS

    def classify(self, event: EvmSwapLogEvent, token: TrackedToken) -> Optional[SwapEvent]:
        if event.token_slot not in (0, 1):
            logger.debug(f"Invalid token slot {event.token_slot} for {event.transaction_hash}")
            return None

        slot = event.token_slot
        other = 1 - slot
        amounts_in = (event.amount0_in, event.amount1_in)
        amounts_out = (event.amount0_out, event.amount1_out)
        token_in, token_out = amounts_in[slot], amounts_out[slot]

        if token_in > 0 and token_out > 0:
            logger.info(
                f"Discarding complex swap for {token.symbol} in {event.transaction_hash}: "
                f"token in={token_in} out={token_out}"
            )
            return None

        if token_out > 0:
            direction = Direction.BUY
            raw_token, raw_native = token_out, amounts_in[other]
        elif token_in > 0:
            direction = Direction.SELL
            raw_token, raw_native = token_in, amounts_out[other]
        else:
            logger.debug(f"No {token.symbol} movement in {event.transaction_hash}")
            return None

        return SwapEvent(
            chain=event.chain,
            tx_hash=event.transaction_hash,
            wallet_address=event.recipient,
            direction=direction,
            token_amount=scale_amount(raw_token, event.token_decimals),
            native_amount=scale_amount(raw_native, event.counter_decimals),
            block_number=event.block_number,
            timestamp=event.block_timestamp,
        )
