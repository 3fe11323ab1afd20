"""
Core strategy class for the Swap Alert Strategy.
"""
from typing import Dict, List

from swapwatch.core.actions import Action, AlertAction
from swapwatch.core.base import Strategy
from swapwatch.core.context import ServiceContext
from swapwatch.core.events import Event
from swapwatch.core.models import Direction
from swapwatch.logger import logger
from swapwatch.strategies.swap_alert.classifiers import Classifier, get_classifier
from swapwatch.strategies.swap_alert.gate import AlertGate


class SwapAlertStrategy(Strategy):
    """
    Swap Alert Strategy

    Turns raw chain events into alert actions:
    1. skip transactions already in the store
    2. classify the raw event into a buy/sell swap (chain-specific classifier)
    3. resolve its USD value
    4. record it idempotently on (chain, tx hash)
    5. run the alert gate, only for the call that inserted the row

    Step 5 is what keeps alerts at-most-once when the same transaction is
    observed concurrently.
    """

    __component_name__ = "swap_alert"

    def __init__(self, context: ServiceContext, fetch_market_cap: bool = True):
        """
        Args:
            context: Shared services (storage, prices, blacklist, policy)
            fetch_market_cap: Look up market cap for buy alerts
        """
        super().__init__()
        self.storage = context.storage
        self.price_resolver = context.price_resolver
        self.gate = AlertGate(context.mev_filter, context.policy)
        self.fetch_market_cap = fetch_market_cap
        self._classifiers: Dict[str, Classifier] = {}

    def _classifier_for(self, chain: str) -> Classifier:
        if chain not in self._classifiers:
            self._classifiers[chain] = get_classifier(chain)
        return self._classifiers[chain]

    async def process_event(self, event: Event) -> List[Action]:
        token = getattr(event, "token", None)
        if token is None or token.id is None:
            logger.debug(f"Ignoring event without a stored tracked token: {event.type}")
            return []

        if await self.storage.has_transaction(event.chain, event.tx_hash):
            logger.debug(f"Transaction {event.tx_hash} already processed, skipping")
            return []

        swap = self._classifier_for(event.chain).classify(event, token)
        if swap is None:
            return []

        usd_value = await self.price_resolver.resolve_usd(
            swap.chain,
            token.token_address,
            swap.native_amount,
            token.native_symbol,
            token_amount=swap.token_amount,
        )

        transaction = await self.storage.record(swap, token, usd_value)
        if not transaction.created:
            logger.debug(f"Transaction {swap.tx_hash} recorded by another observer, not gating")
            return []

        decision = await self.gate.should_alert(token, transaction)
        if not decision.emit:
            logger.debug(f"No alert for {swap.tx_hash} ({token.symbol}): {decision.reason}")
            return []

        market_cap = None
        if self.fetch_market_cap and transaction.direction == Direction.BUY:
            market_cap = await self.price_resolver.get_market_cap(token.token_address)

        logger.info(
            f"Alert queued for {token.symbol} {transaction.direction.value} on {transaction.chain} "
            f"(${transaction.usd_value if transaction.usd_value is not None else '?'}, {decision.reason})"
        )
        return [
            AlertAction(
                token=token,
                transaction=transaction,
                decision=decision,
                market_cap=market_cap,
            )
        ]
