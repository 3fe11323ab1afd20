"""
Alert gate: decides whether a recorded transaction is announced.
"""
from decimal import Decimal
from typing import List, Optional

from swapwatch.core.models import EmojiTier, GateDecision, TrackedToken, Transaction
from swapwatch.logger import logger
from swapwatch.services.mev import MevFilter
from swapwatch.core.policy import AlertPolicy

DEFAULT_EMOJI_TIERS: List[EmojiTier] = [
    EmojiTier(min_usd=0, max_usd=50, emoji="💰"),
    EmojiTier(min_usd=50, max_usd=200, emoji="💵"),
    EmojiTier(min_usd=200, max_usd=1000, emoji="💸"),
    EmojiTier(min_usd=1000, max_usd=5000, emoji="🤑"),
    EmojiTier(min_usd=5000, max_usd=None, emoji="🐋"),
]


def select_emoji(tiers: List[EmojiTier], usd_value: Optional[Decimal]) -> str:
    """
    Pick the emoji of the first tier whose [min, max) range holds the value.

    Falls back to the default tiers when none are configured, and to the
    last configured tier when nothing matches. Unknown value counts as 0.
    """
    value = float(usd_value) if usd_value is not None else 0.0
    if not tiers:
        tiers = DEFAULT_EMOJI_TIERS

    for tier in tiers:
        if tier.matches(value):
            return tier.emoji
    return tiers[-1].emoji


class AlertGate:
    """
    Applies, in order:
    1. MEV/wallet blacklist (when the token participates)
    2. direction policy (sells are off by default)
    3. token-amount / USD thresholds
    and computes the whale flag and emoji for the message.
    """

    def __init__(self, mev_filter: MevFilter, policy: Optional[AlertPolicy] = None):
        self.mev_filter = mev_filter
        self.policy = policy or AlertPolicy()

    async def should_alert(self, token: TrackedToken, transaction: Transaction) -> GateDecision:
        usd_value = transaction.usd_value
        is_whale = (
            token.whale_threshold_usd > 0
            and usd_value is not None
            and usd_value >= Decimal(str(token.whale_threshold_usd))
        )
        decoration = dict(
            emoji=select_emoji(token.emoji_tiers, usd_value),
            is_whale=is_whale,
            buttons=token.buttons,
            media=token.media,
        )

        if token.mev_filter_enabled and await self.mev_filter.is_blacklisted(
            transaction.wallet_address, transaction.chain
        ):
            logger.debug(f"Skipping alert for blacklisted wallet: {transaction.wallet_address}")
            return GateDecision(emit=False, reason="wallet blacklisted", **decoration)

        if not self.policy.allows(transaction.direction):
            logger.debug(
                f"Skipping {transaction.direction.value} alert for {token.symbol} "
                f"({transaction.direction.value} alerts disabled)"
            )
            return GateDecision(
                emit=False, reason=f"{transaction.direction.value} alerts disabled", **decoration
            )

        meets_token_threshold = (
            token.min_amount > 0
            and transaction.token_amount >= Decimal(str(token.min_amount))
        )
        meets_usd_threshold = (
            token.min_amount_usd > 0
            and usd_value is not None
            and usd_value >= Decimal(str(token.min_amount_usd))
        )
        unconfigured = token.min_amount == 0 and token.min_amount_usd == 0

        if meets_token_threshold:
            reason = "token amount threshold met"
        elif meets_usd_threshold:
            reason = "usd threshold met"
        elif unconfigured and self.policy.alert_all_when_unconfigured:
            reason = "no thresholds configured"
        else:
            return GateDecision(emit=False, reason="below thresholds", **decoration)

        return GateDecision(emit=True, reason=reason, **decoration)
