"""
Classifier for parsed Solana transactions.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from swapwatch.core.events import SolanaTransactionEvent
from swapwatch.core.models import SOLANA, Direction, SwapEvent, TrackedToken
from swapwatch.logger import logger
from swapwatch.strategies.swap_alert.classifiers.base import Classifier, scale_amount

LAMPORTS_PER_SOL = Decimal(1_000_000_000)
# SOL movements at or below this are fees/rent, not the swap leg
DUST_THRESHOLD_SOL = Decimal("0.0001")
NOMINAL_NATIVE_AMOUNT = Decimal("0.01")


def _account_key(entry: Any) -> str:
    # jsonParsed keys are objects; other encodings give bare strings
    if isinstance(entry, dict):
        return entry.get("pubkey", "")
    return str(entry)


def _ui_amount(balance: Dict[str, Any]) -> Decimal:
    ui = balance.get("uiTokenAmount") or {}
    try:
        if ui.get("uiAmountString") is not None:
            return Decimal(ui["uiAmountString"])
        if ui.get("amount") is not None:
            return scale_amount(int(ui["amount"]), int(ui.get("decimals", 0)))
    except (InvalidOperation, ValueError):
        pass
    return Decimal(0)


class SolanaClassifier(Classifier):
    """
    Classify a Solana transaction by balance deltas.

    Direction comes from the tracked mint's token-balance delta on the
    account owned by the fee payer (positive = buy, negative = sell). The
    native amount is the largest SOL balance movement above dust across all
    accounts, falling back to a nominal amount.
    """

    chains = (SOLANA,)

    def classify(self, event: SolanaTransactionEvent, token: TrackedToken) -> Optional[SwapEvent]:
        tx = event.transaction or {}
        meta = tx.get("meta")
        message = (tx.get("transaction") or {}).get("message") or {}
        account_keys = [_account_key(key) for key in message.get("accountKeys") or []]

        if not meta or not account_keys:
            logger.debug(f"Transaction {event.signature} has no meta or account keys")
            return None
        if meta.get("err") is not None:
            logger.debug(f"Transaction {event.signature} failed on-chain, skipping")
            return None

        fee_payer = account_keys[0]
        token_change = self._token_delta(meta, token.token_address, fee_payer)
        if token_change == 0:
            logger.debug(f"No {token.symbol} balance change in {event.signature}")
            return None

        direction = Direction.BUY if token_change > 0 else Direction.SELL
        native_amount = self._native_amount(meta)

        logger.debug(
            f"Solana swap parsed: {abs(token_change)} {token.symbol} <-> {native_amount} SOL ({direction.value})"
        )

        return SwapEvent(
            chain=SOLANA,
            tx_hash=event.signature,
            wallet_address=fee_payer,
            direction=direction,
            token_amount=abs(token_change),
            native_amount=native_amount,
            block_number=event.slot,
            timestamp=event.timestamp,
        )

    def _token_delta(self, meta: Dict[str, Any], mint: str, fee_payer: str) -> Decimal:
        balances: Dict[int, Tuple[Decimal, Decimal, Optional[str]]] = {}
        for balance in meta.get("preTokenBalances") or []:
            if balance.get("mint") != mint:
                continue
            balances[balance["accountIndex"]] = (_ui_amount(balance), Decimal(0), balance.get("owner"))
        for balance in meta.get("postTokenBalances") or []:
            if balance.get("mint") != mint:
                continue
            pre, _, owner = balances.get(balance["accountIndex"], (Decimal(0), Decimal(0), None))
            balances[balance["accountIndex"]] = (pre, _ui_amount(balance), balance.get("owner") or owner)

        deltas: List[Tuple[Decimal, Optional[str]]] = [
            (post - pre, owner) for _, (pre, post, owner) in sorted(balances.items())
        ]
        for delta, owner in deltas:
            if owner == fee_payer and delta != 0:
                return delta
        for delta, _ in deltas:
            if delta != 0:
                return delta
        return Decimal(0)

    def _native_amount(self, meta: Dict[str, Any]) -> Decimal:
        pre_balances = meta.get("preBalances") or []
        post_balances = meta.get("postBalances") or []

        largest = Decimal(0)
        for pre, post in zip(pre_balances, post_balances):
            change = abs(Decimal(post - pre)) / LAMPORTS_PER_SOL
            if change > DUST_THRESHOLD_SOL and change > largest:
                largest = change

        return largest if largest > 0 else NOMINAL_NATIVE_AMOUNT
