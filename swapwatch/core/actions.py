from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from swapwatch.core.models import GateDecision, TrackedToken, Transaction


class Action(BaseModel):
    """
    Base class for actions that are passed between strategies and executors

    An action represents a task to be performed by executors, such as sending
    a notification.
    """

    type: str
    data: Dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"Action(type={self.type}, data={self.data})"

    class Config:
        frozen = True


class AlertAction(Action):
    """A recorded transaction that passed the alert gate"""

    type: str = "swap_alert"
    token: TrackedToken
    transaction: Transaction
    decision: GateDecision
    market_cap: Optional[Decimal] = None

    def __str__(self) -> str:
        tx = self.transaction
        return (
            f"AlertAction({tx.direction.value} {tx.token_amount} {self.token.symbol} "
            f"on {tx.chain}, tx={tx.tx_hash}, usd={tx.usd_value}, whale={self.decision.is_whale})"
        )
