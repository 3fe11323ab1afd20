"""
Alert policy table applied by the swap alert gate.
"""
from typing import Any, Dict

from pydantic import BaseModel, Field

from swapwatch.core.models import Direction


class AlertPolicy(BaseModel):
    """
    Product-level switches applied by the alert gate.

    Attributes:
        directions: Which swap directions may be announced at all
        alert_all_when_unconfigured: A token with both thresholds at zero
            alerts on every swap of an allowed direction
    """

    directions: Dict[Direction, bool] = Field(
        default_factory=lambda: {Direction.BUY: True, Direction.SELL: False}
    )
    alert_all_when_unconfigured: bool = True

    def allows(self, direction: Direction) -> bool:
        return self.directions.get(direction, False)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AlertPolicy":
        """
        Build a policy from the [policy] config table.

        Keys: alert_buys (default true), alert_sells (default false),
        alert_all_when_unconfigured (default true).
        """
        config = config or {}
        return cls(
            directions={
                Direction.BUY: bool(config.get("alert_buys", True)),
                Direction.SELL: bool(config.get("alert_sells", False)),
            },
            alert_all_when_unconfigured=bool(config.get("alert_all_when_unconfigured", True)),
        )
