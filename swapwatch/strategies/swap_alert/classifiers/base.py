"""
Base classifier for the Swap Alert Strategy.
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import ClassVar, Dict, Optional, Tuple, Type

from swapwatch.core.events import Event
from swapwatch.core.models import SwapEvent, TrackedToken


class Classifier(ABC):
    """
    Base class for chain-family swap classifiers.

    A classifier turns one raw chain event into a canonical SwapEvent, or
    None when the event is not a relevant swap. Subclasses declare the
    chains they handle in `chains` and are registered automatically, so a
    new chain family only needs a new subclass.
    """

    chains: ClassVar[Tuple[str, ...]] = ()
    _registry: ClassVar[Dict[str, Type["Classifier"]]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        for chain in cls.chains:
            Classifier._registry[chain] = cls

    @abstractmethod
    def classify(self, event: Event, token: TrackedToken) -> Optional[SwapEvent]:
        """
        Classify a raw chain event for a tracked token.

        Args:
            event: Chain-specific raw event
            token: The tracked token descriptor

        Returns:
            Optional[SwapEvent]: The swap, or None if not a relevant swap
        """
        pass


def get_classifier(chain: str) -> Classifier:
    """
    Get a classifier instance for a chain.

    Raises:
        ValueError: No classifier registered for the chain
    """
    try:
        return Classifier._registry[chain.lower()]()
    except KeyError:
        raise ValueError(f"No classifier registered for chain: {chain}") from None


def scale_amount(raw: int, decimals: int) -> Decimal:
    """Convert an integer amount in smallest units to a human-readable Decimal."""
    return Decimal(raw).scaleb(-decimals)
