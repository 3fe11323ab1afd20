from .mev import MevFilter
from .price import PriceResolver

__all__ = ["MevFilter", "PriceResolver"]
