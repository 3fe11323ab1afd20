from .swap_alert import SwapAlertStrategy

__all__ = ["SwapAlertStrategy"]
