"""
Swap Alert Strategy Package

Classifies raw swap events per chain family, prices and records them, and
gates which recorded transactions are announced.
"""

from swapwatch.strategies.swap_alert.core.strategy import SwapAlertStrategy

__all__ = ['SwapAlertStrategy']
