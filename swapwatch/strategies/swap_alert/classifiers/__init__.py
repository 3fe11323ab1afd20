"""
Chain-family classifiers for the Swap Alert Strategy.

Importing this package registers every classifier with `get_classifier`.
"""

from swapwatch.strategies.swap_alert.classifiers.base import Classifier, get_classifier
from swapwatch.strategies.swap_alert.classifiers.evm import EvmClassifier
from swapwatch.strategies.swap_alert.classifiers.solana import SolanaClassifier

__all__ = [
    'Classifier',
    'get_classifier',
    'EvmClassifier',
    'SolanaClassifier',
]
