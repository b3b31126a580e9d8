"""
State management for the compounding engine
"""

from .ledger import BalanceLedger
from .registry import PositionRegistry

__all__ = [
    "BalanceLedger",
    "PositionRegistry",
]
