"""
Compounding engine and its collaborator adapters
"""

from .compounder import CompoundResult, Compounder, IncreaseResult
from .interfaces import PositionCustody, PositionInfo, PriceVenue, SwapPath, TokenTransfer
from .price_oracle import PriceOracle

__all__ = [
    "CompoundResult",
    "Compounder",
    "IncreaseResult",
    "PositionCustody",
    "PositionInfo",
    "PriceVenue",
    "SwapPath",
    "TokenTransfer",
    "PriceOracle",
]
