"""
Type definitions for the CLMM client
"""

from .position import PositionNftTokenInfo
from .result import TxResult, TxStatus, OpenPositionResult

__all__ = [
    "PositionNftTokenInfo",
    "TxResult",
    "TxStatus",
    "OpenPositionResult",
]
