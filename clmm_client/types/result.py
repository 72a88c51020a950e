"""
Outcomes of submitted or simulated transactions
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class TxStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    PENDING = "pending"
    SIMULATED = "simulated"


@dataclass
class TxResult:
    """
    What happened to one transaction

    Attributes:
        status: Where the transaction ended up
        signature: Transaction signature (base58), None for simulations
        error: Failure or timeout description
        recoverable: Whether the caller may check again later
        logs: Program logs (simulation or fetched transaction)
        units_consumed: Compute units used (simulation only)
        events: Decoded program events, filled in by the client
    """
    status: TxStatus
    signature: Optional[str] = None
    error: Optional[str] = None
    recoverable: bool = False
    logs: List[str] = field(default_factory=list)
    units_consumed: Optional[int] = None
    events: List[Any] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status in (TxStatus.SUCCESS, TxStatus.SIMULATED)

    @property
    def is_failed(self) -> bool:
        return self.status == TxStatus.FAILED

    @property
    def is_timeout(self) -> bool:
        return self.status == TxStatus.TIMEOUT

    @classmethod
    def success(cls, signature: str, **kwargs) -> "TxResult":
        return cls(status=TxStatus.SUCCESS, signature=signature, **kwargs)

    @classmethod
    def failed(cls, error: str, signature: str = None, **kwargs) -> "TxResult":
        return cls(status=TxStatus.FAILED, signature=signature, error=error, **kwargs)

    @classmethod
    def timeout(cls, signature: str = None, **kwargs) -> "TxResult":
        return cls(
            status=TxStatus.TIMEOUT,
            signature=signature,
            error="Not confirmed before the deadline; status may still change",
            recoverable=True,
            **kwargs
        )

    @classmethod
    def simulated(cls, logs: List[str], units_consumed: Optional[int] = None) -> "TxResult":
        return cls(status=TxStatus.SIMULATED, logs=list(logs or []), units_consumed=units_consumed)

    def __str__(self) -> str:
        if self.status == TxStatus.SIMULATED:
            return f"TxResult(SIMULATED, units={self.units_consumed})"
        if self.is_success:
            return f"TxResult(SUCCESS, {self.signature})"
        return f"TxResult({self.status.value}, error={self.error})"


@dataclass
class OpenPositionResult:
    """
    Position opened (or simulated) by ClmmClient.open_position

    Attributes:
        tx_result: Outcome of the open_position transaction
        nft_mint: Position NFT mint (base58)
        personal_position: Personal position address (base58)
        tick_lower / tick_upper: Position range
        liquidity: Liquidity requested
        amount0_max / amount1_max: Token maxima sent with the instruction
    """
    tx_result: TxResult
    nft_mint: str
    personal_position: str
    tick_lower: int
    tick_upper: int
    liquidity: int
    amount0_max: int
    amount1_max: int

    @property
    def is_success(self) -> bool:
        return self.tx_result.is_success
