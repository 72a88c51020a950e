"""
CLMM Client - Raydium concentrated-liquidity AMM client for Solana

Provides:
- Program address derivation for every CLMM account
- Discriminator-tagged codec for accounts, instructions and events
- Tick array routing and local swap quoting
- Instruction builders for pool, position, reward and swap actions
- Transaction log decoding
"""

from .client import ClmmClient
from .config import ClientConfig, get_config, reload_config, setup_logging
from .errors import (
    ErrorCode,
    ClmmClientError,
    SeedTooLongError,
    DecodeError,
    UnknownDiscriminatorError,
    TruncatedDataError,
    NoInitializedTickArrayError,
    InvalidTickRangeError,
    InvalidAmountError,
    MissingAccountError,
    SlippageExceededError,
    RpcError,
    TransactionError,
    SignerError,
    ConfigurationError,
)
from .types import PositionNftTokenInfo, TxResult, TxStatus, OpenPositionResult

__version__ = "0.1.0"

__all__ = [
    # Client
    "ClmmClient",
    "ClientConfig",
    "get_config",
    "reload_config",
    "setup_logging",
    # Types
    "PositionNftTokenInfo",
    "TxResult",
    "TxStatus",
    "OpenPositionResult",
    # Errors
    "ErrorCode",
    "ClmmClientError",
    "SeedTooLongError",
    "DecodeError",
    "UnknownDiscriminatorError",
    "TruncatedDataError",
    "NoInitializedTickArrayError",
    "InvalidTickRangeError",
    "InvalidAmountError",
    "MissingAccountError",
    "SlippageExceededError",
    "RpcError",
    "TransactionError",
    "SignerError",
    "ConfigurationError",
]
