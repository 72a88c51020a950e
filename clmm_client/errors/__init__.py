"""
Error definitions for the CLMM client
"""

from .exceptions import (
    ErrorCode,
    ClmmClientError,
    RpcError,
    SeedTooLongError,
    DecodeError,
    UnknownDiscriminatorError,
    TruncatedDataError,
    NoInitializedTickArrayError,
    InvalidTickRangeError,
    InvalidAmountError,
    MissingAccountError,
    SlippageExceededError,
    TransactionError,
    SignerError,
    ConfigurationError,
)

__all__ = [
    "ErrorCode",
    "ClmmClientError",
    "RpcError",
    "SeedTooLongError",
    "DecodeError",
    "UnknownDiscriminatorError",
    "TruncatedDataError",
    "NoInitializedTickArrayError",
    "InvalidTickRangeError",
    "InvalidAmountError",
    "MissingAccountError",
    "SlippageExceededError",
    "TransactionError",
    "SignerError",
    "ConfigurationError",
]
