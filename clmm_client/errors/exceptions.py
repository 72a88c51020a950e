"""
Error hierarchy of the CLMM client

Every error carries a stable ErrorCode; str(err) renders as "[code] message".
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """
    Stable numeric codes, grouped by thousands:
    1 rpc, 2 transaction, 3 price and routing, 4 accounts and addresses,
    5 decoding, 6 signing, 7 caller input, 9 settings
    """
    RPC_CONNECTION_FAILED = "1001"
    RPC_TIMEOUT = "1002"
    RPC_RATE_LIMITED = "1003"
    RPC_INVALID_RESPONSE = "1004"

    TX_SIMULATION_FAILED = "2001"
    TX_SEND_FAILED = "2002"
    TX_CONFIRMATION_FAILED = "2003"

    SLIPPAGE_EXCEEDED = "3001"
    NO_INITIALIZED_TICK_ARRAY = "3002"

    ACCOUNT_MISSING = "4001"
    SEED_TOO_LONG = "4002"

    UNKNOWN_DISCRIMINATOR = "5001"
    TRUNCATED_DATA = "5002"
    INVALID_DATA = "5003"

    SIGNER_NOT_CONFIGURED = "6001"
    SIGNER_FAILED = "6002"

    INVALID_TICK_RANGE = "7001"
    INVALID_AMOUNT = "7002"

    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


class ClmmClientError(Exception):
    """
    Root of every error raised by clmm_client

    recoverable marks errors where repeating the same call may succeed
    (network trouble, an unconfirmed transaction). details holds
    structured context such as the endpoint or the missing address.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        return self.recoverable


class RpcError(ClmmClientError):
    """
    The RPC node could not be reached or answered with something unusable.

    Always marked recoverable; RpcClient has already retried by the time a
    caller sees one.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RPC_CONNECTION_FAILED,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=True,
            original_error=original_error,
            details={"endpoint": endpoint} if endpoint else None,
        )
        self.endpoint = endpoint

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "RpcError":
        return cls(f"Cannot reach {endpoint}: {error}", original_error=error, endpoint=endpoint)

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float) -> "RpcError":
        return cls(f"No answer from {endpoint} within {timeout_seconds}s", ErrorCode.RPC_TIMEOUT, endpoint=endpoint)

    @classmethod
    def rate_limited(cls, endpoint: str) -> "RpcError":
        return cls(f"HTTP 429 from {endpoint}", ErrorCode.RPC_RATE_LIMITED, endpoint=endpoint)


class SeedTooLongError(ClmmClientError):
    """
    A PDA seed exceeds the per-seed byte limit, or too many seeds were given
    """

    def __init__(self, message: str, seed_index: Optional[int] = None, length: Optional[int] = None):
        super().__init__(
            message,
            ErrorCode.SEED_TOO_LONG,
            details={"seed_index": seed_index, "length": length},
        )
        self.seed_index = seed_index
        self.length = length

    @classmethod
    def seed(cls, index: int, length: int, limit: int) -> "SeedTooLongError":
        return cls(
            f"Seed {index} is {length} bytes, limit is {limit}",
            seed_index=index,
            length=length,
        )

    @classmethod
    def count(cls, count: int, limit: int) -> "SeedTooLongError":
        return cls(f"Got {count} seeds, limit is {limit}", length=count)


class DecodeError(ClmmClientError):
    """
    Base class for wire-format decoding failures
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INVALID_DATA, record: Optional[str] = None):
        super().__init__(message, code, details={"record": record})
        self.record = record

    @classmethod
    def invalid(cls, reason: str, record: Optional[str] = None) -> "DecodeError":
        """Bytes or values that no layout accepts, as opposed to a short buffer"""
        return cls(reason, ErrorCode.INVALID_DATA, record)


class UnknownDiscriminatorError(DecodeError):
    """
    The 8-byte tag does not identify the requested (or any registered) record
    """

    def __init__(self, message: str, record: Optional[str] = None, discriminator: bytes = b""):
        super().__init__(message, ErrorCode.UNKNOWN_DISCRIMINATOR, record=record)
        self.discriminator = discriminator
        self.details["discriminator"] = discriminator.hex()

    @classmethod
    def mismatch(cls, record: str, expected: bytes, actual: bytes) -> "UnknownDiscriminatorError":
        return cls(
            f"{record}: expected discriminator {expected.hex()}, got {actual.hex()}",
            record=record,
            discriminator=actual,
        )

    @classmethod
    def unknown(cls, table: str, actual: bytes) -> "UnknownDiscriminatorError":
        return cls(
            f"No {table} registered for discriminator {actual.hex()}",
            discriminator=actual,
        )


class TruncatedDataError(DecodeError):
    """
    The buffer is shorter than the record's fixed layout
    """

    def __init__(self, message: str, record: Optional[str] = None, expected: int = 0, actual: int = 0):
        super().__init__(message, ErrorCode.TRUNCATED_DATA, record=record)
        self.expected = expected
        self.actual = actual
        self.details.update({"expected": expected, "actual": actual})

    @classmethod
    def short(cls, record: str, expected: int, actual: int) -> "TruncatedDataError":
        return cls(
            f"{record}: need {expected} bytes, got {actual}",
            record=record,
            expected=expected,
            actual=actual,
        )


class NoInitializedTickArrayError(ClmmClientError):
    """
    Neither the pool bitmap nor its extension holds an initialized tick array
    in the trade direction
    """

    def __init__(self, message: str, pool_address: Optional[str] = None, zero_for_one: Optional[bool] = None):
        super().__init__(
            message,
            ErrorCode.NO_INITIALIZED_TICK_ARRAY,
            details={"pool_address": pool_address, "zero_for_one": zero_for_one},
        )
        self.pool_address = pool_address
        self.zero_for_one = zero_for_one

    @classmethod
    def for_direction(cls, pool_address: str, zero_for_one: bool) -> "NoInitializedTickArrayError":
        direction = "zero_for_one" if zero_for_one else "one_for_zero"
        return cls(
            f"No initialized tick array found for {direction} in pool {pool_address}",
            pool_address=pool_address,
            zero_for_one=zero_for_one,
        )


class InvalidTickRangeError(ClmmClientError):
    """
    Lower tick is not below the upper tick, or a tick is not aligned to spacing
    """

    def __init__(self, message: str, tick_lower: Optional[int] = None, tick_upper: Optional[int] = None):
        super().__init__(
            message,
            ErrorCode.INVALID_TICK_RANGE,
            details={"tick_lower": tick_lower, "tick_upper": tick_upper},
        )
        self.tick_lower = tick_lower
        self.tick_upper = tick_upper

    @classmethod
    def inverted(cls, tick_lower: int, tick_upper: int) -> "InvalidTickRangeError":
        return cls(
            f"tick_lower {tick_lower} must be below tick_upper {tick_upper}",
            tick_lower=tick_lower,
            tick_upper=tick_upper,
        )

    @classmethod
    def unaligned(cls, tick: int, tick_spacing: int) -> "InvalidTickRangeError":
        return cls(f"Tick {tick} is not a multiple of tick spacing {tick_spacing}")

    @classmethod
    def out_of_bounds(cls, tick: int) -> "InvalidTickRangeError":
        return cls(f"Tick {tick} is outside the supported tick range")


class InvalidAmountError(ClmmClientError):
    """
    A caller-supplied amount or liquidity is zero or out of range
    """

    def __init__(self, message: str, param: Optional[str] = None):
        super().__init__(message, ErrorCode.INVALID_AMOUNT, details={"param": param})
        self.param = param

    @classmethod
    def zero(cls, param: str) -> "InvalidAmountError":
        return cls(f"{param} must be greater than zero", param=param)

    @classmethod
    def overflow(cls, param: str, bits: int) -> "InvalidAmountError":
        return cls(f"{param} does not fit in u{bits}", param=param)


class MissingAccountError(ClmmClientError):
    """
    The RPC collaborator returned no account for a required address
    """

    def __init__(self, message: str, address: Optional[str] = None, account_type: Optional[str] = None):
        super().__init__(
            message,
            ErrorCode.ACCOUNT_MISSING,
            details={"address": address, "account_type": account_type},
        )
        self.address = address
        self.account_type = account_type

    @classmethod
    def not_found(cls, address: str, account_type: str = "account") -> "MissingAccountError":
        return cls(
            f"{account_type} not found: {address}",
            address=address,
            account_type=account_type,
        )


class SlippageExceededError(ClmmClientError):
    """
    A computed limit price or amount violates the caller's bound
    """

    def __init__(
        self,
        message: str,
        limit: Optional[int] = None,
        current: Optional[int] = None,
    ):
        super().__init__(
            message,
            ErrorCode.SLIPPAGE_EXCEEDED,
            details={"limit": limit, "current": current},
        )
        self.limit = limit
        self.current = current

    @classmethod
    def wrong_side(cls, limit_sqrt_price_x64: int, current_sqrt_price_x64: int, zero_for_one: bool) -> "SlippageExceededError":
        relation = "below" if zero_for_one else "above"
        return cls(
            f"Limit sqrt price {limit_sqrt_price_x64} must be {relation} current sqrt price {current_sqrt_price_x64}",
            limit=limit_sqrt_price_x64,
            current=current_sqrt_price_x64,
        )

    @classmethod
    def out_of_bounds(cls, limit_sqrt_price_x64: int) -> "SlippageExceededError":
        return cls(
            f"Limit sqrt price {limit_sqrt_price_x64} is outside the supported price range",
            limit=limit_sqrt_price_x64,
        )


class TransactionError(ClmmClientError):
    """
    A built transaction failed simulation, submission or confirmation
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TX_SEND_FAILED,
        signature: Optional[str] = None,
        logs: Optional[list] = None,
        recoverable: bool = False,
    ):
        super().__init__(message, code, recoverable=recoverable, details={"signature": signature})
        self.signature = signature
        self.logs = logs or []
        if self.logs:
            self.details["logs"] = self.logs

    @classmethod
    def simulation_failed(cls, error: str, logs: list = None) -> "TransactionError":
        return cls(f"Simulation reported {error}", ErrorCode.TX_SIMULATION_FAILED, logs=logs)

    @classmethod
    def send_failed(cls, error: str) -> "TransactionError":
        return cls(f"Transaction not submitted: {error}")

    @classmethod
    def confirmation_failed(cls, signature: str, error: str) -> "TransactionError":
        return cls(
            f"Transaction {signature} not confirmed: {error}",
            ErrorCode.TX_CONFIRMATION_FAILED,
            signature=signature,
            recoverable=True,
        )


class SignerError(ClmmClientError):
    """
    No usable keypair, or the keypair is not a signer of the transaction
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.SIGNER_FAILED):
        super().__init__(message, code)

    @classmethod
    def not_configured(cls) -> "SignerError":
        return cls(
            "No keypair: pass keypair/keypair_path or set SOLANA_KEYPAIR_PATH",
            ErrorCode.SIGNER_NOT_CONFIGURED,
        )

    @classmethod
    def failed(cls, reason: str) -> "SignerError":
        return cls(reason)


class ConfigurationError(ClmmClientError):
    """
    A setting is absent or cannot be used (bad base58 key, out-of-range value)
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CONFIG_INVALID):
        super().__init__(message, code)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"{param} is not set", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"{param}: {reason}")
