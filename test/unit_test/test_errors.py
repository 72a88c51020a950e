"""
Test Error Types

Tests for error codes, message format and the exception hierarchy.
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def test_error_format():
    """Test str() carries the numeric code"""
    from clmm_client.errors import ClmmClientError, ErrorCode, MissingAccountError

    print("Testing error format...")

    error = ClmmClientError("boom", ErrorCode.CONFIG_INVALID)
    assert str(error) == "[9001] boom"
    assert "ClmmClientError" in repr(error)

    error = MissingAccountError.not_found("PoolAddr", "PoolState")
    assert str(error) == "[4001] PoolState not found: PoolAddr"
    assert error.details == {"address": "PoolAddr", "account_type": "PoolState"}

    print("  error format: PASSED")


def test_error_hierarchy():
    """Test codec errors share DecodeError and everything is a ClmmClientError"""
    from clmm_client.errors import (
        ClmmClientError,
        DecodeError,
        UnknownDiscriminatorError,
        TruncatedDataError,
        SeedTooLongError,
        NoInitializedTickArrayError,
        InvalidTickRangeError,
        InvalidAmountError,
        SlippageExceededError,
        TransactionError,
        SignerError,
        ConfigurationError,
        RpcError,
        ErrorCode,
    )

    print("Testing error hierarchy...")

    errors = [
        UnknownDiscriminatorError.unknown("event", b"\x01" * 8),
        TruncatedDataError.short("PoolState", 1544, 10),
        SeedTooLongError.seed(1, 33, 32),
        NoInitializedTickArrayError.for_direction("pool", True),
        InvalidTickRangeError.inverted(10, 0),
        InvalidAmountError.zero("amount"),
        SlippageExceededError.out_of_bounds(0),
        TransactionError.send_failed("nope"),
        SignerError.not_configured(),
        ConfigurationError.missing("mint0"),
        RpcError.rate_limited("http://localhost:8899"),
    ]
    for error in errors:
        assert isinstance(error, ClmmClientError), type(error).__name__

    assert isinstance(errors[0], DecodeError)
    assert isinstance(errors[1], DecodeError)
    assert errors[0].code == ErrorCode.UNKNOWN_DISCRIMINATOR
    assert errors[0].discriminator == b"\x01" * 8
    assert errors[1].code == ErrorCode.TRUNCATED_DATA
    assert errors[2].code == ErrorCode.SEED_TOO_LONG
    assert errors[8].code == ErrorCode.SIGNER_NOT_CONFIGURED
    assert errors[9].code == ErrorCode.CONFIG_MISSING

    print("  error hierarchy: PASSED")


def test_recoverable():
    """Test only transient failures ask for a retry"""
    from clmm_client.errors import RpcError, TransactionError, InvalidAmountError, ErrorCode

    print("Testing recoverable flag...")

    rpc_error = RpcError.timeout("http://localhost:8899", 30)
    assert rpc_error.should_retry
    assert rpc_error.code == ErrorCode.RPC_TIMEOUT
    assert rpc_error.endpoint == "http://localhost:8899"

    assert TransactionError.confirmation_failed("sig", "timeout").should_retry
    assert not TransactionError.simulation_failed("err", ["log"]).should_retry
    assert TransactionError.simulation_failed("err", ["log"]).logs == ["log"]
    assert not InvalidAmountError.overflow("amount", 64).should_retry

    print("  recoverable flag: PASSED")


def test_seed_too_long_fields():
    """Test SeedTooLongError reports which seed failed"""
    from clmm_client.errors import SeedTooLongError

    print("Testing SeedTooLongError fields...")

    error = SeedTooLongError.seed(2, 40, 32)
    assert error.seed_index == 2
    assert error.length == 40
    assert "40" in str(error)

    error = SeedTooLongError.count(17, 16)
    assert error.seed_index is None
    assert error.length == 17

    print("  SeedTooLongError fields: PASSED")


def main():
    """Run all error tests"""
    print("=" * 60)
    print("Error Tests")
    print("=" * 60)

    tests = [
        test_error_format,
        test_error_hierarchy,
        test_recoverable,
        test_seed_too_long_fields,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"  FAILED: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
