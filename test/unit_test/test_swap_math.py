"""
Test Swap Quote

Tests for single swap steps, price limits and quotes across tick arrays.
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def test_compute_swap_step_partial():
    """Test a step that runs out of input before the target price"""
    from clmm_client.protocol.swap_math import compute_swap_step
    from clmm_client.protocol.math import get_sqrt_price_at_tick
    from clmm_client.protocol.constants import Q64

    print("Testing partial swap step...")

    target = get_sqrt_price_at_tick(-10)
    step = compute_swap_step(Q64, target, 10 ** 12, 10 ** 6, 2500, True, True)

    assert target < step.sqrt_price_next_x64 < Q64
    assert step.amount_in + step.fee_amount == 10 ** 6, "Unreached target consumes the whole input"
    assert step.amount_out > 0
    assert step.fee_amount > 0

    print("  partial swap step: PASSED")


def test_compute_swap_step_reaches_target():
    """Test a step with more input than the range needs"""
    from clmm_client.protocol.swap_math import compute_swap_step
    from clmm_client.protocol.math import get_sqrt_price_at_tick
    from clmm_client.protocol.constants import Q64

    print("Testing swap step reaching target...")

    target = get_sqrt_price_at_tick(10)
    step = compute_swap_step(Q64, target, 10 ** 12, 10 ** 12, 2500, True, False)

    assert step.sqrt_price_next_x64 == target
    assert step.amount_in + step.fee_amount < 10 ** 12
    # Fee is charged on the gross input: fee / (in + fee) ~= rate
    assert step.fee_amount == -(-step.amount_in * 2500 // (1_000_000 - 2500))

    # Exact output caps the output at the requested amount
    step = compute_swap_step(Q64, target, 10 ** 12, 1000, 2500, False, False)
    assert 999 <= step.amount_out <= 1000
    assert step.amount_in > 1000 * 0.99

    print("  swap step reaching target: PASSED")


def test_resolve_sqrt_price_limit():
    """Test default and validated limit prices"""
    from clmm_fixtures import make_pool
    from clmm_client.protocol.swap_math import resolve_sqrt_price_limit
    from clmm_client.protocol.constants import MIN_SQRT_PRICE_X64, MAX_SQRT_PRICE_X64
    from clmm_client.errors import SlippageExceededError

    print("Testing resolve_sqrt_price_limit...")

    pool = make_pool()
    assert resolve_sqrt_price_limit(pool, True, None) == MIN_SQRT_PRICE_X64 + 1
    assert resolve_sqrt_price_limit(pool, False, None) == MAX_SQRT_PRICE_X64 - 1
    assert resolve_sqrt_price_limit(pool, True, MIN_SQRT_PRICE_X64 + 1) == MIN_SQRT_PRICE_X64 + 1
    assert resolve_sqrt_price_limit(pool, False, MAX_SQRT_PRICE_X64 - 1) == MAX_SQRT_PRICE_X64 - 1

    below = pool.sqrt_price_x64 - 1
    assert resolve_sqrt_price_limit(pool, True, below) == below

    try:
        resolve_sqrt_price_limit(pool, True, pool.sqrt_price_x64 + 1)
        assert False, "Should raise for a zero_for_one limit above the price"
    except SlippageExceededError as e:
        assert e.limit == pool.sqrt_price_x64 + 1
        assert e.current == pool.sqrt_price_x64

    try:
        resolve_sqrt_price_limit(pool, False, below)
        assert False, "Should raise for a one_for_zero limit below the price"
    except SlippageExceededError:
        pass

    try:
        resolve_sqrt_price_limit(pool, False, MAX_SQRT_PRICE_X64 + 1)
        assert False, "Should raise for a limit past the price range"
    except SlippageExceededError:
        pass

    # The bounds themselves are rejected by the program
    for zero_for_one, limit in ((True, MIN_SQRT_PRICE_X64), (False, MAX_SQRT_PRICE_X64), (True, 0)):
        try:
            resolve_sqrt_price_limit(pool, zero_for_one, limit)
            assert False, f"Should raise for limit {limit}"
        except SlippageExceededError as e:
            assert e.limit == limit

    print("  resolve_sqrt_price_limit: PASSED")


def test_quote_zero_for_one():
    """Test a small zero_for_one quote fills across an empty current array"""
    from clmm_fixtures import make_pool, position_arrays, TRADE_FEE_RATE, LIQUIDITY
    from clmm_client.protocol.swap_math import quote_swap

    print("Testing zero_for_one quote...")

    pool = make_pool()
    lower, upper = position_arrays()
    quote = quote_swap(pool, TRADE_FEE_RATE, [upper, lower], True, True, 1_000_000)

    assert quote.filled
    assert quote.amount_specified == 1_000_000
    assert quote.other_amount > 0
    assert quote.fee_amount > 0
    assert quote.sqrt_price_x64 < pool.sqrt_price_x64
    assert quote.tick <= pool.tick_current
    assert quote.liquidity == LIQUIDITY, "No initialized tick crossed"
    assert quote.tick_array_start_indices == (1200, 600)

    print("  zero_for_one quote: PASSED")


def test_quote_one_for_zero():
    """Test a small one_for_zero quote stays inside the current array"""
    from clmm_fixtures import make_pool, position_arrays, TRADE_FEE_RATE
    from clmm_client.protocol.swap_math import quote_swap

    print("Testing one_for_zero quote...")

    pool = make_pool()
    _, upper = position_arrays()
    quote = quote_swap(pool, TRADE_FEE_RATE, [upper], False, True, 1_000_000)

    assert quote.filled
    assert quote.sqrt_price_x64 > pool.sqrt_price_x64
    assert quote.tick_array_start_indices == (1200,)

    # Exact output: other_amount is the required input including fees
    quote = quote_swap(pool, TRADE_FEE_RATE, [upper], False, False, 1_000_000)
    assert quote.filled
    assert quote.other_amount > 1_000_000 * 0.9

    print("  one_for_zero quote: PASSED")


def test_quote_runs_out_of_arrays():
    """Test a quote larger than the routed liquidity is partial"""
    from clmm_fixtures import make_pool, position_arrays, TRADE_FEE_RATE
    from clmm_client.protocol.swap_math import quote_swap

    print("Testing partial quote...")

    pool = make_pool()
    _, upper = position_arrays()
    quote = quote_swap(pool, TRADE_FEE_RATE, [upper], False, True, 10 ** 18)

    assert not quote.filled
    assert 0 < quote.amount_remaining < 10 ** 18
    assert quote.liquidity == 0, "Crossing tick 1300 removes the position"
    assert quote.tick == 1300

    print("  partial quote: PASSED")


def test_quote_invalid_input():
    """Test zero amount and empty tick arrays"""
    from clmm_fixtures import make_pool, position_arrays, TRADE_FEE_RATE
    from clmm_client.protocol.swap_math import quote_swap
    from clmm_client.errors import InvalidAmountError, NoInitializedTickArrayError

    print("Testing invalid quote input...")

    pool = make_pool()
    try:
        quote_swap(pool, TRADE_FEE_RATE, list(position_arrays()), True, True, 0)
        assert False, "Should raise for a zero amount"
    except InvalidAmountError as e:
        assert e.param == "amount"

    try:
        quote_swap(pool, TRADE_FEE_RATE, [], True, True, 1000)
        assert False, "Should raise without tick arrays"
    except NoInitializedTickArrayError:
        pass

    print("  invalid quote input: PASSED")


def main():
    """Run all swap math tests"""
    print("=" * 60)
    print("Swap Quote Tests")
    print("=" * 60)

    tests = [
        test_compute_swap_step_partial,
        test_compute_swap_step_reaches_target,
        test_resolve_sqrt_price_limit,
        test_quote_zero_for_one,
        test_quote_one_for_zero,
        test_quote_runs_out_of_arrays,
        test_quote_invalid_input,
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
