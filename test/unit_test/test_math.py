"""
Test CLMM Math

Tests for tick/price conversion, tick array indexing and liquidity amounts.
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def test_sqrt_price_at_tick():
    """Test tick -> sqrt price X64"""
    from clmm_client.protocol.math import get_sqrt_price_at_tick
    from clmm_client.protocol.constants import Q64, MIN_TICK, MAX_TICK, MIN_SQRT_PRICE_X64, MAX_SQRT_PRICE_X64

    print("Testing get_sqrt_price_at_tick...")

    assert get_sqrt_price_at_tick(0) == Q64, "Tick 0 is price 1"

    previous = get_sqrt_price_at_tick(-1000)
    for tick in (-999, -10, -1, 0, 1, 10, 1000):
        current = get_sqrt_price_at_tick(tick)
        assert current > previous, f"Not monotonic at tick {tick}"
        previous = current

    # sqrt(1.0001^100) ~= 1.005012
    ratio = get_sqrt_price_at_tick(100) / Q64
    assert abs(ratio - 1.0001 ** 50) < 1e-9

    assert MIN_SQRT_PRICE_X64 <= get_sqrt_price_at_tick(MIN_TICK)
    assert get_sqrt_price_at_tick(MAX_TICK) <= MAX_SQRT_PRICE_X64

    print("  get_sqrt_price_at_tick: PASSED")


def test_tick_at_sqrt_price():
    """Test sqrt price X64 -> tick"""
    from clmm_client.protocol.math import get_sqrt_price_at_tick, get_tick_at_sqrt_price
    from clmm_client.protocol.constants import Q64, MIN_TICK

    print("Testing get_tick_at_sqrt_price...")

    assert get_tick_at_sqrt_price(Q64) == 0
    for tick in (-443000, -60001, -7, -1, 1, 7, 6931, 120000):
        sqrt_price = get_sqrt_price_at_tick(tick)
        assert get_tick_at_sqrt_price(sqrt_price) == tick, f"Round trip failed at {tick}"
        # Anything strictly between two ticks floors to the lower one
        assert get_tick_at_sqrt_price(sqrt_price + 1) == tick

    assert get_tick_at_sqrt_price(get_sqrt_price_at_tick(MIN_TICK)) == MIN_TICK

    print("  get_tick_at_sqrt_price: PASSED")


def test_out_of_range():
    """Test ticks and prices outside the domain raise"""
    from clmm_client.protocol.math import get_sqrt_price_at_tick, get_tick_at_sqrt_price
    from clmm_client.protocol.constants import MIN_TICK, MAX_TICK, MIN_SQRT_PRICE_X64, MAX_SQRT_PRICE_X64
    from clmm_client.errors import InvalidTickRangeError, SlippageExceededError

    print("Testing out of range inputs...")

    for tick in (MIN_TICK - 1, MAX_TICK + 1):
        try:
            get_sqrt_price_at_tick(tick)
            assert False, f"Should raise for tick {tick}"
        except InvalidTickRangeError:
            pass

    for sqrt_price in (MIN_SQRT_PRICE_X64 - 1, MAX_SQRT_PRICE_X64):
        try:
            get_tick_at_sqrt_price(sqrt_price)
            assert False, f"Should raise for sqrt price {sqrt_price}"
        except SlippageExceededError:
            pass

    print("  out of range inputs: PASSED")


def test_tick_spacing_helpers():
    """Test tick rounding and tick array start index"""
    from clmm_client.protocol.math import (
        tick_with_spacing,
        tick_count,
        get_array_start_index,
        check_is_valid_start_index,
        check_tick_range,
    )
    from clmm_client.errors import InvalidTickRangeError

    print("Testing tick spacing helpers...")

    assert tick_with_spacing(15, 10) == 10
    assert tick_with_spacing(-1, 10) == -10, "Negative ticks round towards -inf"
    assert tick_with_spacing(-10, 10) == -10

    assert tick_count(10) == 600
    assert get_array_start_index(-1, 10) == -600
    assert get_array_start_index(599, 10) == 0
    assert get_array_start_index(600, 10) == 600
    assert get_array_start_index(1234, 10) == 1200

    assert check_is_valid_start_index(1200, 10)
    assert not check_is_valid_start_index(1210, 10)

    check_tick_range(-600, 600, 10)
    for lower, upper in ((600, 600), (600, -600), (605, 1200)):
        try:
            check_tick_range(lower, upper, 10)
            assert False, f"Should reject [{lower}, {upper}]"
        except InvalidTickRangeError:
            pass

    print("  tick spacing helpers: PASSED")


def test_price_conversion():
    """Test human price <-> tick with decimals"""
    from decimal import Decimal
    from clmm_client.protocol.math import price_to_tick, tick_to_price, price_to_sqrt_price_x64
    from clmm_client.errors import InvalidAmountError
    from clmm_client.protocol.constants import Q64

    print("Testing price conversion...")

    assert price_to_sqrt_price_x64(1, 6, 6) == Q64
    assert price_to_tick(1, 6, 6) == 0
    assert price_to_tick(2, 6, 6) == 6931

    # 150 USDC per SOL: token 0 has 9 decimals, token 1 has 6
    tick = price_to_tick("150", 9, 6)
    price = tick_to_price(tick, 9, 6)
    assert price <= Decimal("150")
    assert tick_to_price(tick + 1, 9, 6) > Decimal("150")

    for bad in (0, -1, "-0.5", "abc", "Infinity"):
        try:
            price_to_sqrt_price_x64(bad, 6, 6)
            assert False, f"Should reject price {bad!r}"
        except InvalidAmountError as e:
            assert e.param == "price"

    print("  price conversion: PASSED")


def test_amount_with_slippage():
    """Test slippage rounding for maxima and minima"""
    from clmm_client.protocol.math import amount_with_slippage
    from clmm_client.protocol.constants import MAX_UINT64

    print("Testing amount_with_slippage...")

    assert amount_with_slippage(1000, 0.01, True) == 1010
    assert amount_with_slippage(1000, 0.01, False) == 990
    assert amount_with_slippage(999, "0.005", True) == 1004, "Maxima round up"
    assert amount_with_slippage(999, "0.005", False) == 994, "Minima round down"
    assert amount_with_slippage(MAX_UINT64, 0.5, True) == MAX_UINT64, "Capped at u64"

    print("  amount_with_slippage: PASSED")


def test_delta_amounts_by_range():
    """Test which tokens a position holds relative to the current tick"""
    from clmm_client.protocol.math import get_delta_amounts_signed, get_sqrt_price_at_tick

    print("Testing get_delta_amounts_signed...")

    liquidity = 10 ** 12
    lower, upper = 600, 1800

    # Price below the range: all token 0
    amount_0, amount_1 = get_delta_amounts_signed(0, get_sqrt_price_at_tick(0), lower, upper, liquidity)
    assert amount_0 > 0 and amount_1 == 0

    # In range: both
    amount_0, amount_1 = get_delta_amounts_signed(1234, get_sqrt_price_at_tick(1234), lower, upper, liquidity)
    assert amount_0 > 0 and amount_1 > 0

    # Above the range: all token 1
    amount_0, amount_1 = get_delta_amounts_signed(2400, get_sqrt_price_at_tick(2400), lower, upper, liquidity)
    assert amount_0 == 0 and amount_1 > 0

    # Deposits round up, withdrawals round down
    add = get_delta_amounts_signed(1234, get_sqrt_price_at_tick(1234), lower, upper, liquidity)
    remove = get_delta_amounts_signed(1234, get_sqrt_price_at_tick(1234), lower, upper, -liquidity)
    assert add[0] >= remove[0] and add[1] >= remove[1]
    assert add[0] - remove[0] <= 1 and add[1] - remove[1] <= 1

    print("  get_delta_amounts_signed: PASSED")


def test_liquidity_from_amounts():
    """Test liquidity computed from an amount reproduces that amount"""
    from clmm_client.protocol.math import (
        get_sqrt_price_at_tick,
        get_liquidity_from_amounts,
        get_liquidity_from_single_amount_0,
        get_liquidity_from_single_amount_1,
        get_delta_amount_0_unsigned,
    )

    print("Testing liquidity from amounts...")

    current = get_sqrt_price_at_tick(1234)
    lower = get_sqrt_price_at_tick(600)
    upper = get_sqrt_price_at_tick(1800)

    amount_0 = 10 ** 9
    liquidity = get_liquidity_from_single_amount_0(current, lower, upper, amount_0)
    recovered = get_delta_amount_0_unsigned(current, upper, liquidity, False)
    assert 0 <= amount_0 - recovered <= 2, "Liquidity must not over-commit the fixed amount"

    # Range fully below the price cannot be funded by token 0
    assert get_liquidity_from_single_amount_0(upper, lower, get_sqrt_price_at_tick(1200), amount_0) == 0
    # Range fully above the price cannot be funded by token 1
    assert get_liquidity_from_single_amount_1(lower, get_sqrt_price_at_tick(1200), upper, amount_0) == 0

    both = get_liquidity_from_amounts(current, lower, upper, amount_0, 10 ** 9)
    assert both <= liquidity

    print("  liquidity from amounts: PASSED")


def main():
    """Run all math tests"""
    print("=" * 60)
    print("CLMM Math Tests")
    print("=" * 60)

    tests = [
        test_sqrt_price_at_tick,
        test_tick_at_sqrt_price,
        test_out_of_range,
        test_tick_spacing_helpers,
        test_price_conversion,
        test_amount_with_slippage,
        test_delta_amounts_by_range,
        test_liquidity_from_amounts,
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
