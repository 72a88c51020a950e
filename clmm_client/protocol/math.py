"""
Raydium CLMM Math Utilities

Provides exact tick/sqrt-price conversion, price helpers and the liquidity
and amount calculations, rounded the same way the program rounds them.
"""

from decimal import Decimal, InvalidOperation, ROUND_CEILING, ROUND_FLOOR, localcontext
from typing import Tuple, Union

from .constants import (
    Q64,
    MAX_UINT64,
    MAX_UINT128,
    MIN_TICK,
    MAX_TICK,
    MIN_SQRT_PRICE_X64,
    MAX_SQRT_PRICE_X64,
    TICK_ARRAY_SIZE,
)
from ..errors import InvalidTickRangeError, InvalidAmountError, SlippageExceededError


Number = Union[int, float, Decimal, str]

# Q64.64 factors of 1/sqrt(1.0001)^(2^i), applied for each set bit of |tick|
_TICK_RATIOS = (
    (0x2, 0xfff97272373d4000),
    (0x4, 0xfff2e50f5f657000),
    (0x8, 0xffe5caca7e10f000),
    (0x10, 0xffcb9843d60f7000),
    (0x20, 0xff973b41fa98e800),
    (0x40, 0xff2ea16466c9b000),
    (0x80, 0xfe5dee046a9a3800),
    (0x100, 0xfcbe86c7900bb000),
    (0x200, 0xf987a7253ac65800),
    (0x400, 0xf3392b0822bb6000),
    (0x800, 0xe7159475a2caf000),
    (0x1000, 0xd097f3bdfd2f2000),
    (0x2000, 0xa9f746462d9f8000),
    (0x4000, 0x70d869a156f31c00),
    (0x8000, 0x31be135f97ed3200),
    (0x10000, 0x9aa508b5b85a500),
    (0x20000, 0x5d6af8dedc582c),
    (0x40000, 0x2216e584f5fa1ea),
    (0x80000, 0x48a170391f7dc4),
)


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def get_sqrt_price_at_tick(tick: int) -> int:
    """
    Convert tick to sqrt price in X64 fixed-point format

    Args:
        tick: Tick index in [MIN_TICK, MAX_TICK]

    Returns:
        sqrt(1.0001^tick) * 2^64, floored

    Raises:
        InvalidTickRangeError: If the tick is out of bounds
    """
    if tick < MIN_TICK or tick > MAX_TICK:
        raise InvalidTickRangeError.out_of_bounds(tick)

    tick_abs = abs(tick)

    ratio = 0xfffcb933bd6fb800 if tick_abs & 0x1 else Q64
    for bit, factor in _TICK_RATIOS:
        if tick_abs & bit:
            ratio = (ratio * factor) >> 64

    # ratio = 1.0001^(-|tick|/2); invert for positive ticks
    if tick > 0:
        ratio = MAX_UINT128 // ratio

    return ratio


def get_tick_at_sqrt_price(sqrt_price_x64: int) -> int:
    """
    Greatest tick whose sqrt price is less than or equal to sqrt_price_x64

    Raises:
        SlippageExceededError: If the price is outside [MIN_SQRT_PRICE_X64, MAX_SQRT_PRICE_X64)
    """
    if sqrt_price_x64 < MIN_SQRT_PRICE_X64 or sqrt_price_x64 >= MAX_SQRT_PRICE_X64:
        raise SlippageExceededError.out_of_bounds(sqrt_price_x64)

    low, high = MIN_TICK, MAX_TICK
    while low < high:
        mid = (low + high + 1) // 2
        if get_sqrt_price_at_tick(mid) <= sqrt_price_x64:
            low = mid
        else:
            high = mid - 1
    return low


def price_to_sqrt_price_x64(price: Number, decimals_0: int, decimals_1: int) -> int:
    """
    Convert a human price (token1 per token0) to sqrt price X64

    Args:
        price: Price of token 0 in terms of token 1
        decimals_0: Token 0 decimals
        decimals_1: Token 1 decimals

    Returns:
        Sqrt price in X64 format

    Raises:
        InvalidAmountError: If the price is not a positive number
    """
    try:
        value = _to_decimal(price)
    except InvalidOperation:
        raise InvalidAmountError(f"price {price!r} is not a number", param="price")
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(f"price must be a positive finite number, got {price}", param="price")

    with localcontext() as ctx:
        ctx.prec = 60
        price_with_decimals = value * (Decimal(10) ** (decimals_1 - decimals_0))
        return int(price_with_decimals.sqrt() * Q64)


def sqrt_price_x64_to_price(sqrt_price_x64: int, decimals_0: int, decimals_1: int) -> Decimal:
    """
    Convert sqrt price X64 to a human price (token1 per token0)
    """
    with localcontext() as ctx:
        ctx.prec = 60
        sqrt_price = Decimal(sqrt_price_x64) / Decimal(Q64)
        return sqrt_price * sqrt_price * (Decimal(10) ** (decimals_0 - decimals_1))


def price_to_tick(price: Number, decimals_0: int, decimals_1: int) -> int:
    """Greatest tick at or below the given human price"""
    return get_tick_at_sqrt_price(price_to_sqrt_price_x64(price, decimals_0, decimals_1))


def tick_to_price(tick: int, decimals_0: int, decimals_1: int) -> Decimal:
    """Human price at a tick"""
    return sqrt_price_x64_to_price(get_sqrt_price_at_tick(tick), decimals_0, decimals_1)


def tick_with_spacing(tick: int, tick_spacing: int) -> int:
    """
    Round tick down to a multiple of tick_spacing

    Python floor division rounds towards negative infinity, which is what
    the program expects for negative ticks.
    """
    return (tick // tick_spacing) * tick_spacing


def tick_count(tick_spacing: int) -> int:
    """Ticks covered by one tick array"""
    return TICK_ARRAY_SIZE * tick_spacing


def get_array_start_index(tick: int, tick_spacing: int) -> int:
    """
    Calculate tick array start index for a given tick

    Args:
        tick: Tick index
        tick_spacing: Pool tick spacing

    Returns:
        Start tick of the tick array containing this tick
    """
    ticks_in_array = tick_count(tick_spacing)
    return (tick // ticks_in_array) * ticks_in_array


def check_is_valid_start_index(tick_index: int, tick_spacing: int) -> bool:
    """True if tick_index can start a tick array for this spacing"""
    if tick_index < MIN_TICK or tick_index > MAX_TICK:
        if tick_index > MAX_TICK:
            return False
        return tick_index == get_array_start_index(MIN_TICK, tick_spacing)
    return tick_index % tick_count(tick_spacing) == 0


def check_tick_range(tick_lower: int, tick_upper: int, tick_spacing: int) -> None:
    """
    Validate a position range

    Raises:
        InvalidTickRangeError: If inverted, unaligned or out of bounds
    """
    if tick_lower >= tick_upper:
        raise InvalidTickRangeError.inverted(tick_lower, tick_upper)
    for tick in (tick_lower, tick_upper):
        if tick < MIN_TICK or tick > MAX_TICK:
            raise InvalidTickRangeError.out_of_bounds(tick)
        if tick % tick_spacing != 0:
            raise InvalidTickRangeError.unaligned(tick, tick_spacing)


# ---------------------------------------------------------------------------
# Liquidity from amounts
# ---------------------------------------------------------------------------

def get_liquidity_from_amount_0(sqrt_price_a_x64: int, sqrt_price_b_x64: int, amount_0: int) -> int:
    """
    Liquidity provided by amount_0 over [a, b]

    Formula: amount_0 * (a * b / Q64) / (b - a)
    """
    if sqrt_price_a_x64 > sqrt_price_b_x64:
        sqrt_price_a_x64, sqrt_price_b_x64 = sqrt_price_b_x64, sqrt_price_a_x64
    if sqrt_price_a_x64 == sqrt_price_b_x64:
        return 0
    intermediate = (sqrt_price_a_x64 * sqrt_price_b_x64) // Q64
    return (amount_0 * intermediate) // (sqrt_price_b_x64 - sqrt_price_a_x64)


def get_liquidity_from_amount_1(sqrt_price_a_x64: int, sqrt_price_b_x64: int, amount_1: int) -> int:
    """
    Liquidity provided by amount_1 over [a, b]

    Formula: amount_1 * Q64 / (b - a)
    """
    if sqrt_price_a_x64 > sqrt_price_b_x64:
        sqrt_price_a_x64, sqrt_price_b_x64 = sqrt_price_b_x64, sqrt_price_a_x64
    if sqrt_price_a_x64 == sqrt_price_b_x64:
        return 0
    return (amount_1 * Q64) // (sqrt_price_b_x64 - sqrt_price_a_x64)


def get_liquidity_from_amounts(
    sqrt_price_x64_current: int,
    sqrt_price_a_x64: int,
    sqrt_price_b_x64: int,
    amount_0: int,
    amount_1: int,
) -> int:
    """
    Maximum liquidity both amounts can fund at the current price
    """
    if sqrt_price_a_x64 > sqrt_price_b_x64:
        sqrt_price_a_x64, sqrt_price_b_x64 = sqrt_price_b_x64, sqrt_price_a_x64

    if sqrt_price_x64_current <= sqrt_price_a_x64:
        return get_liquidity_from_amount_0(sqrt_price_a_x64, sqrt_price_b_x64, amount_0)
    elif sqrt_price_x64_current < sqrt_price_b_x64:
        liquidity_0 = get_liquidity_from_amount_0(sqrt_price_x64_current, sqrt_price_b_x64, amount_0)
        liquidity_1 = get_liquidity_from_amount_1(sqrt_price_a_x64, sqrt_price_x64_current, amount_1)
        return min(liquidity_0, liquidity_1)
    else:
        return get_liquidity_from_amount_1(sqrt_price_a_x64, sqrt_price_b_x64, amount_1)


def get_liquidity_from_single_amount_0(
    sqrt_price_x64_current: int,
    sqrt_price_a_x64: int,
    sqrt_price_b_x64: int,
    amount_0: int,
) -> int:
    """Liquidity when token 0 is the fixed side; 0 if the range is below the price"""
    if sqrt_price_a_x64 > sqrt_price_b_x64:
        sqrt_price_a_x64, sqrt_price_b_x64 = sqrt_price_b_x64, sqrt_price_a_x64

    if sqrt_price_x64_current <= sqrt_price_a_x64:
        return get_liquidity_from_amount_0(sqrt_price_a_x64, sqrt_price_b_x64, amount_0)
    elif sqrt_price_x64_current < sqrt_price_b_x64:
        return get_liquidity_from_amount_0(sqrt_price_x64_current, sqrt_price_b_x64, amount_0)
    return 0


def get_liquidity_from_single_amount_1(
    sqrt_price_x64_current: int,
    sqrt_price_a_x64: int,
    sqrt_price_b_x64: int,
    amount_1: int,
) -> int:
    """Liquidity when token 1 is the fixed side; 0 if the range is above the price"""
    if sqrt_price_a_x64 > sqrt_price_b_x64:
        sqrt_price_a_x64, sqrt_price_b_x64 = sqrt_price_b_x64, sqrt_price_a_x64

    if sqrt_price_x64_current <= sqrt_price_a_x64:
        return 0
    elif sqrt_price_x64_current < sqrt_price_b_x64:
        return get_liquidity_from_amount_1(sqrt_price_a_x64, sqrt_price_x64_current, amount_1)
    return get_liquidity_from_amount_1(sqrt_price_a_x64, sqrt_price_b_x64, amount_1)


# ---------------------------------------------------------------------------
# Amounts from liquidity
# ---------------------------------------------------------------------------

def _div_round(numerator: int, denominator: int, round_up: bool) -> int:
    if round_up:
        return -((-numerator) // denominator)
    return numerator // denominator


def get_delta_amount_0_unsigned(
    sqrt_price_a_x64: int,
    sqrt_price_b_x64: int,
    liquidity: int,
    round_up: bool,
) -> int:
    """
    Token 0 owed for liquidity over [a, b]

    Formula: (liquidity << 64) * (b - a) / b / a
    """
    if sqrt_price_a_x64 > sqrt_price_b_x64:
        sqrt_price_a_x64, sqrt_price_b_x64 = sqrt_price_b_x64, sqrt_price_a_x64
    numerator_1 = liquidity << 64
    numerator_2 = sqrt_price_b_x64 - sqrt_price_a_x64
    step = _div_round(numerator_1 * numerator_2, sqrt_price_b_x64, round_up)
    return _div_round(step, sqrt_price_a_x64, round_up)


def get_delta_amount_1_unsigned(
    sqrt_price_a_x64: int,
    sqrt_price_b_x64: int,
    liquidity: int,
    round_up: bool,
) -> int:
    """
    Token 1 owed for liquidity over [a, b]

    Formula: liquidity * (b - a) / Q64
    """
    if sqrt_price_a_x64 > sqrt_price_b_x64:
        sqrt_price_a_x64, sqrt_price_b_x64 = sqrt_price_b_x64, sqrt_price_a_x64
    return _div_round(liquidity * (sqrt_price_b_x64 - sqrt_price_a_x64), Q64, round_up)


def get_delta_amount_0_signed(sqrt_price_a_x64: int, sqrt_price_b_x64: int, liquidity: int) -> int:
    # Deposits round up, withdrawals round down
    if liquidity < 0:
        return get_delta_amount_0_unsigned(sqrt_price_a_x64, sqrt_price_b_x64, -liquidity, False)
    return get_delta_amount_0_unsigned(sqrt_price_a_x64, sqrt_price_b_x64, liquidity, True)


def get_delta_amount_1_signed(sqrt_price_a_x64: int, sqrt_price_b_x64: int, liquidity: int) -> int:
    if liquidity < 0:
        return get_delta_amount_1_unsigned(sqrt_price_a_x64, sqrt_price_b_x64, -liquidity, False)
    return get_delta_amount_1_unsigned(sqrt_price_a_x64, sqrt_price_b_x64, liquidity, True)


def get_delta_amounts_signed(
    tick_current: int,
    sqrt_price_x64_current: int,
    tick_lower: int,
    tick_upper: int,
    liquidity_delta: int,
) -> Tuple[int, int]:
    """
    Token amounts for adding (positive) or removing (negative) liquidity

    Args:
        tick_current: Pool's current tick
        sqrt_price_x64_current: Pool's current sqrt price
        tick_lower: Position lower tick
        tick_upper: Position upper tick
        liquidity_delta: Signed liquidity change

    Returns:
        (amount_0, amount_1) raw token amounts
    """
    amount_0 = 0
    amount_1 = 0
    sqrt_lower = get_sqrt_price_at_tick(tick_lower)
    sqrt_upper = get_sqrt_price_at_tick(tick_upper)

    if tick_current < tick_lower:
        amount_0 = get_delta_amount_0_signed(sqrt_lower, sqrt_upper, liquidity_delta)
    elif tick_current < tick_upper:
        amount_0 = get_delta_amount_0_signed(sqrt_price_x64_current, sqrt_upper, liquidity_delta)
        amount_1 = get_delta_amount_1_signed(sqrt_lower, sqrt_price_x64_current, liquidity_delta)
    else:
        amount_1 = get_delta_amount_1_signed(sqrt_lower, sqrt_upper, liquidity_delta)

    for name, amount in (("amount_0", amount_0), ("amount_1", amount_1)):
        if amount > MAX_UINT64:
            raise InvalidAmountError.overflow(name, 64)

    return amount_0, amount_1


def amount_with_slippage(amount: int, slippage: Number, round_up: bool) -> int:
    """
    Apply slippage to a raw amount

    Args:
        amount: Raw token amount
        slippage: Fraction, e.g. 0.01 for 1%
        round_up: True for maxima (amount * (1 + s), ceil),
                  False for minima (amount * (1 - s), floor)
    """
    slippage = _to_decimal(slippage)
    if round_up:
        adjusted = (Decimal(amount) * (1 + slippage)).to_integral_value(rounding=ROUND_CEILING)
    else:
        adjusted = (Decimal(amount) * (1 - slippage)).to_integral_value(rounding=ROUND_FLOOR)
    return min(int(adjusted), MAX_UINT64)


def emissions_to_x64(emissions_per_second: Number) -> int:
    """Convert a per-second reward rate to Q64.64"""
    with localcontext() as ctx:
        ctx.prec = 60
        return int(_to_decimal(emissions_per_second) * Q64)
