"""
Raydium CLMM swap math

Single-step swap computation and a local quote over routed tick arrays,
rounded as the program rounds, used to derive swap thresholds before
anything is sent.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .constants import (
    FEE_RATE_DENOMINATOR,
    MAX_SQRT_PRICE_X64,
    MIN_SQRT_PRICE_X64,
    MAX_TICK,
    MAX_UINT64,
    MIN_TICK,
)
from .math import (
    get_array_start_index,
    get_delta_amount_0_unsigned,
    get_delta_amount_1_unsigned,
    get_sqrt_price_at_tick,
    get_tick_at_sqrt_price,
)
from .states import PoolState, TickArrayState, TickState
from ..errors import InvalidAmountError, NoInitializedTickArrayError, SlippageExceededError


logger = logging.getLogger(__name__)


def _mul_div_ceil(a: int, b: int, denominator: int) -> int:
    return -((-a * b) // denominator)


def _div_rounding_up(numerator: int, denominator: int) -> int:
    return -((-numerator) // denominator)


# ---------------------------------------------------------------------------
# Next sqrt price
# ---------------------------------------------------------------------------

def get_next_sqrt_price_from_amount_0_rounding_up(
    sqrt_price_x64: int,
    liquidity: int,
    amount: int,
    add: bool,
) -> int:
    """
    Price after adding (or removing) amount of token 0, rounded up

    Formula: L * sqrtP / (L +- amount * sqrtP), with L shifted to Q64
    """
    if amount == 0:
        return sqrt_price_x64
    numerator_1 = liquidity << 64
    product = amount * sqrt_price_x64
    if add:
        return _mul_div_ceil(numerator_1, sqrt_price_x64, numerator_1 + product)
    denominator = numerator_1 - product
    if denominator <= 0:
        raise InvalidAmountError(f"amount {amount} exceeds token 0 reserves for liquidity {liquidity}", "amount")
    return _mul_div_ceil(numerator_1, sqrt_price_x64, denominator)


def get_next_sqrt_price_from_amount_1_rounding_down(
    sqrt_price_x64: int,
    liquidity: int,
    amount: int,
    add: bool,
) -> int:
    """
    Price after adding (or removing) amount of token 1, rounded down

    Formula: sqrtP +- amount / L
    """
    if add:
        return sqrt_price_x64 + (amount << 64) // liquidity
    quotient = _div_rounding_up(amount << 64, liquidity)
    if quotient >= sqrt_price_x64:
        raise InvalidAmountError(f"amount {amount} exceeds token 1 reserves for liquidity {liquidity}", "amount")
    return sqrt_price_x64 - quotient


def get_next_sqrt_price_from_input(sqrt_price_x64: int, liquidity: int, amount_in: int, zero_for_one: bool) -> int:
    if zero_for_one:
        return get_next_sqrt_price_from_amount_0_rounding_up(sqrt_price_x64, liquidity, amount_in, True)
    return get_next_sqrt_price_from_amount_1_rounding_down(sqrt_price_x64, liquidity, amount_in, True)


def get_next_sqrt_price_from_output(sqrt_price_x64: int, liquidity: int, amount_out: int, zero_for_one: bool) -> int:
    if zero_for_one:
        return get_next_sqrt_price_from_amount_1_rounding_down(sqrt_price_x64, liquidity, amount_out, False)
    return get_next_sqrt_price_from_amount_0_rounding_up(sqrt_price_x64, liquidity, amount_out, False)


# ---------------------------------------------------------------------------
# Single step
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwapStep:
    sqrt_price_next_x64: int
    amount_in: int
    amount_out: int
    fee_amount: int


def _amount_in_range(
    sqrt_price_current_x64: int,
    sqrt_price_target_x64: int,
    liquidity: int,
    zero_for_one: bool,
    is_base_input: bool,
) -> Optional[int]:
    # None when the full range would not fit in u64
    if is_base_input:
        if zero_for_one:
            result = get_delta_amount_0_unsigned(sqrt_price_target_x64, sqrt_price_current_x64, liquidity, True)
        else:
            result = get_delta_amount_1_unsigned(sqrt_price_current_x64, sqrt_price_target_x64, liquidity, True)
    else:
        if zero_for_one:
            result = get_delta_amount_1_unsigned(sqrt_price_target_x64, sqrt_price_current_x64, liquidity, False)
        else:
            result = get_delta_amount_0_unsigned(sqrt_price_current_x64, sqrt_price_target_x64, liquidity, False)
    return result if result <= MAX_UINT64 else None


def compute_swap_step(
    sqrt_price_current_x64: int,
    sqrt_price_target_x64: int,
    liquidity: int,
    amount_remaining: int,
    fee_rate: int,
    is_base_input: bool,
    zero_for_one: bool,
) -> SwapStep:
    """
    Swap within one price range, stopping at the target or when the amount
    runs out.

    Args:
        sqrt_price_current_x64: Price at the start of the step
        sqrt_price_target_x64: Next initialized tick price or the limit
        liquidity: Active liquidity
        amount_remaining: Input (base input) or output still to fill
        fee_rate: Trade fee in hundredths of a bip
        is_base_input: True if amount_remaining is an input amount
        zero_for_one: Direction

    Returns:
        SwapStep with the new price and the step's in/out/fee amounts
    """
    amount_in = 0
    amount_out = 0

    if is_base_input:
        amount_remaining_less_fee = amount_remaining * (FEE_RATE_DENOMINATOR - fee_rate) // FEE_RATE_DENOMINATOR
        in_range = _amount_in_range(
            sqrt_price_current_x64, sqrt_price_target_x64, liquidity, zero_for_one, is_base_input
        )
        if in_range is not None:
            amount_in = in_range
        if in_range is not None and amount_remaining_less_fee >= amount_in:
            sqrt_price_next_x64 = sqrt_price_target_x64
        else:
            sqrt_price_next_x64 = get_next_sqrt_price_from_input(
                sqrt_price_current_x64, liquidity, amount_remaining_less_fee, zero_for_one
            )
    else:
        in_range = _amount_in_range(
            sqrt_price_current_x64, sqrt_price_target_x64, liquidity, zero_for_one, is_base_input
        )
        if in_range is not None:
            amount_out = in_range
        if in_range is not None and amount_remaining >= amount_out:
            sqrt_price_next_x64 = sqrt_price_target_x64
        else:
            sqrt_price_next_x64 = get_next_sqrt_price_from_output(
                sqrt_price_current_x64, liquidity, amount_remaining, zero_for_one
            )

    reached_target = sqrt_price_target_x64 == sqrt_price_next_x64

    if zero_for_one:
        if not (reached_target and is_base_input):
            amount_in = get_delta_amount_0_unsigned(sqrt_price_next_x64, sqrt_price_current_x64, liquidity, True)
        if not (reached_target and not is_base_input):
            amount_out = get_delta_amount_1_unsigned(sqrt_price_next_x64, sqrt_price_current_x64, liquidity, False)
    else:
        if not (reached_target and is_base_input):
            amount_in = get_delta_amount_1_unsigned(sqrt_price_current_x64, sqrt_price_next_x64, liquidity, True)
        if not (reached_target and not is_base_input):
            amount_out = get_delta_amount_0_unsigned(sqrt_price_current_x64, sqrt_price_next_x64, liquidity, False)

    if not is_base_input and amount_out > amount_remaining:
        amount_out = amount_remaining

    if is_base_input and sqrt_price_next_x64 != sqrt_price_target_x64:
        # Everything left after amount_in is fee
        fee_amount = amount_remaining - amount_in
    else:
        fee_amount = _mul_div_ceil(amount_in, fee_rate, FEE_RATE_DENOMINATOR - fee_rate)

    return SwapStep(sqrt_price_next_x64, amount_in, amount_out, fee_amount)


# ---------------------------------------------------------------------------
# Quote over tick arrays
# ---------------------------------------------------------------------------

def resolve_sqrt_price_limit(pool_state: PoolState, zero_for_one: bool, sqrt_price_limit_x64: Optional[int]) -> int:
    """
    Default or validate the swap price limit.

    None means no limit: the swap may run to the edge of the price range.
    A given limit must lie strictly inside (MIN_SQRT_PRICE_X64, MAX_SQRT_PRICE_X64).

    Raises:
        SlippageExceededError: If the limit is outside the price range or on the
            wrong side of the current price
    """
    if sqrt_price_limit_x64 is None:
        return MIN_SQRT_PRICE_X64 + 1 if zero_for_one else MAX_SQRT_PRICE_X64 - 1

    if zero_for_one:
        if sqrt_price_limit_x64 <= MIN_SQRT_PRICE_X64:
            raise SlippageExceededError.out_of_bounds(sqrt_price_limit_x64)
        if sqrt_price_limit_x64 >= pool_state.sqrt_price_x64:
            raise SlippageExceededError.wrong_side(sqrt_price_limit_x64, pool_state.sqrt_price_x64, zero_for_one)
    else:
        if sqrt_price_limit_x64 >= MAX_SQRT_PRICE_X64:
            raise SlippageExceededError.out_of_bounds(sqrt_price_limit_x64)
        if sqrt_price_limit_x64 <= pool_state.sqrt_price_x64:
            raise SlippageExceededError.wrong_side(sqrt_price_limit_x64, pool_state.sqrt_price_x64, zero_for_one)
    return sqrt_price_limit_x64


@dataclass(frozen=True)
class SwapQuote:
    """
    Result of simulating a swap locally.

    other_amount is the output for base-input swaps and the required input
    (fees included) for base-output swaps. amount_remaining is non-zero when
    the routed tick arrays ran out before the amount was filled.
    """
    amount_specified: int
    other_amount: int
    amount_remaining: int
    fee_amount: int
    sqrt_price_x64: int
    tick: int
    liquidity: int
    tick_array_start_indices: Tuple[int, ...]

    @property
    def filled(self) -> bool:
        return self.amount_remaining == 0


def quote_swap(
    pool_state: PoolState,
    trade_fee_rate: int,
    tick_arrays: Sequence[TickArrayState],
    zero_for_one: bool,
    is_base_input: bool,
    amount: int,
    sqrt_price_limit_x64: Optional[int] = None,
) -> SwapQuote:
    """
    Walk the routed tick arrays and compute the swap outcome.

    Args:
        pool_state: Pool snapshot
        trade_fee_rate: AmmConfig.trade_fee_rate
        tick_arrays: Decoded arrays in route order
        zero_for_one: Direction
        is_base_input: True if amount is an exact input
        amount: Exact input or exact output
        sqrt_price_limit_x64: Optional limit, defaulted by resolve_sqrt_price_limit

    Raises:
        InvalidAmountError: If amount is zero
        SlippageExceededError: If the limit price is invalid
        NoInitializedTickArrayError: If no tick arrays were supplied
    """
    if amount <= 0:
        raise InvalidAmountError.zero("amount")
    if not tick_arrays:
        raise NoInitializedTickArrayError("No tick arrays supplied for swap quote", zero_for_one=zero_for_one)

    limit = resolve_sqrt_price_limit(pool_state, zero_for_one, sqrt_price_limit_x64)
    tick_spacing = pool_state.tick_spacing

    remaining_arrays: List[TickArrayState] = list(tick_arrays)
    current_array = remaining_arrays.pop(0)
    matched_current_array = current_array.start_tick_index == get_array_start_index(
        pool_state.tick_current, tick_spacing
    )
    used_start_indices = [current_array.start_tick_index]

    amount_remaining = amount
    amount_calculated = 0
    fee_total = 0
    sqrt_price = pool_state.sqrt_price_x64
    tick = pool_state.tick_current
    liquidity = pool_state.liquidity

    while amount_remaining != 0 and sqrt_price != limit and MIN_TICK < tick < MAX_TICK:
        sqrt_price_start = sqrt_price

        next_tick: Optional[TickState] = current_array.next_initialized_tick(tick, tick_spacing, zero_for_one)
        if next_tick is None and not matched_current_array:
            matched_current_array = True
            next_tick = current_array.first_initialized_tick(zero_for_one)

        if next_tick is None:
            if not remaining_arrays:
                logger.warning(
                    f"Swap quote ran out of tick arrays after {used_start_indices}; "
                    f"{amount_remaining} of {amount} unfilled"
                )
                break
            current_array = remaining_arrays.pop(0)
            used_start_indices.append(current_array.start_tick_index)
            next_tick = current_array.first_initialized_tick(zero_for_one)
            if next_tick is None:
                raise NoInitializedTickArrayError(
                    f"Tick array {current_array.start_tick_index} has no initialized tick",
                    zero_for_one=zero_for_one,
                )

        tick_next = min(max(next_tick.tick, MIN_TICK), MAX_TICK)
        sqrt_price_next = get_sqrt_price_at_tick(tick_next)

        if (zero_for_one and sqrt_price_next < limit) or (not zero_for_one and sqrt_price_next > limit):
            target = limit
        else:
            target = sqrt_price_next

        step = compute_swap_step(
            sqrt_price, target, liquidity, amount_remaining, trade_fee_rate, is_base_input, zero_for_one
        )
        sqrt_price = step.sqrt_price_next_x64
        fee_total += step.fee_amount

        if is_base_input:
            amount_remaining -= step.amount_in + step.fee_amount
            amount_calculated += step.amount_out
        else:
            amount_remaining -= step.amount_out
            amount_calculated += step.amount_in + step.fee_amount

        if sqrt_price == sqrt_price_next:
            if next_tick.is_initialized:
                liquidity_net = -next_tick.liquidity_net if zero_for_one else next_tick.liquidity_net
                liquidity += liquidity_net
                if liquidity < 0:
                    raise InvalidAmountError.overflow("liquidity", 128)
            tick = tick_next - 1 if zero_for_one else tick_next
        elif sqrt_price != sqrt_price_start:
            tick = get_tick_at_sqrt_price(sqrt_price)

    return SwapQuote(
        amount_specified=amount,
        other_amount=amount_calculated,
        amount_remaining=amount_remaining,
        fee_amount=fee_total,
        sqrt_price_x64=sqrt_price,
        tick=tick,
        liquidity=liquidity,
        tick_array_start_indices=tuple(used_start_indices),
    )
