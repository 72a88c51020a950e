"""
Tick array bitmap search

A pool tracks which tick arrays are initialized in a 1024-bit inline bitmap
(bit 512 is start index 0) and, for start indices beyond that window, in a
TickArrayBitmapExtension account holding 512-bit bitmaps per side.
"""

import logging
from typing import Optional, Sequence, Tuple

from .constants import (
    MIN_TICK,
    MAX_TICK,
    TICK_ARRAY_BITMAP_SIZE,
)
from .math import get_array_start_index, tick_count, check_is_valid_start_index
from .states import PoolState, TickArrayBitmapExtension
from ..errors import InvalidTickRangeError, MissingAccountError


logger = logging.getLogger(__name__)

_INLINE_BITS = TICK_ARRAY_BITMAP_SIZE * 2
_INLINE_MASK = (1 << _INLINE_BITS) - 1
_EXTENSION_MASK = (1 << TICK_ARRAY_BITMAP_SIZE) - 1


def _leading_zeros(value: int, width: int) -> int:
    return width - value.bit_length()


def _trailing_zeros(value: int) -> int:
    return (value & -value).bit_length() - 1


def _words_to_int(words: Sequence[int]) -> int:
    value = 0
    for i, word in enumerate(words):
        value |= word << (64 * i)
    return value


def max_tick_in_tickarray_bitmap(tick_spacing: int) -> int:
    """Start-index boundary covered by the inline bitmap on each side of zero"""
    return tick_count(tick_spacing) * TICK_ARRAY_BITMAP_SIZE


def tick_array_start_index_range(tick_spacing: int) -> Tuple[int, int]:
    """[min, max) start indices the pool's inline bitmap can represent"""
    max_boundary = max_tick_in_tickarray_bitmap(tick_spacing)
    min_boundary = -max_boundary
    if max_boundary > MAX_TICK:
        max_boundary = get_array_start_index(MAX_TICK, tick_spacing) + tick_count(tick_spacing)
    if min_boundary < MIN_TICK:
        min_boundary = get_array_start_index(MIN_TICK, tick_spacing)
    return min_boundary, max_boundary


def is_overflow_default_tickarray_bitmap(tick_spacing: int, ticks: Sequence[int]) -> bool:
    """True if any tick's array lies outside the inline bitmap"""
    min_boundary, max_boundary = tick_array_start_index_range(tick_spacing)
    for tick in ticks:
        start_index = get_array_start_index(tick, tick_spacing)
        if start_index >= max_boundary or start_index < min_boundary:
            return True
    return False


# ---------------------------------------------------------------------------
# Inline bitmap
# ---------------------------------------------------------------------------

def _compressed_bit(start_index: int, tick_spacing: int) -> int:
    return start_index // tick_count(tick_spacing) + TICK_ARRAY_BITMAP_SIZE


def check_current_tick_array_is_initialized(bitmap: int, tick_current: int, tick_spacing: int) -> Tuple[bool, int]:
    """
    Whether the array holding tick_current is set in the inline bitmap.

    Returns:
        (initialized, start_index of tick_current's array)
    """
    if tick_current < MIN_TICK or tick_current > MAX_TICK:
        raise InvalidTickRangeError.out_of_bounds(tick_current)
    multiplier = tick_count(tick_spacing)
    compressed = tick_current // multiplier + TICK_ARRAY_BITMAP_SIZE
    start_index = (compressed - TICK_ARRAY_BITMAP_SIZE) * multiplier
    if compressed < 0 or compressed >= _INLINE_BITS:
        return False, start_index
    return bool(bitmap >> compressed & 1), start_index


def next_initialized_tick_array_start_index(
    bitmap: int,
    last_tick_array_start_index: int,
    tick_spacing: int,
    zero_for_one: bool,
) -> Tuple[bool, int]:
    """
    Search the inline bitmap for the next initialized array strictly past
    last_tick_array_start_index in the trade direction.

    Returns:
        (True, start_index) when found, otherwise (False, index to resume
        the search from in the extension)
    """
    boundary = max_tick_in_tickarray_bitmap(tick_spacing)
    multiplier = tick_count(tick_spacing)
    if zero_for_one:
        next_start = last_tick_array_start_index - multiplier
    else:
        next_start = last_tick_array_start_index + multiplier

    if next_start < -boundary or next_start >= boundary:
        return False, last_tick_array_start_index

    bit_pos = _compressed_bit(next_start, tick_spacing)
    if zero_for_one:
        offset_bitmap = (bitmap << (_INLINE_BITS - bit_pos - 1)) & _INLINE_MASK
        if offset_bitmap == 0:
            return False, -boundary
        next_bit = _leading_zeros(offset_bitmap, _INLINE_BITS)
        return True, (bit_pos - next_bit - TICK_ARRAY_BITMAP_SIZE) * multiplier
    else:
        offset_bitmap = bitmap >> bit_pos
        if offset_bitmap == 0:
            return False, boundary - multiplier
        next_bit = _trailing_zeros(offset_bitmap)
        return True, (bit_pos + next_bit - TICK_ARRAY_BITMAP_SIZE) * multiplier


# ---------------------------------------------------------------------------
# Extension bitmap
# ---------------------------------------------------------------------------

def check_extension_boundary(tick_index: int, tick_spacing: int) -> None:
    positive_boundary = max_tick_in_tickarray_bitmap(tick_spacing)
    negative_boundary = -positive_boundary
    if positive_boundary >= MAX_TICK or negative_boundary <= MIN_TICK:
        raise InvalidTickRangeError.out_of_bounds(tick_index)
    if negative_boundary <= tick_index < positive_boundary:
        raise InvalidTickRangeError.out_of_bounds(tick_index)


def get_bitmap_offset(tick_index: int, tick_spacing: int) -> int:
    """Which of the 14 extension entries holds tick_index's array"""
    if not check_is_valid_start_index(tick_index, tick_spacing):
        raise InvalidTickRangeError.unaligned(tick_index, tick_count(tick_spacing))
    check_extension_boundary(tick_index, tick_spacing)
    ticks_in_one_bitmap = max_tick_in_tickarray_bitmap(tick_spacing)
    offset = abs(tick_index) // ticks_in_one_bitmap - 1
    if tick_index < 0 and abs(tick_index) % ticks_in_one_bitmap == 0:
        offset -= 1
    return offset


def get_bitmap(extension: TickArrayBitmapExtension, tick_index: int, tick_spacing: int) -> Tuple[int, int]:
    """(entry offset, 512-bit bitmap) for the entry covering tick_index"""
    offset = get_bitmap_offset(tick_index, tick_spacing)
    if tick_index < 0:
        words = extension.negative_tick_array_bitmap[offset]
    else:
        words = extension.positive_tick_array_bitmap[offset]
    return offset, _words_to_int(words)


def get_bitmap_tick_boundary(tick_array_start_index: int, tick_spacing: int) -> Tuple[int, int]:
    """[min, max) start indices covered by the extension entry holding this index"""
    ticks_in_one_bitmap = max_tick_in_tickarray_bitmap(tick_spacing)
    m = abs(tick_array_start_index) // ticks_in_one_bitmap
    if tick_array_start_index < 0 and abs(tick_array_start_index) % ticks_in_one_bitmap != 0:
        m += 1
    min_value = ticks_in_one_bitmap * m
    if tick_array_start_index < 0:
        return -min_value, -min_value + ticks_in_one_bitmap
    return min_value, min_value + ticks_in_one_bitmap


def tick_array_offset_in_bitmap(tick_array_start_index: int, tick_spacing: int) -> int:
    """Bit position of a start index within its extension entry"""
    m = abs(tick_array_start_index) % max_tick_in_tickarray_bitmap(tick_spacing)
    offset = m // tick_count(tick_spacing)
    if tick_array_start_index < 0 and m != 0:
        offset = TICK_ARRAY_BITMAP_SIZE - offset
    return offset


def extension_check_tick_array_is_initialized(
    extension: TickArrayBitmapExtension,
    tick_array_start_index: int,
    tick_spacing: int,
) -> Tuple[bool, int]:
    _, bitmap = get_bitmap(extension, tick_array_start_index, tick_spacing)
    offset = tick_array_offset_in_bitmap(tick_array_start_index, tick_spacing)
    return bool(bitmap >> offset & 1), tick_array_start_index


def next_initialized_tick_array_in_bitmap(
    bitmap: int,
    next_tick_array_start_index: int,
    tick_spacing: int,
    zero_for_one: bool,
) -> Tuple[bool, int]:
    """Search one 512-bit extension entry starting at next_tick_array_start_index"""
    min_boundary, max_boundary = get_bitmap_tick_boundary(next_tick_array_start_index, tick_spacing)
    offset = tick_array_offset_in_bitmap(next_tick_array_start_index, tick_spacing)
    multiplier = tick_count(tick_spacing)

    if zero_for_one:
        offset_bitmap = (bitmap << (TICK_ARRAY_BITMAP_SIZE - 1 - offset)) & _EXTENSION_MASK
        if offset_bitmap == 0:
            return False, min_boundary
        next_bit = _leading_zeros(offset_bitmap, TICK_ARRAY_BITMAP_SIZE)
        return True, next_tick_array_start_index - next_bit * multiplier
    else:
        offset_bitmap = bitmap >> offset
        if offset_bitmap == 0:
            return False, max_boundary - multiplier
        next_bit = _trailing_zeros(offset_bitmap)
        return True, next_tick_array_start_index + next_bit * multiplier


def next_initialized_tick_array_from_one_bitmap(
    extension: TickArrayBitmapExtension,
    last_tick_array_start_index: int,
    tick_spacing: int,
    zero_for_one: bool,
) -> Tuple[bool, int]:
    multiplier = tick_count(tick_spacing)
    if zero_for_one:
        next_start = last_tick_array_start_index - multiplier
    else:
        next_start = last_tick_array_start_index + multiplier

    min_start = get_array_start_index(MIN_TICK, tick_spacing)
    max_start = get_array_start_index(MAX_TICK, tick_spacing)
    if next_start < min_start or next_start > max_start:
        return False, next_start

    _, bitmap = get_bitmap(extension, next_start, tick_spacing)
    return next_initialized_tick_array_in_bitmap(bitmap, next_start, tick_spacing, zero_for_one)


# ---------------------------------------------------------------------------
# Pool-level search
# ---------------------------------------------------------------------------

def _require_extension(
    pool: PoolState,
    extension: Optional[TickArrayBitmapExtension],
) -> TickArrayBitmapExtension:
    if extension is None:
        raise MissingAccountError.not_found(
            f"bitmap extension of pool with mints {pool.token_mint_0}/{pool.token_mint_1}",
            "TickArrayBitmapExtension",
        )
    return extension


def pool_next_initialized_tick_array_start_index(
    pool: PoolState,
    extension: Optional[TickArrayBitmapExtension],
    last_tick_array_start_index: int,
    zero_for_one: bool,
) -> Optional[int]:
    """
    Next initialized start index strictly past last_tick_array_start_index,
    searching the inline bitmap then the extension.

    Returns:
        The start index, or None when the tick range is exhausted

    Raises:
        MissingAccountError: If the extension is needed but was not supplied
    """
    tick_spacing = pool.tick_spacing
    bitmap = pool.bitmap_int
    last = get_array_start_index(last_tick_array_start_index, tick_spacing)
    # Without extension entries the inline bitmap covers every tick
    inline_covers_all = max_tick_in_tickarray_bitmap(tick_spacing) >= MAX_TICK

    while True:
        found, start_index = next_initialized_tick_array_start_index(bitmap, last, tick_spacing, zero_for_one)
        if found:
            return start_index
        last = start_index

        if inline_covers_all:
            return None

        ext = _require_extension(pool, extension)
        found, start_index = next_initialized_tick_array_from_one_bitmap(ext, last, tick_spacing, zero_for_one)
        if found:
            return start_index
        last = start_index

        if last < MIN_TICK or last > MAX_TICK:
            return None


def get_first_initialized_tick_array(
    pool: PoolState,
    extension: Optional[TickArrayBitmapExtension],
    zero_for_one: bool,
) -> Optional[Tuple[bool, int]]:
    """
    First initialized array for a swap from the pool's current tick.

    Returns:
        (is_current_array, start_index), or None if nothing is initialized in
        the trade direction
    """
    tick_spacing = pool.tick_spacing
    current_start = get_array_start_index(pool.tick_current, tick_spacing)

    if is_overflow_default_tickarray_bitmap(tick_spacing, [pool.tick_current]):
        ext = _require_extension(pool, extension)
        initialized, start_index = extension_check_tick_array_is_initialized(ext, current_start, tick_spacing)
    else:
        initialized, start_index = check_current_tick_array_is_initialized(
            pool.bitmap_int, pool.tick_current, tick_spacing
        )

    if initialized:
        return True, start_index

    next_start = pool_next_initialized_tick_array_start_index(pool, extension, current_start, zero_for_one)
    if next_start is None:
        return None
    return False, next_start
