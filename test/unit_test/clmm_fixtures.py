"""
Synthetic CLMM account state shared by the unit tests.

Records are built by decoding an all-zero body and replacing the fields a
test cares about, so every layout field has a valid default.
"""

import dataclasses
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from solders.pubkey import Pubkey

from clmm_client.protocol.codec import body_size, decode, encode
from clmm_client.protocol.constants import CLMM_PROGRAM_ID
from clmm_client.protocol.math import get_sqrt_price_at_tick, tick_count
from clmm_client.protocol.pda import (
    canonicalize_mints,
    config_address,
    pool_address,
    pool_vault_address,
    observation_address,
)
from clmm_client.protocol.states import (
    AmmConfig,
    PoolState,
    TickArrayBitmapExtension,
    TickArrayState,
)
from clmm_client.protocol.constants import TICK_ARRAY_BITMAP_SIZE


PROGRAM_ID = Pubkey.from_string(CLMM_PROGRAM_ID)
SOL_MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")
USDC_MINT = Pubkey.from_string("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")
MINT0, MINT1 = canonicalize_mints(SOL_MINT, USDC_MINT)
AMM_CONFIG = config_address(PROGRAM_ID, 0).address
POOL_ID = pool_address(PROGRAM_ID, AMM_CONFIG, MINT0, MINT1).address

LIQUIDITY = 10 ** 12
TRADE_FEE_RATE = 2500


def blank(record_type):
    """Zero-filled record of a fixed-layout account type"""
    return decode(record_type, record_type.DISCRIMINATOR + bytes(body_size(record_type)))


def inline_bitmap(start_indices, tick_spacing):
    """Inline [u64; 16] bitmap with the given tick array start indices set"""
    value = 0
    for start in start_indices:
        value |= 1 << (start // tick_count(tick_spacing) + TICK_ARRAY_BITMAP_SIZE)
    return tuple((value >> (64 * i)) & (2 ** 64 - 1) for i in range(16))


def make_pool(
    tick_current=1234,
    tick_spacing=10,
    initialized_arrays=(600, 1200),
    liquidity=LIQUIDITY,
    **overrides
):
    """
    Pool at tick_current with the given tick arrays marked initialized.

    Defaults: spacing 10 (600 ticks per array), arrays 600 and 1200 set,
    decimals 9/6.
    """
    pool = dataclasses.replace(
        blank(PoolState),
        amm_config=AMM_CONFIG,
        token_mint_0=MINT0,
        token_mint_1=MINT1,
        token_vault_0=pool_vault_address(PROGRAM_ID, POOL_ID, MINT0).address,
        token_vault_1=pool_vault_address(PROGRAM_ID, POOL_ID, MINT1).address,
        observation_key=observation_address(PROGRAM_ID, POOL_ID).address,
        mint_decimals_0=9,
        mint_decimals_1=6,
        tick_spacing=tick_spacing,
        liquidity=liquidity,
        sqrt_price_x64=get_sqrt_price_at_tick(tick_current),
        tick_current=tick_current,
        tick_array_bitmap=inline_bitmap(initialized_arrays, tick_spacing),
    )
    if overrides:
        pool = dataclasses.replace(pool, **overrides)
    return pool


def make_tick_array(start_index, tick_spacing=10, liquidity_nets=None, pool_id=POOL_ID):
    """Tick array whose ticks in liquidity_nets ({tick: net}) are initialized"""
    tick_array = blank(TickArrayState)
    ticks = list(tick_array.ticks)
    for offset in range(len(ticks)):
        ticks[offset] = dataclasses.replace(ticks[offset], tick=start_index + offset * tick_spacing)
    for tick, net in (liquidity_nets or {}).items():
        offset = (tick - start_index) // tick_spacing
        ticks[offset] = dataclasses.replace(ticks[offset], liquidity_net=net, liquidity_gross=abs(net))
    return dataclasses.replace(
        tick_array,
        pool_id=pool_id,
        start_tick_index=start_index,
        ticks=tuple(ticks),
        initialized_tick_count=len(liquidity_nets or {}),
    )


def make_extension(positive_bits=(), negative_bits=(), pool_id=POOL_ID):
    """
    Bitmap extension with (entry, bit) pairs set on each side.
    """
    def side(bits):
        entries = [[0] * 8 for _ in range(14)]
        for entry, bit in bits:
            entries[entry][bit // 64] |= 1 << (bit % 64)
        return tuple(tuple(words) for words in entries)

    return dataclasses.replace(
        blank(TickArrayBitmapExtension),
        pool_id=pool_id,
        positive_tick_array_bitmap=side(positive_bits),
        negative_tick_array_bitmap=side(negative_bits),
    )


def make_amm_config(trade_fee_rate=TRADE_FEE_RATE, tick_spacing=10):
    return dataclasses.replace(
        blank(AmmConfig),
        trade_fee_rate=trade_fee_rate,
        tick_spacing=tick_spacing,
    )


def position_arrays(tick_spacing=10):
    """
    Tick arrays 600 and 1200 holding one position over [600, 1300].

    Crossing 600 downwards or 1300 upwards removes all of LIQUIDITY.
    """
    return (
        make_tick_array(600, tick_spacing, {600: LIQUIDITY}),
        make_tick_array(1200, tick_spacing, {1300: -LIQUIDITY}),
    )


def raw(record):
    return encode(record)
