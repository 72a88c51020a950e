"""
Raydium CLMM account layouts

Each account is a frozen snapshot decoded through the shared DecodeTable.
Padding fields are kept so encode(decode(raw)) reproduces the account bytes.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from solders.pubkey import Pubkey

from .codec import (
    DECODE_TABLE,
    wire,
    Array,
    Bytes,
    COption,
    Nested,
    U8,
    U16,
    U32,
    U64,
    U128,
    I32,
    I64,
    I128,
    BOOL,
    PUBKEY,
)
from .constants import (
    TICK_ARRAY_SIZE,
    REWARD_NUM,
    OBSERVATION_NUM,
    OPERATION_SIZE_USIZE,
    WHITE_MINT_SIZE_USIZE,
    EXTENSION_TICKARRAY_BITMAP_SIZE,
)


_DEFAULT_PUBKEY = Pubkey.default()


# ---------------------------------------------------------------------------
# AmmConfig
# ---------------------------------------------------------------------------

@DECODE_TABLE.register("account")
@dataclass(frozen=True)
class AmmConfig:
    """Fee tier: trade/protocol/fund fee rates and tick spacing"""
    bump: int = wire(U8)
    index: int = wire(U16)
    owner: Pubkey = wire(PUBKEY)
    protocol_fee_rate: int = wire(U32)
    trade_fee_rate: int = wire(U32)
    tick_spacing: int = wire(U16)
    fund_fee_rate: int = wire(U32)
    padding_u32: int = wire(U32)
    fund_owner: Pubkey = wire(PUBKEY)
    padding: Tuple[int, ...] = wire(Array(U64, 3))


# ---------------------------------------------------------------------------
# PoolState
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RewardInfo:
    reward_state: int = wire(U8)
    open_time: int = wire(U64)
    end_time: int = wire(U64)
    last_update_time: int = wire(U64)
    emissions_per_second_x64: int = wire(U128)
    reward_total_emissioned: int = wire(U64)
    reward_claimed: int = wire(U64)
    token_mint: Pubkey = wire(PUBKEY)
    token_vault: Pubkey = wire(PUBKEY)
    authority: Pubkey = wire(PUBKEY)
    reward_growth_global_x64: int = wire(U128)

    @property
    def initialized(self) -> bool:
        return self.token_mint != _DEFAULT_PUBKEY


@DECODE_TABLE.register("account")
@dataclass(frozen=True)
class PoolState:
    """
    Pool snapshot.

    token_mint_0 < token_mint_1 by raw bytes. tick_array_bitmap is the inline
    1024-bit bitmap covering start indices in
    [-512 * tick_count, 512 * tick_count).
    """
    bump: int = wire(U8)
    amm_config: Pubkey = wire(PUBKEY)
    owner: Pubkey = wire(PUBKEY)
    token_mint_0: Pubkey = wire(PUBKEY)
    token_mint_1: Pubkey = wire(PUBKEY)
    token_vault_0: Pubkey = wire(PUBKEY)
    token_vault_1: Pubkey = wire(PUBKEY)
    observation_key: Pubkey = wire(PUBKEY)
    mint_decimals_0: int = wire(U8)
    mint_decimals_1: int = wire(U8)
    tick_spacing: int = wire(U16)
    liquidity: int = wire(U128)
    sqrt_price_x64: int = wire(U128)
    tick_current: int = wire(I32)
    padding3: int = wire(U16)
    padding4: int = wire(U16)
    fee_growth_global_0_x64: int = wire(U128)
    fee_growth_global_1_x64: int = wire(U128)
    protocol_fees_token_0: int = wire(U64)
    protocol_fees_token_1: int = wire(U64)
    swap_in_amount_token_0: int = wire(U128)
    swap_out_amount_token_1: int = wire(U128)
    swap_in_amount_token_1: int = wire(U128)
    swap_out_amount_token_0: int = wire(U128)
    status: int = wire(U8)
    padding: bytes = wire(Bytes(7))
    reward_infos: Tuple[RewardInfo, ...] = wire(Array(Nested(RewardInfo), REWARD_NUM))
    tick_array_bitmap: Tuple[int, ...] = wire(Array(U64, 16))
    total_fees_token_0: int = wire(U64)
    total_fees_claimed_token_0: int = wire(U64)
    total_fees_token_1: int = wire(U64)
    total_fees_claimed_token_1: int = wire(U64)
    fund_fees_token_0: int = wire(U64)
    fund_fees_token_1: int = wire(U64)
    open_time: int = wire(U64)
    recent_epoch: int = wire(U64)
    padding1: Tuple[int, ...] = wire(Array(U64, 24))
    padding2: Tuple[int, ...] = wire(Array(U64, 32))

    @property
    def bitmap_int(self) -> int:
        """Inline bitmap as one 1024-bit integer (word 0 holds bits 0-63)"""
        value = 0
        for i, word in enumerate(self.tick_array_bitmap):
            value |= word << (64 * i)
        return value

    def mint_decimals(self, mint: Pubkey) -> Optional[int]:
        if mint == self.token_mint_0:
            return self.mint_decimals_0
        if mint == self.token_mint_1:
            return self.mint_decimals_1
        return None


# ---------------------------------------------------------------------------
# Tick arrays
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TickState:
    tick: int = wire(I32)
    liquidity_net: int = wire(I128)
    liquidity_gross: int = wire(U128)
    fee_growth_outside_0_x64: int = wire(U128)
    fee_growth_outside_1_x64: int = wire(U128)
    reward_growths_outside_x64: Tuple[int, ...] = wire(Array(U128, REWARD_NUM))
    padding: Tuple[int, ...] = wire(Array(U32, 13))

    @property
    def is_initialized(self) -> bool:
        return self.liquidity_gross != 0


@DECODE_TABLE.register("account")
@dataclass(frozen=True)
class TickArrayState:
    """60 consecutive spacing-aligned ticks starting at start_tick_index"""
    pool_id: Pubkey = wire(PUBKEY)
    start_tick_index: int = wire(I32)
    ticks: Tuple[TickState, ...] = wire(Array(Nested(TickState), TICK_ARRAY_SIZE))
    initialized_tick_count: int = wire(U8)
    recent_epoch: int = wire(U64)
    padding: bytes = wire(Bytes(107))

    def tick_offset(self, tick: int, tick_spacing: int) -> int:
        """Index of tick within this array"""
        return (tick - self.start_tick_index) // tick_spacing

    def next_initialized_tick(
        self,
        current_tick: int,
        tick_spacing: int,
        zero_for_one: bool,
    ) -> Optional[TickState]:
        """
        Nearest initialized tick in this array from current_tick.

        zero_for_one searches at or below current_tick, otherwise strictly
        above. Returns None if current_tick is not in this array or no tick
        qualifies.
        """
        ticks_in_array = TICK_ARRAY_SIZE * tick_spacing
        if (current_tick // ticks_in_array) * ticks_in_array != self.start_tick_index:
            return None

        offset = self.tick_offset(current_tick, tick_spacing)
        if zero_for_one:
            while offset >= 0:
                if self.ticks[offset].is_initialized:
                    return self.ticks[offset]
                offset -= 1
        else:
            offset += 1
            while offset < TICK_ARRAY_SIZE:
                if self.ticks[offset].is_initialized:
                    return self.ticks[offset]
                offset += 1
        return None

    def first_initialized_tick(self, zero_for_one: bool) -> Optional[TickState]:
        """Highest (zero_for_one) or lowest initialized tick in this array"""
        order = reversed(self.ticks) if zero_for_one else iter(self.ticks)
        for tick_state in order:
            if tick_state.is_initialized:
                return tick_state
        return None


@DECODE_TABLE.register("account")
@dataclass(frozen=True)
class TickArrayBitmapExtension:
    """
    Bitmaps for tick arrays outside the pool's inline bitmap.

    Entry i of each side covers 512 tick arrays, i.e. start indices in
    [(i + 1) * boundary, (i + 2) * boundary) for positive and the mirror for
    negative, with boundary = 512 * tick_count.
    """
    pool_id: Pubkey = wire(PUBKEY)
    positive_tick_array_bitmap: Tuple[Tuple[int, ...], ...] = wire(
        Array(Array(U64, 8), EXTENSION_TICKARRAY_BITMAP_SIZE)
    )
    negative_tick_array_bitmap: Tuple[Tuple[int, ...], ...] = wire(
        Array(Array(U64, 8), EXTENSION_TICKARRAY_BITMAP_SIZE)
    )


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PositionRewardInfo:
    growth_inside_last_x64: int = wire(U128)
    reward_amount_owed: int = wire(U64)


@DECODE_TABLE.register("account")
@dataclass(frozen=True)
class PersonalPositionState:
    """Position owned through an NFT"""
    bump: int = wire(U8)
    nft_mint: Pubkey = wire(PUBKEY)
    pool_id: Pubkey = wire(PUBKEY)
    tick_lower_index: int = wire(I32)
    tick_upper_index: int = wire(I32)
    liquidity: int = wire(U128)
    fee_growth_inside_0_last_x64: int = wire(U128)
    fee_growth_inside_1_last_x64: int = wire(U128)
    token_fees_owed_0: int = wire(U64)
    token_fees_owed_1: int = wire(U64)
    reward_infos: Tuple[PositionRewardInfo, ...] = wire(Array(Nested(PositionRewardInfo), REWARD_NUM))
    recent_epoch: int = wire(U64)
    padding: Tuple[int, ...] = wire(Array(U64, 7))


@DECODE_TABLE.register("account")
@dataclass(frozen=True)
class ProtocolPositionState:
    """Aggregate of all personal positions sharing a tick range"""
    bump: int = wire(U8)
    pool_id: Pubkey = wire(PUBKEY)
    tick_lower_index: int = wire(I32)
    tick_upper_index: int = wire(I32)
    liquidity: int = wire(U128)
    fee_growth_inside_0_last_x64: int = wire(U128)
    fee_growth_inside_1_last_x64: int = wire(U128)
    token_fees_owed_0: int = wire(U64)
    token_fees_owed_1: int = wire(U64)
    reward_growth_inside: Tuple[int, ...] = wire(Array(U128, REWARD_NUM))
    recent_epoch: int = wire(U64)
    padding: Tuple[int, ...] = wire(Array(U64, 7))


# ---------------------------------------------------------------------------
# Operation / observation
# ---------------------------------------------------------------------------

@DECODE_TABLE.register("account")
@dataclass(frozen=True)
class OperationState:
    """Admin-managed operator owners and reward mint whitelist"""
    bump: int = wire(U8)
    operation_owners: Tuple[Pubkey, ...] = wire(Array(PUBKEY, OPERATION_SIZE_USIZE))
    whitelist_mints: Tuple[Pubkey, ...] = wire(Array(PUBKEY, WHITE_MINT_SIZE_USIZE))

    @property
    def active_owners(self) -> Tuple[Pubkey, ...]:
        return tuple(k for k in self.operation_owners if k != _DEFAULT_PUBKEY)

    @property
    def active_whitelist_mints(self) -> Tuple[Pubkey, ...]:
        return tuple(k for k in self.whitelist_mints if k != _DEFAULT_PUBKEY)


@dataclass(frozen=True)
class Observation:
    block_timestamp: int = wire(U32)
    tick_cumulative: int = wire(I64)
    padding: Tuple[int, ...] = wire(Array(U64, 4))


@DECODE_TABLE.register("account")
@dataclass(frozen=True)
class ObservationState:
    """Ring buffer of tick observations"""
    initialized: bool = wire(BOOL)
    recent_epoch: int = wire(U64)
    observation_index: int = wire(U16)
    pool_id: Pubkey = wire(PUBKEY)
    observations: Tuple[Observation, ...] = wire(Array(Nested(Observation), OBSERVATION_NUM))
    padding: Tuple[int, ...] = wire(Array(U64, 4))


# ---------------------------------------------------------------------------
# SPL Token accounts (no discriminator; read with decode_layout)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SplMint:
    """Base mint layout shared by SPL Token and Token-2022 (82 bytes)"""
    mint_authority: Optional[Pubkey] = wire(COption(PUBKEY))
    supply: int = wire(U64)
    decimals: int = wire(U8)
    is_initialized: bool = wire(BOOL)
    freeze_authority: Optional[Pubkey] = wire(COption(PUBKEY))


@dataclass(frozen=True)
class SplTokenAccount:
    """
    Base token account layout (165 bytes)

    state: 0 uninitialized, 1 initialized, 2 frozen.
    is_native holds the rent-exempt reserve for wrapped SOL accounts.
    """
    mint: Pubkey = wire(PUBKEY)
    owner: Pubkey = wire(PUBKEY)
    amount: int = wire(U64)
    delegate: Optional[Pubkey] = wire(COption(PUBKEY))
    state: int = wire(U8)
    is_native: Optional[int] = wire(COption(U64))
    delegated_amount: int = wire(U64)
    close_authority: Optional[Pubkey] = wire(COption(PUBKEY))
