"""
Raydium CLMM program events

Emitted through "Program data: <base64>" log lines; registered in the shared
DecodeTable under the "event" kind.
"""

from dataclasses import dataclass
from typing import Tuple

from solders.pubkey import Pubkey

from .codec import DECODE_TABLE, wire, Array, BOOL, I32, PUBKEY, U16, U32, U64, U128
from .constants import REWARD_NUM


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class ConfigChangeEvent:
    index: int = wire(U16)
    owner: Pubkey = wire(PUBKEY)
    protocol_fee_rate: int = wire(U32)
    trade_fee_rate: int = wire(U32)
    tick_spacing: int = wire(U16)
    fund_fee_rate: int = wire(U32)
    fund_owner: Pubkey = wire(PUBKEY)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class CreatePersonalPositionEvent:
    pool_state: Pubkey = wire(PUBKEY)
    minter: Pubkey = wire(PUBKEY)
    nft_owner: Pubkey = wire(PUBKEY)
    tick_lower_index: int = wire(I32)
    tick_upper_index: int = wire(I32)
    liquidity: int = wire(U128)
    deposit_amount_0: int = wire(U64)
    deposit_amount_1: int = wire(U64)
    deposit_amount_0_transfer_fee: int = wire(U64)
    deposit_amount_1_transfer_fee: int = wire(U64)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class IncreaseLiquidityEvent:
    position_nft_mint: Pubkey = wire(PUBKEY)
    liquidity: int = wire(U128)
    amount_0: int = wire(U64)
    amount_1: int = wire(U64)
    amount_0_transfer_fee: int = wire(U64)
    amount_1_transfer_fee: int = wire(U64)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class DecreaseLiquidityEvent:
    position_nft_mint: Pubkey = wire(PUBKEY)
    liquidity: int = wire(U128)
    decrease_amount_0: int = wire(U64)
    decrease_amount_1: int = wire(U64)
    fee_amount_0: int = wire(U64)
    fee_amount_1: int = wire(U64)
    reward_amounts: Tuple[int, ...] = wire(Array(U64, REWARD_NUM))
    transfer_fee_0: int = wire(U64)
    transfer_fee_1: int = wire(U64)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class LiquidityCalculateEvent:
    pool_liquidity: int = wire(U128)
    pool_sqrt_price_x64: int = wire(U128)
    pool_tick: int = wire(I32)
    calc_amount_0: int = wire(U64)
    calc_amount_1: int = wire(U64)
    trade_fee_owed_0: int = wire(U64)
    trade_fee_owed_1: int = wire(U64)
    transfer_fee_0: int = wire(U64)
    transfer_fee_1: int = wire(U64)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class CollectPersonalFeeEvent:
    position_nft_mint: Pubkey = wire(PUBKEY)
    recipient_token_account_0: Pubkey = wire(PUBKEY)
    recipient_token_account_1: Pubkey = wire(PUBKEY)
    amount_0: int = wire(U64)
    amount_1: int = wire(U64)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class UpdateRewardInfosEvent:
    reward_growth_global_x64: Tuple[int, ...] = wire(Array(U128, REWARD_NUM))


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class PoolCreatedEvent:
    token_mint_0: Pubkey = wire(PUBKEY)
    token_mint_1: Pubkey = wire(PUBKEY)
    tick_spacing: int = wire(U16)
    pool_state: Pubkey = wire(PUBKEY)
    sqrt_price_x64: int = wire(U128)
    tick: int = wire(I32)
    token_vault_0: Pubkey = wire(PUBKEY)
    token_vault_1: Pubkey = wire(PUBKEY)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class CollectProtocolFeeEvent:
    pool_state: Pubkey = wire(PUBKEY)
    recipient_token_account_0: Pubkey = wire(PUBKEY)
    recipient_token_account_1: Pubkey = wire(PUBKEY)
    amount_0: int = wire(U64)
    amount_1: int = wire(U64)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class SwapEvent:
    pool_state: Pubkey = wire(PUBKEY)
    sender: Pubkey = wire(PUBKEY)
    token_account_0: Pubkey = wire(PUBKEY)
    token_account_1: Pubkey = wire(PUBKEY)
    amount_0: int = wire(U64)
    transfer_fee_0: int = wire(U64)
    amount_1: int = wire(U64)
    transfer_fee_1: int = wire(U64)
    zero_for_one: bool = wire(BOOL)
    sqrt_price_x64: int = wire(U128)
    liquidity: int = wire(U128)
    tick: int = wire(I32)


@DECODE_TABLE.register("event")
@dataclass(frozen=True)
class LiquidityChangeEvent:
    pool_state: Pubkey = wire(PUBKEY)
    tick: int = wire(I32)
    tick_lower: int = wire(I32)
    tick_upper: int = wire(I32)
    liquidity_before: int = wire(U128)
    liquidity_after: int = wire(U128)
