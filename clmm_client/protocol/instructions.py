"""
Raydium CLMM Instruction Builders

Every builder returns a solders Instruction: ordered AccountMetas plus the
discriminator-prefixed Borsh payload. Nothing here signs or sends.

Instruction argument records are registered in the shared DecodeTable, so
raw instruction data can be decoded back with decode_any(data, "instruction").
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, Union

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .codec import DECODE_TABLE, encode, wire, Option, Vec, BOOL, I32, PUBKEY, U8, U16, U32, U64, U128
from .constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    MAX_UINT64,
    MAX_UINT128,
    MEMO_PROGRAM_ID,
    METADATA_PROGRAM_ID,
    RENT_SYSVAR_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from .math import (
    amount_with_slippage,
    check_tick_range,
    get_array_start_index,
    get_delta_amounts_signed,
    get_liquidity_from_single_amount_0,
    get_liquidity_from_single_amount_1,
    get_sqrt_price_at_tick,
    get_tick_at_sqrt_price,
    price_to_sqrt_price_x64,
    tick_with_spacing,
)
from .pda import (
    associated_token_address,
    bitmap_extension_address,
    config_address,
    metadata_address,
    observation_address,
    operation_address,
    personal_position_address,
    pool_address,
    pool_vault_address,
    protocol_position_address,
    reward_vault_address,
    tick_array_address,
)
from .router import TickArrayRoute
from .states import PoolState
from .swap_math import SwapQuote, resolve_sqrt_price_limit
from ..errors import ConfigurationError, InvalidAmountError, InvalidTickRangeError


logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal, str]


# ---------------------------------------------------------------------------
# Instruction argument records
#
# Every program instruction is registered so decode_instruction can read any
# CLMM transaction; only some have builders below.
# ---------------------------------------------------------------------------

@DECODE_TABLE.register("instruction", "create_amm_config")
@dataclass(frozen=True)
class CreateAmmConfigArgs:
    index: int = wire(U16)
    tick_spacing: int = wire(U16)
    trade_fee_rate: int = wire(U32)
    protocol_fee_rate: int = wire(U32)
    fund_fee_rate: int = wire(U32)


@DECODE_TABLE.register("instruction", "update_amm_config")
@dataclass(frozen=True)
class UpdateAmmConfigArgs:
    param: int = wire(U8)
    value: int = wire(U32)


@DECODE_TABLE.register("instruction", "create_operation_account")
@dataclass(frozen=True)
class CreateOperationAccountArgs:
    pass


@DECODE_TABLE.register("instruction", "update_operation_account")
@dataclass(frozen=True)
class UpdateOperationAccountArgs:
    param: int = wire(U8)
    keys: Tuple[Pubkey, ...] = wire(Vec(PUBKEY))


@DECODE_TABLE.register("instruction", "create_pool")
@dataclass(frozen=True)
class CreatePoolArgs:
    sqrt_price_x64: int = wire(U128)
    open_time: int = wire(U64)


@DECODE_TABLE.register("instruction", "update_pool_status")
@dataclass(frozen=True)
class UpdatePoolStatusArgs:
    """Decode only (transaction inspection); no builder emits it"""
    status: int = wire(U8)


@DECODE_TABLE.register("instruction", "initialize_reward")
@dataclass(frozen=True)
class InitializeRewardArgs:
    open_time: int = wire(U64)
    end_time: int = wire(U64)
    emissions_per_second_x64: int = wire(U128)


@DECODE_TABLE.register("instruction", "set_reward_params")
@dataclass(frozen=True)
class SetRewardParamsArgs:
    reward_index: int = wire(U8)
    emissions_per_second_x64: int = wire(U128)
    open_time: int = wire(U64)
    end_time: int = wire(U64)


@DECODE_TABLE.register("instruction", "transfer_reward_owner")
@dataclass(frozen=True)
class TransferRewardOwnerArgs:
    new_owner: Pubkey = wire(PUBKEY)


@DECODE_TABLE.register("instruction", "collect_remaining_rewards")
@dataclass(frozen=True)
class CollectRemainingRewardsArgs:
    """Decode only (transaction inspection); no builder emits it"""
    reward_index: int = wire(U8)


@DECODE_TABLE.register("instruction", "update_reward_infos")
@dataclass(frozen=True)
class UpdateRewardInfosArgs:
    """Decode only (transaction inspection); no builder emits it"""


@DECODE_TABLE.register("instruction", "collect_protocol_fee")
@dataclass(frozen=True)
class CollectProtocolFeeArgs:
    """Decode only (transaction inspection); no builder emits it"""
    amount_0_requested: int = wire(U64)
    amount_1_requested: int = wire(U64)


@DECODE_TABLE.register("instruction", "collect_fund_fee")
@dataclass(frozen=True)
class CollectFundFeeArgs:
    """Decode only (transaction inspection); no builder emits it"""
    amount_0_requested: int = wire(U64)
    amount_1_requested: int = wire(U64)


@DECODE_TABLE.register("instruction", "open_position")
@dataclass(frozen=True)
class OpenPositionArgs:
    """Decode only (transaction inspection); no builder emits it"""
    tick_lower_index: int = wire(I32)
    tick_upper_index: int = wire(I32)
    tick_array_lower_start_index: int = wire(I32)
    tick_array_upper_start_index: int = wire(I32)
    liquidity: int = wire(U128)
    amount_0_max: int = wire(U64)
    amount_1_max: int = wire(U64)


@DECODE_TABLE.register("instruction", "open_position_v2")
@dataclass(frozen=True)
class OpenPositionV2Args:
    tick_lower_index: int = wire(I32)
    tick_upper_index: int = wire(I32)
    tick_array_lower_start_index: int = wire(I32)
    tick_array_upper_start_index: int = wire(I32)
    liquidity: int = wire(U128)
    amount_0_max: int = wire(U64)
    amount_1_max: int = wire(U64)
    with_metadata: bool = wire(BOOL)
    base_flag: Optional[bool] = wire(Option(BOOL))


@DECODE_TABLE.register("instruction", "open_position_with_token22_nft")
@dataclass(frozen=True)
class OpenPositionWithToken22NftArgs:
    """Decode only (transaction inspection); no builder emits it"""
    tick_lower_index: int = wire(I32)
    tick_upper_index: int = wire(I32)
    tick_array_lower_start_index: int = wire(I32)
    tick_array_upper_start_index: int = wire(I32)
    liquidity: int = wire(U128)
    amount_0_max: int = wire(U64)
    amount_1_max: int = wire(U64)
    with_metadata: bool = wire(BOOL)
    base_flag: Optional[bool] = wire(Option(BOOL))


@DECODE_TABLE.register("instruction", "close_position")
@dataclass(frozen=True)
class ClosePositionArgs:
    """Decode only (transaction inspection); no builder emits it"""


@DECODE_TABLE.register("instruction", "increase_liquidity")
@dataclass(frozen=True)
class IncreaseLiquidityArgs:
    """Decode only (transaction inspection); no builder emits it"""
    liquidity: int = wire(U128)
    amount_0_max: int = wire(U64)
    amount_1_max: int = wire(U64)


@DECODE_TABLE.register("instruction", "increase_liquidity_v2")
@dataclass(frozen=True)
class IncreaseLiquidityV2Args:
    liquidity: int = wire(U128)
    amount_0_max: int = wire(U64)
    amount_1_max: int = wire(U64)
    base_flag: Optional[bool] = wire(Option(BOOL))


@DECODE_TABLE.register("instruction", "decrease_liquidity")
@dataclass(frozen=True)
class DecreaseLiquidityArgs:
    """Decode only (transaction inspection); no builder emits it"""
    liquidity: int = wire(U128)
    amount_0_min: int = wire(U64)
    amount_1_min: int = wire(U64)


@DECODE_TABLE.register("instruction", "decrease_liquidity_v2")
@dataclass(frozen=True)
class DecreaseLiquidityV2Args:
    liquidity: int = wire(U128)
    amount_0_min: int = wire(U64)
    amount_1_min: int = wire(U64)


@DECODE_TABLE.register("instruction", "swap")
@dataclass(frozen=True)
class SwapArgs:
    amount: int = wire(U64)
    other_amount_threshold: int = wire(U64)
    sqrt_price_limit_x64: int = wire(U128)
    is_base_input: bool = wire(BOOL)


@DECODE_TABLE.register("instruction", "swap_v2")
@dataclass(frozen=True)
class SwapV2Args:
    amount: int = wire(U64)
    other_amount_threshold: int = wire(U64)
    sqrt_price_limit_x64: int = wire(U128)
    is_base_input: bool = wire(BOOL)


# ---------------------------------------------------------------------------
# Planning helpers (price/amount -> ticks/liquidity/limits)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LiquidityPlan:
    """
    Ticks, liquidity and token bounds for a liquidity change.

    amount_0_limit/amount_1_limit are maxima when adding liquidity and minima
    when removing it.
    """
    tick_lower: int
    tick_upper: int
    liquidity: int
    amount_0: int
    amount_1: int
    amount_0_limit: int
    amount_1_limit: int


def ticks_from_prices(pool_state: PoolState, lower_price: Number, upper_price: Number) -> Tuple[int, int]:
    """
    Price range -> (tick_lower, tick_upper), each rounded down to tick spacing

    Raises:
        InvalidTickRangeError: If the rounded range is empty or inverted
    """
    ticks = []
    for price in (lower_price, upper_price):
        sqrt_price_x64 = price_to_sqrt_price_x64(price, pool_state.mint_decimals_0, pool_state.mint_decimals_1)
        tick = get_tick_at_sqrt_price(sqrt_price_x64)
        ticks.append(tick_with_spacing(tick, pool_state.tick_spacing))
    tick_lower, tick_upper = ticks
    check_tick_range(tick_lower, tick_upper, pool_state.tick_spacing)
    return tick_lower, tick_upper


def plan_add_liquidity(
    pool_state: PoolState,
    tick_lower: int,
    tick_upper: int,
    input_amount: int,
    is_base_0: bool,
    slippage: Number,
) -> LiquidityPlan:
    """
    Liquidity from the caller-fixed side and slippage-padded token maxima

    Raises:
        InvalidTickRangeError: If the range is inverted or unaligned
        InvalidAmountError: If the input amount is zero or yields no liquidity
    """
    check_tick_range(tick_lower, tick_upper, pool_state.tick_spacing)
    if input_amount <= 0:
        raise InvalidAmountError.zero("input_amount")

    sqrt_lower = get_sqrt_price_at_tick(tick_lower)
    sqrt_upper = get_sqrt_price_at_tick(tick_upper)
    if is_base_0:
        liquidity = get_liquidity_from_single_amount_0(pool_state.sqrt_price_x64, sqrt_lower, sqrt_upper, input_amount)
    else:
        liquidity = get_liquidity_from_single_amount_1(pool_state.sqrt_price_x64, sqrt_lower, sqrt_upper, input_amount)
    if liquidity == 0:
        raise InvalidAmountError(
            f"{'token 0' if is_base_0 else 'token 1'} cannot fund range [{tick_lower}, {tick_upper}] "
            f"at tick {pool_state.tick_current}",
            "input_amount",
        )

    amount_0, amount_1 = get_delta_amounts_signed(
        pool_state.tick_current, pool_state.sqrt_price_x64, tick_lower, tick_upper, liquidity
    )
    return LiquidityPlan(
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        liquidity=liquidity,
        amount_0=amount_0,
        amount_1=amount_1,
        amount_0_limit=amount_with_slippage(amount_0, slippage, True),
        amount_1_limit=amount_with_slippage(amount_1, slippage, True),
    )


def plan_remove_liquidity(
    pool_state: PoolState,
    tick_lower: int,
    tick_upper: int,
    liquidity: int,
    slippage: Number,
) -> LiquidityPlan:
    """Expected withdrawal and slippage-reduced token minima"""
    check_tick_range(tick_lower, tick_upper, pool_state.tick_spacing)
    if liquidity <= 0:
        raise InvalidAmountError.zero("liquidity")
    amount_0, amount_1 = get_delta_amounts_signed(
        pool_state.tick_current, pool_state.sqrt_price_x64, tick_lower, tick_upper, -liquidity
    )
    return LiquidityPlan(
        tick_lower=tick_lower,
        tick_upper=tick_upper,
        liquidity=liquidity,
        amount_0=amount_0,
        amount_1=amount_1,
        amount_0_limit=amount_with_slippage(amount_0, slippage, False),
        amount_1_limit=amount_with_slippage(amount_1, slippage, False),
    )


def swap_threshold(quote: SwapQuote, is_base_input: bool, slippage: Number) -> int:
    """Minimum output (base input) or maximum input (base output) for a quote"""
    if not quote.filled:
        logger.warning(
            f"Quote leaves {quote.amount_remaining} of {quote.amount_specified} unfilled; "
            f"threshold covers the routed tick arrays only"
        )
    return amount_with_slippage(quote.other_amount, slippage, not is_base_input)


def with_compute_budget(
    instructions: Sequence[Instruction],
    compute_units: Optional[int] = None,
    compute_unit_price: Optional[int] = None,
) -> List[Instruction]:
    """Prepend compute unit limit/price instructions when requested"""
    result: List[Instruction] = []
    if compute_units:
        result.append(set_compute_unit_limit(compute_units))
    if compute_unit_price:
        result.append(set_compute_unit_price(compute_unit_price))
    result.extend(instructions)
    return result


def _check_u64(name: str, value: int) -> None:
    if value < 0 or value > MAX_UINT64:
        raise InvalidAmountError.overflow(name, 64)


def _check_u128(name: str, value: int) -> None:
    if value < 0 or value > MAX_UINT128:
        raise InvalidAmountError.overflow(name, 128)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class InstructionBuilder:
    """
    Builds CLMM instructions for one program id.

    Usage:
        builder = InstructionBuilder(program_id)
        ix = builder.swap_v2(payer, pool_id, pool_state, ...)
    """

    def __init__(self, program_id: Pubkey):
        self.program_id = program_id
        self.token_program = Pubkey.from_string(TOKEN_PROGRAM_ID)
        self.token_program_2022 = Pubkey.from_string(TOKEN_2022_PROGRAM_ID)
        self.system_program = Pubkey.from_string(SYSTEM_PROGRAM_ID)
        self.rent = Pubkey.from_string(RENT_SYSVAR_ID)
        self.memo_program = Pubkey.from_string(MEMO_PROGRAM_ID)
        self.metadata_program = Pubkey.from_string(METADATA_PROGRAM_ID)
        self.ata_program = Pubkey.from_string(ASSOCIATED_TOKEN_PROGRAM_ID)

    def _instruction(self, args, accounts: List[AccountMeta]) -> Instruction:
        return Instruction(self.program_id, encode(args), accounts)

    # -- admin -------------------------------------------------------------

    def create_amm_config(
        self,
        owner: Pubkey,
        index: int,
        tick_spacing: int,
        trade_fee_rate: int,
        protocol_fee_rate: int,
        fund_fee_rate: int,
    ) -> Instruction:
        if tick_spacing <= 0:
            raise InvalidTickRangeError(f"tick_spacing must be positive, got {tick_spacing}")
        amm_config = config_address(self.program_id, index).address
        accounts = [
            AccountMeta(owner, is_signer=True, is_writable=True),                 # 0: owner
            AccountMeta(amm_config, is_signer=False, is_writable=True),           # 1: amm_config
            AccountMeta(self.system_program, is_signer=False, is_writable=False), # 2: system_program
        ]
        args = CreateAmmConfigArgs(index, tick_spacing, trade_fee_rate, protocol_fee_rate, fund_fee_rate)
        return self._instruction(args, accounts)

    def update_amm_config(
        self,
        owner: Pubkey,
        amm_config: Pubkey,
        param: int,
        value: int,
        remaining: Sequence[Pubkey] = (),
    ) -> Instruction:
        accounts = [
            AccountMeta(owner, is_signer=True, is_writable=False),
            AccountMeta(amm_config, is_signer=False, is_writable=True),
        ]
        # New owner / fund owner keys travel as remaining accounts
        accounts.extend(AccountMeta(k, is_signer=False, is_writable=False) for k in remaining)
        return self._instruction(UpdateAmmConfigArgs(param, value), accounts)

    def create_operation_account(self, owner: Pubkey) -> Instruction:
        accounts = [
            AccountMeta(owner, is_signer=True, is_writable=True),
            AccountMeta(operation_address(self.program_id).address, is_signer=False, is_writable=True),
            AccountMeta(self.system_program, is_signer=False, is_writable=False),
        ]
        return self._instruction(CreateOperationAccountArgs(), accounts)

    def update_operation_account(self, owner: Pubkey, param: int, keys: Sequence[Pubkey]) -> Instruction:
        accounts = [
            AccountMeta(owner, is_signer=True, is_writable=False),
            AccountMeta(operation_address(self.program_id).address, is_signer=False, is_writable=True),
            AccountMeta(self.system_program, is_signer=False, is_writable=False),
        ]
        return self._instruction(UpdateOperationAccountArgs(param, tuple(keys)), accounts)

    def create_pool(
        self,
        creator: Pubkey,
        amm_config: Pubkey,
        mint0: Pubkey,
        mint1: Pubkey,
        token_program_0: Pubkey,
        token_program_1: Pubkey,
        sqrt_price_x64: int,
        open_time: int = 0,
    ) -> Instruction:
        """
        Build create_pool for a canonically ordered mint pair.

        Raises:
            ConfigurationError: If mint0 does not sort below mint1
        """
        if bytes(mint0) >= bytes(mint1):
            raise ConfigurationError.invalid("mint0/mint1", "mint0 must sort below mint1 by bytes")
        _check_u128("sqrt_price_x64", sqrt_price_x64)

        pool = pool_address(self.program_id, amm_config, mint0, mint1).address
        accounts = [
            AccountMeta(creator, is_signer=True, is_writable=True),                                    # 0: pool_creator
            AccountMeta(amm_config, is_signer=False, is_writable=False),                               # 1: amm_config
            AccountMeta(pool, is_signer=False, is_writable=True),                                      # 2: pool_state
            AccountMeta(mint0, is_signer=False, is_writable=False),                                    # 3: token_mint_0
            AccountMeta(mint1, is_signer=False, is_writable=False),                                    # 4: token_mint_1
            AccountMeta(pool_vault_address(self.program_id, pool, mint0).address, False, True),        # 5: token_vault_0
            AccountMeta(pool_vault_address(self.program_id, pool, mint1).address, False, True),        # 6: token_vault_1
            AccountMeta(observation_address(self.program_id, pool).address, False, True),              # 7: observation_state
            AccountMeta(bitmap_extension_address(self.program_id, pool).address, False, True),         # 8: tick_array_bitmap
            AccountMeta(token_program_0, is_signer=False, is_writable=False),                          # 9: token_program_0
            AccountMeta(token_program_1, is_signer=False, is_writable=False),                          # 10: token_program_1
            AccountMeta(self.system_program, is_signer=False, is_writable=False),                      # 11: system_program
            AccountMeta(self.rent, is_signer=False, is_writable=False),                                # 12: rent
        ]
        return self._instruction(CreatePoolArgs(sqrt_price_x64, open_time), accounts)

    def initialize_reward(
        self,
        funder: Pubkey,
        funder_token_account: Pubkey,
        amm_config: Pubkey,
        pool: Pubkey,
        reward_mint: Pubkey,
        reward_token_program: Pubkey,
        open_time: int,
        end_time: int,
        emissions_per_second_x64: int,
    ) -> Instruction:
        if end_time <= open_time:
            raise InvalidAmountError(f"end_time {end_time} must be after open_time {open_time}", "end_time")
        if emissions_per_second_x64 <= 0:
            raise InvalidAmountError.zero("emissions_per_second_x64")
        accounts = [
            AccountMeta(funder, is_signer=True, is_writable=True),
            AccountMeta(funder_token_account, is_signer=False, is_writable=True),
            AccountMeta(amm_config, is_signer=False, is_writable=False),
            AccountMeta(pool, is_signer=False, is_writable=True),
            AccountMeta(operation_address(self.program_id).address, is_signer=False, is_writable=False),
            AccountMeta(reward_mint, is_signer=False, is_writable=False),
            AccountMeta(reward_vault_address(self.program_id, pool, reward_mint).address, False, True),
            AccountMeta(reward_token_program, is_signer=False, is_writable=False),
            AccountMeta(self.system_program, is_signer=False, is_writable=False),
            AccountMeta(self.rent, is_signer=False, is_writable=False),
        ]
        args = InitializeRewardArgs(open_time, end_time, emissions_per_second_x64)
        return self._instruction(args, accounts)

    def set_reward_params(
        self,
        authority: Pubkey,
        amm_config: Pubkey,
        pool: Pubkey,
        reward_index: int,
        emissions_per_second_x64: int,
        open_time: int,
        end_time: int,
        remaining_accounts: Sequence[AccountMeta] = (),
    ) -> Instruction:
        """
        remaining_accounts carries (reward vault, authority token account,
        reward mint) when the reward needs topping up.
        """
        accounts = [
            AccountMeta(authority, is_signer=True, is_writable=False),
            AccountMeta(amm_config, is_signer=False, is_writable=False),
            AccountMeta(pool, is_signer=False, is_writable=True),
            AccountMeta(operation_address(self.program_id).address, is_signer=False, is_writable=False),
            AccountMeta(self.token_program, is_signer=False, is_writable=False),
            AccountMeta(self.token_program_2022, is_signer=False, is_writable=False),
        ]
        accounts.extend(remaining_accounts)
        args = SetRewardParamsArgs(reward_index, emissions_per_second_x64, open_time, end_time)
        return self._instruction(args, accounts)

    def transfer_reward_owner(self, authority: Pubkey, pool: Pubkey, new_owner: Pubkey) -> Instruction:
        accounts = [
            AccountMeta(authority, is_signer=True, is_writable=False),
            AccountMeta(pool, is_signer=False, is_writable=True),
        ]
        return self._instruction(TransferRewardOwnerArgs(new_owner), accounts)

    # -- positions ---------------------------------------------------------

    def _position_accounts(self, pool_id: Pubkey, pool_state: PoolState, tick_lower: int, tick_upper: int):
        spacing = pool_state.tick_spacing
        return (
            protocol_position_address(self.program_id, pool_id, tick_lower, tick_upper).address,
            tick_array_address(self.program_id, pool_id, get_array_start_index(tick_lower, spacing)).address,
            tick_array_address(self.program_id, pool_id, get_array_start_index(tick_upper, spacing)).address,
        )

    def open_position_v2(
        self,
        payer: Pubkey,
        owner: Pubkey,
        nft_mint: Pubkey,
        pool_id: Pubkey,
        pool_state: PoolState,
        tick_lower: int,
        tick_upper: int,
        liquidity: int,
        amount_0_max: int,
        amount_1_max: int,
        token_account_0: Pubkey,
        token_account_1: Pubkey,
        with_metadata: bool = False,
        base_flag: Optional[bool] = None,
    ) -> Instruction:
        """
        Open a position; nft_mint must be a fresh keypair that co-signs.

        Raises:
            InvalidTickRangeError: If the range is inverted or unaligned
            InvalidAmountError: If liquidity is zero or an amount overflows
        """
        check_tick_range(tick_lower, tick_upper, pool_state.tick_spacing)
        if liquidity <= 0 and base_flag is None:
            raise InvalidAmountError.zero("liquidity")
        _check_u128("liquidity", liquidity)
        _check_u64("amount_0_max", amount_0_max)
        _check_u64("amount_1_max", amount_1_max)

        spacing = pool_state.tick_spacing
        protocol_position, tick_array_lower, tick_array_upper = self._position_accounts(
            pool_id, pool_state, tick_lower, tick_upper
        )
        nft_account = associated_token_address(owner, nft_mint, self.token_program)

        accounts = [
            AccountMeta(payer, is_signer=True, is_writable=True),                                          # 0: payer
            AccountMeta(owner, is_signer=False, is_writable=False),                                        # 1: position_nft_owner
            AccountMeta(nft_mint, is_signer=True, is_writable=True),                                       # 2: position_nft_mint
            AccountMeta(nft_account, is_signer=False, is_writable=True),                                   # 3: position_nft_account
            AccountMeta(metadata_address(nft_mint).address, is_signer=False, is_writable=True),            # 4: metadata_account
            AccountMeta(pool_id, is_signer=False, is_writable=True),                                       # 5: pool_state
            AccountMeta(protocol_position, is_signer=False, is_writable=True),                             # 6: protocol_position
            AccountMeta(tick_array_lower, is_signer=False, is_writable=True),                              # 7: tick_array_lower
            AccountMeta(tick_array_upper, is_signer=False, is_writable=True),                              # 8: tick_array_upper
            AccountMeta(personal_position_address(self.program_id, nft_mint).address, False, True),        # 9: personal_position
            AccountMeta(token_account_0, is_signer=False, is_writable=True),                               # 10: token_account_0
            AccountMeta(token_account_1, is_signer=False, is_writable=True),                               # 11: token_account_1
            AccountMeta(pool_state.token_vault_0, is_signer=False, is_writable=True),                      # 12: token_vault_0
            AccountMeta(pool_state.token_vault_1, is_signer=False, is_writable=True),                      # 13: token_vault_1
            AccountMeta(self.rent, is_signer=False, is_writable=False),                                    # 14: rent
            AccountMeta(self.system_program, is_signer=False, is_writable=False),                          # 15: system_program
            AccountMeta(self.token_program, is_signer=False, is_writable=False),                           # 16: token_program
            AccountMeta(self.ata_program, is_signer=False, is_writable=False),                             # 17: associated_token_program
            AccountMeta(self.metadata_program, is_signer=False, is_writable=False),                        # 18: metadata_program
            AccountMeta(self.token_program_2022, is_signer=False, is_writable=False),                      # 19: token_program_2022
            AccountMeta(pool_state.token_mint_0, is_signer=False, is_writable=False),                      # 20: vault_0_mint
            AccountMeta(pool_state.token_mint_1, is_signer=False, is_writable=False),                      # 21: vault_1_mint
            # remaining
            AccountMeta(bitmap_extension_address(self.program_id, pool_id).address, False, True),
        ]
        args = OpenPositionV2Args(
            tick_lower_index=tick_lower,
            tick_upper_index=tick_upper,
            tick_array_lower_start_index=get_array_start_index(tick_lower, spacing),
            tick_array_upper_start_index=get_array_start_index(tick_upper, spacing),
            liquidity=liquidity,
            amount_0_max=amount_0_max,
            amount_1_max=amount_1_max,
            with_metadata=with_metadata,
            base_flag=base_flag,
        )
        return self._instruction(args, accounts)

    def increase_liquidity_v2(
        self,
        owner: Pubkey,
        nft_mint: Pubkey,
        pool_id: Pubkey,
        pool_state: PoolState,
        tick_lower: int,
        tick_upper: int,
        liquidity: int,
        amount_0_max: int,
        amount_1_max: int,
        token_account_0: Pubkey,
        token_account_1: Pubkey,
        nft_token_program: Optional[Pubkey] = None,
        base_flag: Optional[bool] = None,
    ) -> Instruction:
        check_tick_range(tick_lower, tick_upper, pool_state.tick_spacing)
        if liquidity <= 0 and base_flag is None:
            raise InvalidAmountError.zero("liquidity")
        _check_u128("liquidity", liquidity)
        _check_u64("amount_0_max", amount_0_max)
        _check_u64("amount_1_max", amount_1_max)

        protocol_position, tick_array_lower, tick_array_upper = self._position_accounts(
            pool_id, pool_state, tick_lower, tick_upper
        )
        nft_account = associated_token_address(owner, nft_mint, nft_token_program or self.token_program)

        accounts = [
            AccountMeta(owner, is_signer=True, is_writable=False),                                     # 0: nft_owner
            AccountMeta(nft_account, is_signer=False, is_writable=False),                              # 1: nft_account
            AccountMeta(pool_id, is_signer=False, is_writable=True),                                   # 2: pool_state
            AccountMeta(protocol_position, is_signer=False, is_writable=True),                         # 3: protocol_position
            AccountMeta(personal_position_address(self.program_id, nft_mint).address, False, True),    # 4: personal_position
            AccountMeta(tick_array_lower, is_signer=False, is_writable=True),                          # 5: tick_array_lower
            AccountMeta(tick_array_upper, is_signer=False, is_writable=True),                          # 6: tick_array_upper
            AccountMeta(token_account_0, is_signer=False, is_writable=True),                           # 7: token_account_0
            AccountMeta(token_account_1, is_signer=False, is_writable=True),                           # 8: token_account_1
            AccountMeta(pool_state.token_vault_0, is_signer=False, is_writable=True),                  # 9: token_vault_0
            AccountMeta(pool_state.token_vault_1, is_signer=False, is_writable=True),                  # 10: token_vault_1
            AccountMeta(self.token_program, is_signer=False, is_writable=False),                       # 11: token_program
            AccountMeta(self.token_program_2022, is_signer=False, is_writable=False),                  # 12: token_program_2022
            AccountMeta(pool_state.token_mint_0, is_signer=False, is_writable=False),                  # 13: vault_0_mint
            AccountMeta(pool_state.token_mint_1, is_signer=False, is_writable=False),                  # 14: vault_1_mint
            # remaining
            AccountMeta(bitmap_extension_address(self.program_id, pool_id).address, False, True),
        ]
        args = IncreaseLiquidityV2Args(liquidity, amount_0_max, amount_1_max, base_flag)
        return self._instruction(args, accounts)

    def decrease_liquidity_v2(
        self,
        owner: Pubkey,
        nft_mint: Pubkey,
        pool_id: Pubkey,
        pool_state: PoolState,
        tick_lower: int,
        tick_upper: int,
        liquidity: int,
        amount_0_min: int,
        amount_1_min: int,
        recipient_token_account_0: Pubkey,
        recipient_token_account_1: Pubkey,
        reward_recipients: Sequence[Pubkey] = (),
        nft_token_program: Optional[Pubkey] = None,
    ) -> Instruction:
        """
        Remove liquidity and collect fees and rewards.

        reward_recipients holds one token account per initialized pool reward,
        in reward order.
        """
        check_tick_range(tick_lower, tick_upper, pool_state.tick_spacing)
        if liquidity <= 0:
            raise InvalidAmountError.zero("liquidity")
        _check_u128("liquidity", liquidity)
        _check_u64("amount_0_min", amount_0_min)
        _check_u64("amount_1_min", amount_1_min)

        protocol_position, tick_array_lower, tick_array_upper = self._position_accounts(
            pool_id, pool_state, tick_lower, tick_upper
        )
        nft_account = associated_token_address(owner, nft_mint, nft_token_program or self.token_program)

        accounts = [
            AccountMeta(owner, is_signer=True, is_writable=False),                                     # 0: nft_owner
            AccountMeta(nft_account, is_signer=False, is_writable=False),                              # 1: nft_account
            AccountMeta(personal_position_address(self.program_id, nft_mint).address, False, True),    # 2: personal_position
            AccountMeta(pool_id, is_signer=False, is_writable=True),                                   # 3: pool_state
            AccountMeta(protocol_position, is_signer=False, is_writable=True),                         # 4: protocol_position
            AccountMeta(pool_state.token_vault_0, is_signer=False, is_writable=True),                  # 5: token_vault_0
            AccountMeta(pool_state.token_vault_1, is_signer=False, is_writable=True),                  # 6: token_vault_1
            AccountMeta(tick_array_lower, is_signer=False, is_writable=True),                          # 7: tick_array_lower
            AccountMeta(tick_array_upper, is_signer=False, is_writable=True),                          # 8: tick_array_upper
            AccountMeta(recipient_token_account_0, is_signer=False, is_writable=True),                 # 9: recipient_token_account_0
            AccountMeta(recipient_token_account_1, is_signer=False, is_writable=True),                 # 10: recipient_token_account_1
            AccountMeta(self.token_program, is_signer=False, is_writable=False),                       # 11: token_program
            AccountMeta(self.token_program_2022, is_signer=False, is_writable=False),                  # 12: token_program_2022
            AccountMeta(self.memo_program, is_signer=False, is_writable=False),                        # 13: memo_program
            AccountMeta(pool_state.token_mint_0, is_signer=False, is_writable=False),                  # 14: vault_0_mint
            AccountMeta(pool_state.token_mint_1, is_signer=False, is_writable=False),                  # 15: vault_1_mint
            # remaining
            AccountMeta(bitmap_extension_address(self.program_id, pool_id).address, False, True),
        ]

        rewards = [r for r in pool_state.reward_infos if r.initialized]
        if len(reward_recipients) != len(rewards):
            raise InvalidAmountError(
                f"Expected {len(rewards)} reward recipient accounts, got {len(reward_recipients)}",
                "reward_recipients",
            )
        for reward, recipient in zip(rewards, reward_recipients):
            accounts.append(AccountMeta(reward.token_vault, is_signer=False, is_writable=True))
            accounts.append(AccountMeta(recipient, is_signer=False, is_writable=True))
            accounts.append(AccountMeta(reward.token_mint, is_signer=False, is_writable=False))

        args = DecreaseLiquidityV2Args(liquidity, amount_0_min, amount_1_min)
        return self._instruction(args, accounts)

    # -- swaps -------------------------------------------------------------

    def _swap_common(
        self,
        pool_id: Pubkey,
        pool_state: PoolState,
        route: TickArrayRoute,
        zero_for_one: bool,
        amount: int,
        other_amount_threshold: int,
        sqrt_price_limit_x64: Optional[int],
    ) -> int:
        if amount <= 0:
            raise InvalidAmountError.zero("amount")
        _check_u64("amount", amount)
        _check_u64("other_amount_threshold", other_amount_threshold)
        if route.pool_id != pool_id or route.zero_for_one != zero_for_one or not route.addresses:
            raise ConfigurationError.invalid("route", "tick array route does not match pool and direction")
        return resolve_sqrt_price_limit(pool_state, zero_for_one, sqrt_price_limit_x64)

    def swap(
        self,
        payer: Pubkey,
        pool_id: Pubkey,
        pool_state: PoolState,
        input_token_account: Pubkey,
        output_token_account: Pubkey,
        zero_for_one: bool,
        route: TickArrayRoute,
        amount: int,
        other_amount_threshold: int,
        sqrt_price_limit_x64: Optional[int] = None,
        is_base_input: bool = True,
    ) -> Instruction:
        """
        Legacy swap (SPL Token only). The first routed tick array is a fixed
        account; the rest follow the bitmap extension as remaining accounts.

        Raises:
            InvalidAmountError: If amount is zero
            SlippageExceededError: If the limit price is on the wrong side
        """
        limit = self._swap_common(
            pool_id, pool_state, route, zero_for_one, amount, other_amount_threshold, sqrt_price_limit_x64
        )
        input_vault, output_vault = (
            (pool_state.token_vault_0, pool_state.token_vault_1)
            if zero_for_one
            else (pool_state.token_vault_1, pool_state.token_vault_0)
        )

        accounts = [
            AccountMeta(payer, is_signer=True, is_writable=False),                         # 0: payer
            AccountMeta(pool_state.amm_config, is_signer=False, is_writable=False),        # 1: amm_config
            AccountMeta(pool_id, is_signer=False, is_writable=True),                       # 2: pool_state
            AccountMeta(input_token_account, is_signer=False, is_writable=True),           # 3: input_token_account
            AccountMeta(output_token_account, is_signer=False, is_writable=True),          # 4: output_token_account
            AccountMeta(input_vault, is_signer=False, is_writable=True),                   # 5: input_vault
            AccountMeta(output_vault, is_signer=False, is_writable=True),                  # 6: output_vault
            AccountMeta(pool_state.observation_key, is_signer=False, is_writable=True),    # 7: observation_state
            AccountMeta(self.token_program, is_signer=False, is_writable=False),           # 8: token_program
            AccountMeta(route.first, is_signer=False, is_writable=True),                   # 9: tick_array
            # remaining
            AccountMeta(bitmap_extension_address(self.program_id, pool_id).address, False, True),
        ]
        accounts.extend(AccountMeta(a, is_signer=False, is_writable=True) for a in route.addresses[1:])

        args = SwapArgs(amount, other_amount_threshold, limit, is_base_input)
        return self._instruction(args, accounts)

    def swap_v2(
        self,
        payer: Pubkey,
        pool_id: Pubkey,
        pool_state: PoolState,
        input_token_account: Pubkey,
        output_token_account: Pubkey,
        zero_for_one: bool,
        route: TickArrayRoute,
        amount: int,
        other_amount_threshold: int,
        sqrt_price_limit_x64: Optional[int] = None,
        is_base_input: bool = True,
    ) -> Instruction:
        """
        Token-2022 aware swap. All routed tick arrays follow the bitmap
        extension as remaining accounts.
        """
        limit = self._swap_common(
            pool_id, pool_state, route, zero_for_one, amount, other_amount_threshold, sqrt_price_limit_x64
        )
        if zero_for_one:
            input_vault, output_vault = pool_state.token_vault_0, pool_state.token_vault_1
            input_mint, output_mint = pool_state.token_mint_0, pool_state.token_mint_1
        else:
            input_vault, output_vault = pool_state.token_vault_1, pool_state.token_vault_0
            input_mint, output_mint = pool_state.token_mint_1, pool_state.token_mint_0

        accounts = [
            AccountMeta(payer, is_signer=True, is_writable=False),                         # 0: payer
            AccountMeta(pool_state.amm_config, is_signer=False, is_writable=False),        # 1: amm_config
            AccountMeta(pool_id, is_signer=False, is_writable=True),                       # 2: pool_state
            AccountMeta(input_token_account, is_signer=False, is_writable=True),           # 3: input_token_account
            AccountMeta(output_token_account, is_signer=False, is_writable=True),          # 4: output_token_account
            AccountMeta(input_vault, is_signer=False, is_writable=True),                   # 5: input_vault
            AccountMeta(output_vault, is_signer=False, is_writable=True),                  # 6: output_vault
            AccountMeta(pool_state.observation_key, is_signer=False, is_writable=True),    # 7: observation_state
            AccountMeta(self.token_program, is_signer=False, is_writable=False),           # 8: token_program
            AccountMeta(self.token_program_2022, is_signer=False, is_writable=False),      # 9: token_program_2022
            AccountMeta(self.memo_program, is_signer=False, is_writable=False),            # 10: memo_program
            AccountMeta(input_mint, is_signer=False, is_writable=False),                   # 11: input_vault_mint
            AccountMeta(output_mint, is_signer=False, is_writable=False),                  # 12: output_vault_mint
            # remaining
            AccountMeta(bitmap_extension_address(self.program_id, pool_id).address, False, True),
        ]
        accounts.extend(AccountMeta(a, is_signer=False, is_writable=True) for a in route.addresses)

        args = SwapV2Args(amount, other_amount_threshold, limit, is_base_input)
        return self._instruction(args, accounts)
