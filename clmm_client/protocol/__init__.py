"""
Raydium CLMM protocol layer

- pda: program address derivation
- codec, states, events: discriminator-tagged wire records
- tick_bitmap, router: tick array discovery for swaps
- math, swap_math: Q64.64 fixed-point tick/price/liquidity math
- instructions: instruction builders
- logs: transaction log and instruction decoding
"""

from .pda import (
    ProgramAddress,
    derive,
    canonicalize_mints,
    config_address,
    pool_address,
    resolve_pool,
    bitmap_extension_address,
    tick_array_address,
    pool_vault_address,
    observation_address,
    protocol_position_address,
    personal_position_address,
    reward_vault_address,
    operation_address,
    support_mint_address,
    metadata_address,
    associated_token_address,
)
from .codec import (
    DECODE_TABLE,
    DecodeTable,
    encode,
    decode,
    decode_any,
    encode_layout,
    decode_layout,
    account_size,
    to_dict,
)
from .states import (
    AmmConfig,
    PoolState,
    RewardInfo,
    TickState,
    TickArrayState,
    TickArrayBitmapExtension,
    PersonalPositionState,
    ProtocolPositionState,
    OperationState,
    ObservationState,
    SplMint,
    SplTokenAccount,
)
from .router import TickArrayRoute, TickArrayRouter
from .swap_math import SwapQuote, quote_swap, resolve_sqrt_price_limit
from .instructions import (
    InstructionBuilder,
    LiquidityPlan,
    ticks_from_prices,
    plan_add_liquidity,
    plan_remove_liquidity,
    swap_threshold,
    with_compute_budget,
)
from .logs import LogEntry, decode_logs, decode_event, decode_instruction

__all__ = [
    # Addresses
    "ProgramAddress",
    "derive",
    "canonicalize_mints",
    "config_address",
    "pool_address",
    "resolve_pool",
    "bitmap_extension_address",
    "tick_array_address",
    "pool_vault_address",
    "observation_address",
    "protocol_position_address",
    "personal_position_address",
    "reward_vault_address",
    "operation_address",
    "support_mint_address",
    "metadata_address",
    "associated_token_address",
    # Codec
    "DECODE_TABLE",
    "DecodeTable",
    "encode",
    "decode",
    "decode_any",
    "encode_layout",
    "decode_layout",
    "account_size",
    "to_dict",
    # Accounts
    "AmmConfig",
    "PoolState",
    "RewardInfo",
    "TickState",
    "TickArrayState",
    "TickArrayBitmapExtension",
    "PersonalPositionState",
    "ProtocolPositionState",
    "OperationState",
    "ObservationState",
    "SplMint",
    "SplTokenAccount",
    # Routing and quoting
    "TickArrayRoute",
    "TickArrayRouter",
    "SwapQuote",
    "quote_swap",
    "resolve_sqrt_price_limit",
    # Instructions
    "InstructionBuilder",
    "LiquidityPlan",
    "ticks_from_prices",
    "plan_add_liquidity",
    "plan_remove_liquidity",
    "swap_threshold",
    "with_compute_budget",
    # Logs
    "LogEntry",
    "decode_logs",
    "decode_event",
    "decode_instruction",
]
