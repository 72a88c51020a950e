"""
Raydium CLMM Constants

Program ids, PDA seeds and the fixed limits of the tick/price domain.
"""

import hashlib


def anchor_discriminator(namespace: str, name: str) -> bytes:
    """
    Compute an Anchor discriminator

    Args:
        namespace: "account", "global" (instructions) or "event"
        name: Account/event struct name or snake_case instruction name

    Returns:
        First 8 bytes of sha256("<namespace>:<name>")
    """
    return hashlib.sha256(f"{namespace}:{name}".encode("utf-8")).digest()[:8]


# Raydium CLMM Program ID (mainnet)
CLMM_PROGRAM_ID = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"

# Token Programs
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

# Associated Token Program
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"

# System Program
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"

# Rent Sysvar
RENT_SYSVAR_ID = "SysvarRent111111111111111111111111111111111"

# Metadata Program (Metaplex)
METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"

# Memo Program
MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"

# PDA seeds
AMM_CONFIG_SEED = b"amm_config"
POOL_SEED = b"pool"
POOL_VAULT_SEED = b"pool_vault"
POOL_REWARD_VAULT_SEED = b"pool_reward_vault"
POSITION_SEED = b"position"
TICK_ARRAY_SEED = b"tick_array"
POOL_TICK_ARRAY_BITMAP_SEED = b"pool_tick_array_bitmap_extension"
OBSERVATION_SEED = b"observation"
OPERATION_SEED = b"operation"
SUPPORT_MINT_SEED = b"support_mint"
METADATA_SEED = b"metadata"

# PDA derivation limits
MAX_SEED_LEN = 32
MAX_SEEDS = 16

# Tick array size (Raydium CLMM uses 60 ticks per tick array)
TICK_ARRAY_SIZE = 60

# Bits in the pool's inline tick array bitmap ([u64; 16])
TICK_ARRAY_BITMAP_SIZE = 512

# Entries on each side of the bitmap extension
EXTENSION_TICKARRAY_BITMAP_SIZE = 14

# Tick bounds
MIN_TICK = -443636
MAX_TICK = 443636

# sqrt price bounds (Q64.64) matching MIN_TICK / MAX_TICK
MIN_SQRT_PRICE_X64 = 4295048016
MAX_SQRT_PRICE_X64 = 79226673521066979257578248091

# Q64 constant for fixed-point math
Q64 = 2 ** 64

# Integer limits
MAX_UINT64 = 2 ** 64 - 1
MAX_UINT128 = 2 ** 128 - 1

# Fee rates are expressed in hundredths of a bip
FEE_RATE_DENOMINATOR = 1_000_000

# Reward slots per pool
REWARD_NUM = 3

# Observation ring buffer length
OBSERVATION_NUM = 100

# Operation account capacity
OPERATION_SIZE_USIZE = 10
WHITE_MINT_SIZE_USIZE = 100

# Prefix of "Program data:" log lines carrying base64 event payloads
PROGRAM_DATA_PREFIX = "Program data: "
