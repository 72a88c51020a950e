"""
Raydium CLMM program-derived addresses

Every program-owned account is found from (program_id, seeds). Integer seeds
are big-endian; seed order matters.
"""

import struct
from typing import NamedTuple, Optional, Sequence, Tuple, Union

from solders.pubkey import Pubkey

from .constants import (
    AMM_CONFIG_SEED,
    POOL_SEED,
    POOL_VAULT_SEED,
    POOL_REWARD_VAULT_SEED,
    POSITION_SEED,
    TICK_ARRAY_SEED,
    POOL_TICK_ARRAY_BITMAP_SEED,
    OBSERVATION_SEED,
    OPERATION_SEED,
    SUPPORT_MINT_SEED,
    METADATA_SEED,
    MAX_SEED_LEN,
    MAX_SEEDS,
    METADATA_PROGRAM_ID,
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from ..errors import SeedTooLongError


Seed = Union[bytes, Pubkey]


class ProgramAddress(NamedTuple):
    """A derived address and the bump that puts it off the curve"""
    address: Pubkey
    bump: int


def derive(program_id: Pubkey, seeds: Sequence[Seed]) -> ProgramAddress:
    """
    Derive a program address from ordered seeds.

    Args:
        program_id: Owning program
        seeds: Byte strings or public keys, in order

    Returns:
        ProgramAddress(address, bump)

    Raises:
        SeedTooLongError: If a seed exceeds 32 bytes or more than 15 seeds are given
    """
    raw = [bytes(seed) for seed in seeds]
    # find_program_address appends the bump as one more seed
    if len(raw) >= MAX_SEEDS:
        raise SeedTooLongError.count(len(raw), MAX_SEEDS - 1)
    for index, seed in enumerate(raw):
        if len(seed) > MAX_SEED_LEN:
            raise SeedTooLongError.seed(index, len(seed), MAX_SEED_LEN)

    address, bump = Pubkey.find_program_address(raw, program_id)
    return ProgramAddress(address, bump)


def be_u16(value: int) -> bytes:
    return struct.pack(">H", value)


def be_i32(value: int) -> bytes:
    return struct.pack(">i", value)


def canonicalize_mints(mint_a: Pubkey, mint_b: Pubkey) -> Tuple[Pubkey, Pubkey]:
    """
    Order a mint pair the way the program stores it.

    Pure and order independent: canonicalize_mints(a, b) == canonicalize_mints(b, a).
    """
    if bytes(mint_a) <= bytes(mint_b):
        return mint_a, mint_b
    return mint_b, mint_a


def config_address(program_id: Pubkey, index: int) -> ProgramAddress:
    return derive(program_id, [AMM_CONFIG_SEED, be_u16(index)])


def pool_address(program_id: Pubkey, amm_config: Pubkey, mint0: Pubkey, mint1: Pubkey) -> ProgramAddress:
    """Pool PDA for an already-canonical mint pair"""
    return derive(program_id, [POOL_SEED, amm_config, mint0, mint1])


def resolve_pool(program_id: Pubkey, amm_config: Pubkey, mint_a: Pubkey, mint_b: Pubkey) -> ProgramAddress:
    """Pool PDA for a mint pair in either order"""
    mint0, mint1 = canonicalize_mints(mint_a, mint_b)
    return pool_address(program_id, amm_config, mint0, mint1)


def bitmap_extension_address(program_id: Pubkey, pool: Pubkey) -> ProgramAddress:
    return derive(program_id, [POOL_TICK_ARRAY_BITMAP_SEED, pool])


def tick_array_address(program_id: Pubkey, pool: Pubkey, start_index: int) -> ProgramAddress:
    return derive(program_id, [TICK_ARRAY_SEED, pool, be_i32(start_index)])


def pool_vault_address(program_id: Pubkey, pool: Pubkey, mint: Pubkey) -> ProgramAddress:
    return derive(program_id, [POOL_VAULT_SEED, pool, mint])


def observation_address(program_id: Pubkey, pool: Pubkey) -> ProgramAddress:
    return derive(program_id, [OBSERVATION_SEED, pool])


def protocol_position_address(
    program_id: Pubkey,
    pool: Pubkey,
    tick_lower: int,
    tick_upper: int,
) -> ProgramAddress:
    return derive(program_id, [POSITION_SEED, pool, be_i32(tick_lower), be_i32(tick_upper)])


def personal_position_address(program_id: Pubkey, nft_mint: Pubkey) -> ProgramAddress:
    return derive(program_id, [POSITION_SEED, nft_mint])


def reward_vault_address(program_id: Pubkey, pool: Pubkey, reward_mint: Pubkey) -> ProgramAddress:
    return derive(program_id, [POOL_REWARD_VAULT_SEED, pool, reward_mint])


def operation_address(program_id: Pubkey) -> ProgramAddress:
    return derive(program_id, [OPERATION_SEED])


def support_mint_address(program_id: Pubkey, mint: Pubkey) -> ProgramAddress:
    return derive(program_id, [SUPPORT_MINT_SEED, mint])


def metadata_address(mint: Pubkey) -> ProgramAddress:
    """Metaplex metadata account for a mint"""
    metadata_program = Pubkey.from_string(METADATA_PROGRAM_ID)
    return derive(metadata_program, [METADATA_SEED, metadata_program, mint])


def associated_token_address(
    owner: Pubkey,
    mint: Pubkey,
    token_program: Optional[Pubkey] = None,
) -> Pubkey:
    """
    Get associated token account address.

    Args:
        owner: Wallet owner
        mint: Token mint
        token_program: Token program (defaults to Tokenkeg)

    Returns:
        ATA address
    """
    if token_program is None:
        token_program = Pubkey.from_string(TOKEN_PROGRAM_ID)
    ata_program = Pubkey.from_string(ASSOCIATED_TOKEN_PROGRAM_ID)
    return derive(ata_program, [owner, token_program, mint]).address
