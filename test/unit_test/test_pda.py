"""
Test Program Address Derivation

Tests for CLMM PDA seeds, mint canonicalization and seed limits.
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def test_canonicalize_mints_symmetric():
    """Test mint pair ordering is independent of argument order"""
    from clmm_fixtures import SOL_MINT, USDC_MINT
    from clmm_client.protocol.pda import canonicalize_mints

    print("Testing canonicalize_mints...")

    forward = canonicalize_mints(SOL_MINT, USDC_MINT)
    backward = canonicalize_mints(USDC_MINT, SOL_MINT)
    assert forward == backward, "Order of arguments must not matter"
    assert bytes(forward[0]) < bytes(forward[1]), "First mint must sort lower by bytes"

    print("  canonicalize_mints: PASSED")


def test_resolve_pool_any_order():
    """Test pool address is the same for either mint order"""
    from clmm_fixtures import PROGRAM_ID, AMM_CONFIG, SOL_MINT, USDC_MINT, POOL_ID
    from clmm_client.protocol.pda import resolve_pool

    print("Testing resolve_pool...")

    a = resolve_pool(PROGRAM_ID, AMM_CONFIG, SOL_MINT, USDC_MINT)
    b = resolve_pool(PROGRAM_ID, AMM_CONFIG, USDC_MINT, SOL_MINT)
    assert a == b, "Pool PDA must not depend on mint order"
    assert a.address == POOL_ID
    assert 0 <= a.bump <= 255

    print("  resolve_pool: PASSED")


def test_deterministic_derivation():
    """Test derivation is repeatable and matches the raw seed layout"""
    from solders.pubkey import Pubkey
    from clmm_fixtures import PROGRAM_ID, POOL_ID
    from clmm_client.protocol.pda import tick_array_address, protocol_position_address

    print("Testing deterministic derivation...")

    first = tick_array_address(PROGRAM_ID, POOL_ID, -600)
    second = tick_array_address(PROGRAM_ID, POOL_ID, -600)
    assert first == second, "Same inputs must give the same address"

    # Integer seeds are big-endian two's complement
    expected, bump = Pubkey.find_program_address(
        [b"tick_array", bytes(POOL_ID), (-600).to_bytes(4, "big", signed=True)],
        PROGRAM_ID,
    )
    assert first.address == expected
    assert first.bump == bump

    assert tick_array_address(PROGRAM_ID, POOL_ID, 600).address != first.address

    expected, _ = Pubkey.find_program_address(
        [b"position", bytes(POOL_ID), (-120).to_bytes(4, "big", signed=True), (60).to_bytes(4, "big", signed=True)],
        PROGRAM_ID,
    )
    assert protocol_position_address(PROGRAM_ID, POOL_ID, -120, 60).address == expected

    print("  deterministic derivation: PASSED")


def test_config_address_u16_seed():
    """Test AMM config seeds its index as big-endian u16"""
    from solders.pubkey import Pubkey
    from clmm_fixtures import PROGRAM_ID
    from clmm_client.protocol.pda import config_address

    print("Testing config_address...")

    expected, _ = Pubkey.find_program_address([b"amm_config", (1).to_bytes(2, "big")], PROGRAM_ID)
    assert config_address(PROGRAM_ID, 1).address == expected
    assert config_address(PROGRAM_ID, 0).address != expected

    print("  config_address: PASSED")


def test_single_key_addresses():
    """Test addresses seeded by one key differ per seed prefix"""
    from solders.keypair import Keypair
    from clmm_fixtures import PROGRAM_ID, POOL_ID, MINT0
    from clmm_client.protocol.pda import (
        personal_position_address,
        bitmap_extension_address,
        observation_address,
        operation_address,
        reward_vault_address,
        pool_vault_address,
        metadata_address,
        associated_token_address,
        support_mint_address,
    )

    print("Testing single key addresses...")

    nft_mint = Keypair().pubkey()
    addresses = {
        personal_position_address(PROGRAM_ID, nft_mint).address,
        bitmap_extension_address(PROGRAM_ID, POOL_ID).address,
        observation_address(PROGRAM_ID, POOL_ID).address,
        operation_address(PROGRAM_ID).address,
        reward_vault_address(PROGRAM_ID, POOL_ID, MINT0).address,
        pool_vault_address(PROGRAM_ID, POOL_ID, MINT0).address,
        metadata_address(nft_mint).address,
        associated_token_address(nft_mint, MINT0),
        support_mint_address(PROGRAM_ID, MINT0).address,
    }
    assert len(addresses) == 9, "Every seed prefix must give a distinct address"

    print("  single key addresses: PASSED")


def test_seed_too_long():
    """Test seed length and count limits"""
    from clmm_fixtures import PROGRAM_ID
    from clmm_client.protocol.pda import derive
    from clmm_client.errors import SeedTooLongError, ErrorCode

    print("Testing seed limits...")

    try:
        derive(PROGRAM_ID, [b"pool", b"x" * 33])
        assert False, "Should raise for a 33-byte seed"
    except SeedTooLongError as e:
        assert e.code == ErrorCode.SEED_TOO_LONG
        assert e.seed_index == 1

    try:
        derive(PROGRAM_ID, [b"s"] * 16)
        assert False, "Should raise for 16 seeds (bump needs the last slot)"
    except SeedTooLongError:
        pass

    # 32 bytes is still allowed
    derive(PROGRAM_ID, [b"x" * 32])

    print("  seed limits: PASSED")


def main():
    """Run all PDA tests"""
    print("=" * 60)
    print("PDA Tests")
    print("=" * 60)

    tests = [
        test_canonicalize_mints_symmetric,
        test_resolve_pool_any_order,
        test_deterministic_derivation,
        test_config_address_u16_seed,
        test_single_key_addresses,
        test_seed_too_long,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"  FAILED: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
