"""
Test Instruction Builder

Tests for liquidity/swap planning helpers and the account lists and payloads
of built instructions.
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def _route(pool, zero_for_one=True, lookahead=5):
    from clmm_fixtures import PROGRAM_ID, POOL_ID, make_extension
    from clmm_client.protocol.router import TickArrayRouter

    return TickArrayRouter(PROGRAM_ID, lookahead).route(POOL_ID, pool, make_extension(), zero_for_one)


def test_ticks_from_prices():
    """Test price range -> spacing-aligned ticks"""
    from clmm_fixtures import make_pool
    from clmm_client.protocol.instructions import ticks_from_prices
    from clmm_client.errors import InvalidTickRangeError, InvalidAmountError

    print("Testing ticks_from_prices...")

    pool = make_pool(mint_decimals_0=6, mint_decimals_1=6)
    assert ticks_from_prices(pool, 1, 2) == (0, 6930)

    for lower, upper in ((2, 1), (1, 1)):
        try:
            ticks_from_prices(pool, lower, upper)
            assert False, f"Should reject price range ({lower}, {upper})"
        except InvalidTickRangeError:
            pass

    for lower, upper in ((-1, 5), (0, 5)):
        try:
            ticks_from_prices(pool, lower, upper)
            assert False, f"Should reject non-positive price {lower}"
        except InvalidAmountError:
            pass

    print("  ticks_from_prices: PASSED")


def test_plan_add_liquidity():
    """Test liquidity and token maxima for an in-range deposit"""
    from clmm_fixtures import make_pool
    from clmm_client.protocol.instructions import plan_add_liquidity
    from clmm_client.errors import InvalidAmountError

    print("Testing plan_add_liquidity...")

    pool = make_pool()
    plan = plan_add_liquidity(pool, 600, 1800, 10 ** 9, True, 0.01)
    assert plan.liquidity > 0
    assert plan.amount_0 > 0 and plan.amount_1 > 0
    assert plan.amount_0_limit >= plan.amount_0
    assert plan.amount_1_limit >= plan.amount_1
    assert plan.amount_0 <= 10 ** 9 + 1

    try:
        plan_add_liquidity(pool, 600, 1800, 0, True, 0.01)
        assert False, "Should raise for a zero input amount"
    except InvalidAmountError:
        pass

    # Token 1 cannot fund a range entirely above the price
    try:
        plan_add_liquidity(pool, 2400, 3000, 10 ** 9, False, 0.01)
        assert False, "Should raise when the fixed side cannot fund the range"
    except InvalidAmountError as e:
        assert e.param == "input_amount"

    print("  plan_add_liquidity: PASSED")


def test_plan_remove_liquidity():
    """Test token minima for a withdrawal"""
    from clmm_fixtures import make_pool
    from clmm_client.protocol.instructions import plan_remove_liquidity
    from clmm_client.errors import InvalidAmountError

    print("Testing plan_remove_liquidity...")

    plan = plan_remove_liquidity(make_pool(), 600, 1800, 10 ** 12, 0.01)
    assert plan.amount_0 > 0 and plan.amount_1 > 0
    assert plan.amount_0_limit <= plan.amount_0
    assert plan.amount_1_limit <= plan.amount_1

    try:
        plan_remove_liquidity(make_pool(), 600, 1800, 0, 0.01)
        assert False, "Should raise for zero liquidity"
    except InvalidAmountError:
        pass

    print("  plan_remove_liquidity: PASSED")


def test_swap_threshold():
    """Test minimum output and maximum input from a quote"""
    from clmm_client.protocol.instructions import swap_threshold
    from clmm_client.protocol.swap_math import SwapQuote

    print("Testing swap_threshold...")

    quote = SwapQuote(
        amount_specified=500,
        other_amount=1000,
        amount_remaining=0,
        fee_amount=2,
        sqrt_price_x64=0,
        tick=0,
        liquidity=0,
        tick_array_start_indices=(0,),
    )
    assert swap_threshold(quote, True, 0.01) == 990
    assert swap_threshold(quote, False, 0.01) == 1010

    print("  swap_threshold: PASSED")


def test_with_compute_budget():
    """Test compute budget instructions are prepended only when requested"""
    from solders.instruction import Instruction
    from solders.pubkey import Pubkey
    from clmm_fixtures import PROGRAM_ID
    from clmm_client.protocol.instructions import with_compute_budget

    print("Testing with_compute_budget...")

    ix = Instruction(PROGRAM_ID, b"", [])
    compute_budget = Pubkey.from_string("ComputeBudget111111111111111111111111111111")

    assert with_compute_budget([ix]) == [ix]
    result = with_compute_budget([ix], compute_units=200_000, compute_unit_price=1000)
    assert len(result) == 3
    assert result[0].program_id == compute_budget
    assert result[1].program_id == compute_budget
    assert result[2] == ix

    print("  with_compute_budget: PASSED")


def test_create_pool():
    """Test create_pool requires canonical mint order"""
    from solders.keypair import Keypair
    from clmm_fixtures import PROGRAM_ID, AMM_CONFIG, MINT0, MINT1, POOL_ID
    from clmm_client.protocol.instructions import InstructionBuilder, CreatePoolArgs
    from clmm_client.protocol.codec import decode
    from clmm_client.protocol.constants import TOKEN_PROGRAM_ID, Q64
    from clmm_client.errors import ConfigurationError
    from solders.pubkey import Pubkey

    print("Testing create_pool...")

    builder = InstructionBuilder(PROGRAM_ID)
    creator = Keypair().pubkey()
    token_program = Pubkey.from_string(TOKEN_PROGRAM_ID)

    try:
        builder.create_pool(creator, AMM_CONFIG, MINT1, MINT0, token_program, token_program, Q64)
        assert False, "Should raise for mints out of order"
    except ConfigurationError:
        pass

    ix = builder.create_pool(creator, AMM_CONFIG, MINT0, MINT1, token_program, token_program, Q64)
    assert ix.program_id == PROGRAM_ID
    assert len(ix.accounts) == 13
    assert ix.accounts[0].pubkey == creator and ix.accounts[0].is_signer
    assert ix.accounts[2].pubkey == POOL_ID
    assert decode(CreatePoolArgs, bytes(ix.data)).sqrt_price_x64 == Q64

    print("  create_pool: PASSED")


def test_open_position_v2():
    """Test open_position_v2 accounts and payload"""
    from solders.keypair import Keypair
    from clmm_fixtures import PROGRAM_ID, POOL_ID, make_pool
    from clmm_client.protocol.instructions import InstructionBuilder
    from clmm_client.protocol.logs import decode_instruction
    from clmm_client.protocol.pda import tick_array_address, bitmap_extension_address
    from clmm_client.errors import InvalidTickRangeError

    print("Testing open_position_v2...")

    builder = InstructionBuilder(PROGRAM_ID)
    payer = Keypair().pubkey()
    nft_mint = Keypair().pubkey()
    account_0 = Keypair().pubkey()
    account_1 = Keypair().pubkey()
    pool = make_pool()

    ix = builder.open_position_v2(
        payer, payer, nft_mint, POOL_ID, pool, 600, 1800, 10 ** 12, 10 ** 9, 10 ** 9, account_0, account_1
    )
    assert len(ix.accounts) == 23
    assert ix.accounts[2].pubkey == nft_mint and ix.accounts[2].is_signer
    assert ix.accounts[7].pubkey == tick_array_address(PROGRAM_ID, POOL_ID, 600).address
    assert ix.accounts[8].pubkey == tick_array_address(PROGRAM_ID, POOL_ID, 1800).address
    assert ix.accounts[22].pubkey == bitmap_extension_address(PROGRAM_ID, POOL_ID).address

    args = decode_instruction(bytes(ix.data))
    assert args.tick_lower_index == 600
    assert args.tick_array_upper_start_index == 1800
    assert args.liquidity == 10 ** 12
    assert args.base_flag is None

    try:
        builder.open_position_v2(
            payer, payer, nft_mint, POOL_ID, pool, 605, 1800, 10 ** 12, 0, 0, account_0, account_1
        )
        assert False, "Should raise for an unaligned tick"
    except InvalidTickRangeError:
        pass

    print("  open_position_v2: PASSED")


def test_swap_accounts():
    """Test legacy swap puts the first tick array in the fixed accounts"""
    from solders.keypair import Keypair
    from clmm_fixtures import PROGRAM_ID, POOL_ID, make_pool
    from clmm_client.protocol.instructions import InstructionBuilder, SwapArgs
    from clmm_client.protocol.codec import decode
    from clmm_client.protocol.pda import bitmap_extension_address
    from clmm_client.protocol.constants import MIN_SQRT_PRICE_X64

    print("Testing swap accounts...")

    pool = make_pool(initialized_arrays=(-600, 600, 1200))
    route = _route(pool, zero_for_one=True)
    assert route.start_indices == (1200, 600, -600)

    builder = InstructionBuilder(PROGRAM_ID)
    payer = Keypair().pubkey()
    ix = builder.swap(
        payer, POOL_ID, pool, Keypair().pubkey(), Keypair().pubkey(), True, route, 1000, 990
    )

    assert len(ix.accounts) == 10 + 1 + 2
    assert ix.accounts[5].pubkey == pool.token_vault_0, "zero_for_one pays into vault 0"
    assert ix.accounts[9].pubkey == route.first
    assert ix.accounts[10].pubkey == bitmap_extension_address(PROGRAM_ID, POOL_ID).address
    assert [m.pubkey for m in ix.accounts[11:]] == list(route.addresses[1:])

    args = decode(SwapArgs, bytes(ix.data))
    assert args.amount == 1000
    assert args.other_amount_threshold == 990
    assert args.sqrt_price_limit_x64 == MIN_SQRT_PRICE_X64 + 1
    assert args.is_base_input is True

    print("  swap accounts: PASSED")


def test_swap_v2_accounts():
    """Test swap_v2 passes every routed tick array as remaining accounts"""
    from solders.keypair import Keypair
    from clmm_fixtures import PROGRAM_ID, POOL_ID, make_pool
    from clmm_client.protocol.instructions import InstructionBuilder, SwapV2Args
    from clmm_client.protocol.logs import decode_instruction

    print("Testing swap_v2 accounts...")

    pool = make_pool()
    route = _route(pool, zero_for_one=False)
    builder = InstructionBuilder(PROGRAM_ID)
    ix = builder.swap_v2(
        Keypair().pubkey(), POOL_ID, pool, Keypair().pubkey(), Keypair().pubkey(),
        False, route, 5000, 4900, is_base_input=False,
    )

    assert len(ix.accounts) == 13 + 1 + len(route)
    assert ix.accounts[5].pubkey == pool.token_vault_1, "one_for_zero pays into vault 1"
    assert ix.accounts[11].pubkey == pool.token_mint_1
    assert ix.accounts[12].pubkey == pool.token_mint_0
    assert [m.pubkey for m in ix.accounts[14:]] == list(route.addresses)

    args = decode_instruction(bytes(ix.data))
    assert isinstance(args, SwapV2Args)
    assert args.is_base_input is False

    print("  swap_v2 accounts: PASSED")


def test_swap_validation():
    """Test swap rejects bad amounts, routes and limits"""
    from solders.keypair import Keypair
    from clmm_fixtures import PROGRAM_ID, POOL_ID, make_pool
    from clmm_client.protocol.instructions import InstructionBuilder
    from clmm_client.errors import ConfigurationError, InvalidAmountError, SlippageExceededError

    print("Testing swap validation...")

    pool = make_pool()
    builder = InstructionBuilder(PROGRAM_ID)
    payer, source, dest = Keypair().pubkey(), Keypair().pubkey(), Keypair().pubkey()
    route = _route(pool, zero_for_one=True)

    try:
        builder.swap_v2(payer, POOL_ID, pool, source, dest, False, route, 1000, 0)
        assert False, "Should raise when the route direction does not match"
    except ConfigurationError:
        pass

    try:
        builder.swap_v2(payer, Keypair().pubkey(), pool, source, dest, True, route, 1000, 0)
        assert False, "Should raise when the route belongs to another pool"
    except ConfigurationError:
        pass

    try:
        builder.swap_v2(payer, POOL_ID, pool, source, dest, True, route, 0, 0)
        assert False, "Should raise for a zero amount"
    except InvalidAmountError:
        pass

    try:
        builder.swap_v2(payer, POOL_ID, pool, source, dest, True, route, 2 ** 64, 0)
        assert False, "Should raise for an amount past u64"
    except InvalidAmountError:
        pass

    try:
        builder.swap_v2(payer, POOL_ID, pool, source, dest, True, route, 1000, 0, pool.sqrt_price_x64 + 1)
        assert False, "Should raise for a limit above the price"
    except SlippageExceededError:
        pass

    print("  swap validation: PASSED")


def test_decrease_liquidity_rewards():
    """Test reward recipients must match the pool's initialized rewards"""
    import dataclasses
    from solders.keypair import Keypair
    from clmm_fixtures import PROGRAM_ID, POOL_ID, make_pool
    from clmm_client.protocol.instructions import InstructionBuilder
    from clmm_client.errors import InvalidAmountError

    print("Testing decrease_liquidity_v2 rewards...")

    pool = make_pool()
    builder = InstructionBuilder(PROGRAM_ID)
    owner, nft_mint = Keypair().pubkey(), Keypair().pubkey()
    account_0, account_1 = Keypair().pubkey(), Keypair().pubkey()

    ix = builder.decrease_liquidity_v2(owner, nft_mint, POOL_ID, pool, 600, 1800, 10 ** 6, 0, 0, account_0, account_1)
    assert len(ix.accounts) == 17

    try:
        builder.decrease_liquidity_v2(
            owner, nft_mint, POOL_ID, pool, 600, 1800, 10 ** 6, 0, 0, account_0, account_1,
            reward_recipients=[Keypair().pubkey()],
        )
        assert False, "Should raise for a recipient with no reward"
    except InvalidAmountError as e:
        assert e.param == "reward_recipients"

    # One initialized reward adds (vault, recipient, mint)
    reward_mint, reward_vault, recipient = Keypair().pubkey(), Keypair().pubkey(), Keypair().pubkey()
    rewards = list(pool.reward_infos)
    rewards[0] = dataclasses.replace(rewards[0], token_mint=reward_mint, token_vault=reward_vault)
    pool = dataclasses.replace(pool, reward_infos=tuple(rewards))
    ix = builder.decrease_liquidity_v2(
        owner, nft_mint, POOL_ID, pool, 600, 1800, 10 ** 6, 0, 0, account_0, account_1,
        reward_recipients=[recipient],
    )
    assert [m.pubkey for m in ix.accounts[17:]] == [reward_vault, recipient, reward_mint]

    print("  decrease_liquidity_v2 rewards: PASSED")


def main():
    """Run all instruction builder tests"""
    print("=" * 60)
    print("Instruction Builder Tests")
    print("=" * 60)

    tests = [
        test_ticks_from_prices,
        test_plan_add_liquidity,
        test_plan_remove_liquidity,
        test_swap_threshold,
        test_with_compute_budget,
        test_create_pool,
        test_open_position_v2,
        test_swap_accounts,
        test_swap_v2_accounts,
        test_swap_validation,
        test_decrease_liquidity_rewards,
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
