"""
Test CLI

Tests for argument parsing and the offline subcommands; client-backed
subcommands run against a mocked ClmmClient.
"""

import io
import sys
import json
import contextlib
from pathlib import Path
from unittest.mock import MagicMock, patch

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def _run(argv, client=None):
    """Run the CLI and return (exit code, stdout, stderr)"""
    from clmm_client import cli

    stdout, stderr = io.StringIO(), io.StringIO()
    client_cls = MagicMock()
    if client is not None:
        client_cls.return_value.__enter__.return_value = client
    with patch.object(cli, "setup_logging"), patch.object(cli, "ClmmClient", client_cls):
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            code = cli.main(argv)
    return code, stdout.getvalue(), stderr.getvalue(), client_cls


def test_tick_helpers():
    """Test tick rounding subcommands"""
    print("Testing tick helper commands...")

    code, out, _, client_cls = _run(["tick-array-start-index", "1234", "10"])
    assert code == 0
    assert json.loads(out) == {"start_index": 1200}
    assert not client_cls.called, "Offline commands need no client"

    code, out, _, _ = _run(["tick-array-start-index", "-1", "10"])
    assert json.loads(out) == {"start_index": -600}

    code, out, _, _ = _run(["tick-with-spacing", "-1", "10"])
    assert json.loads(out) == {"tick": -10}

    print("  tick helper commands: PASSED")


def test_compare_key():
    """Test pubkey byte ordering output"""
    from clmm_fixtures import SOL_MINT, USDC_MINT, MINT0, MINT1

    print("Testing compare-key...")

    code, out, _, _ = _run(["compare-key", str(MINT0), str(MINT1)])
    assert code == 0
    assert out.strip() == f"{MINT0} < {MINT1}"

    code, out, _, _ = _run(["compare-key", str(MINT1), str(MINT0)])
    assert out.strip() == f"{MINT1} > {MINT0}"

    code, out, _, _ = _run(["compare-key", str(SOL_MINT), str(SOL_MINT)])
    assert " == " in out
    assert str(USDC_MINT) not in out

    print("  compare-key: PASSED")


def test_decode_commands():
    """Test instruction and event decoding from the command line"""
    from clmm_client.protocol.codec import encode
    from clmm_client.protocol.instructions import SwapArgs

    print("Testing decode commands...")

    args = SwapArgs(amount=10, other_amount_threshold=9, sqrt_price_limit_x64=2 ** 64, is_base_input=True)
    code, out, _, _ = _run(["decode-instruction", encode(args).hex()])
    assert code == 0
    decoded = json.loads(out)
    assert decoded["type"] == "SwapArgs"
    assert decoded["amount"] == 10
    assert decoded["is_base_input"] is True

    code, out, err, _ = _run(["decode-event", "not base64!"])
    assert code == 1
    assert out == ""
    assert "Error:" in err

    print("  decode commands: PASSED")


def test_client_command():
    """Test a read command prints the decoded record"""
    from clmm_fixtures import make_pool

    print("Testing client-backed command...")

    client = MagicMock()
    client.fetch_pool.return_value = make_pool(tick_current=777)
    code, out, _, client_cls = _run(["--rpc-url", "http://localhost:8899", "p-pool"], client=client)
    assert code == 0
    assert client_cls.call_args.kwargs["rpc_url"] == "http://localhost:8899"
    client.fetch_pool.assert_called_once_with(None)

    printed = json.loads(out)
    assert printed["type"] == "PoolState"
    assert printed["tick_current"] == 777

    print("  client-backed command: PASSED")


def test_client_command_error():
    """Test client errors become exit code 1"""
    from clmm_client.errors import MissingAccountError

    print("Testing client command error...")

    client = MagicMock()
    client.fetch_pool.side_effect = MissingAccountError.not_found("Pool", "PoolState")
    code, _, err, _ = _run(["p-pool", "--pool-id", "Pool"], client=client)
    assert code == 1
    assert "PoolState not found" in err

    print("  client command error: PASSED")


def test_get_supportmint_pda():
    """Test the support mint PDA is derived offline from the program id"""
    from clmm_fixtures import PROGRAM_ID, MINT0
    from clmm_client.protocol.pda import support_mint_address

    print("Testing get-supportmint-pda...")

    code, out, _, client_cls = _run(["get-supportmint-pda", str(MINT0), "--program-id", str(PROGRAM_ID)])
    assert code == 0
    assert not client_cls.called
    printed = json.loads(out)
    expected = support_mint_address(PROGRAM_ID, MINT0)
    assert printed["support_mint"] == str(expected.address)
    assert printed["bump"] == expected.bump

    print("  get-supportmint-pda: PASSED")


def test_token_reads():
    """Test p-mint and p-token print the SPL layouts"""
    from solders.keypair import Keypair
    from clmm_fixtures import MINT0
    from clmm_client.protocol.states import SplMint, SplTokenAccount

    print("Testing SPL read commands...")

    owner = Keypair().pubkey()
    client = MagicMock()
    client.fetch_mint.return_value = SplMint(
        mint_authority=None, supply=5, decimals=9, is_initialized=True, freeze_authority=None,
    )
    client.fetch_token_account.return_value = SplTokenAccount(
        mint=MINT0, owner=owner, amount=42, delegate=None, state=1,
        is_native=None, delegated_amount=0, close_authority=None,
    )

    code, out, _, _ = _run(["p-mint", str(MINT0)], client=client)
    assert code == 0
    client.fetch_mint.assert_called_once_with(str(MINT0))
    printed = json.loads(out)
    assert printed["type"] == "SplMint"
    assert printed["decimals"] == 9
    assert printed["mint_authority"] is None

    code, out, _, _ = _run(["p-token", "TokenAcct"], client=client)
    assert code == 0
    printed = json.loads(out)
    assert printed["type"] == "SplTokenAccount"
    assert printed["owner"] == str(owner)
    assert printed["amount"] == 42

    print("  SPL read commands: PASSED")


def test_transfer_reward_owner_encode():
    """Test --encode prints the instruction and sends nothing"""
    import base58
    from solders.instruction import AccountMeta, Instruction
    from solders.keypair import Keypair
    from clmm_fixtures import PROGRAM_ID, POOL_ID

    print("Testing transfer-reward-owner --encode...")

    authority = Keypair().pubkey()
    new_owner = Keypair().pubkey()
    client = MagicMock()
    client.transfer_reward_owner_instruction.return_value = Instruction(
        PROGRAM_ID, b"\x01\x02\x03", [AccountMeta(authority, True, False), AccountMeta(POOL_ID, False, True)],
    )

    code, out, _, _ = _run(
        ["transfer-reward-owner", str(POOL_ID), str(new_owner), str(authority), "--encode"], client=client
    )
    assert code == 0
    client.transfer_reward_owner_instruction.assert_called_once_with(
        str(new_owner), pool_id=str(POOL_ID), authority=str(authority),
    )
    assert not client.transfer_reward_owner.called

    printed = json.loads(out)
    assert printed["program_id"] == str(PROGRAM_ID)
    assert printed["data"] == base58.b58encode(b"\x01\x02\x03").decode("ascii")
    assert printed["accounts"][0] == {"pubkey": str(authority), "is_signer": True, "is_writable": False}

    print("  transfer-reward-owner --encode: PASSED")


def main():
    """Run all CLI tests"""
    print("=" * 60)
    print("CLI Tests")
    print("=" * 60)

    tests = [
        test_tick_helpers,
        test_compare_key,
        test_decode_commands,
        test_client_command,
        test_client_command_error,
        test_get_supportmint_pda,
        test_token_reads,
        test_transfer_reward_owner_encode,
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
