"""
Command line interface for the CLMM client

Each subcommand maps to one client action or one codec/decoder read.
Settings (RPC URL, keypairs, program id, mint pair, slippage) come from the
environment / .env, see clmm_client.config.
"""

import argparse
import dataclasses
import json
import logging
import sys
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import base58
from solders.instruction import Instruction
from solders.pubkey import Pubkey

from .client import ClmmClient
from .config import get_config, setup_logging
from .errors import ClmmClientError
from .protocol.codec import to_dict
from .protocol.logs import LogEntry, decode_event, decode_instruction
from .protocol.pda import support_mint_address
from .protocol.math import (
    get_array_start_index,
    get_delta_amounts_signed,
    price_to_tick,
    tick_to_price,
    tick_with_spacing,
)

logger = logging.getLogger(__name__)


def _print(value: Any) -> None:
    print(json.dumps(value, indent=2, default=str))


def _print_record(record: Any) -> None:
    _print({"type": type(record).__name__, **to_dict(record)})


def _print_entries(entries: List[LogEntry]) -> None:
    for entry in entries:
        if entry.ok:
            _print({"line": entry.index, "event": type(entry.event).__name__, **to_dict(entry.event)})
        else:
            _print({"line": entry.index, "error": str(entry.error)})


def _print_tx(result) -> None:
    _print({
        "status": result.status.value,
        "signature": result.signature,
        "error": result.error,
        "units_consumed": result.units_consumed,
    })
    for line in result.logs:
        print(f"  {line}")


def _print_instruction(instruction: Instruction) -> None:
    _print({
        "program_id": instruction.program_id,
        "accounts": [
            {"pubkey": meta.pubkey, "is_signer": meta.is_signer, "is_writable": meta.is_writable}
            for meta in instruction.accounts
        ],
        "data": base58.b58encode(bytes(instruction.data)).decode("ascii"),
    })


def _decimals(client: ClmmClient, args) -> tuple:
    if args.decimals0 is not None and args.decimals1 is not None:
        return args.decimals0, args.decimals1
    pool = client.fetch_pool(args.pool_id)
    return pool.mint_decimals_0, pool.mint_decimals_1


# ---------------------------------------------------------------------------
# Commands needing a client
# ---------------------------------------------------------------------------

def cmd_create_config(client: ClmmClient, args) -> None:
    _print_tx(client.create_amm_config(
        args.config_index, args.tick_spacing, args.trade_fee_rate,
        args.protocol_fee_rate, args.fund_fee_rate, simulate=args.simulate,
    ))


def cmd_update_config(client: ClmmClient, args) -> None:
    _print_tx(client.update_amm_config(
        args.param, args.value, args.remaining, index=args.config_index, simulate=args.simulate,
    ))


def cmd_create_operation(client: ClmmClient, args) -> None:
    _print_tx(client.create_operation_account(simulate=args.simulate))


def cmd_update_operation(client: ClmmClient, args) -> None:
    _print_tx(client.update_operation_account(args.param, args.keys, simulate=args.simulate))


def cmd_create_pool(client: ClmmClient, args) -> None:
    _print_tx(client.create_pool(
        args.mint0, args.mint1, args.price, open_time=args.open_time,
        index=args.config_index, simulate=args.simulate,
    ))


def cmd_init_reward(client: ClmmClient, args) -> None:
    _print_tx(client.initialize_reward(
        args.reward_mint, args.open_time, args.end_time, args.emissions, simulate=args.simulate,
    ))


def cmd_set_reward_params(client: ClmmClient, args) -> None:
    _print_tx(client.set_reward_params(
        args.index, args.open_time, args.end_time, args.emissions, args.reward_mint, simulate=args.simulate,
    ))


def cmd_transfer_reward_owner(client: ClmmClient, args) -> None:
    if args.encode:
        _print_instruction(client.transfer_reward_owner_instruction(
            args.new_owner, pool_id=args.pool_id, authority=args.authority,
        ))
        return
    _print_tx(client.transfer_reward_owner(args.new_owner, pool_id=args.pool_id, simulate=args.simulate))


def cmd_open_position(client: ClmmClient, args) -> None:
    result = client.open_position(
        args.tick_lower_price, args.tick_upper_price, args.input_amount, args.is_base_0,
        with_metadata=args.with_metadata, simulate=args.simulate,
    )
    _print({
        "nft_mint": result.nft_mint,
        "personal_position": result.personal_position,
        "tick_lower": result.tick_lower,
        "tick_upper": result.tick_upper,
        "liquidity": result.liquidity,
        "amount0_max": result.amount0_max,
        "amount1_max": result.amount1_max,
    })
    _print_tx(result.tx_result)


def cmd_increase_liquidity(client: ClmmClient, args) -> None:
    _print_tx(client.increase_liquidity(
        args.tick_lower_price, args.tick_upper_price, args.input_amount, args.is_base_0, simulate=args.simulate,
    ))


def cmd_decrease_liquidity(client: ClmmClient, args) -> None:
    _print_tx(client.decrease_liquidity(
        args.tick_lower_index, args.tick_upper_index, args.liquidity, simulate=args.simulate,
    ))


def _swap(client: ClmmClient, args, v2: bool) -> None:
    _print_tx(client.swap(
        args.input_token, args.output_token, args.amount, is_base_input=args.base_in,
        limit_price=args.limit_price, v2=v2, simulate=args.simulate,
    ))


def cmd_swap(client: ClmmClient, args) -> None:
    _swap(client, args, v2=False)


def cmd_swap_v2(client: ClmmClient, args) -> None:
    _swap(client, args, v2=True)


def cmd_p_pool(client: ClmmClient, args) -> None:
    _print_record(client.fetch_pool(args.pool_id))


def cmd_p_config(client: ClmmClient, args) -> None:
    _print_record(client.fetch_amm_config(args.config_index))


def cmd_p_bitmap_extension(client: ClmmClient, args) -> None:
    _print_record(client.fetch_bitmap_extension(args.bitmap_extension))


def cmd_p_mint(client: ClmmClient, args) -> None:
    _print_record(client.fetch_mint(args.mint))


def cmd_p_token(client: ClmmClient, args) -> None:
    _print_record(client.fetch_token_account(args.token))


def cmd_p_operation(client: ClmmClient, args) -> None:
    _print_record(client.fetch_operation())


def cmd_p_observation(client: ClmmClient, args) -> None:
    _print_record(client.fetch_observation(args.pool_id))


def cmd_p_tick_state(client: ClmmClient, args) -> None:
    _print_record(client.tick_state(args.tick, args.pool_id))


def cmd_p_personal(client: ClmmClient, args) -> None:
    _print_record(client.fetch_personal_position(args.personal_id))


def cmd_p_protocol(client: ClmmClient, args) -> None:
    _print_record(client.fetch_protocol_position(args.protocol_id))


def cmd_p_position_by_owner(client: ClmmClient, args) -> None:
    for nft in client.positions_by_owner(args.user_wallet):
        _print({
            "key": nft.key,
            "program": nft.program,
            "position": nft.position,
            "mint": nft.mint,
            "amount": nft.amount,
            "decimals": nft.decimals,
        })


def _print_scan(results) -> None:
    print(f"{len(results)} accounts")
    for address, record in results:
        _print({"address": address, **to_dict(record)})


def cmd_p_personal_position_by_pool(client: ClmmClient, args) -> None:
    _print_scan(client.personal_positions_by_pool(args.pool_id))


def cmd_p_protocol_position_by_pool(client: ClmmClient, args) -> None:
    _print_scan(client.protocol_positions_by_pool(args.pool_id))


def cmd_p_tick_array_by_pool(client: ClmmClient, args) -> None:
    results = client.tick_arrays_by_pool(args.pool_id)
    print(f"{len(results)} tick arrays")
    for address, tick_array in sorted(results, key=lambda r: r[1].start_tick_index):
        _print({
            "address": address,
            "start_tick_index": tick_array.start_tick_index,
            "initialized_tick_count": tick_array.initialized_tick_count,
        })


def cmd_decode_tx_log(client: ClmmClient, args) -> None:
    _print_entries(client.decode_tx_logs(args.tx_id))


def cmd_price_to_tick(client: ClmmClient, args) -> None:
    decimals_0, decimals_1 = _decimals(client, args)
    _print({"price": args.price, "tick": price_to_tick(args.price, decimals_0, decimals_1)})


def cmd_tick_to_price(client: ClmmClient, args) -> None:
    decimals_0, decimals_1 = _decimals(client, args)
    _print({"tick": args.tick, "price": tick_to_price(args.tick, decimals_0, decimals_1)})


def cmd_liquidity_to_amounts(client: ClmmClient, args) -> None:
    pool = client.fetch_pool(args.pool_id)
    amount_0, amount_1 = get_delta_amounts_signed(
        pool.tick_current, pool.sqrt_price_x64, args.tick_lower, args.tick_upper, args.liquidity,
    )
    _print({"amount_0": amount_0, "amount_1": amount_1})


# ---------------------------------------------------------------------------
# Offline commands
# ---------------------------------------------------------------------------

def cmd_tick_with_spacing(args) -> None:
    _print({"tick": tick_with_spacing(args.tick, args.tick_spacing)})


def cmd_tick_array_start_index(args) -> None:
    _print({"start_index": get_array_start_index(args.tick, args.tick_spacing)})


def cmd_decode_instruction(args) -> None:
    _print_record(decode_instruction(args.instr_hex_data))


def cmd_decode_event(args) -> None:
    _print_record(decode_event(args.log_event))


def cmd_compare_key(args) -> None:
    key0, key1 = Pubkey.from_string(args.key0), Pubkey.from_string(args.key1)
    if bytes(key0) == bytes(key1):
        relation = "=="
    else:
        relation = "<" if bytes(key0) < bytes(key1) else ">"
    print(f"{key0} {relation} {key1}")


def cmd_get_supportmint_pda(args) -> None:
    program_id = Pubkey.from_string(args.program_id or get_config().clmm.program_id)
    address, bump = support_mint_address(program_id, Pubkey.from_string(args.mint))
    _print({"mint": args.mint, "support_mint": address, "bump": bump})


OFFLINE_COMMANDS: Dict[str, Callable] = {
    "tick-with-spacing": cmd_tick_with_spacing,
    "tick-array-start-index": cmd_tick_array_start_index,
    "decode-instruction": cmd_decode_instruction,
    "decode-event": cmd_decode_event,
    "compare-key": cmd_compare_key,
    "get-supportmint-pda": cmd_get_supportmint_pda,
}

CLIENT_COMMANDS: Dict[str, Callable] = {
    "create-config": cmd_create_config,
    "update-config": cmd_update_config,
    "create-operation": cmd_create_operation,
    "update-operation": cmd_update_operation,
    "create-pool": cmd_create_pool,
    "init-reward": cmd_init_reward,
    "set-reward-params": cmd_set_reward_params,
    "transfer-reward-owner": cmd_transfer_reward_owner,
    "open-position": cmd_open_position,
    "increase-liquidity": cmd_increase_liquidity,
    "decrease-liquidity": cmd_decrease_liquidity,
    "swap": cmd_swap,
    "swap-v2": cmd_swap_v2,
    "p-pool": cmd_p_pool,
    "p-config": cmd_p_config,
    "p-bitmap-extension": cmd_p_bitmap_extension,
    "p-mint": cmd_p_mint,
    "p-token": cmd_p_token,
    "p-operation": cmd_p_operation,
    "p-observation": cmd_p_observation,
    "p-tick-state": cmd_p_tick_state,
    "p-personal": cmd_p_personal,
    "p-protocol": cmd_p_protocol,
    "p-position-by-owner": cmd_p_position_by_owner,
    "p-personal-position-by-pool": cmd_p_personal_position_by_pool,
    "p-protocol-position-by-pool": cmd_p_protocol_position_by_pool,
    "p-tick-array-by-pool": cmd_p_tick_array_by_pool,
    "decode-tx-log": cmd_decode_tx_log,
    "price-to-tick": cmd_price_to_tick,
    "tick-to-price": cmd_tick_to_price,
    "liquidity-to-amounts": cmd_liquidity_to_amounts,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clmm-client", description="Raydium CLMM client")
    parser.add_argument("--rpc-url", help="Override SOLANA_RPC_URL")
    parser.add_argument("--keypair", help="Override SOLANA_KEYPAIR_PATH")
    parser.add_argument("--admin-keypair", help="Override ADMIN_KEYPAIR_PATH")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    sub = parser.add_subparsers(dest="command", required=True)

    def action(name: str, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        p.add_argument("-s", "--simulate", action="store_true", help="Simulate instead of sending")
        return p

    def pool_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument("--pool-id", help="Pool address (default: derived from CLMM_MINT0/CLMM_MINT1)")

    p = action("create-config", "Create an AMM config (admin)")
    p.add_argument("config_index", type=int)
    p.add_argument("tick_spacing", type=int)
    p.add_argument("trade_fee_rate", type=int)
    p.add_argument("protocol_fee_rate", type=int)
    p.add_argument("fund_fee_rate", type=int)

    p = action("update-config", "Update an AMM config parameter (admin)")
    p.add_argument("config_index", type=int)
    p.add_argument("param", type=int)
    p.add_argument("value", type=int)
    p.add_argument("remaining", nargs="?", help="New owner / fund owner key for owner updates")

    action("create-operation", "Create the operation account (admin)")

    p = action("update-operation", "Update operation owners or whitelist (admin)")
    p.add_argument("param", type=int)
    p.add_argument("keys", nargs="+")

    p = action("create-pool", "Create a pool at an initial price (mint1 per mint0)")
    p.add_argument("config_index", type=int)
    p.add_argument("price", type=Decimal)
    p.add_argument("mint0")
    p.add_argument("mint1")
    p.add_argument("--open-time", type=int, default=0)

    p = action("init-reward", "Initialize a reward stream")
    p.add_argument("open_time", type=int)
    p.add_argument("end_time", type=int)
    p.add_argument("emissions", type=Decimal, help="Reward tokens per second (raw units)")
    p.add_argument("reward_mint")

    p = action("set-reward-params", "Change an existing reward stream")
    p.add_argument("index", type=int)
    p.add_argument("open_time", type=int)
    p.add_argument("end_time", type=int)
    p.add_argument("emissions", type=Decimal)
    p.add_argument("reward_mint")

    p = action("transfer-reward-owner", "Transfer pool reward ownership (admin)")
    p.add_argument("pool_id")
    p.add_argument("new_owner")
    p.add_argument("authority", nargs="?", help="Signing authority for --encode (default: admin key)")
    p.add_argument("-e", "--encode", action="store_true", help="Print the instruction instead of sending it")

    for name, help_text in (("open-position", "Open a position"), ("increase-liquidity", "Add to a position")):
        p = action(name, help_text)
        p.add_argument("tick_lower_price", type=Decimal)
        p.add_argument("tick_upper_price", type=Decimal)
        p.add_argument("input_amount", type=int)
        p.add_argument("-b", "--is-base-0", action="store_true", help="input_amount is token 0")
        if name == "open-position":
            p.add_argument("-m", "--with-metadata", action="store_true")

    p = action("decrease-liquidity", "Remove liquidity and collect fees")
    p.add_argument("tick_lower_index", type=int)
    p.add_argument("tick_upper_index", type=int)
    p.add_argument("liquidity", type=int, nargs="?", help="Default: all of the position's liquidity")

    for name in ("swap", "swap-v2"):
        p = action(name, "Swap through the configured pool" + (" (Token-2022 aware)" if name == "swap-v2" else ""))
        p.add_argument("input_token", help="Input token account")
        p.add_argument("output_token", help="Output token account")
        p.add_argument("amount", type=int)
        p.add_argument("limit_price", type=Decimal, nargs="?")
        p.add_argument("-b", "--base-in", action="store_true", help="amount is the exact input")

    for name in ("p-pool", "p-observation"):
        pool_arg(sub.add_parser(name, help=f"Print {name[2:]} state"))

    p = sub.add_parser("p-config", help="Print an AMM config")
    p.add_argument("config_index", type=int, nargs="?")

    p = sub.add_parser("p-bitmap-extension", help="Print a tick array bitmap extension")
    p.add_argument("bitmap_extension", nargs="?")

    p = sub.add_parser("p-mint", help="Print an SPL mint")
    p.add_argument("mint")

    p = sub.add_parser("p-token", help="Print an SPL token account")
    p.add_argument("token")

    sub.add_parser("p-operation", help="Print the operation account")

    p = sub.add_parser("p-tick-state", help="Print one tick")
    p.add_argument("tick", type=int)
    pool_arg(p)

    p = sub.add_parser("p-personal", help="Print a personal position")
    p.add_argument("personal_id")

    p = sub.add_parser("p-protocol", help="Print a protocol position")
    p.add_argument("protocol_id")

    p = sub.add_parser("p-position-by-owner", help="List position NFTs held by a wallet")
    p.add_argument("user_wallet")

    for name in ("p-personal-position-by-pool", "p-protocol-position-by-pool", "p-tick-array-by-pool"):
        pool_arg(sub.add_parser(name, help="Scan program accounts of a pool"))

    p = sub.add_parser("decode-tx-log", help="Decode program events of a transaction")
    p.add_argument("tx_id")

    p = sub.add_parser("decode-instruction", help="Decode hex instruction data")
    p.add_argument("instr_hex_data")

    p = sub.add_parser("decode-event", help="Decode a base64 'Program data' payload")
    p.add_argument("log_event")

    for name, arg, arg_type in (("price-to-tick", "price", Decimal), ("tick-to-price", "tick", int)):
        p = sub.add_parser(name, help=f"Convert {name.replace('-to-', ' to ')}")
        p.add_argument(arg, type=arg_type)
        p.add_argument("--decimals0", type=int)
        p.add_argument("--decimals1", type=int)
        pool_arg(p)

    for name in ("tick-with-spacing", "tick-array-start-index"):
        p = sub.add_parser(name, help=name.replace("-", " "))
        p.add_argument("tick", type=int)
        p.add_argument("tick_spacing", type=int)

    p = sub.add_parser("liquidity-to-amounts", help="Token amounts for a signed liquidity delta")
    p.add_argument("tick_lower", type=int)
    p.add_argument("tick_upper", type=int)
    p.add_argument("liquidity", type=int)
    pool_arg(p)

    p = sub.add_parser("compare-key", help="Byte order of two pubkeys")
    p.add_argument("key0")
    p.add_argument("key1")

    p = sub.add_parser("get-supportmint-pda", help="Token-2022 support mint PDA of a mint")
    p.add_argument("mint")
    p.add_argument("--program-id", help="Override CLMM_PROGRAM_ID")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    log_config = get_config().logging
    if args.verbose:
        log_config = dataclasses.replace(log_config, log_level="DEBUG")
    setup_logging(log_config)

    try:
        if args.command in OFFLINE_COMMANDS:
            OFFLINE_COMMANDS[args.command](args)
            return 0

        with ClmmClient(
            rpc_url=args.rpc_url,
            keypair_path=args.keypair,
            admin_keypair_path=args.admin_keypair,
        ) as client:
            CLIENT_COMMANDS[args.command](client, args)
        return 0
    except ClmmClientError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
