"""
ClmmClient - entry point for Raydium CLMM operations

Wires the RPC client, signer and transaction builder to the protocol layer:
reads decode on-chain records, actions fetch the state they need, build one
instruction and either simulate or send it.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple, Type, TypeVar, Union

from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .config import ClientConfig, config as global_config
from .errors import ConfigurationError, DecodeError, InvalidAmountError, MissingAccountError, RpcError, ErrorCode
from .infra import (
    RpcClient,
    RpcClientConfig,
    Signer,
    TxBuilder,
    TxBuilderConfig,
    create_admin_signer,
    create_signer,
    decode_account_data,
)
from .protocol.codec import account_size, decode, decode_layout
from .protocol.constants import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID
from .protocol.instructions import (
    InstructionBuilder,
    plan_add_liquidity,
    plan_remove_liquidity,
    swap_threshold,
    ticks_from_prices,
)
from .protocol.logs import LogEntry, decode_logs
from .protocol.math import (
    emissions_to_x64,
    get_array_start_index,
    price_to_sqrt_price_x64,
)
from .protocol.pda import (
    associated_token_address,
    bitmap_extension_address,
    canonicalize_mints,
    config_address,
    operation_address,
    personal_position_address,
    reward_vault_address,
    tick_array_address,
)
from .protocol.router import TickArrayRoute, TickArrayRouter
from .protocol.states import (
    AmmConfig,
    ObservationState,
    OperationState,
    PersonalPositionState,
    PoolState,
    ProtocolPositionState,
    SplMint,
    SplTokenAccount,
    TickArrayBitmapExtension,
    TickArrayState,
    TickState,
)
from .protocol.swap_math import SwapQuote, quote_swap
from .types import OpenPositionResult, PositionNftTokenInfo, TxResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

Number = Union[int, float, Decimal, str]

# SPL mint layout: COption<authority> (36) + supply (8) precede decimals
_MINT_DECIMALS_OFFSET = 44
# SPL token account layout: mint (32) then owner (32)
_TOKEN_ACCOUNT_MIN_SIZE = 64
# Personal position: discriminator, bump, nft_mint precede pool_id
_PERSONAL_POSITION_POOL_OFFSET = 8 + 1 + 32
# Protocol position: discriminator, bump precede pool_id
_PROTOCOL_POSITION_POOL_OFFSET = 8 + 1
_TICK_ARRAY_POOL_OFFSET = 8


def _to_pubkey(value: Union[Pubkey, str]) -> Pubkey:
    return value if isinstance(value, Pubkey) else Pubkey.from_string(value)


class ClmmClient:
    """
    Raydium CLMM client

    Usage:
        client = ClmmClient()                       # everything from environment
        pool = client.fetch_pool()
        result = client.swap(input_account, output_account, 1_000_000, simulate=True)

        client = ClmmClient(
            rpc_url="https://api.mainnet-beta.solana.com",
            keypair_path="/path/to/id.json",
            client_config=ClientConfig.from_config(),
        )
    """

    def __init__(
        self,
        rpc_url: Optional[Union[str, List[str]]] = None,
        keypair: Optional[Keypair] = None,
        keypair_path: Optional[str] = None,
        admin_keypair_path: Optional[str] = None,
        client_config: Optional[ClientConfig] = None,
        rpc_config: Optional[RpcClientConfig] = None,
        tx_config: Optional[TxBuilderConfig] = None,
    ):
        """
        Args:
            rpc_url: RPC endpoint URL or list of URLs for fallback (default SOLANA_RPC_URL)
            keypair: Optional Keypair for the payer / position owner
            keypair_path: Optional path to the payer keypair file
            admin_keypair_path: Optional path to the admin keypair file
            client_config: Pool-scoped settings (default from environment)
            rpc_config: Optional RPC configuration
            tx_config: Optional transaction configuration
        """
        self._rpc = RpcClient(rpc_url or global_config.rpc.url, config=rpc_config)
        self._config = client_config or ClientConfig.from_config()
        self._builder = InstructionBuilder(self._config.program_id)
        self._router = TickArrayRouter(self._config.program_id, self._config.tick_array_lookahead)

        # Signers are only needed for actions; reads work without a keypair
        self._keypair = keypair
        self._keypair_path = keypair_path
        self._admin_keypair_path = admin_keypair_path
        self._tx_config = tx_config
        self._signer: Optional[Signer] = None
        self._admin_signer: Optional[Signer] = None
        self._tx_builder: Optional[TxBuilder] = None
        self._admin_tx_builder: Optional[TxBuilder] = None

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def rpc(self) -> RpcClient:
        return self._rpc

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def builder(self) -> InstructionBuilder:
        return self._builder

    @property
    def router(self) -> TickArrayRouter:
        return self._router

    @property
    def signer(self) -> Signer:
        if self._signer is None:
            self._signer = create_signer(keypair=self._keypair, keypair_path=self._keypair_path)
        return self._signer

    @property
    def admin_signer(self) -> Signer:
        if self._admin_signer is None:
            self._admin_signer = create_admin_signer(self._admin_keypair_path)
        return self._admin_signer

    @property
    def tx_builder(self) -> TxBuilder:
        if self._tx_builder is None:
            self._tx_builder = TxBuilder(self._rpc, self.signer, config=self._tx_config)
        return self._tx_builder

    @property
    def admin_tx_builder(self) -> TxBuilder:
        if self._admin_tx_builder is None:
            self._admin_tx_builder = TxBuilder(self._rpc, self.admin_signer, config=self._tx_config)
        return self._admin_tx_builder

    @property
    def pubkey(self) -> Pubkey:
        """Payer / position owner"""
        return Pubkey.from_string(self.signer.pubkey)

    @property
    def admin_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.admin_signer.pubkey)

    def _pool_id(self, pool_id: Optional[Union[Pubkey, str]]) -> Pubkey:
        return _to_pubkey(pool_id) if pool_id is not None else self._config.require_pool()

    # ------------------------------------------------------------------
    # Account reads
    # ------------------------------------------------------------------

    def _fetch(self, record_type: Type[T], address: Union[Pubkey, str]) -> T:
        raw = self._rpc.get_account_data(str(address))
        if raw is None:
            raise MissingAccountError.not_found(str(address), record_type.__name__)
        return decode(record_type, raw)

    def fetch_pool(self, pool_id: Optional[Union[Pubkey, str]] = None) -> PoolState:
        return self._fetch(PoolState, self._pool_id(pool_id))

    def fetch_pool_with_extension(
        self, pool_id: Optional[Union[Pubkey, str]] = None
    ) -> Tuple[PoolState, Optional[TickArrayBitmapExtension]]:
        """
        Pool and its bitmap extension in one getMultipleAccounts.

        The extension is None when the account does not exist.
        """
        pool_id = self._pool_id(pool_id)
        extension_id = bitmap_extension_address(self._config.program_id, pool_id).address
        pool_raw, extension_raw = self._rpc.get_multiple_account_data([str(pool_id), str(extension_id)])
        if pool_raw is None:
            raise MissingAccountError.not_found(str(pool_id), "PoolState")
        extension = None if extension_raw is None else decode(TickArrayBitmapExtension, extension_raw)
        return decode(PoolState, pool_raw), extension

    def fetch_bitmap_extension(self, address: Optional[Union[Pubkey, str]] = None) -> TickArrayBitmapExtension:
        if address is None:
            address = bitmap_extension_address(self._config.program_id, self._config.require_pool()).address
        return self._fetch(TickArrayBitmapExtension, address)

    def fetch_amm_config(self, index: Optional[int] = None) -> AmmConfig:
        if index is None:
            address = self._config.amm_config_key
        else:
            address = config_address(self._config.program_id, index).address
        return self._fetch(AmmConfig, address)

    def fetch_tick_array(self, start_index: int, pool_id: Optional[Union[Pubkey, str]] = None) -> TickArrayState:
        address = tick_array_address(self._config.program_id, self._pool_id(pool_id), start_index).address
        return self._fetch(TickArrayState, address)

    def fetch_personal_position(self, address: Union[Pubkey, str]) -> PersonalPositionState:
        return self._fetch(PersonalPositionState, address)

    def fetch_protocol_position(self, address: Union[Pubkey, str]) -> ProtocolPositionState:
        return self._fetch(ProtocolPositionState, address)

    def fetch_operation(self) -> OperationState:
        return self._fetch(OperationState, operation_address(self._config.program_id).address)

    def fetch_observation(self, pool_id: Optional[Union[Pubkey, str]] = None) -> ObservationState:
        pool_state = self.fetch_pool(pool_id)
        return self._fetch(ObservationState, pool_state.observation_key)

    def tick_state(self, tick: int, pool_id: Optional[Union[Pubkey, str]] = None) -> TickState:
        """State of one tick, read from the tick array containing it"""
        pool_id = self._pool_id(pool_id)
        pool_state = self.fetch_pool(pool_id)
        start_index = get_array_start_index(tick, pool_state.tick_spacing)
        tick_array = self.fetch_tick_array(start_index, pool_id)
        return tick_array.ticks[tick_array.tick_offset(tick, pool_state.tick_spacing)]

    def _mint_infos(self, mints: Sequence[Pubkey]) -> List[Tuple[Pubkey, int]]:
        """(token program, decimals) per mint, one RPC round trip"""
        infos = []
        for mint, account in zip(mints, self._rpc.get_multiple_accounts([str(m) for m in mints])):
            raw = decode_account_data(account)
            if raw is None or len(raw) <= _MINT_DECIMALS_OFFSET:
                raise MissingAccountError.not_found(str(mint), "Mint")
            infos.append((Pubkey.from_string(account["owner"]), raw[_MINT_DECIMALS_OFFSET]))
        return infos

    def _fetch_token_program_account(self, record_type: Type[T], address: Union[Pubkey, str]) -> T:
        account = self._rpc.get_account_info(str(address))
        raw = decode_account_data(account)
        if raw is None:
            raise MissingAccountError.not_found(str(address), record_type.__name__)
        if account.get("owner") not in (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID):
            raise DecodeError.invalid(
                f"{address} is owned by {account.get('owner')}, not a token program", record_type.__name__
            )
        return decode_layout(record_type, raw)

    def fetch_mint(self, mint: Union[Pubkey, str]) -> SplMint:
        """SPL Token or Token-2022 mint; Token-2022 extensions are not decoded"""
        return self._fetch_token_program_account(SplMint, mint)

    def fetch_token_account(self, address: Union[Pubkey, str]) -> SplTokenAccount:
        return self._fetch_token_program_account(SplTokenAccount, address)

    # ------------------------------------------------------------------
    # Program account scans
    # ------------------------------------------------------------------

    def _scan(self, record_type: Type[T], pool_offset: int, pool_id: Pubkey) -> List[Tuple[Pubkey, T]]:
        filters = [
            {"dataSize": account_size(record_type)},
            {"memcmp": {"offset": pool_offset, "bytes": str(pool_id)}},
        ]
        results = []
        for item in self._rpc.get_program_accounts(str(self._config.program_id), filters):
            raw = decode_account_data(item.get("account"))
            results.append((Pubkey.from_string(item["pubkey"]), decode(record_type, raw)))
        logger.debug(f"Found {len(results)} {record_type.__name__} accounts for pool {pool_id}")
        return results

    def personal_positions_by_pool(
        self, pool_id: Optional[Union[Pubkey, str]] = None
    ) -> List[Tuple[Pubkey, PersonalPositionState]]:
        return self._scan(PersonalPositionState, _PERSONAL_POSITION_POOL_OFFSET, self._pool_id(pool_id))

    def protocol_positions_by_pool(
        self, pool_id: Optional[Union[Pubkey, str]] = None
    ) -> List[Tuple[Pubkey, ProtocolPositionState]]:
        return self._scan(ProtocolPositionState, _PROTOCOL_POSITION_POOL_OFFSET, self._pool_id(pool_id))

    def tick_arrays_by_pool(self, pool_id: Optional[Union[Pubkey, str]] = None) -> List[Tuple[Pubkey, TickArrayState]]:
        return self._scan(TickArrayState, _TICK_ARRAY_POOL_OFFSET, self._pool_id(pool_id))

    def positions_by_owner(self, owner: Optional[Union[Pubkey, str]] = None) -> List[PositionNftTokenInfo]:
        """
        Position NFTs held by a wallet under SPL Token and Token-2022.

        Any token account with amount 1 and 0 decimals is a candidate; the
        personal position address is derived from its mint.
        """
        owner = _to_pubkey(owner) if owner is not None else self.pubkey
        found: List[PositionNftTokenInfo] = []

        for program_id in (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID):
            for item in self._rpc.get_token_accounts_by_owner(str(owner), program_id=program_id):
                info = item.get("account", {}).get("data", {}).get("parsed", {}).get("info", {})
                token_amount = info.get("tokenAmount", {})
                if token_amount.get("decimals") != 0 or token_amount.get("amount") != "1":
                    continue
                mint = Pubkey.from_string(info["mint"])
                found.append(PositionNftTokenInfo(
                    key=Pubkey.from_string(item["pubkey"]),
                    program=Pubkey.from_string(program_id),
                    position=personal_position_address(self._config.program_id, mint).address,
                    mint=mint,
                    amount=int(token_amount["amount"]),
                    decimals=token_amount["decimals"],
                ))

        logger.debug(f"Wallet {owner} holds {len(found)} position NFT candidates")
        return found

    def find_position(
        self,
        tick_lower: int,
        tick_upper: int,
        pool_id: Optional[Union[Pubkey, str]] = None,
    ) -> Tuple[PositionNftTokenInfo, PersonalPositionState]:
        """
        The signer's position in a pool with exactly this tick range.

        Raises:
            MissingAccountError: If the wallet holds no such position
        """
        pool_id = self._pool_id(pool_id)
        nfts = self.positions_by_owner()
        if nfts:
            raw_positions = self._rpc.get_multiple_account_data([str(n.position) for n in nfts])
            for nft, raw in zip(nfts, raw_positions):
                if raw is None:
                    continue
                position = decode(PersonalPositionState, raw)
                if (
                    position.pool_id == pool_id
                    and position.tick_lower_index == tick_lower
                    and position.tick_upper_index == tick_upper
                ):
                    return nft, position
        raise MissingAccountError.not_found(
            f"{pool_id} [{tick_lower}, {tick_upper}]", "PersonalPositionState"
        )

    # ------------------------------------------------------------------
    # Swap routing and quoting
    # ------------------------------------------------------------------

    def swap_route(
        self, zero_for_one: bool, pool_id: Optional[Union[Pubkey, str]] = None
    ) -> Tuple[PoolState, TickArrayRoute]:
        pool_id = self._pool_id(pool_id)
        pool_state, extension = self.fetch_pool_with_extension(pool_id)
        return pool_state, self._router.route(pool_id, pool_state, extension, zero_for_one)

    def load_tick_arrays(self, route: TickArrayRoute) -> List[TickArrayState]:
        return self._router.load(self._rpc, route)

    def quote(
        self,
        zero_for_one: bool,
        amount: int,
        is_base_input: bool = True,
        limit_price: Optional[Number] = None,
        pool_id: Optional[Union[Pubkey, str]] = None,
    ) -> Tuple[PoolState, TickArrayRoute, SwapQuote, Optional[int]]:
        """
        Route, load and simulate a swap locally.

        limit_price None means no limit. Any given limit must be a positive
        price strictly inside the supported range.

        Returns:
            (pool_state, route, quote, sqrt_price_limit_x64 or None)
        """
        pool_state, route = self.swap_route(zero_for_one, pool_id)
        amm_config = self._fetch(AmmConfig, pool_state.amm_config)
        tick_arrays = self.load_tick_arrays(route)

        sqrt_price_limit = None
        if limit_price is not None:
            sqrt_price_limit = price_to_sqrt_price_x64(
                limit_price, pool_state.mint_decimals_0, pool_state.mint_decimals_1
            )

        quote = quote_swap(
            pool_state,
            amm_config.trade_fee_rate,
            tick_arrays,
            zero_for_one,
            is_base_input,
            amount,
            sqrt_price_limit,
        )
        logger.info(
            f"Quote: {'exact in' if is_base_input else 'exact out'} {amount}, "
            f"other amount {quote.other_amount}, fee {quote.fee_amount}, "
            f"tick {pool_state.tick_current} -> {quote.tick}"
        )
        return pool_state, route, quote, sqrt_price_limit

    # ------------------------------------------------------------------
    # Admin actions
    # ------------------------------------------------------------------

    def _admin_execute(self, instruction: Instruction, simulate: bool) -> TxResult:
        return self.admin_tx_builder.execute([instruction], simulate=simulate)

    def _execute(
        self,
        instruction: Instruction,
        simulate: bool,
        additional_signers: Optional[Sequence[Keypair]] = None,
    ) -> TxResult:
        return self.tx_builder.execute([instruction], additional_signers=additional_signers, simulate=simulate)

    def create_amm_config(
        self,
        index: int,
        tick_spacing: int,
        trade_fee_rate: int,
        protocol_fee_rate: int,
        fund_fee_rate: int,
        simulate: bool = False,
    ) -> TxResult:
        instruction = self._builder.create_amm_config(
            self.admin_pubkey, index, tick_spacing, trade_fee_rate, protocol_fee_rate, fund_fee_rate
        )
        return self._admin_execute(instruction, simulate)

    def update_amm_config(
        self,
        param: int,
        value: int,
        remaining: Optional[Union[Pubkey, str]] = None,
        index: Optional[int] = None,
        simulate: bool = False,
    ) -> TxResult:
        amm_config = (
            self._config.amm_config_key if index is None
            else config_address(self._config.program_id, index).address
        )
        extra = [_to_pubkey(remaining)] if remaining is not None else []
        instruction = self._builder.update_amm_config(self.admin_pubkey, amm_config, param, value, extra)
        return self._admin_execute(instruction, simulate)

    def create_operation_account(self, simulate: bool = False) -> TxResult:
        return self._admin_execute(self._builder.create_operation_account(self.admin_pubkey), simulate)

    def update_operation_account(
        self, param: int, keys: Sequence[Union[Pubkey, str]], simulate: bool = False
    ) -> TxResult:
        instruction = self._builder.update_operation_account(
            self.admin_pubkey, param, [_to_pubkey(k) for k in keys]
        )
        return self._admin_execute(instruction, simulate)

    def transfer_reward_owner_instruction(
        self,
        new_owner: Union[Pubkey, str],
        pool_id: Optional[Union[Pubkey, str]] = None,
        authority: Optional[Union[Pubkey, str]] = None,
    ) -> Instruction:
        """
        The unsigned instruction, for signing elsewhere (a multisig proposal).

        authority defaults to the admin key, which is then loaded.
        """
        authority = _to_pubkey(authority) if authority is not None else self.admin_pubkey
        return self._builder.transfer_reward_owner(authority, self._pool_id(pool_id), _to_pubkey(new_owner))

    def transfer_reward_owner(
        self,
        new_owner: Union[Pubkey, str],
        pool_id: Optional[Union[Pubkey, str]] = None,
        simulate: bool = False,
    ) -> TxResult:
        return self._admin_execute(self.transfer_reward_owner_instruction(new_owner, pool_id), simulate)

    # ------------------------------------------------------------------
    # Pool and reward actions
    # ------------------------------------------------------------------

    def create_pool(
        self,
        mint_a: Union[Pubkey, str],
        mint_b: Union[Pubkey, str],
        price: Number,
        open_time: int = 0,
        index: Optional[int] = None,
        simulate: bool = False,
    ) -> TxResult:
        """
        Create a pool for a mint pair at an initial price of mint_b per mint_a.

        The pair is canonicalized first; when that swaps the mints the price
        is inverted so it stays token_1 per token_0.
        """
        mint_a, mint_b = _to_pubkey(mint_a), _to_pubkey(mint_b)
        price = Decimal(str(price))
        if price <= 0:
            raise InvalidAmountError.zero("price")

        mint0, mint1 = canonicalize_mints(mint_a, mint_b)
        if mint0 != mint_a:
            price = Decimal(1) / price
            logger.info(f"Mints reordered to {mint0} / {mint1}; initial price inverted to {price}")

        (program_0, decimals_0), (program_1, decimals_1) = self._mint_infos([mint0, mint1])
        sqrt_price_x64 = price_to_sqrt_price_x64(price, decimals_0, decimals_1)
        amm_config = (
            self._config.amm_config_key if index is None
            else config_address(self._config.program_id, index).address
        )
        instruction = self._builder.create_pool(
            self.pubkey, amm_config, mint0, mint1, program_0, program_1, sqrt_price_x64, open_time
        )
        return self._execute(instruction, simulate)

    def initialize_reward(
        self,
        reward_mint: Union[Pubkey, str],
        open_time: int,
        end_time: int,
        emissions_per_second: Number,
        pool_id: Optional[Union[Pubkey, str]] = None,
        simulate: bool = False,
    ) -> TxResult:
        """Start a reward stream funded from the admin's reward token account"""
        pool_id = self._pool_id(pool_id)
        reward_mint = _to_pubkey(reward_mint)
        pool_state = self.fetch_pool(pool_id)
        ((reward_program, _),) = self._mint_infos([reward_mint])

        funder = self.admin_pubkey
        instruction = self._builder.initialize_reward(
            funder,
            associated_token_address(funder, reward_mint, reward_program),
            pool_state.amm_config,
            pool_id,
            reward_mint,
            reward_program,
            open_time,
            end_time,
            emissions_to_x64(emissions_per_second),
        )
        return self._admin_execute(instruction, simulate)

    def set_reward_params(
        self,
        reward_index: int,
        open_time: int,
        end_time: int,
        emissions_per_second: Number,
        reward_mint: Union[Pubkey, str],
        pool_id: Optional[Union[Pubkey, str]] = None,
        simulate: bool = False,
    ) -> TxResult:
        pool_id = self._pool_id(pool_id)
        reward_mint = _to_pubkey(reward_mint)
        pool_state = self.fetch_pool(pool_id)
        ((reward_program, _),) = self._mint_infos([reward_mint])

        authority = self.admin_pubkey
        remaining = [
            AccountMeta(reward_vault_address(self._config.program_id, pool_id, reward_mint).address, False, True),
            AccountMeta(associated_token_address(authority, reward_mint, reward_program), False, True),
            AccountMeta(reward_mint, is_signer=False, is_writable=True),
        ]
        instruction = self._builder.set_reward_params(
            authority,
            pool_state.amm_config,
            pool_id,
            reward_index,
            emissions_to_x64(emissions_per_second),
            open_time,
            end_time,
            remaining,
        )
        return self._admin_execute(instruction, simulate)

    # ------------------------------------------------------------------
    # Position actions
    # ------------------------------------------------------------------

    def _owner_token_accounts(self, pool_state: PoolState) -> Tuple[Pubkey, Pubkey]:
        (program_0, _), (program_1, _) = self._mint_infos([pool_state.token_mint_0, pool_state.token_mint_1])
        owner = self.pubkey
        return (
            associated_token_address(owner, pool_state.token_mint_0, program_0),
            associated_token_address(owner, pool_state.token_mint_1, program_1),
        )

    def open_position(
        self,
        lower_price: Number,
        upper_price: Number,
        input_amount: int,
        is_base_0: bool,
        with_metadata: bool = False,
        pool_id: Optional[Union[Pubkey, str]] = None,
        simulate: bool = False,
    ) -> OpenPositionResult:
        """
        Open a position over a price range, funded by a fixed amount of one token.

        Raises:
            InvalidTickRangeError: If the price range is inverted or collapses to one tick
            InvalidAmountError: If the amount is zero
        """
        pool_id = self._pool_id(pool_id)
        pool_state = self.fetch_pool(pool_id)
        tick_lower, tick_upper = ticks_from_prices(pool_state, lower_price, upper_price)
        plan = plan_add_liquidity(pool_state, tick_lower, tick_upper, input_amount, is_base_0, self._config.slippage)
        token_account_0, token_account_1 = self._owner_token_accounts(pool_state)

        nft_mint = Keypair()
        owner = self.pubkey
        instruction = self._builder.open_position_v2(
            payer=owner,
            owner=owner,
            nft_mint=nft_mint.pubkey(),
            pool_id=pool_id,
            pool_state=pool_state,
            tick_lower=plan.tick_lower,
            tick_upper=plan.tick_upper,
            liquidity=plan.liquidity,
            amount_0_max=plan.amount_0_limit,
            amount_1_max=plan.amount_1_limit,
            token_account_0=token_account_0,
            token_account_1=token_account_1,
            with_metadata=with_metadata,
        )
        logger.info(
            f"Opening position [{plan.tick_lower}, {plan.tick_upper}] liquidity {plan.liquidity}, "
            f"max amounts {plan.amount_0_limit} / {plan.amount_1_limit}, nft {nft_mint.pubkey()}"
        )
        tx_result = self._execute(instruction, simulate, additional_signers=[nft_mint])
        return OpenPositionResult(
            tx_result=tx_result,
            nft_mint=str(nft_mint.pubkey()),
            personal_position=str(personal_position_address(self._config.program_id, nft_mint.pubkey()).address),
            tick_lower=plan.tick_lower,
            tick_upper=plan.tick_upper,
            liquidity=plan.liquidity,
            amount0_max=plan.amount_0_limit,
            amount1_max=plan.amount_1_limit,
        )

    def increase_liquidity(
        self,
        lower_price: Number,
        upper_price: Number,
        input_amount: int,
        is_base_0: bool,
        pool_id: Optional[Union[Pubkey, str]] = None,
        simulate: bool = False,
    ) -> TxResult:
        """Add liquidity to the signer's existing position over this price range"""
        pool_id = self._pool_id(pool_id)
        pool_state = self.fetch_pool(pool_id)
        tick_lower, tick_upper = ticks_from_prices(pool_state, lower_price, upper_price)
        nft, _ = self.find_position(tick_lower, tick_upper, pool_id)
        plan = plan_add_liquidity(pool_state, tick_lower, tick_upper, input_amount, is_base_0, self._config.slippage)
        token_account_0, token_account_1 = self._owner_token_accounts(pool_state)

        instruction = self._builder.increase_liquidity_v2(
            owner=self.pubkey,
            nft_mint=nft.mint,
            pool_id=pool_id,
            pool_state=pool_state,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            liquidity=plan.liquidity,
            amount_0_max=plan.amount_0_limit,
            amount_1_max=plan.amount_1_limit,
            token_account_0=token_account_0,
            token_account_1=token_account_1,
            nft_token_program=nft.program,
        )
        return self._execute(instruction, simulate)

    def decrease_liquidity(
        self,
        tick_lower: int,
        tick_upper: int,
        liquidity: Optional[int] = None,
        pool_id: Optional[Union[Pubkey, str]] = None,
        simulate: bool = False,
    ) -> TxResult:
        """
        Remove liquidity (all of it by default) and collect fees and rewards.
        """
        pool_id = self._pool_id(pool_id)
        pool_state = self.fetch_pool(pool_id)
        nft, position = self.find_position(tick_lower, tick_upper, pool_id)
        if liquidity is None:
            liquidity = position.liquidity
        plan = plan_remove_liquidity(pool_state, tick_lower, tick_upper, liquidity, self._config.slippage)
        token_account_0, token_account_1 = self._owner_token_accounts(pool_state)

        owner = self.pubkey
        reward_mints = [r.token_mint for r in pool_state.reward_infos if r.initialized]
        reward_recipients = [
            associated_token_address(owner, mint, program)
            for mint, (program, _) in zip(reward_mints, self._mint_infos(reward_mints) if reward_mints else [])
        ]

        instruction = self._builder.decrease_liquidity_v2(
            owner=owner,
            nft_mint=nft.mint,
            pool_id=pool_id,
            pool_state=pool_state,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            liquidity=plan.liquidity,
            amount_0_min=plan.amount_0_limit,
            amount_1_min=plan.amount_1_limit,
            recipient_token_account_0=token_account_0,
            recipient_token_account_1=token_account_1,
            reward_recipients=reward_recipients,
            nft_token_program=nft.program,
        )
        return self._execute(instruction, simulate)

    # ------------------------------------------------------------------
    # Swaps
    # ------------------------------------------------------------------

    def _token_account_mints(self, accounts: Sequence[Pubkey]) -> List[Pubkey]:
        mints = []
        for address, raw in zip(accounts, self._rpc.get_multiple_account_data([str(a) for a in accounts])):
            if raw is None or len(raw) < _TOKEN_ACCOUNT_MIN_SIZE:
                raise MissingAccountError.not_found(str(address), "TokenAccount")
            mints.append(Pubkey.from_bytes(raw[:32]))
        return mints

    def swap(
        self,
        input_token_account: Union[Pubkey, str],
        output_token_account: Union[Pubkey, str],
        amount: int,
        is_base_input: bool = True,
        limit_price: Optional[Number] = None,
        v2: bool = False,
        pool_id: Optional[Union[Pubkey, str]] = None,
        simulate: bool = False,
    ) -> TxResult:
        """
        Swap between the signer's token accounts through the configured pool.

        The direction comes from the input account's mint. The threshold is
        the local quote's other amount adjusted by the configured slippage.
        """
        pool_id = self._pool_id(pool_id)
        input_token_account = _to_pubkey(input_token_account)
        output_token_account = _to_pubkey(output_token_account)

        input_mint, output_mint = self._token_account_mints([input_token_account, output_token_account])
        pool_state = self.fetch_pool(pool_id)
        mints = {pool_state.token_mint_0, pool_state.token_mint_1}
        if input_mint not in mints or output_mint not in mints or input_mint == output_mint:
            raise ConfigurationError.invalid(
                "token accounts", f"mints {input_mint} / {output_mint} do not match pool {pool_id}"
            )
        zero_for_one = input_mint == pool_state.token_mint_0

        pool_state, route, quote, sqrt_price_limit = self.quote(
            zero_for_one, amount, is_base_input, limit_price, pool_id
        )
        threshold = swap_threshold(quote, is_base_input, self._config.slippage)

        build = self._builder.swap_v2 if v2 else self._builder.swap
        instruction = build(
            payer=self.pubkey,
            pool_id=pool_id,
            pool_state=pool_state,
            input_token_account=input_token_account,
            output_token_account=output_token_account,
            zero_for_one=zero_for_one,
            route=route,
            amount=amount,
            other_amount_threshold=threshold,
            sqrt_price_limit_x64=sqrt_price_limit,
            is_base_input=is_base_input,
        )
        return self._execute(instruction, simulate)

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    def decode_tx_logs(self, signature: str) -> List[LogEntry]:
        """
        Decode the program events of a confirmed transaction.

        Raises:
            MissingAccountError: If the RPC does not know the transaction
        """
        tx = self._rpc.get_transaction(signature)
        if tx is None:
            raise MissingAccountError.not_found(signature, "Transaction")
        logs = (tx.get("meta") or {}).get("logMessages")
        if logs is None:
            raise RpcError(f"Transaction {signature} has no log messages", ErrorCode.RPC_INVALID_RESPONSE)
        return decode_logs(logs, self._config.program_id)

    def close(self):
        """Close client connections and release resources"""
        self._rpc.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"ClmmClient(program={self._config.program_id}, pool={self._config.pool_id})"
