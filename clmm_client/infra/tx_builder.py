"""
Versioned transaction assembly for CLMM instructions

A TxBuilder prepends compute budget instructions, compiles a v0 message
against a recent blockhash, collects signatures from the wallet and any
extra keypairs (a fresh position NFT mint), then simulates or submits.
Retries live in RpcClient; nothing here resends.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from .rpc import RpcClient
from .solana_signer import Signer, message_bytes_for_signing, signer_index
from ..config import config as global_config
from ..errors import RpcError, TransactionError
from ..protocol.instructions import with_compute_budget
from ..types import TxResult, TxStatus

logger = logging.getLogger(__name__)


@dataclass
class TxBuilderConfig:
    """
    Fee, preflight and confirmation settings for a TxBuilder

    Unset values are pulled from the global config (clmm_client.config.TxConfig).

    Usage:
        cfg = TxBuilderConfig(compute_units=400_000, skip_preflight=True)
        builder = TxBuilder(rpc, signer, config=cfg)
    """
    compute_units: int = None
    compute_unit_price: int = None
    skip_preflight: bool = None
    preflight_commitment: str = None
    confirmation_timeout: float = None

    def __post_init__(self):
        for name in (
            "compute_units",
            "compute_unit_price",
            "skip_preflight",
            "preflight_commitment",
            "confirmation_timeout",
        ):
            if getattr(self, name) is None:
                setattr(self, name, getattr(global_config.tx, name))


class TxBuilder:
    """
    Compiles, signs and submits transactions for one wallet

    Usage:
        builder = TxBuilder(rpc, signer)

        result = builder.execute(ixs, additional_signers=[nft_mint])

        unsigned = builder.build(ixs)
        signed, wallet_sig = builder.sign(unsigned, [nft_mint])
        preview = builder.simulate(signed)
    """

    def __init__(
        self,
        rpc: RpcClient,
        signer: Signer,
        config: Optional[TxBuilderConfig] = None,
    ):
        self._rpc = rpc
        self._signer = signer
        self._config = config or TxBuilderConfig()

    @property
    def pubkey(self) -> str:
        """Wallet address (base58), the default fee payer"""
        return self._signer.pubkey

    def build(
        self,
        instructions: Sequence[Instruction],
        payer: Optional[str] = None,
        compute_units: Optional[int] = None,
        compute_unit_price: Optional[int] = None,
        recent_blockhash: Optional[str] = None,
    ) -> bytes:
        """
        Build an unsigned versioned transaction

        Args:
            instructions: Program instructions
            payer: Fee payer (base58); the wallet when omitted
            compute_units: Compute unit limit (0 omits the instruction)
            compute_unit_price: Priority fee in microlamports per CU (0 omits it)
            recent_blockhash: Blockhash to compile against; fetched when None

        Returns:
            Transaction bytes with default signatures in every signer slot
        """
        cu_limit = self._config.compute_units if compute_units is None else compute_units
        cu_price = self._config.compute_unit_price if compute_unit_price is None else compute_unit_price
        all_instructions = with_compute_budget(instructions, cu_limit, cu_price)

        if recent_blockhash is None:
            recent_blockhash = self._rpc.get_latest_blockhash().get("blockhash")
        if not recent_blockhash:
            raise TransactionError.send_failed("getLatestBlockhash returned no blockhash")

        message = MessageV0.try_compile(
            Pubkey.from_string(payer or self.pubkey),
            all_instructions,
            [],
            Hash.from_string(recent_blockhash),
        )
        null_signatures = [Signature.default()] * message.header.num_required_signatures
        return bytes(VersionedTransaction.populate(message, null_signatures))

    def sign(
        self,
        unsigned_tx: bytes,
        additional_signers: Optional[Sequence[Keypair]] = None,
    ) -> Tuple[bytes, str]:
        """
        Sign with the wallet and any additional keypairs

        Returns:
            (signed_tx_bytes, wallet_signature_base58)

        Raises:
            TransactionError: If the wallet is not a signer or a required signature is missing
        """
        if not additional_signers:
            return self._signer.sign_transaction(unsigned_tx)

        message = VersionedTransaction.from_bytes(unsigned_tx).message
        message_bytes = message_bytes_for_signing(message)
        account_keys = list(message.account_keys)
        num_required = message.header.num_required_signatures
        placeholder = Signature.default()
        signatures: List[Signature] = [placeholder] * num_required

        wallet_index = signer_index(message, Pubkey.from_string(self._signer.pubkey))
        if wallet_index is None:
            available = [str(k) for k in account_keys[:num_required]]
            raise TransactionError.send_failed(
                f"Wallet pubkey {self._signer.pubkey} not found in transaction signers. "
                f"Required signers: {available}"
            )
        wallet_signature = Signature.from_bytes(self._signer.sign(message_bytes))
        signatures[wallet_index] = wallet_signature

        for keypair in additional_signers:
            index = signer_index(message, keypair.pubkey())
            if index is None:
                logger.warning(f"Additional signer {keypair.pubkey()} not found in required signers")
                continue
            signatures[index] = keypair.sign_message(message_bytes)
            logger.debug(f"Additional signer {str(keypair.pubkey())[:16]}... signed at index {index}")

        missing = [str(account_keys[i]) for i, sig in enumerate(signatures) if sig == placeholder]
        if missing:
            raise TransactionError(f"Missing signatures for required signers: {', '.join(missing)}")

        signed_tx = VersionedTransaction.populate(message, signatures)
        return bytes(signed_tx), str(wallet_signature)

    def simulate(self, tx: bytes) -> TxResult:
        """
        Simulate transaction execution (signatures are not verified)

        Raises:
            TransactionError: If the simulation reports an error
        """
        result = self._rpc.simulate_transaction(tx)
        value = result.get("value") or {}
        logs = value.get("logs") or []
        if value.get("err"):
            for line in logs:
                logger.debug(f"  {line}")
            raise TransactionError.simulation_failed(str(value["err"]), logs)

        logger.info(f"Simulation succeeded ({value.get('unitsConsumed')} compute units)")
        return TxResult.simulated(logs, value.get("unitsConsumed"))

    def send(
        self,
        signed_tx: bytes,
        skip_preflight: Optional[bool] = None,
        wait_confirmation: bool = True,
    ) -> TxResult:
        """
        Send a signed transaction, optionally waiting for confirmation

        Raises:
            TransactionError: If the RPC rejects the transaction
        """
        skip = skip_preflight if skip_preflight is not None else self._config.skip_preflight

        try:
            signature = self._rpc.send_transaction(
                signed_tx,
                skip_preflight=skip,
                preflight_commitment=self._config.preflight_commitment,
            )
        except RpcError as e:
            raise TransactionError.send_failed(str(e)) from e

        logger.info(f"Submitted {signature}")
        if not wait_confirmation:
            return TxResult(status=TxStatus.PENDING, signature=signature)

        confirmed = self._rpc.confirm_transaction(
            signature,
            commitment=self._config.preflight_commitment,
            timeout_seconds=self._config.confirmation_timeout,
        )
        if confirmed is True:
            return TxResult.success(signature)
        if confirmed is False:
            return TxResult.failed("Transaction landed with an error", signature=signature)
        return TxResult.timeout(signature)

    def execute(
        self,
        instructions: Sequence[Instruction],
        additional_signers: Optional[Sequence[Keypair]] = None,
        simulate: bool = False,
        compute_units: Optional[int] = None,
        compute_unit_price: Optional[int] = None,
        skip_preflight: Optional[bool] = None,
        wait_confirmation: bool = True,
    ) -> TxResult:
        """
        Build, sign and either simulate or send in one call

        Args:
            instructions: Program instructions
            additional_signers: Extra keypairs (e.g. a new position NFT mint)
            simulate: Simulate instead of sending
            compute_units: Compute unit limit override
            compute_unit_price: Priority fee override
            skip_preflight: Skip preflight simulation on send
            wait_confirmation: Wait for confirmation on send
        """
        unsigned_tx = self.build(
            instructions,
            compute_units=compute_units,
            compute_unit_price=compute_unit_price,
        )
        signed_tx, _ = self.sign(unsigned_tx, additional_signers)

        if simulate:
            return self.simulate(signed_tx)
        return self.send(signed_tx, skip_preflight=skip_preflight, wait_confirmation=wait_confirmation)
