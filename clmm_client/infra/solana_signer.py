"""
Transaction signing

Local keypair signing for the payer / position owner and for the admin key
that controls AMM configs, the operation account and reward ownership.
"""

import json
import logging
import os
from typing import List, Optional, Protocol, Tuple, runtime_checkable

import base58
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from ..errors import SignerError, ConfigurationError
from ..config import config as global_config

logger = logging.getLogger(__name__)


def message_bytes_for_signing(message) -> bytes:
    """
    Bytes a signer commits to.

    Versioned messages are signed with their 0x80 version prefix.
    """
    raw = bytes(message)
    if isinstance(message, MessageV0):
        return bytes([0x80]) + raw
    return raw


def signer_index(message, pubkey: Pubkey) -> Optional[int]:
    """Position of pubkey among the message's required signers"""
    account_keys = list(message.account_keys)
    for i in range(message.header.num_required_signatures):
        if i < len(account_keys) and account_keys[i] == pubkey:
            return i
    return None


@runtime_checkable
class Signer(Protocol):
    """
    Anything that can sign for one address.

    sign() takes raw message bytes; sign_transaction() takes a serialized
    VersionedTransaction and returns it with this key's slot filled.
    """

    @property
    def pubkey(self) -> str:
        ...

    def sign(self, message: bytes) -> bytes:
        ...

    def sign_transaction(self, unsigned_tx: bytes) -> Tuple[bytes, str]:
        ...


class LocalSigner:
    """
    Signer backed by an in-memory solders Keypair

    Usage:
        wallet = LocalSigner.from_file("~/.config/solana/id.json")
        signed, signature = wallet.sign_transaction(unsigned)
    """

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @property
    def pubkey(self) -> str:
        return str(self._keypair.pubkey())

    @property
    def public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    def sign(self, message: bytes) -> bytes:
        return bytes(self._keypair.sign_message(message))

    def sign_transaction(self, unsigned_tx: bytes) -> Tuple[bytes, str]:
        """
        Sign a versioned transaction in this key's signer slot.

        Other required signer slots are left as default signatures.

        Raises:
            SignerError: If this key is not a required signer
        """
        message = VersionedTransaction.from_bytes(unsigned_tx).message
        index = signer_index(message, self._keypair.pubkey())
        if index is None:
            expected = [str(k) for k in list(message.account_keys)[:message.header.num_required_signatures]]
            raise SignerError.failed(f"Wallet {self.pubkey} is not a required signer. Expected signers: {expected}")

        signature = self._keypair.sign_message(message_bytes_for_signing(message))
        signatures: List[Signature] = [Signature.default()] * message.header.num_required_signatures
        signatures[index] = signature

        return bytes(VersionedTransaction.populate(message, signatures)), str(signature)

    @classmethod
    def from_bytes(cls, secret_key: bytes) -> "LocalSigner":
        """64-byte ed25519 secret key (seed followed by public key)"""
        try:
            return cls(Keypair.from_bytes(secret_key))
        except ValueError as e:
            raise ConfigurationError.invalid("keypair", str(e))

    @classmethod
    def from_base58(cls, secret_key: str) -> "LocalSigner":
        """Secret key as exported by wallets (base58 of the 64 bytes)"""
        return cls.from_bytes(base58.b58decode(secret_key))

    @classmethod
    def from_file(cls, path: str) -> "LocalSigner":
        """
        Load a keypair file written by solana-keygen (a JSON list of 64 ints)
        or a bare 64-byte binary file. A leading ~ is expanded.
        """
        path = os.path.expanduser(path)
        try:
            with open(path, "rb") as fh:
                content = fh.read()
        except OSError as e:
            raise ConfigurationError.invalid("keypair_file", f"{path} is unreadable ({e})")

        try:
            parsed = json.loads(content.decode("utf-8"))
            if isinstance(parsed, list):
                return cls.from_bytes(bytes(parsed))
        except (ValueError, UnicodeDecodeError):
            pass

        if len(content) == 64:
            return cls.from_bytes(content)

        raise ConfigurationError.invalid("keypair_file", f"{path} is neither a JSON byte list nor 64 raw bytes")


def create_signer(
    keypair: Optional[Keypair] = None,
    keypair_path: Optional[str] = None,
) -> Signer:
    """
    Wallet signer from an explicit keypair, else keypair_path, else the
    SOLANA_KEYPAIR_PATH file.

    Raises:
        SignerError: When none of the three is available
    """
    if keypair is not None:
        return LocalSigner(keypair)

    if keypair_path:
        return LocalSigner.from_file(keypair_path)

    path = global_config.signer.keypair_path
    if path and os.path.isfile(os.path.expanduser(path)):
        return LocalSigner.from_file(path)

    raise SignerError.not_configured()


def create_admin_signer(keypair_path: Optional[str] = None) -> Signer:
    """
    Signer for admin-only instructions (ADMIN_KEYPAIR_PATH).

    Falls back to the regular signer when no admin key is configured.
    """
    path = keypair_path or global_config.signer.admin_keypair_path
    if path:
        return LocalSigner.from_file(path)
    logger.debug("No admin keypair configured, using the default signer")
    return create_signer()
