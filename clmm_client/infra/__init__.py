"""
Infrastructure layer for the CLMM client

Provides:
- RpcClient: HTTP JSON-RPC wrapper with retry logic
- Signer: Transaction signing abstraction (local keypair)
- TxBuilder: Transaction assembly, simulation and sending
"""

from .rpc import RpcClient, RpcClientConfig, decode_account_data
from .solana_signer import (
    Signer,
    LocalSigner,
    create_signer,
    create_admin_signer,
)
from .tx_builder import TxBuilder, TxBuilderConfig

__all__ = [
    "RpcClient",
    "RpcClientConfig",
    "decode_account_data",
    "Signer",
    "LocalSigner",
    "create_signer",
    "create_admin_signer",
    "TxBuilder",
    "TxBuilderConfig",
]
