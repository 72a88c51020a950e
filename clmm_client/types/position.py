"""
Position NFT type definitions
"""

from dataclasses import dataclass

from solders.pubkey import Pubkey


@dataclass(frozen=True)
class PositionNftTokenInfo:
    """
    A wallet token account holding one position NFT

    Built per query from getTokenAccountsByOwner results; never cached.

    Attributes:
        key: Token account address
        program: Token program owning the account (SPL Token or Token-2022)
        position: Personal position PDA derived from the mint
        mint: Position NFT mint
        amount: Token balance (1 for a live position)
        decimals: Mint decimals (0 for position NFTs)
    """
    key: Pubkey
    program: Pubkey
    position: Pubkey
    mint: Pubkey
    amount: int
    decimals: int

    @property
    def is_position_nft(self) -> bool:
        return self.amount == 1 and self.decimals == 0
