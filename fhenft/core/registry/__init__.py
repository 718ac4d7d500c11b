"""
Asset Registry Module.

Custody primitives and ownership queries for auctioned NFTs.
"""

from fhenft.core.registry.nft_collection import (
    AssetRef,
    AssetRegistry,
    NftCollection,
    CollectionDirectory,
    TokenRecord,
)

__all__ = [
    "AssetRef",
    "AssetRegistry",
    "NftCollection",
    "CollectionDirectory",
    "TokenRecord",
]
