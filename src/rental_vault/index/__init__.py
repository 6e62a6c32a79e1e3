from __future__ import annotations

from .alchemy import AlchemyAssetIndex, AlchemyNftClient, parse_owned_nft, parse_token_id
from .base import AssetIndex, RawAssetRecord

__all__ = [
    "AlchemyAssetIndex",
    "AlchemyNftClient",
    "AssetIndex",
    "RawAssetRecord",
    "parse_owned_nft",
    "parse_token_id",
]
