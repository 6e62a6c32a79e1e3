"""Alchemy NFT API client used as the external asset index.

Only ``getNFTsForOwner`` is used. The client follows ``pageKey`` links and
normalises both the v3 (``tokenId`` + ``raw.metadata``) and the legacy v2
(``id.tokenId`` + ``metadata``) record shapes.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Sequence, TypedDict

import backoff
import requests
from eth_typing import HexStr
from web3 import Web3

from ..constants import INDEX_REQUEST_PAGE_SIZE, INDEX_REQUEST_TIMEOUT
from ..errors import AssetIndexError
from ..logger import get_logger
from ..settings import VaultSettings
from .base import AssetIndex, RawAssetRecord

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class OwnedNftsResponse(TypedDict, total=False):
    ownedNfts: list[dict[str, Any]]
    pageKey: str | None
    totalCount: int


def parse_token_id(value: Any) -> int:
    """Token ids arrive as decimal strings (v3), hex strings (v2) or ints."""
    if isinstance(value, bool):
        raise AssetIndexError(f"Unexpected token id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value:
        try:
            if value.lower().startswith("0x"):
                return Web3.to_int(hexstr=HexStr(value))
            return int(value)
        except ValueError as e:
            raise AssetIndexError(f"Unexpected token id: {value!r}") from e
    raise AssetIndexError(f"Unexpected token id: {value!r}")


def parse_owned_nft(raw: dict[str, Any]) -> RawAssetRecord:
    contract = raw.get("contract") or {}
    address = contract.get("address")
    if not address:
        raise AssetIndexError(f"Index record without contract address: {raw!r}")

    token_id_raw = raw.get("tokenId")
    if token_id_raw is None:
        token_id_raw = (raw.get("id") or {}).get("tokenId")

    metadata = (raw.get("raw") or {}).get("metadata") or raw.get("metadata")
    if metadata is None:
        metadata = raw.get("rawMetadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}

    return RawAssetRecord(
        contract_address=Web3.to_checksum_address(address),
        token_id=parse_token_id(token_id_raw),
        metadata=dict(metadata),
    )


def _giveup(e: Exception) -> bool:
    return (
        isinstance(e, requests.exceptions.HTTPError)
        and e.response is not None
        and e.response.status_code not in RETRYABLE_STATUS_CODES
    )


class AlchemyNftClient:
    """Blocking client for the Alchemy NFT ownership endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        page_size: int = INDEX_REQUEST_PAGE_SIZE,
        request_timeout: int = INDEX_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._page_size = max(1, min(page_size, 100))
        self._request_timeout = request_timeout
        self._session = session or requests.Session()

    @backoff.on_exception(
        backoff.expo,
        requests.exceptions.RequestException,
        max_tries=5,
        giveup=_giveup,
        jitter=backoff.full_jitter,
    )
    def get_owned_page(
        self,
        owner: str,
        contract_addresses: Sequence[str] | None = None,
        page_key: str | None = None,
    ) -> OwnedNftsResponse:
        params: dict[str, Any] = {
            "owner": owner,
            "withMetadata": "true",
            "pageSize": self._page_size,
        }
        if contract_addresses:
            params["contractAddresses[]"] = list(contract_addresses)
        if page_key:
            params["pageKey"] = page_key

        response = self._session.get(
            f"{self._base_url}/{self._api_key}/getNFTsForOwner",
            params=params,
            timeout=self._request_timeout,
        )
        response.raise_for_status()

        payload = response.json()
        if not isinstance(payload, dict) or not isinstance(
            payload.get("ownedNfts"), list
        ):
            raise AssetIndexError("Unexpected getNFTsForOwner payload format")
        return payload  # type: ignore[return-value]


class AlchemyAssetIndex(AssetIndex):
    """``AssetIndex`` over ``AlchemyNftClient``; pages are fetched lazily."""

    def __init__(self, client: AlchemyNftClient):
        self.client = client

    @classmethod
    def from_settings(cls, settings: VaultSettings) -> AlchemyAssetIndex:
        return cls(
            AlchemyNftClient(settings.index_base_url, settings.index_api_key_required)
        )

    async def iter_owned(
        self, owner: str, contract_addresses: Sequence[str] | None = None
    ) -> AsyncIterator[RawAssetRecord]:
        page_key: str | None = None
        pages = 0
        while True:
            payload = await asyncio.to_thread(
                self.client.get_owned_page, owner, contract_addresses, page_key
            )
            pages += 1
            owned = payload.get("ownedNfts", [])
            logger.debug(
                "Index page %d for %s returned %d record(s)", pages, owner, len(owned)
            )
            for raw in owned:
                yield parse_owned_nft(raw)

            page_key = payload.get("pageKey")
            if not page_key:
                break
