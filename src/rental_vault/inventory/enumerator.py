"""Cross-reference the external asset index with on-chain custody state."""

from __future__ import annotations

from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Sequence

import backoff

from ..abi import load_rent_storage_abi, load_vault_abi
from ..constants import COUNT_BASE_DELAY_SECONDS, COUNT_MAX_ATTEMPTS, DEFAULT_IPFS_GATEWAY
from ..deployment import CustodyDeployment
from ..errors import CallError, MaxRetriesExceeded
from ..index.base import AssetIndex, RawAssetRecord
from ..logger import get_logger
from ..metadata import normalize_metadata, with_valuation_attributes
from ..rpc.executor import ContractRef, ResilientCallExecutor
from ..settings import VaultSettings
from ..units import DecimalAmount
from .models import (
    AnnotationFailure,
    Asset,
    CustodyCounts,
    CustodyState,
    InventoryPage,
    Valuation,
)

logger = get_logger(__name__)

GET_TOKEN_ID = "getTokenId(address,uint256)"
GET_LOCKED_TILL = "getLockedTill"


def page_of(position: int, page_size: int) -> int:
    """1-indexed page holding the 1-indexed ``position``."""
    return -(-position // page_size)


@dataclass(frozen=True, slots=True)
class ClassifiedItem:
    position: int
    record: RawAssetRecord
    custody: CustodyState | None = None
    error: CallError | None = None


class CustodyEnumerator:
    """Enumerates assets of an owner and classifies them as available or locked.

    Every item is annotated with two sequential lookups on the rent storage
    contract (``getTokenId(address,uint256)`` then ``getLockedTill``), in index
    order. Items are never annotated concurrently, so page placement is
    reproducible for a fixed index snapshot.
    """

    def __init__(
        self,
        deployment: CustodyDeployment,
        index: AssetIndex,
        executor: ResilientCallExecutor,
        *,
        page_size: int = 12,
        count_max_attempts: int = COUNT_MAX_ATTEMPTS,
        count_base_delay: float = COUNT_BASE_DELAY_SECONDS,
        ipfs_gateway: str = DEFAULT_IPFS_GATEWAY,
    ):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.deployment = deployment
        self.index = index
        self.executor = executor
        self.page_size = page_size
        self.count_max_attempts = count_max_attempts
        self.count_base_delay = count_base_delay
        self.ipfs_gateway = ipfs_gateway

        self._rent_storage = ContractRef(
            deployment.rent_storage_address,
            load_rent_storage_abi(),
            name="RentableTokensStorage",
        )
        self._vault = ContractRef(deployment.vault_address, load_vault_abi(), name="Vault")

    @classmethod
    def from_settings(
        cls,
        settings: VaultSettings,
        deployment: CustodyDeployment,
        index: AssetIndex,
        executor: ResilientCallExecutor,
    ) -> CustodyEnumerator:
        return cls(
            deployment,
            index,
            executor,
            page_size=settings.page_size,
            count_max_attempts=settings.count_max_attempts,
            count_base_delay=settings.count_base_delay,
            ipfs_gateway=settings.ipfs_gateway,
        )

    def _page_size(self, page_size: int | None) -> int:
        if page_size is None:
            return self.page_size
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        return page_size

    async def lock_state(self, record: RawAssetRecord) -> CustodyState:
        storage_id = await self.executor.call(
            self._rent_storage,
            GET_TOKEN_ID,
            [record.contract_address, record.token_id],
        )
        expiry = await self.executor.call(
            self._rent_storage, GET_LOCKED_TILL, [storage_id], default=0
        )
        return CustodyState.from_expiry(int(expiry))

    async def valuation(self, record: RawAssetRecord) -> Valuation:
        decimals = self.deployment.native_decimals
        args = [record.contract_address, record.token_id]
        price = await self.executor.call(self._vault, "getPrice", args, default=0)
        value = await self.executor.call(self._vault, "getValue", args, default=0)
        return Valuation(
            price=DecimalAmount(int(price), decimals),
            value=DecimalAmount(int(value), decimals),
        )

    async def classify(
        self,
        owner: str,
        contract_filter: Sequence[str] | None = None,
        *,
        stop_after: int | None = None,
    ) -> AsyncIterator[ClassifiedItem]:
        """Lazily walk the index, annotating each item as it is reached.

        Stopping early (breaking out of the loop) skips the remaining index
        items entirely; with ``stop_after`` the walk ends after that position
        without pulling the next record. A failed annotation is yielded with
        ``error`` set instead of being raised so the consumer decides the policy.
        """
        position = 0
        async with aclosing(self.index.iter_owned(owner, contract_filter)) as records:
            async for record in records:
                position += 1
                try:
                    custody = await self.lock_state(record)
                except CallError as e:
                    yield ClassifiedItem(position, record, error=e)
                else:
                    yield ClassifiedItem(position, record, custody=custody)
                if stop_after is not None and position >= stop_after:
                    break

    async def _build_asset(
        self, record: RawAssetRecord, custody: CustodyState | None
    ) -> Asset:
        valuation = await self.valuation(record)
        metadata = with_valuation_attributes(
            normalize_metadata(record.metadata, self.ipfs_gateway),
            self.deployment.native_symbol,
            value=valuation.value.to_float(),
            price=valuation.price.to_float(),
        )
        return Asset(
            contract_address=record.contract_address,
            token_id=record.token_id,
            custody=custody,
            valuation=valuation,
            metadata=metadata,
        )

    def _exclude(
        self, result: InventoryPage, position: int, record: RawAssetRecord, error: CallError
    ) -> None:
        failure = AnnotationFailure(
            position=position,
            contract_address=record.contract_address,
            token_id=record.token_id,
            error=error,
        )
        logger.warning("Excluding index item %s", failure.describe())
        result.failures.append(failure)

    async def list_page(
        self,
        owner: str,
        page: int,
        contract_filter: Sequence[str] | None = None,
        *,
        page_size: int | None = None,
    ) -> InventoryPage:
        """Return the available and locked assets that fall on ``page``.

        Items on earlier pages are annotated too, since the walk has to pass
        through them. The walk ends at the last position of the page, or
        earlier once the page is full; the next page is never touched.
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        size = self._page_size(page_size)
        result = InventoryPage(page=page, page_size=size)

        items = self.classify(owner, contract_filter, stop_after=page * size)
        async with aclosing(items) as items:
            async for item in items:
                item_page = page_of(item.position, size)
                if item_page < page:
                    if item.error is not None:
                        logger.debug(
                            "Annotation failed for item #%d before page %d: %s",
                            item.position,
                            page,
                            item.error,
                        )
                    continue
                if item.error is not None:
                    self._exclude(result, item.position, item.record, item.error)
                    continue
                try:
                    asset = await self._build_asset(item.record, item.custody)
                except CallError as e:
                    self._exclude(result, item.position, item.record, e)
                    continue

                if asset.custody is not None and asset.custody.is_locked:
                    result.locked.append(asset)
                else:
                    result.available.append(asset)
                if result.is_full:
                    break

        if result.is_partial:
            logger.warning(
                "Page %d for %s is partial: %d item(s) excluded",
                page,
                owner,
                len(result.failures),
            )
        logger.debug(
            "Page %d for %s: %d available, %d locked",
            page,
            owner,
            len(result.available),
            len(result.locked),
        )
        return result

    async def _count_walk(
        self, owner: str, contract_filter: Sequence[str] | None
    ) -> CustodyCounts:
        available = 0
        locked = 0
        async with aclosing(self.classify(owner, contract_filter)) as items:
            async for item in items:
                if item.error is not None:
                    raise item.error
                if item.custody is not None and item.custody.is_locked:
                    locked += 1
                else:
                    available += 1
        return CustodyCounts(available=available, locked=locked)

    def _log_count_backoff(self, details: dict[str, Any]) -> None:
        logger.warning(
            "Count walk failed (attempt %d/%d), restarting in %.2fs: %s",
            details["tries"],
            self.count_max_attempts,
            details["wait"],
            details.get("exception"),
        )

    async def count_all(
        self, owner: str, contract_filter: Sequence[str] | None = None
    ) -> CustodyCounts:
        """Count available and locked assets across the whole index.

        The index has no resumable cursor, so any failure restarts the walk
        from the first item.

        Raises:
            MaxRetriesExceeded: The walk failed ``count_max_attempts`` times.
        """
        attempts = 0

        async def walk() -> CustodyCounts:
            nonlocal attempts
            attempts += 1
            return await self._count_walk(owner, contract_filter)

        retrying_walk = backoff.on_exception(
            backoff.expo,
            Exception,
            max_tries=self.count_max_attempts,
            factor=self.count_base_delay,
            jitter=None,
            on_backoff=self._log_count_backoff,
            logger=None,
        )(walk)

        try:
            counts = await retrying_walk()
        except Exception as e:
            raise MaxRetriesExceeded(f"count_all({owner})", attempts, e) from e

        logger.info(
            "Counted %d available and %d locked asset(s) for %s",
            counts.available,
            counts.locked,
            owner,
        )
        return counts

    async def list_custody_page(
        self,
        contract_addresses: Sequence[str],
        page: int,
        *,
        page_size: int | None = None,
    ) -> InventoryPage:
        """Assets held by the vault itself within ``contract_addresses``.

        No lock lookup is made; every emitted asset lands in ``available``.
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        size = self._page_size(page_size)
        result = InventoryPage(page=page, page_size=size)
        if not contract_addresses:
            return result

        position = 0
        records = self.index.iter_owned(self.deployment.vault_address, contract_addresses)
        async with aclosing(records) as records:
            async for record in records:
                position += 1
                item_page = page_of(position, size)
                if item_page < page:
                    continue
                try:
                    result.available.append(await self._build_asset(record, None))
                except CallError as e:
                    self._exclude(result, position, record, e)
                if position >= page * size:
                    break
        return result

    async def count_custody(self, contract_addresses: Sequence[str]) -> int:
        if not contract_addresses:
            return 0
        count = 0
        records = self.index.iter_owned(self.deployment.vault_address, contract_addresses)
        async with aclosing(records) as records:
            async for _ in records:
                count += 1
        return count
