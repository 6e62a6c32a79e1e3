import pytest

from rental_vault.deployment import CustodyDeployment
from rental_vault.errors import MaxRetriesExceeded
from rental_vault.index.base import AssetIndex, RawAssetRecord
from rental_vault.inventory.enumerator import (
    GET_LOCKED_TILL,
    GET_TOKEN_ID,
    CustodyEnumerator,
    page_of,
)
from rental_vault.inventory.models import CustodyStatus
from rental_vault.rpc.executor import ResilientCallExecutor
from rental_vault.rpc.retry import RetryPolicy
from rental_vault.settings import Network

VAULT = "0x9999999999999999999999999999999999999999"
STORAGE = "0x5555555555555555555555555555555555555555"
COLLECTION = "0x1111111111111111111111111111111111111111"
OTHER_COLLECTION = "0x2222222222222222222222222222222222222222"
OWNER = "0x7777777777777777777777777777777777777777"
LOCK_EXPIRY = 1_900_000_000


class FakeIndex(AssetIndex):
    def __init__(self, records: list[RawAssetRecord]):
        self.records = records
        self.yielded = 0
        self.walks = 0
        self.requests: list[tuple[str, object]] = []

    async def iter_owned(self, owner, contract_addresses=None):
        self.walks += 1
        self.requests.append((owner, contract_addresses))
        for record in self.records:
            if contract_addresses and record.contract_address not in contract_addresses:
                continue
            self.yielded += 1
            yield record


class ChainReader:
    """Storage id is ``token_id + 1000``; even token ids are locked."""

    def __init__(self, fail: dict[int, int] | None = None):
        self.calls: list[tuple[str, list]] = []
        self.fail = dict(fail or {})

    def __call__(self, contract_address, abi, method_signature, args):
        self.calls.append((method_signature, list(args)))
        if method_signature == GET_TOKEN_ID:
            token_id = args[1]
            if self.fail.get(token_id, 0) != 0:
                self.fail[token_id] -= 1
                raise ConnectionError(f"rpc down for {token_id}")
            return token_id + 1000
        if method_signature == GET_LOCKED_TILL:
            token_id = args[0] - 1000
            return LOCK_EXPIRY if token_id % 2 == 0 else 0
        if method_signature == "getPrice":
            return 10**16 if args[1] % 3 == 0 else 0
        if method_signature == "getValue":
            return 10**18 if args[1] % 3 == 0 else 0
        raise AssertionError(f"unexpected call {method_signature}")

    def token_ids_for(self, method_signature: str) -> list[int]:
        return [args[1] for sig, args in self.calls if sig == method_signature]


def _records(count: int, contract: str = COLLECTION) -> list[RawAssetRecord]:
    return [
        RawAssetRecord(
            contract,
            token_id,
            {"name": f"Item {token_id}", "image": f"ipfs://cid/{token_id}.png"},
        )
        for token_id in range(1, count + 1)
    ]


def _deployment() -> CustodyDeployment:
    return CustodyDeployment(
        network=Network.MAINNET,
        chain_id=1,
        native_symbol="ETH",
        native_decimals=18,
        vault_address=VAULT,
        rent_storage_address=STORAGE,
    )


def _enumerator(index, reader, *, max_attempts=5, **kwargs) -> CustodyEnumerator:
    async def no_sleep(seconds: float) -> None:
        return None

    executor = ResilientCallExecutor(
        reader,
        RetryPolicy(max_attempts=max_attempts, base_delay=0, jitter=False),
        sleep=no_sleep,
    )
    return CustodyEnumerator(_deployment(), index, executor, **kwargs)


@pytest.mark.parametrize(
    "position,expected", [(1, 1), (12, 1), (13, 2), (24, 2), (25, 3)]
)
def test_page_of(position, expected):
    assert page_of(position, 12) == expected


@pytest.mark.asyncio
async def test_second_page_stops_once_full():
    index = FakeIndex(_records(25))
    reader = ChainReader()

    page = await _enumerator(index, reader).list_page(OWNER, 2)

    assert page.size == 12
    assert [a.token_id for a in page.available] == [13, 15, 17, 19, 21, 23]
    assert [a.token_id for a in page.locked] == [14, 16, 18, 20, 22, 24]
    assert all(a.custody.locked_until == LOCK_EXPIRY for a in page.locked)
    assert all(a.custody.status is CustodyStatus.AVAILABLE for a in page.available)
    assert page.failures == []

    # items on page 1 are annotated while walking past them, item 25 never is
    assert reader.token_ids_for(GET_TOKEN_ID) == list(range(1, 25))
    assert index.yielded == 24
    # valuation is only read for emitted items
    assert reader.token_ids_for("getPrice") == list(range(13, 25))


@pytest.mark.asyncio
async def test_lock_lookups_are_sequential_per_item():
    index = FakeIndex(_records(2))
    reader = ChainReader()

    await _enumerator(index, reader, page_size=12).list_page(OWNER, 1)

    signatures = [sig for sig, _ in reader.calls if sig in (GET_TOKEN_ID, GET_LOCKED_TILL)]
    assert signatures == [GET_TOKEN_ID, GET_LOCKED_TILL] * 2
    assert ("getLockedTill", [1001]) in reader.calls


@pytest.mark.asyncio
async def test_last_page_may_be_short():
    index = FakeIndex(_records(25))
    page = await _enumerator(index, ChainReader()).list_page(OWNER, 3)

    assert [a.token_id for a in page.available] == [25]
    assert page.locked == []
    assert not page.is_full


@pytest.mark.asyncio
async def test_page_past_the_end_is_empty():
    page = await _enumerator(FakeIndex(_records(5)), ChainReader()).list_page(OWNER, 2)
    assert page.size == 0


@pytest.mark.asyncio
async def test_emitted_assets_carry_valuation_and_normalised_metadata():
    index = FakeIndex(_records(3))
    page = await _enumerator(index, ChainReader()).list_page(OWNER, 1)

    third = next(a for a in page.available if a.token_id == 3)
    assert str(third.valuation.value) == "1.0"
    assert str(third.valuation.price) == "0.01"
    assert third.valuation.is_vaulted
    assert third.metadata["image"] == "https://ipfs.io/ipfs/cid/3.png"
    assert third.metadata["attributes"] == [
        {"trait_type": "ETH Value", "value": 1.0},
        {"trait_type": "ETH Price / Day", "value": 0.01},
    ]
    assert third.identity == f"{COLLECTION}3"

    first = next(a for a in page.available if a.token_id == 1)
    assert not first.valuation.is_vaulted


@pytest.mark.asyncio
async def test_failed_annotation_excludes_item_and_reports_it():
    index = FakeIndex(_records(25))
    reader = ChainReader(fail={14: 100})

    page = await _enumerator(index, reader).list_page(OWNER, 2)

    assert 14 not in [a.token_id for a in page.available + page.locked]
    assert page.is_partial
    assert [(f.position, f.token_id) for f in page.failures] == [(14, 14)]
    assert isinstance(page.failures[0].error, MaxRetriesExceeded)
    # the failed item keeps its slot, so later items do not shift pages
    assert page.size == 11
    assert "#14" in page.to_dict()["warnings"][0]


@pytest.mark.asyncio
async def test_page_with_exclusion_does_not_touch_next_page():
    index = FakeIndex(_records(25))
    reader = ChainReader(fail={14: 100})

    await _enumerator(index, reader).list_page(OWNER, 2)

    looked_up = reader.token_ids_for(GET_TOKEN_ID)
    assert 25 not in looked_up
    assert looked_up[-2:] == [23, 24]
    assert index.yielded == 24


@pytest.mark.asyncio
async def test_contract_filter_is_passed_to_index():
    records = _records(3) + _records(3, contract=OTHER_COLLECTION)
    index = FakeIndex(records)

    page = await _enumerator(index, ChainReader()).list_page(
        OWNER, 1, [OTHER_COLLECTION]
    )

    assert index.requests == [(OWNER, [OTHER_COLLECTION])]
    assert {a.contract_address for a in page.available + page.locked} == {OTHER_COLLECTION}


@pytest.mark.asyncio
async def test_invalid_page_is_rejected():
    with pytest.raises(ValueError):
        await _enumerator(FakeIndex([]), ChainReader()).list_page(OWNER, 0)


@pytest.mark.asyncio
async def test_count_all_classifies_everything():
    index = FakeIndex(_records(25))
    counts = await _enumerator(index, ChainReader()).count_all(OWNER)

    assert counts.available == 13
    assert counts.locked == 12
    assert counts.total == 25


@pytest.mark.asyncio
async def test_count_all_restarts_walk_after_failure():
    index = FakeIndex(_records(20))
    reader = ChainReader(fail={10: 2})
    enumerator = _enumerator(index, reader, max_attempts=1, count_base_delay=0)

    counts = await enumerator.count_all(OWNER)

    assert counts.available == 10
    assert counts.locked == 10
    assert index.walks == 3
    assert reader.token_ids_for(GET_TOKEN_ID).count(1) == 3


@pytest.mark.asyncio
async def test_count_all_gives_up_after_max_attempts():
    index = FakeIndex(_records(5))
    reader = ChainReader(fail={3: 100})
    enumerator = _enumerator(
        index, reader, max_attempts=1, count_max_attempts=3, count_base_delay=0
    )

    with pytest.raises(MaxRetriesExceeded) as exc_info:
        await enumerator.count_all(OWNER)

    assert exc_info.value.attempts == 3
    assert index.walks == 3


@pytest.mark.asyncio
async def test_custody_listing_skips_lock_lookup():
    index = FakeIndex(_records(14))
    reader = ChainReader()
    enumerator = _enumerator(index, reader)

    page = await enumerator.list_custody_page([COLLECTION], 2)

    assert [a.token_id for a in page.available] == [13, 14]
    assert page.locked == []
    assert all(a.custody is None for a in page.available)
    assert reader.token_ids_for(GET_TOKEN_ID) == []
    assert index.requests == [(VAULT, [COLLECTION])]


@pytest.mark.asyncio
async def test_custody_count():
    index = FakeIndex(_records(4) + _records(2, contract=OTHER_COLLECTION))
    enumerator = _enumerator(index, ChainReader())

    assert await enumerator.count_custody([COLLECTION]) == 4
    assert await enumerator.count_custody([COLLECTION, OTHER_COLLECTION]) == 6


@pytest.mark.asyncio
async def test_custody_with_empty_filter_is_empty():
    index = FakeIndex(_records(4))
    enumerator = _enumerator(index, ChainReader())

    page = await enumerator.list_custody_page([], 1)
    assert page.size == 0
    assert await enumerator.count_custody([]) == 0
    assert index.walks == 0


@pytest.mark.asyncio
async def test_existing_attributes_follow_valuation_attributes():
    record = RawAssetRecord(
        COLLECTION, 3, {"attributes": [{"trait_type": "Fur", "value": "Gold"}]}
    )
    page = await _enumerator(FakeIndex([record]), ChainReader()).list_page(OWNER, 1)

    [asset] = page.available
    assert [a["trait_type"] for a in asset.metadata["attributes"]] == [
        "ETH Value",
        "ETH Price / Day",
        "Fur",
    ]
    assert asset.to_dict()["metadata"]["attributes"][0] == {
        "trait_type": "ETH Value",
        "value": 1.0,
    }


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_size", [0, -3])
async def test_invalid_page_size_override_is_rejected(bad_size):
    enumerator = _enumerator(FakeIndex(_records(3)), ChainReader())

    with pytest.raises(ValueError, match="page_size"):
        await enumerator.list_page(OWNER, 1, page_size=bad_size)
    with pytest.raises(ValueError, match="page_size"):
        await enumerator.list_custody_page([COLLECTION], 1, page_size=bad_size)


@pytest.mark.asyncio
async def test_page_size_override():
    index = FakeIndex(_records(10))
    page = await _enumerator(index, ChainReader()).list_page(OWNER, 2, page_size=4)

    assert sorted(a.token_id for a in page.available + page.locked) == [5, 6, 7, 8]
    assert index.yielded == 8
