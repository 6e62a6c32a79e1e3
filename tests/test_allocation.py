import random
from dataclasses import FrozenInstanceError

import pytest

from rental_vault.allocation import SelectedAsset, allocate
from rental_vault.errors import AllocationPreconditionError
from rental_vault.units import DecimalAmount

NFT_A = "0x1111111111111111111111111111111111111111"
NFT_B = "0x2222222222222222222222222222222222222222"
NFT_C = "0x3333333333333333333333333333333333333333"

ETH = 10**18


def _assets(*fees: str) -> list[SelectedAsset]:
    addresses = [NFT_A, NFT_B, NFT_C]
    return [
        SelectedAsset(address=addresses[i % 3], token_id=i + 1, fee=fee)
        for i, fee in enumerate(fees)
    ]


def _check_invariants(result, credit_raw: int) -> None:
    assert len(result.fees_after_credit) == len(result.credit_used) == len(result)
    assert sum(result.credit_used) <= credit_raw
    assert result.total_fee.raw == sum(result.fees)
    assert result.fees_after_credit == result.fees
    for fee, used, net in zip(result.fees, result.credit_used, result.net_costs):
        assert 0 <= used <= fee
        assert fee == net + used


def test_partial_credit_is_consumed_greedily_in_order():
    result = allocate(_assets("3", "5", "2"), "6")

    assert result.credit_used == (3 * ETH, 3 * ETH, 0)
    assert result.fees_after_credit == (3 * ETH, 5 * ETH, 2 * ETH)
    assert result.total_fee == DecimalAmount(10 * ETH)
    assert result.remaining_credit == DecimalAmount.zero()
    assert result.asset_addresses == (NFT_A, NFT_B, NFT_C)
    assert result.token_ids == (1, 2, 3)
    _check_invariants(result, 6 * ETH)


def test_zero_credit_uses_nothing():
    result = allocate(_assets("3", "5"), "0")

    assert result.credit_used == (0, 0)
    assert result.total_fee.raw == 8 * ETH
    assert not result.remaining_credit
    _check_invariants(result, 0)


def test_credit_covering_everything_leaves_remainder():
    result = allocate(_assets("0.1", "0.2", "0.3"), "1")

    assert result.credit_used == (ETH // 10, 2 * ETH // 10, 3 * ETH // 10)
    assert str(result.remaining_credit) == "0.4"
    assert str(result.total_credit_used) == "0.6"
    _check_invariants(result, ETH)


def test_order_of_selection_decides_who_gets_credit():
    first = allocate(_assets("5", "3"), "4")
    second = allocate(_assets("3", "5"), "4")

    assert first.credit_used == (4 * ETH, 0)
    assert second.credit_used == (3 * ETH, 1 * ETH)


def test_single_asset_runs_same_algorithm():
    result = allocate(_assets("2.5"), "1")

    assert len(result) == 1
    assert result.credit_used == (ETH,)
    assert result.fees_after_credit == (25 * ETH // 10,)
    assert result.net_costs == (15 * ETH // 10,)
    _check_invariants(result, ETH)


def test_sub_unit_fee_is_zero_and_takes_no_credit():
    result = allocate(_assets("0.0000000000000000001", "1"), "0.5")

    assert result.fees[0] == 0
    assert result.credit_used == (0, ETH // 2)
    _check_invariants(result, ETH // 2)


def test_fractional_amounts_are_exact():
    result = allocate(_assets("0.1", "0.2"), "0.3")

    assert result.credit_used == (ETH // 10, 2 * ETH // 10)
    assert result.remaining_credit.raw == 0
    assert result.total_fee.raw == 3 * ETH // 10


def test_decimal_amount_inputs_are_accepted():
    result = allocate(
        [SelectedAsset(NFT_A, 1, DecimalAmount(700))], DecimalAmount(500)
    )
    assert result.credit_used == (500,)
    assert result.total_fee.raw == 700


def test_mismatched_decimal_amount_precision_is_rejected():
    with pytest.raises(AllocationPreconditionError):
        allocate([SelectedAsset(NFT_A, 1, DecimalAmount(700, 6))], "1")


def test_negative_fee_is_rejected():
    with pytest.raises(AllocationPreconditionError, match="non-negative"):
        allocate(_assets("1", "-0.5"), "1")


def test_negative_credit_is_rejected():
    with pytest.raises(AllocationPreconditionError):
        allocate(_assets("1"), "-1")


def test_invalid_amount_is_rejected():
    with pytest.raises(AllocationPreconditionError):
        allocate(_assets("one"), "1")


def test_result_is_immutable():
    result = allocate(_assets("1"), "1")
    with pytest.raises(FrozenInstanceError):
        result.credit_used = (0,)  # type: ignore[misc]


def test_custom_precision():
    result = allocate(_assets("1.5", "2"), "2", decimals=6)

    assert result.decimals == 6
    assert result.credit_used == (1_500_000, 500_000)
    assert str(result.total_fee) == "3.5"


def test_partial_credit_in_raw_units():
    assets = [
        SelectedAsset(NFT_A, 1, DecimalAmount(3)),
        SelectedAsset(NFT_B, 2, DecimalAmount(5)),
        SelectedAsset(NFT_C, 3, DecimalAmount(2)),
    ]

    result = allocate(assets, DecimalAmount(6))

    assert result.credit_used == (3, 3, 0)
    assert result.fees_after_credit == (3, 5, 2)
    assert result.total_fee == DecimalAmount(10)
    assert result.remaining_credit == DecimalAmount(0)
    _check_invariants(result, 6)


@pytest.mark.parametrize("bad", ["-0.0000000000000000001", "-0.0000000000000000000001"])
def test_negative_sub_unit_fee_is_rejected(bad):
    with pytest.raises(AllocationPreconditionError, match="non-negative"):
        allocate(_assets(bad), "1")


def test_negative_sub_unit_credit_is_rejected():
    with pytest.raises(AllocationPreconditionError, match="non-negative"):
        allocate(_assets("1"), "-0.0000000000000000001")


def test_negative_zero_is_accepted():
    result = allocate(_assets("-0"), "-0.0")
    assert result.credit_used == (0,)


@pytest.mark.parametrize("seed", range(25))
def test_invariants_hold_for_arbitrary_fees(seed):
    rng = random.Random(seed)
    fees = [
        rng.choice([0, 1, rng.randrange(10**18), rng.randrange(10**24)])
        for _ in range(rng.randrange(1, 12))
    ]
    total = sum(fees)
    credit = rng.choice(
        [0, rng.randrange(total + 1), total, total + rng.randrange(10**18)]
    )
    assets = [SelectedAsset(NFT_A, i, DecimalAmount(fee)) for i, fee in enumerate(fees)]

    result = allocate(assets, DecimalAmount(credit))

    _check_invariants(result, credit)
    assert result.remaining_credit.raw == credit - sum(result.credit_used)
    assert sum(result.credit_used) == min(credit, total)
    # greedy: once an asset is only partly covered, every later asset gets nothing
    for i, (fee, used) in enumerate(zip(result.fees, result.credit_used)):
        if used < fee:
            assert all(later == 0 for later in result.credit_used[i + 1 :])
            break
