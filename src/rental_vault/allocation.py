"""Splitting a prepaid credit balance across the assets of one withdrawal.

Everything here is integer arithmetic on smallest units; no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence, Union

from .errors import AllocationPreconditionError
from .logger import get_logger
from .units import NATIVE_DECIMALS, DecimalAmount, to_smallest_unit

logger = get_logger(__name__)

AmountInput = Union[str, Decimal, int, DecimalAmount]


@dataclass(frozen=True, slots=True)
class SelectedAsset:
    """An asset chosen for checkout together with its rental fee (decimal form)."""

    address: str
    token_id: int
    fee: AmountInput


@dataclass(frozen=True, slots=True)
class AllocationResult:
    """Index-aligned values for one batched withdrawal.

    ``fees_after_credit`` carries the full per-asset fee: the transaction
    attaches the whole value per asset and the vault redeems ``credit_used``
    as a separate field.
    """

    total_fee: DecimalAmount
    asset_addresses: tuple[str, ...]
    token_ids: tuple[int, ...]
    fees: tuple[int, ...]
    fees_after_credit: tuple[int, ...]
    credit_used: tuple[int, ...]
    available_credit: DecimalAmount
    remaining_credit: DecimalAmount

    def __len__(self) -> int:
        return len(self.asset_addresses)

    @property
    def decimals(self) -> int:
        return self.total_fee.decimals

    @property
    def total_credit_used(self) -> DecimalAmount:
        return DecimalAmount(sum(self.credit_used), self.decimals)

    @property
    def net_costs(self) -> tuple[int, ...]:
        """What each asset costs the user once credit is redeemed."""
        return tuple(fee - used for fee, used in zip(self.fees, self.credit_used))


def _to_units(amount: AmountInput, decimals: int, what: str) -> int:
    if isinstance(amount, DecimalAmount):
        if amount.decimals != decimals:
            raise AllocationPreconditionError(
                f"{what} has {amount.decimals} decimals, expected {decimals}"
            )
        units = amount.raw
    else:
        try:
            units = to_smallest_unit(amount, decimals, signed=False)
        except (TypeError, ValueError) as e:
            raise AllocationPreconditionError(f"Invalid {what}: {e}") from e
    if units < 0:
        raise AllocationPreconditionError(f"{what} must be non-negative, got {amount}")
    return units


def allocate(
    selected_assets: Sequence[SelectedAsset],
    available_credit: AmountInput,
    *,
    decimals: int = NATIVE_DECIMALS,
) -> AllocationResult:
    """Greedily assign credit to assets in the order given.

    Each asset takes as much of the remaining credit as its fee allows; once
    credit runs out every later asset gets zero. Fees smaller than one
    smallest unit count as zero and take no credit.

    Raises:
        AllocationPreconditionError: A fee or the credit is negative or invalid.
    """
    fees = [
        _to_units(asset.fee, decimals, f"fee for {asset.address}/{asset.token_id}")
        for asset in selected_assets
    ]
    credit = _to_units(available_credit, decimals, "available credit")

    remaining = credit
    credit_used: list[int] = []
    for fee in fees:
        if remaining >= fee:
            used = fee
            remaining -= fee
        else:
            used = remaining
            remaining = 0
        credit_used.append(used)

    result = AllocationResult(
        total_fee=DecimalAmount(sum(fees), decimals),
        asset_addresses=tuple(asset.address for asset in selected_assets),
        token_ids=tuple(int(asset.token_id) for asset in selected_assets),
        fees=tuple(fees),
        fees_after_credit=tuple(fees),
        credit_used=tuple(credit_used),
        available_credit=DecimalAmount(credit, decimals),
        remaining_credit=DecimalAmount(remaining, decimals),
    )
    logger.debug(
        "Allocated %s credit over %d asset(s): total_fee=%s remaining=%s",
        result.total_credit_used,
        len(result),
        result.total_fee,
        result.remaining_credit,
    )
    return result
