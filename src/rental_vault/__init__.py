"""Custody vault inventory, on-chain lock lookups and withdrawal credit allocation."""

from .allocation import AllocationResult, SelectedAsset, allocate
from .errors import (
    AllocationPreconditionError,
    AssetIndexError,
    CallError,
    CallRejected,
    MaxRetriesExceeded,
    RentalVaultError,
    SubmissionError,
    TransientCallError,
)
from .units import DecimalAmount, format_units, to_smallest_unit

__all__ = [
    "AllocationPreconditionError",
    "AllocationResult",
    "AssetIndexError",
    "CallError",
    "CallRejected",
    "DecimalAmount",
    "MaxRetriesExceeded",
    "RentalVaultError",
    "SelectedAsset",
    "SubmissionError",
    "TransientCallError",
    "allocate",
    "format_units",
    "to_smallest_unit",
]
