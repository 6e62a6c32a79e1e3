from __future__ import annotations

from .vault import RentalAllowance, RentDurations, RewardInfo, TokenBalance, VaultReader

__all__ = [
    "RentDurations",
    "RentalAllowance",
    "RewardInfo",
    "TokenBalance",
    "VaultReader",
]
