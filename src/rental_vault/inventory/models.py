from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..units import DecimalAmount


class CustodyStatus(str, Enum):
    AVAILABLE = "available"
    LOCKED = "locked"


@dataclass(frozen=True, slots=True)
class CustodyState:
    """Lock state derived from a single ``getLockedTill`` read."""

    status: CustodyStatus
    locked_until: int | None = None

    @classmethod
    def from_expiry(cls, expiry: int | None) -> CustodyState:
        if not expiry:
            return cls(CustodyStatus.AVAILABLE)
        return cls(CustodyStatus.LOCKED, int(expiry))

    @property
    def is_locked(self) -> bool:
        return self.status is CustodyStatus.LOCKED


@dataclass(frozen=True, slots=True)
class Valuation:
    """Vault price per day and value for one asset; zero when not vaulted."""

    price: DecimalAmount
    value: DecimalAmount

    @property
    def is_vaulted(self) -> bool:
        return bool(self.price) or bool(self.value)


@dataclass(frozen=True, slots=True)
class Asset:
    contract_address: str
    token_id: int
    custody: CustodyState | None
    valuation: Valuation
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def identity(self) -> str:
        return f"{self.contract_address}{self.token_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "identity": self.identity,
            "address": self.contract_address,
            "token_id": str(self.token_id),
            "status": self.custody.status.value if self.custody else None,
            "locked_until": self.custody.locked_until if self.custody else None,
            "price": str(self.valuation.price),
            "value": str(self.valuation.value),
            "vaulted": self.valuation.is_vaulted,
            "metadata": self.metadata,
        }


@dataclass(frozen=True, slots=True)
class AnnotationFailure:
    """An index item that was dropped because its on-chain reads failed."""

    position: int
    contract_address: str
    token_id: int
    error: BaseException = field(compare=False)

    def describe(self) -> str:
        return f"#{self.position} {self.contract_address}/{self.token_id}: {self.error}"


@dataclass
class InventoryPage:
    page: int
    page_size: int
    available: list[Asset] = field(default_factory=list)
    locked: list[Asset] = field(default_factory=list)
    failures: list[AnnotationFailure] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.available) + len(self.locked)

    @property
    def is_full(self) -> bool:
        return self.size >= self.page_size

    @property
    def is_partial(self) -> bool:
        """True when items were excluded because annotation failed."""
        return bool(self.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "available": [asset.to_dict() for asset in self.available],
            "locked": [asset.to_dict() for asset in self.locked],
            "warnings": [failure.describe() for failure in self.failures],
        }


@dataclass(frozen=True, slots=True)
class CustodyCounts:
    available: int
    locked: int

    @property
    def total(self) -> int:
        return self.available + self.locked
