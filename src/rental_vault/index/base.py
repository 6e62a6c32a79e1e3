from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Sequence


@dataclass(frozen=True, slots=True)
class RawAssetRecord:
    """One NFT as reported by the external index, before any on-chain lookup."""

    contract_address: str
    token_id: int
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)


class AssetIndex(ABC):
    """Paginated ownership listing that avoids a full chain scan.

    Implementations yield records in the index's own order. There is no
    resumable cursor across failures: a new call starts from the beginning.
    """

    @abstractmethod
    def iter_owned(
        self, owner: str, contract_addresses: Sequence[str] | None = None
    ) -> AsyncIterator[RawAssetRecord]:
        """Yield every asset held by ``owner``, optionally limited to collections."""
        ...
