from __future__ import annotations

from .enumerator import ClassifiedItem, CustodyEnumerator, page_of
from .models import (
    AnnotationFailure,
    Asset,
    CustodyCounts,
    CustodyState,
    CustodyStatus,
    InventoryPage,
    Valuation,
)

__all__ = [
    "AnnotationFailure",
    "Asset",
    "ClassifiedItem",
    "CustodyCounts",
    "CustodyEnumerator",
    "CustodyState",
    "CustodyStatus",
    "InventoryPage",
    "Valuation",
    "page_of",
]
