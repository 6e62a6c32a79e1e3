"""Normalisation of index metadata for display."""

from __future__ import annotations

from typing import Any

from .constants import DEFAULT_IPFS_GATEWAY, IPFS_PREFIX


def rewrite_ipfs_uri(uri: str, gateway: str = DEFAULT_IPFS_GATEWAY) -> str:
    """Rewrite ``ipfs://<cid>/path`` to ``<gateway><cid>/path``; other URIs pass through."""
    if uri.startswith(IPFS_PREFIX):
        return gateway + uri[len(IPFS_PREFIX) :]
    return uri


def normalize_metadata(
    metadata: dict[str, Any], gateway: str = DEFAULT_IPFS_GATEWAY
) -> dict[str, Any]:
    """Return a copy of ``metadata`` with the image URI pointed at an HTTP gateway.

    A missing ``attributes`` list is filled in as empty; nothing else changes.
    """
    normalized = dict(metadata)
    if not normalized.get("attributes"):
        normalized["attributes"] = []
    image = normalized.get("image")
    if isinstance(image, str):
        normalized["image"] = rewrite_ipfs_uri(image, gateway)
    return normalized


def with_valuation_attributes(
    metadata: dict[str, Any], native_symbol: str, *, value: float, price: float
) -> dict[str, Any]:
    """Return a copy of ``metadata`` with the vault value and daily price
    prepended to its attributes.

    Floats here are for display only.
    """
    return {
        **metadata,
        "attributes": [
            {"trait_type": f"{native_symbol} Value", "value": value},
            {"trait_type": f"{native_symbol} Price / Day", "value": price},
            *(metadata.get("attributes") or []),
        ],
    }
