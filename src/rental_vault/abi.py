from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

ABIS_DIR = Path(__file__).parent / "abis"

VAULT_ABI_PATH = ABIS_DIR / "Vault.json"
RENT_STORAGE_ABI_PATH = ABIS_DIR / "RentableTokensStorage.json"
ERC20_ABI_PATH = ABIS_DIR / "ERC20.json"
ERC721_ABI_PATH = ABIS_DIR / "ERC721.json"


@lru_cache(maxsize=None)
def _read_abi(path: str) -> tuple[dict, ...]:
    with Path(path).open() as f:
        data = json.load(f)
    return tuple(data["abi"])


def load_abi(path: str | Path) -> list[dict]:
    """Load an ABI from a JSON file and return its "abi" field.

    Args:
        path: Path to the JSON file containing an "abi" field.

    Returns:
        ABI as a list of dictionaries.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        KeyError: If the JSON does not contain an "abi" field.
    """
    return list(_read_abi(str(path)))


def load_vault_abi() -> list[dict]:
    """Load the custody vault ABI."""
    return load_abi(VAULT_ABI_PATH)


def load_rent_storage_abi() -> list[dict]:
    """Load the rentable tokens storage ABI."""
    return load_abi(RENT_STORAGE_ABI_PATH)


def load_erc20_abi() -> list[dict]:
    return load_abi(ERC20_ABI_PATH)


def load_erc721_abi() -> list[dict]:
    return load_abi(ERC721_ABI_PATH)
