"""Immutable per-network description of the custody contracts."""

from __future__ import annotations

from dataclasses import dataclass

from web3 import Web3

from .constants import GOERLI_INFO, MAINNET_INFO, MUMBAI_INFO, POLYGON_INFO, NetworkInfo
from .settings import Network, VaultSettings

_CHAIN_ID_TO_NETWORK: dict[int, Network] = {
    MAINNET_INFO["chain_id"]: Network.MAINNET,
    GOERLI_INFO["chain_id"]: Network.GOERLI,
    POLYGON_INFO["chain_id"]: Network.POLYGON,
    MUMBAI_INFO["chain_id"]: Network.MUMBAI,
}


def network_for_chain_id(chain_id: int | str) -> Network | None:
    """Map a chain id (int or ``0x``-prefixed hex) to a supported network."""
    if isinstance(chain_id, str):
        chain_id = int(chain_id, 16) if chain_id.startswith("0x") else int(chain_id)
    return _CHAIN_ID_TO_NETWORK.get(chain_id)


def is_compatible_chain(chain_id: int | str, networks: list[Network]) -> bool:
    network = network_for_chain_id(chain_id)
    return network is not None and network in networks


@dataclass(frozen=True, slots=True)
class CustodyDeployment:
    """Addresses and chain metadata for one network.

    Built once from settings and handed to every component that needs it.
    """

    network: Network
    chain_id: int
    native_symbol: str
    native_decimals: int
    vault_address: str
    rent_storage_address: str

    @classmethod
    def from_settings(cls, settings: VaultSettings) -> CustodyDeployment:
        info: NetworkInfo = settings.network_info
        return cls(
            network=settings.network,
            chain_id=info["chain_id"],
            native_symbol=info["native_currency"]["symbol"],
            native_decimals=info["native_currency"]["decimals"],
            vault_address=Web3.to_checksum_address(settings.vault_address_required),
            rent_storage_address=Web3.to_checksum_address(
                settings.rent_storage_address_required
            ),
        )
