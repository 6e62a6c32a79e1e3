"""Read-only contract query capability.

This is the only object in the package that talks to a JSON-RPC node, and it
can only issue ``eth_call``. Anything that signs or broadcasts lives behind
``rental_vault.checkout.TransactionSubmitter``.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from eth_typing import URI
from web3 import Web3
from web3.contract import Contract
from web3.types import BlockIdentifier


class ContractReader(Protocol):
    def __call__(
        self,
        contract_address: str,
        abi: list[dict],
        method_signature: str,
        args: Sequence[Any],
    ) -> Any: ...


def resolve_function(contract: Contract, method_signature: str):
    """Pick a contract function by bare name or by full signature.

    Overloaded methods must be addressed by signature, e.g.
    ``getTokenId(address,uint256)``.
    """
    if "(" in method_signature:
        return contract.get_function_by_signature(method_signature)
    return getattr(contract.functions, method_signature)


class Web3ContractReader:
    """``ContractReader`` backed by a web3 HTTP provider."""

    def __init__(self, w3: Web3, block_identifier: BlockIdentifier = "latest"):
        self.w3 = w3
        self.block_identifier = block_identifier

    @classmethod
    def from_rpc_url(
        cls,
        rpc_url: str,
        *,
        timeout: int = 15,
        block_identifier: BlockIdentifier = "latest",
    ) -> Web3ContractReader:
        w3 = Web3(Web3.HTTPProvider(URI(rpc_url), request_kwargs={"timeout": timeout}))
        return cls(w3, block_identifier=block_identifier)

    def __call__(
        self,
        contract_address: str,
        abi: list[dict],
        method_signature: str,
        args: Sequence[Any],
    ) -> Any:
        contract = self.w3.eth.contract(
            address=self.w3.to_checksum_address(contract_address), abi=abi
        )
        function = resolve_function(contract, method_signature)
        return function(*args).call(block_identifier=self.block_identifier)
