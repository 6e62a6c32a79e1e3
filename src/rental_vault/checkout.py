"""Withdrawal transaction building and one-shot submission."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Protocol, Sequence

from web3 import Web3

from .abi import load_vault_abi
from .allocation import AllocationResult, SelectedAsset, allocate
from .deployment import CustodyDeployment
from .errors import AllocationPreconditionError, SubmissionError
from .logger import get_logger
from .units import DecimalAmount

logger = get_logger(__name__)

WITHDRAW_SIGNATURE = "withdraw(address,uint256,uint256)"
WITHDRAW_MULTIPLE_SIGNATURE = (
    "withdrawMultiple(address[],uint256[],uint256[],address,uint256[])"
)


@dataclass(frozen=True, slots=True)
class TxRequest:
    """Unsigned transaction request handed to the external signer."""

    sender: str
    to: str
    value: str
    data: str

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["from"] = data.pop("sender")
        return data


class TransactionSubmitter(Protocol):
    """Signs and broadcasts transaction requests on behalf of ``sender``.

    Returns one transaction hash per request.
    """

    async def submit(self, sender: str, requests: Sequence[TxRequest]) -> list[str]: ...


def build_withdrawal_requests(
    deployment: CustodyDeployment,
    proxy_wallet: str,
    allocation: AllocationResult,
) -> list[TxRequest]:
    """Encode the vault call that releases every allocated asset.

    One asset uses ``withdraw`` with its fee as value; several use
    ``withdrawMultiple`` with the total fee as value and the proxy wallet as
    recipient.
    """
    if len(allocation) == 0:
        raise AllocationPreconditionError("No assets selected for withdrawal")

    w3 = Web3()
    vault = w3.eth.contract(
        address=w3.to_checksum_address(deployment.vault_address),
        abi=load_vault_abi(),
    )
    proxy = w3.to_checksum_address(proxy_wallet)
    addresses = [w3.to_checksum_address(a) for a in allocation.asset_addresses]

    if len(allocation) == 1:
        value = DecimalAmount(allocation.fees_after_credit[0], allocation.decimals)
        calldata = vault.encode_abi(
            abi_element_identifier=WITHDRAW_SIGNATURE,
            args=[addresses[0], allocation.token_ids[0], allocation.credit_used[0]],
        )
    else:
        value = allocation.total_fee
        calldata = vault.encode_abi(
            abi_element_identifier=WITHDRAW_MULTIPLE_SIGNATURE,
            args=[
                addresses,
                list(allocation.token_ids),
                list(allocation.fees_after_credit),
                proxy,
                list(allocation.credit_used),
            ],
        )

    logger.info(
        "Encoded withdrawal of %d asset(s) from %s: value=%s credit=%s",
        len(allocation),
        vault.address,
        value,
        allocation.total_credit_used,
    )
    return [TxRequest(sender=proxy, to=vault.address, value=value.to_hex(), data=calldata)]


async def checkout(
    deployment: CustodyDeployment,
    submitter: TransactionSubmitter,
    owner: str,
    proxy_wallet: str,
    selected_assets: Sequence[SelectedAsset],
    available_credit: str | DecimalAmount,
) -> list[str]:
    """Allocate credit, build the withdrawal and submit it exactly once.

    Raises:
        AllocationPreconditionError: Nothing selected, or a negative amount.
        SubmissionError: The submitter failed; the request is not retried.
    """
    allocation = allocate(
        selected_assets, available_credit, decimals=deployment.native_decimals
    )
    requests = build_withdrawal_requests(deployment, proxy_wallet, allocation)
    try:
        hashes = await submitter.submit(owner, requests)
    except Exception as e:
        logger.error("Withdrawal submission failed: %s", e)
        raise SubmissionError(f"Failed to submit withdrawal: {e}", cause=e) from e
    logger.info("Submitted withdrawal: %s", ", ".join(hashes))
    return list(hashes)
