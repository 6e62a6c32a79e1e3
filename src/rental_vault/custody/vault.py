"""Account-level reads against the custody vault and token contracts."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from web3 import Web3

from ..abi import load_erc20_abi, load_erc721_abi, load_vault_abi
from ..constants import ZERO_ADDRESS
from ..deployment import CustodyDeployment
from ..logger import get_logger
from ..rpc.executor import ContractRef, ResilientCallExecutor
from ..units import DecimalAmount

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RentalAllowance:
    remaining: DecimalAmount
    maximum: DecimalAmount


@dataclass(frozen=True, slots=True)
class RentDurations:
    """Bounds on a rental, in seconds."""

    minimum: int
    maximum: int


@dataclass(frozen=True, slots=True)
class RewardInfo:
    reward_cap_per_reference: DecimalAmount
    referer_reward_percentage: int
    referee_reward_percentage: int


@dataclass(frozen=True, slots=True)
class TokenBalance:
    address: str
    symbol: str
    decimals: int
    amount: DecimalAmount


class VaultReader:
    """Read-only views of the vault used by account screens and checkout."""

    def __init__(self, deployment: CustodyDeployment, executor: ResilientCallExecutor):
        self.deployment = deployment
        self.executor = executor
        self._vault = ContractRef(deployment.vault_address, load_vault_abi(), name="Vault")

    def _native(self, raw: int) -> DecimalAmount:
        return DecimalAmount(int(raw), self.deployment.native_decimals)

    async def rental_allowance(self, proxy_wallet: str | None) -> RentalAllowance:
        """Remaining and maximum rental amount for a proxy wallet.

        Without a proxy wallet nothing is rented yet, so the full maximum remains.
        """
        maximum = self._native(
            await self.executor.call(self._vault, "getMaxRentalAmount", default=0)
        )
        current = DecimalAmount.zero(maximum.decimals)
        if proxy_wallet:
            current = self._native(
                await self.executor.call(
                    self._vault, "getRentalAmount", [proxy_wallet], default=0
                )
            )
        return RentalAllowance(remaining=maximum - current, maximum=maximum)

    async def credit_balance(self, proxy_wallet: str) -> DecimalAmount:
        """Prepaid rent credit of a proxy wallet."""
        raw = await self.executor.call(
            self._vault, "getRentCredit", [proxy_wallet], default=0
        )
        return self._native(raw)

    async def rent_durations(self) -> RentDurations:
        minimum, maximum = await asyncio.gather(
            self.executor.call(self._vault, "getMinRentDuration", default=0),
            self.executor.call(self._vault, "getMaxRentDuration", default=0),
        )
        return RentDurations(minimum=int(minimum), maximum=int(maximum))

    async def referer(self, proxy_wallet: str) -> str | None:
        """Address that referred ``proxy_wallet``, or None when there is none."""
        address = await self.executor.call(self._vault, "getReferer", [proxy_wallet])
        if not address or address.lower() == ZERO_ADDRESS:
            return None
        return Web3.to_checksum_address(address)

    async def reward_info(self) -> RewardInfo:
        cap = await self.executor.call(
            self._vault, "getRewardCapPerReference", default=0
        )
        referer_pct = await self.executor.call(
            self._vault, "getRefererRewardPercentage", default=0
        )
        referee_pct = await self.executor.call(
            self._vault, "getRefereeRewardPercentage", default=0
        )
        return RewardInfo(
            reward_cap_per_reference=self._native(cap),
            referer_reward_percentage=int(referer_pct),
            referee_reward_percentage=int(referee_pct),
        )

    async def is_proxy_wallet_user(self, proxy_wallet: str, user: str) -> bool:
        return bool(
            await self.executor.call(
                self._vault, "isProxyWalletUser", [proxy_wallet, user]
            )
        )

    async def is_in_vault(self, nft_address: str, token_id: int) -> bool:
        """Whether the vault currently owns the given NFT."""
        nft = ContractRef(nft_address, load_erc721_abi(), name="ERC721")
        owner = await self.executor.call(nft, "ownerOf", [token_id])
        return bool(owner) and owner.lower() == self.deployment.vault_address.lower()

    async def erc20_balance(self, account: str, token_address: str) -> TokenBalance:
        token = ContractRef(
            Web3.to_checksum_address(token_address), load_erc20_abi(), name="ERC20"
        )
        decimals = int(await self.executor.call(token, "decimals", default=0))
        symbol = await self.executor.call(token, "symbol", default="")
        balance = await self.executor.call(token, "balanceOf", [account], default=0)
        logger.debug("ERC20 %s balance for %s: %s", symbol, account, balance)
        return TokenBalance(
            address=token.address,
            symbol=symbol,
            decimals=decimals,
            amount=DecimalAmount(int(balance), decimals),
        )
