"""Resilient execution of read-only remote calls."""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Sequence

from web3.exceptions import ContractLogicError

from ..logger import get_logger
from ..settings import VaultSettings
from .reader import ContractReader
from .retry import RetryMachine, RetryPolicy, drive_async, drive_sync

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ContractRef:
    """Address plus ABI of a contract that can be queried."""

    address: str
    abi: list[dict] = field(compare=False, repr=False)
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.address


def is_retryable(error: BaseException) -> bool:
    """Reverts are deterministic; everything else is treated as transient."""
    return not isinstance(error, ContractLogicError)


class ResilientCallExecutor:
    """Wraps any read-only call with bounded, jittered exponential backoff.

    Calls run on worker threads (web3 providers are blocking) behind a
    semaphore shared by everything using this executor, so concurrent
    enumerations against one endpoint stay within ``max_concurrent_calls``.
    Backoff sleeps only suspend the calling task.
    """

    def __init__(
        self,
        reader: ContractReader,
        policy: RetryPolicy | None = None,
        *,
        max_concurrent_calls: int = 5,
        rpc_delay: float = 0.0,
        rpc_jitter: float = 0.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.reader = reader
        self.policy = policy or RetryPolicy()
        self._rpc_sem = asyncio.Semaphore(max_concurrent_calls)
        self._rpc_delay = rpc_delay  # seconds
        self._rpc_jitter = rpc_jitter  # seconds
        self._sleep = sleep
        self._rand = rand

    @classmethod
    def from_settings(
        cls, settings: VaultSettings, reader: ContractReader
    ) -> ResilientCallExecutor:
        return cls(
            reader,
            RetryPolicy(
                max_attempts=settings.call_max_attempts,
                base_delay=settings.call_base_delay,
                jitter=settings.call_jitter,
            ),
            max_concurrent_calls=settings.max_concurrent_calls,
            rpc_delay=settings.rpc_delay,
            rpc_jitter=settings.rpc_jitter,
        )

    def _machine(self, label: str) -> RetryMachine:
        return RetryMachine(
            self.policy, label, should_retry=is_retryable, rand=self._rand
        )

    async def _throttled(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Throttle a single blocking call."""
        async with self._rpc_sem:
            try:
                return await asyncio.to_thread(fn, *args, **kwargs)
            finally:
                delay = self._rpc_delay + self._rand() * self._rpc_jitter
                if delay > 0:
                    await self._sleep(delay)

    async def run(
        self, fn: Callable[..., Any], *args, label: str | None = None, **kwargs
    ) -> Any:
        """Retry any blocking read-only callable.

        Raises:
            MaxRetriesExceeded: Every attempt failed.
            CallRejected: The call reverted; it is not retried.
        """
        machine = self._machine(label or getattr(fn, "__qualname__", repr(fn)))
        return await drive_async(
            machine, partial(self._throttled, fn, *args, **kwargs), self._sleep
        )

    async def call(
        self,
        contract: ContractRef,
        method_signature: str,
        args: Sequence[Any] = (),
        *,
        default: Any = None,
    ) -> Any:
        """Call a view method, returning ``default`` for an empty/falsy result."""
        value = await self.run(
            self.reader,
            contract.address,
            contract.abi,
            method_signature,
            list(args),
            label=f"{contract.label}.{method_signature}",
        )
        if default is not None and not value:
            return default
        return value

    def call_sync(
        self,
        contract: ContractRef,
        method_signature: str,
        args: Sequence[Any] = (),
        *,
        default: Any = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> Any:
        """Blocking variant of ``call`` for scripts without an event loop."""
        machine = self._machine(f"{contract.label}.{method_signature}")
        value = drive_sync(
            machine,
            partial(self.reader, contract.address, contract.abi, method_signature, list(args)),
            sleep,
        )
        if default is not None and not value:
            return default
        return value
