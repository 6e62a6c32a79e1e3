"""Bounded retry expressed as an explicit state machine.

A ``RetryMachine`` only decides what happens next; it never sleeps or calls
anything itself. ``drive_async`` and ``drive_sync`` run the machine against a
callable with an injected sleep function, so the same policy works on a thread
with ``time.sleep`` or inside an event loop with ``asyncio.sleep``.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar, Union

from ..constants import CALL_BASE_DELAY_SECONDS, CALL_MAX_ATTEMPTS
from ..errors import CallError, CallRejected, MaxRetriesExceeded, TransientCallError
from ..logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = CALL_MAX_ATTEMPTS
    base_delay: float = CALL_BASE_DELAY_SECONDS
    jitter: bool = True

    def delay_after(
        self, attempt: int, rand: Callable[[], float] = random.random
    ) -> float:
        """Seconds to wait after the 1-based ``attempt`` failed.

        ``base_delay * 2**(attempt - 1)``, scaled by a factor in ``[1, 2)``
        when jitter is enabled.
        """
        delay = self.base_delay * 2 ** (attempt - 1)
        if self.jitter:
            delay *= 1 + rand()
        return delay


@dataclass(frozen=True, slots=True)
class Attempting:
    attempt: int


@dataclass(frozen=True, slots=True)
class Waiting:
    attempt: int
    delay: float
    error: TransientCallError


@dataclass(frozen=True, slots=True)
class Succeeded:
    value: Any
    attempts: int


@dataclass(frozen=True, slots=True)
class Failed:
    error: CallError
    attempts: int
    cause: BaseException


RetryState = Union[Attempting, Waiting, Succeeded, Failed]


class RetryMachine:
    """Transitions: Attempting(n) -> Succeeded | Waiting | Failed; Waiting -> Attempting(n+1)."""

    def __init__(
        self,
        policy: RetryPolicy,
        label: str,
        *,
        should_retry: Callable[[BaseException], bool] | None = None,
        rand: Callable[[], float] = random.random,
    ):
        self.policy = policy
        self.label = label
        self._should_retry = should_retry or (lambda _error: True)
        self._rand = rand
        self.state: RetryState = Attempting(1)

    @property
    def done(self) -> bool:
        return isinstance(self.state, (Succeeded, Failed))

    def succeed(self, value: Any) -> RetryState:
        current = self._expect(Attempting)
        self.state = Succeeded(value=value, attempts=current.attempt)
        return self.state

    def fail(self, error: BaseException) -> RetryState:
        current = self._expect(Attempting)
        attempt = current.attempt
        if not self._should_retry(error):
            self.state = Failed(CallRejected(self.label, error), attempt, error)
        else:
            transient = TransientCallError(self.label, attempt, error)
            if attempt >= self.policy.max_attempts:
                self.state = Failed(
                    MaxRetriesExceeded(self.label, attempt, transient), attempt, transient
                )
            else:
                delay = self.policy.delay_after(attempt, self._rand)
                self.state = Waiting(attempt=attempt, delay=delay, error=transient)
        return self.state

    def wake(self) -> RetryState:
        current = self._expect(Waiting)
        self.state = Attempting(current.attempt + 1)
        return self.state

    def _expect(self, kind: type) -> Any:
        if not isinstance(self.state, kind):
            raise RuntimeError(
                f"{self.label}: expected state {kind.__name__}, got {self.state!r}"
            )
        return self.state

    def log_wait(self, state: Waiting) -> None:
        logger.warning(
            "%s failed (attempt %d/%d), retrying in %.2fs: %s",
            self.label,
            state.attempt,
            self.policy.max_attempts,
            state.delay,
            state.error.error,
        )

    def log_failure(self, state: Failed) -> None:
        logger.error("%s", state.error)


async def drive_async(
    machine: RetryMachine,
    fn: Callable[[], Awaitable[T]],
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Run ``fn`` until the machine reaches a terminal state."""
    while True:
        state = machine.state
        if isinstance(state, Attempting):
            try:
                value = await fn()
            except Exception as e:
                machine.fail(e)
            else:
                machine.succeed(value)
        elif isinstance(state, Waiting):
            machine.log_wait(state)
            await sleep(state.delay)
            machine.wake()
        elif isinstance(state, Succeeded):
            return state.value
        else:
            machine.log_failure(state)
            raise state.error from state.cause


def drive_sync(
    machine: RetryMachine,
    fn: Callable[[], T],
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """Blocking counterpart of ``drive_async``."""
    while True:
        state = machine.state
        if isinstance(state, Attempting):
            try:
                value = fn()
            except Exception as e:
                machine.fail(e)
            else:
                machine.succeed(value)
        elif isinstance(state, Waiting):
            machine.log_wait(state)
            sleep(state.delay)
            machine.wake()
        elif isinstance(state, Succeeded):
            return state.value
        else:
            machine.log_failure(state)
            raise state.error from state.cause
