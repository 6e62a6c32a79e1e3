"""Exception hierarchy shared by the executor, enumerator and checkout code."""

from __future__ import annotations


class RentalVaultError(Exception):
    """Base class for all errors raised by rental-vault."""


class CallError(RentalVaultError):
    """A read-only remote call could not produce a value."""


class TransientCallError(CallError):
    """A single attempt of a read-only call failed.

    Produced by the retry state machine for every retryable failure; the
    underlying error is ``error`` and ``__cause__``. Callers of the executor
    receive it as ``MaxRetriesExceeded.last_error``.
    """

    def __init__(self, label: str, attempt: int, error: BaseException):
        super().__init__(f"{label} attempt {attempt} failed: {error!r}")
        self.label = label
        self.attempt = attempt
        self.error = error
        self.__cause__ = error


class MaxRetriesExceeded(CallError):
    """Raised when every attempt of a retried operation failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException | None):
        super().__init__(
            f"{label} failed after {attempts} attempt(s): {last_error!r}"
        )
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


class CallRejected(CallError):
    """The contract deterministically rejected the call (revert), not retried."""

    def __init__(self, label: str, error: BaseException):
        super().__init__(f"{label} was rejected: {error}")
        self.label = label
        self.error = error


class AssetIndexError(RentalVaultError):
    """The external asset index returned something we cannot interpret."""


class AllocationPreconditionError(RentalVaultError, ValueError):
    """Negative fee or credit passed to the allocation engine."""


class SubmissionError(RentalVaultError):
    """The external signing/broadcast service failed to submit a transaction."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause
