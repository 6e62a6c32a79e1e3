from __future__ import annotations

from .executor import ContractRef, ResilientCallExecutor, is_retryable
from .reader import ContractReader, Web3ContractReader, resolve_function
from .retry import (
    Attempting,
    Failed,
    RetryMachine,
    RetryPolicy,
    Succeeded,
    Waiting,
    drive_async,
    drive_sync,
)

__all__ = [
    "Attempting",
    "ContractReader",
    "ContractRef",
    "Failed",
    "ResilientCallExecutor",
    "RetryMachine",
    "RetryPolicy",
    "Succeeded",
    "Waiting",
    "Web3ContractReader",
    "drive_async",
    "drive_sync",
    "is_retryable",
    "resolve_function",
]
