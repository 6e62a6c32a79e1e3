"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .settings import VaultSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed from the CLI callback to each command to avoid global state.
    """

    settings: VaultSettings
    logger: logging.Logger
