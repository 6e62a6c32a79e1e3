"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import tomllib

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    CALL_BASE_DELAY_SECONDS,
    CALL_MAX_ATTEMPTS,
    COUNT_BASE_DELAY_SECONDS,
    COUNT_MAX_ATTEMPTS,
    DEFAULT_INDEX_URL,
    DEFAULT_IPFS_GATEWAY,
    DEFAULT_PAGE_SIZE,
    NetworkInfo,
)

if TYPE_CHECKING:
    from .deployment import CustodyDeployment

load_dotenv()

SECRET_FIELDS = {"index_api_key"}


class Network(str, Enum):
    MAINNET = "mainnet"
    GOERLI = "goerli"
    POLYGON = "polygon"
    MUMBAI = "mumbai"


class VaultSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with RENTAL_VAULT_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- network / endpoints ---
    network: Network = Network.MAINNET
    rpc_url: str | None = None
    index_url: str = DEFAULT_INDEX_URL
    index_api_key: SecretStr | None = None

    # --- custody contracts ---
    vault_address: str | None = None
    rent_storage_address: str | None = None

    # --- enumeration ---
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, gt=0)
    ipfs_gateway: str = DEFAULT_IPFS_GATEWAY

    # --- retries ---
    call_max_attempts: int = Field(default=CALL_MAX_ATTEMPTS, ge=1)
    call_base_delay: float = Field(default=CALL_BASE_DELAY_SECONDS, ge=0)
    call_jitter: bool = True
    count_max_attempts: int = Field(default=COUNT_MAX_ATTEMPTS, ge=1)
    count_base_delay: float = Field(default=COUNT_BASE_DELAY_SECONDS, ge=0)

    # --- RPC throttling ---
    max_concurrent_calls: int = Field(default=5, ge=1)
    rpc_delay: float = Field(default=0.0, ge=0)
    rpc_jitter: float = Field(default=0.0, ge=0)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="RENTAL_VAULT_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("index_api_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("ipfs_gateway")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        return v if v.endswith("/") else f"{v}/"

    @model_validator(mode="after")
    def validate_retry_bounds(self) -> "VaultSettings":
        """Backoff sleeps must never outgrow a sane upper bound."""
        longest = self.count_base_delay * 2 ** (self.count_max_attempts - 1)
        if longest > 3600:
            raise ValueError(
                f"count retry schedule reaches {longest:.0f}s; lower count_base_delay "
                f"or count_max_attempts"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("RENTAL_VAULT_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    local_config = Path("rental-vault.toml")
                    user_config = (
                        Path.home() / ".config" / "rental-vault" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [rental_vault]
                body = data.get("rental_vault", data)
                if not isinstance(body, dict):
                    return {}

                for key in SECRET_FIELDS:
                    if key in body:
                        raise ValueError(
                            f"Security violation: '{key}' found in TOML config file. "
                            f"Secrets must only be provided via environment variables or CLI flags."
                        )

                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with secrets redacted."""
        data = self.model_dump(mode="json")
        for key in SECRET_FIELDS:
            if data.get(key):
                data[key] = "***redacted***"
        return data

    @property
    def rpc_url_required(self) -> str:
        """Get rpc_url, raising ValueError if not set."""
        if self.rpc_url is None:
            raise ValueError("rpc_url must be configured")
        return self.rpc_url

    @property
    def vault_address_required(self) -> str:
        """Get vault_address, raising ValueError if not set."""
        if self.vault_address is None:
            raise ValueError("vault_address must be configured")
        return self.vault_address

    @property
    def rent_storage_address_required(self) -> str:
        """Get rent_storage_address, raising ValueError if not set."""
        if self.rent_storage_address is None:
            raise ValueError("rent_storage_address must be configured")
        return self.rent_storage_address

    @property
    def index_api_key_required(self) -> str:
        if self.index_api_key is None:
            raise ValueError("index_api_key must be configured")
        return self.index_api_key.get_secret_value()

    @property
    def network_info(self) -> NetworkInfo:
        """Get chain metadata for the configured network."""
        from .constants import GOERLI_INFO, MAINNET_INFO, MUMBAI_INFO, POLYGON_INFO

        network_info_map = {
            Network.MAINNET: MAINNET_INFO,
            Network.GOERLI: GOERLI_INFO,
            Network.POLYGON: POLYGON_INFO,
            Network.MUMBAI: MUMBAI_INFO,
        }

        if self.network not in network_info_map:
            raise ValueError(f"Unknown network: {self.network}")

        return network_info_map[self.network]

    @property
    def index_base_url(self) -> str:
        return self.index_url.format(network=self.network_info["index_network"])

    def deployment(self) -> CustodyDeployment:
        """Build the immutable ``CustodyDeployment`` for the configured network."""
        from .deployment import CustodyDeployment

        return CustodyDeployment.from_settings(self)
