"""
swapgroup TOML Configuration Loader

Loads swapgroup.toml with environment variable overrides.

Environment variable mapping:
    [ledger] url           → SWAPGROUP_LEDGER_URL
    [ledger] api_token     → SWAPGROUP_LEDGER_TOKEN
    [packing] chunk_size   → SWAPGROUP_CHUNK_SIZE
    [platform_fee] bps     → SWAPGROUP_FEE_BPS
    ...

The ledger API token SHOULD come from the environment, not TOML.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import tomllib as tomli  # Python 3.11+
except ImportError:
    import tomli  # type: ignore[no-redef]

from ..constants import (
    BASE_FEE,
    BOX_REFERENCE_FEE,
    CONNECTION_TIMEOUT,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DISCOVERY_ROUNDS,
    DIRECT_FACTORY_CONTRACT_ID,
    INNER_TRANSFER_SURCHARGE,
    MAX_OPERATION_REFERENCES,
    SWAPGROUP_LEDGER_TOKEN,
    SWAPGROUP_LEDGER_URL,
    SWAPGROUP_POOLS_PATH,
    SWAPGROUP_TOKENS_PATH,
)
from ..exceptions import ConfigurationError
from ..ledger.address import is_valid_address
from ..network.client import DEFAULT_TOKEN_HEADER

logger = logging.getLogger(__name__)


@dataclass
class LedgerConfig:
    """[ledger] section."""
    url: str = str(SWAPGROUP_LEDGER_URL)
    api_token: str = str(SWAPGROUP_LEDGER_TOKEN)
    token_header: str = DEFAULT_TOKEN_HEADER
    timeout: float = CONNECTION_TIMEOUT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        return cls(
            url=data.get("url", str(SWAPGROUP_LEDGER_URL)),
            api_token=data.get("api_token", str(SWAPGROUP_LEDGER_TOKEN)),
            token_header=data.get("token_header", DEFAULT_TOKEN_HEADER),
            timeout=float(data.get("timeout", CONNECTION_TIMEOUT)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("SWAPGROUP_LEDGER_URL"):
            self.url = v
        if v := os.environ.get("SWAPGROUP_LEDGER_TOKEN"):
            self.api_token = v
        if v := os.environ.get("SWAPGROUP_LEDGER_TIMEOUT"):
            self.timeout = float(v)


@dataclass
class FeesConfig:
    """[fees] section."""
    base_fee: int = BASE_FEE
    box_fee: int = BOX_REFERENCE_FEE
    inner_transfer_surcharge: int = INNER_TRANSFER_SURCHARGE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeesConfig":
        return cls(
            base_fee=data.get("base_fee", BASE_FEE),
            box_fee=data.get("box_fee", BOX_REFERENCE_FEE),
            inner_transfer_surcharge=data.get("inner_transfer_surcharge", INNER_TRANSFER_SURCHARGE),
        )


@dataclass
class PackingConfig:
    """[packing] section."""
    max_references: int = MAX_OPERATION_REFERENCES
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_rounds: int = DEFAULT_DISCOVERY_ROUNDS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackingConfig":
        return cls(
            max_references=data.get("max_references", MAX_OPERATION_REFERENCES),
            chunk_size=data.get("chunk_size", DEFAULT_CHUNK_SIZE),
            max_rounds=data.get("max_rounds", DEFAULT_DISCOVERY_ROUNDS),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("SWAPGROUP_CHUNK_SIZE"):
            self.chunk_size = int(v)
        if v := os.environ.get("SWAPGROUP_MAX_ROUNDS"):
            self.max_rounds = int(v)


@dataclass
class PlatformFeeConfig:
    """[platform_fee] section."""
    recipient: str = ""
    bps: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlatformFeeConfig":
        return cls(
            recipient=data.get("recipient", ""),
            bps=data.get("bps", 0),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("SWAPGROUP_FEE_RECIPIENT"):
            self.recipient = v
        if v := os.environ.get("SWAPGROUP_FEE_BPS"):
            self.bps = int(v)

    @property
    def enabled(self) -> bool:
        return self.bps > 0 and bool(self.recipient)


@dataclass
class RegistryConfig:
    """[registry] section."""
    pools_path: str = str(SWAPGROUP_POOLS_PATH)
    tokens_path: str = str(SWAPGROUP_TOKENS_PATH)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryConfig":
        return cls(
            pools_path=data.get("pools_path", str(SWAPGROUP_POOLS_PATH)),
            tokens_path=data.get("tokens_path", str(SWAPGROUP_TOKENS_PATH)),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("SWAPGROUP_POOLS_PATH"):
            self.pools_path = v
        if v := os.environ.get("SWAPGROUP_TOKENS_PATH"):
            self.tokens_path = v


@dataclass
class VenuesConfig:
    """[venues] section."""
    direct_factory_contract_id: int = DIRECT_FACTORY_CONTRACT_ID

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VenuesConfig":
        return cls(
            direct_factory_contract_id=data.get("direct_factory_contract_id", DIRECT_FACTORY_CONTRACT_ID),
        )


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------

@dataclass
class SwapGroupConfig:
    """Complete swapgroup configuration."""
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    fees: FeesConfig = field(default_factory=FeesConfig)
    packing: PackingConfig = field(default_factory=PackingConfig)
    platform_fee: PlatformFeeConfig = field(default_factory=PlatformFeeConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    venues: VenuesConfig = field(default_factory=VenuesConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SwapGroupConfig":
        return cls(
            ledger=LedgerConfig.from_dict(data.get("ledger", {})),
            fees=FeesConfig.from_dict(data.get("fees", {})),
            packing=PackingConfig.from_dict(data.get("packing", {})),
            platform_fee=PlatformFeeConfig.from_dict(data.get("platform_fee", {})),
            registry=RegistryConfig.from_dict(data.get("registry", {})),
            venues=VenuesConfig.from_dict(data.get("venues", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "SwapGroupConfig":
        """
        Load configuration from a TOML file.

        A missing file yields the defaults, with environment overrides.
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        try:
            with open(path, "rb") as f:
                raw = tomli.load(f)
        except tomli.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.ledger.apply_env()
        self.packing.apply_env()
        self.platform_fee.apply_env()
        self.registry.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Raises:
            ConfigurationError: on invalid config
        """
        if not self.ledger.url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Invalid ledger url: {self.ledger.url}")
        if self.ledger.timeout <= 0:
            raise ConfigurationError("ledger timeout must be > 0")
        if self.packing.max_references < 1:
            raise ConfigurationError("max_references must be >= 1")
        if self.packing.chunk_size < 1:
            raise ConfigurationError("chunk_size must be >= 1")
        if self.packing.max_rounds < 1:
            raise ConfigurationError("max_rounds must be >= 1")
        if not 0 <= self.platform_fee.bps <= 10000:
            raise ConfigurationError(f"Invalid platform fee bps: {self.platform_fee.bps}")
        if self.platform_fee.recipient and not is_valid_address(self.platform_fee.recipient):
            raise ConfigurationError(f"Invalid platform fee recipient: {self.platform_fee.recipient}")
        if min(self.fees.base_fee, self.fees.box_fee, self.fees.inner_transfer_surcharge) < 0:
            raise ConfigurationError("fees cannot be negative")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics; the API token is masked)."""
        return {
            "ledger": {
                "url": self.ledger.url,
                "api_token": "***" if self.ledger.api_token else "",
                "token_header": self.ledger.token_header,
                "timeout": self.ledger.timeout,
            },
            "fees": {
                "base_fee": self.fees.base_fee,
                "box_fee": self.fees.box_fee,
                "inner_transfer_surcharge": self.fees.inner_transfer_surcharge,
            },
            "packing": {
                "max_references": self.packing.max_references,
                "chunk_size": self.packing.chunk_size,
                "max_rounds": self.packing.max_rounds,
            },
            "platform_fee": {
                "recipient": self.platform_fee.recipient,
                "bps": self.platform_fee.bps,
            },
            "registry": {
                "pools_path": self.registry.pools_path,
                "tokens_path": self.registry.tokens_path,
            },
            "venues": {
                "direct_factory_contract_id": self.venues.direct_factory_contract_id,
            },
        }


def load_config(path: Optional[str] = None) -> SwapGroupConfig:
    """
    Load swapgroup configuration.

    Resolution order:
        1. Explicit *path* argument
        2. SWAPGROUP_CONFIG env var
        3. ./swapgroup.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("SWAPGROUP_CONFIG", "swapgroup.toml")

    return SwapGroupConfig.from_file(path)
