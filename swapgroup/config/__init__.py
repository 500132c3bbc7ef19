"""
swapgroup Configuration

Loads swapgroup.toml; environment variables override TOML values.
"""

from .loader import (
    SwapGroupConfig,
    LedgerConfig,
    FeesConfig,
    PackingConfig,
    PlatformFeeConfig,
    RegistryConfig,
    VenuesConfig,
    load_config,
)

__all__ = [
    "SwapGroupConfig",
    "LedgerConfig",
    "FeesConfig",
    "PackingConfig",
    "PlatformFeeConfig",
    "RegistryConfig",
    "VenuesConfig",
    "load_config",
]
