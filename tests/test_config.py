"""
Configuration test suite

Coverage:
  - TOML loading and section defaults
  - Environment overrides
  - Validation failures
  - Diagnostics output
"""

import hashlib
import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from swapgroup.config import SwapGroupConfig, load_config
from swapgroup.constants import DEFAULT_CHUNK_SIZE, DIRECT_FACTORY_CONTRACT_ID, MAX_OPERATION_REFERENCES
from swapgroup.exceptions import ConfigurationError
from swapgroup.ledger import encode_address

RECIPIENT = encode_address(hashlib.sha256(b"fee-recipient").digest())

ENV_VARS = [
    "SWAPGROUP_CONFIG",
    "SWAPGROUP_LEDGER_URL",
    "SWAPGROUP_LEDGER_TOKEN",
    "SWAPGROUP_LEDGER_TIMEOUT",
    "SWAPGROUP_CHUNK_SIZE",
    "SWAPGROUP_MAX_ROUNDS",
    "SWAPGROUP_FEE_RECIPIENT",
    "SWAPGROUP_FEE_BPS",
    "SWAPGROUP_POOLS_PATH",
    "SWAPGROUP_TOKENS_PATH",
]

SAMPLE_TOML = f"""
[ledger]
url = "https://mainnet-api.voi.nodely.dev"
timeout = 5

[packing]
max_references = 8
chunk_size = 6
max_rounds = 3

[platform_fee]
recipient = "{RECIPIENT}"
bps = 30

[venues]
direct_factory_contract_id = 12345
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ============================================================================
# Loading
# ============================================================================

class TestLoading:

    def test_defaults(self):
        config = SwapGroupConfig()
        assert config.packing.max_references == MAX_OPERATION_REFERENCES
        assert config.packing.chunk_size == DEFAULT_CHUNK_SIZE
        assert config.venues.direct_factory_contract_id == DIRECT_FACTORY_CONTRACT_ID
        assert not config.platform_fee.enabled
        assert config.validate()

    def test_from_file(self, tmp_path):
        path = tmp_path / "swapgroup.toml"
        path.write_text(SAMPLE_TOML)
        config = SwapGroupConfig.from_file(str(path))

        assert config.ledger.url == "https://mainnet-api.voi.nodely.dev"
        assert config.ledger.timeout == 5.0
        assert config.packing.chunk_size == 6
        assert config.packing.max_rounds == 3
        assert config.platform_fee.enabled
        assert config.venues.direct_factory_contract_id == 12345
        assert config.validate()

    def test_missing_file_gives_defaults(self, tmp_path):
        config = SwapGroupConfig.from_file(str(tmp_path / "absent.toml"))
        assert config.packing.chunk_size == DEFAULT_CHUNK_SIZE

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[ledger\nurl = ")
        with pytest.raises(ConfigurationError):
            SwapGroupConfig.from_file(str(path))

    def test_load_config_from_env_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.toml"
        path.write_text(SAMPLE_TOML)
        monkeypatch.setenv("SWAPGROUP_CONFIG", str(path))
        assert load_config().packing.chunk_size == 6


# ============================================================================
# Environment overrides
# ============================================================================

class TestEnvironment:

    def test_env_overrides_toml(self, tmp_path, monkeypatch):
        path = tmp_path / "swapgroup.toml"
        path.write_text(SAMPLE_TOML)
        monkeypatch.setenv("SWAPGROUP_LEDGER_URL", "http://127.0.0.1:4001")
        monkeypatch.setenv("SWAPGROUP_LEDGER_TOKEN", "secret")
        monkeypatch.setenv("SWAPGROUP_CHUNK_SIZE", "2")
        monkeypatch.setenv("SWAPGROUP_FEE_BPS", "0")

        config = SwapGroupConfig.from_file(str(path))
        assert config.ledger.url == "http://127.0.0.1:4001"
        assert config.ledger.api_token == "secret"
        assert config.packing.chunk_size == 2
        # "0" is a set value, not an absent one
        assert config.platform_fee.bps == 0
        assert not config.platform_fee.enabled

    def test_env_applies_without_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SWAPGROUP_POOLS_PATH", "/srv/pools.json")
        config = SwapGroupConfig.from_file(str(tmp_path / "absent.toml"))
        assert config.registry.pools_path == "/srv/pools.json"


# ============================================================================
# Validation & diagnostics
# ============================================================================

class TestValidation:

    @pytest.mark.parametrize("section,key,value", [
        ("ledger", "url", "ftp://node"),
        ("ledger", "timeout", 0),
        ("packing", "max_references", 0),
        ("packing", "chunk_size", 0),
        ("packing", "max_rounds", 0),
        ("platform_fee", "bps", 10001),
        ("platform_fee", "recipient", "not-an-address"),
        ("fees", "box_fee", -1),
    ])
    def test_invalid_values(self, section, key, value):
        config = SwapGroupConfig()
        setattr(getattr(config, section), key, value)
        with pytest.raises(ConfigurationError):
            config.validate()

    def test_to_dict_masks_token(self):
        config = SwapGroupConfig()
        config.ledger.api_token = "secret"
        data = config.to_dict()
        assert data["ledger"]["api_token"] == "***"
        assert data["packing"]["max_references"] == MAX_OPERATION_REFERENCES
        assert SwapGroupConfig.from_dict(data).packing.chunk_size == config.packing.chunk_size
