"""
swapgroup Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast
from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LEDGER_DEFAULTS = {
    'SWAPGROUP_LEDGER_URL':            'http://127.0.0.1:8080',
    'SWAPGROUP_LEDGER_TOKEN':          '',
    'SWAPGROUP_POOLS_PATH':            'config/pools.json',
    'SWAPGROUP_TOKENS_PATH':           'config/tokens.json',
}

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
    'LOG_INCLUDE_REQUEST_CONTENT':     'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_MAX_PATH_LENGTH = 320  # Maximum URL path length to log (truncates longer paths)
LOG_BACKUP_COUNT = 5


# ==================================================================================
# LEDGER PROTOCOL CONSTANTS
# ==================================================================================
# Declared references per operation (boxes + contracts + assets + accounts)
MAX_OPERATION_REFERENCES = 8

# Maximum operations in one atomic group
MAX_BATCH_SIZE = 16

# Network minimum fee per operation, in micro-units
MIN_FEE = 1000

# Rounds an unsigned batch stays valid for
VALIDITY_WINDOW = 1000

NATIVE_TOKEN_ID = 0

# Byte lengths of the address codec
ADDRESS_KEY_LENGTH = 32
ADDRESS_CHECKSUM_LENGTH = 4
ADDRESS_LENGTH = 58


# ==================================================================================
# FEE CONSTANTS
# ==================================================================================
BASE_FEE = 1000
BOX_REFERENCE_FEE = 1000
INNER_TRANSFER_SURCHARGE = 1000

# Minimum balance payment that creates a wrapped-token balance box
BALANCE_BOX_COST = 28500

# Fee venues set on their pool call, which issues inner transfers
SWAP_CALL_FEE = 5000


# ==================================================================================
# DISCOVERY CONSTANTS
# ==================================================================================
DEFAULT_CHUNK_SIZE = 10
DEFAULT_DISCOVERY_ROUNDS = 2

# Factory contract the direct venue family's pools call into
DIRECT_FACTORY_CONTRACT_ID = 411751

CONNECTION_TIMEOUT = 10.0  # 10 seconds


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    def __hash__(self):
        return hash(bool(self))


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
DEFAULTS = LEDGER_DEFAULTS | LOGGER_DEFAULTS
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
