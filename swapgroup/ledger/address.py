"""
swapgroup Address Module

Ledger account addresses are a 32-byte key followed by a 4-byte checksum,
base32 encoded without padding (58 characters).  Contracts hold funds at
an address derived from their numeric id.
"""

import base64
import hashlib

from ..constants import ADDRESS_CHECKSUM_LENGTH, ADDRESS_KEY_LENGTH, ADDRESS_LENGTH

CONTRACT_ADDRESS_PREFIX = b"appID"


def digest32(data: bytes) -> bytes:
    """First 32 bytes of SHA-512, the ledger's identifier digest."""
    return hashlib.sha512(data).digest()[:32]


def encode_address(key: bytes) -> str:
    """
    Encode a 32-byte key as a checksummed address.

    Args:
        key: 32-byte public key or contract account key

    Returns:
        58-character base32 address
    """
    if len(key) != ADDRESS_KEY_LENGTH:
        raise ValueError(f"Address key must be {ADDRESS_KEY_LENGTH} bytes, got {len(key)}")
    checksum = digest32(key)[-ADDRESS_CHECKSUM_LENGTH:]
    return base64.b32encode(key + checksum).decode("ascii").rstrip("=")


def decode_address(address: str) -> bytes:
    """
    Decode an address back to its 32-byte key, verifying the checksum.

    Raises:
        ValueError: malformed address or checksum mismatch
    """
    if len(address) != ADDRESS_LENGTH:
        raise ValueError(f"Address must be {ADDRESS_LENGTH} chars, got {len(address)}")
    padded = address + "=" * (-len(address) % 8)
    try:
        raw = base64.b32decode(padded)
    except ValueError as e:
        raise ValueError(f"Invalid address encoding: {address}") from e
    key, checksum = raw[:ADDRESS_KEY_LENGTH], raw[ADDRESS_KEY_LENGTH:]
    if digest32(key)[-ADDRESS_CHECKSUM_LENGTH:] != checksum:
        raise ValueError(f"Address checksum mismatch: {address}")
    return key


def is_valid_address(address: str) -> bool:
    try:
        decode_address(address)
    except ValueError:
        return False
    return True


def contract_address(contract_id: int) -> str:
    """Escrow address of a contract."""
    return encode_address(digest32(CONTRACT_ADDRESS_PREFIX + contract_id.to_bytes(8, "big")))
