"""
Contract call encoding.

Method selectors are the first four bytes of the identifier digest of the
method signature; arguments are fixed-width big-endian words.
"""

from typing import Any, List, Sequence

from .address import decode_address, digest32


def method_selector(signature: str) -> bytes:
    """
    Selector for a method signature.

    Args:
        signature: e.g. ``"withdraw(uint64)uint256"`` or a bare name

    Returns:
        4-byte selector
    """
    return digest32(signature.encode("utf-8"))[:4]


def encode_uint(value: int, bits: int = 64) -> bytes:
    if value < 0:
        raise ValueError("Unsigned argument cannot be negative")
    if value >= 1 << bits:
        raise ValueError(f"Value {value} does not fit in uint{bits}")
    return value.to_bytes(bits // 8, "big")


def encode_byte(value: int) -> bytes:
    return encode_uint(value, 8)


def encode_address_arg(address: str) -> bytes:
    return decode_address(address)


def encode_args(types: Sequence[str], values: Sequence[Any]) -> List[bytes]:
    """
    Encode call arguments by ABI type name.

    Supported types: ``uint8``/``byte``, ``uint64``, ``uint256``, ``address``
    and ``bytes`` (passed through).
    """
    if len(types) != len(values):
        raise ValueError(f"Expected {len(types)} arguments, got {len(values)}")
    encoded = []
    for abi_type, value in zip(types, values):
        if abi_type in ("byte", "uint8"):
            encoded.append(encode_byte(int(value)))
        elif abi_type == "uint64":
            encoded.append(encode_uint(int(value), 64))
        elif abi_type == "uint256":
            encoded.append(encode_uint(int(value), 256))
        elif abi_type == "address":
            encoded.append(encode_address_arg(value))
        elif abi_type == "bytes":
            encoded.append(bytes(value))
        else:
            raise ValueError(f"Unsupported ABI type: {abi_type}")
    return encoded
