"""
Hash functions and utilities for gamechannels.

Implements keccak-256 hashing over canonical ABI encodings, the digest used
for channel ids and for every signed off-chain state.
"""

from dataclasses import dataclass
from typing import Any, Sequence, Union

from eth_abi import encode
from eth_utils import keccak


@dataclass(frozen=True)
class Hash:
    """Immutable hash value with comparison and string representation."""

    value: bytes

    def __post_init__(self) -> None:
        if len(self.value) != 32:
            raise ValueError("Hash must be exactly 32 bytes")

    def __str__(self) -> str:
        return "0x" + self.value.hex()

    def __repr__(self) -> str:
        return f"Hash('0x{self.value.hex()}')"

    @classmethod
    def from_hex(cls, hex_string: str) -> "Hash":
        """Create a Hash from a hexadecimal string (0x prefix optional)."""
        if hex_string.startswith("0x"):
            hex_string = hex_string[2:]
        return cls(bytes.fromhex(hex_string))

    def to_hex(self) -> str:
        """Convert hash to 0x-prefixed hexadecimal string."""
        return "0x" + self.value.hex()


class Keccak256Hasher:
    """Keccak-256 hasher with ABI-encoding helpers."""

    @staticmethod
    def hash(data: Union[bytes, str]) -> Hash:
        """
        Hash data using keccak-256.

        Args:
            data: Data to hash (bytes or string)

        Returns:
            Hash object containing the keccak-256 digest
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        return Hash(keccak(data))

    @staticmethod
    def hash_abi(types: Sequence[str], values: Sequence[Any]) -> Hash:
        """
        Hash the canonical ABI encoding of ``values``.

        Args:
            types: ABI type strings, e.g. ``["address[]", "uint64"]``
            values: Python values matching ``types``

        Returns:
            Hash of ``abi.encode(types, values)``
        """
        return Hash(keccak(encode(list(types), list(values))))
