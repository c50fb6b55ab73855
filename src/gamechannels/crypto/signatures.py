"""
Digital signature implementation using ECDSA with secp256k1 curve.

Signatures are produced over a raw 32-byte message hash (no EIP-191 prefix)
and carry a recovery id, so the signer's address can be recovered from the
signature alone. This module provides cryptographic signatures compatible
with Ethereum ``ecrecover``.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError
from eth_utils import is_address, to_checksum_address

from .hashing import Hash

# secp256k1 group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Ethereum encodes the recovery id as 27/28
V_OFFSET = 27


def _message_bytes(message: Union[bytes, Hash]) -> bytes:
    if isinstance(message, Hash):
        return message.value
    if len(message) != 32:
        raise ValueError("Message hash must be exactly 32 bytes")
    return message


@dataclass(frozen=True)
class Signature:
    """Immutable recoverable ECDSA signature ``(v, r, s)``."""

    v: int
    r: int
    s: int

    def __post_init__(self) -> None:
        if self.v not in (V_OFFSET, V_OFFSET + 1):
            raise ValueError("Signature v must be 27 or 28")
        if not (0 < self.r < SECP256K1_N and 0 < self.s < SECP256K1_N):
            raise ValueError("Signature components must be in (0, n)")

    @classmethod
    def from_bytes(cls, signature_bytes: bytes) -> "Signature":
        """Create a signature from 65 bytes ``r || s || v``."""
        if len(signature_bytes) != 65:
            raise ValueError("Signature must be exactly 65 bytes")

        r = int.from_bytes(signature_bytes[:32], byteorder="big")
        s = int.from_bytes(signature_bytes[32:64], byteorder="big")
        v = signature_bytes[64]
        if v < V_OFFSET:
            v += V_OFFSET
        return cls(v, r, s)

    @classmethod
    def from_hex(cls, hex_string: str) -> "Signature":
        """Create a signature from hexadecimal string."""
        if hex_string.startswith("0x"):
            hex_string = hex_string[2:]
        return cls.from_bytes(bytes.fromhex(hex_string))

    @classmethod
    def from_tuple(cls, vrs: Tuple[int, int, int]) -> "Signature":
        """Create a signature from a decoded ABI ``(uint8,uint256,uint256)`` tuple."""
        v, r, s = vrs
        return cls(v, r, s)

    def to_bytes(self) -> bytes:
        """Convert signature to 65 raw bytes."""
        return (
            self.r.to_bytes(32, byteorder="big")
            + self.s.to_bytes(32, byteorder="big")
            + bytes([self.v])
        )

    def to_hex(self) -> str:
        """Convert signature to 0x-prefixed hexadecimal string."""
        return "0x" + self.to_bytes().hex()

    def to_tuple(self) -> Tuple[int, int, int]:
        """ABI value for the ``(uint8,uint256,uint256)`` signature tuple."""
        return (self.v, self.r, self.s)

    def recover(self, message: Union[bytes, Hash]) -> Optional[str]:
        """Recover the checksummed signer address, or None if unrecoverable."""
        return ECDSASigner.recover_signer(message, self)

    def __str__(self) -> str:
        return f"Signature('{self.to_hex()[:18]}...')"


@dataclass(frozen=True)
class PrivateKey:
    """Immutable secp256k1 private key that signs raw message hashes."""

    _account: LocalAccount

    @classmethod
    def generate(cls) -> "PrivateKey":
        """Generate a new random private key."""
        return cls(Account.create())

    @classmethod
    def from_bytes(cls, key_bytes: bytes) -> "PrivateKey":
        """Create a private key from raw bytes."""
        if len(key_bytes) != 32:
            raise ValueError("Private key must be exactly 32 bytes")
        return cls(Account.from_key(key_bytes))

    @classmethod
    def from_hex(cls, hex_string: str) -> "PrivateKey":
        """Create a private key from hexadecimal string."""
        if hex_string.startswith("0x"):
            hex_string = hex_string[2:]
        return cls.from_bytes(bytes.fromhex(hex_string))

    @property
    def address(self) -> str:
        """Checksummed address of the key's owner."""
        return self._account.address

    def to_bytes(self) -> bytes:
        return bytes(self._account.key)

    def sign(self, message: Union[bytes, Hash]) -> Signature:
        """Sign a 32-byte message hash with this private key."""
        digest = _message_bytes(message)
        raw = keys.PrivateKey(self.to_bytes()).sign_msg_hash(digest)
        return Signature(raw.v + V_OFFSET, raw.r, raw.s)

    def __str__(self) -> str:
        return f"PrivateKey({self.address})"

    def __repr__(self) -> str:
        return f"PrivateKey({self.address})"


class ECDSASigner:
    """ECDSA signature operations with secp256k1 curve."""

    @staticmethod
    def generate_keypair() -> Tuple[PrivateKey, str]:
        """Generate a new key and return it with its address."""
        private_key = PrivateKey.generate()
        return private_key, private_key.address

    @staticmethod
    def sign_hash(private_key: PrivateKey, message: Union[bytes, Hash]) -> Signature:
        """Sign a message hash with a private key."""
        return private_key.sign(message)

    @staticmethod
    def recover_signer(
        message: Union[bytes, Hash], signature: Signature
    ) -> Optional[str]:
        """
        Recover the address that produced ``signature`` over ``message``.

        Returns None when the signature does not correspond to any public
        key; callers compare the result against the expected participant.
        """
        digest = _message_bytes(message)
        try:
            raw = keys.Signature(
                vrs=(signature.v - V_OFFSET, signature.r, signature.s)
            )
            public_key = raw.recover_public_key_from_msg_hash(digest)
        except (BadSignature, KeyValidationError, ValueError) as e:
            logger.debug(f"Signature recovery failed: {e}")
            return None
        return public_key.to_checksum_address()

    @staticmethod
    def verify_signer(
        message: Union[bytes, Hash], signature: Signature, expected: str
    ) -> bool:
        """Check that ``signature`` over ``message`` was produced by ``expected``."""
        if not is_address(expected):
            return False
        recovered = signature.recover(message)
        return recovered is not None and recovered == to_checksum_address(expected)
