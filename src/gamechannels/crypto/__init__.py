"""
Cryptographic primitives for gamechannels.

This module provides the cryptographic functions needed for:
- Recoverable digital signatures (ECDSA over secp256k1)
- Hash functions (keccak-256 over canonical ABI encodings)
"""

from .hashing import Hash, Keccak256Hasher
from .signatures import ECDSASigner, PrivateKey, Signature

__all__ = [
    "ECDSASigner",
    "Signature",
    "PrivateKey",
    "Keccak256Hasher",
    "Hash",
]
