"""
Adjudicator protocol.

An adjudicator decides whether a candidate application state is valid given
prior proof states, and what asset split it implies. Implementations hold
only immutable configuration, so the same inputs always produce the same
result. Every rejection raises a specific ``AdjudicationError``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address

from ..crypto.hashing import Hash
from ..crypto.signatures import ECDSASigner, Signature
from ..errors import ConfigurationError, InvalidStateEncoding
from ..logging import get_logger
from .channel_protocol import GUEST, HOST, Asset, Channel, State

logger = get_logger(__name__)

SIGNATURE_TYPE = "(uint8,uint256,uint256)"

# Total distributed by the reference games, independent of actual deposits
DEFAULT_POOL = 100


@dataclass(frozen=True)
class AdjudicationResult:
    """Validity verdict and the ``(host, guest)`` payout it implies."""

    valid: bool
    outcome: Tuple[Asset, Asset]

    def amounts(self) -> Tuple[int, int]:
        return (self.outcome[HOST].amount, self.outcome[GUEST].amount)


def decode_data(types: List[str], data: bytes, what: str) -> Tuple[Any, ...]:
    """ABI-decode adjudicator data, mapping codec failures to ``InvalidStateEncoding``."""
    try:
        return decode(types, data)
    except (DecodingError, ValueError, TypeError, OverflowError) as e:
        raise InvalidStateEncoding(f"Cannot decode {what}: {e}", cause=e) from e


def decode_signature(vrs: Sequence[int]) -> Signature:
    """Build a ``Signature`` from a decoded ABI tuple."""
    try:
        return Signature.from_tuple(tuple(vrs))
    except ValueError as e:
        raise InvalidStateEncoding(f"Malformed signature: {e}", cause=e) from e


def signed_by(message: Hash, signature: Signature, expected: str) -> bool:
    """Whether ``signature`` over ``message`` recovers to ``expected``."""
    return ECDSASigner.verify_signer(message, signature, expected)


class Adjudicator(ABC):
    """Stateless validator for one application."""

    name = "adjudicator"

    def __init__(self, address: str, token: str, pool: int = DEFAULT_POOL):
        if pool < 0:
            raise ConfigurationError(
                "Pool must be non-negative", config_key="pool", config_value=pool
            )
        self._address = to_checksum_address(address)
        self._token = to_checksum_address(token)
        self._pool = pool

    @property
    def address(self) -> str:
        return self._address

    @property
    def token(self) -> str:
        return self._token

    @property
    def pool(self) -> int:
        return self._pool

    @abstractmethod
    def adjudicate(
        self, channel: Channel, candidate: State, proofs: Sequence[State]
    ) -> AdjudicationResult:
        """Validate ``candidate`` against ``proofs`` and return its outcome."""

    def _payout(self, host_amount: int) -> AdjudicationResult:
        return AdjudicationResult(
            valid=True,
            outcome=(
                Asset(self._token, host_amount),
                Asset(self._token, self._pool - host_amount),
            ),
        )

    def _host_wins(self) -> AdjudicationResult:
        return self._payout(self._pool)

    def _guest_wins(self) -> AdjudicationResult:
        return self._payout(0)

    def _even_split(self) -> AdjudicationResult:
        # odd remainder stays with the host
        return self._payout(self._pool - self._pool // 2)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(address={self._address}, pool={self._pool})"
