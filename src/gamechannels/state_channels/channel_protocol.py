"""
State Channel Protocol Data Model

This module defines the structures shared by custody and the adjudicators:
- Channel identity and its canonical id derivation
- Assets and signed application states
- Per-channel custody metadata and the channel lifecycle
"""

import copy
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import encode
from eth_utils import to_checksum_address

from ..crypto.hashing import Hash, Keccak256Hasher
from ..errors import ConfigurationError

HOST = 0
GUEST = 1

CHALLENGE_PERIOD = 3 * 24 * 3600  # 3 days

CHANNEL_TYPES = ["address[]", "address", "uint64"]
ASSET_TYPE = "(address,uint256)"
STATE_TYPES = ["bytes", f"{ASSET_TYPE}[]"]

UINT64_MAX = 2**64 - 1
UINT256_MAX = 2**256 - 1


class ChannelStatus(IntEnum):
    """Lifecycle of a channel's custody record."""

    VOID = 0
    PARTIAL = 1
    OPENED = 2
    CHALLENGED = 3
    CLOSED = 4


class ChannelEvent(Enum):
    """Events emitted by custody after a committed transition."""

    DEPOSITED = "deposited"
    OPENED = "opened"
    CHALLENGED = "challenged"
    CLOSED = "closed"
    RECLAIMED = "reclaimed"


@dataclass
class CustodyConfig:
    """Configuration for the custody contract."""

    challenge_period: int = CHALLENGE_PERIOD

    def __post_init__(self):
        if not isinstance(self.challenge_period, int) or self.challenge_period <= 0:
            raise ConfigurationError(
                "challenge_period must be a positive number of seconds",
                config_key="challenge_period",
                config_value=self.challenge_period,
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {"challenge_period": self.challenge_period}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustodyConfig":
        """Create configuration from dictionary."""
        unknown = set(data) - {"challenge_period"}
        if unknown:
            raise ConfigurationError(
                f"Unknown custody config keys: {sorted(unknown)}",
                config_key=sorted(unknown)[0],
            )
        return cls(**data)


@dataclass(frozen=True)
class Asset:
    """An amount of one fungible token."""

    token: str
    amount: int

    def __post_init__(self):
        object.__setattr__(self, "token", to_checksum_address(self.token))
        if not isinstance(self.amount, int) or not 0 <= self.amount <= UINT256_MAX:
            raise ValueError(f"Asset amount out of range: {self.amount}")

    def to_tuple(self) -> Tuple[str, int]:
        return (self.token, self.amount)

    @classmethod
    def from_tuple(cls, value: Sequence[Any]) -> "Asset":
        token, amount = value
        return cls(token, amount)

    def with_amount(self, amount: int) -> "Asset":
        return Asset(self.token, amount)


@dataclass(frozen=True)
class Channel:
    """A two-party channel: ``(host, guest)``, an adjudicator and a nonce."""

    participants: Tuple[str, ...]
    adjudicator: str
    nonce: int = 0

    def __post_init__(self):
        object.__setattr__(
            self,
            "participants",
            tuple(to_checksum_address(p) for p in self.participants),
        )
        object.__setattr__(self, "adjudicator", to_checksum_address(self.adjudicator))
        if not 0 <= self.nonce <= UINT64_MAX:
            raise ValueError(f"Channel nonce out of range: {self.nonce}")

    @property
    def host(self) -> str:
        return self.participants[HOST]

    @property
    def guest(self) -> str:
        return self.participants[GUEST]

    def index_of(self, address: str) -> Optional[int]:
        """Position of ``address`` among the participants, if present."""
        address = to_checksum_address(address)
        for index, participant in enumerate(self.participants):
            if participant == address:
                return index
        return None

    def encode(self) -> bytes:
        return encode(
            CHANNEL_TYPES, [list(self.participants), self.adjudicator, self.nonce]
        )

    @property
    def channel_id(self) -> str:
        """keccak-256 of the canonical encoding, as 0x-prefixed hex."""
        return Keccak256Hasher.hash(self.encode()).to_hex()


@dataclass(frozen=True)
class State:
    """An application state: opaque adjudicator data plus its outcome."""

    data: bytes
    outcome: Tuple[Asset, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "data", bytes(self.data))
        object.__setattr__(self, "outcome", tuple(self.outcome))

    def encode(self) -> bytes:
        return encode(STATE_TYPES, [self.data, [a.to_tuple() for a in self.outcome]])

    def hash(self) -> Hash:
        """Digest both participants sign for a mutual close."""
        return Keccak256Hasher.hash(self.encode())


@dataclass
class Metadata:
    """Custody's record for one channel."""

    channel: Channel
    outcome: List[Asset]
    status: ChannelStatus = ChannelStatus.PARTIAL
    challenge_expire: int = 0
    last_valid_state: Optional[State] = None

    def copy(self) -> "Metadata":
        return copy.deepcopy(self)

    def total_locked(self) -> int:
        return sum(asset.amount for asset in self.outcome)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "channel_id": self.channel.channel_id,
            "participants": list(self.channel.participants),
            "adjudicator": self.channel.adjudicator,
            "nonce": self.channel.nonce,
            "outcome": [
                {"token": a.token, "amount": a.amount} for a in self.outcome
            ],
            "status": self.status.name,
            "challenge_expire": self.challenge_expire,
            "last_valid_state": "0x" + self.last_valid_state.data.hex()
            if self.last_valid_state
            else None,
        }
