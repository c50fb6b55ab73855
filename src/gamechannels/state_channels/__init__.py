"""
State Channels - Two-Party Custody and Dispute Resolution

This module provides the on-ledger half of a two-party state channel:

- Channel identity, assets, states and custody metadata
- The custody state machine (open, close, challenge, reclaim)
- The adjudicator protocol that decides state validity
- Token and clock collaborators simulating the host ledger
"""

from .adjudicator import (
    DEFAULT_POOL,
    AdjudicationResult,
    Adjudicator,
    decode_data,
    decode_signature,
    signed_by,
)
from .channel_protocol import (
    CHALLENGE_PERIOD,
    GUEST,
    HOST,
    Asset,
    Channel,
    ChannelEvent,
    ChannelStatus,
    CustodyConfig,
    Metadata,
    State,
)
from .clock import Clock, ManualClock, SystemClock
from .custody import Custody
from .token import ERC20Token, TokenContract

__all__ = [
    # Protocol
    "HOST",
    "GUEST",
    "CHALLENGE_PERIOD",
    "Asset",
    "Channel",
    "ChannelEvent",
    "ChannelStatus",
    "CustodyConfig",
    "Metadata",
    "State",
    # Adjudication
    "DEFAULT_POOL",
    "AdjudicationResult",
    "Adjudicator",
    "decode_data",
    "decode_signature",
    "signed_by",
    # Custody
    "Custody",
    # Collaborators
    "Clock",
    "ManualClock",
    "SystemClock",
    "ERC20Token",
    "TokenContract",
]
