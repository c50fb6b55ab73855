"""gamechannels error handling.

This module provides the exception hierarchy shared by the custody state
machine and the adjudicators.
"""

from .exceptions import (
    AdjudicationError,
    ChallengeNotExpired,
    ChannelsError,
    ConfigurationError,
    CustodyError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidAsset,
    InvalidCaller,
    InvalidConfigSignatures,
    InvalidGameState,
    InvalidMove,
    InvalidParticipants,
    InvalidPayment,
    InvalidPreviousStateSignatures,
    InvalidProofCount,
    InvalidSignature,
    InvalidState,
    InvalidStateEncoding,
    InvalidStatus,
    InvalidTick,
    InvalidTurn,
    TransferFailed,
    UnknownAdjudicator,
    VersionNotHigher,
)

__all__ = [
    # Base
    "ChannelsError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "ConfigurationError",
    "InvalidSignature",
    # Custody
    "CustodyError",
    "InvalidParticipants",
    "InvalidStatus",
    "InvalidCaller",
    "InvalidState",
    "InvalidAsset",
    "UnknownAdjudicator",
    "TransferFailed",
    "ChallengeNotExpired",
    # Adjudication
    "AdjudicationError",
    "InvalidStateEncoding",
    "InvalidProofCount",
    "InvalidTurn",
    "InvalidGameState",
    "InvalidMove",
    "InvalidTick",
    "InvalidConfigSignatures",
    "InvalidPreviousStateSignatures",
    "VersionNotHigher",
    "InvalidPayment",
]
