"""Exception hierarchy for gamechannels.

Every validation failure in custody or adjudication aborts the whole call
with one of the exceptions below. Each class name doubles as its stable
``error_code`` so off-chain clients can decide their next action (sign and
resubmit, fetch a newer state, abandon the channel).
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories."""

    VALIDATION = "validation"
    CRYPTOGRAPHIC = "cryptographic"
    LIFECYCLE = "lifecycle"
    TRANSFER = "transfer"
    TIMEOUT = "timeout"
    ADJUDICATION = "adjudication"
    CONFIGURATION = "configuration"
    SYSTEM = "system"


@dataclass
class ErrorContext:
    """Context information for an error."""

    timestamp: float = field(default_factory=time.time)
    channel_id: Optional[str] = None
    operation: Optional[str] = None
    sender: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary."""
        return {
            "timestamp": self.timestamp,
            "channel_id": self.channel_id,
            "operation": self.operation,
            "sender": self.sender,
            "metadata": self.metadata,
        }


class ChannelsError(Exception):
    """Base exception for all gamechannels errors."""

    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    category: ErrorCategory = ErrorCategory.SYSTEM

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        message = message or self.__class__.__name__
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.cause = cause
        self.metadata = metadata or {}
        self.timestamp = time.time()

    @property
    def error_code(self) -> str:
        return self.__class__.__name__

    def with_context(self, **kwargs: Any) -> "ChannelsError":
        """Fill in context fields that are still unset and return self."""
        for key, value in kwargs.items():
            if getattr(self.context, key, None) is None:
                setattr(self.context, key, value)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "severity": self.severity.value,
            "category": self.category.value,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
            "metadata": self.metadata,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"{self.error_code}: {self.message}"]

        if self.context.channel_id:
            parts.append(f"Channel: {self.context.channel_id}")

        if self.context.operation:
            parts.append(f"Operation: {self.context.operation}")

        return " | ".join(parts)


class ConfigurationError(ChannelsError):
    """Configuration error."""

    category = ErrorCategory.CONFIGURATION

    def __init__(
        self,
        message: Optional[str] = None,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.config_key = config_key
        self.config_value = config_value

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "config_key": self.config_key,
                "config_value": str(self.config_value)
                if self.config_value is not None
                else None,
            }
        )
        return data


class InvalidSignature(ChannelsError):
    """A signature does not recover to the required participant."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.CRYPTOGRAPHIC


# Custody errors


class CustodyError(ChannelsError):
    """Rejection raised by the custody state machine."""

    category = ErrorCategory.VALIDATION


class InvalidParticipants(CustodyError):
    """Channel does not list exactly two participants."""


class InvalidStatus(CustodyError):
    """Operation is not allowed in the channel's current status."""

    category = ErrorCategory.LIFECYCLE


class InvalidCaller(CustodyError):
    """Sender is not a participant of the channel."""


class InvalidState(CustodyError):
    """Adjudicator reported the submitted state as invalid."""


class InvalidAsset(CustodyError):
    """Deposit token does not match the channel's token."""


class UnknownAdjudicator(CustodyError):
    """Channel names an adjudicator custody does not accept."""

    category = ErrorCategory.CONFIGURATION


class TransferFailed(CustodyError):
    """Token collaborator refused or failed a transfer."""

    severity = ErrorSeverity.HIGH
    category = ErrorCategory.TRANSFER


class ChallengeNotExpired(CustodyError):
    """Reclaim attempted before the challenge period elapsed."""

    category = ErrorCategory.TIMEOUT

    def __init__(
        self,
        message: Optional[str] = None,
        challenge_expire: Optional[int] = None,
        now: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.challenge_expire = challenge_expire
        self.now = now

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"challenge_expire": self.challenge_expire, "now": self.now})
        return data


# Adjudication errors


class AdjudicationError(ChannelsError):
    """Rejection raised by an adjudicator."""

    category = ErrorCategory.ADJUDICATION


class InvalidStateEncoding(AdjudicationError):
    """State data cannot be decoded by the adjudicator."""


class InvalidProofCount(AdjudicationError):
    """Wrong number of proofs for this adjudicator."""


class InvalidTurn(AdjudicationError):
    """Turn marker is not one of the two player marks."""


class InvalidGameState(AdjudicationError):
    """State is not well formed for the game rules."""


class InvalidMove(AdjudicationError):
    """Transition from the proof to the candidate is not a legal move."""


class InvalidTick(AdjudicationError):
    """Candidate tick is not exactly one past the previous tick."""


class InvalidConfigSignatures(AdjudicationError):
    """Game configuration is not signed by both participants."""

    severity = ErrorSeverity.HIGH


class InvalidPreviousStateSignatures(AdjudicationError):
    """Previous state is not signed by both participants."""

    severity = ErrorSeverity.HIGH


class VersionNotHigher(AdjudicationError):
    """Candidate version does not exceed the proof version."""


class InvalidPayment(AdjudicationError):
    """Voucher payment exceeds the channel pool."""
