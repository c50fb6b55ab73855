"""
Custody - Channel Fund Custody and Dispute State Machine

Custody owns every channel's funds and metadata and drives the lifecycle
``VOID -> PARTIAL -> OPENED <-> CHALLENGED -> CLOSED``:

- ``open`` pulls a participant's deposit into custody
- ``close`` pays out a state co-signed by both participants
- ``challenge`` registers a unilateral state and starts the dispute timer
- ``reclaim`` pays out the registered state once the timer has elapsed

Validity of application states is delegated to the channel's adjudicator.
Each public operation is atomic: it runs under the custody lock, which
serialises every operation on every channel, and any failure restores the
channel record and every token ledger to the state they had when the
operation started.
"""

import copy
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from eth_utils import to_checksum_address

from ..crypto.signatures import ECDSASigner, Signature
from ..errors import (
    ChallengeNotExpired,
    ChannelsError,
    InvalidAsset,
    InvalidCaller,
    InvalidParticipants,
    InvalidSignature,
    InvalidState,
    InvalidStatus,
    TransferFailed,
    UnknownAdjudicator,
)
from ..logging import LogContext, get_logger
from .adjudicator import Adjudicator, AdjudicationResult
from .channel_protocol import (
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
from .clock import Clock, SystemClock
from .token import TokenContract

logger = get_logger(__name__)

EventHandler = Callable[[ChannelEvent, str, Metadata], None]

ACTIVE = (ChannelStatus.OPENED, ChannelStatus.CHALLENGED)


class Custody:
    """Holds channel funds and resolves channels through their adjudicators."""

    def __init__(
        self,
        address: str,
        tokens: Iterable[TokenContract] = (),
        adjudicators: Iterable[Adjudicator] = (),
        config: Optional[CustodyConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.address = to_checksum_address(address)
        self.config = config or CustodyConfig()
        self.clock = clock or SystemClock()

        self._tokens: Dict[str, TokenContract] = {}
        self._adjudicators: Dict[str, Adjudicator] = {}
        self._metadata: Dict[str, Metadata] = {}
        self._participant_channels: Dict[str, Set[str]] = {}
        # guards every channel record and the token ledgers custody touches
        self._lock = threading.RLock()

        self._event_handlers: Dict[ChannelEvent, List[EventHandler]] = {
            event: [] for event in ChannelEvent
        }

        for token in tokens:
            self.register_token(token)
        for adjudicator in adjudicators:
            self.register_adjudicator(adjudicator)

    # Registration

    def register_token(self, token: TokenContract) -> None:
        with self._lock:
            self._tokens[token.address] = token

    def register_adjudicator(self, adjudicator: Adjudicator) -> None:
        with self._lock:
            self._adjudicators[adjudicator.address] = adjudicator

    def on(self, event: ChannelEvent, handler: EventHandler) -> None:
        """Call ``handler(event, channel_id, metadata)`` after each committed ``event``."""
        self._event_handlers[event].append(handler)

    # Queries

    def get_metadata(self, channel_id: str) -> Optional[Metadata]:
        """Snapshot of a channel's record, or None for a VOID channel."""
        with self._lock:
            metadata = self._metadata.get(channel_id)
            return metadata.copy() if metadata else None

    def get_status(self, channel_id: str) -> ChannelStatus:
        with self._lock:
            metadata = self._metadata.get(channel_id)
            return metadata.status if metadata else ChannelStatus.VOID

    def channels_of(self, participant: str) -> List[str]:
        """Ids of every channel ``participant`` belongs to."""
        with self._lock:
            return sorted(
                self._participant_channels.get(to_checksum_address(participant), ())
            )

    # Lifecycle

    def open(self, sender: str, channel: Channel, deposit: Asset) -> str:
        """Deposit ``deposit`` from ``sender`` into ``channel`` and return its id."""
        sender = to_checksum_address(sender)
        channel_id = channel.channel_id

        with self._transaction(channel_id, "open", sender) as events:
            if len(channel.participants) != 2:
                raise InvalidParticipants(
                    f"Channel needs exactly 2 participants, got {len(channel.participants)}"
                )
            self._adjudicator_for(channel)

            metadata = self._metadata.get(channel_id)
            if metadata is None:
                metadata = Metadata(
                    channel=channel,
                    outcome=[deposit.with_amount(0), deposit.with_amount(0)],
                    status=ChannelStatus.PARTIAL,
                )
                self._metadata[channel_id] = metadata
                self._index_participants(channel_id, channel)
            elif metadata.status not in (ChannelStatus.PARTIAL, ChannelStatus.OPENED):
                raise InvalidStatus(
                    f"Cannot deposit into a {metadata.status.name} channel"
                )

            index = channel.index_of(sender)
            if index is None:
                raise InvalidCaller(f"{sender} is not a participant")
            if deposit.token != metadata.outcome[index].token:
                raise InvalidAsset(
                    f"Channel holds {metadata.outcome[index].token}, got {deposit.token}"
                )

            self._pull(sender, deposit)

            previous = metadata.status
            metadata.outcome[index] = deposit.with_amount(
                metadata.outcome[index].amount + deposit.amount
            )
            if index == HOST or metadata.outcome[HOST].amount > 0:
                metadata.status = ChannelStatus.OPENED

            events.append(ChannelEvent.DEPOSITED)
            if previous != ChannelStatus.OPENED and metadata.status == ChannelStatus.OPENED:
                events.append(ChannelEvent.OPENED)

            logger.info(
                f"Deposit of {deposit.amount} recorded for participant {index}",
                context=LogContext(channel_id=channel_id, operation="open", sender=sender),
                extra={"status": metadata.status.name},
            )

        return channel_id

    def close(
        self,
        sender: str,
        channel_id: str,
        state: State,
        signatures: Sequence[Signature],
    ) -> Tuple[Asset, Asset]:
        """Finalize a channel with a state signed by host and guest."""
        sender = to_checksum_address(sender)

        with self._transaction(channel_id, "close", sender) as events:
            metadata = self._require_status(channel_id, ACTIVE)
            channel = metadata.channel

            if len(signatures) != 2:
                raise InvalidSignature(
                    f"Close needs 2 signatures, got {len(signatures)}"
                )
            state_hash = state.hash()
            for index in (HOST, GUEST):
                if not ECDSASigner.verify_signer(
                    state_hash, signatures[index], channel.participants[index]
                ):
                    raise InvalidSignature(
                        f"Signature {index} does not recover to participant {index}"
                    )

            result = self._adjudicate(channel, state, [])

            metadata.outcome = list(result.outcome)
            metadata.last_valid_state = state
            metadata.status = ChannelStatus.CLOSED
            self._distribute(metadata)

            events.append(ChannelEvent.CLOSED)
            logger.info(
                "Channel closed by mutual agreement",
                context=LogContext(channel_id=channel_id, operation="close", sender=sender),
                extra={"outcome": list(result.amounts())},
            )
            return result.outcome

    def challenge(
        self,
        sender: str,
        channel_id: str,
        state: State,
        proofs: Optional[Sequence[State]] = None,
    ) -> int:
        """
        Register ``state`` as the channel's latest valid state.

        Without explicit ``proofs`` the previously registered state is the
        only proof once the channel is already challenged. Returns the new
        challenge expiry timestamp.
        """
        sender = to_checksum_address(sender)

        with self._transaction(channel_id, "challenge", sender) as events:
            metadata = self._require_status(channel_id, ACTIVE)
            channel = metadata.channel

            if channel.index_of(sender) is None:
                raise InvalidCaller(f"{sender} is not a participant")

            if proofs is None:
                if metadata.status == ChannelStatus.CHALLENGED:
                    proofs = [metadata.last_valid_state]
                else:
                    proofs = []
            elif metadata.status == ChannelStatus.CHALLENGED:
                # a counter-challenge must build on the registered state
                if not proofs or proofs[-1] != metadata.last_valid_state:
                    raise InvalidState(
                        "Explicit proofs must end with the registered state"
                    )

            result = self._adjudicate(channel, state, list(proofs))

            metadata.last_valid_state = state
            metadata.outcome = list(result.outcome)
            metadata.challenge_expire = self.clock.now() + self.config.challenge_period
            metadata.status = ChannelStatus.CHALLENGED

            events.append(ChannelEvent.CHALLENGED)
            logger.info(
                "Challenge registered",
                context=LogContext(
                    channel_id=channel_id, operation="challenge", sender=sender
                ),
                extra={
                    "outcome": list(result.amounts()),
                    "challenge_expire": metadata.challenge_expire,
                },
            )
            return metadata.challenge_expire

    def reclaim(self, sender: str, channel_id: str) -> Tuple[Asset, Asset]:
        """Pay out the challenged state once its challenge period has elapsed."""
        sender = to_checksum_address(sender)

        with self._transaction(channel_id, "reclaim", sender) as events:
            metadata = self._require_status(channel_id, (ChannelStatus.CHALLENGED,))

            now = self.clock.now()
            if now < metadata.challenge_expire:
                raise ChallengeNotExpired(
                    f"Challenge expires at {metadata.challenge_expire}, now {now}",
                    challenge_expire=metadata.challenge_expire,
                    now=now,
                )

            metadata.status = ChannelStatus.CLOSED
            self._distribute(metadata)

            events.append(ChannelEvent.RECLAIMED)
            logger.info(
                "Channel reclaimed after challenge period",
                context=LogContext(channel_id=channel_id, operation="reclaim", sender=sender),
                extra={"outcome": [a.amount for a in metadata.outcome]},
            )
            return (metadata.outcome[HOST], metadata.outcome[GUEST])

    # Internals

    @contextmanager
    def _transaction(
        self, channel_id: str, operation: str, sender: str
    ) -> Iterator[List[ChannelEvent]]:
        """Run one operation atomically and emit its events after commit."""
        events: List[ChannelEvent] = []

        with self._lock:
            existed = channel_id in self._metadata
            backup = copy.deepcopy(self._metadata.get(channel_id))
            checkpoints = {
                address: token.checkpoint() for address, token in self._tokens.items()
            }
            try:
                yield events
            except Exception as e:
                self._rollback(channel_id, existed, backup, checkpoints)
                if isinstance(e, ChannelsError):
                    e.with_context(channel_id=channel_id, operation=operation, sender=sender)
                    logger.warning(
                        f"{operation} rejected: {e.error_code}",
                        context=LogContext(
                            channel_id=channel_id, operation=operation, sender=sender
                        ),
                        extra={"reason": e.message},
                    )
                else:
                    logger.error(
                        f"{operation} failed unexpectedly",
                        context=LogContext(
                            channel_id=channel_id, operation=operation, sender=sender
                        ),
                        exception=e,
                    )
                raise
            snapshot = self._metadata[channel_id].copy() if events else None

        for event in events:
            self._emit(event, channel_id, snapshot)

    def _rollback(
        self,
        channel_id: str,
        existed: bool,
        backup: Optional[Metadata],
        checkpoints: Dict[str, object],
    ) -> None:
        if existed:
            self._metadata[channel_id] = backup
        elif channel_id in self._metadata:
            channel = self._metadata.pop(channel_id).channel
            with self._lock:
                for participant in channel.participants:
                    self._participant_channels.get(participant, set()).discard(channel_id)
        for address, checkpoint in checkpoints.items():
            self._tokens[address].rollback(checkpoint)

    def _index_participants(self, channel_id: str, channel: Channel) -> None:
        with self._lock:
            for participant in channel.participants:
                self._participant_channels.setdefault(participant, set()).add(channel_id)

    def _require_status(
        self, channel_id: str, allowed: Tuple[ChannelStatus, ...]
    ) -> Metadata:
        metadata = self._metadata.get(channel_id)
        status = metadata.status if metadata else ChannelStatus.VOID
        if status not in allowed:
            raise InvalidStatus(
                f"Channel is {status.name}, expected one of "
                f"{[s.name for s in allowed]}"
            )
        return metadata

    def _adjudicator_for(self, channel: Channel) -> Adjudicator:
        adjudicator = self._adjudicators.get(channel.adjudicator)
        if adjudicator is None:
            raise UnknownAdjudicator(f"No adjudicator registered at {channel.adjudicator}")
        return adjudicator

    def _adjudicate(
        self, channel: Channel, state: State, proofs: List[State]
    ) -> AdjudicationResult:
        result = self._adjudicator_for(channel).adjudicate(channel, state, proofs)
        if not result.valid:
            raise InvalidState("Adjudicator rejected the state")
        return result

    def _token_for(self, address: str) -> TokenContract:
        token = self._tokens.get(address)
        if token is None:
            raise TransferFailed(f"No token registered at {address}")
        return token

    def _pull(self, sender: str, deposit: Asset) -> None:
        token = self._token_for(deposit.token)
        try:
            ok = token.transfer_from(self.address, sender, self.address, deposit.amount)
        except ChannelsError:
            raise
        except Exception as e:
            raise TransferFailed(f"Deposit transfer raised: {e}", cause=e) from e
        if not ok:
            raise TransferFailed(f"Deposit of {deposit.amount} from {sender} refused")

    def _distribute(self, metadata: Metadata) -> None:
        """Pay ``metadata.outcome`` to host then guest, skipping zero amounts."""
        for index in (HOST, GUEST):
            asset = metadata.outcome[index]
            if asset.amount == 0:
                continue
            recipient = metadata.channel.participants[index]
            token = self._token_for(asset.token)
            try:
                ok = token.transfer(self.address, recipient, asset.amount)
            except ChannelsError as e:
                raise TransferFailed(f"Payout to {recipient} aborted: {e}", cause=e) from e
            except Exception as e:
                raise TransferFailed(f"Payout to {recipient} raised: {e}", cause=e) from e
            if not ok:
                raise TransferFailed(f"Payout of {asset.amount} to {recipient} refused")

    def _emit(self, event: ChannelEvent, channel_id: str, metadata: Metadata) -> None:
        for handler in self._event_handlers[event]:
            try:
                handler(event, channel_id, metadata)
            except Exception as e:
                logger.error(
                    f"Event handler for {event.value} failed",
                    context=LogContext(channel_id=channel_id, operation=event.value),
                    exception=e,
                )
