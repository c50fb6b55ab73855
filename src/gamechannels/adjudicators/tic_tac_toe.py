"""
Tic-tac-toe adjudicator.

Each state is signed by the player who just moved: while it is the host's
turn the guest has just signed, and the other way round. A state is valid on
its own when it is a reachable position, and valid against a proof when it
follows from the proof by exactly one legal move.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Sequence, Tuple

from eth_abi import encode

from ..crypto.hashing import Hash, Keccak256Hasher
from ..crypto.signatures import PrivateKey, Signature
from ..errors import (
    InvalidGameState,
    InvalidMove,
    InvalidProofCount,
    InvalidSignature,
    InvalidTurn,
)
from ..logging import get_logger
from ..state_channels.adjudicator import (
    SIGNATURE_TYPE,
    AdjudicationResult,
    Adjudicator,
    decode_data,
    decode_signature,
    signed_by,
)
from ..state_channels.channel_protocol import Asset, Channel, State

logger = get_logger(__name__)

STATE_TYPE = "(uint256,uint8[9],uint8,uint8)"

BOARD_SIZE = 9

LINES = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


class Mark(IntEnum):
    """Cell contents, also used for whose turn it is."""

    EMPTY = 0
    HOST = 1
    GUEST = 2

    def other(self) -> "Mark":
        return Mark.GUEST if self == Mark.HOST else Mark.HOST


class Winner(IntEnum):
    NONE = 0
    HOST = 1
    GUEST = 2
    DRAW = 3


def check_winner(board: Sequence[int]) -> Winner:
    """Winner of ``board``: a completed line, else a draw if full, else none."""
    for a, b, c in LINES:
        if board[a] != Mark.EMPTY and board[a] == board[b] == board[c]:
            return Winner(board[a])
    if all(cell != Mark.EMPTY for cell in board):
        return Winner.DRAW
    return Winner.NONE


@dataclass(frozen=True)
class TicTacToeState:
    """A board position and whose turn it is."""

    version: int
    board: Tuple[int, ...]
    turn: int
    winner: int = Winner.NONE

    def __post_init__(self):
        object.__setattr__(self, "board", tuple(int(c) for c in self.board))
        if len(self.board) != BOARD_SIZE:
            raise ValueError(f"Board must have {BOARD_SIZE} cells")

    @classmethod
    def initial(cls, version: int = 1) -> "TicTacToeState":
        """Empty board with the host to move."""
        return cls(version, (Mark.EMPTY,) * BOARD_SIZE, Mark.HOST, Winner.NONE)

    def play(self, cell: int) -> "TicTacToeState":
        """Place the current player's mark on ``cell``."""
        if self.winner != Winner.NONE:
            raise ValueError("Game is already over")
        if self.board[cell] != Mark.EMPTY:
            raise ValueError(f"Cell {cell} is taken")
        board = list(self.board)
        board[cell] = self.turn
        return TicTacToeState(
            version=self.version + 1,
            board=tuple(board),
            turn=Mark(self.turn).other(),
            winner=check_winner(board),
        )

    def to_tuple(self) -> tuple:
        return (self.version, list(self.board), self.turn, self.winner)

    def encode(self) -> bytes:
        return encode([STATE_TYPE], [self.to_tuple()])

    def hash(self) -> Hash:
        return Keccak256Hasher.hash(self.encode())

    def sign(self, key: PrivateKey) -> "SignedTicTacToeState":
        return SignedTicTacToeState(self, key.sign(self.hash()))


@dataclass(frozen=True)
class SignedTicTacToeState:
    """Board state with the signature of the player who produced it."""

    state: TicTacToeState
    signature: Signature

    def encode(self) -> bytes:
        return encode(
            [STATE_TYPE, SIGNATURE_TYPE],
            [self.state.to_tuple(), self.signature.to_tuple()],
        )

    @classmethod
    def decode(cls, data: bytes) -> "SignedTicTacToeState":
        raw_state, vrs = decode_data(
            [STATE_TYPE, SIGNATURE_TYPE], data, "tic-tac-toe state"
        )
        version, board, turn, winner = raw_state
        return cls(TicTacToeState(version, board, turn, winner), decode_signature(vrs))

    def to_state(self, outcome: Sequence[Asset] = ()) -> State:
        """Wrap as a channel ``State``."""
        return State(self.encode(), tuple(outcome))


class TicTacToeAdjudicator(Adjudicator):
    """Validates tic-tac-toe positions and moves."""

    name = "tic-tac-toe"

    def adjudicate(
        self, channel: Channel, candidate: State, proofs: Sequence[State]
    ) -> AdjudicationResult:
        if len(proofs) > 1:
            raise InvalidProofCount(f"Expected at most 1 proof, got {len(proofs)}")

        signed = SignedTicTacToeState.decode(candidate.data)
        self._verify_signer(channel, signed)
        state = signed.state

        if proofs:
            previous = SignedTicTacToeState.decode(proofs[0].data)
            self._verify_signer(channel, previous)
            self._validate_transition(previous.state, state)
        else:
            self._validate_position(state)

        logger.debug(
            f"Accepted tic-tac-toe state v{state.version} with winner {state.winner}"
        )
        if state.winner == Winner.HOST:
            return self._host_wins()
        if state.winner == Winner.GUEST:
            return self._guest_wins()
        return self._even_split()

    @staticmethod
    def expected_signer(channel: Channel, turn: int) -> str:
        """The participant who moved last, given whose turn it now is."""
        if turn == Mark.HOST:
            return channel.guest
        if turn == Mark.GUEST:
            return channel.host
        raise InvalidTurn(f"Turn must be 1 or 2, got {turn}")

    def _verify_signer(self, channel: Channel, signed: SignedTicTacToeState) -> None:
        signer = self.expected_signer(channel, signed.state.turn)
        if not signed_by(signed.state.hash(), signed.signature, signer):
            raise InvalidSignature(
                f"State v{signed.state.version} is not signed by {signer}"
            )

    def _validate_position(self, state: TicTacToeState) -> None:
        if any(cell not in (Mark.EMPTY, Mark.HOST, Mark.GUEST) for cell in state.board):
            raise InvalidGameState("Board holds an unknown mark")
        if state.winner not in tuple(Winner):
            raise InvalidGameState(f"Unknown winner {state.winner}")

        x = state.board.count(Mark.HOST)
        o = state.board.count(Mark.GUEST)
        if state.turn == Mark.HOST and x != o:
            raise InvalidGameState(f"Host to move with {x} host and {o} guest marks")
        if state.turn == Mark.GUEST and x != o + 1:
            raise InvalidGameState(f"Guest to move with {x} host and {o} guest marks")

        if check_winner(state.board) != state.winner:
            raise InvalidGameState(f"Claimed winner {state.winner} does not match board")

    def _validate_transition(
        self, previous: TicTacToeState, state: TicTacToeState
    ) -> None:
        if state.version <= previous.version:
            raise InvalidMove(
                f"Version {state.version} does not exceed {previous.version}"
            )
        if previous.winner != Winner.NONE:
            raise InvalidMove("Game already finished")
        if any(cell not in (Mark.EMPTY, Mark.HOST, Mark.GUEST) for cell in state.board):
            raise InvalidMove("Board holds an unknown mark")

        actual = check_winner(state.board)
        if state.winner != Winner.NONE:
            # terminal states are checked against the board only
            if actual != state.winner:
                raise InvalidMove(f"Claimed winner {state.winner} does not match board")
            return

        changed = self._changed_cell(previous.board, state.board)
        if previous.board[changed] != Mark.EMPTY:
            raise InvalidMove(f"Cell {changed} was already taken")
        if state.board[changed] != previous.turn:
            raise InvalidMove(f"Cell {changed} does not hold the mover's mark")
        if state.turn != Mark(previous.turn).other():
            raise InvalidMove("Turn did not pass to the other player")
        if actual != state.winner:
            raise InvalidMove(f"Board is won by {actual} but no winner was claimed")

    @staticmethod
    def _changed_cell(before: Sequence[int], after: Sequence[int]) -> int:
        changed = [i for i in range(BOARD_SIZE) if before[i] != after[i]]
        if len(changed) != 1:
            raise InvalidMove(f"Expected exactly 1 changed cell, got {len(changed)}")
        return changed[0]


def play_sequence(
    moves: Sequence[int], start: Optional[TicTacToeState] = None
) -> Tuple[TicTacToeState, ...]:
    """Every state produced by playing ``moves`` from ``start``."""
    states = [start or TicTacToeState.initial()]
    for cell in moves:
        states.append(states[-1].play(cell))
    return tuple(states)
