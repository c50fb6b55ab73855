"""
Snake adjudicator.

Two snakes move simultaneously on a square grid whose outer ring is wall.
Both players co-sign a ``GameConfig`` before play and supply it as the first
proof of every dispute. The first state is checked against the config; every
later state must equal the deterministic physics step of the previous,
co-signed state.

Food is never regenerated by the step: the food list carries over unchanged
from tick to tick.
"""

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import List, NamedTuple, Sequence, Set, Tuple

from eth_abi import encode

from ..crypto.hashing import Hash, Keccak256Hasher
from ..crypto.signatures import PrivateKey, Signature
from ..errors import (
    InvalidConfigSignatures,
    InvalidGameState,
    InvalidPreviousStateSignatures,
    InvalidProofCount,
    InvalidSignature,
    InvalidTick,
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
from ..state_channels.channel_protocol import GUEST, HOST, Asset, Channel, State

logger = get_logger(__name__)

POINT_TYPE = "(uint16,uint16)"
SNAKE_TYPE = f"({POINT_TYPE}[],uint8,bool)"
CONFIG_TYPE = "(uint16,uint16,uint16)"
STATE_TYPE = f"(uint256,uint16,{SNAKE_TYPE}[2],{POINT_TYPE}[],uint256,uint8)"
SIGNATURES_TYPE = f"{SIGNATURE_TYPE}[]"


class Direction(IntEnum):
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3


DELTAS = {
    Direction.UP: (0, -1),
    Direction.RIGHT: (1, 0),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
}


class Point(NamedTuple):
    x: int
    y: int

    def moved(self, direction: int) -> "Point":
        dx, dy = DELTAS[Direction(direction)]
        return Point(self.x + dx, self.y + dy)


def in_interior(point: Point, grid_size: int) -> bool:
    """Whether ``point`` lies inside the one-cell wall around the grid."""
    return 1 <= point.x <= grid_size - 2 and 1 <= point.y <= grid_size - 2


def _signer_indices(
    message: Hash, signatures: Sequence[Signature], channel: Channel
) -> Set[int]:
    found = set()
    for signature in signatures:
        for index in (HOST, GUEST):
            if signed_by(message, signature, channel.participants[index]):
                found.add(index)
    return found


@dataclass(frozen=True)
class GameConfig:
    """Immutable game parameters agreed by both players."""

    grid_size: int
    initial_snake_length: int
    food_count: int

    def to_tuple(self) -> tuple:
        return (self.grid_size, self.initial_snake_length, self.food_count)

    def encode(self) -> bytes:
        return encode([CONFIG_TYPE], [self.to_tuple()])

    def hash(self) -> Hash:
        return Keccak256Hasher.hash(self.encode())

    def sign(self, *keys: PrivateKey) -> "SignedGameConfig":
        digest = self.hash()
        return SignedGameConfig(self, tuple(key.sign(digest) for key in keys))


@dataclass(frozen=True)
class SignedGameConfig:
    config: GameConfig
    signatures: Tuple[Signature, ...]

    def encode(self) -> bytes:
        return encode(
            [CONFIG_TYPE, SIGNATURES_TYPE],
            [self.config.to_tuple(), [s.to_tuple() for s in self.signatures]],
        )

    @classmethod
    def decode(cls, data: bytes) -> "SignedGameConfig":
        raw, signatures = decode_data(
            [CONFIG_TYPE, SIGNATURES_TYPE], data, "snake game config"
        )
        return cls(GameConfig(*raw), tuple(decode_signature(s) for s in signatures))

    def to_state(self) -> State:
        return State(self.encode())


@dataclass(frozen=True)
class Snake:
    """A snake's body (head first), its next direction and whether it died."""

    body: Tuple[Point, ...]
    direction: int
    is_dead: bool = False

    def __post_init__(self):
        object.__setattr__(self, "body", tuple(Point(*p) for p in self.body))

    @property
    def head(self) -> Point:
        return self.body[0]

    def to_tuple(self) -> tuple:
        return ([tuple(p) for p in self.body], self.direction, self.is_dead)

    @classmethod
    def from_tuple(cls, value: Sequence) -> "Snake":
        body, direction, is_dead = value
        return cls(tuple(body), direction, is_dead)


@dataclass(frozen=True)
class SnakeState:
    """Full game state at one tick."""

    version: int
    grid_size: int
    snakes: Tuple[Snake, Snake]
    food: Tuple[Point, ...]
    tick: int
    winner: int = 0

    def __post_init__(self):
        object.__setattr__(self, "snakes", tuple(self.snakes))
        object.__setattr__(self, "food", tuple(Point(*p) for p in self.food))
        if len(self.snakes) != 2:
            raise ValueError("A snake game has exactly 2 snakes")

    def to_tuple(self) -> tuple:
        return (
            self.version,
            self.grid_size,
            [snake.to_tuple() for snake in self.snakes],
            [tuple(p) for p in self.food],
            self.tick,
            self.winner,
        )

    @classmethod
    def from_tuple(cls, value: Sequence) -> "SnakeState":
        version, grid_size, snakes, food, tick, winner = value
        return cls(
            version,
            grid_size,
            tuple(Snake.from_tuple(s) for s in snakes),
            tuple(food),
            tick,
            winner,
        )

    def encode(self) -> bytes:
        return encode([STATE_TYPE], [self.to_tuple()])

    def hash(self) -> Hash:
        return Keccak256Hasher.hash(self.encode())

    def sign(self, *keys: PrivateKey) -> "SignedSnakeState":
        digest = self.hash()
        return SignedSnakeState(self, tuple(key.sign(digest) for key in keys))

    def with_directions(self, host: int, guest: int) -> "SnakeState":
        """Same state with each player's next input set."""
        return replace(
            self,
            snakes=(
                replace(self.snakes[HOST], direction=host),
                replace(self.snakes[GUEST], direction=guest),
            ),
        )

    def step(self) -> "SnakeState":
        """Advance both snakes by one tick."""
        bodies: List[List[Point]] = [list(snake.body) for snake in self.snakes]
        dead = [snake.is_dead for snake in self.snakes]
        alive_before = [not d for d in dead]
        food = set(self.food)

        moved = []
        for i, snake in enumerate(self.snakes):
            if snake.is_dead:
                continue
            head = snake.head.moved(snake.direction)
            if not in_interior(head, self.grid_size):
                dead[i] = True
                continue
            bodies[i].insert(0, head)
            if head not in food:
                bodies[i].pop()
            moved.append(i)

        collided = set()
        for i in moved:
            head = bodies[i][0]
            for j, body in enumerate(bodies):
                if not alive_before[j]:
                    continue
                segments = body[1:] if i == j else body
                if head in segments:
                    collided.add(i)
        for i in collided:
            dead[i] = True

        return SnakeState(
            version=self.version + 1,
            grid_size=self.grid_size,
            snakes=tuple(
                Snake(tuple(bodies[i]), snake.direction, dead[i])
                for i, snake in enumerate(self.snakes)
            ),
            food=self.food,
            tick=self.tick + 1,
            winner=self.winner,
        )


@dataclass(frozen=True)
class SignedSnakeState:
    state: SnakeState
    signatures: Tuple[Signature, ...]

    def encode(self) -> bytes:
        return encode(
            [STATE_TYPE, SIGNATURES_TYPE],
            [self.state.to_tuple(), [s.to_tuple() for s in self.signatures]],
        )

    @classmethod
    def decode(cls, data: bytes) -> "SignedSnakeState":
        raw, signatures = decode_data([STATE_TYPE, SIGNATURES_TYPE], data, "snake state")
        return cls(
            SnakeState.from_tuple(raw), tuple(decode_signature(s) for s in signatures)
        )

    def to_state(self, outcome: Sequence[Asset] = ()) -> State:
        return State(self.encode(), tuple(outcome))


class SnakeAdjudicator(Adjudicator):
    """Validates snake states by replaying the physics step."""

    name = "snake"

    def adjudicate(
        self, channel: Channel, candidate: State, proofs: Sequence[State]
    ) -> AdjudicationResult:
        if len(proofs) not in (1, 2):
            raise InvalidProofCount(f"Expected 1 or 2 proofs, got {len(proofs)}")

        signed_config = SignedGameConfig.decode(proofs[0].data)
        signers = _signer_indices(
            signed_config.config.hash(), signed_config.signatures, channel
        )
        if signers != {HOST, GUEST}:
            raise InvalidConfigSignatures("Game config must be signed by both players")
        config = signed_config.config

        signed = SignedSnakeState.decode(candidate.data)
        if not _signer_indices(signed.state.hash(), signed.signatures, channel):
            raise InvalidSignature("Snake state is not signed by either player")
        state = signed.state
        self._validate_directions(state)

        if len(proofs) == 1:
            self._validate_initial(config, state)
        else:
            previous = SignedSnakeState.decode(proofs[1].data)
            signers = _signer_indices(previous.state.hash(), previous.signatures, channel)
            if signers != {HOST, GUEST}:
                raise InvalidPreviousStateSignatures(
                    "Previous state must be signed by both players"
                )
            self._validate_transition(config, previous.state, state)

        logger.debug(f"Accepted snake state at tick {state.tick}")
        if state.winner == 0:
            return self._even_split()
        if state.winner == 1:
            return self._host_wins()
        if state.winner == 2:
            return self._guest_wins()
        raise InvalidGameState(f"Unknown winner {state.winner}")

    @staticmethod
    def _validate_directions(state: SnakeState) -> None:
        for snake in state.snakes:
            if snake.direction not in tuple(Direction):
                raise InvalidGameState(f"Unknown direction {snake.direction}")

    def _validate_initial(self, config: GameConfig, state: SnakeState) -> None:
        if state.grid_size != config.grid_size:
            raise InvalidGameState(
                f"Grid size {state.grid_size} does not match config {config.grid_size}"
            )
        if len(state.food) != config.food_count:
            raise InvalidGameState(
                f"Expected {config.food_count} food, got {len(state.food)}"
            )

        occupied: List[Set[Point]] = []
        for index, snake in enumerate(state.snakes):
            if len(snake.body) != config.initial_snake_length:
                raise InvalidGameState(
                    f"Snake {index} has length {len(snake.body)}, "
                    f"expected {config.initial_snake_length}"
                )
            if snake.is_dead:
                raise InvalidGameState(f"Snake {index} starts dead")
            if not all(in_interior(p, state.grid_size) for p in snake.body):
                raise InvalidGameState(f"Snake {index} starts out of bounds")
            occupied.append(set(snake.body))

        if occupied[HOST] & occupied[GUEST]:
            raise InvalidGameState("Snakes overlap")

        for point in state.food:
            if not in_interior(point, state.grid_size):
                raise InvalidGameState(f"Food at {tuple(point)} is out of bounds")
            if point in occupied[HOST] or point in occupied[GUEST]:
                raise InvalidGameState(f"Food at {tuple(point)} lies on a snake")

    def _validate_transition(
        self, config: GameConfig, previous: SnakeState, state: SnakeState
    ) -> None:
        if previous.winner != 0:
            raise InvalidGameState("Game already finished")
        if state.tick != previous.tick + 1:
            raise InvalidTick(
                f"Tick {state.tick} does not follow previous tick {previous.tick}"
            )
        if state.grid_size != previous.grid_size or len(state.food) != len(previous.food):
            raise InvalidGameState("Grid size and food count cannot change")
        if previous.grid_size != config.grid_size:
            raise InvalidGameState("Previous state does not match config")
        if any(not s.is_dead and not s.body for s in previous.snakes):
            raise InvalidGameState("Previous state has an empty snake")
        self._validate_directions(previous)

        expected = previous.step()
        if state.version != expected.version:
            raise InvalidGameState(
                f"Version {state.version} does not follow previous version {previous.version}"
            )
        if expected.food != state.food:
            raise InvalidGameState("Food does not match previous tick")
        for index, (want, got) in enumerate(zip(expected.snakes, state.snakes)):
            if want.body != got.body or want.is_dead != got.is_dead:
                raise InvalidGameState(f"Snake {index} does not match physics step")
