"""
Concrete adjudicators.

- Tic-tac-toe: turn-based board game validated move by move
- Snake: simultaneous-move grid game validated by replaying physics
- Payment: monotonically versioned host-signed vouchers
"""

from .payment import PaymentAdjudicator, SignedVoucher, Voucher
from .snake import (
    Direction,
    GameConfig,
    Point,
    SignedGameConfig,
    SignedSnakeState,
    Snake,
    SnakeAdjudicator,
    SnakeState,
)
from .tic_tac_toe import (
    Mark,
    SignedTicTacToeState,
    TicTacToeAdjudicator,
    TicTacToeState,
    Winner,
    check_winner,
    play_sequence,
)

__all__ = [
    # Tic-tac-toe
    "Mark",
    "Winner",
    "TicTacToeState",
    "SignedTicTacToeState",
    "TicTacToeAdjudicator",
    "check_winner",
    "play_sequence",
    # Snake
    "Direction",
    "Point",
    "Snake",
    "GameConfig",
    "SignedGameConfig",
    "SnakeState",
    "SignedSnakeState",
    "SnakeAdjudicator",
    # Payment
    "Voucher",
    "SignedVoucher",
    "PaymentAdjudicator",
]
