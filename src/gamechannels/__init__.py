"""
gamechannels - Two-Party State Channels with Game Adjudicators

Participants exchange signed application states off-chain and fall back to
a custody contract only to fund, finalize or dispute a channel. Validity of
each application state is decided by a stateless adjudicator.
"""

__version__ = "0.1.0"

from .adjudicators import PaymentAdjudicator, SnakeAdjudicator, TicTacToeAdjudicator
from .state_channels import (
    Asset,
    Channel,
    ChannelStatus,
    Custody,
    CustodyConfig,
    ERC20Token,
    ManualClock,
    State,
)

__all__ = [
    "__version__",
    "Asset",
    "Channel",
    "ChannelStatus",
    "Custody",
    "CustodyConfig",
    "ERC20Token",
    "ManualClock",
    "State",
    "PaymentAdjudicator",
    "SnakeAdjudicator",
    "TicTacToeAdjudicator",
]
