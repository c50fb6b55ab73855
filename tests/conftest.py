"""
Shared fixtures for gamechannels tests.

Keys are fixed so that addresses, and therefore channel ids, are stable
across runs.
"""

import pytest

from gamechannels.adjudicators import (
    PaymentAdjudicator,
    SnakeAdjudicator,
    TicTacToeAdjudicator,
)
from gamechannels.crypto import PrivateKey
from gamechannels.state_channels import (
    Asset,
    Channel,
    Custody,
    ERC20Token,
    ManualClock,
)

TOKEN_ADDRESS = "0x" + "a1" * 20
CUSTODY_ADDRESS = "0x" + "c0" * 20
TIC_TAC_TOE_ADDRESS = "0x" + "71" * 20
SNAKE_ADDRESS = "0x" + "5a" * 20
PAYMENT_ADDRESS = "0x" + "9a" * 20

START_TIME = 1_700_000_000
FUNDING = 1_000


@pytest.fixture
def host_key():
    return PrivateKey.from_hex("0x" + "01" * 32)


@pytest.fixture
def guest_key():
    return PrivateKey.from_hex("0x" + "02" * 32)


@pytest.fixture
def outsider_key():
    return PrivateKey.from_hex("0x" + "03" * 32)


@pytest.fixture
def token(host_key, guest_key, outsider_key):
    token = ERC20Token(TOKEN_ADDRESS, symbol="TST")
    for key in (host_key, guest_key, outsider_key):
        token.mint(key.address, FUNDING)
        token.approve(key.address, CUSTODY_ADDRESS, FUNDING)
    return token


@pytest.fixture
def clock():
    return ManualClock(START_TIME)


@pytest.fixture
def tic_tac_toe():
    return TicTacToeAdjudicator(TIC_TAC_TOE_ADDRESS, TOKEN_ADDRESS)


@pytest.fixture
def snake():
    return SnakeAdjudicator(SNAKE_ADDRESS, TOKEN_ADDRESS)


@pytest.fixture
def payment():
    return PaymentAdjudicator(PAYMENT_ADDRESS, TOKEN_ADDRESS)


@pytest.fixture
def custody(token, clock, tic_tac_toe, snake, payment):
    return Custody(
        CUSTODY_ADDRESS,
        tokens=[token],
        adjudicators=[tic_tac_toe, snake, payment],
        clock=clock,
    )


def _channel(host_key, guest_key, adjudicator_address, nonce=1):
    return Channel((host_key.address, guest_key.address), adjudicator_address, nonce)


@pytest.fixture
def tic_tac_toe_channel(host_key, guest_key):
    return _channel(host_key, guest_key, TIC_TAC_TOE_ADDRESS)


@pytest.fixture
def snake_channel(host_key, guest_key):
    return _channel(host_key, guest_key, SNAKE_ADDRESS)


@pytest.fixture
def payment_channel(host_key, guest_key):
    return _channel(host_key, guest_key, PAYMENT_ADDRESS)


@pytest.fixture
def fund(custody, host_key, guest_key):
    """Both participants deposit ``amount``; returns the channel id."""

    def _fund(channel, amount=50):
        channel_id = custody.open(host_key.address, channel, Asset(TOKEN_ADDRESS, amount))
        custody.open(guest_key.address, channel, Asset(TOKEN_ADDRESS, amount))
        return channel_id

    return _fund
