"""
Adversarial tests for gamechannels.

Tests the system's resilience against malicious participants and
collaborators including:
- Forged and tampered signatures
- Replayed and stale states
- Malformed state encodings
- Tokens that refuse, raise or re-enter custody during payouts
- Racing challenges from several threads
- A failing call on one channel racing a deposit on another
"""

import threading
import time

import pytest
from eth_abi import encode
from eth_utils import to_checksum_address

from gamechannels.adjudicators import TicTacToeState, Voucher, Winner
from gamechannels.adjudicators.tic_tac_toe import STATE_TYPE
from gamechannels.crypto import Signature
from gamechannels.errors import (
    ChannelsError,
    InvalidCaller,
    InvalidSignature,
    InvalidState,
    InvalidStateEncoding,
    InvalidStatus,
    TransferFailed,
    VersionNotHigher,
)
from gamechannels.state_channels import (
    CHALLENGE_PERIOD,
    Adjudicator,
    Asset,
    Channel,
    ChannelStatus,
    Custody,
    ERC20Token,
    State,
)

pytestmark = pytest.mark.adversarial

X, O, E = 1, 2, 0


class RefusingToken(ERC20Token):
    """Refuses or fails payouts to one recipient."""

    def __init__(self, address):
        super().__init__(address)
        self.refuse = None
        self.explode = None

    def transfer(self, sender, to, amount):
        if to_checksum_address(to) == self.refuse:
            return False
        if to_checksum_address(to) == self.explode:
            raise RuntimeError("token halted")
        return super().transfer(sender, to, amount)


class ReentrantToken(ERC20Token):
    """Calls back into custody from inside a payout."""

    def __init__(self, address):
        super().__init__(address)
        self.custody = None
        self.channel_id = None
        self.reentry_errors = []

    def transfer(self, sender, to, amount):
        if self.custody is not None:
            custody, self.custody = self.custody, None
            try:
                custody.reclaim(to, self.channel_id)
            except ChannelsError as e:
                self.reentry_errors.append(e)
        return super().transfer(sender, to, amount)


class GatedAdjudicator(Adjudicator):
    """Holds each call until released, then rejects it."""

    def __init__(self, address, token):
        super().__init__(address, token)
        self.entered = threading.Event()
        self.release = threading.Event()

    def adjudicate(self, channel, candidate, proofs):
        self.entered.set()
        self.release.wait(timeout=5)
        raise InvalidState("Rejected after review")


def fund_with(token_cls, clock, adjudicator, channel, host_key, guest_key):
    token = token_cls(adjudicator.token)
    custody = Custody("0x" + "c0" * 20, [token], [adjudicator], clock=clock)
    for key in (host_key, guest_key):
        token.mint(key.address, 1000)
        token.approve(key.address, custody.address, 1000)
    channel_id = custody.open(host_key.address, channel, Asset(token.address, 50))
    custody.open(guest_key.address, channel, Asset(token.address, 50))
    return token, custody, channel_id


class TestForgery:
    """Forged, tampered and misdirected signatures."""

    @pytest.fixture(autouse=True)
    def _setup(self, custody, tic_tac_toe_channel, fund, host_key, guest_key, outsider_key):
        self.custody = custody
        self.channel_id = fund(tic_tac_toe_channel)
        self.host_key = host_key
        self.guest_key = guest_key
        self.outsider_key = outsider_key
        self.win = TicTacToeState(5, (X, O, E, O, X, E, E, E, X), O, Winner.HOST)

    def test_outsider_cosigns_close(self):
        state = self.win.sign(self.host_key).to_state()
        signatures = [self.host_key.sign(state.hash()), self.outsider_key.sign(state.hash())]
        with pytest.raises(InvalidSignature):
            self.custody.close(self.host_key.address, self.channel_id, state, signatures)

    def test_host_signs_both_slots(self):
        state = self.win.sign(self.host_key).to_state()
        signature = self.host_key.sign(state.hash())
        with pytest.raises(InvalidSignature):
            self.custody.close(
                self.host_key.address, self.channel_id, state, [signature, signature]
            )

    def test_tampered_signature(self):
        state = self.win.sign(self.host_key).to_state()
        good = self.guest_key.sign(state.hash())
        tampered = Signature(good.v, good.r, good.s - 1)
        with pytest.raises(InvalidSignature):
            self.custody.close(
                self.host_key.address,
                self.channel_id,
                state,
                [self.host_key.sign(state.hash()), tampered],
            )

    def test_game_state_signed_by_outsider(self):
        forged = self.win.sign(self.outsider_key).to_state()
        with pytest.raises(InvalidSignature):
            self.custody.challenge(self.host_key.address, self.channel_id, forged)

    def test_guest_claims_host_move(self):
        # a position after a host move must carry the host's signature
        forged = TicTacToeState(2, (X,) + (E,) * 8, O).sign(self.guest_key).to_state()
        with pytest.raises(InvalidSignature):
            self.custody.challenge(self.guest_key.address, self.channel_id, forged)

    def test_outsider_cannot_challenge(self):
        state = TicTacToeState.initial().sign(self.guest_key).to_state()
        with pytest.raises(InvalidCaller):
            self.custody.challenge(self.outsider_key.address, self.channel_id, state)

    def test_out_of_range_signature_in_payload(self):
        raw = self.win.sign(self.host_key)
        data = encode(
            [STATE_TYPE, "(uint8,uint256,uint256)"],
            [self.win.to_tuple(), (30, raw.signature.r, raw.signature.s)],
        )
        with pytest.raises(InvalidStateEncoding):
            self.custody.challenge(self.host_key.address, self.channel_id, State(data))

    def test_truncated_payload(self):
        data = self.win.sign(self.host_key).encode()[:-10]
        with pytest.raises(InvalidStateEncoding):
            self.custody.challenge(self.host_key.address, self.channel_id, State(data))

    def test_failed_attempts_leave_no_trace(self):
        before = self.custody.get_metadata(self.channel_id)
        for attempt in (self.test_outsider_cosigns_close, self.test_truncated_payload):
            attempt()
        assert self.custody.get_metadata(self.channel_id) == before


class TestReplay:
    """Old states and settled channels."""

    def test_replayed_close(self, custody, payment_channel, fund, token, host_key, guest_key):
        channel_id = fund(payment_channel)
        state = Voucher(1, Asset(token.address, 40)).sign(host_key).to_state()
        signatures = [host_key.sign(state.hash()), guest_key.sign(state.hash())]
        custody.close(guest_key.address, channel_id, state, signatures)
        with pytest.raises(InvalidStatus):
            custody.close(guest_key.address, channel_id, state, signatures)
        assert token.balance_of(guest_key.address) == 950 + 40

    def test_stale_voucher_cannot_override(self, custody, payment_channel, fund, token, host_key, guest_key):
        channel_id = fund(payment_channel)
        v1 = Voucher(1, Asset(token.address, 5)).sign(host_key).to_state()
        v2 = Voucher(2, Asset(token.address, 60)).sign(host_key).to_state()
        custody.challenge(guest_key.address, channel_id, v2)
        with pytest.raises(VersionNotHigher):
            custody.challenge(host_key.address, channel_id, v1)
        assert custody.get_metadata(channel_id).outcome[1].amount == 60

    def test_stale_voucher_with_substituted_proof(self, custody, payment_channel, fund, token, host_key, guest_key):
        channel_id = fund(payment_channel)
        v0 = Voucher(0, Asset(token.address, 0)).sign(host_key).to_state()
        v1 = Voucher(1, Asset(token.address, 5)).sign(host_key).to_state()
        v2 = Voucher(2, Asset(token.address, 60)).sign(host_key).to_state()
        custody.challenge(guest_key.address, channel_id, v2)
        with pytest.raises(InvalidState):
            custody.challenge(host_key.address, channel_id, v1, proofs=[v0])
        with pytest.raises(InvalidState):
            custody.challenge(host_key.address, channel_id, v1, proofs=[])
        assert custody.get_metadata(channel_id).last_valid_state == v2

    def test_forged_proof_on_open_channel(self, custody, payment_channel, fund, token, host_key, guest_key):
        channel_id = fund(payment_channel)
        v1 = Voucher(1, Asset(token.address, 5)).sign(host_key).to_state()
        fake_v0 = Voucher(0, Asset(token.address, 0)).sign(guest_key).to_state()
        with pytest.raises(InvalidSignature):
            custody.challenge(host_key.address, channel_id, v1, proofs=[fake_v0])
        assert custody.get_status(channel_id) == ChannelStatus.OPENED

    def test_explicit_proofs_ending_with_registered_state(self, custody, payment_channel, fund, token, host_key, guest_key):
        channel_id = fund(payment_channel)
        v1 = Voucher(1, Asset(token.address, 5)).sign(host_key).to_state()
        v2 = Voucher(2, Asset(token.address, 6)).sign(host_key).to_state()
        custody.challenge(guest_key.address, channel_id, v1)
        custody.challenge(guest_key.address, channel_id, v2, proofs=[v1])
        assert custody.get_metadata(channel_id).last_valid_state == v2

    def test_self_challenge_extends_timer(self, custody, clock, payment_channel, fund, token, host_key, guest_key):
        channel_id = fund(payment_channel)
        custody.challenge(
            guest_key.address,
            channel_id,
            Voucher(1, Asset(token.address, 5)).sign(host_key).to_state(),
        )
        clock.warp(CHALLENGE_PERIOD - 10)
        expire = custody.challenge(
            guest_key.address,
            channel_id,
            Voucher(2, Asset(token.address, 6)).sign(host_key).to_state(),
        )
        assert expire == clock.now() + CHALLENGE_PERIOD


class TestHostileTokens:
    """Payout failures roll the whole call back."""

    def test_refused_payout_rolls_back(self, clock, payment, payment_channel, host_key, guest_key):
        token, custody, channel_id = fund_with(
            RefusingToken, clock, payment, payment_channel, host_key, guest_key
        )
        token.refuse = guest_key.address
        state = Voucher(1, Asset(token.address, 30)).sign(host_key).to_state()
        signatures = [host_key.sign(state.hash()), guest_key.sign(state.hash())]

        with pytest.raises(TransferFailed):
            custody.close(host_key.address, channel_id, state, signatures)

        assert custody.get_status(channel_id) == ChannelStatus.OPENED
        assert token.balance_of(host_key.address) == 950
        assert token.balance_of(custody.address) == 100

        token.refuse = None
        custody.close(host_key.address, channel_id, state, signatures)
        assert token.balance_of(host_key.address) == 950 + 70
        assert token.balance_of(guest_key.address) == 950 + 30

    def test_raising_token(self, clock, payment, payment_channel, host_key, guest_key):
        token, custody, channel_id = fund_with(
            RefusingToken, clock, payment, payment_channel, host_key, guest_key
        )
        token.explode = host_key.address
        custody.challenge(
            guest_key.address,
            channel_id,
            Voucher(1, Asset(token.address, 10)).sign(host_key).to_state(),
        )
        clock.warp(CHALLENGE_PERIOD)

        with pytest.raises(TransferFailed) as info:
            custody.reclaim(guest_key.address, channel_id)

        assert isinstance(info.value.cause, RuntimeError)
        assert custody.get_status(channel_id) == ChannelStatus.CHALLENGED

    def test_reentrant_reclaim_pays_once(self, clock, payment, payment_channel, host_key, guest_key):
        token, custody, channel_id = fund_with(
            ReentrantToken, clock, payment, payment_channel, host_key, guest_key
        )
        custody.challenge(
            guest_key.address,
            channel_id,
            Voucher(1, Asset(token.address, 10)).sign(host_key).to_state(),
        )
        clock.warp(CHALLENGE_PERIOD)
        token.custody = custody
        token.channel_id = channel_id

        custody.reclaim(guest_key.address, channel_id)

        assert len(token.reentry_errors) == 1
        assert isinstance(token.reentry_errors[0], InvalidStatus)
        assert token.balance_of(host_key.address) == 950 + 90
        assert token.balance_of(guest_key.address) == 950 + 10
        assert token.balance_of(custody.address) == 0


class TestRacingChallenges:
    """Concurrent challenges settle on the newest voucher."""

    def test_highest_version_wins(self, custody, payment_channel, fund, token, host_key, guest_key):
        channel_id = fund(payment_channel)
        vouchers = [
            Voucher(v, Asset(token.address, v)).sign(host_key).to_state()
            for v in range(1, 21)
        ]
        unexpected = []

        def submit(state):
            try:
                custody.challenge(guest_key.address, channel_id, state)
            except VersionNotHigher:
                pass
            except Exception as e:
                unexpected.append(e)

        threads = [threading.Thread(target=submit, args=(v,)) for v in reversed(vouchers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert unexpected == []
        metadata = custody.get_metadata(channel_id)
        assert metadata.status == ChannelStatus.CHALLENGED
        assert metadata.outcome[1].amount == 20


class TestCrossChannelIsolation:
    """A rollback on one channel never touches another channel's funds."""

    def test_rollback_keeps_concurrent_deposit(self, token, clock, tic_tac_toe, host_key, guest_key, outsider_key):
        gated = GatedAdjudicator("0x" + "6a" * 20, token.address)
        custody = Custody("0x" + "c0" * 20, [token], [gated, tic_tac_toe], clock=clock)
        disputed = Channel((host_key.address, guest_key.address), gated.address, 1)
        other = Channel((outsider_key.address, guest_key.address), tic_tac_toe.address, 1)
        disputed_id = custody.open(host_key.address, disputed, Asset(token.address, 10))
        errors = []

        def challenge():
            try:
                custody.challenge(host_key.address, disputed_id, State(b"stalled"))
            except ChannelsError as e:
                errors.append(e)

        def deposit():
            custody.open(outsider_key.address, other, Asset(token.address, 40))

        challenger = threading.Thread(target=challenge)
        depositor = threading.Thread(target=deposit)
        challenger.start()
        assert gated.entered.wait(timeout=5)
        depositor.start()
        time.sleep(0.05)
        gated.release.set()
        challenger.join(timeout=5)
        depositor.join(timeout=5)

        assert len(errors) == 1 and isinstance(errors[0], InvalidState)
        assert custody.get_status(disputed_id) == ChannelStatus.OPENED
        assert custody.get_metadata(other.channel_id).outcome[0].amount == 40
        assert token.balance_of(custody.address) == 10 + 40
        assert token.balance_of(outsider_key.address) == 1000 - 40
