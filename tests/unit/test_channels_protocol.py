"""
Unit tests for the state channel data model and adjudicator base class.
"""

import pytest
from eth_abi import encode

from gamechannels.crypto import Keccak256Hasher
from gamechannels.errors import ConfigurationError, InvalidStateEncoding
from gamechannels.state_channels import (
    CHALLENGE_PERIOD,
    DEFAULT_POOL,
    GUEST,
    HOST,
    AdjudicationResult,
    Adjudicator,
    Asset,
    Channel,
    ChannelStatus,
    CustodyConfig,
    Metadata,
    State,
    decode_data,
    decode_signature,
)

HOST_ADDRESS = "0x" + "11" * 20
GUEST_ADDRESS = "0x" + "22" * 20
ADJUDICATOR = "0x" + "33" * 20
TOKEN = "0x" + "44" * 20


class FixedAdjudicator(Adjudicator):
    """Adjudicator that accepts everything with an even split."""

    def adjudicate(self, channel, candidate, proofs):
        return self._even_split()


class TestChannel:
    """Test Channel identity."""

    def test_channel_id_is_deterministic(self):
        a = Channel((HOST_ADDRESS, GUEST_ADDRESS), ADJUDICATOR, 1)
        b = Channel([HOST_ADDRESS.upper().replace("0X", "0x"), GUEST_ADDRESS], ADJUDICATOR, 1)
        assert a.channel_id == b.channel_id

    def test_channel_id_is_keccak_of_encoding(self):
        channel = Channel((HOST_ADDRESS, GUEST_ADDRESS), ADJUDICATOR, 7)
        expected = Keccak256Hasher.hash_abi(
            ["address[]", "address", "uint64"],
            [[channel.host, channel.guest], channel.adjudicator, 7],
        )
        assert channel.channel_id == expected.to_hex()

    def test_distinct_nonces_give_distinct_ids(self):
        ids = {
            Channel((HOST_ADDRESS, GUEST_ADDRESS), ADJUDICATOR, nonce).channel_id
            for nonce in range(5)
        }
        assert len(ids) == 5

    def test_participant_order_matters(self):
        a = Channel((HOST_ADDRESS, GUEST_ADDRESS), ADJUDICATOR, 1)
        b = Channel((GUEST_ADDRESS, HOST_ADDRESS), ADJUDICATOR, 1)
        assert a.channel_id != b.channel_id

    def test_roles_and_index(self):
        channel = Channel((HOST_ADDRESS, GUEST_ADDRESS), ADJUDICATOR)
        assert channel.index_of(channel.host) == HOST
        assert channel.index_of(GUEST_ADDRESS) == GUEST
        assert channel.index_of(ADJUDICATOR) is None

    def test_nonce_range(self):
        with pytest.raises(ValueError):
            Channel((HOST_ADDRESS, GUEST_ADDRESS), ADJUDICATOR, 2**64)

    def test_rejects_invalid_address(self):
        with pytest.raises(ValueError):
            Channel(("not-an-address", GUEST_ADDRESS), ADJUDICATOR)


class TestAssetAndState:
    """Test Asset and State."""

    def test_asset_checksums_token(self):
        asset = Asset(TOKEN, 5)
        assert asset.token == Asset.from_tuple(asset.to_tuple()).token
        assert asset.with_amount(9) == Asset(TOKEN, 9)

    def test_asset_amount_range(self):
        with pytest.raises(ValueError):
            Asset(TOKEN, -1)
        with pytest.raises(ValueError):
            Asset(TOKEN, 2**256)

    def test_state_hash_covers_data_and_outcome(self):
        base = State(b"\x01", (Asset(TOKEN, 1),))
        assert base.hash() == State(b"\x01", [Asset(TOKEN, 1)]).hash()
        assert base.hash() != State(b"\x02", (Asset(TOKEN, 1),)).hash()
        assert base.hash() != State(b"\x01", (Asset(TOKEN, 2),)).hash()

    def test_state_encoding(self):
        state = State(b"abc", (Asset(TOKEN, 3),))
        assert state.encode() == encode(
            ["bytes", "(address,uint256)[]"], [b"abc", [(Asset(TOKEN, 3).token, 3)]]
        )


class TestMetadata:
    """Test Metadata."""

    def setup_method(self):
        self.metadata = Metadata(
            channel=Channel((HOST_ADDRESS, GUEST_ADDRESS), ADJUDICATOR),
            outcome=[Asset(TOKEN, 30), Asset(TOKEN, 20)],
        )

    def test_defaults(self):
        assert self.metadata.status == ChannelStatus.PARTIAL
        assert self.metadata.challenge_expire == 0
        assert self.metadata.last_valid_state is None
        assert self.metadata.total_locked() == 50

    def test_copy_is_independent(self):
        copied = self.metadata.copy()
        copied.outcome[HOST] = Asset(TOKEN, 0)
        copied.status = ChannelStatus.CLOSED
        assert self.metadata.outcome[HOST].amount == 30
        assert self.metadata.status == ChannelStatus.PARTIAL

    def test_to_dict(self):
        self.metadata.last_valid_state = State(b"\xff")
        data = self.metadata.to_dict()
        assert data["status"] == "PARTIAL"
        assert data["outcome"][GUEST]["amount"] == 20
        assert data["last_valid_state"] == "0xff"
        assert data["channel_id"] == self.metadata.channel.channel_id


class TestCustodyConfig:
    """Test CustodyConfig."""

    def test_default_challenge_period(self):
        assert CustodyConfig().challenge_period == CHALLENGE_PERIOD == 259200

    def test_rejects_non_positive_period(self):
        with pytest.raises(ConfigurationError):
            CustodyConfig(challenge_period=0)

    def test_dict_round_trip(self):
        config = CustodyConfig(challenge_period=60)
        assert CustodyConfig.from_dict(config.to_dict()) == config

    def test_from_dict_rejects_unknown_keys(self):
        with pytest.raises(ConfigurationError) as info:
            CustodyConfig.from_dict({"challenge_period": 60, "timeout": 5})
        assert info.value.config_key == "timeout"


class TestAdjudicatorBase:
    """Test shared adjudicator helpers."""

    def test_pool_defaults(self):
        adjudicator = FixedAdjudicator(ADJUDICATOR, TOKEN)
        assert adjudicator.pool == DEFAULT_POOL == 100

    def test_negative_pool_rejected(self):
        with pytest.raises(ConfigurationError):
            FixedAdjudicator(ADJUDICATOR, TOKEN, pool=-1)

    def test_even_split_gives_remainder_to_host(self):
        result = FixedAdjudicator(ADJUDICATOR, TOKEN, pool=101).adjudicate(None, None, [])
        assert isinstance(result, AdjudicationResult)
        assert result.valid
        assert result.amounts() == (51, 50)

    def test_payout_helpers(self):
        adjudicator = FixedAdjudicator(ADJUDICATOR, TOKEN)
        assert adjudicator._host_wins().amounts() == (100, 0)
        assert adjudicator._guest_wins().amounts() == (0, 100)
        assert adjudicator._payout(30).outcome[GUEST] == Asset(TOKEN, 70)

    def test_decode_data_wraps_codec_errors(self):
        with pytest.raises(InvalidStateEncoding):
            decode_data(["uint256", "bytes"], b"\x01\x02", "junk")

    def test_decode_signature_wraps_malformed_values(self):
        with pytest.raises(InvalidStateEncoding):
            decode_signature((30, 1, 1))
