"""
Payment voucher adjudicator.

The host pays the guest by signing vouchers with increasing versions. Each
voucher states the total paid so far, so the guest only ever needs the
latest one.
"""

from dataclasses import dataclass
from typing import Sequence

from eth_abi import encode

from ..crypto.hashing import Hash, Keccak256Hasher
from ..crypto.signatures import PrivateKey, Signature
from ..errors import InvalidPayment, InvalidProofCount, InvalidSignature, VersionNotHigher
from ..logging import get_logger
from ..state_channels.adjudicator import (
    SIGNATURE_TYPE,
    AdjudicationResult,
    Adjudicator,
    decode_data,
    decode_signature,
    signed_by,
)
from ..state_channels.channel_protocol import ASSET_TYPE, Asset, Channel, State

logger = get_logger(__name__)

VOUCHER_TYPE = f"(uint256,{ASSET_TYPE})"


@dataclass(frozen=True)
class Voucher:
    version: int
    payment: Asset

    def to_tuple(self) -> tuple:
        return (self.version, self.payment.to_tuple())

    def encode(self) -> bytes:
        return encode([VOUCHER_TYPE], [self.to_tuple()])

    def hash(self) -> Hash:
        return Keccak256Hasher.hash(self.encode())

    def sign(self, key: PrivateKey) -> "SignedVoucher":
        return SignedVoucher(self, key.sign(self.hash()))


@dataclass(frozen=True)
class SignedVoucher:
    voucher: Voucher
    signature: Signature

    def encode(self) -> bytes:
        return encode(
            [VOUCHER_TYPE, SIGNATURE_TYPE],
            [self.voucher.to_tuple(), self.signature.to_tuple()],
        )

    @classmethod
    def decode(cls, data: bytes) -> "SignedVoucher":
        (version, payment), vrs = decode_data(
            [VOUCHER_TYPE, SIGNATURE_TYPE], data, "payment voucher"
        )
        return cls(Voucher(version, Asset.from_tuple(payment)), decode_signature(vrs))

    def to_state(self) -> State:
        return State(self.encode(), (self.voucher.payment,))


class PaymentAdjudicator(Adjudicator):
    """Pays the guest the amount of the latest host-signed voucher."""

    name = "payment"

    def adjudicate(
        self, channel: Channel, candidate: State, proofs: Sequence[State]
    ) -> AdjudicationResult:
        if len(proofs) > 1:
            raise InvalidProofCount(f"Expected at most 1 proof, got {len(proofs)}")

        voucher = self._verified_voucher(channel, candidate)
        if proofs:
            previous = self._verified_voucher(channel, proofs[0])
            if voucher.version <= previous.version:
                raise VersionNotHigher(
                    f"Voucher v{voucher.version} does not exceed v{previous.version}"
                )

        payment = voucher.payment
        if payment.token != self.token:
            raise InvalidPayment(f"Voucher pays in {payment.token}, expected {self.token}")
        if payment.amount > self.pool:
            raise InvalidPayment(f"Payment {payment.amount} exceeds pool {self.pool}")

        logger.debug(f"Accepted voucher v{voucher.version} paying {payment.amount}")
        return self._payout(self.pool - payment.amount)

    def _verified_voucher(self, channel: Channel, state: State) -> Voucher:
        signed = SignedVoucher.decode(state.data)
        if not signed_by(signed.voucher.hash(), signed.signature, channel.host):
            raise InvalidSignature(
                f"Voucher v{signed.voucher.version} is not signed by the host"
            )
        return signed.voucher
