"""The authorization gate between proof verification and settlement.

:class:`PredicateAdapter` is the only path by which a fill is approved.  It
binds the proof's public signals to the order's commitment and to the offer
the taker is about to execute, and only then runs the pairing check.

:meth:`PredicateAdapter.predicate` is the byte-level entry point polled by
settlement: it ABI-decodes ``(uint256 commitment, uint256 offeredPrice,
uint256 offeredAmount, uint256[2] a, uint256[2][2] b, uint256[2] c,
uint256[5] signals)`` and returns 1 (authorized) or 0.
"""

import logging
from collections.abc import Sequence
from enum import StrEnum
from typing import Any

from eth_abi import decode, encode
from eth_utils import keccak, to_checksum_address
from pydantic import BaseModel

from zkfill.crypto.field import to_int
from zkfill.errors import BindingMismatch, VerificationFailed
from zkfill.groth16.keys import VerificationKey
from zkfill.groth16.verifier import verify
from zkfill.orders import OfferValues
from zkfill.proof import Proof, ProofBundle, PublicSignals, export_calldata

logger = logging.getLogger(__name__)

PAYLOAD_ABI_TYPES = [
    "uint256",
    "uint256",
    "uint256",
    "uint256[2]",
    "uint256[2][2]",
    "uint256[2]",
    "uint256[5]",
]


class RejectionReason(StrEnum):
    BINDING_MISMATCH = "binding_mismatch"
    VERIFICATION_FAILED = "verification_failed"
    MISSING_PROOF = "missing_proof"


class AuthorizationDecision(BaseModel):
    """Outcome of :meth:`PredicateAdapter.authorize`."""

    authorized: bool
    reason: RejectionReason | None = None
    detail: str | None = None

    @classmethod
    def approve(cls) -> "AuthorizationDecision":
        return cls(authorized=True)

    @classmethod
    def reject(cls, reason: RejectionReason, detail: str | None = None) -> "AuthorizationDecision":
        return cls(authorized=False, reason=reason, detail=detail)

    def raise_for_rejection(self) -> None:
        """Raise the taxonomy error matching a rejection; no-op when authorized."""
        if self.authorized:
            return
        if self.reason == RejectionReason.BINDING_MISMATCH:
            raise BindingMismatch(self.detail or "Proof is not bound to this fill")
        raise VerificationFailed(self.detail or "Proof failed verification")


class PredicateAdapter:
    """Authorize fills against one verification key.

    Args:
        verification_key: Key of the deployed circuit version.
    """

    def __init__(self, verification_key: VerificationKey) -> None:
        self.verification_key = verification_key

    def authorize(
        self,
        commitment: int | str,
        signals: PublicSignals | Sequence[Any],
        proof: Proof | None,
        offer: OfferValues,
    ) -> AuthorizationDecision:
        """Decide whether *proof* authorizes filling *offer* against *commitment*.

        Never raises: missing or malformed inputs are rejections.
        """
        if proof is None:
            return AuthorizationDecision.reject(RejectionReason.MISSING_PROOF)
        if offer is None:
            return AuthorizationDecision.reject(
                RejectionReason.BINDING_MISMATCH, "Fill request has no offer terms"
            )

        try:
            if not isinstance(signals, PublicSignals):
                signals = PublicSignals.from_list(signals)
            expected_commitment = to_int(commitment)
        except (TypeError, ValueError):
            return AuthorizationDecision.reject(
                RejectionReason.VERIFICATION_FAILED, "Malformed public signals"
            )
        try:
            if not isinstance(offer, OfferValues):
                offer = OfferValues.model_validate(offer, from_attributes=True)
        except ValueError:
            return AuthorizationDecision.reject(
                RejectionReason.BINDING_MISMATCH, "Malformed offer terms"
            )

        if signals.commitment != expected_commitment:
            logger.info("Rejecting fill: proof commitment does not match the order")
            return AuthorizationDecision.reject(
                RejectionReason.BINDING_MISMATCH, "Proof is for a different commitment"
            )
        if (
            signals.offered_price != offer.offered_price
            or signals.offered_amount != offer.offered_amount
        ):
            logger.info("Rejecting fill: proof offer terms differ from the fill request")
            return AuthorizationDecision.reject(
                RejectionReason.BINDING_MISMATCH, "Proof is for different offer terms"
            )

        if not verify(proof, signals, self.verification_key):
            logger.info("Rejecting fill: proof failed verification")
            return AuthorizationDecision.reject(RejectionReason.VERIFICATION_FAILED)

        return AuthorizationDecision.approve()

    def authorize_bundle(
        self, commitment: int | str, bundle: ProofBundle | None, offer: OfferValues
    ) -> AuthorizationDecision:
        if bundle is None:
            return AuthorizationDecision.reject(RejectionReason.MISSING_PROOF)
        if not isinstance(bundle, ProofBundle):
            try:
                bundle = ProofBundle.model_validate(bundle)
            except ValueError:
                return AuthorizationDecision.reject(
                    RejectionReason.VERIFICATION_FAILED, "Malformed proof bundle"
                )
        return self.authorize(commitment, bundle.public_signals, bundle.proof, offer)

    def predicate(self, blob: bytes) -> int:
        """Byte-level gate: 1 when authorized, 0 otherwise (never raises)."""
        if not blob:
            return 0
        try:
            commitment, offer, bundle = decode_predicate_payload(blob)
            decision = self.authorize_bundle(commitment, bundle, offer)
        except Exception as e:
            logger.debug("Predicate payload rejected: %s", type(e).__name__)
            return 0
        return 1 if decision.authorized else 0


# ---------------------------------------------------------------------------
# Payload and settlement predicate encoding
# ---------------------------------------------------------------------------


def encode_predicate_payload(
    commitment: int, offer: OfferValues, bundle: ProofBundle
) -> bytes:
    """ABI-encode the blob consumed by :meth:`PredicateAdapter.predicate`."""
    calldata = export_calldata(bundle.proof, bundle.public_signals)
    return encode(
        PAYLOAD_ABI_TYPES,
        [
            commitment,
            offer.offered_price,
            offer.offered_amount,
            calldata.a,
            calldata.b,
            calldata.c,
            calldata.signals,
        ],
    )


def decode_predicate_payload(blob: bytes) -> tuple[int, OfferValues, ProofBundle]:
    """Inverse of :func:`encode_predicate_payload`.

    Raises:
        ValueError: If *blob* is not a well-formed payload.
    """
    try:
        commitment, price, amount, a, b, c, signals = decode(PAYLOAD_ABI_TYPES, blob)
        offer = OfferValues(offered_price=price, offered_amount=amount)
        bundle = ProofBundle(
            proof=Proof.from_calldata(a, b, c),
            public_signals=PublicSignals.from_list(list(signals)),
        )
    except Exception as e:
        msg = f"Malformed predicate payload: {type(e).__name__}"
        raise ValueError(msg) from e
    return commitment, offer, bundle


def _selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def settlement_predicate(predicate_address: str, payload: bytes) -> bytes:
    """Wrap the payload as an order predicate: ``gt(0, arbitraryStaticCall(adapter, predicate(payload)))``."""
    inner = _selector("predicate(bytes)") + encode(["bytes"], [payload])
    static_call = _selector("arbitraryStaticCall(address,bytes)") + encode(
        ["address", "bytes"], [to_checksum_address(predicate_address), inner]
    )
    return _selector("gt(uint256,bytes)") + encode(["uint256", "bytes"], [0, static_call])
