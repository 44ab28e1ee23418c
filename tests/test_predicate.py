"""Tests for the fill authorization gate."""

import pytest
from eth_abi import decode
from eth_utils import keccak

from zkfill.errors import BindingMismatch, VerificationFailed
from zkfill.orders import OfferValues
from zkfill.predicate import (
    AuthorizationDecision,
    PredicateAdapter,
    RejectionReason,
    decode_predicate_payload,
    encode_predicate_payload,
    settlement_predicate,
)

PREDICATE_ADDRESS = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"


def test_decision_raise_for_rejection():
    AuthorizationDecision.approve().raise_for_rejection()

    with pytest.raises(BindingMismatch):
        AuthorizationDecision.reject(RejectionReason.BINDING_MISMATCH).raise_for_rejection()
    with pytest.raises(VerificationFailed):
        AuthorizationDecision.reject(RejectionReason.VERIFICATION_FAILED).raise_for_rejection()
    with pytest.raises(VerificationFailed):
        AuthorizationDecision.reject(RejectionReason.MISSING_PROOF).raise_for_rejection()


def test_settlement_predicate_layout():
    """gt(0, arbitraryStaticCall(adapter, predicate(payload)))."""
    payload = b"\x01\x02\x03"
    wrapped = settlement_predicate(PREDICATE_ADDRESS, payload)

    assert wrapped[:4] == keccak(text="gt(uint256,bytes)")[:4]
    threshold, static_call = decode(["uint256", "bytes"], wrapped[4:])
    assert threshold == 0
    assert static_call[:4] == keccak(text="arbitraryStaticCall(address,bytes)")[:4]
    target, inner = decode(["address", "bytes"], static_call[4:])
    assert target.lower() == PREDICATE_ADDRESS.lower()
    assert inner[:4] == keccak(text="predicate(bytes)")[:4]
    assert decode(["bytes"], inner[4:])[0] == payload


def test_decode_rejects_garbage():
    with pytest.raises(ValueError, match="Malformed predicate payload"):
        decode_predicate_payload(b"\x00" * 10)


@pytest.mark.slow
class TestAdapter:
    """Authorization decisions over a real proof."""

    def test_matching_proof_authorized(self, proving_context, scenario_bundle, commitment, good_offer):
        adapter = PredicateAdapter(proving_context.verification_key)
        decision = adapter.authorize_bundle(commitment, scenario_bundle, good_offer)

        assert decision.authorized
        assert decision.reason is None

    def test_commitment_as_string(self, proving_context, scenario_bundle, commitment, good_offer):
        adapter = PredicateAdapter(proving_context.verification_key)
        assert adapter.authorize_bundle(str(commitment), scenario_bundle, good_offer).authorized

    def test_other_commitment_is_binding_mismatch(
        self, proving_context, scenario_bundle, commitment, good_offer
    ):
        adapter = PredicateAdapter(proving_context.verification_key)
        decision = adapter.authorize_bundle(commitment + 1, scenario_bundle, good_offer)

        assert not decision.authorized
        assert decision.reason == RejectionReason.BINDING_MISMATCH

    def test_other_offer_is_binding_mismatch(self, proving_context, scenario_bundle, commitment):
        """A proof for 2100/50 cannot authorize a fill of 2100/60."""
        adapter = PredicateAdapter(proving_context.verification_key)
        offer = OfferValues(offered_price=2100, offered_amount=60)

        decision = adapter.authorize_bundle(commitment, scenario_bundle, offer)
        assert decision.reason == RejectionReason.BINDING_MISMATCH

    def test_missing_proof(self, proving_context, commitment, good_offer):
        adapter = PredicateAdapter(proving_context.verification_key)

        assert adapter.authorize_bundle(commitment, None, good_offer).reason == (
            RejectionReason.MISSING_PROOF
        )
        assert adapter.authorize(commitment, [1, 2, 3, 4, 5], None, good_offer).reason == (
            RejectionReason.MISSING_PROOF
        )

    def test_malformed_signals(self, proving_context, scenario_bundle, commitment, good_offer):
        adapter = PredicateAdapter(proving_context.verification_key)
        decision = adapter.authorize(commitment, [1, 2], scenario_bundle.proof, good_offer)
        assert decision.reason == RejectionReason.VERIFICATION_FAILED

    def test_missing_or_malformed_offer_rejected(self, proving_context, scenario_bundle, commitment):
        """Bad offer terms are a rejection, never an exception."""
        adapter = PredicateAdapter(proving_context.verification_key)
        signals, proof = scenario_bundle.public_signals, scenario_bundle.proof

        for offer in (None, object(), {"offered_price": -1, "offered_amount": 50}):
            decision = adapter.authorize(commitment, signals, proof, offer)
            assert not decision.authorized
            assert decision.reason == RejectionReason.BINDING_MISMATCH

        assert not adapter.authorize_bundle(commitment, scenario_bundle, None).authorized

    def test_offer_as_mapping(self, proving_context, scenario_bundle, commitment):
        adapter = PredicateAdapter(proving_context.verification_key)
        offer = {"offered_price": 2100, "offered_amount": 50}

        assert adapter.authorize_bundle(commitment, scenario_bundle, offer).authorized

    def test_malformed_bundle(self, proving_context, commitment, good_offer):
        adapter = PredicateAdapter(proving_context.verification_key)

        decision = adapter.authorize_bundle(commitment, {"proof": "nope"}, good_offer)
        assert decision.reason == RejectionReason.VERIFICATION_FAILED

    def test_forged_proof_fails_verification(
        self, proving_context, scenario_bundle, commitment, good_offer
    ):
        """Bound signals with a bogus proof reach the pairing check and fail."""
        adapter = PredicateAdapter(proving_context.verification_key)
        forged = scenario_bundle.proof.model_copy(update={"pi_a": scenario_bundle.proof.pi_c})

        decision = adapter.authorize(commitment, scenario_bundle.public_signals, forged, good_offer)
        assert decision.reason == RejectionReason.VERIFICATION_FAILED

    def test_predicate_bytes(self, proving_context, scenario_bundle, commitment, good_offer):
        adapter = PredicateAdapter(proving_context.verification_key)
        payload = encode_predicate_payload(commitment, good_offer, scenario_bundle)

        assert adapter.predicate(payload) == 1
        assert adapter.predicate(b"") == 0
        assert adapter.predicate(b"\xff" * 64) == 0
        assert adapter.predicate(payload[:-32]) == 0

    def test_predicate_with_altered_offer(self, proving_context, scenario_bundle, commitment):
        adapter = PredicateAdapter(proving_context.verification_key)
        offer = OfferValues(offered_price=2500, offered_amount=50)

        payload = encode_predicate_payload(commitment, offer, scenario_bundle)
        assert adapter.predicate(payload) == 0

    def test_payload_roundtrip(self, scenario_bundle, commitment, good_offer):
        payload = encode_predicate_payload(commitment, good_offer, scenario_bundle)

        decoded_commitment, offer, bundle = decode_predicate_payload(payload)

        assert decoded_commitment == commitment
        assert offer == good_offer
        assert bundle == scenario_bundle
