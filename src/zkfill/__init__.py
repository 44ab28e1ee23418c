"""zkfill - hidden-parameter order fills authorized by zero-knowledge proofs.

A maker commits to secret minimum price and amount values with a Poseidon
commitment published on the order.  A fill is authorized only by a Groth16
proof (BN254) that the taker's offer meets those hidden minimums.

Key modules:

- :mod:`zkfill.commitment` - Poseidon commitments and secret-parameter validation
- :mod:`zkfill.circuit` - R1CS builder and the hidden-parameter circuit
- :mod:`zkfill.groth16` - trusted setup, prover and pairing verifier
- :mod:`zkfill.prover` - async proof generation with fail-fast checks
- :mod:`zkfill.predicate` - the authorization gate consumed by settlement
- :mod:`zkfill.fill` - the authorize / approve / execute / confirm state machine
- :mod:`zkfill.maker` - maker-side authorization service and taker client
"""

__version__ = "0.1.0"
