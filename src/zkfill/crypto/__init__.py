"""BN254 field, curve, polynomial and Poseidon primitives."""
