"""Pytest configuration and shared fixtures."""

import pytest

from zkfill.circuit.hidden_params import HiddenParamsWitness
from zkfill.commitment import SecretParameters
from zkfill.config.schema import ZkFillConfig
from zkfill.context import ProvingContext
from zkfill.orders import OfferValues
from zkfill.proof import ProofBundle
from zkfill.prover import NativeGroth16Backend

SETUP_SEED = b"zkfill-test-setup"

# Well-known development key (hardhat account #0)
MAKER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
MAKER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

TAKER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
MAKER_ASSET = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
TAKER_ASSET = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


@pytest.fixture
def default_config() -> ZkFillConfig:
    """Provide a default configuration for tests."""
    return ZkFillConfig()


@pytest.fixture
def secret_params() -> SecretParameters:
    """Hidden minimums used across scenarios: price 2000, amount 10."""
    return SecretParameters(secret_price=2000, secret_amount=10, nonce=123456789)


@pytest.fixture
def commitment(secret_params: SecretParameters) -> int:
    return secret_params.commitment()


@pytest.fixture
def good_offer() -> OfferValues:
    return OfferValues(offered_price=2100, offered_amount=50)


@pytest.fixture(scope="session")
def proving_context() -> ProvingContext:
    """One deterministic key pair for the whole session (key generation is slow)."""
    return ProvingContext.generate(seed=SETUP_SEED)


@pytest.fixture(scope="session")
def scenario_bundle(proving_context: ProvingContext) -> ProofBundle:
    """A real proof for secrets (2000, 10, 123456789) and offer (2100, 50)."""
    params = SecretParameters(secret_price=2000, secret_amount=10, nonce=123456789)
    witness = HiddenParamsWitness(
        secret_price=2000,
        secret_amount=10,
        nonce=123456789,
        commitment=params.commitment(),
        offered_price=2100,
        offered_amount=50,
    )
    return NativeGroth16Backend(proving_context).prove_sync(witness)


@pytest.fixture
def maker_key() -> str:
    return MAKER_KEY


@pytest.fixture
def order_params():
    """Public terms of a test order made by the development maker account."""
    from zkfill.orders import OrderParameters

    return OrderParameters(
        maker=MAKER_ADDRESS,
        maker_asset=MAKER_ASSET,
        taker_asset=TAKER_ASSET,
        making_amount=1000,
        taking_amount=2_000_000,
    )


@pytest.fixture
def fill_request(commitment, good_offer):
    from zkfill.orders import FillRequest

    return FillRequest(
        order_id="0xorder",
        commitment=commitment,
        offer=good_offer,
        taker_address=TAKER_ADDRESS,
    )
