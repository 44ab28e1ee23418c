"""Tests for the maker service API routes."""

import pytest
from fastapi.testclient import TestClient

from zkfill.config.schema import ZkFillConfig
from zkfill.errors import ProofGenerationFailed
from zkfill.maker.service import MakerService, OrderRegistry
from zkfill.proof import Proof, ProofBundle, PublicSignals
from zkfill.prover import ProofGenerator
from zkfill.server.app import create_app

CHAIN_ID = 31337
ROUTER = "0x111111125421cA6dc452d289314280a0f8842A65"
PREDICATE = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"
TAKER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


class StubBackend:
    """Backend that returns a placeholder proof or fails on demand."""

    name = "stub"

    def __init__(self):
        self.fail = False

    async def prove(self, witness):
        if self.fail:
            raise ProofGenerationFailed("out of memory")
        return ProofBundle(
            proof=Proof(
                pi_a=["1", "2", "1"],
                pi_b=[["0", "0"], ["1", "0"], ["0", "0"]],
                pi_c=["1", "2", "1"],
            ),
            public_signals=PublicSignals(
                valid=1,
                commitment=witness.commitment,
                nonce=witness.nonce,
                offered_price=witness.offered_price,
                offered_amount=witness.offered_amount,
            ),
        )


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def service(backend, maker_key):
    return MakerService.from_private_key(
        OrderRegistry(),
        ProofGenerator(backend),
        maker_key,
        chain_id=CHAIN_ID,
        router=ROUTER,
        predicate_address=PREDICATE,
    )


@pytest.fixture
def order_id(service, order_params, secret_params):
    return service.register_order(order_params, secret_params).order_id


@pytest.fixture
def client(service):
    """Create test client around a maker service with a stub prover."""
    return TestClient(create_app(ZkFillConfig(), service))


def test_health_endpoint(client, order_id):
    """Test health check endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["orders"] == 1
    assert "version" in data


def test_authorize_fill(client, order_id, commitment):
    """Test an acceptable fill is authorized with a signed order."""
    response = client.post(
        "/authorize-fill",
        json={
            "order_id": order_id,
            "fill_amount": 50,
            "taker_address": TAKER,
            "offered_price": 2100,
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["order_with_authorization_data"]["commitment"] == str(commitment)
    assert data["signature"].startswith("0x")
    assert data["predicate_payload"].startswith("0x")


def test_authorize_fill_unknown_order(client):
    """Test unknown orders get 404 with an unsuccessful body."""
    response = client.post(
        "/authorize-fill",
        json={"order_id": "0xmissing", "fill_amount": 50, "taker_address": TAKER},
    )

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "order_with_authorization_data": None,
        "signature": None,
        "order_hash": None,
        "predicate_payload": None,
        "message": "Order not found",
    }


def test_authorize_fill_below_minimum(client, order_id):
    """Test an offer below the hidden minimum gets 403 without revealing it."""
    response = client.post(
        "/authorize-fill",
        json={
            "order_id": order_id,
            "fill_amount": 50,
            "taker_address": TAKER,
            "offered_price": 1500,
        },
    )

    assert response.status_code == 403
    data = response.json()
    assert data["success"] is False
    assert data["message"] == "Offered price does not meet the order's requirements"
    assert "2000" not in response.text


def test_authorize_fill_inactive(client, service, order_id):
    """Test deactivated orders get 403."""
    service.registry.deactivate(order_id)
    response = client.post(
        "/authorize-fill",
        json={"order_id": order_id, "fill_amount": 50, "taker_address": TAKER},
    )
    assert response.status_code == 403


def test_authorize_fill_proving_failure(client, backend, order_id):
    """Test proving failures get 503 so the taker may retry."""
    backend.fail = True
    response = client.post(
        "/authorize-fill",
        json={
            "order_id": order_id,
            "fill_amount": 50,
            "taker_address": TAKER,
            "offered_price": 2100,
        },
    )

    assert response.status_code == 503
    assert response.json()["message"] == "Proof generation failed, please try again"


def test_authorize_fill_invalid_body(client):
    """Test request validation rejects bad amounts."""
    response = client.post(
        "/authorize-fill",
        json={"order_id": "x", "fill_amount": 0, "taker_address": TAKER},
    )
    assert response.status_code == 422


def test_order_status(client, order_id, commitment):
    """Test order status lookup by commitment."""
    response = client.get(f"/order-status/{commitment}")

    assert response.status_code == 200
    data = response.json()
    assert data["order_id"] == order_id
    assert data["active"] is True
    assert "secret_price" not in data

    assert client.get("/order-status/12345").status_code == 404
    assert client.get("/order-status/garbage").status_code == 404


def test_list_orders(client, service, order_id):
    """Test listing filters inactive orders by default."""
    assert [o["order_id"] for o in client.get("/orders").json()] == [order_id]

    service.registry.deactivate(order_id)
    assert client.get("/orders").json() == []
    assert len(client.get("/orders", params={"active": False}).json()) == 1


def test_cors_headers(client):
    """Test CORS preflight for the configured origin."""
    response = client.options(
        "/health",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
