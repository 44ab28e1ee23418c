"""Tests for the taker-side maker client."""

import json

import httpx
import pytest
import respx
from httpx import Response

from zkfill.errors import OrderNotFound, ProofGenerationFailed
from zkfill.maker.client import MakerClient
from zkfill.orders import PublishedOrder

BASE = "http://maker:8000"


@pytest.mark.asyncio
@respx.mock
async def test_request_authorization_success(fill_request, order_params, commitment):
    """Test a successful authorization is parsed into the response model."""
    order = PublishedOrder.build(order_params, commitment)
    route = respx.post(f"{BASE}/authorize-fill").mock(
        return_value=Response(
            200,
            json={
                "success": True,
                "order_with_authorization_data": order.model_dump(),
                "signature": "0xsig",
                "order_hash": "0xhash",
                "predicate_payload": "0x0102",
            },
        )
    )

    client = MakerClient(BASE + "/")
    response = await client.request_authorization(fill_request)

    assert response.success
    assert response.order_with_authorization_data == order
    assert response.payload_bytes() == b"\x01\x02"

    sent = json.loads(route.calls.last.request.content)
    assert sent == {
        "order_id": fill_request.order_id,
        "fill_amount": 50,
        "taker_address": fill_request.taker_address,
        "offered_price": 2100,
    }

    await client.close()


@pytest.mark.asyncio
@respx.mock
async def test_request_authorization_refused(fill_request):
    """Test 403 and 404 refusals come back as unsuccessful responses."""
    respx.post(f"{BASE}/authorize-fill").mock(
        return_value=Response(403, json={"success": False, "message": "Order is not active"})
    )

    async with MakerClient(BASE) as client:
        response = await client.request_authorization(fill_request)

    assert not response.success
    assert response.message == "Order is not active"


@pytest.mark.asyncio
@respx.mock
async def test_request_authorization_proving_failure(fill_request):
    """Test a 503 from the maker is a retryable proving failure."""
    respx.post(f"{BASE}/authorize-fill").mock(
        return_value=Response(503, json={"success": False, "message": "busy"})
    )

    async with MakerClient(BASE) as client:
        with pytest.raises(ProofGenerationFailed):
            await client.request_authorization(fill_request)


@pytest.mark.asyncio
@respx.mock
async def test_request_authorization_server_error(fill_request):
    """Test unexpected status codes raise."""
    respx.post(f"{BASE}/authorize-fill").mock(return_value=Response(500))

    async with MakerClient(BASE) as client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.request_authorization(fill_request)


@pytest.mark.asyncio
@respx.mock
async def test_request_authorization_unreachable(fill_request):
    """Test transport errors surface as ConnectionError."""
    respx.post(f"{BASE}/authorize-fill").mock(side_effect=httpx.ConnectError("refused"))

    async with MakerClient(BASE) as client:
        with pytest.raises(ConnectionError):
            await client.request_authorization(fill_request)


@pytest.mark.asyncio
@respx.mock
async def test_auth_token_header(fill_request):
    """Test the bearer token is sent when configured."""
    route = respx.post(f"{BASE}/authorize-fill").mock(
        return_value=Response(200, json={"success": False})
    )

    async with MakerClient(BASE, auth_token="t0ken") as client:
        await client.request_authorization(fill_request)

    assert route.calls.last.request.headers["Authorization"] == "Bearer t0ken"


@pytest.mark.asyncio
@respx.mock
async def test_order_status(commitment):
    """Test order status lookup and the not-found case."""
    respx.get(f"{BASE}/order-status/{commitment}").mock(
        return_value=Response(
            200,
            json={
                "commitment": str(commitment),
                "order_id": "0xabc",
                "maker": "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266",
                "active": True,
                "fills_authorized": 2,
            },
        )
    )
    respx.get(f"{BASE}/order-status/1").mock(return_value=Response(404, json={"detail": "x"}))

    async with MakerClient(BASE) as client:
        status = await client.order_status(commitment)
        assert status.fills_authorized == 2
        with pytest.raises(OrderNotFound):
            await client.order_status(1)


@pytest.mark.asyncio
@respx.mock
async def test_health():
    """Test the health endpoint is returned as JSON."""
    respx.get(f"{BASE}/health").mock(
        return_value=Response(200, json={"status": "healthy", "version": "0.1.0", "orders": 0})
    )

    async with MakerClient(BASE) as client:
        assert (await client.health())["status"] == "healthy"
