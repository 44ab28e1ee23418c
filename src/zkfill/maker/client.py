"""HTTP client for a remote maker service."""

import httpx

from zkfill.errors import OrderNotFound, ProofGenerationFailed
from zkfill.maker.models import FillAuthorizationRequest, FillAuthorizationResponse, OrderStatus
from zkfill.orders import FillRequest


class MakerClient:
    """
    Taker-side client for a maker's authorization endpoint.

    Implements the ``AuthorizationClient`` protocol used by the fill
    orchestrator.  Refusals come back as unsuccessful responses; proving
    failures on the maker raise ``ProofGenerationFailed`` and transport
    errors raise ``ConnectionError`` so both can be retried.
    """

    def __init__(self, base_url: str, timeout: float = 60.0, auth_token: str | None = None):
        """
        Initialize maker client.

        Args:
            base_url: Maker service URL
            timeout: Request timeout in seconds
            auth_token: Optional bearer token
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.auth_token = auth_token
        self._client = httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict[str, str]:
        headers = {}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def request_authorization(self, request: FillRequest) -> FillAuthorizationResponse:
        """
        Ask the maker to authorize *request*.

        The fill amount is the offered amount; the offered price is sent
        explicitly so the proof binds to the taker's terms.
        """
        payload = FillAuthorizationRequest(
            order_id=request.order_id,
            fill_amount=request.offer.offered_amount,
            taker_address=request.taker_address,
            offered_price=request.offer.offered_price,
        )
        try:
            response = await self._client.post(
                f"{self.base_url}/authorize-fill",
                json=payload.model_dump(),
                headers=self._headers(),
            )
        except httpx.TransportError as e:
            raise ConnectionError(f"Maker service unreachable: {type(e).__name__}") from e

        if response.status_code in (403, 404):
            return FillAuthorizationResponse.model_validate(response.json())
        if response.status_code == 503:
            raise ProofGenerationFailed("Maker could not generate a proof")
        response.raise_for_status()
        return FillAuthorizationResponse.model_validate(response.json())

    async def order_status(self, commitment: int | str) -> OrderStatus:
        """
        Look up a registered order by commitment.

        Raises:
            OrderNotFound: The maker has no order with this commitment
        """
        try:
            response = await self._client.get(
                f"{self.base_url}/order-status/{commitment}", headers=self._headers()
            )
        except httpx.TransportError as e:
            raise ConnectionError(f"Maker service unreachable: {type(e).__name__}") from e
        if response.status_code == 404:
            raise OrderNotFound("Maker has no order with this commitment")
        response.raise_for_status()
        return OrderStatus.model_validate(response.json())

    async def health(self) -> dict:
        response = await self._client.get(f"{self.base_url}/health")
        response.raise_for_status()
        return response.json()

    async def close(self):
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
