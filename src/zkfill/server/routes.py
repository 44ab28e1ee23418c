"""API routes for the maker service."""

import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from zkfill import __version__
from zkfill.config.schema import ZkFillConfig
from zkfill.errors import (
    ArtifactError,
    AuthorizationRejected,
    ConstraintViolation,
    OrderNotFound,
    ProofGenerationFailed,
    describe_error,
)
from zkfill.factory import create_maker_service
from zkfill.maker.models import FillAuthorizationRequest, FillAuthorizationResponse, OrderStatus
from zkfill.maker.service import MakerService

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    orders: int


def _refusal(status_code: int, error: Exception) -> JSONResponse:
    body = FillAuthorizationResponse(success=False, message=describe_error(error))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def create_router(config: ZkFillConfig, service: MakerService | None = None) -> APIRouter:
    """Create API router around a maker service.

    Args:
        config: zkfill configuration
        service: Maker service; built from *config* when omitted

    Returns:
        Configured API router
    """
    router = APIRouter()

    if service is None:
        service = create_maker_service(config)

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", version=__version__, orders=len(service.registry))

    @router.post("/authorize-fill", response_model=FillAuthorizationResponse)
    async def authorize_fill(request: FillAuthorizationRequest):
        """Prove the requested fill meets the order's hidden minimums and sign it.

        Refusals use 404 (unknown order) and 403 (terms or maker rejected);
        proving failures use 503 so the taker may retry.
        """
        try:
            return await service.authorize_fill(request)
        except OrderNotFound as e:
            return _refusal(404, e)
        except (AuthorizationRejected, ConstraintViolation) as e:
            logger.info("Refused fill of order %s: %s", request.order_id, type(e).__name__)
            return _refusal(403, e)
        except (ProofGenerationFailed, ArtifactError) as e:
            logger.warning("Proof generation failed for order %s: %s", request.order_id, e)
            return _refusal(503, e)

    @router.get("/order-status/{commitment}", response_model=OrderStatus)
    async def order_status(commitment: str) -> OrderStatus:
        """Public status of the order published under *commitment*."""
        status = service.order_status(commitment)
        if status is None:
            raise HTTPException(status_code=404, detail="Order not found")
        return status

    @router.get("/orders", response_model=list[OrderStatus])
    async def list_orders(active: bool = True) -> list[OrderStatus]:
        """Registered orders, without their secrets."""
        return [
            entry.status() for entry in service.registry.orders() if entry.active or not active
        ]

    return router
