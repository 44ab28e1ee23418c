"""Maker side: secrets registry, fill authorization and its HTTP client."""

from .client import MakerClient
from .models import FillAuthorizationRequest, FillAuthorizationResponse, OrderStatus
from .service import MakerService, OrderRegistry, RegisteredOrder
from .signing import recover_order_signer, sign_order

__all__ = [
    "FillAuthorizationRequest",
    "FillAuthorizationResponse",
    "MakerClient",
    "MakerService",
    "OrderRegistry",
    "OrderStatus",
    "RegisteredOrder",
    "recover_order_signer",
    "sign_order",
]
