"""Wire models for the fill authorization exchange."""

from eth_utils import to_checksum_address
from pydantic import BaseModel, Field, field_validator

from zkfill.commitment import MAX_VALUE
from zkfill.orders import PublishedOrder


class FillAuthorizationRequest(BaseModel):
    """Taker's request to fill part of a hidden-parameter order.

    ``offered_price`` defaults to ``fill_amount`` when omitted.
    """

    order_id: str = Field(min_length=1)
    fill_amount: int = Field(ge=1, le=MAX_VALUE)
    taker_address: str
    offered_price: int | None = Field(default=None, ge=1, le=MAX_VALUE)

    @field_validator("taker_address")
    @classmethod
    def _checksum(cls, v: str) -> str:
        return to_checksum_address(v)


class FillAuthorizationResponse(BaseModel):
    """Maker's answer: the signed order carrying the proof predicate, or a refusal."""

    success: bool
    order_with_authorization_data: PublishedOrder | None = None
    signature: str | None = None
    order_hash: str | None = None
    predicate_payload: str | None = None
    message: str | None = None

    def payload_bytes(self) -> bytes | None:
        if not self.predicate_payload:
            return None
        return bytes.fromhex(self.predicate_payload.removeprefix("0x"))


class OrderStatus(BaseModel):
    """Public view of a registered order."""

    commitment: str
    order_id: str
    maker: str
    active: bool
    fills_authorized: int = 0
