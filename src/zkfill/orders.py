"""Order, offer and fill-request models.

Hidden-parameter orders are ordinary limit orders whose salt carries the
commitment: the low 160 bits hold the extension hash the settlement
contract checks, the upper 96 bits hold the low 96 bits of the commitment.
The full commitment travels in the order metadata as a decimal string.
"""

import logging
import uuid
from datetime import UTC, datetime

from eth_abi import encode
from eth_utils import keccak, to_checksum_address
from pydantic import BaseModel, ConfigDict, Field, field_validator

from zkfill.commitment import MAX_VALUE, format_commitment, parse_commitment

logger = logging.getLogger(__name__)

COMMITMENT_BITS = 96
EXTENSION_BITS = 160
COMMITMENT_MASK = (1 << COMMITMENT_BITS) - 1
EXTENSION_MASK = (1 << EXTENSION_BITS) - 1

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Maker traits flag bits
NO_PARTIAL_FILLS_FLAG = 1 << 255
ALLOW_MULTIPLE_FILLS_FLAG = 1 << 254
HAS_EXTENSION_FLAG = 1 << 249

DOMAIN_NAME = "1inch Aggregation Router"
DOMAIN_VERSION = "6"
ORDER_TYPE = (
    "Order(uint256 salt,address maker,address receiver,address makerAsset,"
    "address takerAsset,uint256 makingAmount,uint256 takingAmount,uint256 makerTraits)"
)
DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
ORDER_ABI_TYPES = [
    "bytes32",
    "uint256",
    "address",
    "address",
    "address",
    "address",
    "uint256",
    "uint256",
    "uint256",
]


# ---------------------------------------------------------------------------
# Offer and fill request
# ---------------------------------------------------------------------------


class OfferValues(BaseModel):
    """Taker-supplied public offer terms."""

    model_config = ConfigDict(frozen=True)

    offered_price: int = Field(ge=0, le=MAX_VALUE)
    offered_amount: int = Field(ge=0, le=MAX_VALUE)


class FillRequest(BaseModel):
    """One fill attempt.  A fresh attempt always gets a new ``request_id``."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    order_id: str
    commitment: int
    offer: OfferValues
    taker_address: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("commitment", mode="before")
    @classmethod
    def _parse_commitment(cls, v: int | str) -> int:
        return parse_commitment(v)

    def renew(self) -> "FillRequest":
        """Same order and terms under a new request identity."""
        return FillRequest(
            order_id=self.order_id,
            commitment=self.commitment,
            offer=self.offer,
            taker_address=self.taker_address,
        )


# ---------------------------------------------------------------------------
# Salt packing
# ---------------------------------------------------------------------------


def pack_salt(commitment: int, extension_hash: int) -> int:
    """``(commitment & 2^96-1) << 160 | extension_hash``.

    Raises:
        ValueError: If *extension_hash* does not fit in 160 bits.
    """
    if not 0 <= extension_hash <= EXTENSION_MASK:
        msg = "Extension hash must fit in 160 bits"
        raise ValueError(msg)
    return ((commitment & COMMITMENT_MASK) << EXTENSION_BITS) | extension_hash


def unpack_salt(salt: int) -> tuple[int, int]:
    """Split a salt into ``(truncated_commitment, extension_hash)``."""
    return (salt >> EXTENSION_BITS) & COMMITMENT_MASK, salt & EXTENSION_MASK


def salt_matches_commitment(salt: int, commitment: int) -> bool:
    return unpack_salt(salt)[0] == commitment & COMMITMENT_MASK


# ---------------------------------------------------------------------------
# Extension and maker traits
# ---------------------------------------------------------------------------


def build_extension(predicate: bytes) -> bytes:
    """Build an order extension carrying only a predicate.

    The first word packs the cumulative end offsets of the eight extension
    fields (``makerAssetSuffix`` .. ``postInteraction``) as 32-bit values;
    the predicate is field 4.
    """
    if not predicate:
        return b""
    ends = [0, 0, 0, 0, len(predicate), len(predicate), len(predicate), len(predicate)]
    offsets = 0
    for i, end in enumerate(ends):
        offsets |= end << (32 * i)
    return offsets.to_bytes(32, "big") + predicate


def extension_hash(extension: bytes) -> int:
    return int.from_bytes(keccak(extension), "big") & EXTENSION_MASK


def build_maker_traits(*, allow_partial_fill: bool = True, allow_multiple_fills: bool = True) -> int:
    traits = 0
    if allow_multiple_fills:
        traits |= ALLOW_MULTIPLE_FILLS_FLAG
    if not allow_partial_fill:
        traits |= NO_PARTIAL_FILLS_FLAG
    return traits


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class OrderParameters(BaseModel):
    """Public order terms registered with the maker service."""

    maker: str
    maker_asset: str
    taker_asset: str
    making_amount: int = Field(ge=0)
    taking_amount: int = Field(ge=0)
    receiver: str = ZERO_ADDRESS

    @field_validator("maker", "maker_asset", "taker_asset", "receiver")
    @classmethod
    def _checksum(cls, v: str) -> str:
        return to_checksum_address(v)


class PublishedOrder(BaseModel):
    """A limit order as submitted to settlement, plus its commitment."""

    salt: int
    maker: str
    receiver: str = ZERO_ADDRESS
    maker_asset: str
    taker_asset: str
    making_amount: int
    taking_amount: int
    maker_traits: int
    extension: str = "0x"
    commitment: str

    @classmethod
    def build(
        cls,
        params: OrderParameters,
        commitment: int,
        *,
        predicate: bytes = b"",
        maker_traits: int | None = None,
    ) -> "PublishedOrder":
        """Build an order whose salt binds *commitment* and the predicate extension."""
        extension = build_extension(predicate)
        traits = build_maker_traits() if maker_traits is None else maker_traits
        if extension:
            traits |= HAS_EXTENSION_FLAG
        return cls(
            salt=pack_salt(commitment, extension_hash(extension) if extension else 0),
            maker=params.maker,
            receiver=params.receiver,
            maker_asset=params.maker_asset,
            taker_asset=params.taker_asset,
            making_amount=params.making_amount,
            taking_amount=params.taking_amount,
            maker_traits=traits,
            extension="0x" + extension.hex(),
            commitment=format_commitment(commitment),
        )

    def extension_bytes(self) -> bytes:
        return bytes.fromhex(self.extension.removeprefix("0x"))

    def struct_values(self) -> dict[str, int | str]:
        """EIP-712 ``Order`` message fields."""
        return {
            "salt": self.salt,
            "maker": self.maker,
            "receiver": self.receiver,
            "makerAsset": self.maker_asset,
            "takerAsset": self.taker_asset,
            "makingAmount": self.making_amount,
            "takingAmount": self.taking_amount,
            "makerTraits": self.maker_traits,
        }

    def order_hash(self, chain_id: int, router: str) -> bytes:
        """EIP-712 digest the maker signs."""
        struct_hash = keccak(
            encode(
                ORDER_ABI_TYPES,
                [
                    keccak(text=ORDER_TYPE),
                    self.salt,
                    self.maker,
                    self.receiver,
                    self.maker_asset,
                    self.taker_asset,
                    self.making_amount,
                    self.taking_amount,
                    self.maker_traits,
                ],
            )
        )
        return keccak(b"\x19\x01" + domain_separator(chain_id, router) + struct_hash)


def domain_separator(chain_id: int, router: str) -> bytes:
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                keccak(text=DOMAIN_TYPE),
                keccak(text=DOMAIN_NAME),
                keccak(text=DOMAIN_VERSION),
                chain_id,
                to_checksum_address(router),
            ],
        )
    )


def typed_data(order: PublishedOrder, chain_id: int, router: str) -> dict:
    """Full EIP-712 message for wallet / ``eth_account`` signing."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Order": [
                {"name": "salt", "type": "uint256"},
                {"name": "maker", "type": "address"},
                {"name": "receiver", "type": "address"},
                {"name": "makerAsset", "type": "address"},
                {"name": "takerAsset", "type": "address"},
                {"name": "makingAmount", "type": "uint256"},
                {"name": "takingAmount", "type": "uint256"},
                {"name": "makerTraits", "type": "uint256"},
            ],
        },
        "primaryType": "Order",
        "domain": {
            "name": DOMAIN_NAME,
            "version": DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": to_checksum_address(router),
        },
        "message": order.struct_values(),
    }
