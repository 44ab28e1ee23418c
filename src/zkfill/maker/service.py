"""Maker-side fill authorization.

The maker keeps each order's secret parameters in an :class:`OrderRegistry`.
When a taker asks to fill, :class:`MakerService` proves that the requested
terms meet the hidden minimums, embeds the proof in the order's predicate
extension and signs the resulting order.  Secrets never leave the registry;
responses and logs carry only the commitment and public order terms.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from eth_account.signers.local import LocalAccount
from pydantic import BaseModel

from zkfill.commitment import (
    Err,
    SecretParameters,
    format_commitment,
    parse_commitment,
    validate_secret_parameters,
)
from zkfill.errors import AuthorizationRejected, OrderNotFound, ProofGenerationFailed
from zkfill.maker.models import FillAuthorizationRequest, FillAuthorizationResponse, OrderStatus
from zkfill.maker.signing import maker_account, sign_order
from zkfill.orders import OfferValues, OrderParameters, PublishedOrder
from zkfill.predicate import PredicateAdapter, encode_predicate_payload, settlement_predicate
from zkfill.prover import ProofGenerator

logger = logging.getLogger(__name__)


@dataclass
class RegisteredOrder:
    """An order the maker is willing to authorize fills for."""

    order_id: str
    params: OrderParameters
    secrets: SecretParameters = field(repr=False)
    active: bool = True
    fills_authorized: int = 0

    @property
    def commitment(self) -> int:
        return self.secrets.commitment()

    def status(self) -> OrderStatus:
        return OrderStatus(
            commitment=format_commitment(self.commitment),
            order_id=self.order_id,
            maker=self.params.maker,
            active=self.active,
            fills_authorized=self.fills_authorized,
        )


class _StoredOrder(BaseModel):
    order_id: str
    params: OrderParameters
    secrets: SecretParameters
    active: bool = True
    fills_authorized: int = 0


class OrderRegistry:
    """Orders and their secrets, indexed by order id and by commitment.

    Args:
        path: Optional JSON file the registry is persisted to.  The file
            holds secrets and is written with owner-only permissions.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._by_id: dict[str, RegisteredOrder] = {}
        self._by_commitment: dict[int, RegisteredOrder] = {}
        if path is not None and path.exists():
            self.load()

    def __len__(self) -> int:
        return len(self._by_id)

    def register(
        self, order_id: str, params: OrderParameters, secrets: SecretParameters
    ) -> RegisteredOrder:
        """Add an order.

        Raises:
            ValueError: Invalid secrets, or the id or commitment is already registered.
        """
        validated = validate_secret_parameters(secrets)
        if isinstance(validated, Err):
            msg = f"Invalid {validated.field}: {validated.reason}"
            raise ValueError(msg)
        entry = RegisteredOrder(order_id=order_id, params=params, secrets=secrets)
        if order_id in self._by_id:
            msg = f"Order {order_id} is already registered"
            raise ValueError(msg)
        if entry.commitment in self._by_commitment:
            msg = "An order with this commitment is already registered"
            raise ValueError(msg)
        self._by_id[order_id] = entry
        self._by_commitment[entry.commitment] = entry
        return entry

    def get(self, order_id: str) -> RegisteredOrder | None:
        return self._by_id.get(order_id)

    def by_commitment(self, commitment: int | str) -> RegisteredOrder | None:
        try:
            key = parse_commitment(commitment)
        except (TypeError, ValueError):
            return None
        return self._by_commitment.get(key)

    def orders(self) -> list[RegisteredOrder]:
        return list(self._by_id.values())

    def deactivate(self, order_id: str) -> None:
        entry = self.get(order_id)
        if entry is None:
            raise OrderNotFound(f"Order {order_id} is not registered")
        entry.active = False

    def save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = [
            _StoredOrder(
                order_id=e.order_id,
                params=e.params,
                secrets=e.secrets,
                active=e.active,
                fills_authorized=e.fills_authorized,
            ).model_dump(mode="json")
            for e in self._by_id.values()
        ]
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)

    def load(self) -> None:
        if self.path is None:
            return
        with open(self.path) as f:
            data = json.load(f)
        for raw in data:
            stored = _StoredOrder.model_validate(raw)
            entry = self.register(stored.order_id, stored.params, stored.secrets)
            entry.active = stored.active
            entry.fills_authorized = stored.fills_authorized
        logger.info("Loaded %d orders from %s", len(self._by_id), self.path)


class MakerService:
    """Authorize fills of registered hidden-parameter orders.

    Args:
        registry: Registered orders and their secrets.
        generator: Proof generator sharing one proving context.
        account: Maker signing account; fills are refused without one.
        chain_id: Chain of the settlement contract.
        router: Settlement contract address (EIP-712 verifying contract).
        predicate_address: Deployed predicate adapter the order calls.
        adapter: Gate each fresh proof must pass before the order is
            signed.  Built from the context's verification key by
            :func:`zkfill.factory.create_maker_service`.
    """

    def __init__(
        self,
        registry: OrderRegistry,
        generator: ProofGenerator,
        account: LocalAccount | None,
        *,
        chain_id: int,
        router: str,
        predicate_address: str,
        adapter: PredicateAdapter | None = None,
    ) -> None:
        self.registry = registry
        self.generator = generator
        self.account = account
        self.chain_id = chain_id
        self.router = router
        self.predicate_address = predicate_address
        self.adapter = adapter

    @classmethod
    def from_private_key(
        cls,
        registry: OrderRegistry,
        generator: ProofGenerator,
        private_key: str | None,
        **kwargs,
    ) -> "MakerService":
        account = maker_account(private_key) if private_key else None
        return cls(registry, generator, account, **kwargs)

    def register_order(
        self,
        params: OrderParameters,
        secrets: SecretParameters,
        order_id: str | None = None,
    ) -> RegisteredOrder:
        """Register an order; the id defaults to the hash of its unextended form."""
        if order_id is None:
            base = PublishedOrder.build(params, secrets.commitment())
            order_id = "0x" + base.order_hash(self.chain_id, self.router).hex()
        entry = self.registry.register(order_id, params, secrets)
        self.registry.save()
        logger.info(
            "Registered order %s with commitment %s",
            order_id,
            format_commitment(entry.commitment)[:12],
        )
        return entry

    def order_status(self, commitment: int | str) -> OrderStatus | None:
        entry = self.registry.by_commitment(commitment)
        return entry.status() if entry else None

    async def authorize_fill(self, request: FillAuthorizationRequest) -> FillAuthorizationResponse:
        """Prove and sign an order authorizing *request*.

        The offered amount is ``fill_amount``; the offered price defaults to
        ``fill_amount`` when the request omits it.

        Raises:
            OrderNotFound: Unknown order id.
            AuthorizationRejected: The order is inactive or the maker key
                does not match the order's maker.
            ConstraintViolation: The requested terms miss a hidden minimum.
            ProofGenerationFailed: Proving failed or the fresh proof does not verify.
        """
        entry = self.registry.get(request.order_id)
        if entry is None:
            raise OrderNotFound(f"Order {request.order_id} is not registered")
        if not entry.active:
            raise AuthorizationRejected(f"Order {request.order_id} is no longer active")
        if self.account is None:
            raise AuthorizationRejected("Maker signing key is not configured")
        if self.account.address != entry.params.maker:
            raise AuthorizationRejected("Order maker does not match the maker key")

        offer = OfferValues(
            offered_price=request.offered_price or request.fill_amount,
            offered_amount=request.fill_amount,
        )
        commitment = entry.commitment
        bundle = await self.generator.prove(entry.secrets, commitment, offer)
        if self.adapter is not None:
            decision = await asyncio.to_thread(
                self.adapter.authorize_bundle, commitment, bundle, offer
            )
            if not decision.authorized:
                logger.error(
                    "Fresh proof for order %s was rejected (%s); check the circuit artifacts",
                    request.order_id,
                    decision.reason,
                )
                raise ProofGenerationFailed("Generated proof does not verify")

        payload = encode_predicate_payload(commitment, offer, bundle)
        order = PublishedOrder.build(
            entry.params,
            commitment,
            predicate=settlement_predicate(self.predicate_address, payload),
        )
        signature, order_hash = sign_order(order, self.account, self.chain_id, self.router)
        entry.fills_authorized += 1
        self.registry.save()

        logger.info(
            "Authorized fill of order %s for taker %s", request.order_id, request.taker_address
        )
        return FillAuthorizationResponse(
            success=True,
            order_with_authorization_data=order,
            signature=signature,
            order_hash=order_hash,
            predicate_payload="0x" + payload.hex(),
        )
