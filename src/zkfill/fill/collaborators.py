"""Async collaborators of a fill and the orchestrator that drives them.

The orchestrator owns no chain or network code.  It calls four injected
collaborators in step order and records each outcome on the attempt's
:class:`FillAuthorizationStateMachine`.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Protocol

from zkfill.commitment import parse_commitment
from zkfill.errors import (
    AuthorizationExpired,
    AuthorizationRejected,
    BindingMismatch,
    SettlementError,
    StepFailed,
    VerificationFailed,
)
from zkfill.fill.machine import FillAuthorizationStateMachine
from zkfill.fill.steps import StepId
from zkfill.maker.models import FillAuthorizationResponse
from zkfill.maker.signing import recover_order_signer
from zkfill.orders import FillRequest, salt_matches_commitment
from zkfill.predicate import PredicateAdapter, decode_predicate_payload

logger = logging.getLogger(__name__)


class AuthorizationClient(Protocol):
    """Asks the maker to authorize a fill."""

    async def request_authorization(self, request: FillRequest) -> FillAuthorizationResponse:
        ...


class TokenApprover(Protocol):
    """Makes sure settlement may spend the taker's tokens."""

    async def ensure_allowance(self, request: FillRequest) -> str | None:
        """Return the approval transaction hash, or None if none was needed."""
        ...


class SettlementClient(Protocol):
    """Broadcasts the fill transaction."""

    async def submit_fill(
        self, request: FillRequest, authorization: FillAuthorizationResponse
    ) -> str:
        """Return the hash of the broadcast transaction."""
        ...


class ConfirmationWatcher(Protocol):
    """Waits until a transaction is final; raises ``SettlementError`` on revert."""

    async def wait_for_confirmation(self, transaction_hash: str) -> None:
        ...


class FillOrchestrator:
    """Drive fill attempts through ``authorize, approve, execute, confirm``.

    Args:
        authorization_client: Maker authorization endpoint.
        approver: Token allowance handler.
        settlement: Fill submitter.
        watcher: Confirmation watcher.
        adapter: When given, the maker's proof is checked against the
            request before anything is sent on chain.
        authorization_ttl: Lifetime of an authorization for retries.
        chain_id: With *router*, enables maker signature checking.
        router: Settlement contract address used in the EIP-712 domain.
    """

    def __init__(
        self,
        authorization_client: AuthorizationClient,
        approver: TokenApprover,
        settlement: SettlementClient,
        watcher: ConfirmationWatcher,
        *,
        adapter: PredicateAdapter | None = None,
        authorization_ttl: timedelta | None = None,
        chain_id: int | None = None,
        router: str | None = None,
    ) -> None:
        self.authorization_client = authorization_client
        self.approver = approver
        self.settlement = settlement
        self.watcher = watcher
        self.adapter = adapter
        self.authorization_ttl = authorization_ttl
        self.chain_id = chain_id
        self.router = router
        self._authorizations: dict[str, FillAuthorizationResponse] = {}

    def new_attempt(self, request: FillRequest) -> FillAuthorizationStateMachine:
        return FillAuthorizationStateMachine(request, authorization_ttl=self.authorization_ttl)

    def authorization_for(self, request_id: str) -> FillAuthorizationResponse | None:
        return self._authorizations.get(request_id)

    async def fill(self, request: FillRequest) -> FillAuthorizationStateMachine:
        """Run a fresh attempt for *request* to completion."""
        machine = self.new_attempt(request)
        await self.run(machine)
        return machine

    async def run(self, machine: FillAuthorizationStateMachine) -> None:
        """Run the remaining steps of *machine*, starting at its current step.

        Call again after :meth:`FillAuthorizationStateMachine.retry` to resume.
        Stops quietly when the machine is cancelled.  The recorded
        authorization is kept only while the attempt can still be resumed.

        Raises:
            StepFailed: A step failed; the machine is left in ``failed``.
            asyncio.CancelledError: The awaiting task was cancelled; the
                machine is cancelled first.
        """
        try:
            while not machine.is_cancelled:
                step = machine.current_step
                if step is None:
                    machine.finish()
                    self._forget(machine)
                    logger.info("Fill %s confirmed", machine.request.request_id)
                    return
                await self._run_step(machine, step.id)
            self._forget(machine)
        except StepFailed as e:
            if not e.retryable or machine.authorization_expired():
                self._forget(machine)
            raise
        except asyncio.CancelledError:
            if not machine.is_terminal:
                outcome = machine.cancel()
                logger.info(
                    "Fill %s cancelled (broadcast=%s)",
                    machine.request.request_id,
                    outcome.broadcast,
                )
            self._forget(machine)
            raise

    def _forget(self, machine: FillAuthorizationStateMachine) -> None:
        self._authorizations.pop(machine.request.request_id, None)

    async def _run_step(self, machine: FillAuthorizationStateMachine, step_id: StepId) -> None:
        machine.start_step(step_id)
        try:
            tx_hash = await self._perform(machine, step_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if machine.is_cancelled:
                logger.debug("Ignoring %s error after cancellation", step_id)
                return
            failure = machine.fail_step(step_id, e)
            raise failure from e
        machine.complete_step(step_id, transaction_hash=tx_hash)

    async def _perform(
        self, machine: FillAuthorizationStateMachine, step_id: StepId
    ) -> str | None:
        request = machine.request
        if step_id == StepId.AUTHORIZE:
            response = await self.authorization_client.request_authorization(request)
            await self._check_authorization(request, response)
            self._authorizations[request.request_id] = response
            return None

        if step_id == StepId.APPROVE:
            return await self.approver.ensure_allowance(request)

        if step_id == StepId.EXECUTE:
            if machine.authorization_expired():
                raise AuthorizationExpired("Authorization expired before submission")
            authorization = self._authorizations.get(request.request_id)
            if authorization is None:
                raise AuthorizationRejected("No authorization recorded for this request")
            tx_hash = await self.settlement.submit_fill(request, authorization)
            machine.record_broadcast(tx_hash)
            return tx_hash

        tx_hash = machine.broadcast_tx_hash
        if tx_hash is None:
            raise SettlementError("No settlement transaction to confirm")
        await self.watcher.wait_for_confirmation(tx_hash)
        return tx_hash

    async def _check_authorization(
        self, request: FillRequest, response: FillAuthorizationResponse
    ) -> None:
        if not response.success or response.order_with_authorization_data is None:
            raise AuthorizationRejected(response.message or "Maker declined the fill")

        order = response.order_with_authorization_data
        try:
            order_commitment = parse_commitment(order.commitment)
        except (TypeError, ValueError) as e:
            raise BindingMismatch("Authorized order has no valid commitment") from e
        if order_commitment != request.commitment or not salt_matches_commitment(
            order.salt, request.commitment
        ):
            raise BindingMismatch("Authorized order carries a different commitment")

        if self.chain_id is not None and self.router is not None:
            if not response.signature:
                raise VerificationFailed("Authorized order is not signed")
            try:
                signer = recover_order_signer(order, response.signature, self.chain_id, self.router)
            except Exception as e:
                raise VerificationFailed("Order signature is malformed") from e
            if signer != order.maker:
                raise VerificationFailed("Order is not signed by its maker")

        if self.adapter is None:
            return
        payload = response.payload_bytes()
        bundle = None
        if payload is not None:
            try:
                _, _, bundle = decode_predicate_payload(payload)
            except ValueError as e:
                raise VerificationFailed("Authorization payload is malformed") from e
        # Pairing check runs off the event loop
        decision = await asyncio.to_thread(
            self.adapter.authorize_bundle, request.commitment, bundle, request.offer
        )
        decision.raise_for_rejection()
