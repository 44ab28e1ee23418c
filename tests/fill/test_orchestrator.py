"""Tests for the fill orchestrator with in-memory collaborators."""

import asyncio
import time
from datetime import timedelta

import pytest

from zkfill.errors import (
    AuthorizationRejected,
    BindingMismatch,
    SettlementError,
    StepFailed,
    VerificationFailed,
)
from zkfill.fill.collaborators import FillOrchestrator
from zkfill.fill.machine import FillState
from zkfill.fill.steps import StepId, StepState
from zkfill.maker.models import FillAuthorizationResponse
from zkfill.maker.signing import maker_account, sign_order
from zkfill.orders import PublishedOrder
from zkfill.predicate import AuthorizationDecision

CHAIN_ID = 31337
ROUTER = "0x111111125421cA6dc452d289314280a0f8842A65"


class FakeMaker:
    def __init__(self, response, *, errors=None, delay=0.0):
        self.response = response
        self.errors = list(errors or [])
        self.delay = delay
        self.calls = 0

    async def request_authorization(self, request):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.errors:
            raise self.errors.pop(0)
        return self.response


class FakeApprover:
    def __init__(self, errors=None):
        self.errors = list(errors or [])
        self.calls = 0

    async def ensure_allowance(self, request):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "0xapprove"


class FakeSettlement:
    def __init__(self):
        self.submitted = []

    async def submit_fill(self, request, authorization):
        self.submitted.append((request.request_id, authorization))
        return "0xfill"


class FakeWatcher:
    def __init__(self, errors=None, delay=0.0):
        self.errors = list(errors or [])
        self.delay = delay
        self.watched = []

    async def wait_for_confirmation(self, transaction_hash):
        self.watched.append(transaction_hash)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.errors:
            raise self.errors.pop(0)


@pytest.fixture
def authorized(order_params, commitment):
    order = PublishedOrder.build(order_params, commitment)
    return FillAuthorizationResponse(success=True, order_with_authorization_data=order)


def make_orchestrator(maker, *, approver=None, settlement=None, watcher=None, **kwargs):
    return FillOrchestrator(
        maker,
        approver or FakeApprover(),
        settlement or FakeSettlement(),
        watcher or FakeWatcher(),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_fill_happy_path(fill_request, authorized):
    """Every collaborator is called once, in step order."""
    settlement = FakeSettlement()
    watcher = FakeWatcher()
    orchestrator = make_orchestrator(
        FakeMaker(authorized), settlement=settlement, watcher=watcher
    )

    machine = await orchestrator.fill(fill_request)

    assert machine.state == FillState.SUCCESS
    assert machine.progress() == 100
    assert machine.step(StepId.APPROVE).transaction_hash == "0xapprove"
    assert machine.step(StepId.EXECUTE).transaction_hash == "0xfill"
    assert machine.step(StepId.CONFIRM).transaction_hash == "0xfill"
    assert settlement.submitted == [(fill_request.request_id, authorized)]
    assert watcher.watched == ["0xfill"]
    assert orchestrator.authorization_for(fill_request.request_id) is None


@pytest.mark.asyncio
async def test_maker_refusal_fails_authorize(fill_request):
    refusal = FillAuthorizationResponse(success=False, message="Order is not active")
    orchestrator = make_orchestrator(FakeMaker(refusal))

    with pytest.raises(StepFailed) as exc_info:
        await orchestrator.fill(fill_request)

    assert isinstance(exc_info.value.cause, AuthorizationRejected)
    assert not exc_info.value.retryable


@pytest.mark.asyncio
async def test_commitment_mismatch_is_binding_error(fill_request, order_params, commitment):
    """An authorization for another order's commitment is refused."""
    other = PublishedOrder.build(order_params, commitment + 1)
    response = FillAuthorizationResponse(success=True, order_with_authorization_data=other)
    settlement = FakeSettlement()
    orchestrator = make_orchestrator(FakeMaker(response), settlement=settlement)
    machine = orchestrator.new_attempt(fill_request)

    with pytest.raises(StepFailed) as exc_info:
        await orchestrator.run(machine)

    assert isinstance(exc_info.value.cause, BindingMismatch)
    assert machine.state == FillState.FAILED
    assert machine.step(StepId.AUTHORIZE).state == StepState.ERROR
    assert settlement.submitted == []


@pytest.mark.asyncio
async def test_retry_after_transient_failure(fill_request, authorized):
    """A failed approval is retried without repeating authorization."""
    maker = FakeMaker(authorized)
    approver = FakeApprover(errors=[ConnectionError("rpc down")])
    orchestrator = make_orchestrator(maker, approver=approver)
    machine = orchestrator.new_attempt(fill_request)

    with pytest.raises(StepFailed):
        await orchestrator.run(machine)
    assert machine.step(StepId.APPROVE).error == "Network error, please try again"

    machine.retry()
    await orchestrator.run(machine)

    assert machine.state == FillState.SUCCESS
    assert maker.calls == 1
    assert approver.calls == 2


@pytest.mark.asyncio
async def test_confirmation_revert(fill_request, authorized):
    watcher = FakeWatcher(errors=[SettlementError("reverted")])
    orchestrator = make_orchestrator(FakeMaker(authorized), watcher=watcher)
    machine = orchestrator.new_attempt(fill_request)

    with pytest.raises(StepFailed) as exc_info:
        await orchestrator.run(machine)

    assert exc_info.value.step_id == "confirm"
    assert machine.broadcast_tx_hash == "0xfill"


@pytest.mark.asyncio
async def test_expired_authorization_blocks_execute(fill_request, authorized):
    orchestrator = make_orchestrator(
        FakeMaker(authorized),
        approver=FakeApprover(errors=[ConnectionError()]),
        authorization_ttl=timedelta(seconds=0),
    )
    machine = orchestrator.new_attempt(fill_request)

    with pytest.raises(StepFailed):
        await orchestrator.run(machine)

    from zkfill.errors import AttemptNotRetryable

    with pytest.raises(AttemptNotRetryable):
        machine.retry()


@pytest.mark.asyncio
async def test_cancel_during_authorization(fill_request, authorized):
    """Cancelling the task cancels the attempt and nothing is submitted."""
    settlement = FakeSettlement()
    orchestrator = make_orchestrator(FakeMaker(authorized, delay=5), settlement=settlement)
    machine = orchestrator.new_attempt(fill_request)

    task = asyncio.create_task(orchestrator.run(machine))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert machine.state == FillState.CANCELLED
    assert settlement.submitted == []


@pytest.mark.asyncio
async def test_cancel_after_broadcast(fill_request, authorized):
    orchestrator = make_orchestrator(FakeMaker(authorized), watcher=FakeWatcher(delay=5))
    machine = orchestrator.new_attempt(fill_request)
    outcomes = []
    machine.subscribe(
        lambda e: outcomes.append(e.state) if e.state == FillState.CANCELLED else None
    )

    task = asyncio.create_task(orchestrator.run(machine))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert machine.is_cancelled
    assert machine.broadcast_tx_hash == "0xfill"
    assert outcomes == [FillState.CANCELLED]


@pytest.mark.asyncio
async def test_signature_checked(fill_request, authorized, maker_key):
    order = authorized.order_with_authorization_data
    signature, order_hash = sign_order(order, maker_account(maker_key), CHAIN_ID, ROUTER)
    signed = authorized.model_copy(update={"signature": signature, "order_hash": order_hash})

    orchestrator = make_orchestrator(FakeMaker(signed), chain_id=CHAIN_ID, router=ROUTER)
    machine = await orchestrator.fill(fill_request)
    assert machine.state == FillState.SUCCESS


@pytest.mark.asyncio
async def test_wrong_signer_rejected(fill_request, authorized):
    other_key = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
    order = authorized.order_with_authorization_data
    signature, _ = sign_order(order, maker_account(other_key), CHAIN_ID, ROUTER)
    signed = authorized.model_copy(update={"signature": signature})

    orchestrator = make_orchestrator(FakeMaker(signed), chain_id=CHAIN_ID, router=ROUTER)
    with pytest.raises(StepFailed) as exc_info:
        await orchestrator.fill(fill_request)
    assert isinstance(exc_info.value.cause, VerificationFailed)


@pytest.mark.asyncio
async def test_unsigned_order_rejected_when_checking(fill_request, authorized):
    orchestrator = make_orchestrator(FakeMaker(authorized), chain_id=CHAIN_ID, router=ROUTER)
    with pytest.raises(StepFailed) as exc_info:
        await orchestrator.fill(fill_request)
    assert isinstance(exc_info.value.cause, VerificationFailed)


@pytest.mark.slow
@pytest.mark.asyncio
async def test_adapter_checks_proof(
    fill_request, order_params, commitment, good_offer, proving_context, scenario_bundle
):
    """With an adapter the maker's proof must authorize the requested offer."""
    from zkfill.predicate import PredicateAdapter, encode_predicate_payload

    payload = encode_predicate_payload(commitment, good_offer, scenario_bundle)
    order = PublishedOrder.build(order_params, commitment, predicate=payload)
    response = FillAuthorizationResponse(
        success=True, order_with_authorization_data=order, predicate_payload="0x" + payload.hex()
    )
    adapter = PredicateAdapter(proving_context.verification_key)

    machine = await make_orchestrator(FakeMaker(response), adapter=adapter).fill(fill_request)
    assert machine.state == FillState.SUCCESS

    larger = fill_request.model_copy(
        update={"offer": good_offer.model_copy(update={"offered_amount": 60})}
    )
    with pytest.raises(StepFailed) as exc_info:
        await make_orchestrator(FakeMaker(response), adapter=adapter).fill(larger)
    assert isinstance(exc_info.value.cause, BindingMismatch)


@pytest.mark.slow
@pytest.mark.asyncio
async def test_adapter_requires_payload(fill_request, authorized, proving_context):
    from zkfill.predicate import PredicateAdapter

    adapter = PredicateAdapter(proving_context.verification_key)
    with pytest.raises(StepFailed) as exc_info:
        await make_orchestrator(FakeMaker(authorized), adapter=adapter).fill(fill_request)
    assert isinstance(exc_info.value.cause, VerificationFailed)


class SlowAdapter:
    """Stands in for a pairing check that holds the CPU."""

    def __init__(self, seconds):
        self.seconds = seconds
        self.calls = 0

    def authorize_bundle(self, commitment, bundle, offer):
        self.calls += 1
        time.sleep(self.seconds)
        return AuthorizationDecision.approve()


@pytest.mark.asyncio
async def test_authorization_check_does_not_block_loop(fill_request, authorized):
    """Other tasks keep running while the maker's proof is checked."""
    ticks = 0
    stop = asyncio.Event()

    async def ticker():
        nonlocal ticks
        while not stop.is_set():
            ticks += 1
            await asyncio.sleep(0.01)

    adapter = SlowAdapter(0.3)
    orchestrator = make_orchestrator(FakeMaker(authorized), adapter=adapter)
    ticking = asyncio.create_task(ticker())

    machine = await orchestrator.fill(fill_request)
    stop.set()
    await ticking

    assert machine.state == FillState.SUCCESS
    assert adapter.calls == 1
    assert ticks >= 10


@pytest.mark.asyncio
async def test_cancel_during_authorization_check(fill_request, authorized):
    settlement = FakeSettlement()
    orchestrator = make_orchestrator(
        FakeMaker(authorized), settlement=settlement, adapter=SlowAdapter(0.5)
    )
    machine = orchestrator.new_attempt(fill_request)

    task = asyncio.create_task(orchestrator.run(machine))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert machine.state == FillState.CANCELLED
    assert settlement.submitted == []
    assert orchestrator.authorization_for(fill_request.request_id) is None


@pytest.mark.asyncio
async def test_authorization_kept_only_while_resumable(fill_request, authorized):
    orchestrator = make_orchestrator(
        FakeMaker(authorized), approver=FakeApprover(errors=[ConnectionError()])
    )
    machine = orchestrator.new_attempt(fill_request)

    with pytest.raises(StepFailed):
        await orchestrator.run(machine)
    assert orchestrator.authorization_for(fill_request.request_id) is authorized

    machine.retry()
    await orchestrator.run(machine)
    assert orchestrator.authorization_for(fill_request.request_id) is None


@pytest.mark.asyncio
async def test_authorization_dropped_on_terminal_failure(fill_request, authorized):
    watcher = FakeWatcher(errors=[BindingMismatch()])
    orchestrator = make_orchestrator(FakeMaker(authorized), watcher=watcher)

    with pytest.raises(StepFailed) as exc_info:
        await orchestrator.fill(fill_request)

    assert not exc_info.value.retryable
    assert orchestrator.authorization_for(fill_request.request_id) is None


@pytest.mark.asyncio
async def test_authorization_dropped_after_cancel(fill_request, authorized):
    orchestrator = make_orchestrator(FakeMaker(authorized), watcher=FakeWatcher(delay=5))
    machine = orchestrator.new_attempt(fill_request)

    task = asyncio.create_task(orchestrator.run(machine))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert machine.is_cancelled
    assert orchestrator.authorization_for(fill_request.request_id) is None
