"""Per-attempt fill state machine.

One :class:`FillAuthorizationStateMachine` tracks one :class:`FillRequest`
through ``authorize -> approve -> execute -> confirm``.  A step may start
only after its predecessor succeeded; a step error fails the whole attempt
and nothing advances on its own.  Every change is published to subscribed
observers as a :class:`StepTransition`, which keeps orchestration free of
presentation concerns.

Example:
    >>> machine = FillAuthorizationStateMachine(request)
    >>> machine.start_step(StepId.AUTHORIZE)
    >>> machine.complete_step(StepId.AUTHORIZE)
    >>> machine.current_step.id
    <StepId.APPROVE: 'approve'>
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from zkfill.errors import AttemptNotRetryable, InvalidStepTransition, StepFailed, describe_error
from zkfill.fill.steps import (
    STEP_ORDER,
    StepId,
    StepState,
    TransactionStep,
    create_transaction_steps,
    current_step,
    has_failed,
    is_complete,
    progress,
)
from zkfill.orders import FillRequest

logger = logging.getLogger(__name__)


class FillState(StrEnum):
    IDLE = "idle"
    AUTHORIZING = "authorizing"
    AUTHORIZED = "authorized"
    CONFIRMING_APPROVE = "confirming_approve"
    CONFIRMING_EXECUTE = "confirming_execute"
    CONFIRMED = "confirmed"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Attempt state while a step is loading / once it has succeeded
_LOADING_STATE = {
    StepId.AUTHORIZE: FillState.AUTHORIZING,
    StepId.APPROVE: FillState.CONFIRMING_APPROVE,
    StepId.EXECUTE: FillState.CONFIRMING_EXECUTE,
    StepId.CONFIRM: FillState.CONFIRMING_EXECUTE,
}
_SUCCESS_STATE = {
    StepId.AUTHORIZE: FillState.AUTHORIZED,
    StepId.APPROVE: FillState.CONFIRMING_APPROVE,
    StepId.EXECUTE: FillState.CONFIRMING_EXECUTE,
    StepId.CONFIRM: FillState.CONFIRMED,
}


@dataclass(frozen=True)
class StepTransition:
    """One observable change of a step and/or the attempt state."""

    request_id: str
    step_id: StepId | None
    step_state: StepState | None
    previous_state: FillState
    state: FillState
    timestamp: datetime
    transaction_hash: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class CancellationOutcome:
    """Result of cancelling an attempt.

    ``broadcast`` is True when a settlement transaction was already sent; it
    cannot be recalled, cancelling only stops local tracking.
    """

    broadcast: bool
    transaction_hash: str | None = None


Observer = Callable[[StepTransition], None]


class FillAuthorizationStateMachine:
    """Track one fill attempt.

    Args:
        request: The fill request this attempt belongs to.
        authorization_ttl: How long an authorization stays usable for
            retries, counted from the authorize step's success.
        clock: Source of the current time.
    """

    def __init__(
        self,
        request: FillRequest,
        *,
        authorization_ttl: timedelta | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.request = request
        self.steps = create_transaction_steps()
        self.state = FillState.IDLE
        self.failure: StepFailed | None = None
        self.authorization_expires_at: datetime | None = None
        self.broadcast_tx_hash: str | None = None
        self._authorization_ttl = authorization_ttl
        self._clock = clock or (lambda: datetime.now(UTC))
        self._observers: list[Observer] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register *observer*; returns a function that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _emit(self, step: TransactionStep | None, previous: FillState) -> None:
        event = StepTransition(
            request_id=self.request.request_id,
            step_id=step.id if step else None,
            step_state=step.state if step else None,
            previous_state=previous,
            state=self.state,
            timestamp=self._clock(),
            transaction_hash=step.transaction_hash if step else None,
            error=step.error if step else None,
        )
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("Fill observer raised; continuing")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def step(self, step_id: StepId | str) -> TransactionStep:
        sid = StepId(step_id)
        return self.steps[STEP_ORDER.index(sid)]

    @property
    def current_step(self) -> TransactionStep | None:
        return current_step(self.steps)

    @property
    def is_terminal(self) -> bool:
        return self.state in (FillState.SUCCESS, FillState.CANCELLED)

    @property
    def is_cancelled(self) -> bool:
        return self.state == FillState.CANCELLED

    def progress(self) -> int:
        return progress(self.steps)

    def is_complete(self) -> bool:
        return is_complete(self.steps)

    def has_failed(self) -> bool:
        return has_failed(self.steps)

    def authorization_expired(self) -> bool:
        if self.authorization_expires_at is None:
            return False
        return self._clock() >= self.authorization_expires_at

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _previous(self, step_id: StepId) -> TransactionStep | None:
        i = STEP_ORDER.index(step_id)
        return self.steps[i - 1] if i else None

    def start_step(self, step_id: StepId | str) -> None:
        """Move a pending step to ``loading``.

        Ignored after cancellation.

        Raises:
            InvalidStepTransition: The attempt is finished or failed, the
                step is not pending, or its predecessor has not succeeded.
        """
        if self.is_cancelled:
            return
        sid = StepId(step_id)
        if self.state in (FillState.SUCCESS, FillState.FAILED):
            raise InvalidStepTransition(f"Cannot start '{sid}' in state '{self.state}'")
        step = self.step(sid)
        if step.state != StepState.PENDING:
            raise InvalidStepTransition(f"Step '{sid}' is {step.state}, not pending")
        previous = self._previous(sid)
        if previous is not None and previous.state != StepState.SUCCESS:
            raise InvalidStepTransition(f"Step '{sid}' cannot start before '{previous.id}' succeeds")

        step.state = StepState.LOADING
        step.timestamp = self._clock()
        before, self.state = self.state, _LOADING_STATE[sid]
        logger.debug("Fill %s: %s loading", self.request.request_id, sid)
        self._emit(step, before)

    def complete_step(self, step_id: StepId | str, *, transaction_hash: str | None = None) -> None:
        """Mark a loading step successful.  Ignored after cancellation.

        Raises:
            InvalidStepTransition: The step is not loading.
        """
        if self.is_cancelled:
            return
        sid = StepId(step_id)
        step = self.step(sid)
        if step.state != StepState.LOADING:
            raise InvalidStepTransition(f"Step '{sid}' is {step.state}, not loading")

        step.state = StepState.SUCCESS
        step.timestamp = self._clock()
        step.error = None
        if transaction_hash is not None:
            step.transaction_hash = transaction_hash
        if sid == StepId.EXECUTE and transaction_hash is not None:
            self.broadcast_tx_hash = transaction_hash
        if sid == StepId.AUTHORIZE and self._authorization_ttl is not None:
            self.authorization_expires_at = step.timestamp + self._authorization_ttl

        before, self.state = self.state, _SUCCESS_STATE[sid]
        logger.debug("Fill %s: %s succeeded", self.request.request_id, sid)
        self._emit(step, before)

    def record_broadcast(self, transaction_hash: str) -> None:
        """Note that the settlement transaction left this process."""
        self.broadcast_tx_hash = transaction_hash
        self.step(StepId.EXECUTE).transaction_hash = transaction_hash

    def fail_step(self, step_id: StepId | str, cause: BaseException) -> StepFailed:
        """Mark a step as errored and fail the attempt.

        The step must be loading, or pending and the current step (a
        collaborator can fail before its step gets going).  Returns the
        ``StepFailed`` describing the failure (also kept in :attr:`failure`).
        Ignored after cancellation.

        Raises:
            InvalidStepTransition: The attempt already finished or failed, or
                the step is neither loading nor the pending current step.
        """
        sid = StepId(step_id)
        failure = StepFailed(sid.value, cause)
        if self.is_cancelled:
            return failure
        if self.state in (FillState.SUCCESS, FillState.FAILED):
            raise InvalidStepTransition(f"Cannot fail '{sid}' in state '{self.state}'")
        step = self.step(sid)
        pending_current = step.state == StepState.PENDING and self.current_step is step
        if step.state != StepState.LOADING and not pending_current:
            raise InvalidStepTransition(f"Step '{sid}' is {step.state}, not loading or current")

        step.state = StepState.ERROR
        step.timestamp = self._clock()
        step.error = describe_error(cause)
        self.failure = failure
        before, self.state = self.state, FillState.FAILED
        logger.info(
            "Fill %s failed at %s: %s", self.request.request_id, sid, type(cause).__name__
        )
        self._emit(step, before)
        return failure

    def retry(self) -> TransactionStep:
        """Re-enter the failed step, leaving earlier successes intact.

        Returns the step to run again (now pending).

        Raises:
            InvalidStepTransition: The attempt has not failed.
            AttemptNotRetryable: The cause is terminal or the authorization
                expired; a new fill request is required.
        """
        if self.state != FillState.FAILED or self.failure is None:
            raise InvalidStepTransition(f"Nothing to retry in state '{self.state}'")
        if not self.failure.retryable:
            raise AttemptNotRetryable(
                f"Failure at '{self.failure.step_id}' is not retryable; create a new fill request"
            )
        if self.authorization_expired():
            raise AttemptNotRetryable("Authorization expired; create a new fill request")

        step = self.step(self.failure.step_id)
        step.state = StepState.PENDING
        step.error = None
        step.timestamp = self._clock()
        self.failure = None
        before, self.state = self.state, self._resume_state()
        logger.info("Fill %s: retrying %s", self.request.request_id, step.id)
        self._emit(step, before)
        return step

    def _resume_state(self) -> FillState:
        state = FillState.IDLE
        for step in self.steps:
            if step.state != StepState.SUCCESS:
                break
            state = _SUCCESS_STATE[step.id]
        return state

    def finish(self) -> None:
        """Close a fully confirmed attempt as ``success``.

        Raises:
            InvalidStepTransition: Not every step has succeeded.
        """
        if self.is_cancelled:
            return
        if not self.is_complete():
            raise InvalidStepTransition("Cannot finish before every step succeeds")
        before, self.state = self.state, FillState.SUCCESS
        self._emit(None, before)

    def cancel(self) -> CancellationOutcome:
        """Stop tracking this attempt.

        Raises:
            InvalidStepTransition: The attempt already succeeded or was cancelled.
        """
        if self.is_terminal:
            raise InvalidStepTransition(f"Cannot cancel in state '{self.state}'")
        before, self.state = self.state, FillState.CANCELLED
        outcome = CancellationOutcome(
            broadcast=self.broadcast_tx_hash is not None,
            transaction_hash=self.broadcast_tx_hash,
        )
        if outcome.broadcast:
            logger.warning(
                "Fill %s cancelled locally after broadcast of %s; the transaction may still land",
                self.request.request_id,
                outcome.transaction_hash,
            )
        self._emit(None, before)
        return outcome
