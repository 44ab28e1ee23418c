"""The four ordered steps of a fill attempt and helpers over them."""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum


class StepState(StrEnum):
    PENDING = "pending"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class StepId(StrEnum):
    AUTHORIZE = "authorize"
    APPROVE = "approve"
    EXECUTE = "execute"
    CONFIRM = "confirm"


STEP_ORDER = (StepId.AUTHORIZE, StepId.APPROVE, StepId.EXECUTE, StepId.CONFIRM)

_STEP_TEXT = {
    StepId.AUTHORIZE: ("Request Authorization", "Requesting ZK proof from maker for order fill"),
    StepId.APPROVE: ("Token Approval", "Approve spending of taker tokens"),
    StepId.EXECUTE: ("Execute Order", "Submit order fill transaction to blockchain"),
    StepId.CONFIRM: ("Confirm Transaction", "Wait for blockchain confirmation"),
}


@dataclass
class TransactionStep:
    """One step of a fill attempt; mutated in place by the state machine."""

    id: StepId
    title: str
    description: str
    state: StepState = StepState.PENDING
    transaction_hash: str | None = None
    timestamp: datetime | None = None
    error: str | None = None


def create_transaction_steps() -> list[TransactionStep]:
    """Fresh ``authorize, approve, execute, confirm`` steps, all pending."""
    return [
        TransactionStep(id=sid, title=_STEP_TEXT[sid][0], description=_STEP_TEXT[sid][1])
        for sid in STEP_ORDER
    ]


def current_step(steps: list[TransactionStep]) -> TransactionStep | None:
    """The step in progress, or the first step after the last success.

    Falls back to the first step when nothing has succeeded yet and returns
    ``None`` once every step has succeeded.
    """
    for step in steps:
        if step.state == StepState.LOADING:
            return step
    last_success = -1
    for i in range(len(steps) - 1, -1, -1):
        if steps[i].state == StepState.SUCCESS:
            last_success = i
            break
    if last_success == -1:
        return steps[0] if steps else None
    nxt = last_success + 1
    return steps[nxt] if nxt < len(steps) else None


def is_complete(steps: list[TransactionStep]) -> bool:
    return all(step.state == StepState.SUCCESS for step in steps)


def has_failed(steps: list[TransactionStep]) -> bool:
    return any(step.state == StepState.ERROR for step in steps)


def progress(steps: list[TransactionStep]) -> int:
    """Percentage of steps that succeeded, rounded."""
    if not steps:
        return 0
    done = sum(1 for step in steps if step.state == StepState.SUCCESS)
    return round(done * 100 / len(steps))


def format_step_duration(step: TransactionStep, now: datetime | None = None) -> str:
    """Time since the step last changed, as ``"42s"`` or ``"3m 5s"``."""
    if step.timestamp is None:
        return ""
    now = now or datetime.now(UTC)
    seconds = max(0, int((now - step.timestamp).total_seconds()))
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds // 60}m {seconds % 60}s"
