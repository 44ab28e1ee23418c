"""Fill attempts: ordered steps, the per-attempt state machine and its orchestrator."""

from .collaborators import (
    AuthorizationClient,
    ConfirmationWatcher,
    FillOrchestrator,
    SettlementClient,
    TokenApprover,
)
from .machine import (
    CancellationOutcome,
    FillAuthorizationStateMachine,
    FillState,
    StepTransition,
)
from .steps import (
    StepId,
    StepState,
    TransactionStep,
    create_transaction_steps,
    current_step,
    format_step_duration,
    has_failed,
    is_complete,
    progress,
)

__all__ = [
    "AuthorizationClient",
    "CancellationOutcome",
    "ConfirmationWatcher",
    "FillAuthorizationStateMachine",
    "FillOrchestrator",
    "FillState",
    "SettlementClient",
    "StepId",
    "StepState",
    "StepTransition",
    "TokenApprover",
    "TransactionStep",
    "create_transaction_steps",
    "current_step",
    "format_step_duration",
    "has_failed",
    "is_complete",
    "progress",
]
