"""Exception taxonomy for proof generation, authorization and fills.

Every error carries a ``retryable`` flag and a ``user_message`` shown on the
failed fill step.  Constraint violations and binding mismatches are terminal
for a fill request; proving and settlement failures may be retried by
re-entering the failed step.  Messages never include secret values.
"""


class ZkFillError(Exception):
    """Base class for all zkfill errors."""

    retryable: bool = False
    user_message: str = "The fill could not be completed"


# ---------------------------------------------------------------------------
# Locally detected constraint violations (before any proving work)
# ---------------------------------------------------------------------------


class ConstraintViolation(ZkFillError):
    """The inputs cannot produce a valid proof."""


class CommitmentMismatch(ConstraintViolation):
    """Secret parameters do not hash to the declared commitment."""

    user_message = "Order parameters do not match the published commitment"


class PriceConstraintViolated(ConstraintViolation):
    """Offered price is below the hidden minimum price."""

    user_message = "Offered price does not meet the order's requirements"


class AmountConstraintViolated(ConstraintViolation):
    """Offered amount is below the hidden minimum amount."""

    user_message = "Offered amount does not meet the order's requirements"


# ---------------------------------------------------------------------------
# Proof pipeline
# ---------------------------------------------------------------------------


class ProofGenerationFailed(ZkFillError):
    """The proving system failed (bad artifacts, timeout, resource exhaustion)."""

    retryable = True
    user_message = "Proof generation failed, please try again"


class VerificationFailed(ZkFillError):
    """A proof did not pass the pairing check."""

    user_message = "The authorization proof is invalid or stale"


class BindingMismatch(ZkFillError):
    """Proof public signals do not match the fill request's terms."""

    user_message = "The authorization does not match the requested fill"


class ArtifactError(ZkFillError):
    """Proving or verification key artifacts are missing, malformed or mismatched."""

    user_message = "Circuit artifacts are unavailable"


# ---------------------------------------------------------------------------
# Fill flow
# ---------------------------------------------------------------------------


class AuthorizationRejected(ZkFillError):
    """The maker refused to authorize the fill."""

    user_message = "The maker declined to authorize this fill"


class OrderNotFound(ZkFillError):
    """No order is registered under the requested identifier."""

    user_message = "Order not found"


class SettlementError(ZkFillError):
    """Token approval, submission or confirmation failed at the settlement layer."""

    retryable = True
    user_message = "Transaction failed, please try again"


class AuthorizationExpired(ZkFillError):
    """The authorization for this attempt has expired."""

    user_message = "The authorization has expired, start a new fill"


class StepFailed(ZkFillError):
    """A fill step failed.

    Args:
        step_id: Identifier of the failed step.
        cause: The underlying error.
    """

    def __init__(self, step_id: str, cause: BaseException) -> None:
        self.step_id = step_id
        self.cause = cause
        super().__init__(f"Step '{step_id}' failed: {describe_error(cause)}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return is_retryable(self.cause)

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return describe_error(self.cause)


class InvalidStepTransition(ZkFillError):
    """A step was moved out of order (e.g. started before its predecessor succeeded)."""


class AttemptNotRetryable(ZkFillError):
    """The failed attempt cannot be resumed; a new fill request is required."""

    user_message = "This fill cannot be retried, start a new fill"


class ConfigError(ZkFillError):
    """Configuration loading or validation error."""


def is_retryable(error: BaseException) -> bool:
    """Whether *error* may be retried by re-entering the failed step.

    Errors outside the taxonomy (typically network errors raised by a
    collaborator) count as transient.
    """
    if isinstance(error, ZkFillError):
        return bool(error.retryable)
    return isinstance(error, (OSError, TimeoutError, ConnectionError))


def describe_error(error: BaseException) -> str:
    """User-visible message for *error*, free of secret values."""
    if isinstance(error, ZkFillError):
        return error.user_message
    if isinstance(error, (OSError, TimeoutError, ConnectionError)):
        return "Network error, please try again"
    return "Unexpected error"
