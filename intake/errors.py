"""
Failure taxonomy for case orchestration.

Every error here is a Temporal ApplicationError, so it keeps its type name
when it crosses an activity, workflow or child-workflow boundary. Callers
on the far side match on ``error.type`` (see ``failure_type``).
"""

from typing import Any, Optional

from temporalio.exceptions import ApplicationError, FailureError


class IntakeError(ApplicationError):
    """Base class; subclasses decide whether Temporal may retry them."""

    retryable = False

    def __init__(self, message: str, *details: Any) -> None:
        super().__init__(
            message,
            *details,
            type=type(self).__name__,
            non_retryable=not self.retryable,
        )


class TransportFailure(IntakeError):
    """Transient network or API error talking to an external platform."""

    retryable = True


class PlatformRejection(IntakeError):
    """Permanent rejection by a platform, e.g. an invalid destination."""


class SignalTimeout(IntakeError):
    """An expected human or webhook event did not arrive in its window."""


class SignatureTimeout(SignalTimeout):
    pass


class VerificationTimeout(SignalTimeout):
    pass


class SignatureDeclined(IntakeError):
    pass


class NoContactAfterMaxAttempts(IntakeError):
    pass


class MissingProviderContact(IntakeError):
    pass


class ProvidersNotVerified(IntakeError):
    """Records were requested before the verification gate closed."""


class TranscriptParseError(IntakeError):
    pass


def failure_type(error: BaseException) -> Optional[str]:
    """Innermost ApplicationError type in a Temporal failure chain."""
    found: Optional[str] = None
    current: Optional[BaseException] = error
    while current is not None:
        if isinstance(current, ApplicationError) and current.type:
            found = current.type
        current = current.cause if isinstance(current, FailureError) else None
    return found


def failure_message(error: BaseException) -> str:
    """Innermost message in a Temporal failure chain."""
    current: BaseException = error
    while isinstance(current, FailureError) and current.cause is not None:
        current = current.cause
    if isinstance(current, FailureError):
        return current.message
    return str(current)
