"""
Repository interfaces defined as Protocols.

All repository operations in this module follow these principles:

- **Idempotency**: store writes are point-writes keyed by entity or
  instance id, safe to repeat when Temporal retries an activity.

- **Side effects happen once**: operations that reach a person (messages,
  calls, faxes, emails) are not idempotent. Their workflow proxies decide
  how often they may be retried, and call placement is never retried.

- **Workflow Safety**: every method here is executed as an activity when
  called from workflow code, so implementations are free to be
  non-deterministic (network calls, clocks, id generation).

- **Domain Objects**: Methods accept and return domain objects or
  primitives, never framework-specific types.

Use case classes depend on these protocols, not concrete implementations.
"""

from typing import List, Optional, Protocol, runtime_checkable

from intake.domain import (
    CallRecord,
    CallStatus,
    Case,
    CaseAssessment,
    CaseStatus,
    CaseTask,
    DispatchChannel,
    ExtractedProvider,
    InstanceRegistration,
    InstanceStatus,
    ProcessInstance,
    Provider,
    ProviderContact,
    ProviderSearchCriteria,
    RecordsRequest,
    RegistryLookupResult,
    SignatureCheck,
    SignatureStatus,
    TaskStatus,
    VerificationRequest,
    VerificationResolution,
)


@runtime_checkable
class CaseRepository(Protocol):
    """Reads and updates cases and their staff-facing task checklist."""

    async def get_case(self, case_id: str) -> Optional[Case]:
        """Return the case, or None if it does not exist."""
        ...

    async def save_case(self, case: Case) -> None:
        """Insert or replace a case (upsert by ``case_id``)."""
        ...

    async def find_case_by_phone(self, phone: str) -> Optional[Case]:
        """Most recently saved case whose E.164 phone matches."""
        ...

    async def update_case_status(
        self, case_id: str, status: CaseStatus
    ) -> None:
        """Set the case lifecycle status."""
        ...

    async def record_case_failure(self, case_id: str, reason: str) -> None:
        """Mark the case failed with a human-readable reason.

        Implementation Notes:
        - Must set status to ``CaseStatus.FAILED``
        - Repeating the call overwrites the reason (latest write wins)
        """
        ...

    async def update_task_status(
        self,
        case_id: str,
        task: CaseTask,
        status: TaskStatus,
        note: Optional[str] = None,
    ) -> None:
        """Upsert one checklist row for the case."""
        ...

    async def get_task_status(
        self, case_id: str, task: CaseTask
    ) -> Optional[TaskStatus]:
        """Status of one checklist row, or None if it was never written."""
        ...

    async def save_assessment(
        self, case_id: str, assessment: CaseAssessment
    ) -> None:
        """Store the transcript-based case assessment."""
        ...


@runtime_checkable
class InstanceRegistry(Protocol):
    """Durable record of every process instance and its place in the tree.

    This is the observable side of orchestration: operators read status
    messages and terminal reasons here without querying Temporal history.

    Implementation Notes:
    - Registration happens before the instance starts, so a child that
      crashes immediately is still visible under its parent.
    - ``parent_instance_id`` is immutable once registered.
    - Registering an id that is scheduled or running returns the stored
      instance unchanged. Registering an id whose instance has finished
      starts a fresh record for the new run (same parent, cleared error,
      result and completion time), so a restarted case can be paused.
    - Instances are never deleted here.
    """

    async def register_instance(
        self, registration: InstanceRegistration
    ) -> ProcessInstance:
        """Record a new instance as running (or scheduled, when
        ``registration.scheduled_at`` is set), or return the live one."""
        ...

    async def mark_instance_running(self, instance_id: str) -> None:
        """Move a scheduled instance to running; no-op otherwise.

        Raises:
            ValueError: if the instance is not registered
        """
        ...

    async def update_instance_status(
        self, instance_id: str, message: str
    ) -> None:
        """Replace the instance's human-readable status message."""
        ...

    async def mark_instance_terminal(
        self,
        instance_id: str,
        status: InstanceStatus,
        error: Optional[str] = None,
        result: Optional[dict] = None,
    ) -> None:
        """Record a terminal status and completion time.

        Raises:
            ValueError: if ``status`` is not terminal
        """
        ...

    async def get_instance(self, instance_id: str) -> Optional[ProcessInstance]:
        ...

    async def list_children(self, instance_id: str) -> List[ProcessInstance]:
        """Direct children of an instance, oldest first."""
        ...

    async def set_paused(self, instance_id: str, paused: bool) -> None:
        """Mirror the operator's pause state for display."""
        ...


@runtime_checkable
class ProviderRepository(Protocol):
    """Providers extracted for a case and their verification requests."""

    async def save_providers(
        self, case_id: str, providers: List[ExtractedProvider]
    ) -> List[Provider]:
        """Store extracted providers and return them with assigned ids.

        Implementation Notes:
        - Providers are keyed by case and normalized name, so saving the
          same extraction twice returns the same provider ids
        """
        ...

    async def get_provider(self, provider_id: str) -> Optional[Provider]:
        ...

    async def get_verified_providers(self, case_id: str) -> List[Provider]:
        ...

    async def create_verification_request(
        self, request: VerificationRequest
    ) -> VerificationRequest:
        """Store a pending request and mark its provider pending.

        Returns the stored request unchanged, and leaves the provider
        alone, when one with the same ``verification_id`` exists (resolved
        or not) or another request is still open for the provider.
        """
        ...

    async def get_pending_verifications(
        self, case_id: str
    ) -> List[VerificationRequest]:
        ...

    async def resolve_verification(
        self, resolution: VerificationResolution
    ) -> Optional[VerificationRequest]:
        """Apply a human decision to a pending verification request.

        Approval promotes the provider to verified and copies the verified
        contact onto it; rejection marks it rejected.

        Returns:
            The request after resolution, or None for an unknown id.

        Implementation Notes:
        - Resolution is terminal: an already-resolved request is returned
          unchanged.
        """
        ...


@runtime_checkable
class RecordsRequestRepository(Protocol):
    async def save_records_request(self, request: RecordsRequest) -> None:
        ...

    async def get_records_request(
        self, request_id: str
    ) -> Optional[RecordsRequest]:
        ...

    async def update_signature_status(
        self, request_id: str, status: SignatureStatus
    ) -> None:
        ...

    async def record_dispatch(
        self, request_id: str, channel: DispatchChannel, reference: str
    ) -> None:
        """Record how and where the signed authorization was sent.

        Raises:
            ValueError: if the request is not signed
        """
        ...


@runtime_checkable
class CallRecordRepository(Protocol):
    """Authoritative store of call outcomes.

    Webhooks may write here before or instead of signalling the workflow,
    which is why it is consulted before the voice platform itself.
    """

    async def save_call_record(self, record: CallRecord) -> None:
        ...

    async def get_call_record(
        self, conversation_id: str
    ) -> Optional[CallRecord]:
        ...


@runtime_checkable
class MessagingRepository(Protocol):
    async def send_message(self, case_id: str, text: str) -> str:
        """Text the case's contact number.

        Returns:
            Platform message id

        Raises:
            TransportFailure: the platform could not be reached
            PlatformRejection: the platform refused the message
        """
        ...


@runtime_checkable
class VoiceRepository(Protocol):
    """Outbound voice calls placed by an AI agent."""

    async def place_call(self, case_id: str) -> str:
        """Dial the case's contact number.

        Returns:
            Correlation (conversation) id for the call

        Raises:
            PlatformRejection: the platform refused to place the call.
                Never retried, so a bad number is never redialed.
        """
        ...

    async def get_call_status(self, conversation_id: str) -> CallStatus:
        """Ask the platform how a call ended; ``completed`` is False while
        the outcome is still unknown."""
        ...

    async def get_transcript(self, conversation_id: str) -> str:
        ...

    async def place_provider_call(
        self, case_id: str, provider: Provider
    ) -> str:
        """Call a provider's office to follow up on a records request."""
        ...


@runtime_checkable
class SignatureRepository(Protocol):
    async def create_authorization(
        self, case_id: str, provider: Provider
    ) -> str:
        """Send the release authorization for signature.

        Returns:
            Request id used to poll for the signature
        """
        ...

    async def poll_signature(self, request_id: str) -> SignatureCheck:
        """``done`` once signed, declined or expired; ``signed`` only when
        the authorization was signed."""
        ...

    async def download_signed_document(self, request_id: str) -> bytes:
        ...


@runtime_checkable
class FaxRepository(Protocol):
    async def dispatch_fax(
        self, contact: ProviderContact, request_id: str
    ) -> str:
        """Fax the signed authorization; returns the fax id."""
        ...


@runtime_checkable
class EmailRepository(Protocol):
    async def dispatch_email(
        self, contact: ProviderContact, request_id: str
    ) -> str:
        """Email the signed authorization; returns the message id."""
        ...


@runtime_checkable
class ProviderRegistryRepository(Protocol):
    async def lookup_provider_registry(
        self, criteria: ProviderSearchCriteria
    ) -> RegistryLookupResult:
        """Search the public provider registry.

        Best-effort: lookup problems produce an empty result rather than
        an error, because a failed lookup must never block verification.
        """
        ...


@runtime_checkable
class TranscriptAnalyzer(Protocol):
    """LLM-backed reading of intake conversations."""

    async def extract_providers(
        self, transcript: str
    ) -> List[ExtractedProvider]:
        """Raises TranscriptParseError when the model output is not a valid
        provider list."""
        ...

    async def analyze_transcript(self, transcript: str) -> CaseAssessment:
        """Raises TranscriptParseError rather than returning partial data."""
        ...
