"""
Domain models defined as Pydantic models.
These are pure data structures with validation.

Three groups live here:

- stored entities (cases, process instances, providers, verification and
  records requests, call records)
- signal payloads delivered to running workflows
- workflow parameters and results
"""

import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_MAX_ATTEMPTS = 7
MAX_ATTEMPTS_CEILING = 10

DEFAULT_OUTREACH_MESSAGES = [
    "Hi, this is the intake team following up on the medical case you "
    "submitted on our website. We'll give you a call in a few minutes.",
    "Hi again! We'd like to talk through your case with you. Expect a call "
    "from us in a few minutes.",
    "Hello from the intake team. We are still hoping to connect about your "
    "case and will call you shortly.",
    "Hi! We're still here to help with your medical case. We'll try calling "
    "in a few minutes.",
    "Checking in about your case review. Reply to this message or pick up "
    "when we call in a few minutes.",
    "We haven't been able to reach you yet. We'll call again shortly, or "
    "reply here with a good time to talk.",
    "This is our last scheduled attempt to reach you about your case. We'll "
    "call in a few minutes. Reply anytime if you'd still like our help.",
]


# --- Enums ---


class CaseStatus(str, Enum):
    NEW = "new"
    OUTREACH = "outreach"
    INTAKE_COMPLETE = "intake_complete"
    AWAITING_VERIFICATION = "awaiting_verification"
    RECORDS_REQUESTED = "records_requested"
    FAILED = "failed"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class CaseTask(str, Enum):
    """Checklist rows shown to staff for each case."""

    INTAKE_CALL = "Intake Call"
    CASE_EVALUATION = "Case Evaluation"
    EXTRACT_PROVIDERS = "Extract Providers"
    VERIFY_PROVIDERS = "Verify Providers"
    GATHER_RELEASES = "Gather Releases"
    SEND_RECORDS_REQUESTS = "Send Out Records Requests"
    FOLLOW_UP_RECORDS_REQUESTS = "Follow up on Records Requests"


class InstanceStatus(str, Enum):
    SCHEDULED = "scheduled"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TERMINATED = "terminated"

    @property
    def is_terminal(self) -> bool:
        return self not in (InstanceStatus.SCHEDULED, InstanceStatus.RUNNING)


class VerificationState(str, Enum):
    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SignatureStatus(str, Enum):
    UNSIGNED = "unsigned"
    SIGNED = "signed"
    DECLINED = "declined"
    EXPIRED = "expired"


class DispatchChannel(str, Enum):
    FAX = "fax"
    EMAIL = "email"


class CallRecordStatus(str, Enum):
    INITIATED = "initiated"
    COMPLETED = "completed"
    FAILED = "failed"


class CallOutcome(str, Enum):
    TALKED_TO_HUMAN = "talked_to_human"
    VOICEMAIL = "voicemail"
    FAILED = "failed"
    UNRESOLVED = "unresolved"


# --- Stored entities ---


class Case(BaseModel):
    case_id: str
    phone: str
    name: Optional[str] = None
    email: Optional[str] = None
    status: CaseStatus = CaseStatus.NEW
    failure_reason: Optional[str] = None

    @field_validator("case_id")
    @classmethod
    def case_id_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Case ID cannot be empty")
        return v


class TaskEntry(BaseModel):
    """One row of a case checklist."""

    task: CaseTask
    status: TaskStatus = TaskStatus.PENDING
    note: Optional[str] = None
    updated_at: Optional[datetime] = None


class InstanceRegistration(BaseModel):
    """Everything needed to record a process instance before it starts."""

    instance_id: str
    workflow_name: str
    case_id: Optional[str] = None
    parent_instance_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    scheduled_at: Optional[datetime] = None

    @model_validator(mode="after")
    def parent_must_differ(self) -> "InstanceRegistration":
        if self.parent_instance_id == self.instance_id:
            raise ValueError("An instance cannot be its own parent")
        return self

    def to_instance(self, now: datetime) -> "ProcessInstance":
        """A fresh record for this registration, scheduled or running."""
        status = (
            InstanceStatus.SCHEDULED
            if self.scheduled_at is not None
            else InstanceStatus.RUNNING
        )
        return ProcessInstance(
            **self.model_dump(), status=status, started_at=now
        )


class ProcessInstance(BaseModel):
    instance_id: str
    workflow_name: str
    case_id: Optional[str] = None
    parent_instance_id: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)
    status: InstanceStatus = InstanceStatus.RUNNING
    status_message: Optional[str] = None
    error: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    paused: bool = False
    scheduled_at: Optional[datetime] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class ProviderContact(BaseModel):
    fax_number: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.fax_number or self.email)


class Provider(BaseModel):
    provider_id: str
    case_id: str
    name: str
    organization: Optional[str] = None
    specialty: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None
    fax_number: Optional[str] = None
    email: Optional[str] = None
    npi: Optional[str] = None
    verification_state: VerificationState = VerificationState.UNVERIFIED

    @property
    def contact(self) -> ProviderContact:
        return ProviderContact(
            fax_number=self.fax_number, email=self.email, phone=self.phone
        )


class VerificationRequest(BaseModel):
    verification_id: str
    case_id: str
    provider_id: str
    status: VerificationStatus = VerificationStatus.PENDING
    extracted_contact: ProviderContact = Field(default_factory=ProviderContact)
    looked_up_contact: Optional[ProviderContact] = None
    registry_candidates: List["RegistryCandidate"] = Field(
        default_factory=list
    )
    verified_contact: Optional[ProviderContact] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_resolved(self) -> bool:
        return self.status is not VerificationStatus.PENDING


class RecordsRequest(BaseModel):
    request_id: str
    case_id: str
    provider_id: str
    signature_status: SignatureStatus = SignatureStatus.UNSIGNED
    signed_at: Optional[datetime] = None
    dispatch_channel: Optional[DispatchChannel] = None
    dispatch_reference: Optional[str] = None


class CallStatus(BaseModel):
    """Outcome of one outbound call as known to the store or platform."""

    conversation_id: str
    completed: bool = False
    talked_to_human: Optional[bool] = None
    failed: bool = False
    failure_reason: Optional[str] = None

    @property
    def outcome(self) -> CallOutcome:
        if self.failed:
            return CallOutcome.FAILED
        if not self.completed:
            return CallOutcome.UNRESOLVED
        if self.talked_to_human:
            return CallOutcome.TALKED_TO_HUMAN
        return CallOutcome.VOICEMAIL

    def to_call_record(self, case_id: str) -> "CallRecord":
        if self.failed:
            status = CallRecordStatus.FAILED
        elif self.completed:
            status = CallRecordStatus.COMPLETED
        else:
            status = CallRecordStatus.INITIATED
        return CallRecord(
            conversation_id=self.conversation_id,
            case_id=case_id,
            status=status,
            talked_to_human=self.talked_to_human,
            failure_reason=self.failure_reason,
        )


class CallRecord(BaseModel):
    conversation_id: str
    case_id: str
    status: CallRecordStatus = CallRecordStatus.INITIATED
    talked_to_human: Optional[bool] = None
    failure_reason: Optional[str] = None

    def to_call_status(self) -> CallStatus:
        return CallStatus(
            conversation_id=self.conversation_id,
            completed=self.status is not CallRecordStatus.INITIATED,
            talked_to_human=self.talked_to_human,
            failed=self.status is CallRecordStatus.FAILED,
            failure_reason=self.failure_reason,
        )


# --- External collaborator results ---


class SignatureCheck(BaseModel):
    done: bool
    signed: bool = False
    # Closed by the platform without a decision from the signer
    expired: bool = False

    @model_validator(mode="after")
    def signed_implies_done(self) -> "SignatureCheck":
        if self.signed and not self.done:
            raise ValueError("A signed request must be done")
        if self.expired and (self.signed or not self.done):
            raise ValueError("An expired request is done and unsigned")
        return self


class ProviderSearchCriteria(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class RegistryCandidate(BaseModel):
    npi: str
    name: str
    organization: Optional[str] = None
    specialty: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None
    fax_number: Optional[str] = None


class RegistryLookupResult(BaseModel):
    best_match: Optional[RegistryCandidate] = None
    candidates: List[RegistryCandidate] = Field(default_factory=list)


class ExtractedProvider(BaseModel):
    """A provider as mentioned in a conversation, before it is stored."""

    name: str
    organization: Optional[str] = None
    specialty: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    phone: Optional[str] = None
    fax_number: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Provider name cannot be empty")
        return v.strip()

    def search_criteria(self) -> ProviderSearchCriteria:
        parts = self.name.replace("Dr.", "").replace("Dr ", "").split()
        return ProviderSearchCriteria(
            first_name=parts[0] if len(parts) > 1 else None,
            last_name=parts[-1] if parts else None,
            organization=self.organization,
            city=self.city,
            state=self.state,
        )


class ScaleScore(BaseModel):
    score: float = Field(ge=0, le=10)
    rationale: str = ""


class CoreScales(BaseModel):
    economic_harm: ScaleScore
    pain_and_suffering: ScaleScore
    causation_strength: ScaleScore
    standard_of_care_deviation: ScaleScore


class CaseAssessment(BaseModel):
    summary: str
    core_scales: CoreScales

    @property
    def quality_score(self) -> float:
        scales = self.core_scales
        scores = [
            scales.economic_harm.score,
            scales.pain_and_suffering.score,
            scales.causation_strength.score,
            scales.standard_of_care_deviation.score,
        ]
        return round(sum(scores) / len(scores), 1)


# --- Signal payloads ---


class UserResponse(BaseModel):
    message: str
    timestamp: datetime


class CallCompletionData(BaseModel):
    conversation_id: str
    talked_to_human: bool = False
    failed: bool = False
    failure_reason: Optional[str] = None

    def to_call_status(self) -> CallStatus:
        """A completion signal always describes a finished call."""
        return CallStatus(
            conversation_id=self.conversation_id,
            completed=True,
            talked_to_human=self.talked_to_human,
            failed=self.failed,
            failure_reason=self.failure_reason,
        )


class VerificationResolution(BaseModel):
    verification_id: str
    approved: bool
    contact_info: Optional[ProviderContact] = None
    resolved_by: Optional[str] = None


# --- Workflow parameters and results ---


class OutreachParams(BaseModel):
    case_id: str
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    wait_between_attempts: timedelta = timedelta(days=1)
    message_grace_period: timedelta = timedelta(minutes=1)
    call_completion_timeout: timedelta = timedelta(minutes=30)
    messages: List[str] = Field(
        default_factory=lambda: list(DEFAULT_OUTREACH_MESSAGES)
    )

    @field_validator("max_attempts")
    @classmethod
    def max_attempts_in_range(cls, v: int) -> int:
        if not 1 <= v <= MAX_ATTEMPTS_CEILING:
            raise ValueError(
                f"max_attempts must be between 1 and {MAX_ATTEMPTS_CEILING}"
            )
        return v

    @field_validator("messages")
    @classmethod
    def messages_must_not_be_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("At least one outreach message is required")
        return v

    def message_for_attempt(self, attempt_index: int) -> str:
        """Template for a zero-based attempt; the last one repeats."""
        return self.messages[min(attempt_index, len(self.messages) - 1)]


class OutreachResult(BaseModel):
    success: bool
    picked_up: bool
    user_responded: Optional[UserResponse] = None
    attempts: int
    conversation_id: Optional[str] = None


class SignaturePollingSchedule(BaseModel):
    fast_attempts: int = Field(default=20, ge=0)
    fast_interval: timedelta = timedelta(minutes=2)
    slow_attempts: int = Field(default=60, ge=0)
    slow_interval: timedelta = timedelta(hours=12)

    @property
    def max_polls(self) -> int:
        return self.fast_attempts + self.slow_attempts

    def intervals(self) -> List[timedelta]:
        return [self.fast_interval] * self.fast_attempts + [
            self.slow_interval
        ] * self.slow_attempts


class RecordsRetrievalParams(BaseModel):
    case_id: str
    provider_id: str
    provider_name: str
    polling: SignaturePollingSchedule = Field(
        default_factory=SignaturePollingSchedule
    )


class RecordsRetrievalResult(BaseModel):
    success: bool
    request_id: str
    provider_name: str
    dispatch_channel: Optional[DispatchChannel] = None


class ProviderOutcome(BaseModel):
    provider_name: str
    success: bool
    error: Optional[str] = None


class RecordsCoordinatorParams(BaseModel):
    case_id: str
    polling: SignaturePollingSchedule = Field(
        default_factory=SignaturePollingSchedule
    )


class CoordinatorResult(BaseModel):
    success: bool
    providers_processed: int
    results: List[ProviderOutcome] = Field(default_factory=list)


class CaseWorkflowParams(BaseModel):
    case_id: str
    outreach: Optional[OutreachParams] = None
    verification_timeout: timedelta = timedelta(days=7)
    polling: SignaturePollingSchedule = Field(
        default_factory=SignaturePollingSchedule
    )

    def outreach_params(self) -> OutreachParams:
        if self.outreach is None:
            return OutreachParams(case_id=self.case_id)
        return self.outreach.model_copy(update={"case_id": self.case_id})


class CaseResult(BaseModel):
    success: bool
    reason: Optional[str] = None
    completed_intake: bool = False
    provider_count: int = 0
    records_requests_sent: int = 0


VerificationRequest.model_rebuild()


_PROVIDER_NAMESPACE = uuid.UUID("6f1c2b0e-8d4a-4f0e-9b7a-2f3c1d5e7a90")


def provider_id_for(case_id: str, name: str) -> str:
    """Stable provider id for a case and a (case-insensitive) name."""
    key = f"{case_id}:{' '.join(name.lower().split())}"
    return f"prov-{uuid.uuid5(_PROVIDER_NAMESPACE, key).hex[:12]}"
