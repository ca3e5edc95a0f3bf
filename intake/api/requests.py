"""
Pydantic models for API requests.
These define the contract between the API and external clients.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from intake.domain import (
    CaseWorkflowParams,
    DEFAULT_MAX_ATTEMPTS,
    OutreachParams,
    ProviderContact,
)


class StartCaseRequest(BaseModel):
    """Start the lifecycle for a case, creating the case if details are
    given."""

    phone: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    verification_timeout_days: int = Field(default=7, ge=1)
    # Start later via a Temporal start delay; must be in the future
    scheduled_at: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("scheduled_at", "scheduledAt"),
    )

    def to_params(self, case_id: str) -> CaseWorkflowParams:
        return CaseWorkflowParams(
            case_id=case_id,
            outreach=OutreachParams(
                case_id=case_id, max_attempts=self.max_attempts
            ),
            verification_timeout=timedelta(
                days=self.verification_timeout_days
            ),
        )


class InboundMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_number: str = Field(alias="from")
    text: str = Field(
        default="", validation_alias=AliasChoices("text", "body")
    )
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class SmsWebhookData(BaseModel):
    object: InboundMessage


class SmsWebhookRequest(BaseModel):
    """OpenPhone ``message.received`` webhook."""

    type: str
    data: SmsWebhookData


class VerificationDecisionRequest(BaseModel):
    case_id: str
    approved: bool
    contact_info: Optional[ProviderContact] = None
    resolved_by: Optional[str] = None
