"""
Workflow-specific proxies for the external platforms.

Retry rules follow what a duplicate call would cost:

- messages, documents and lookups are retried once after a transport
  failure
- calls, faxes and records emails are sent at most once; a retry after a
  lost response would ring or fax the same recipient twice
"""

from util.repos.temporal.decorators import temporal_workflow_proxy
from intake.repositories import (
    EmailRepository,
    FaxRepository,
    MessagingRepository,
    ProviderRegistryRepository,
    SignatureRepository,
    TranscriptAnalyzer,
    VoiceRepository,
)
from intake.repos.temporal.activity_names import (
    EMAIL_ACTIVITY_BASE,
    FAX_ACTIVITY_BASE,
    MESSAGING_ACTIVITY_BASE,
    PROVIDER_REGISTRY_ACTIVITY_BASE,
    SIGNATURE_ACTIVITY_BASE,
    TRANSCRIPT_ANALYZER_ACTIVITY_BASE,
    VOICE_ACTIVITY_BASE,
)


@temporal_workflow_proxy(
    MESSAGING_ACTIVITY_BASE,
    default_timeout_seconds=60,
    retry_methods=["send_message"],
)
class WorkflowMessagingRepositoryProxy(MessagingRepository):
    pass


@temporal_workflow_proxy(
    VOICE_ACTIVITY_BASE,
    default_timeout_seconds=60,
    retry_methods=["get_call_status", "get_transcript"],
    no_retry_methods=["place_call", "place_provider_call"],
    method_timeouts={"get_transcript": 120},
)
class WorkflowVoiceRepositoryProxy(VoiceRepository):
    pass


@temporal_workflow_proxy(
    SIGNATURE_ACTIVITY_BASE,
    default_timeout_seconds=120,
    retry_methods=[
        "create_authorization",
        "poll_signature",
        "download_signed_document",
    ],
)
class WorkflowSignatureRepositoryProxy(SignatureRepository):
    pass


@temporal_workflow_proxy(
    FAX_ACTIVITY_BASE,
    default_timeout_seconds=600,
    no_retry_methods=["dispatch_fax"],
)
class WorkflowFaxRepositoryProxy(FaxRepository):
    pass


@temporal_workflow_proxy(
    EMAIL_ACTIVITY_BASE,
    default_timeout_seconds=600,
    no_retry_methods=["dispatch_email"],
)
class WorkflowEmailRepositoryProxy(EmailRepository):
    pass


@temporal_workflow_proxy(
    PROVIDER_REGISTRY_ACTIVITY_BASE,
    default_timeout_seconds=60,
    retry_methods=["lookup_provider_registry"],
)
class WorkflowProviderRegistryRepositoryProxy(ProviderRegistryRepository):
    pass


@temporal_workflow_proxy(
    TRANSCRIPT_ANALYZER_ACTIVITY_BASE,
    default_timeout_seconds=300,
    retry_methods=["extract_providers", "analyze_transcript"],
)
class WorkflowTranscriptAnalyzerProxy(TranscriptAnalyzer):
    """LLM calls; parse failures are non-retryable and surface at once."""

    pass
