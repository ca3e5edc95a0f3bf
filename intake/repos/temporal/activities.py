"""
Temporal activity wrapper classes for the intake domain.

This module contains all @temporal_activity_registration decorated classes
that wrap concrete repositories as Temporal activities. These classes are
imported by the worker to register activities with Temporal.

Activity names follow ``intake.{repo_name}.{backend}.{method}``. The memory
and PostgreSQL store variants share a prefix: a worker registers exactly
one of them, and workflow proxies never need to know which.
"""

from util.repos.temporal.decorators import temporal_activity_registration
from intake.repos.anthropic import AnthropicTranscriptAnalyzer
from intake.repos.http import (
    ElevenLabsVoiceRepository,
    HumbleFaxRepository,
    MailgunEmailRepository,
    NPIRegistryRepository,
    OpenPhoneMessagingRepository,
    OpenSignSignatureRepository,
)
from intake.repos.memory import (
    MemoryCallRecordRepository,
    MemoryCaseRepository,
    MemoryInstanceRegistry,
    MemoryProviderRepository,
    MemoryRecordsRequestRepository,
)
from intake.repos.postgresql import (
    PostgreSQLCallRecordRepository,
    PostgreSQLCaseRepository,
    PostgreSQLInstanceRegistry,
    PostgreSQLProviderRepository,
    PostgreSQLRecordsRequestRepository,
)
from intake.repos.temporal.activity_names import (
    CALL_RECORD_ACTIVITY_BASE,
    CASE_ACTIVITY_BASE,
    EMAIL_ACTIVITY_BASE,
    FAX_ACTIVITY_BASE,
    INSTANCE_REGISTRY_ACTIVITY_BASE,
    MESSAGING_ACTIVITY_BASE,
    PROVIDER_ACTIVITY_BASE,
    PROVIDER_REGISTRY_ACTIVITY_BASE,
    RECORDS_REQUEST_ACTIVITY_BASE,
    SIGNATURE_ACTIVITY_BASE,
    TRANSCRIPT_ANALYZER_ACTIVITY_BASE,
    VOICE_ACTIVITY_BASE,
)

# --- Stores: memory ---


@temporal_activity_registration(CASE_ACTIVITY_BASE)
class TemporalMemoryCaseRepository(MemoryCaseRepository):
    pass


@temporal_activity_registration(INSTANCE_REGISTRY_ACTIVITY_BASE)
class TemporalMemoryInstanceRegistry(MemoryInstanceRegistry):
    pass


@temporal_activity_registration(PROVIDER_ACTIVITY_BASE)
class TemporalMemoryProviderRepository(MemoryProviderRepository):
    pass


@temporal_activity_registration(RECORDS_REQUEST_ACTIVITY_BASE)
class TemporalMemoryRecordsRequestRepository(MemoryRecordsRequestRepository):
    pass


@temporal_activity_registration(CALL_RECORD_ACTIVITY_BASE)
class TemporalMemoryCallRecordRepository(MemoryCallRecordRepository):
    pass


# --- Stores: PostgreSQL ---


@temporal_activity_registration(CASE_ACTIVITY_BASE)
class TemporalPostgreSQLCaseRepository(PostgreSQLCaseRepository):
    pass


@temporal_activity_registration(INSTANCE_REGISTRY_ACTIVITY_BASE)
class TemporalPostgreSQLInstanceRegistry(PostgreSQLInstanceRegistry):
    pass


@temporal_activity_registration(PROVIDER_ACTIVITY_BASE)
class TemporalPostgreSQLProviderRepository(PostgreSQLProviderRepository):
    pass


@temporal_activity_registration(RECORDS_REQUEST_ACTIVITY_BASE)
class TemporalPostgreSQLRecordsRequestRepository(
    PostgreSQLRecordsRequestRepository
):
    pass


@temporal_activity_registration(CALL_RECORD_ACTIVITY_BASE)
class TemporalPostgreSQLCallRecordRepository(PostgreSQLCallRecordRepository):
    pass


# --- External platforms ---


@temporal_activity_registration(MESSAGING_ACTIVITY_BASE)
class TemporalOpenPhoneMessagingRepository(OpenPhoneMessagingRepository):
    """Temporal activity wrapper for OpenPhoneMessagingRepository."""

    pass


@temporal_activity_registration(VOICE_ACTIVITY_BASE)
class TemporalElevenLabsVoiceRepository(ElevenLabsVoiceRepository):
    """Temporal activity wrapper for ElevenLabsVoiceRepository."""

    pass


@temporal_activity_registration(SIGNATURE_ACTIVITY_BASE)
class TemporalOpenSignSignatureRepository(OpenSignSignatureRepository):
    pass


@temporal_activity_registration(FAX_ACTIVITY_BASE)
class TemporalHumbleFaxRepository(HumbleFaxRepository):
    pass


@temporal_activity_registration(EMAIL_ACTIVITY_BASE)
class TemporalMailgunEmailRepository(MailgunEmailRepository):
    pass


@temporal_activity_registration(PROVIDER_REGISTRY_ACTIVITY_BASE)
class TemporalNPIRegistryRepository(NPIRegistryRepository):
    pass


@temporal_activity_registration(TRANSCRIPT_ANALYZER_ACTIVITY_BASE)
class TemporalAnthropicTranscriptAnalyzer(AnthropicTranscriptAnalyzer):
    pass


__all__ = [
    "TemporalMemoryCaseRepository",
    "TemporalMemoryInstanceRegistry",
    "TemporalMemoryProviderRepository",
    "TemporalMemoryRecordsRequestRepository",
    "TemporalMemoryCallRecordRepository",
    "TemporalPostgreSQLCaseRepository",
    "TemporalPostgreSQLInstanceRegistry",
    "TemporalPostgreSQLProviderRepository",
    "TemporalPostgreSQLRecordsRequestRepository",
    "TemporalPostgreSQLCallRecordRepository",
    "TemporalOpenPhoneMessagingRepository",
    "TemporalElevenLabsVoiceRepository",
    "TemporalOpenSignSignatureRepository",
    "TemporalHumbleFaxRepository",
    "TemporalMailgunEmailRepository",
    "TemporalNPIRegistryRepository",
    "TemporalAnthropicTranscriptAnalyzer",
]
