"""
usecase logic must be clean, without direct dependencies.
dependencies are injected via repository instances.

In workflows these use cases receive workflow proxies, so every repository
call becomes an activity; in tests they receive mocks or memory
repositories. They never touch clocks, random ids or Temporal APIs, which
keeps them deterministic enough to run inside workflow code.
"""

import logging
from typing import List, Optional, Tuple

from intake.domain import (
    CallCompletionData,
    CallStatus,
    CaseAssessment,
    CaseTask,
    DispatchChannel,
    ExtractedProvider,
    ProviderContact,
    RegistryLookupResult,
    TaskStatus,
    VerificationRequest,
    VerificationResolution,
    VerificationStatus,
)
from intake.errors import MissingProviderContact
from intake.repositories import (
    CallRecordRepository,
    CaseRepository,
    EmailRepository,
    FaxRepository,
    ProviderRegistryRepository,
    ProviderRepository,
    RecordsRequestRepository,
    TranscriptAnalyzer,
    VoiceRepository,
)
from intake.validation import (
    ensure_call_record_repository,
    ensure_case_repository,
    ensure_email_repository,
    ensure_fax_repository,
    ensure_provider_registry_repository,
    ensure_provider_repository,
    ensure_records_request_repository,
    ensure_transcript_analyzer,
    ensure_voice_repository,
)

logger = logging.getLogger(__name__)


class CallCompletionReconciler:
    """
    Resolves the outcome of one outbound call.

    The workflow first waits for a push notification (signal). This class
    covers what happens next: the signal's data is written to the call
    record store, and when no signal arrived it reads the store, which a
    webhook may have updated out-of-band, before falling back to asking the
    voice platform directly. A platform answer is written back to the
    store so later readers see the same outcome.
    """

    def __init__(
        self,
        call_record_repo: CallRecordRepository,
        voice_repo: VoiceRepository,
    ) -> None:
        self.call_record_repo = ensure_call_record_repository(
            call_record_repo
        )
        self.voice_repo = ensure_voice_repository(voice_repo)

    async def record_signal(
        self, case_id: str, data: CallCompletionData
    ) -> CallStatus:
        status = data.to_call_status()
        await self.call_record_repo.save_call_record(
            status.to_call_record(case_id)
        )
        return status

    async def reconcile(self, case_id: str, conversation_id: str) -> CallStatus:
        record = await self.call_record_repo.get_call_record(conversation_id)
        if record is not None:
            stored = record.to_call_status()
            if stored.completed:
                logger.info(
                    "Call outcome resolved from store",
                    extra={
                        "conversation_id": conversation_id,
                        "outcome": stored.outcome.value,
                    },
                )
                return stored

        status = await self.voice_repo.get_call_status(conversation_id)
        if status.completed:
            await self.call_record_repo.save_call_record(
                status.to_call_record(case_id)
            )
        logger.info(
            "Call outcome polled from platform",
            extra={
                "conversation_id": conversation_id,
                "outcome": status.outcome.value,
            },
        )
        return status


class TranscriptEvaluationUseCase:
    """Turns a completed intake conversation into an assessment and a list
    of providers to verify."""

    def __init__(
        self,
        voice_repo: VoiceRepository,
        analyzer: TranscriptAnalyzer,
        case_repo: CaseRepository,
    ) -> None:
        self.voice_repo = ensure_voice_repository(voice_repo)
        self.analyzer = ensure_transcript_analyzer(analyzer)
        self.case_repo = ensure_case_repository(case_repo)

    async def evaluate(
        self, case_id: str, conversation_id: str
    ) -> Tuple[CaseAssessment, List[ExtractedProvider]]:
        await self.case_repo.update_task_status(
            case_id,
            CaseTask.CASE_EVALUATION,
            TaskStatus.IN_PROGRESS,
            "Collecting call transcript",
        )
        transcript = await self.voice_repo.get_transcript(conversation_id)

        assessment = await self.analyzer.analyze_transcript(transcript)
        await self.case_repo.save_assessment(case_id, assessment)
        await self.case_repo.update_task_status(
            case_id,
            CaseTask.CASE_EVALUATION,
            TaskStatus.COMPLETED,
            f"Quality score: {assessment.quality_score}",
        )

        await self.case_repo.update_task_status(
            case_id,
            CaseTask.EXTRACT_PROVIDERS,
            TaskStatus.IN_PROGRESS,
            "Extracting providers from transcript",
        )
        providers = await self.analyzer.extract_providers(transcript)
        await self.case_repo.update_task_status(
            case_id,
            CaseTask.EXTRACT_PROVIDERS,
            TaskStatus.COMPLETED,
            f"Found {len(providers)} provider(s)",
        )

        logger.info(
            "Transcript evaluated",
            extra={
                "case_id": case_id,
                "quality_score": assessment.quality_score,
                "provider_count": len(providers),
            },
        )
        return assessment, providers


class ProviderVerificationUseCase:
    """
    Opens one human-review request per extracted provider and applies the
    reviewers' decisions once the verification gate has settled.

    Registry lookups are best-effort: a failed lookup leaves the request
    without looked-up contact data but never stops the request from being
    opened.
    """

    def __init__(
        self,
        provider_repo: ProviderRepository,
        registry_repo: ProviderRegistryRepository,
    ) -> None:
        self.provider_repo = ensure_provider_repository(provider_repo)
        self.registry_repo = ensure_provider_registry_repository(
            registry_repo
        )

    async def open_verifications(
        self, case_id: str, extracted: List[ExtractedProvider]
    ) -> List[VerificationRequest]:
        providers = await self.provider_repo.save_providers(
            case_id, extracted
        )
        criteria_by_name = {p.name: p.search_criteria() for p in extracted}

        requests = []
        for provider in providers:
            criteria = criteria_by_name.get(provider.name)
            lookup = RegistryLookupResult()
            if criteria is not None:
                lookup = await self._lookup(provider.provider_id, criteria)

            looked_up: Optional[ProviderContact] = None
            if lookup.best_match is not None:
                looked_up = ProviderContact(
                    fax_number=lookup.best_match.fax_number,
                    phone=lookup.best_match.phone,
                    address=lookup.best_match.address,
                )

            request = await self.provider_repo.create_verification_request(
                VerificationRequest(
                    verification_id=f"{provider.provider_id}-verification",
                    case_id=case_id,
                    provider_id=provider.provider_id,
                    extracted_contact=provider.contact,
                    looked_up_contact=looked_up,
                    registry_candidates=lookup.candidates,
                )
            )
            requests.append(request)

        logger.info(
            "Opened provider verifications",
            extra={"case_id": case_id, "count": len(requests)},
        )
        return requests

    async def _lookup(self, provider_id, criteria) -> RegistryLookupResult:
        try:
            return await self.registry_repo.lookup_provider_registry(criteria)
        except Exception as e:
            logger.warning(
                "Provider registry lookup failed, continuing without it",
                extra={"provider_id": provider_id, "error": str(e)},
            )
            return RegistryLookupResult()

    async def apply_resolutions(
        self, resolutions: List[VerificationResolution]
    ) -> Tuple[int, int]:
        """Persist decisions; returns (approved, rejected) counts as stored."""
        approved = rejected = 0
        for resolution in resolutions:
            request = await self.provider_repo.resolve_verification(
                resolution
            )
            if request is None:
                continue
            if request.status is VerificationStatus.APPROVED:
                approved += 1
            elif request.status is VerificationStatus.REJECTED:
                rejected += 1
        return approved, rejected


class RecordsDispatchUseCase:
    """Sends a signed authorization to the provider, fax preferred."""

    def __init__(
        self,
        provider_repo: ProviderRepository,
        records_repo: RecordsRequestRepository,
        fax_repo: FaxRepository,
        email_repo: EmailRepository,
    ) -> None:
        self.provider_repo = ensure_provider_repository(provider_repo)
        self.records_repo = ensure_records_request_repository(records_repo)
        self.fax_repo = ensure_fax_repository(fax_repo)
        self.email_repo = ensure_email_repository(email_repo)

    async def dispatch(
        self, request_id: str, provider_id: str
    ) -> DispatchChannel:
        provider = await self.provider_repo.get_provider(provider_id)
        if provider is None:
            raise MissingProviderContact(
                f"Provider {provider_id} not found for request {request_id}"
            )

        contact = provider.contact
        if contact.fax_number:
            channel = DispatchChannel.FAX
            reference = await self.fax_repo.dispatch_fax(contact, request_id)
        elif contact.email:
            channel = DispatchChannel.EMAIL
            reference = await self.email_repo.dispatch_email(
                contact, request_id
            )
        else:
            raise MissingProviderContact(
                f"No verified fax or email for {provider.name}"
            )

        await self.records_repo.record_dispatch(request_id, channel, reference)
        logger.info(
            "Authorization dispatched",
            extra={
                "request_id": request_id,
                "provider_id": provider_id,
                "channel": channel.value,
            },
        )
        return channel
