"""
Memory implementation of ProviderRepository.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from intake.domain import (
    ExtractedProvider,
    Provider,
    VerificationRequest,
    VerificationResolution,
    VerificationState,
    VerificationStatus,
    provider_id_for,
)
from intake.repositories import ProviderRepository

logger = logging.getLogger(__name__)


class MemoryProviderRepository(ProviderRepository):
    def __init__(self) -> None:
        logger.debug("Initializing MemoryProviderRepository")
        self._providers: Dict[str, Provider] = {}
        self._verifications: Dict[str, VerificationRequest] = {}

    async def save_providers(
        self, case_id: str, providers: List[ExtractedProvider]
    ) -> List[Provider]:
        saved = []
        for extracted in providers:
            provider_id = provider_id_for(case_id, extracted.name)
            existing = self._providers.get(provider_id)
            if existing is None:
                existing = Provider(
                    provider_id=provider_id,
                    case_id=case_id,
                    **extracted.model_dump(),
                )
                self._providers[provider_id] = existing
            saved.append(existing)
        logger.info(
            "Providers saved",
            extra={"case_id": case_id, "count": len(saved)},
        )
        return saved

    async def get_provider(self, provider_id: str) -> Optional[Provider]:
        return self._providers.get(provider_id)

    async def get_verified_providers(self, case_id: str) -> List[Provider]:
        return [
            p
            for p in self._providers.values()
            if p.case_id == case_id
            and p.verification_state is VerificationState.VERIFIED
        ]

    async def create_verification_request(
        self, request: VerificationRequest
    ) -> VerificationRequest:
        existing = self._verifications.get(request.verification_id)
        if existing is not None:
            return existing
        for existing in self._verifications.values():
            if (
                existing.provider_id == request.provider_id
                and not existing.is_resolved
            ):
                return existing

        self._verifications[request.verification_id] = request
        provider = self._providers.get(request.provider_id)
        if provider is not None:
            self._providers[provider.provider_id] = provider.model_copy(
                update={"verification_state": VerificationState.PENDING}
            )
        return request

    async def get_pending_verifications(
        self, case_id: str
    ) -> List[VerificationRequest]:
        return [
            v
            for v in self._verifications.values()
            if v.case_id == case_id and not v.is_resolved
        ]

    async def resolve_verification(
        self, resolution: VerificationResolution
    ) -> Optional[VerificationRequest]:
        request = self._verifications.get(resolution.verification_id)
        if request is None:
            logger.warning(
                "Resolution for unknown verification",
                extra={"verification_id": resolution.verification_id},
            )
            return None
        if request.is_resolved:
            return request

        contact = resolution.contact_info or request.looked_up_contact
        contact = contact or request.extracted_contact
        resolved = request.model_copy(
            update={
                "status": (
                    VerificationStatus.APPROVED
                    if resolution.approved
                    else VerificationStatus.REJECTED
                ),
                "verified_contact": contact if resolution.approved else None,
                "resolved_by": resolution.resolved_by,
                "resolved_at": datetime.now(timezone.utc),
            }
        )
        self._verifications[request.verification_id] = resolved

        provider = self._providers.get(request.provider_id)
        if provider is not None:
            if resolution.approved:
                update = {
                    "verification_state": VerificationState.VERIFIED,
                    "fax_number": contact.fax_number or provider.fax_number,
                    "email": contact.email or provider.email,
                    "phone": contact.phone or provider.phone,
                }
            else:
                update = {"verification_state": VerificationState.REJECTED}
            self._providers[provider.provider_id] = provider.model_copy(
                update=update
            )
        return resolved

    def get_verification(
        self, verification_id: str
    ) -> Optional[VerificationRequest]:
        return self._verifications.get(verification_id)
