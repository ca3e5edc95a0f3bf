"""
OpenSign implementation of SignatureRepository.

Uses the OpenSign public REST API (``x-api-token``). An authorization is a
document created from a release-of-information template, addressed to the
patient as the only signer.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from intake.domain import Provider, SignatureCheck
from intake.errors import PlatformRejection
from intake.repositories import CaseRepository, SignatureRepository
from intake.repos.http.base import PlatformClient, load_case

logger = logging.getLogger(__name__)

SIGNED_STATES = {"completed", "signed"}
CLOSED_STATES = {"declined", "revoked"}
EXPIRED_STATES = {"expired"}


def document_to_signature_check(document: Dict[str, Any]) -> SignatureCheck:
    status = str(document.get("status") or "").lower()
    if status in SIGNED_STATES:
        return SignatureCheck(done=True, signed=True)
    if status in EXPIRED_STATES:
        return SignatureCheck(done=True, signed=False, expired=True)
    if status in CLOSED_STATES or document.get("IsDeclined"):
        return SignatureCheck(done=True, signed=False)
    return SignatureCheck(done=False)


class OpenSignSignatureRepository(PlatformClient, SignatureRepository):
    platform = "opensign"

    def __init__(
        self,
        case_repo: CaseRepository,
        base_url: str,
        api_token: str,
        template_id: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(client)
        self.case_repo = case_repo
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.template_id = template_id

    @property
    def _headers(self) -> Dict[str, str]:
        return {"x-api-token": self.api_token}

    async def create_authorization(
        self, case_id: str, provider: Provider
    ) -> str:
        case = await load_case(self.case_repo, case_id)
        if not case.email:
            raise PlatformRejection(
                f"Case {case_id} has no email for the signature request"
            )

        response = await self.request(
            "POST",
            f"{self.base_url}/createdocumentwithtemplate/{self.template_id}",
            headers=self._headers,
            json={
                "title": f"Medical records authorization - {provider.name}",
                "signers": [
                    {
                        "role": "Patient",
                        "name": case.name or case.email,
                        "email": case.email,
                        "phone": case.phone,
                    }
                ],
                "send_email": True,
                "prefill": {"provider_name": provider.name},
            },
        )
        document_id = response.json().get("objectId")
        if not document_id:
            raise PlatformRejection("OpenSign returned no document id")
        logger.info(
            "Authorization sent for signature",
            extra={
                "case_id": case_id,
                "provider_id": provider.provider_id,
                "request_id": document_id,
            },
        )
        return document_id

    async def _document(self, request_id: str) -> Dict[str, Any]:
        response = await self.request(
            "GET",
            f"{self.base_url}/document/{request_id}",
            headers=self._headers,
        )
        return response.json()

    async def poll_signature(self, request_id: str) -> SignatureCheck:
        check = document_to_signature_check(await self._document(request_id))
        logger.debug(
            "Signature polled",
            extra={
                "request_id": request_id,
                "done": check.done,
                "signed": check.signed,
            },
        )
        return check

    async def download_signed_document(self, request_id: str) -> bytes:
        document = await self._document(request_id)
        if not document_to_signature_check(document).signed:
            raise PlatformRejection(f"Document {request_id} is not signed")
        file_url = (
            document.get("file")
            or document.get("SignedUrl")
            or document.get("URL")
        )
        if not file_url:
            raise PlatformRejection(
                f"Document {request_id} has no downloadable file"
            )
        response = await self.request("GET", file_url)
        return response.content
