"""
HumbleFax implementation of FaxRepository.
"""

import json
import logging
from typing import Optional

import httpx

from intake.domain import ProviderContact
from intake.errors import PlatformRejection
from intake.phone import fax_digits
from intake.repositories import FaxRepository, SignatureRepository
from intake.repos.http.base import PlatformClient

logger = logging.getLogger(__name__)

HUMBLEFAX_API_URL = "https://api.humblefax.com"


class HumbleFaxRepository(PlatformClient, FaxRepository):
    """
    Faxes the signed authorization downloaded from the signature platform.

    HumbleFax retries delivery itself, so a failed send usually means the
    number is wrong.
    """

    platform = "humblefax"

    def __init__(
        self,
        signature_repo: SignatureRepository,
        access_key: str,
        secret_key: str,
        from_name: str = "Medical Records Team",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(client)
        self.signature_repo = signature_repo
        self.auth = (access_key, secret_key)
        self.from_name = from_name

    async def dispatch_fax(
        self, contact: ProviderContact, request_id: str
    ) -> str:
        if not contact.fax_number:
            raise PlatformRejection("No fax number to send to")
        try:
            recipient = int(fax_digits(contact.fax_number))
        except ValueError as e:
            raise PlatformRejection(str(e)) from e

        document = await self.signature_repo.download_signed_document(
            request_id
        )
        job = {
            "recipients": [recipient],
            "includeCoversheet": True,
            "subject": "Medical Records Request",
            "message": (
                "Please find attached a signed patient authorization for the "
                "release of medical records."
            ),
            "fromName": self.from_name,
            "uuid": request_id,
        }
        response = await self.request(
            "POST",
            f"{HUMBLEFAX_API_URL}/quickSendFax",
            auth=self.auth,
            data={"jsonData": json.dumps(job)},
            files={
                "authorization.pdf": (
                    "authorization.pdf",
                    document,
                    "application/pdf",
                )
            },
        )

        data = response.json().get("data") or {}
        fax = data.get("fax") or data.get("sentFax") or {}
        if not fax.get("id"):
            raise PlatformRejection("HumbleFax returned no fax id")
        fax_id = str(fax["id"])
        logger.info(
            "Fax sent", extra={"request_id": request_id, "fax_id": fax_id}
        )
        return fax_id
