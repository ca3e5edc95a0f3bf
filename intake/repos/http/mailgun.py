"""
Mailgun implementation of EmailRepository.
"""

import logging
from typing import Optional

import httpx

from intake.domain import ProviderContact
from intake.errors import PlatformRejection
from intake.repositories import EmailRepository, SignatureRepository
from intake.repos.http.base import PlatformClient

logger = logging.getLogger(__name__)

MAILGUN_API_URL = "https://api.mailgun.net/v3"

REQUEST_TEXT = (
    "Hello,\n\n"
    "Please find attached a signed patient authorization for the release "
    "of medical records. Reply to this email with the records or any "
    "questions.\n\n"
    "Thank you."
)


class MailgunEmailRepository(PlatformClient, EmailRepository):
    platform = "mailgun"

    def __init__(
        self,
        signature_repo: SignatureRepository,
        api_key: str,
        domain: str,
        from_email: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(client)
        self.signature_repo = signature_repo
        self.auth = ("api", api_key)
        self.domain = domain
        self.from_email = from_email

    async def dispatch_email(
        self, contact: ProviderContact, request_id: str
    ) -> str:
        if not contact.email:
            raise PlatformRejection("No email address to send to")

        document = await self.signature_repo.download_signed_document(
            request_id
        )
        response = await self.request(
            "POST",
            f"{MAILGUN_API_URL}/{self.domain}/messages",
            auth=self.auth,
            data={
                "from": self.from_email,
                "to": contact.email,
                "subject": "Medical Records Request",
                "text": REQUEST_TEXT,
                "h:Reply-To": self.from_email,
                "o:tag": "records-request",
                "v:request_id": request_id,
            },
            files={
                "attachment": (
                    "authorization.pdf",
                    document,
                    "application/pdf",
                )
            },
        )
        message_id = response.json().get("id", "")
        logger.info(
            "Records request emailed",
            extra={"request_id": request_id, "message_id": message_id},
        )
        return message_id
