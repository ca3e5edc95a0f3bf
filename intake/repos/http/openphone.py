"""
OpenPhone implementation of MessagingRepository.
"""

import logging
from typing import Optional

import httpx

from intake.errors import PlatformRejection
from intake.phone import normalize_phone_number
from intake.repositories import CaseRepository, MessagingRepository
from intake.repos.http.base import PlatformClient, load_case

logger = logging.getLogger(__name__)

OPENPHONE_MESSAGES_URL = "https://api.openphone.com/v1/messages"


class OpenPhoneMessagingRepository(PlatformClient, MessagingRepository):
    platform = "openphone"

    def __init__(
        self,
        case_repo: CaseRepository,
        api_key: str,
        from_number: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(client)
        self.case_repo = case_repo
        self.api_key = api_key
        self.from_number = normalize_phone_number(from_number)

    async def send_message(self, case_id: str, text: str) -> str:
        case = await load_case(self.case_repo, case_id)
        try:
            to_number = normalize_phone_number(case.phone)
        except ValueError as e:
            raise PlatformRejection(str(e)) from e

        response = await self.request(
            "POST",
            OPENPHONE_MESSAGES_URL,
            headers={"Authorization": self.api_key},
            json={
                "content": text,
                "from": self.from_number,
                "to": [to_number],
            },
        )
        message_id = response.json().get("data", {}).get("id", "")
        logger.info(
            "SMS sent",
            extra={"case_id": case_id, "message_id": message_id},
        )
        return message_id
