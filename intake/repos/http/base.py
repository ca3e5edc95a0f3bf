"""
Shared request handling for the platform clients.
"""

import logging
from typing import Any, Optional

import httpx

from intake.domain import Case
from intake.errors import PlatformRejection, TransportFailure
from intake.repositories import CaseRepository

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class PlatformClient:
    """
    Owns one ``httpx.AsyncClient`` and turns HTTP outcomes into the intake
    failure taxonomy.

    Tests pass a client built on ``httpx.MockTransport``.
    """

    platform = "platform"

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        self.client = client or httpx.AsyncClient(
            timeout=DEFAULT_TIMEOUT_SECONDS
        )

    async def request(
        self, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning(
                "Platform unreachable",
                extra={"platform": self.platform, "url": url, "error": str(e)},
            )
            raise TransportFailure(
                f"{self.platform} request failed: {e}"
            ) from e

        if response.status_code >= 500:
            logger.warning(
                "Platform server error",
                extra={
                    "platform": self.platform,
                    "status_code": response.status_code,
                },
            )
            raise TransportFailure(
                f"{self.platform} returned {response.status_code}: "
                f"{response.text[:200]}"
            )
        if response.status_code >= 400:
            logger.error(
                "Platform rejected request",
                extra={
                    "platform": self.platform,
                    "status_code": response.status_code,
                    "body": response.text[:500],
                },
            )
            raise PlatformRejection(
                f"{self.platform} rejected request "
                f"({response.status_code}): {response.text[:200]}"
            )
        return response

    async def aclose(self) -> None:
        await self.client.aclose()


async def load_case(case_repo: CaseRepository, case_id: str) -> Case:
    case = await case_repo.get_case(case_id)
    if case is None:
        raise PlatformRejection(f"Case {case_id} not found")
    return case
