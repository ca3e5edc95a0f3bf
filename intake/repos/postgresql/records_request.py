"""
PostgreSQL implementation of RecordsRequestRepository.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from asyncpg import Pool

from intake.domain import DispatchChannel, RecordsRequest, SignatureStatus
from intake.repositories import RecordsRequestRepository

logger = logging.getLogger(__name__)


class PostgreSQLRecordsRequestRepository(RecordsRequestRepository):
    def __init__(self, pool: Pool):
        self.pool = pool

    async def save_records_request(self, request: RecordsRequest) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO records_requests (
                    request_id, case_id, provider_id, signature_status,
                    request_data
                ) VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (request_id)
                DO UPDATE SET
                    signature_status = EXCLUDED.signature_status,
                    request_data = EXCLUDED.request_data
                """,
                request.request_id,
                request.case_id,
                request.provider_id,
                request.signature_status.value,
                request.model_dump_json(),
            )

    async def get_records_request(
        self, request_id: str
    ) -> Optional[RecordsRequest]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT request_data FROM records_requests
                WHERE request_id = $1
                """,
                request_id,
            )
        if row is None:
            return None
        return RecordsRequest.model_validate_json(row["request_data"])

    async def update_signature_status(
        self, request_id: str, status: SignatureStatus
    ) -> None:
        request = await self._require(request_id)
        update: dict = {"signature_status": status}
        if status is SignatureStatus.SIGNED and request.signed_at is None:
            update["signed_at"] = datetime.now(timezone.utc)
        await self.save_records_request(request.model_copy(update=update))

    async def record_dispatch(
        self, request_id: str, channel: DispatchChannel, reference: str
    ) -> None:
        request = await self._require(request_id)
        if request.signature_status is not SignatureStatus.SIGNED:
            raise ValueError(
                f"Records request {request_id} is not signed "
                f"({request.signature_status.value})"
            )
        await self.save_records_request(
            request.model_copy(
                update={
                    "dispatch_channel": channel,
                    "dispatch_reference": reference,
                }
            )
        )
        logger.info(
            "Records request dispatched",
            extra={"request_id": request_id, "channel": channel.value},
        )

    async def _require(self, request_id: str) -> RecordsRequest:
        request = await self.get_records_request(request_id)
        if request is None:
            raise ValueError(f"Records request {request_id} not found")
        return request
