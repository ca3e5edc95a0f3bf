"""
PostgreSQL implementation of CallRecordRepository.
"""

from typing import Optional

from asyncpg import Pool

from intake.domain import CallRecord, CallRecordStatus
from intake.repositories import CallRecordRepository


class PostgreSQLCallRecordRepository(CallRecordRepository):
    def __init__(self, pool: Pool):
        self.pool = pool

    async def save_call_record(self, record: CallRecord) -> None:
        # A finished call is never overwritten by an "initiated" row.
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO call_records (
                    conversation_id, case_id, status, record_data
                ) VALUES ($1, $2, $3, $4)
                ON CONFLICT (conversation_id)
                DO UPDATE SET
                    status = EXCLUDED.status,
                    record_data = EXCLUDED.record_data
                WHERE EXCLUDED.status <> $5
                   OR call_records.status = $5
                """,
                record.conversation_id,
                record.case_id,
                record.status.value,
                record.model_dump_json(),
                CallRecordStatus.INITIATED.value,
            )

    async def get_call_record(
        self, conversation_id: str
    ) -> Optional[CallRecord]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT record_data FROM call_records
                WHERE conversation_id = $1
                """,
                conversation_id,
            )
        if row is None:
            return None
        return CallRecord.model_validate_json(row["record_data"])
