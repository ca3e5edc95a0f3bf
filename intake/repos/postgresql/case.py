"""
PostgreSQL implementation of CaseRepository.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from asyncpg import Pool

from intake.domain import Case, CaseAssessment, CaseStatus, CaseTask, TaskStatus
from intake.phone import normalize_phone_number
from intake.repositories import CaseRepository

logger = logging.getLogger(__name__)


class PostgreSQLCaseRepository(CaseRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLCaseRepository")

    async def get_case(self, case_id: str) -> Optional[Case]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT case_data FROM cases WHERE case_id = $1", case_id
            )
        if row is None:
            return None
        return Case.model_validate_json(row["case_data"])

    async def save_case(self, case: Case) -> None:
        try:
            phone = normalize_phone_number(case.phone)
        except ValueError:
            phone = case.phone
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO cases (case_id, phone, case_data, updated_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (case_id)
                DO UPDATE SET
                    phone = EXCLUDED.phone,
                    case_data = EXCLUDED.case_data,
                    updated_at = EXCLUDED.updated_at
                """,
                case.case_id,
                phone,
                case.model_dump_json(),
                datetime.now(timezone.utc),
            )

    async def find_case_by_phone(self, phone: str) -> Optional[Case]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT case_data FROM cases
                WHERE phone = $1
                ORDER BY updated_at DESC
                LIMIT 1
                """,
                normalize_phone_number(phone),
            )
        if row is None:
            return None
        return Case.model_validate_json(row["case_data"])

    async def update_case_status(
        self, case_id: str, status: CaseStatus
    ) -> None:
        await self._update_case(case_id, status=status)
        logger.info(
            "Case status updated",
            extra={"case_id": case_id, "status": status.value},
        )

    async def record_case_failure(self, case_id: str, reason: str) -> None:
        await self._update_case(
            case_id, status=CaseStatus.FAILED, failure_reason=reason
        )
        logger.warning(
            "Case failed", extra={"case_id": case_id, "reason": reason}
        )

    async def update_task_status(
        self,
        case_id: str,
        task: CaseTask,
        status: TaskStatus,
        note: Optional[str] = None,
    ) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO case_tasks (case_id, task, status, note, updated_at)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (case_id, task)
                DO UPDATE SET
                    status = EXCLUDED.status,
                    note = EXCLUDED.note,
                    updated_at = EXCLUDED.updated_at
                """,
                case_id,
                task.value,
                status.value,
                note,
                datetime.now(timezone.utc),
            )

    async def get_task_status(
        self, case_id: str, task: CaseTask
    ) -> Optional[TaskStatus]:
        async with self.pool.acquire() as conn:
            status = await conn.fetchval(
                """
                SELECT status FROM case_tasks
                WHERE case_id = $1 AND task = $2
                """,
                case_id,
                task.value,
            )
        return TaskStatus(status) if status is not None else None

    async def save_assessment(
        self, case_id: str, assessment: CaseAssessment
    ) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO case_assessments (
                    case_id, assessment_data, updated_at
                )
                VALUES ($1, $2, $3)
                ON CONFLICT (case_id)
                DO UPDATE SET
                    assessment_data = EXCLUDED.assessment_data,
                    updated_at = EXCLUDED.updated_at
                """,
                case_id,
                assessment.model_dump_json(),
                datetime.now(timezone.utc),
            )

    async def _update_case(self, case_id: str, **changes: object) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "SELECT case_data FROM cases WHERE case_id = $1 FOR UPDATE",
                    case_id,
                )
                if row is None:
                    raise ValueError(f"Case {case_id} not found")
                case = Case.model_validate_json(row["case_data"])
                case = case.model_copy(update=changes)
                await conn.execute(
                    """
                    UPDATE cases SET case_data = $2, updated_at = $3
                    WHERE case_id = $1
                    """,
                    case_id,
                    case.model_dump_json(),
                    datetime.now(timezone.utc),
                )
