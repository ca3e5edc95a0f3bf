"""
PostgreSQL implementation of InstanceRegistry.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from asyncpg import Pool

from intake.domain import InstanceRegistration, InstanceStatus, ProcessInstance
from intake.repositories import InstanceRegistry

logger = logging.getLogger(__name__)


class PostgreSQLInstanceRegistry(InstanceRegistry):
    """
    Process instance tree in the ``process_instances`` table.

    Registration locks the row, so concurrent registrations of one id see
    a single winner. A scheduled or running instance is returned untouched;
    a finished one is replaced by a fresh record for the new run. The
    ``parent_instance_id`` column is never rewritten.
    """

    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLInstanceRegistry")

    async def register_instance(
        self, registration: InstanceRegistration
    ) -> ProcessInstance:
        instance = registration.to_instance(datetime.now(timezone.utc))
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                inserted = await conn.fetchval(
                    """
                    INSERT INTO process_instances (
                        instance_id, parent_instance_id, case_id,
                        workflow_name, status, instance_data, started_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    ON CONFLICT (instance_id) DO NOTHING
                    RETURNING instance_id
                    """,
                    instance.instance_id,
                    instance.parent_instance_id,
                    instance.case_id,
                    instance.workflow_name,
                    instance.status.value,
                    instance.model_dump_json(),
                    instance.started_at,
                )
                if inserted is not None:
                    logger.info(
                        "Instance registered",
                        extra={
                            "instance_id": instance.instance_id,
                            "parent_instance_id": instance.parent_instance_id,
                            "status": instance.status.value,
                        },
                    )
                    return instance

                row = await conn.fetchrow(
                    """
                    SELECT instance_data FROM process_instances
                    WHERE instance_id = $1 FOR UPDATE
                    """,
                    instance.instance_id,
                )
                stored = ProcessInstance.model_validate_json(
                    row["instance_data"]
                )
                if not stored.status.is_terminal:
                    return stored

                # A new run reusing a finished instance's id
                restarted = instance.model_copy(
                    update={"parent_instance_id": stored.parent_instance_id}
                )
                await conn.execute(
                    """
                    UPDATE process_instances
                    SET status = $2, instance_data = $3, started_at = $4
                    WHERE instance_id = $1
                    """,
                    restarted.instance_id,
                    restarted.status.value,
                    restarted.model_dump_json(),
                    restarted.started_at,
                )
        logger.info(
            "Instance restarted",
            extra={
                "instance_id": restarted.instance_id,
                "parent_instance_id": restarted.parent_instance_id,
                "status": restarted.status.value,
            },
        )
        return restarted

    async def mark_instance_running(self, instance_id: str) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    SELECT instance_data FROM process_instances
                    WHERE instance_id = $1 FOR UPDATE
                    """,
                    instance_id,
                )
                if row is None:
                    raise ValueError(
                        f"Instance {instance_id} is not registered"
                    )
                instance = ProcessInstance.model_validate_json(
                    row["instance_data"]
                )
                if instance.status is not InstanceStatus.SCHEDULED:
                    return
                instance = instance.model_copy(
                    update={
                        "status": InstanceStatus.RUNNING,
                        "started_at": datetime.now(timezone.utc),
                    }
                )
                await conn.execute(
                    """
                    UPDATE process_instances
                    SET status = $2, instance_data = $3, started_at = $4
                    WHERE instance_id = $1
                    """,
                    instance_id,
                    instance.status.value,
                    instance.model_dump_json(),
                    instance.started_at,
                )

    async def update_instance_status(
        self, instance_id: str, message: str
    ) -> None:
        await self._update(instance_id, status_message=message)

    async def mark_instance_terminal(
        self,
        instance_id: str,
        status: InstanceStatus,
        error: Optional[str] = None,
        result: Optional[dict] = None,
    ) -> None:
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        await self._update(
            instance_id,
            status=status,
            error=error,
            result=result,
            completed_at=datetime.now(timezone.utc),
        )

    async def get_instance(self, instance_id: str) -> Optional[ProcessInstance]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT instance_data FROM process_instances
                WHERE instance_id = $1
                """,
                instance_id,
            )
        if row is None:
            return None
        return ProcessInstance.model_validate_json(row["instance_data"])

    async def list_children(self, instance_id: str) -> List[ProcessInstance]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT instance_data FROM process_instances
                WHERE parent_instance_id = $1
                ORDER BY started_at
                """,
                instance_id,
            )
        return [
            ProcessInstance.model_validate_json(row["instance_data"])
            for row in rows
        ]

    async def set_paused(self, instance_id: str, paused: bool) -> None:
        await self._update(instance_id, paused=paused)

    async def _update(self, instance_id: str, **changes: object) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    SELECT instance_data FROM process_instances
                    WHERE instance_id = $1 FOR UPDATE
                    """,
                    instance_id,
                )
                if row is None:
                    raise ValueError(
                        f"Instance {instance_id} is not registered"
                    )
                instance = ProcessInstance.model_validate_json(
                    row["instance_data"]
                ).model_copy(update=changes)
                await conn.execute(
                    """
                    UPDATE process_instances
                    SET status = $2, instance_data = $3
                    WHERE instance_id = $1
                    """,
                    instance_id,
                    instance.status.value,
                    instance.model_dump_json(),
                )
