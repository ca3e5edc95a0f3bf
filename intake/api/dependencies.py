"""
Dependency injection for FastAPI endpoints.
"""

import logging
from typing import Any, Dict, Optional

import asyncpg
from fastapi import Depends
from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter

from intake.config import IntakeSettings
from intake.repositories import (
    CallRecordRepository,
    CaseRepository,
    InstanceRegistry,
)
from intake.repos.memory import (
    MemoryCallRecordRepository,
    MemoryCaseRepository,
    MemoryInstanceRegistry,
)
from intake.repos.postgresql import (
    PostgreSQLCallRecordRepository,
    PostgreSQLCaseRepository,
    PostgreSQLInstanceRegistry,
)
from intake.repos.temporal.client_proxies import TemporalCaseWorkflowClient
from intake.validation import (
    ensure_call_record_repository,
    ensure_case_repository,
    ensure_instance_registry,
)

logger = logging.getLogger(__name__)


class DependencyContainer:
    """
    Dependency injection container with singleton lifecycle management.
    Always creates real clients; mocks are provided by test overrides.
    """

    def __init__(self, settings: Optional[IntakeSettings] = None) -> None:
        self.settings = settings or IntakeSettings.from_env()
        self._instances: Dict[str, Any] = {}

    async def get_or_create(self, key: str, factory: Any) -> Any:
        """Get or create a singleton instance."""
        if key not in self._instances:
            self._instances[key] = await factory()
        return self._instances[key]

    async def get_temporal_client(self) -> Client:
        client = await self.get_or_create(
            "temporal_client", self._create_temporal_client
        )
        return client  # type: ignore[no-any-return]

    async def _create_temporal_client(self) -> Client:
        logger.debug(
            "Creating Temporal client",
            extra={
                "endpoint": self.settings.temporal_endpoint,
                "namespace": self.settings.temporal_namespace,
            },
        )
        return await Client.connect(
            self.settings.temporal_endpoint,
            namespace=self.settings.temporal_namespace,
            data_converter=pydantic_data_converter,
        )

    async def get_pool(self) -> Optional[asyncpg.Pool]:
        if not self.settings.database_url:
            return None
        return await self.get_or_create(  # type: ignore[no-any-return]
            "pool",
            lambda: asyncpg.create_pool(self.settings.database_url),
        )

    async def get_case_repository(self) -> CaseRepository:
        pool = await self.get_pool()

        async def create() -> CaseRepository:
            if pool is None:
                return MemoryCaseRepository()
            return PostgreSQLCaseRepository(pool)

        return await self.get_or_create(  # type: ignore[no-any-return]
            "case_repo", create
        )

    async def get_instance_registry(self) -> InstanceRegistry:
        pool = await self.get_pool()

        async def create() -> InstanceRegistry:
            if pool is None:
                return MemoryInstanceRegistry()
            return PostgreSQLInstanceRegistry(pool)

        return await self.get_or_create(  # type: ignore[no-any-return]
            "instance_registry", create
        )

    async def get_call_record_repository(self) -> CallRecordRepository:
        pool = await self.get_pool()

        async def create() -> CallRecordRepository:
            if pool is None:
                return MemoryCallRecordRepository()
            return PostgreSQLCallRecordRepository(pool)

        return await self.get_or_create(  # type: ignore[no-any-return]
            "call_record_repo", create
        )


# Global container instance
_container = DependencyContainer()


async def get_temporal_client() -> Client:
    """FastAPI dependency for Temporal client."""
    return await _container.get_temporal_client()


async def get_case_repository() -> CaseRepository:
    return ensure_case_repository(await _container.get_case_repository())


async def get_instance_registry() -> InstanceRegistry:
    return ensure_instance_registry(await _container.get_instance_registry())


async def get_call_record_repository() -> CallRecordRepository:
    return ensure_call_record_repository(
        await _container.get_call_record_repository()
    )


async def get_workflow_client(
    client: Client = Depends(get_temporal_client),
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> TemporalCaseWorkflowClient:
    return TemporalCaseWorkflowClient(
        client, registry, task_queue=_container.settings.task_queue
    )
