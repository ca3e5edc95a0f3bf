"""
Temporal worker that runs the case workflows and activities.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

import asyncpg
from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.service import RPCError
from temporalio.worker import Worker

from intake.config import IntakeSettings, setup_logging
from intake.repos.postgresql import ensure_schema
from intake.repos.temporal.activities import (
    TemporalAnthropicTranscriptAnalyzer,
    TemporalElevenLabsVoiceRepository,
    TemporalHumbleFaxRepository,
    TemporalMailgunEmailRepository,
    TemporalMemoryCallRecordRepository,
    TemporalMemoryCaseRepository,
    TemporalMemoryInstanceRegistry,
    TemporalMemoryProviderRepository,
    TemporalMemoryRecordsRequestRepository,
    TemporalNPIRegistryRepository,
    TemporalOpenPhoneMessagingRepository,
    TemporalOpenSignSignatureRepository,
    TemporalPostgreSQLCallRecordRepository,
    TemporalPostgreSQLCaseRepository,
    TemporalPostgreSQLInstanceRegistry,
    TemporalPostgreSQLProviderRepository,
    TemporalPostgreSQLRecordsRequestRepository,
)
from intake.workflows import (
    CaseLifecycleWorkflow,
    OutreachWorkflow,
    RecordsCoordinatorWorkflow,
    RecordsRetrievalWorkflow,
)

logger = logging.getLogger(__name__)

WORKFLOWS = [
    CaseLifecycleWorkflow,
    OutreachWorkflow,
    RecordsCoordinatorWorkflow,
    RecordsRetrievalWorkflow,
]


@dataclass
class Stores:
    case_repo: Any
    instance_registry: Any
    provider_repo: Any
    records_repo: Any
    call_record_repo: Any


async def get_temporal_client_with_retries(
    endpoint: str,
    namespace: str = "default",
    attempts: int = 10,
    delay: int = 5,
) -> Client:
    """Attempt to connect to Temporal with retries."""
    for attempt in range(attempts):
        try:
            client = await Client.connect(
                endpoint,
                data_converter=pydantic_data_converter,
                namespace=namespace,
            )
            logger.info(
                "Successfully connected to Temporal",
                extra={"endpoint": endpoint, "attempt": attempt + 1},
            )
            return client
        except RPCError as e:
            logger.warning(
                "Failed to connect to Temporal",
                extra={
                    "endpoint": endpoint,
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "error": str(e),
                    "retry_in_seconds": delay,
                },
            )
            if attempt + 1 == attempts:
                logger.error(
                    "All connection attempts to Temporal failed",
                    extra={"endpoint": endpoint, "total_attempts": attempts},
                )
                raise
            await asyncio.sleep(delay)

    raise RuntimeError("Failed to connect to Temporal after all attempts")


async def build_stores(
    settings: IntakeSettings, pool: Optional[asyncpg.Pool] = None
) -> Stores:
    """PostgreSQL stores when a pool is given, otherwise in-memory ones."""
    if pool is not None:
        await ensure_schema(pool)
        return Stores(
            case_repo=TemporalPostgreSQLCaseRepository(pool),
            instance_registry=TemporalPostgreSQLInstanceRegistry(pool),
            provider_repo=TemporalPostgreSQLProviderRepository(pool),
            records_repo=TemporalPostgreSQLRecordsRequestRepository(pool),
            call_record_repo=TemporalPostgreSQLCallRecordRepository(pool),
        )

    logger.warning(
        "DATABASE_URL not set, using in-memory stores (lost on restart)"
    )
    return Stores(
        case_repo=TemporalMemoryCaseRepository(),
        instance_registry=TemporalMemoryInstanceRegistry(),
        provider_repo=TemporalMemoryProviderRepository(),
        records_repo=TemporalMemoryRecordsRequestRepository(),
        call_record_repo=TemporalMemoryCallRecordRepository(),
    )


def build_platform_repositories(
    settings: IntakeSettings, stores: Stores
) -> List[Any]:
    signature_repo = TemporalOpenSignSignatureRepository(
        case_repo=stores.case_repo,
        base_url=settings.opensign_base_url,
        api_token=settings.opensign_api_token,
        template_id=settings.opensign_template_id,
    )
    return [
        TemporalOpenPhoneMessagingRepository(
            case_repo=stores.case_repo,
            api_key=settings.openphone_api_key,
            from_number=settings.openphone_from_number,
        ),
        TemporalElevenLabsVoiceRepository(
            case_repo=stores.case_repo,
            api_key=settings.elevenlabs_api_key,
            phone_number_id=settings.elevenlabs_phone_number_id,
            intake_agent_id=settings.elevenlabs_intake_agent_id,
            provider_agent_id=settings.elevenlabs_provider_agent_id,
        ),
        signature_repo,
        TemporalHumbleFaxRepository(
            signature_repo=signature_repo,
            access_key=settings.humblefax_access_key,
            secret_key=settings.humblefax_secret_key,
        ),
        TemporalMailgunEmailRepository(
            signature_repo=signature_repo,
            api_key=settings.mailgun_api_key,
            domain=settings.mailgun_domain,
            from_email=settings.mailgun_from_email,
        ),
        TemporalNPIRegistryRepository(),
        TemporalAnthropicTranscriptAnalyzer(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
        ),
    ]


def collect_activities(*repositories: Any) -> List[Callable[..., Any]]:
    """Bound methods that carry a Temporal activity definition."""
    activities = []
    for repo in repositories:
        for name in dir(type(repo)):
            if name.startswith("_"):
                continue
            member = getattr(repo, name)
            if hasattr(member, "__temporal_activity_definition"):
                activities.append(member)
    return activities


async def run_worker() -> None:
    """Run the Temporal worker"""
    setup_logging()
    settings = IntakeSettings.from_env()
    logger.info(
        "Starting Temporal worker",
        extra={
            "temporal_endpoint": settings.temporal_endpoint,
            "task_queue": settings.task_queue,
        },
    )

    client = await get_temporal_client_with_retries(
        settings.temporal_endpoint, settings.temporal_namespace
    )

    pool = None
    if settings.database_url:
        pool = await asyncpg.create_pool(settings.database_url)
    stores = await build_stores(settings, pool)
    platforms = build_platform_repositories(settings, stores)

    activities = collect_activities(
        stores.case_repo,
        stores.instance_registry,
        stores.provider_repo,
        stores.records_repo,
        stores.call_record_repo,
        *platforms,
    )
    logger.info(
        "Creating Temporal worker",
        extra={
            "task_queue": settings.task_queue,
            "workflow_count": len(WORKFLOWS),
            "activity_count": len(activities),
        },
    )

    worker = Worker(
        client,
        task_queue=settings.task_queue,
        workflows=WORKFLOWS,
        activities=activities,
    )
    try:
        await worker.run()
    finally:
        if pool is not None:
            await pool.close()


def main() -> None:
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
