"""
Operator CLI for case workflows.

    intake-ctl start CASE_ID --phone "(555) 123-4567" --name "Jane Doe"
    intake-ctl start CASE_ID --at 2026-03-01T09:00:00
    intake-ctl pause case-CASE_ID
    intake-ctl resume case-CASE_ID
    intake-ctl status case-CASE_ID

Pause, resume and status read the instance registrar, so they need
DATABASE_URL to point at the same database the worker uses.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Tuple

import asyncpg
import click

from intake.config import IntakeSettings, setup_logging
from intake.domain import (
    Case,
    CaseWorkflowParams,
    InstanceStatus,
    OutreachParams,
    ProcessInstance,
)
from intake.repos.memory import MemoryCaseRepository, MemoryInstanceRegistry
from intake.repos.postgresql import (
    PostgreSQLCaseRepository,
    PostgreSQLInstanceRegistry,
    ensure_schema,
)
from intake.repos.temporal.client_proxies import TemporalCaseWorkflowClient
from intake.repositories import CaseRepository, InstanceRegistry
from intake.worker import get_temporal_client_with_retries

logger = logging.getLogger(__name__)


async def _open_stores(
    settings: IntakeSettings,
) -> Tuple[CaseRepository, InstanceRegistry, Optional[asyncpg.Pool]]:
    if not settings.database_url:
        logger.warning(
            "DATABASE_URL not set, instance registry is local to this command"
        )
        return MemoryCaseRepository(), MemoryInstanceRegistry(), None
    pool = await asyncpg.create_pool(settings.database_url)
    await ensure_schema(pool)
    return (
        PostgreSQLCaseRepository(pool),
        PostgreSQLInstanceRegistry(pool),
        pool,
    )


async def _workflow_client(
    settings: IntakeSettings, registry: InstanceRegistry
) -> TemporalCaseWorkflowClient:
    client = await get_temporal_client_with_retries(
        settings.temporal_endpoint,
        settings.temporal_namespace,
        attempts=3,
        delay=2,
    )
    return TemporalCaseWorkflowClient(
        client, registry, task_queue=settings.task_queue
    )


async def _start(
    case_id: str,
    phone: Optional[str],
    name: Optional[str],
    email: Optional[str],
    max_attempts: int,
    scheduled_at: Optional[datetime] = None,
) -> ProcessInstance:
    settings = IntakeSettings.from_env()
    case_repo, registry, pool = await _open_stores(settings)
    try:
        if phone:
            await case_repo.save_case(
                Case(case_id=case_id, phone=phone, name=name, email=email)
            )
        elif await case_repo.get_case(case_id) is None:
            raise click.ClickException(
                f"Case {case_id} not found; pass --phone to create it"
            )
        workflows = await _workflow_client(settings, registry)
        try:
            return await workflows.start_case(
                CaseWorkflowParams(
                    case_id=case_id,
                    outreach=OutreachParams(
                        case_id=case_id, max_attempts=max_attempts
                    ),
                ),
                scheduled_at,
            )
        except ValueError as e:
            raise click.ClickException(str(e))
    finally:
        if pool is not None:
            await pool.close()


async def _signal_tree(instance_id: str, pause: bool) -> list:
    settings = IntakeSettings.from_env()
    _, registry, pool = await _open_stores(settings)
    try:
        workflows = await _workflow_client(settings, registry)
        if pause:
            return await workflows.pause_tree(instance_id)
        return await workflows.resume_tree(instance_id)
    finally:
        if pool is not None:
            await pool.close()


async def _status(instance_id: str) -> list:
    settings = IntakeSettings.from_env()
    _, registry, pool = await _open_stores(settings)
    try:
        root = await registry.get_instance(instance_id)
        if root is None:
            return []
        lines = []
        pending = [(root, 0)]
        while pending:
            instance, depth = pending.pop(0)
            flag = " [paused]" if instance.paused else ""
            lines.append(
                f"{'  ' * depth}{instance.instance_id} "
                f"({instance.workflow_name}) {instance.status.value}{flag}"
                f": {instance.status_message or '-'}"
            )
            children = await registry.list_children(instance.instance_id)
            pending[0:0] = [(child, depth + 1) for child in children]
        return lines
    finally:
        if pool is not None:
            await pool.close()


@click.group()
def main() -> None:
    """Start, pause, resume and inspect case workflows."""
    setup_logging()


@main.command()
@click.argument("case_id")
@click.option("--phone", help="Patient phone number; creates/updates the case")
@click.option("--name", help="Patient name")
@click.option("--email", help="Patient email, used for signature requests")
@click.option(
    "--max-attempts",
    default=7,
    show_default=True,
    type=click.IntRange(1, 10),
    help="Outreach attempts before giving up",
)
@click.option(
    "--at",
    "scheduled_at",
    type=click.DateTime(),
    help="Start later, at this UTC time (e.g. 2026-03-01T09:00:00)",
)
def start(
    case_id: str,
    phone: Optional[str],
    name: Optional[str],
    email: Optional[str],
    max_attempts: int,
    scheduled_at: Optional[datetime],
) -> None:
    """Start the lifecycle workflow for CASE_ID."""
    instance = asyncio.run(
        _start(case_id, phone, name, email, max_attempts, scheduled_at)
    )
    if instance.status is InstanceStatus.SCHEDULED:
        click.echo(
            f"Scheduled {instance.instance_id} for "
            f"{instance.scheduled_at.isoformat()}"
        )
    else:
        click.echo(f"Started {instance.instance_id}")


@main.command()
@click.argument("instance_id")
def pause(instance_id: str) -> None:
    """Pause INSTANCE_ID and every running descendant."""
    try:
        signalled = asyncio.run(_signal_tree(instance_id, pause=True))
    except KeyError:
        raise click.ClickException(f"Unknown instance {instance_id}")
    click.echo(f"Paused {len(signalled)} instance(s)")
    for iid in signalled:
        click.echo(f"  {iid}")


@main.command()
@click.argument("instance_id")
def resume(instance_id: str) -> None:
    """Resume INSTANCE_ID and every running descendant."""
    try:
        signalled = asyncio.run(_signal_tree(instance_id, pause=False))
    except KeyError:
        raise click.ClickException(f"Unknown instance {instance_id}")
    click.echo(f"Resumed {len(signalled)} instance(s)")
    for iid in signalled:
        click.echo(f"  {iid}")


@main.command()
@click.argument("instance_id")
def status(instance_id: str) -> None:
    """Show the registrar tree under INSTANCE_ID."""
    lines = asyncio.run(_status(instance_id))
    if not lines:
        raise click.ClickException(f"Unknown instance {instance_id}")
    for line in lines:
        click.echo(line)


if __name__ == "__main__":
    main()
