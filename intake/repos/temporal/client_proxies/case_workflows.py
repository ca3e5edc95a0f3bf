"""
Client-side proxy that starts and signals case workflows.

Used by the API and the CLI. Every instance is registered before it is
started, and operator pause/resume walks the registrar tree so that a case
pauses as a whole. Instances still waiting on a start delay are skipped by
pause and resume.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from temporalio.client import Client
from temporalio.service import RPCError

from intake.domain import (
    CallCompletionData,
    CaseWorkflowParams,
    InstanceRegistration,
    InstanceStatus,
    ProcessInstance,
    UserResponse,
    VerificationResolution,
)
from intake.repositories import InstanceRegistry
from intake.validation import ensure_instance_registry
from intake.workflows import CaseLifecycleWorkflow

logger = logging.getLogger(__name__)


def case_instance_id(case_id: str) -> str:
    return f"case-{case_id}"


def outreach_instance_id(case_id: str) -> str:
    return f"{case_instance_id(case_id)}/outreach"


class TemporalCaseWorkflowClient:
    def __init__(
        self,
        client: Client,
        registry: InstanceRegistry,
        task_queue: str = "intake-task-queue",
    ) -> None:
        self.client = client
        self.registry = ensure_instance_registry(registry)
        self.task_queue = task_queue

    async def start_case(
        self,
        params: CaseWorkflowParams,
        scheduled_at: Optional[datetime] = None,
    ) -> ProcessInstance:
        """
        Register and start the lifecycle workflow for a case.

        With ``scheduled_at`` the workflow is started with a Temporal start
        delay and registered as scheduled until its first task runs. Naive
        times are taken as UTC. Raises ValueError for a time in the past.
        """
        start_delay = None
        if scheduled_at is not None:
            if scheduled_at.tzinfo is None:
                scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
            start_delay = scheduled_at - datetime.now(timezone.utc)
            if start_delay <= timedelta(0):
                raise ValueError("Scheduled time must be in the future")

        instance_id = case_instance_id(params.case_id)
        instance = await self.registry.register_instance(
            InstanceRegistration(
                instance_id=instance_id,
                workflow_name="CaseLifecycleWorkflow",
                case_id=params.case_id,
                entity_type="case",
                entity_id=params.case_id,
                parameters=params.model_dump(mode="json"),
                scheduled_at=scheduled_at,
            )
        )
        await self.client.start_workflow(
            CaseLifecycleWorkflow.run,
            params,
            id=instance_id,
            task_queue=self.task_queue,
            start_delay=start_delay,
        )
        logger.info(
            "Case workflow scheduled" if start_delay else "Case workflow started",
            extra={
                "case_id": params.case_id,
                "instance_id": instance_id,
                "scheduled_at": (
                    scheduled_at.isoformat() if scheduled_at else None
                ),
            },
        )
        return instance

    async def signal_user_response(
        self, case_id: str, response: UserResponse
    ) -> None:
        handle = self.client.get_workflow_handle(outreach_instance_id(case_id))
        await handle.signal("user_response", response)

    async def signal_call_completed(
        self, case_id: str, data: CallCompletionData
    ) -> None:
        handle = self.client.get_workflow_handle(outreach_instance_id(case_id))
        await handle.signal("call_completed", data)

    async def signal_verification_resolved(
        self, case_id: str, resolution: VerificationResolution
    ) -> None:
        handle = self.client.get_workflow_handle(case_instance_id(case_id))
        await handle.signal("verification_resolved", resolution)

    async def pause_tree(self, instance_id: str) -> List[str]:
        """Pause an instance and all its running descendants."""
        return await self._signal_tree(instance_id, "pause", paused=True)

    async def resume_tree(self, instance_id: str) -> List[str]:
        return await self._signal_tree(instance_id, "resume", paused=False)

    async def _signal_tree(
        self, instance_id: str, signal: str, paused: bool
    ) -> List[str]:
        root = await self.registry.get_instance(instance_id)
        if root is None:
            raise KeyError(instance_id)

        signalled: List[str] = []
        pending = [root]
        while pending:
            instance = pending.pop(0)
            pending.extend(
                await self.registry.list_children(instance.instance_id)
            )
            if instance.status.is_terminal:
                continue
            if instance.status is InstanceStatus.SCHEDULED:
                # Signalling a delayed workflow would start it early
                logger.info(
                    "Skipping scheduled instance",
                    extra={
                        "instance_id": instance.instance_id,
                        "signal": signal,
                    },
                )
                continue
            try:
                await self.client.get_workflow_handle(
                    instance.instance_id
                ).signal(signal)
            except RPCError as e:
                # Finished between the registry read and the signal.
                logger.warning(
                    "Could not signal instance",
                    extra={
                        "instance_id": instance.instance_id,
                        "signal": signal,
                        "error": str(e),
                    },
                )
                continue
            await self.registry.set_paused(instance.instance_id, paused)
            signalled.append(instance.instance_id)

        logger.info(
            f"Sent {signal} to instance tree",
            extra={"root": instance_id, "instances": signalled},
        )
        return signalled
