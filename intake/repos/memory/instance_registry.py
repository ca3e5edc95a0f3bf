"""
Memory implementation of InstanceRegistry.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from intake.domain import InstanceRegistration, InstanceStatus, ProcessInstance
from intake.repositories import InstanceRegistry

logger = logging.getLogger(__name__)


class MemoryInstanceRegistry(InstanceRegistry):
    """Process instances keyed by instance id, in registration order."""

    def __init__(self) -> None:
        logger.debug("Initializing MemoryInstanceRegistry")
        self._instances: Dict[str, ProcessInstance] = {}

    async def register_instance(
        self, registration: InstanceRegistration
    ) -> ProcessInstance:
        existing = self._instances.get(registration.instance_id)
        if existing is not None and not existing.status.is_terminal:
            logger.debug(
                "Instance already registered",
                extra={"instance_id": registration.instance_id},
            )
            return existing

        instance = registration.to_instance(datetime.now(timezone.utc))
        if existing is not None:
            # A new run reusing a finished instance's id
            instance = instance.model_copy(
                update={"parent_instance_id": existing.parent_instance_id}
            )
        self._instances[instance.instance_id] = instance
        logger.info(
            "Instance restarted" if existing else "Instance registered",
            extra={
                "instance_id": instance.instance_id,
                "workflow_name": instance.workflow_name,
                "parent_instance_id": instance.parent_instance_id,
                "status": instance.status.value,
            },
        )
        return instance

    async def mark_instance_running(self, instance_id: str) -> None:
        instance = self._instances.get(instance_id)
        if instance is None:
            raise ValueError(f"Instance {instance_id} is not registered")
        if instance.status is InstanceStatus.SCHEDULED:
            self._update(
                instance_id,
                status=InstanceStatus.RUNNING,
                started_at=datetime.now(timezone.utc),
            )

    async def update_instance_status(
        self, instance_id: str, message: str
    ) -> None:
        self._update(instance_id, status_message=message)

    async def mark_instance_terminal(
        self,
        instance_id: str,
        status: InstanceStatus,
        error: Optional[str] = None,
        result: Optional[dict] = None,
    ) -> None:
        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")
        self._update(
            instance_id,
            status=status,
            error=error,
            result=result,
            completed_at=datetime.now(timezone.utc),
        )
        logger.info(
            "Instance finished",
            extra={"instance_id": instance_id, "status": status.value},
        )

    async def get_instance(self, instance_id: str) -> Optional[ProcessInstance]:
        return self._instances.get(instance_id)

    async def list_children(self, instance_id: str) -> List[ProcessInstance]:
        return [
            i
            for i in self._instances.values()
            if i.parent_instance_id == instance_id
        ]

    async def set_paused(self, instance_id: str, paused: bool) -> None:
        self._update(instance_id, paused=paused)

    def _update(self, instance_id: str, **changes: object) -> None:
        instance = self._instances.get(instance_id)
        if instance is None:
            raise ValueError(f"Instance {instance_id} is not registered")
        self._instances[instance_id] = instance.model_copy(update=changes)
