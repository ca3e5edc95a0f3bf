"""
Fixtures for running workflow code without a Temporal server.

``WorkflowHarness`` patches the ``temporalio.workflow`` functions the
intake workflows call. Activities are routed by name to memory stores and
to ``AsyncMock`` platform repositories, timers return immediately and are
recorded, and ``wait_condition`` evaluates its predicate once: it returns
when the predicate holds and times out otherwise. Tests deliver signals
from the ``on_wait`` and ``on_sleep`` hooks, which run just before a wait
is evaluated.
"""

import asyncio
from datetime import timedelta
from types import SimpleNamespace
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, patch

import pytest
from temporalio.exceptions import ActivityError, ApplicationError

from intake.repos.memory import (
    MemoryCallRecordRepository,
    MemoryCaseRepository,
    MemoryInstanceRegistry,
    MemoryProviderRepository,
    MemoryRecordsRequestRepository,
)
from intake.repos.temporal.activity_names import (
    CALL_RECORD_ACTIVITY_BASE,
    CASE_ACTIVITY_BASE,
    EMAIL_ACTIVITY_BASE,
    FAX_ACTIVITY_BASE,
    INSTANCE_REGISTRY_ACTIVITY_BASE,
    MESSAGING_ACTIVITY_BASE,
    PROVIDER_ACTIVITY_BASE,
    PROVIDER_REGISTRY_ACTIVITY_BASE,
    RECORDS_REQUEST_ACTIVITY_BASE,
    SIGNATURE_ACTIVITY_BASE,
    TRANSCRIPT_ANALYZER_ACTIVITY_BASE,
    VOICE_ACTIVITY_BASE,
)
from intake.repositories import (
    EmailRepository,
    FaxRepository,
    MessagingRepository,
    ProviderRegistryRepository,
    SignatureRepository,
    TranscriptAnalyzer,
    VoiceRepository,
)


def activity_error(cause: BaseException) -> ActivityError:
    """An ActivityError as a workflow sees it, wrapping ``cause``."""
    error = ActivityError(
        "Activity task failed",
        scheduled_event_id=1,
        started_event_id=2,
        identity="test-worker",
        activity_type="test",
        activity_id="1",
        retry_state=None,
    )
    error.__cause__ = cause
    return error


ChildHandler = Callable[[Any, str], Awaitable[Any]]


class WorkflowHarness:
    def __init__(self) -> None:
        self.case_repo = MemoryCaseRepository()
        self.registry = MemoryInstanceRegistry()
        self.provider_repo = MemoryProviderRepository()
        self.records_repo = MemoryRecordsRequestRepository()
        self.call_record_repo = MemoryCallRecordRepository()

        self.messaging = AsyncMock(spec=MessagingRepository)
        self.messaging.send_message.return_value = "msg-1"
        self.voice = AsyncMock(spec=VoiceRepository)
        self.signature = AsyncMock(spec=SignatureRepository)
        self.fax = AsyncMock(spec=FaxRepository)
        self.fax.dispatch_fax.return_value = "fax-1"
        self.email = AsyncMock(spec=EmailRepository)
        self.email.dispatch_email.return_value = "email-1"
        self.provider_registry = AsyncMock(spec=ProviderRegistryRepository)
        self.analyzer = AsyncMock(spec=TranscriptAnalyzer)

        self.routes: Dict[str, Any] = {
            CASE_ACTIVITY_BASE: self.case_repo,
            INSTANCE_REGISTRY_ACTIVITY_BASE: self.registry,
            PROVIDER_ACTIVITY_BASE: self.provider_repo,
            RECORDS_REQUEST_ACTIVITY_BASE: self.records_repo,
            CALL_RECORD_ACTIVITY_BASE: self.call_record_repo,
            MESSAGING_ACTIVITY_BASE: self.messaging,
            VOICE_ACTIVITY_BASE: self.voice,
            SIGNATURE_ACTIVITY_BASE: self.signature,
            FAX_ACTIVITY_BASE: self.fax,
            EMAIL_ACTIVITY_BASE: self.email,
            PROVIDER_REGISTRY_ACTIVITY_BASE: self.provider_registry,
            TRANSCRIPT_ANALYZER_ACTIVITY_BASE: self.analyzer,
        }

        self.workflow_id = "case-case-1"
        self.workflow_type = "CaseLifecycleWorkflow"
        self.parent_id: Optional[str] = None

        self.activity_calls: List[str] = []
        self.sleeps: List[timedelta] = []
        self.waits: List[Optional[timedelta]] = []
        self.on_wait: Optional[Callable[[], None]] = None
        self.on_sleep: Optional[Callable[[], None]] = None
        self.children: Dict[str, ChildHandler] = {}
        self.child_calls: List[Tuple[str, Any]] = []

    def method_calls(self, base: str) -> List[str]:
        """Method names called on one activity base, in order."""
        prefix = f"{base}."
        return [
            name[len(prefix):]
            for name in self.activity_calls
            if name.startswith(prefix)
        ]

    async def execute_activity(
        self, activity: str, *, args: Any = (), **kwargs: Any
    ) -> Any:
        base, method = activity.rsplit(".", 1)
        self.activity_calls.append(activity)
        target = getattr(self.routes[base], method)
        try:
            return await target(*args)
        except ApplicationError as e:
            raise activity_error(e) from e

    async def wait_condition(
        self,
        fn: Callable[[], bool],
        *,
        timeout: Optional[timedelta] = None,
        **kwargs: Any,
    ) -> None:
        self.waits.append(timeout)
        if self.on_wait is not None:
            self.on_wait()
        if fn():
            return
        if timeout is None:
            raise AssertionError("Workflow would wait forever")
        raise asyncio.TimeoutError()

    async def sleep(self, duration: Any, **kwargs: Any) -> None:
        self.sleeps.append(duration)
        if self.on_sleep is not None:
            self.on_sleep()

    def info(self) -> SimpleNamespace:
        parent = (
            SimpleNamespace(workflow_id=self.parent_id)
            if self.parent_id
            else None
        )
        return SimpleNamespace(
            workflow_id=self.workflow_id,
            workflow_type=self.workflow_type,
            parent=parent,
        )

    async def execute_child_workflow(
        self, workflow: Any, arg: Any = None, *, id: str, **kwargs: Any
    ) -> Any:
        self.child_calls.append((id, arg))
        name = workflow.__qualname__.split(".")[0]
        return await self.children[name](arg, id)


@pytest.fixture
def harness() -> Any:
    """Patch the temporalio.workflow API with a fresh WorkflowHarness."""
    h = WorkflowHarness()
    with patch(
        "temporalio.workflow.execute_activity", new=h.execute_activity
    ), patch(
        "temporalio.workflow.wait_condition", new=h.wait_condition
    ), patch(
        "temporalio.workflow.sleep", new=h.sleep
    ), patch(
        "temporalio.workflow.info", new=h.info
    ), patch(
        "temporalio.workflow.execute_child_workflow",
        new=h.execute_child_workflow,
    ):
        yield h
