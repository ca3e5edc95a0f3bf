"""
Workflow-specific proxies for the store repositories.

These classes are used *inside* Temporal workflows. Every method call
becomes an activity; store writes are idempotent point-writes, so they keep
Temporal's default retry policy.
"""

from util.repos.temporal.decorators import temporal_workflow_proxy
from intake.repositories import (
    CallRecordRepository,
    CaseRepository,
    InstanceRegistry,
    ProviderRepository,
    RecordsRequestRepository,
)
from intake.repos.temporal.activity_names import (
    CALL_RECORD_ACTIVITY_BASE,
    CASE_ACTIVITY_BASE,
    INSTANCE_REGISTRY_ACTIVITY_BASE,
    PROVIDER_ACTIVITY_BASE,
    RECORDS_REQUEST_ACTIVITY_BASE,
)


@temporal_workflow_proxy(CASE_ACTIVITY_BASE, default_timeout_seconds=30)
class WorkflowCaseRepositoryProxy(CaseRepository):
    pass


@temporal_workflow_proxy(
    INSTANCE_REGISTRY_ACTIVITY_BASE, default_timeout_seconds=30
)
class WorkflowInstanceRegistryProxy(InstanceRegistry):
    """Registrar calls made by orchestrators at phase boundaries."""

    pass


@temporal_workflow_proxy(PROVIDER_ACTIVITY_BASE, default_timeout_seconds=30)
class WorkflowProviderRepositoryProxy(ProviderRepository):
    pass


@temporal_workflow_proxy(
    RECORDS_REQUEST_ACTIVITY_BASE, default_timeout_seconds=30
)
class WorkflowRecordsRequestRepositoryProxy(RecordsRequestRepository):
    pass


@temporal_workflow_proxy(CALL_RECORD_ACTIVITY_BASE, default_timeout_seconds=30)
class WorkflowCallRecordRepositoryProxy(CallRecordRepository):
    pass
