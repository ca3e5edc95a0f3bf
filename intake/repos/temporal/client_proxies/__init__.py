from intake.repos.temporal.client_proxies.case_workflows import (
    TemporalCaseWorkflowClient,
    case_instance_id,
    outreach_instance_id,
)

__all__ = [
    "TemporalCaseWorkflowClient",
    "case_instance_id",
    "outreach_instance_id",
]
