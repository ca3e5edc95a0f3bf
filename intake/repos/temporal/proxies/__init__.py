"""
Workflow proxies: protocol implementations that run each method as a
Temporal activity.
"""

from .platforms import (
    WorkflowEmailRepositoryProxy,
    WorkflowFaxRepositoryProxy,
    WorkflowMessagingRepositoryProxy,
    WorkflowProviderRegistryRepositoryProxy,
    WorkflowSignatureRepositoryProxy,
    WorkflowTranscriptAnalyzerProxy,
    WorkflowVoiceRepositoryProxy,
)
from .stores import (
    WorkflowCallRecordRepositoryProxy,
    WorkflowCaseRepositoryProxy,
    WorkflowInstanceRegistryProxy,
    WorkflowProviderRepositoryProxy,
    WorkflowRecordsRequestRepositoryProxy,
)

__all__ = [
    "WorkflowCallRecordRepositoryProxy",
    "WorkflowCaseRepositoryProxy",
    "WorkflowEmailRepositoryProxy",
    "WorkflowFaxRepositoryProxy",
    "WorkflowInstanceRegistryProxy",
    "WorkflowMessagingRepositoryProxy",
    "WorkflowProviderRegistryRepositoryProxy",
    "WorkflowProviderRepositoryProxy",
    "WorkflowRecordsRequestRepositoryProxy",
    "WorkflowSignatureRepositoryProxy",
    "WorkflowTranscriptAnalyzerProxy",
    "WorkflowVoiceRepositoryProxy",
]
