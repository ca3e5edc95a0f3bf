"""
Pydantic models for API responses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from intake.domain import InstanceStatus, ProcessInstance


class HealthCheckResponse(BaseModel):
    status: str
    version: str


class StartCaseResponse(BaseModel):
    case_id: str
    instance_id: str
    status: InstanceStatus = InstanceStatus.RUNNING
    scheduled_at: Optional[datetime] = None


class WebhookResponse(BaseModel):
    status: str
    case_id: Optional[str] = None


class SignalResponse(BaseModel):
    status: str
    instance_ids: List[str] = []


class InstanceResponse(BaseModel):
    instance: ProcessInstance
    children: List[ProcessInstance]
