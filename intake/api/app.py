"""
FastAPI application: case start, signal ingress and operator controls.

Webhooks from the messaging and voice platforms are translated into
workflow signals here. The call-completed webhook also writes the call
record, so an outreach attempt that misses the signal still finds the
outcome in the store.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Depends, FastAPI, HTTPException
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.service import RPCError

from intake.api.dependencies import (
    get_call_record_repository,
    get_case_repository,
    get_instance_registry,
    get_workflow_client,
)
from intake.api.requests import (
    SmsWebhookRequest,
    StartCaseRequest,
    VerificationDecisionRequest,
)
from intake.api.responses import (
    HealthCheckResponse,
    InstanceResponse,
    SignalResponse,
    StartCaseResponse,
    WebhookResponse,
)
from intake.config import setup_logging
from intake.domain import Case, UserResponse, VerificationResolution
from intake.repos.http import parse_post_call_webhook
from intake.repos.temporal.client_proxies import TemporalCaseWorkflowClient
from intake.repositories import (
    CallRecordRepository,
    CaseRepository,
    InstanceRegistry,
)

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Case Intake Orchestration API")


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint"""
    return HealthCheckResponse(status="ok", version="1.0.0")


@app.post("/cases/{case_id}/workflows", response_model=StartCaseResponse)
async def start_case_workflow(
    case_id: str,
    request: StartCaseRequest,
    case_repo: CaseRepository = Depends(get_case_repository),
    workflows: TemporalCaseWorkflowClient = Depends(get_workflow_client),
) -> StartCaseResponse:
    """Register and start the lifecycle workflow for a case."""
    case = await case_repo.get_case(case_id)
    if request.phone:
        case = Case(
            case_id=case_id,
            phone=request.phone,
            name=request.name or (case.name if case else None),
            email=request.email or (case.email if case else None),
        )
        await case_repo.save_case(case)
    if case is None:
        raise HTTPException(
            status_code=404,
            detail=f"Case {case_id} not found and no phone given",
        )

    try:
        params = request.to_params(case_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        instance = await workflows.start_case(params, request.scheduled_at)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except WorkflowAlreadyStartedError:
        raise HTTPException(
            status_code=409,
            detail=f"A workflow is already running for case {case_id}",
        )
    return StartCaseResponse(
        case_id=case_id,
        instance_id=instance.instance_id,
        status=instance.status,
        scheduled_at=instance.scheduled_at,
    )


@app.post("/webhooks/sms", response_model=WebhookResponse)
async def inbound_sms(
    request: SmsWebhookRequest,
    case_repo: CaseRepository = Depends(get_case_repository),
    workflows: TemporalCaseWorkflowClient = Depends(get_workflow_client),
) -> WebhookResponse:
    if request.type != "message.received":
        return WebhookResponse(status="ignored")

    message = request.data.object
    try:
        case = await case_repo.find_case_by_phone(message.from_number)
    except ValueError:
        case = None
    if case is None:
        logger.info("SMS from unknown number ignored")
        return WebhookResponse(status="ignored")

    response = UserResponse(
        message=message.text,
        timestamp=message.created_at or datetime.now(timezone.utc),
    )
    try:
        await workflows.signal_user_response(case.case_id, response)
    except RPCError as e:
        logger.info(
            "No outreach running for SMS sender",
            extra={"case_id": case.case_id, "error": str(e)},
        )
        return WebhookResponse(
            status="no_active_outreach", case_id=case.case_id
        )
    return WebhookResponse(status="signalled", case_id=case.case_id)


@app.post("/webhooks/call-completed", response_model=WebhookResponse)
async def call_completed(
    payload: Dict[str, Any],
    call_records: CallRecordRepository = Depends(get_call_record_repository),
    workflows: TemporalCaseWorkflowClient = Depends(get_workflow_client),
) -> WebhookResponse:
    try:
        case_id, completion = parse_post_call_webhook(payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if case_id is None:
        return WebhookResponse(status="ignored")

    await call_records.save_call_record(
        completion.to_call_status().to_call_record(case_id)
    )
    try:
        await workflows.signal_call_completed(case_id, completion)
    except RPCError as e:
        logger.info(
            "Call completion stored, outreach not running",
            extra={"case_id": case_id, "error": str(e)},
        )
        return WebhookResponse(status="stored", case_id=case_id)
    return WebhookResponse(status="signalled", case_id=case_id)


@app.post("/verifications/{verification_id}", response_model=SignalResponse)
async def resolve_verification(
    verification_id: str,
    request: VerificationDecisionRequest,
    workflows: TemporalCaseWorkflowClient = Depends(get_workflow_client),
) -> SignalResponse:
    resolution = VerificationResolution(
        verification_id=verification_id,
        approved=request.approved,
        contact_info=request.contact_info,
        resolved_by=request.resolved_by,
    )
    try:
        await workflows.signal_verification_resolved(
            request.case_id, resolution
        )
    except RPCError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return SignalResponse(status="signalled")


@app.post("/instances/{instance_id:path}/pause", response_model=SignalResponse)
async def pause_instance(
    instance_id: str,
    workflows: TemporalCaseWorkflowClient = Depends(get_workflow_client),
) -> SignalResponse:
    try:
        signalled = await workflows.pause_tree(instance_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Instance not found")
    return SignalResponse(status="paused", instance_ids=signalled)


@app.post("/instances/{instance_id:path}/resume", response_model=SignalResponse)
async def resume_instance(
    instance_id: str,
    workflows: TemporalCaseWorkflowClient = Depends(get_workflow_client),
) -> SignalResponse:
    try:
        signalled = await workflows.resume_tree(instance_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Instance not found")
    return SignalResponse(status="resumed", instance_ids=signalled)


@app.get("/instances/{instance_id:path}", response_model=InstanceResponse)
async def get_instance(
    instance_id: str,
    registry: InstanceRegistry = Depends(get_instance_registry),
) -> InstanceResponse:
    instance = await registry.get_instance(instance_id)
    if instance is None:
        raise HTTPException(status_code=404, detail="Instance not found")
    children = await registry.list_children(instance_id)
    return InstanceResponse(instance=instance, children=children)
