"""
Temporal workflows for case orchestration.

Workflows orchestrate the business logic and activities in a deterministic
manner. All side effects go through workflow proxies (one activity per
repository method) and all multi-step activity compositions live in
``intake.usecase``. What stays here is what only a workflow can do: timers,
signal handlers, waiting on conditions and spawning child workflows.

Signals never complete a wait directly. Each handler records its payload on
the instance, and the run method awaits ``workflow.wait_condition`` over
that state, so a signal that arrives before the wait starts is not lost.

Instance tree for one case::

    CaseLifecycleWorkflow            <case-id>
    ├── OutreachWorkflow             <case-id>/outreach
    └── RecordsCoordinatorWorkflow   <case-id>/records
        └── RecordsRetrievalWorkflow <case-id>/records/provider-<id>  (xN)
"""

import asyncio
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel
from temporalio import workflow
from temporalio.exceptions import ActivityError

from intake.domain import (
    CallCompletionData,
    CallOutcome,
    CallStatus,
    CaseResult,
    CaseStatus,
    CaseTask,
    CaseWorkflowParams,
    CoordinatorResult,
    InstanceRegistration,
    InstanceStatus,
    OutreachParams,
    OutreachResult,
    ProviderOutcome,
    RecordsCoordinatorParams,
    RecordsRequest,
    RecordsRetrievalParams,
    RecordsRetrievalResult,
    SignatureCheck,
    SignaturePollingSchedule,
    SignatureStatus,
    TaskStatus,
    UserResponse,
    VerificationResolution,
)
from intake.errors import (
    MissingProviderContact,
    NoContactAfterMaxAttempts,
    ProvidersNotVerified,
    SignatureDeclined,
    SignatureTimeout,
    VerificationTimeout,
    failure_message,
)
from intake.gate import VerificationBarrier
from intake.pause import PausableWorkflowMixin
from intake.repositories import CaseRepository, SignatureRepository
from intake.repos.temporal.proxies import (
    WorkflowCallRecordRepositoryProxy,
    WorkflowCaseRepositoryProxy,
    WorkflowEmailRepositoryProxy,
    WorkflowFaxRepositoryProxy,
    WorkflowInstanceRegistryProxy,
    WorkflowMessagingRepositoryProxy,
    WorkflowProviderRegistryRepositoryProxy,
    WorkflowProviderRepositoryProxy,
    WorkflowRecordsRequestRepositoryProxy,
    WorkflowSignatureRepositoryProxy,
    WorkflowTranscriptAnalyzerProxy,
    WorkflowVoiceRepositoryProxy,
)
from intake.usecase import (
    CallCompletionReconciler,
    ProviderVerificationUseCase,
    RecordsDispatchUseCase,
    TranscriptEvaluationUseCase,
)

logger = logging.getLogger(__name__)


class CaseWorkflowBase(PausableWorkflowMixin):
    """
    Registrar bookkeeping shared by all case workflows.

    Each workflow registers itself on start. The parent normally registered
    it already, so this is a no-op that only matters when the instance was
    started some other way. An instance the client registered for a delayed
    start is moved from scheduled to running here.
    """

    def __init__(self) -> None:
        super().__init__()
        self.instance_id = ""
        self.status_message: Optional[str] = None
        self.registry = WorkflowInstanceRegistryProxy()

    @workflow.query(name="status_message")
    def get_status_message(self) -> Optional[str]:
        return self.status_message

    async def _begin(
        self,
        case_id: str,
        entity_type: str,
        entity_id: str,
        params: BaseModel,
    ) -> None:
        info = workflow.info()
        self.instance_id = info.workflow_id
        parent_id = info.parent.workflow_id if info.parent else None
        instance = await self.registry.register_instance(
            InstanceRegistration(
                instance_id=self.instance_id,
                workflow_name=info.workflow_type,
                case_id=case_id,
                parent_instance_id=parent_id,
                entity_type=entity_type,
                entity_id=entity_id,
                parameters=params.model_dump(mode="json"),
            )
        )
        if instance.status is InstanceStatus.SCHEDULED:
            await self.registry.mark_instance_running(self.instance_id)

    async def _set_status(self, message: str) -> None:
        self.status_message = message
        await self.registry.update_instance_status(self.instance_id, message)

    async def _complete(self, result: BaseModel) -> None:
        await self.registry.mark_instance_terminal(
            self.instance_id,
            InstanceStatus.COMPLETED,
            None,
            result.model_dump(mode="json"),
        )

    async def _fail(
        self, reason: str, result: Optional[BaseModel] = None
    ) -> None:
        self.status_message = reason
        await self.registry.mark_instance_terminal(
            self.instance_id,
            InstanceStatus.FAILED,
            reason,
            result.model_dump(mode="json") if result is not None else None,
        )

    async def _register_child(
        self,
        child_id: str,
        workflow_name: str,
        case_id: str,
        entity_type: str,
        entity_id: str,
        params: BaseModel,
    ) -> None:
        await self.registry.register_instance(
            InstanceRegistration(
                instance_id=child_id,
                workflow_name=workflow_name,
                case_id=case_id,
                parent_instance_id=self.instance_id,
                entity_type=entity_type,
                entity_id=entity_id,
                parameters=params.model_dump(mode="json"),
            )
        )


@workflow.defn
class OutreachWorkflow(CaseWorkflowBase):
    """
    Day-by-day SMS and voice outreach until the patient picks up or replies.

    Each attempt sends a text, waits a minute, places a call and resolves
    that call's outcome (signal, then store, then platform). Between
    attempts it waits ``wait_between_attempts`` and wakes early when the
    patient replies.
    """

    def __init__(self) -> None:
        super().__init__()
        self.user_response: Optional[UserResponse] = None
        # Keyed by conversation id; a completion for an earlier attempt's
        # call can never be read as the current attempt's outcome.
        self.call_completions: Dict[str, CallCompletionData] = {}
        self.attempts = 0

    @workflow.signal(name="user_response")
    def on_user_response(self, response: UserResponse) -> None:
        if self.user_response is None:
            self.user_response = response

    @workflow.signal(name="call_completed")
    def on_call_completed(self, data: CallCompletionData) -> None:
        self.call_completions[data.conversation_id] = data

    @workflow.query(name="attempts")
    def get_attempts(self) -> int:
        return self.attempts

    @workflow.run
    async def run(self, params: OutreachParams) -> OutreachResult:
        await self._begin(params.case_id, "case", params.case_id, params)
        logger.info(
            "Starting OutreachWorkflow",
            extra={
                "case_id": params.case_id,
                "instance_id": self.instance_id,
                "max_attempts": params.max_attempts,
            },
        )

        case_repo = WorkflowCaseRepositoryProxy()
        try:
            result = await self._contact_patient(params, case_repo)
        except Exception as e:
            await self._fail(failure_message(e))
            raise

        if result.success:
            note = (
                "Patient answered the intake call"
                if result.picked_up
                else "Patient responded via SMS"
            )
            await case_repo.update_task_status(
                params.case_id, CaseTask.INTAKE_CALL, TaskStatus.COMPLETED, note
            )
            await self._set_status(note)
            await self._complete(result)
        else:
            reason = f"Could not reach patient after {result.attempts} attempts"
            await case_repo.record_case_failure(params.case_id, reason)
            await case_repo.update_task_status(
                params.case_id, CaseTask.INTAKE_CALL, TaskStatus.FAILED, reason
            )
            await self._fail(reason, result)

        logger.info(
            "OutreachWorkflow finished",
            extra={
                "case_id": params.case_id,
                "success": result.success,
                "attempts": result.attempts,
            },
        )
        return result

    async def _progress(
        self, case_repo: CaseRepository, case_id: str, note: str
    ) -> None:
        await case_repo.update_task_status(
            case_id, CaseTask.INTAKE_CALL, TaskStatus.IN_PROGRESS, note
        )
        await self._set_status(note)

    async def _contact_patient(
        self, params: OutreachParams, case_repo: CaseRepository
    ) -> OutreachResult:
        case_id = params.case_id
        messaging = WorkflowMessagingRepositoryProxy()
        voice = WorkflowVoiceRepositoryProxy()
        reconciler = CallCompletionReconciler(
            call_record_repo=WorkflowCallRecordRepositoryProxy(),
            voice_repo=voice,
        )

        await case_repo.update_case_status(case_id, CaseStatus.OUTREACH)
        await self._progress(case_repo, case_id, "Starting patient outreach")

        picked_up = False
        answered_conversation: Optional[str] = None

        for attempt in range(params.max_attempts):
            if picked_up or self.user_response is not None:
                break
            self.attempts = attempt + 1
            day = f"Day {self.attempts}"

            await self.check_paused()
            await self._progress(case_repo, case_id, f"{day}: Sending SMS")
            await messaging.send_message(
                case_id, params.message_for_attempt(attempt)
            )

            await self.check_paused()
            await workflow.sleep(params.message_grace_period)

            await self.check_paused()
            await self._progress(case_repo, case_id, f"{day}: Placing call")
            status = await self._call_patient(
                case_id, voice, reconciler, params
            )

            if status is None:
                note = f"{day}: Call could not be placed"
            elif status.outcome is CallOutcome.TALKED_TO_HUMAN:
                picked_up = True
                answered_conversation = status.conversation_id
                await self._progress(
                    case_repo, case_id, f"{day}: Patient answered"
                )
                break
            elif status.outcome is CallOutcome.FAILED:
                note = f"{day}: Call failed - {status.failure_reason}"
            elif status.outcome is CallOutcome.VOICEMAIL:
                note = f"{day}: Voicemail left"
            else:
                note = f"{day}: Call outcome unknown"
            await self._progress(case_repo, case_id, note)

            if self.attempts < params.max_attempts:
                await self.check_paused()
                await self._progress(
                    case_repo,
                    case_id,
                    f"Waiting until Day {self.attempts + 1}",
                )
                try:
                    await workflow.wait_condition(
                        lambda: self.user_response is not None,
                        timeout=params.wait_between_attempts,
                    )
                except asyncio.TimeoutError:
                    pass

        user_responded = self.user_response
        return OutreachResult(
            success=picked_up or user_responded is not None,
            picked_up=picked_up,
            user_responded=user_responded,
            attempts=self.attempts,
            conversation_id=answered_conversation,
        )

    async def _call_patient(
        self,
        case_id: str,
        voice: WorkflowVoiceRepositoryProxy,
        reconciler: CallCompletionReconciler,
        params: OutreachParams,
    ) -> Optional[CallStatus]:
        """Place one call and resolve its outcome; None if not placed."""
        try:
            conversation_id = await voice.place_call(case_id)
        except ActivityError as e:
            logger.warning(
                "Call placement rejected",
                extra={"case_id": case_id, "error": failure_message(e)},
            )
            return None

        await self.check_paused()
        try:
            await workflow.wait_condition(
                lambda: conversation_id in self.call_completions,
                timeout=params.call_completion_timeout,
            )
        except asyncio.TimeoutError:
            logger.info(
                "No call completion signal, reconciling",
                extra={"case_id": case_id, "conversation_id": conversation_id},
            )
            try:
                return await reconciler.reconcile(case_id, conversation_id)
            except ActivityError as e:
                logger.warning(
                    "Call status reconciliation failed",
                    extra={
                        "conversation_id": conversation_id,
                        "error": failure_message(e),
                    },
                )
                return CallStatus(conversation_id=conversation_id)

        return await reconciler.record_signal(
            case_id, self.call_completions[conversation_id]
        )


@workflow.defn
class RecordsRetrievalWorkflow(CaseWorkflowBase):
    """
    Records retrieval for one provider:
    CreateAuthorization -> AwaitSignature -> Dispatch | Fail.

    Runs as its own child instance so that one provider's wait never holds
    up another, and so each provider can be paused on its own.
    """

    @workflow.run
    async def run(
        self, params: RecordsRetrievalParams
    ) -> RecordsRetrievalResult:
        await self._begin(
            params.case_id, "provider", params.provider_id, params
        )
        try:
            result = await self._retrieve(params)
        except Exception as e:
            await self._fail(failure_message(e))
            raise
        await self._set_status(f"Records request sent to {params.provider_name}")
        await self._complete(result)
        return result

    async def _retrieve(
        self, params: RecordsRetrievalParams
    ) -> RecordsRetrievalResult:
        providers = WorkflowProviderRepositoryProxy()
        records = WorkflowRecordsRequestRepositoryProxy()
        signature = WorkflowSignatureRepositoryProxy()
        voice = WorkflowVoiceRepositoryProxy()
        dispatcher = RecordsDispatchUseCase(
            provider_repo=providers,
            records_repo=records,
            fax_repo=WorkflowFaxRepositoryProxy(),
            email_repo=WorkflowEmailRepositoryProxy(),
        )

        provider = await providers.get_provider(params.provider_id)
        if provider is None:
            raise MissingProviderContact(
                f"Provider {params.provider_id} not found"
            )

        await self.check_paused()
        await self._set_status(
            f"Requesting authorization for {params.provider_name}"
        )
        request_id = await signature.create_authorization(
            params.case_id, provider
        )
        await records.save_records_request(
            RecordsRequest(
                request_id=request_id,
                case_id=params.case_id,
                provider_id=params.provider_id,
            )
        )

        await self.check_paused()
        await self._set_status("Waiting for patient signature")
        check = await self._await_signature(
            signature, request_id, params.polling
        )
        if not check.done:
            raise SignatureTimeout(
                f"Signature request timed out after "
                f"{params.polling.max_polls} attempts"
            )
        if check.expired:
            await records.update_signature_status(
                request_id, SignatureStatus.EXPIRED
            )
            raise SignatureDeclined(
                f"Signature request expired for {params.provider_name}"
            )
        if not check.signed:
            await records.update_signature_status(
                request_id, SignatureStatus.DECLINED
            )
            raise SignatureDeclined(
                f"Patient declined to sign for {params.provider_name}"
            )
        await records.update_signature_status(
            request_id, SignatureStatus.SIGNED
        )

        await self.check_paused()
        await self._set_status(f"Sending records request to {provider.name}")
        channel = await dispatcher.dispatch(request_id, params.provider_id)

        await self.check_paused()
        if provider.phone:
            try:
                await voice.place_provider_call(params.case_id, provider)
            except ActivityError as e:
                logger.warning(
                    "Provider follow-up call failed",
                    extra={
                        "provider_id": params.provider_id,
                        "error": failure_message(e),
                    },
                )

        return RecordsRetrievalResult(
            success=True,
            request_id=request_id,
            provider_name=params.provider_name,
            dispatch_channel=channel,
        )

    async def _await_signature(
        self,
        signature: SignatureRepository,
        request_id: str,
        schedule: SignaturePollingSchedule,
    ) -> SignatureCheck:
        """Poll through the fast then slow phase; at most max_polls polls."""
        intervals = schedule.intervals()
        for index, interval in enumerate(intervals):
            await self.check_paused()
            try:
                check = await signature.poll_signature(request_id)
            except ActivityError as e:
                logger.warning(
                    "Signature poll failed, treating as not done",
                    extra={"request_id": request_id, "error": failure_message(e)},
                )
                check = SignatureCheck(done=False)
            if check.done:
                return check
            if index + 1 < len(intervals):
                await workflow.sleep(interval)
        return SignatureCheck(done=False)


@workflow.defn
class RecordsCoordinatorWorkflow(CaseWorkflowBase):
    """
    Fans out one RecordsRetrievalWorkflow per verified provider and reports
    each outcome. A failing provider never cancels its siblings.

    Refuses to start unless the case's Verify Providers task is completed.
    """

    @workflow.run
    async def run(self, params: RecordsCoordinatorParams) -> CoordinatorResult:
        await self._begin(params.case_id, "case", params.case_id, params)
        case_id = params.case_id
        case_repo = WorkflowCaseRepositoryProxy()
        providers = WorkflowProviderRepositoryProxy()

        try:
            await self.check_paused()
            await self._set_status("Checking provider verification status")
            verify_status = await case_repo.get_task_status(
                case_id, CaseTask.VERIFY_PROVIDERS
            )
            if verify_status is not TaskStatus.COMPLETED:
                logger.error(
                    "Provider verification not complete",
                    extra={
                        "case_id": case_id,
                        "task_status": (
                            verify_status.value if verify_status else None
                        ),
                    },
                )
                await self._set_status("Error: Providers not verified yet")
                raise ProvidersNotVerified(
                    "Verify Providers must be completed before requesting "
                    "records"
                )

            verified = await providers.get_verified_providers(case_id)
            await case_repo.update_task_status(
                case_id,
                CaseTask.SEND_RECORDS_REQUESTS,
                TaskStatus.IN_PROGRESS,
                f"Requesting records from {len(verified)} provider(s)",
            )
            await self._set_status(
                f"Requesting records from {len(verified)} provider(s)"
            )
            if verified:
                await self.check_paused()
                await case_repo.update_task_status(
                    case_id,
                    CaseTask.GATHER_RELEASES,
                    TaskStatus.IN_PROGRESS,
                    f"Creating release forms for {len(verified)} provider(s)",
                )

            children = []
            for provider in verified:
                await self.check_paused()
                child_id = f"{self.instance_id}/provider-{provider.provider_id}"
                child_params = RecordsRetrievalParams(
                    case_id=case_id,
                    provider_id=provider.provider_id,
                    provider_name=provider.name,
                    polling=params.polling,
                )
                await self._register_child(
                    child_id,
                    "RecordsRetrievalWorkflow",
                    case_id,
                    "provider",
                    provider.provider_id,
                    child_params,
                )
                children.append(
                    workflow.execute_child_workflow(
                        RecordsRetrievalWorkflow.run, child_params, id=child_id
                    )
                )

            settled = await asyncio.gather(*children, return_exceptions=True)
        except Exception as e:
            await self._fail(failure_message(e))
            raise

        results: List[ProviderOutcome] = []
        for provider, outcome in zip(verified, settled):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Provider records retrieval failed",
                    extra={
                        "case_id": case_id,
                        "provider_id": provider.provider_id,
                        "error": failure_message(outcome),
                    },
                )
                results.append(
                    ProviderOutcome(
                        provider_name=provider.name,
                        success=False,
                        error=failure_message(outcome),
                    )
                )
            else:
                results.append(
                    ProviderOutcome(
                        provider_name=provider.name, success=outcome.success
                    )
                )

        sent = sum(1 for r in results if r.success)
        result = CoordinatorResult(
            success=sent == len(results),
            providers_processed=len(results),
            results=results,
        )
        summary = f"Records requests sent to {sent} of {len(results)} provider(s)"

        if results:
            await case_repo.update_task_status(
                case_id,
                CaseTask.GATHER_RELEASES,
                TaskStatus.COMPLETED,
                f"Release forms gathered for {sent}/{len(results)} provider(s)",
            )

        await case_repo.update_task_status(
            case_id,
            CaseTask.SEND_RECORDS_REQUESTS,
            TaskStatus.COMPLETED if result.success else TaskStatus.FAILED,
            summary,
        )
        if sent:
            await case_repo.update_task_status(
                case_id,
                CaseTask.FOLLOW_UP_RECORDS_REQUESTS,
                TaskStatus.IN_PROGRESS,
                f"Awaiting records from {sent} provider(s)",
            )
        await self._set_status(summary)
        if result.success:
            await self._complete(result)
        else:
            await self._fail(summary, result)
        return result


@workflow.defn
class CaseLifecycleWorkflow(CaseWorkflowBase):
    """
    End-to-end case: outreach, transcript evaluation and provider
    extraction, the provider verification gate, then records retrieval.

    Outreach failure and verification timeout end the case: the reason is
    recorded on the case and the instance, and the workflow fails with
    NoContactAfterMaxAttempts or VerificationTimeout.
    """

    def __init__(self) -> None:
        super().__init__()
        self.barrier = VerificationBarrier()

    @workflow.signal(name="verification_resolved")
    def on_verification_resolved(
        self, resolution: VerificationResolution
    ) -> None:
        self.barrier.record(resolution)

    @workflow.query(name="outstanding_verifications")
    def outstanding_verifications(self) -> List[str]:
        return sorted(self.barrier.outstanding)

    @workflow.run
    async def run(self, params: CaseWorkflowParams) -> CaseResult:
        await self._begin(params.case_id, "case", params.case_id, params)
        logger.info(
            "Starting CaseLifecycleWorkflow",
            extra={"case_id": params.case_id, "instance_id": self.instance_id},
        )
        try:
            result = await self._run_phases(params)
        except Exception as e:
            await self._fail(failure_message(e))
            raise

        if result.success:
            await self._complete(result)
        else:
            await self._fail(result.reason or "Case did not complete", result)
        return result

    async def _run_phases(self, params: CaseWorkflowParams) -> CaseResult:
        case_id = params.case_id
        case_repo = WorkflowCaseRepositoryProxy()
        provider_repo = WorkflowProviderRepositoryProxy()
        voice = WorkflowVoiceRepositoryProxy()
        verification = ProviderVerificationUseCase(
            provider_repo=provider_repo,
            registry_repo=WorkflowProviderRegistryRepositoryProxy(),
        )

        # Phase 1: outreach
        await self.check_paused()
        await self._set_status("Phase 1: patient outreach")
        outreach_params = params.outreach_params()
        outreach_id = f"{self.instance_id}/outreach"
        await self._register_child(
            outreach_id,
            "OutreachWorkflow",
            case_id,
            "case",
            case_id,
            outreach_params,
        )
        outreach: OutreachResult = await workflow.execute_child_workflow(
            OutreachWorkflow.run, outreach_params, id=outreach_id
        )
        if not outreach.success:
            raise NoContactAfterMaxAttempts(
                f"Could not reach patient after {outreach.attempts} attempts"
            )

        # Phase 2: transcript evaluation and provider extraction
        completed_intake = False
        if outreach.conversation_id:
            await self.check_paused()
            await self._set_status("Phase 2: evaluating intake call")
            evaluation = TranscriptEvaluationUseCase(
                voice_repo=voice,
                analyzer=WorkflowTranscriptAnalyzerProxy(),
                case_repo=case_repo,
            )
            _, extracted = await evaluation.evaluate(
                case_id, outreach.conversation_id
            )
            await case_repo.update_case_status(
                case_id, CaseStatus.INTAKE_COMPLETE
            )
            completed_intake = True
            if extracted:
                await verification.open_verifications(case_id, extracted)
        else:
            await self._set_status(
                "Phase 2: patient replied by SMS, no call transcript"
            )

        # Phase 3: provider verification gate
        await self.check_paused()
        pending = await provider_repo.get_pending_verifications(case_id)
        if pending:
            await self._await_verifications(
                case_id, [p.verification_id for p in pending], params, case_repo
            )
            approved, rejected = await verification.apply_resolutions(
                self.barrier.resolutions()
            )
            await case_repo.update_task_status(
                case_id,
                CaseTask.VERIFY_PROVIDERS,
                TaskStatus.COMPLETED,
                f"{approved} approved, {rejected} rejected",
            )
        else:
            await case_repo.update_task_status(
                case_id,
                CaseTask.VERIFY_PROVIDERS,
                TaskStatus.COMPLETED,
                "No providers awaiting verification",
            )

        # Phase 4: records retrieval
        await self.check_paused()
        await self._set_status("Phase 4: requesting medical records")
        records_params = RecordsCoordinatorParams(
            case_id=case_id, polling=params.polling
        )
        records_id = f"{self.instance_id}/records"
        await self._register_child(
            records_id,
            "RecordsCoordinatorWorkflow",
            case_id,
            "case",
            case_id,
            records_params,
        )
        records: CoordinatorResult = await workflow.execute_child_workflow(
            RecordsCoordinatorWorkflow.run, records_params, id=records_id
        )

        sent = sum(1 for r in records.results if r.success)
        if sent:
            await case_repo.update_case_status(
                case_id, CaseStatus.RECORDS_REQUESTED
            )
        await self._set_status(
            f"Records requested from {sent} of "
            f"{records.providers_processed} provider(s)"
        )
        return CaseResult(
            success=records.success,
            reason=None if records.success else "records_incomplete",
            completed_intake=completed_intake,
            provider_count=records.providers_processed,
            records_requests_sent=sent,
        )

    async def _await_verifications(
        self,
        case_id: str,
        pending_ids: List[str],
        params: CaseWorkflowParams,
        case_repo: CaseRepository,
    ) -> None:
        self.barrier.reset(pending_ids)
        await case_repo.update_case_status(
            case_id, CaseStatus.AWAITING_VERIFICATION
        )
        await case_repo.update_task_status(
            case_id,
            CaseTask.VERIFY_PROVIDERS,
            TaskStatus.IN_PROGRESS,
            f"Awaiting manual verification for {len(pending_ids)} provider(s)",
        )
        await self._set_status("Phase 3: waiting for provider verification")

        await self.check_paused()
        try:
            await workflow.wait_condition(
                lambda: self.barrier.settled,
                timeout=params.verification_timeout,
            )
        except asyncio.TimeoutError:
            reason = (
                f"Provider verification timed out with "
                f"{len(self.barrier.outstanding)} of {len(pending_ids)} "
                f"unresolved"
            )
            await case_repo.update_task_status(
                case_id, CaseTask.VERIFY_PROVIDERS, TaskStatus.FAILED, reason
            )
            await case_repo.record_case_failure(case_id, reason)
            raise VerificationTimeout(reason)
