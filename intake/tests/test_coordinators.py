"""
Tests for the top-level coordinators: RecordsCoordinatorWorkflow fan-out
and the CaseLifecycleWorkflow phases.

Child workflows are replaced by async handlers registered on the harness,
so each test controls exactly what a child returns or raises.
"""

from datetime import timedelta

import pytest

from intake.domain import (
    CaseStatus,
    CaseTask,
    CaseWorkflowParams,
    CoordinatorResult,
    InstanceStatus,
    OutreachResult,
    ProviderOutcome,
    RecordsCoordinatorParams,
    RecordsRetrievalResult,
    RegistryLookupResult,
    SignatureCheck,
    SignatureStatus,
    TaskStatus,
    VerificationResolution,
    VerificationStatus,
)
from intake.errors import (
    NoContactAfterMaxAttempts,
    ProvidersNotVerified,
    SignatureDeclined,
    VerificationTimeout,
)
from intake.tests.factories import (
    CaseFactory,
    ExtractedProviderFactory,
    OutreachParamsFactory,
    ProviderFactory,
    UserResponseFactory,
    minimal_assessment,
)
from intake.workflows import (
    CaseLifecycleWorkflow,
    RecordsCoordinatorWorkflow,
    RecordsRetrievalWorkflow,
)


class TestRecordsCoordinatorWorkflow:
    @pytest.fixture
    async def coordinator(self, harness):
        harness.workflow_id = "case-case-1/records"
        harness.workflow_type = "RecordsCoordinatorWorkflow"
        await harness.case_repo.save_case(CaseFactory(case_id="case-1"))
        await harness.case_repo.update_task_status(
            "case-1", CaseTask.VERIFY_PROVIDERS, TaskStatus.COMPLETED
        )
        return RecordsCoordinatorWorkflow()

    async def add_verified(self, harness, count):
        providers = [ProviderFactory(case_id="case-1") for _ in range(count)]
        for provider in providers:
            harness.provider_repo._providers[provider.provider_id] = provider
        return providers

    @pytest.mark.asyncio
    async def test_one_child_per_verified_provider(
        self, harness, coordinator
    ) -> None:
        providers = await self.add_verified(harness, 2)

        async def retrieve(params, child_id):
            return RecordsRetrievalResult(
                success=True,
                request_id=f"sig-{params.provider_id}",
                provider_name=params.provider_name,
            )

        harness.children["RecordsRetrievalWorkflow"] = retrieve

        result = await coordinator.run(
            RecordsCoordinatorParams(case_id="case-1")
        )

        assert result.success is True
        assert result.providers_processed == 2
        assert [r.provider_name for r in result.results] == [
            p.name for p in providers
        ]
        assert [child_id for child_id, _ in harness.child_calls] == [
            f"case-case-1/records/provider-{p.provider_id}" for p in providers
        ]

        children = await harness.registry.list_children("case-case-1/records")
        assert {c.entity_id for c in children} == {
            p.provider_id for p in providers
        }
        task = harness.case_repo.get_task(
            "case-1", CaseTask.SEND_RECORDS_REQUESTS
        )
        assert task.status is TaskStatus.COMPLETED
        assert task.note == "Records requests sent to 2 of 2 provider(s)"
        releases = harness.case_repo.get_task("case-1", CaseTask.GATHER_RELEASES)
        assert releases.status is TaskStatus.COMPLETED
        assert releases.note == "Release forms gathered for 2/2 provider(s)"
        follow_up = harness.case_repo.get_task(
            "case-1", CaseTask.FOLLOW_UP_RECORDS_REQUESTS
        )
        assert follow_up.status is TaskStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_failing_provider_does_not_stop_siblings(
        self, harness, coordinator
    ) -> None:
        ok, declined = await self.add_verified(harness, 2)

        async def retrieve(params, child_id):
            if params.provider_id == declined.provider_id:
                raise SignatureDeclined("Patient declined")
            return RecordsRetrievalResult(
                success=True,
                request_id="sig-ok",
                provider_name=params.provider_name,
            )

        harness.children["RecordsRetrievalWorkflow"] = retrieve

        result = await coordinator.run(
            RecordsCoordinatorParams(case_id="case-1")
        )

        assert result.success is False
        assert result.results == [
            ProviderOutcome(provider_name=ok.name, success=True),
            ProviderOutcome(
                provider_name=declined.name,
                success=False,
                error="Patient declined",
            ),
        ]
        task = harness.case_repo.get_task(
            "case-1", CaseTask.SEND_RECORDS_REQUESTS
        )
        assert task.status is TaskStatus.FAILED
        instance = await harness.registry.get_instance("case-case-1/records")
        assert instance.status is InstanceStatus.FAILED
        assert instance.result["providers_processed"] == 2

    @pytest.mark.asyncio
    async def test_no_verified_providers(self, harness, coordinator) -> None:
        result = await coordinator.run(
            RecordsCoordinatorParams(case_id="case-1")
        )

        assert result == CoordinatorResult(
            success=True, providers_processed=0, results=[]
        )
        assert harness.child_calls == []
        assert (
            harness.case_repo.get_task(
                "case-1", CaseTask.FOLLOW_UP_RECORDS_REQUESTS
            )
            is None
        )
        assert (
            harness.case_repo.get_task("case-1", CaseTask.GATHER_RELEASES)
            is None
        )

    @pytest.mark.asyncio
    async def test_requires_completed_verification(
        self, harness, coordinator
    ) -> None:
        await self.add_verified(harness, 1)
        await harness.case_repo.update_task_status(
            "case-1", CaseTask.VERIFY_PROVIDERS, TaskStatus.IN_PROGRESS
        )

        with pytest.raises(ProvidersNotVerified):
            await coordinator.run(RecordsCoordinatorParams(case_id="case-1"))

        assert harness.child_calls == []
        assert (
            harness.case_repo.get_task("case-1", CaseTask.SEND_RECORDS_REQUESTS)
            is None
        )
        instance = await harness.registry.get_instance("case-case-1/records")
        assert instance.status is InstanceStatus.FAILED
        assert instance.error == (
            "Verify Providers must be completed before requesting records"
        )

    @pytest.mark.asyncio
    async def test_declined_provider_with_real_children(
        self, harness, coordinator
    ) -> None:
        declined, signed = await self.add_verified(harness, 2)
        harness.signature.create_authorization.side_effect = (
            lambda case_id, provider: f"sig-{provider.provider_id}"
        )
        checks = {
            f"sig-{declined.provider_id}": SignatureCheck(
                done=True, signed=False
            ),
            f"sig-{signed.provider_id}": SignatureCheck(done=True, signed=True),
        }
        harness.signature.poll_signature.side_effect = checks.__getitem__

        async def retrieve(params, child_id):
            # Children read their identity before their first await
            harness.workflow_id = child_id
            harness.workflow_type = "RecordsRetrievalWorkflow"
            harness.parent_id = "case-case-1/records"
            return await RecordsRetrievalWorkflow().run(params)

        harness.children["RecordsRetrievalWorkflow"] = retrieve

        result = await coordinator.run(
            RecordsCoordinatorParams(case_id="case-1")
        )

        assert result.success is False
        assert result.results == [
            ProviderOutcome(
                provider_name=declined.name,
                success=False,
                error=f"Patient declined to sign for {declined.name}",
            ),
            ProviderOutcome(provider_name=signed.name, success=True),
        ]
        harness.fax.dispatch_fax.assert_awaited_once_with(
            signed.contact, f"sig-{signed.provider_id}"
        )
        request = await harness.records_repo.get_records_request(
            f"sig-{declined.provider_id}"
        )
        assert request.signature_status is SignatureStatus.DECLINED
        children = await harness.registry.list_children("case-case-1/records")
        assert {c.entity_id: c.status for c in children} == {
            declined.provider_id: InstanceStatus.FAILED,
            signed.provider_id: InstanceStatus.COMPLETED,
        }
        releases = harness.case_repo.get_task("case-1", CaseTask.GATHER_RELEASES)
        assert releases.note == "Release forms gathered for 1/2 provider(s)"


class TestCaseLifecycleWorkflow:
    @pytest.fixture
    async def lifecycle(self, harness):
        harness.workflow_id = "case-case-1"
        harness.workflow_type = "CaseLifecycleWorkflow"
        await harness.case_repo.save_case(CaseFactory(case_id="case-1"))
        harness.voice.get_transcript.return_value = "Agent: Hi\nPatient: Hi"
        harness.analyzer.analyze_transcript.return_value = (
            minimal_assessment()
        )
        harness.provider_registry.lookup_provider_registry.return_value = (
            RegistryLookupResult()
        )
        return CaseLifecycleWorkflow()

    def params(self, **overrides) -> CaseWorkflowParams:
        return CaseWorkflowParams(
            case_id="case-1",
            outreach=OutreachParamsFactory(),
            verification_timeout=timedelta(days=2),
            **overrides,
        )

    def answered(self, conversation_id="conv-1"):
        async def outreach(params, child_id):
            return OutreachResult(
                success=True,
                picked_up=True,
                attempts=1,
                conversation_id=conversation_id,
            )

        return outreach

    def records_for_verified(self, harness):
        async def records(params, child_id):
            verified = await harness.provider_repo.get_verified_providers(
                params.case_id
            )
            return CoordinatorResult(
                success=True,
                providers_processed=len(verified),
                results=[
                    ProviderOutcome(provider_name=p.name, success=True)
                    for p in verified
                ],
            )

        return records

    @pytest.mark.asyncio
    async def test_full_case_through_verification_gate(
        self, harness, lifecycle
    ) -> None:
        extracted = [ExtractedProviderFactory(), ExtractedProviderFactory()]
        harness.analyzer.extract_providers.return_value = extracted
        harness.children["OutreachWorkflow"] = self.answered()
        harness.children["RecordsCoordinatorWorkflow"] = (
            self.records_for_verified(harness)
        )

        def reviewers_decide() -> None:
            outstanding = lifecycle.outstanding_verifications()
            if len(outstanding) == 2:
                lifecycle.on_verification_resolved(
                    VerificationResolution(
                        verification_id=outstanding[0], approved=True
                    )
                )
                lifecycle.on_verification_resolved(
                    VerificationResolution(
                        verification_id=outstanding[1], approved=False
                    )
                )

        harness.on_wait = reviewers_decide

        result = await lifecycle.run(self.params())

        assert result.success is True
        assert result.completed_intake is True
        assert result.provider_count == 1
        assert result.records_requests_sent == 1
        assert [cid for cid, _ in harness.child_calls] == [
            "case-case-1/outreach",
            "case-case-1/records",
        ]
        assert harness.waits == [timedelta(days=2)]

        case = await harness.case_repo.get_case("case-1")
        assert case.status is CaseStatus.RECORDS_REQUESTED
        assert harness.case_repo.get_assessment("case-1") is not None
        verify = harness.case_repo.get_task("case-1", CaseTask.VERIFY_PROVIDERS)
        assert verify.status is TaskStatus.COMPLETED
        assert verify.note == "1 approved, 1 rejected"

        children = await harness.registry.list_children("case-case-1")
        assert {c.workflow_name for c in children} == {
            "OutreachWorkflow",
            "RecordsCoordinatorWorkflow",
        }
        instance = await harness.registry.get_instance("case-case-1")
        assert instance.status is InstanceStatus.COMPLETED

    @pytest.mark.parametrize(
        "decisions, verified, note",
        [
            ((True, True), 2, "2 approved, 0 rejected"),
            ((False, False), 0, "0 approved, 2 rejected"),
        ],
    )
    @pytest.mark.asyncio
    async def test_unanimous_reviewer_decisions(
        self, harness, lifecycle, decisions, verified, note
    ) -> None:
        harness.analyzer.extract_providers.return_value = [
            ExtractedProviderFactory(),
            ExtractedProviderFactory(),
        ]
        harness.children["OutreachWorkflow"] = self.answered()
        harness.children["RecordsCoordinatorWorkflow"] = (
            self.records_for_verified(harness)
        )

        def reviewers_decide() -> None:
            for verification_id, approved in zip(
                lifecycle.outstanding_verifications(), decisions
            ):
                lifecycle.on_verification_resolved(
                    VerificationResolution(
                        verification_id=verification_id, approved=approved
                    )
                )

        harness.on_wait = reviewers_decide

        result = await lifecycle.run(self.params())

        assert result.success is True
        assert result.provider_count == verified
        assert result.records_requests_sent == verified
        verify = harness.case_repo.get_task("case-1", CaseTask.VERIFY_PROVIDERS)
        assert verify.status is TaskStatus.COMPLETED
        assert verify.note == note
        assert (
            len(await harness.provider_repo.get_verified_providers("case-1"))
            == verified
        )
        assert harness.child_calls[-1][0] == "case-case-1/records"

    @pytest.mark.asyncio
    async def test_resolution_before_gate_is_not_lost(
        self, harness, lifecycle
    ) -> None:
        extracted = ExtractedProviderFactory()
        harness.analyzer.extract_providers.return_value = [extracted]
        harness.children["RecordsCoordinatorWorkflow"] = (
            self.records_for_verified(harness)
        )

        async def outreach_then_early_decision(params, child_id):
            # Reviewer acts while the case is still in phase 2
            provider_id = ProviderFactory(
                case_id="case-1", name=extracted.name
            ).provider_id
            lifecycle.on_verification_resolved(
                VerificationResolution(
                    verification_id=f"{provider_id}-verification",
                    approved=True,
                )
            )
            return await self.answered()(params, child_id)

        harness.children["OutreachWorkflow"] = outreach_then_early_decision

        result = await lifecycle.run(self.params())

        assert result.records_requests_sent == 1
        pending = await harness.provider_repo.get_pending_verifications(
            "case-1"
        )
        assert pending == []

    @pytest.mark.asyncio
    async def test_verification_timeout_fails_case(
        self, harness, lifecycle
    ) -> None:
        harness.analyzer.extract_providers.return_value = [
            ExtractedProviderFactory()
        ]
        harness.children["OutreachWorkflow"] = self.answered()

        with pytest.raises(VerificationTimeout):
            await lifecycle.run(self.params())

        case = await harness.case_repo.get_case("case-1")
        assert case.status is CaseStatus.FAILED
        assert "timed out with 1 of 1 unresolved" in case.failure_reason
        assert [cid for cid, _ in harness.child_calls] == [
            "case-case-1/outreach"
        ]
        instance = await harness.registry.get_instance("case-case-1")
        assert instance.status is InstanceStatus.FAILED

    @pytest.mark.asyncio
    async def test_outreach_failure_ends_case(
        self, harness, lifecycle
    ) -> None:
        async def unreachable(params, child_id):
            return OutreachResult(success=False, picked_up=False, attempts=3)

        harness.children["OutreachWorkflow"] = unreachable

        with pytest.raises(NoContactAfterMaxAttempts):
            await lifecycle.run(self.params())

        instance = await harness.registry.get_instance("case-case-1")
        assert instance.error == "Could not reach patient after 3 attempts"
        harness.voice.get_transcript.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sms_reply_skips_transcript_evaluation(
        self, harness, lifecycle
    ) -> None:
        async def replied(params, child_id):
            return OutreachResult(
                success=True,
                picked_up=False,
                user_responded=UserResponseFactory(),
                attempts=2,
            )

        harness.children["OutreachWorkflow"] = replied
        harness.children["RecordsCoordinatorWorkflow"] = (
            self.records_for_verified(harness)
        )

        result = await lifecycle.run(self.params())

        assert result.success is True
        assert result.completed_intake is False
        assert result.provider_count == 0
        harness.analyzer.analyze_transcript.assert_not_awaited()
        verify = harness.case_repo.get_task("case-1", CaseTask.VERIFY_PROVIDERS)
        assert verify.note == "No providers awaiting verification"

    @pytest.mark.asyncio
    async def test_failed_registry_lookup_still_opens_verification(
        self, harness, lifecycle
    ) -> None:
        harness.analyzer.extract_providers.return_value = [
            ExtractedProviderFactory()
        ]
        harness.provider_registry.lookup_provider_registry.side_effect = (
            RuntimeError("registry down")
        )
        harness.children["OutreachWorkflow"] = self.answered()

        with pytest.raises(VerificationTimeout):
            await lifecycle.run(self.params())

        pending = await harness.provider_repo.get_pending_verifications(
            "case-1"
        )
        assert len(pending) == 1
        assert pending[0].status is VerificationStatus.PENDING
        assert pending[0].looked_up_contact is None

    @pytest.mark.asyncio
    async def test_incomplete_records_reported(
        self, harness, lifecycle
    ) -> None:
        async def partial(params, child_id):
            return CoordinatorResult(
                success=False,
                providers_processed=2,
                results=[
                    ProviderOutcome(provider_name="A", success=True),
                    ProviderOutcome(
                        provider_name="B", success=False, error="declined"
                    ),
                ],
            )

        harness.analyzer.extract_providers.return_value = []
        harness.children["OutreachWorkflow"] = self.answered()
        harness.children["RecordsCoordinatorWorkflow"] = partial

        result = await lifecycle.run(self.params())

        assert result.success is False
        assert result.reason == "records_incomplete"
        assert result.records_requests_sent == 1
        instance = await harness.registry.get_instance("case-case-1")
        assert instance.status is InstanceStatus.FAILED
