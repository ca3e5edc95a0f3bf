"""
Contract tests for the memory repositories.

The PostgreSQL repositories implement the same protocols; these tests pin
down the store semantics both must share (idempotent writes, registrar
tree, verification resolution).
"""

from datetime import datetime, timedelta, timezone

import pytest

from intake.domain import (
    CallRecord,
    CallRecordStatus,
    CaseStatus,
    CaseTask,
    DispatchChannel,
    InstanceRegistration,
    InstanceStatus,
    ProviderContact,
    RecordsRequest,
    SignatureStatus,
    TaskStatus,
    VerificationRequest,
    VerificationResolution,
    VerificationState,
    VerificationStatus,
)
from intake.repos.memory import (
    MemoryCallRecordRepository,
    MemoryCaseRepository,
    MemoryInstanceRegistry,
    MemoryProviderRepository,
    MemoryRecordsRequestRepository,
)
from intake.repositories import (
    CallRecordRepository,
    CaseRepository,
    InstanceRegistry,
    ProviderRepository,
    RecordsRequestRepository,
)
from intake.tests.factories import CaseFactory, ExtractedProviderFactory


def test_memory_repositories_satisfy_protocols() -> None:
    assert isinstance(MemoryCaseRepository(), CaseRepository)
    assert isinstance(MemoryInstanceRegistry(), InstanceRegistry)
    assert isinstance(MemoryProviderRepository(), ProviderRepository)
    assert isinstance(
        MemoryRecordsRequestRepository(), RecordsRequestRepository
    )
    assert isinstance(MemoryCallRecordRepository(), CallRecordRepository)


class TestMemoryCaseRepository:
    @pytest.mark.asyncio
    async def test_find_by_phone_matches_any_format(self) -> None:
        repo = MemoryCaseRepository()
        await repo.save_case(CaseFactory(case_id="a", phone="(555) 123-4567"))
        await repo.save_case(CaseFactory(case_id="b", phone="555 000 1111"))

        found = await repo.find_case_by_phone("+15551234567")

        assert found.case_id == "a"
        assert await repo.find_case_by_phone("5559999999") is None

    @pytest.mark.asyncio
    async def test_newest_case_wins_for_shared_number(self) -> None:
        repo = MemoryCaseRepository()
        await repo.save_case(CaseFactory(case_id="old"))
        await repo.save_case(CaseFactory(case_id="new"))

        found = await repo.find_case_by_phone(CaseFactory().phone)

        assert found.case_id == "new"

    @pytest.mark.asyncio
    async def test_failure_records_reason(self) -> None:
        repo = MemoryCaseRepository()
        await repo.save_case(CaseFactory(case_id="a"))

        await repo.record_case_failure("a", "No answer")

        case = await repo.get_case("a")
        assert case.status is CaseStatus.FAILED
        assert case.failure_reason == "No answer"

    @pytest.mark.asyncio
    async def test_task_status_lookup(self) -> None:
        repo = MemoryCaseRepository()
        await repo.update_task_status(
            "a", CaseTask.VERIFY_PROVIDERS, TaskStatus.IN_PROGRESS
        )
        await repo.update_task_status(
            "a", CaseTask.VERIFY_PROVIDERS, TaskStatus.COMPLETED, "1 approved"
        )

        assert (
            await repo.get_task_status("a", CaseTask.VERIFY_PROVIDERS)
            is TaskStatus.COMPLETED
        )
        assert await repo.get_task_status("a", CaseTask.GATHER_RELEASES) is None
        assert await repo.get_task_status("b", CaseTask.INTAKE_CALL) is None

    @pytest.mark.asyncio
    async def test_unknown_case_status_update_raises(self) -> None:
        with pytest.raises(ValueError):
            await MemoryCaseRepository().update_case_status(
                "missing", CaseStatus.OUTREACH
            )


class TestMemoryInstanceRegistry:
    @pytest.mark.asyncio
    async def test_registration_is_idempotent(self) -> None:
        registry = MemoryInstanceRegistry()
        registration = InstanceRegistration(
            instance_id="case-1", workflow_name="CaseLifecycleWorkflow"
        )

        first = await registry.register_instance(registration)
        await registry.update_instance_status("case-1", "Phase 1")
        second = await registry.register_instance(registration)

        assert second.started_at == first.started_at
        assert second.status_message == "Phase 1"

    @pytest.mark.asyncio
    async def test_children_listed_by_parent(self) -> None:
        registry = MemoryInstanceRegistry()
        await registry.register_instance(
            InstanceRegistration(instance_id="case-1", workflow_name="Case")
        )
        for child in ("case-1/outreach", "case-1/records"):
            await registry.register_instance(
                InstanceRegistration(
                    instance_id=child,
                    workflow_name="Child",
                    parent_instance_id="case-1",
                )
            )
        await registry.register_instance(
            InstanceRegistration(
                instance_id="case-1/records/provider-p1",
                workflow_name="Grandchild",
                parent_instance_id="case-1/records",
            )
        )

        children = await registry.list_children("case-1")

        assert [c.instance_id for c in children] == [
            "case-1/outreach",
            "case-1/records",
        ]

    @pytest.mark.asyncio
    async def test_terminal_marking(self) -> None:
        registry = MemoryInstanceRegistry()
        await registry.register_instance(
            InstanceRegistration(instance_id="i", workflow_name="W")
        )

        await registry.mark_instance_terminal(
            "i", InstanceStatus.FAILED, "boom", {"success": False}
        )

        instance = await registry.get_instance("i")
        assert instance.status is InstanceStatus.FAILED
        assert instance.error == "boom"
        assert instance.result == {"success": False}
        assert instance.completed_at is not None

    @pytest.mark.asyncio
    async def test_running_is_not_a_terminal_status(self) -> None:
        registry = MemoryInstanceRegistry()
        await registry.register_instance(
            InstanceRegistration(instance_id="i", workflow_name="W")
        )
        with pytest.raises(ValueError):
            await registry.mark_instance_terminal("i", InstanceStatus.RUNNING)

    @pytest.mark.asyncio
    async def test_finished_instance_restarts_under_same_parent(self) -> None:
        registry = MemoryInstanceRegistry()
        await registry.register_instance(
            InstanceRegistration(
                instance_id="case-1/outreach",
                workflow_name="OutreachWorkflow",
                parent_instance_id="case-1",
            )
        )
        await registry.set_paused("case-1/outreach", True)
        await registry.mark_instance_terminal(
            "case-1/outreach", InstanceStatus.FAILED, "No answer"
        )

        again = await registry.register_instance(
            InstanceRegistration(
                instance_id="case-1/outreach",
                workflow_name="OutreachWorkflow",
                parent_instance_id="somewhere-else",
            )
        )

        assert again.status is InstanceStatus.RUNNING
        assert again.parent_instance_id == "case-1"
        assert again.error is None
        assert again.completed_at is None
        assert again.paused is False
        assert await registry.get_instance("case-1/outreach") == again

    @pytest.mark.asyncio
    async def test_scheduled_instance_marked_running(self) -> None:
        registry = MemoryInstanceRegistry()
        scheduled_at = datetime.now(timezone.utc) + timedelta(hours=1)
        registration = InstanceRegistration(
            instance_id="case-1",
            workflow_name="CaseLifecycleWorkflow",
            scheduled_at=scheduled_at,
        )

        scheduled = await registry.register_instance(registration)
        # Registering while scheduled leaves the record alone
        assert await registry.register_instance(registration) == scheduled
        await registry.mark_instance_running("case-1")
        await registry.mark_instance_running("case-1")

        assert scheduled.status is InstanceStatus.SCHEDULED
        instance = await registry.get_instance("case-1")
        assert instance.status is InstanceStatus.RUNNING
        assert instance.scheduled_at == scheduled_at
        with pytest.raises(ValueError):
            await registry.mark_instance_running("missing")

    @pytest.mark.asyncio
    async def test_pause_flag(self) -> None:
        registry = MemoryInstanceRegistry()
        await registry.register_instance(
            InstanceRegistration(instance_id="i", workflow_name="W")
        )
        await registry.set_paused("i", True)
        assert (await registry.get_instance("i")).paused is True
        with pytest.raises(ValueError):
            await registry.set_paused("missing", True)


class TestMemoryProviderRepository:
    async def open_request(self, repo, case_id="case-1", **contact):
        [provider] = await repo.save_providers(
            case_id, [ExtractedProviderFactory(**contact)]
        )
        request = await repo.create_verification_request(
            VerificationRequest(
                verification_id=f"{provider.provider_id}-verification",
                case_id=case_id,
                provider_id=provider.provider_id,
                extracted_contact=provider.contact,
            )
        )
        return provider, request

    @pytest.mark.asyncio
    async def test_save_providers_is_idempotent(self) -> None:
        repo = MemoryProviderRepository()
        extracted = ExtractedProviderFactory(name="Dr. Lee")

        first = await repo.save_providers("case-1", [extracted])
        second = await repo.save_providers("case-1", [extracted])

        assert first[0].provider_id == second[0].provider_id
        assert len(repo._providers) == 1

    @pytest.mark.asyncio
    async def test_open_request_marks_provider_pending(self) -> None:
        repo = MemoryProviderRepository()
        provider, _ = await self.open_request(repo)

        stored = await repo.get_provider(provider.provider_id)

        assert stored.verification_state is VerificationState.PENDING

    @pytest.mark.asyncio
    async def test_approval_applies_reviewer_contact(self) -> None:
        repo = MemoryProviderRepository()
        provider, request = await self.open_request(repo)

        resolved = await repo.resolve_verification(
            VerificationResolution(
                verification_id=request.verification_id,
                approved=True,
                contact_info=ProviderContact(email="records@clinic.example"),
                resolved_by="reviewer@firm.example",
            )
        )

        assert resolved.status is VerificationStatus.APPROVED
        assert resolved.resolved_by == "reviewer@firm.example"
        [verified] = await repo.get_verified_providers("case-1")
        assert verified.email == "records@clinic.example"
        # Fields the reviewer left blank keep the extracted value
        assert verified.fax_number == provider.fax_number

    @pytest.mark.asyncio
    async def test_rejection_excludes_provider(self) -> None:
        repo = MemoryProviderRepository()
        provider, request = await self.open_request(repo)

        await repo.resolve_verification(
            VerificationResolution(
                verification_id=request.verification_id, approved=False
            )
        )

        assert await repo.get_verified_providers("case-1") == []
        stored = await repo.get_provider(provider.provider_id)
        assert stored.verification_state is VerificationState.REJECTED

    @pytest.mark.asyncio
    async def test_resolution_is_final(self) -> None:
        repo = MemoryProviderRepository()
        _, request = await self.open_request(repo)
        await repo.resolve_verification(
            VerificationResolution(
                verification_id=request.verification_id, approved=False
            )
        )

        again = await repo.resolve_verification(
            VerificationResolution(
                verification_id=request.verification_id, approved=True
            )
        )

        assert again.status is VerificationStatus.REJECTED

    @pytest.mark.asyncio
    async def test_reopening_resolved_request_keeps_decision(self) -> None:
        repo = MemoryProviderRepository()
        provider, request = await self.open_request(repo, name="Dr. Lee")
        await repo.resolve_verification(
            VerificationResolution(
                verification_id=request.verification_id, approved=True
            )
        )

        # Same provider extracted again on a later run of the case
        _, reopened = await self.open_request(repo, name="Dr. Lee")

        assert reopened.status is VerificationStatus.APPROVED
        stored = await repo.get_verification(request.verification_id)
        assert stored.status is VerificationStatus.APPROVED
        stored_provider = await repo.get_provider(provider.provider_id)
        assert (
            stored_provider.verification_state is VerificationState.VERIFIED
        )
        assert await repo.get_pending_verifications("case-1") == []
        [verified] = await repo.get_verified_providers("case-1")
        assert verified.provider_id == provider.provider_id

    @pytest.mark.asyncio
    async def test_unknown_verification_returns_none(self) -> None:
        repo = MemoryProviderRepository()
        assert (
            await repo.resolve_verification(
                VerificationResolution(verification_id="nope", approved=True)
            )
            is None
        )


class TestMemoryRecordsAndCalls:
    @pytest.mark.asyncio
    async def test_dispatch_requires_signature(self) -> None:
        repo = MemoryRecordsRequestRepository()
        await repo.save_records_request(
            RecordsRequest(request_id="r", case_id="c", provider_id="p")
        )

        with pytest.raises(ValueError):
            await repo.record_dispatch("r", DispatchChannel.FAX, "fax-1")

        await repo.update_signature_status("r", SignatureStatus.SIGNED)
        await repo.record_dispatch("r", DispatchChannel.FAX, "fax-1")
        request = await repo.get_records_request("r")
        assert request.dispatch_channel is DispatchChannel.FAX
        assert request.signed_at is not None

    @pytest.mark.asyncio
    async def test_finished_call_never_reverts(self) -> None:
        repo = MemoryCallRecordRepository()
        await repo.save_call_record(
            CallRecord(
                conversation_id="c1",
                case_id="case-1",
                status=CallRecordStatus.COMPLETED,
                talked_to_human=True,
            )
        )
        await repo.save_call_record(
            CallRecord(conversation_id="c1", case_id="case-1")
        )

        record = await repo.get_call_record("c1")
        assert record.status is CallRecordStatus.COMPLETED
