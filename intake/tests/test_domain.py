"""
Tests for domain model validation and derived values.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from intake.domain import (
    DEFAULT_OUTREACH_MESSAGES,
    CallCompletionData,
    CallOutcome,
    CallRecordStatus,
    CallStatus,
    Case,
    CaseWorkflowParams,
    ExtractedProvider,
    InstanceRegistration,
    InstanceStatus,
    OutreachParams,
    SignatureCheck,
    SignaturePollingSchedule,
    VerificationResolution,
    provider_id_for,
)
from intake.gate import VerificationBarrier
from intake.tests.factories import minimal_assessment


class TestOutreachParams:
    def test_defaults(self) -> None:
        params = OutreachParams(case_id="case-1")
        assert params.max_attempts == 7
        assert params.wait_between_attempts == timedelta(days=1)
        assert params.message_grace_period == timedelta(minutes=1)
        assert params.messages == DEFAULT_OUTREACH_MESSAGES

    @pytest.mark.parametrize("attempts", [0, -1, 11])
    def test_max_attempts_bounds(self, attempts: int) -> None:
        with pytest.raises(ValidationError):
            OutreachParams(case_id="case-1", max_attempts=attempts)

    def test_last_message_repeats(self) -> None:
        params = OutreachParams(
            case_id="case-1", max_attempts=5, messages=["first", "again"]
        )
        assert [params.message_for_attempt(i) for i in range(4)] == [
            "first",
            "again",
            "again",
            "again",
        ]

    def test_empty_messages_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OutreachParams(case_id="case-1", messages=[])

    def test_case_params_force_case_id_on_outreach(self) -> None:
        params = CaseWorkflowParams(
            case_id="case-2",
            outreach=OutreachParams(case_id="other", max_attempts=2),
        )
        outreach = params.outreach_params()
        assert outreach.case_id == "case-2"
        assert outreach.max_attempts == 2


class TestCallOutcome:
    @pytest.mark.parametrize(
        "status, outcome",
        [
            (CallStatus(conversation_id="c"), CallOutcome.UNRESOLVED),
            (
                CallStatus(conversation_id="c", completed=True),
                CallOutcome.VOICEMAIL,
            ),
            (
                CallStatus(
                    conversation_id="c", completed=True, talked_to_human=True
                ),
                CallOutcome.TALKED_TO_HUMAN,
            ),
            (
                CallStatus(conversation_id="c", completed=True, failed=True),
                CallOutcome.FAILED,
            ),
        ],
    )
    def test_outcome(self, status: CallStatus, outcome: CallOutcome) -> None:
        assert status.outcome is outcome

    def test_failed_signal_becomes_failed_record(self) -> None:
        data = CallCompletionData(
            conversation_id="c", failed=True, failure_reason="no-answer"
        )
        record = data.to_call_status().to_call_record("case-1")
        assert record.status is CallRecordStatus.FAILED
        assert record.failure_reason == "no-answer"
        assert record.to_call_status().outcome is CallOutcome.FAILED


class TestValidation:
    def test_blank_case_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Case(case_id="  ", phone="5551234567")

    def test_instance_cannot_parent_itself(self) -> None:
        with pytest.raises(ValidationError):
            InstanceRegistration(
                instance_id="a", workflow_name="W", parent_instance_id="a"
            )

    def test_signed_implies_done(self) -> None:
        with pytest.raises(ValidationError):
            SignatureCheck(done=False, signed=True)

    def test_only_running_is_non_terminal(self) -> None:
        assert not InstanceStatus.RUNNING.is_terminal
        assert all(
            s.is_terminal
            for s in InstanceStatus
            if s is not InstanceStatus.RUNNING
        )


class TestProviderIdentity:
    def test_same_name_same_case_same_id(self) -> None:
        assert provider_id_for("case-1", "Dr. Jane  Smith") == provider_id_for(
            "case-1", "dr. jane smith"
        )

    def test_different_case_different_id(self) -> None:
        assert provider_id_for("case-1", "Dr. Jane Smith") != provider_id_for(
            "case-2", "Dr. Jane Smith"
        )

    def test_single_word_name_has_no_first_name(self) -> None:
        criteria = ExtractedProvider(name="Dr. Patel").search_criteria()
        assert criteria.first_name is None
        assert criteria.last_name == "Patel"


def test_polling_schedule_phases() -> None:
    schedule = SignaturePollingSchedule()
    assert schedule.max_polls == 80
    intervals = schedule.intervals()
    assert intervals[:20] == [timedelta(minutes=2)] * 20
    assert intervals[20:] == [timedelta(hours=12)] * 60


def test_quality_score_is_mean_of_scales() -> None:
    assert minimal_assessment(score=4.0).quality_score == 4.0


class TestVerificationBarrier:
    def resolution(self, vid: str, approved: bool) -> VerificationResolution:
        return VerificationResolution(verification_id=vid, approved=approved)

    def test_settles_when_every_pending_id_resolved(self) -> None:
        barrier = VerificationBarrier(["v1", "v2"])
        barrier.record(self.resolution("v1", True))
        assert not barrier.settled
        assert barrier.outstanding == {"v2"}
        barrier.record(self.resolution("v2", False))
        assert barrier.settled
        assert barrier.approved == {"v1"}
        assert barrier.rejected == {"v2"}

    def test_unknown_ids_do_not_settle(self) -> None:
        barrier = VerificationBarrier(["v1"])
        barrier.record(self.resolution("other", True))
        assert not barrier.settled
        assert len(barrier.resolutions()) == 1

    def test_later_decision_replaces_earlier(self) -> None:
        barrier = VerificationBarrier(["v1"])
        barrier.record(self.resolution("v1", True))
        barrier.record(self.resolution("v1", False))
        assert barrier.approved == set()
        assert barrier.rejected == {"v1"}
        assert barrier.resolutions()[0].approved is False

    def test_reset_keeps_early_resolutions(self) -> None:
        barrier = VerificationBarrier()
        assert barrier.settled
        barrier.record(self.resolution("v1", True))
        barrier.reset(["v1", "v2"])
        assert barrier.outstanding == {"v2"}
