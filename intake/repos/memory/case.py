"""
Memory implementation of CaseRepository.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from intake.domain import (
    Case,
    CaseAssessment,
    CaseStatus,
    CaseTask,
    TaskEntry,
    TaskStatus,
)
from intake.phone import normalize_phone_number
from intake.repositories import CaseRepository

logger = logging.getLogger(__name__)


class MemoryCaseRepository(CaseRepository):
    """
    Cases, their checklist rows and assessments, held in dictionaries
    keyed by case id.
    """

    def __init__(self) -> None:
        logger.debug("Initializing MemoryCaseRepository")
        self._cases: Dict[str, Case] = {}
        self._tasks: Dict[str, Dict[CaseTask, TaskEntry]] = {}
        self._assessments: Dict[str, CaseAssessment] = {}

    async def get_case(self, case_id: str) -> Optional[Case]:
        return self._cases.get(case_id)

    async def save_case(self, case: Case) -> None:
        self._cases[case.case_id] = case.model_copy()
        logger.debug("Case saved", extra={"case_id": case.case_id})

    async def find_case_by_phone(self, phone: str) -> Optional[Case]:
        target = normalize_phone_number(phone)
        for case in reversed(list(self._cases.values())):
            try:
                if normalize_phone_number(case.phone) == target:
                    return case
            except ValueError:
                continue
        return None

    async def update_case_status(
        self, case_id: str, status: CaseStatus
    ) -> None:
        case = self._require(case_id)
        self._cases[case_id] = case.model_copy(update={"status": status})
        logger.info(
            "Case status updated",
            extra={"case_id": case_id, "status": status.value},
        )

    async def record_case_failure(self, case_id: str, reason: str) -> None:
        case = self._require(case_id)
        self._cases[case_id] = case.model_copy(
            update={"status": CaseStatus.FAILED, "failure_reason": reason}
        )
        logger.warning(
            "Case failed", extra={"case_id": case_id, "reason": reason}
        )

    async def update_task_status(
        self,
        case_id: str,
        task: CaseTask,
        status: TaskStatus,
        note: Optional[str] = None,
    ) -> None:
        self._tasks.setdefault(case_id, {})[task] = TaskEntry(
            task=task,
            status=status,
            note=note,
            updated_at=datetime.now(timezone.utc),
        )

    async def get_task_status(
        self, case_id: str, task: CaseTask
    ) -> Optional[TaskStatus]:
        entry = self._tasks.get(case_id, {}).get(task)
        return entry.status if entry else None

    async def save_assessment(
        self, case_id: str, assessment: CaseAssessment
    ) -> None:
        self._assessments[case_id] = assessment

    # Read helpers used by tests and the status endpoint

    def get_tasks(self, case_id: str) -> List[TaskEntry]:
        return list(self._tasks.get(case_id, {}).values())

    def get_task(self, case_id: str, task: CaseTask) -> Optional[TaskEntry]:
        return self._tasks.get(case_id, {}).get(task)

    def get_assessment(self, case_id: str) -> Optional[CaseAssessment]:
        return self._assessments.get(case_id)

    def _require(self, case_id: str) -> Case:
        case = self._cases.get(case_id)
        if case is None:
            raise ValueError(f"Case {case_id} not found")
        return case
