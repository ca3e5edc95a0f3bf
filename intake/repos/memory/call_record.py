"""
Memory implementation of CallRecordRepository.
"""

from typing import Dict, Optional

from intake.domain import CallRecord, CallRecordStatus
from intake.repositories import CallRecordRepository


class MemoryCallRecordRepository(CallRecordRepository):
    def __init__(self) -> None:
        self._records: Dict[str, CallRecord] = {}

    async def save_call_record(self, record: CallRecord) -> None:
        existing = self._records.get(record.conversation_id)
        # A finished call never goes back to "initiated".
        if (
            existing is not None
            and existing.status is not CallRecordStatus.INITIATED
            and record.status is CallRecordStatus.INITIATED
        ):
            return
        self._records[record.conversation_id] = record

    async def get_call_record(
        self, conversation_id: str
    ) -> Optional[CallRecord]:
        return self._records.get(conversation_id)
