"""
Memory implementation of RecordsRequestRepository.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from intake.domain import DispatchChannel, RecordsRequest, SignatureStatus
from intake.repositories import RecordsRequestRepository

logger = logging.getLogger(__name__)


class MemoryRecordsRequestRepository(RecordsRequestRepository):
    def __init__(self) -> None:
        self._requests: Dict[str, RecordsRequest] = {}

    async def save_records_request(self, request: RecordsRequest) -> None:
        self._requests[request.request_id] = request

    async def get_records_request(
        self, request_id: str
    ) -> Optional[RecordsRequest]:
        return self._requests.get(request_id)

    async def update_signature_status(
        self, request_id: str, status: SignatureStatus
    ) -> None:
        request = self._require(request_id)
        update: dict = {"signature_status": status}
        if status is SignatureStatus.SIGNED and request.signed_at is None:
            update["signed_at"] = datetime.now(timezone.utc)
        self._requests[request_id] = request.model_copy(update=update)

    async def record_dispatch(
        self, request_id: str, channel: DispatchChannel, reference: str
    ) -> None:
        request = self._require(request_id)
        if request.signature_status is not SignatureStatus.SIGNED:
            raise ValueError(
                f"Records request {request_id} is not signed "
                f"({request.signature_status.value})"
            )
        self._requests[request_id] = request.model_copy(
            update={
                "dispatch_channel": channel,
                "dispatch_reference": reference,
            }
        )
        logger.info(
            "Records request dispatched",
            extra={"request_id": request_id, "channel": channel.value},
        )

    def _require(self, request_id: str) -> RecordsRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise ValueError(f"Records request {request_id} not found")
        return request
