"""
ElevenLabs conversational-AI implementation of VoiceRepository.

Outbound calls are placed through the Twilio integration. Each call carries
the case id as a dynamic variable, which comes back in the post-call
webhook and lets the webhook be routed to the right case.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from intake.domain import CallCompletionData, CallStatus, Provider
from intake.errors import PlatformRejection
from intake.phone import normalize_phone_number
from intake.repositories import CaseRepository, VoiceRepository
from intake.repos.http.base import PlatformClient, load_case

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1/convai"


def _talked_to_human(analysis: Optional[Dict[str, Any]]) -> bool:
    criteria = (analysis or {}).get("evaluation_criteria_results") or {}
    return (criteria.get("talked_to_a_human") or {}).get("result") == "success"


def conversation_to_call_status(
    conversation_id: str, data: Dict[str, Any]
) -> CallStatus:
    """Classify a conversation document; unknown states stay unresolved."""
    status = data.get("status")
    if status == "failed":
        return CallStatus(
            conversation_id=conversation_id,
            completed=True,
            failed=True,
            failure_reason=data.get("error") or "Unknown error",
        )
    if status == "done" or data.get("transcript"):
        return CallStatus(
            conversation_id=conversation_id,
            completed=True,
            talked_to_human=_talked_to_human(data.get("analysis")),
        )
    return CallStatus(conversation_id=conversation_id)


def parse_post_call_webhook(
    payload: Dict[str, Any],
) -> Tuple[Optional[str], CallCompletionData]:
    """
    Read a post-call webhook body.

    Returns the case id from the call's dynamic variables (None when the
    call was not placed by us) and the completion data to signal.
    """
    data = payload.get("data") or payload
    conversation_id = data.get("conversation_id")
    if not conversation_id:
        raise ValueError("Webhook payload has no conversation_id")

    client_data = data.get("conversation_initiation_client_data") or {}
    case_id = (client_data.get("dynamic_variables") or {}).get("case_id")

    failed = payload.get("type") == "call_initiation_failure" or (
        data.get("status") == "failed"
    )
    completion = CallCompletionData(
        conversation_id=conversation_id,
        talked_to_human=not failed and _talked_to_human(data.get("analysis")),
        failed=failed,
        failure_reason=(data.get("failure_reason") or data.get("error"))
        if failed
        else None,
    )
    return case_id, completion


class ElevenLabsVoiceRepository(PlatformClient, VoiceRepository):
    platform = "elevenlabs"

    def __init__(
        self,
        case_repo: CaseRepository,
        api_key: str,
        phone_number_id: str,
        intake_agent_id: str,
        provider_agent_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(client)
        self.case_repo = case_repo
        self.api_key = api_key
        self.phone_number_id = phone_number_id
        self.intake_agent_id = intake_agent_id
        self.provider_agent_id = provider_agent_id or intake_agent_id

    @property
    def _headers(self) -> Dict[str, str]:
        return {"xi-api-key": self.api_key}

    async def place_call(self, case_id: str) -> str:
        case = await load_case(self.case_repo, case_id)
        return await self._outbound_call(
            agent_id=self.intake_agent_id,
            raw_number=case.phone,
            variables={
                "case_id": case_id,
                "patient_name": case.name or "",
            },
        )

    async def place_provider_call(
        self, case_id: str, provider: Provider
    ) -> str:
        if not provider.phone:
            raise PlatformRejection(f"{provider.name} has no phone number")
        case = await load_case(self.case_repo, case_id)
        return await self._outbound_call(
            agent_id=self.provider_agent_id,
            raw_number=provider.phone,
            variables={
                "case_id": case_id,
                "patient_name": case.name or "",
                "provider_name": provider.name,
                "provider_id": provider.provider_id,
            },
        )

    async def _outbound_call(
        self, agent_id: str, raw_number: str, variables: Dict[str, str]
    ) -> str:
        try:
            to_number = normalize_phone_number(raw_number)
        except ValueError as e:
            raise PlatformRejection(str(e)) from e

        response = await self.request(
            "POST",
            f"{ELEVENLABS_API_URL}/twilio/outbound-call",
            headers=self._headers,
            json={
                "agent_id": agent_id,
                "agent_phone_number_id": self.phone_number_id,
                "to_number": to_number,
                "conversation_initiation_client_data": {
                    "dynamic_variables": variables,
                },
            },
        )
        body = response.json()
        conversation_id = body.get("conversation_id")
        if not body.get("success") or not conversation_id:
            raise PlatformRejection(
                "Call not placed: "
                f"{body.get('detail') or body.get('message') or 'Unknown error'}"
            )
        logger.info(
            "Outbound call placed",
            extra={
                "case_id": variables.get("case_id"),
                "conversation_id": conversation_id,
            },
        )
        return conversation_id

    async def _conversation(self, conversation_id: str) -> Dict[str, Any]:
        response = await self.request(
            "GET",
            f"{ELEVENLABS_API_URL}/conversations/{conversation_id}",
            headers=self._headers,
        )
        return response.json()

    async def get_call_status(self, conversation_id: str) -> CallStatus:
        data = await self._conversation(conversation_id)
        return conversation_to_call_status(conversation_id, data)

    async def get_transcript(self, conversation_id: str) -> str:
        data = await self._conversation(conversation_id)
        turns = data.get("transcript") or []
        lines = []
        for turn in turns:
            message = turn.get("message")
            if not message:
                continue
            speaker = "Agent" if turn.get("role") == "agent" else "Patient"
            lines.append(f"{speaker}: {message}")
        return "\n".join(lines)
