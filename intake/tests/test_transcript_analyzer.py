import json
import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
from anthropic import APIConnectionError, APIStatusError

from intake.errors import (
    PlatformRejection,
    TranscriptParseError,
    TransportFailure,
)
from intake.repos.anthropic import AnthropicTranscriptAnalyzer
from intake.repos.anthropic.transcript_analyzer import strip_code_fences

MESSAGES_URL = "https://api.anthropic.com/v1/messages"


def reply(text: str) -> SimpleNamespace:
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def status_error(status_code: int) -> APIStatusError:
    request = httpx.Request("POST", MESSAGES_URL)
    response = httpx.Response(status_code, request=request)
    return APIStatusError(
        f"status {status_code}", response=response, body=None
    )


ASSESSMENT = {
    "summary": "Missed fracture on first visit.",
    "core_scales": {
        "economic_harm": {"score": 4, "rationale": "Lost wages"},
        "pain_and_suffering": {"score": 6, "rationale": "Months of pain"},
        "causation_strength": {"score": 8, "rationale": "Clear link"},
        "standard_of_care_deviation": {"score": 6, "rationale": "X-ray"},
    },
}


class TestStripCodeFences(unittest.TestCase):
    def test_fenced_json(self) -> None:
        self.assertEqual(
            strip_code_fences('```json\n[{"a": 1}]\n```'), '[{"a": 1}]'
        )

    def test_plain_text_untouched(self) -> None:
        self.assertEqual(strip_code_fences("  [1, 2]  "), "[1, 2]")


class TestAnthropicTranscriptAnalyzer(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.client = MagicMock()
        self.client.messages.create = AsyncMock()
        self.analyzer = AnthropicTranscriptAnalyzer(
            api_key="", model="test-model", client=self.client
        )

    def test_requires_api_key_without_client(self) -> None:
        with self.assertRaises(ValueError):
            AnthropicTranscriptAnalyzer(api_key="")

    async def test_extract_providers_from_fenced_reply(self) -> None:
        providers = [
            {"name": "Dr. Jane Smith", "organization": "St. Mary's"},
            {"name": "  ", "organization": "Nameless Clinic"},
            {"name": None},
            "not an object",
        ]
        self.client.messages.create.return_value = reply(
            f"```json\n{json.dumps(providers)}\n```"
        )

        extracted = await self.analyzer.extract_providers("Agent: Hi")

        self.assertEqual([p.name for p in extracted], ["Dr. Jane Smith"])
        self.assertEqual(extracted[0].organization, "St. Mary's")
        kwargs = self.client.messages.create.await_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertIn("Agent: Hi", kwargs["messages"][0]["content"])

    async def test_providers_wrapped_in_object(self) -> None:
        self.client.messages.create.return_value = reply(
            json.dumps({"providers": [{"name": "Dr. Lee"}]})
        )

        extracted = await self.analyzer.extract_providers("transcript")

        self.assertEqual(len(extracted), 1)

    async def test_non_list_providers_rejected(self) -> None:
        self.client.messages.create.return_value = reply('"nobody"')

        with self.assertRaises(TranscriptParseError):
            await self.analyzer.extract_providers("transcript")

    async def test_invalid_json_rejected(self) -> None:
        self.client.messages.create.return_value = reply("I found two doctors")

        with self.assertRaises(TranscriptParseError):
            await self.analyzer.extract_providers("transcript")

    async def test_analyze_transcript(self) -> None:
        self.client.messages.create.return_value = reply(
            json.dumps(ASSESSMENT)
        )

        assessment = await self.analyzer.analyze_transcript("transcript")

        self.assertEqual(assessment.quality_score, 6.0)
        self.assertEqual(
            assessment.core_scales.causation_strength.rationale, "Clear link"
        )

    async def test_out_of_range_score_rejected(self) -> None:
        bad = json.loads(json.dumps(ASSESSMENT))
        bad["core_scales"]["economic_harm"]["score"] = 42
        self.client.messages.create.return_value = reply(json.dumps(bad))

        with self.assertRaises(TranscriptParseError):
            await self.analyzer.analyze_transcript("transcript")

    async def test_connection_error_is_transport_failure(self) -> None:
        self.client.messages.create.side_effect = APIConnectionError(
            request=httpx.Request("POST", MESSAGES_URL)
        )

        with self.assertRaises(TransportFailure):
            await self.analyzer.analyze_transcript("transcript")

    async def test_overload_is_transport_failure(self) -> None:
        for status_code in (429, 529):
            self.client.messages.create.side_effect = status_error(status_code)
            with self.assertRaises(TransportFailure):
                await self.analyzer.analyze_transcript("transcript")

    async def test_bad_request_is_rejection(self) -> None:
        self.client.messages.create.side_effect = status_error(400)

        with self.assertRaises(PlatformRejection):
            await self.analyzer.analyze_transcript("transcript")
