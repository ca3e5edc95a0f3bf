"""
Anthropic implementation of TranscriptAnalyzer.

Both operations send one prompt to the Messages API and expect a bare JSON
document back. Markdown code fences are stripped before parsing because
models add them despite being told not to. Anything that does not parse and
validate raises TranscriptParseError instead of returning partial data.
"""

import json
import logging
import re
from typing import Any, List, Optional

from anthropic import APIConnectionError, APIStatusError, AsyncAnthropic
from pydantic import TypeAdapter, ValidationError

from intake.domain import CaseAssessment, ExtractedProvider
from intake.errors import (
    PlatformRejection,
    TranscriptParseError,
    TransportFailure,
)
from intake.repositories import TranscriptAnalyzer
from intake.repos.anthropic.prompts import (
    ANALYZE_CASE_PROMPT,
    EXTRACT_PROVIDERS_PROMPT,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_TOKENS = 4000

_FENCE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")

_provider_list = TypeAdapter(List[ExtractedProvider])


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text.strip()).strip()


class AnthropicTranscriptAnalyzer(TranscriptAnalyzer):
    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        client: Optional[AsyncAnthropic] = None,
    ) -> None:
        if not api_key and client is None:
            raise ValueError(
                "ANTHROPIC_API_KEY is required for AnthropicTranscriptAnalyzer"
            )
        self.model = model
        self.client = client or AsyncAnthropic(api_key=api_key)

    async def extract_providers(
        self, transcript: str
    ) -> List[ExtractedProvider]:
        data = await self._complete_json(
            EXTRACT_PROVIDERS_PROMPT.format(transcript=transcript)
        )
        if isinstance(data, dict):
            data = data.get("providers", data)
        if not isinstance(data, list):
            raise TranscriptParseError("Expected a JSON array of providers")

        # Drop entries without a usable name rather than failing the lot.
        named = [
            item
            for item in data
            if isinstance(item, dict) and str(item.get("name") or "").strip()
        ]
        try:
            providers = _provider_list.validate_python(named)
        except ValidationError as e:
            raise TranscriptParseError(
                f"Provider list failed validation: {e}"
            ) from e
        logger.info(
            "Providers extracted", extra={"provider_count": len(providers)}
        )
        return providers

    async def analyze_transcript(self, transcript: str) -> CaseAssessment:
        data = await self._complete_json(
            ANALYZE_CASE_PROMPT.format(transcript=transcript)
        )
        try:
            assessment = CaseAssessment.model_validate(data)
        except ValidationError as e:
            raise TranscriptParseError(
                f"Case assessment failed validation: {e}"
            ) from e
        logger.info(
            "Case analyzed",
            extra={"quality_score": assessment.quality_score},
        )
        return assessment

    async def _complete_json(self, prompt: str) -> Any:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=MAX_TOKENS,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIConnectionError as e:
            raise TransportFailure(f"Anthropic unreachable: {e}") from e
        except APIStatusError as e:
            if e.status_code >= 500 or e.status_code == 429:
                raise TransportFailure(
                    f"Anthropic returned {e.status_code}"
                ) from e
            raise PlatformRejection(
                f"Anthropic rejected request ({e.status_code}): {e.message}"
            ) from e

        text = "".join(
            getattr(block, "text", "") or "" for block in response.content
        )
        try:
            return json.loads(strip_code_fences(text))
        except json.JSONDecodeError as e:
            logger.warning(
                "Model returned non-JSON output",
                extra={"model": self.model, "preview": text[:200]},
            )
            raise TranscriptParseError(
                f"Model output is not valid JSON: {e}"
            ) from e
