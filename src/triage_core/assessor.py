"""Secondary (AI-assisted) assessment over a messages-style model API.

One request per call:

    POST <url>
    {"model": ..., "max_tokens": 500, "temperature": 0.1,
     "messages": [{"role": "user", "content": <rendered prompt>}]}

The response envelope must carry ``content[0].text``; anything else is a
:class:`SecondaryAssessmentError`.  The text itself is parsed leniently by
:func:`parse_assessment_text`, which never raises.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from triage_core import constants
from triage_core.errors import SecondaryAssessmentError
from triage_core.interfaces import SecondaryAssessor
from triage_core.models.assessment import (
    RuleEvaluationResult,
    SecondaryAssessmentUsed,
)
from triage_core.models.enums import UrgencyLevel
from triage_core.models.symptoms import Symptoms
from triage_core.prompt import PromptManager

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-haiku-20240307"
DEFAULT_HEADERS = {"anthropic-version": "2023-06-01"}


# ---------------------------------------------------------------------------
# Response text parsing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParsedAssessment:
    """Fields extracted from the model's JSON answer, with fallbacks applied."""

    confidence: float
    reasoning: str
    recommended_urgency: UrgencyLevel | None
    agrees_with_rules: bool


def _load_json_object(text: str) -> dict | None:
    """Parse *text* as a JSON object, or the outermost ``{...}`` inside it."""
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            parsed = json.loads(text[start:end + 1])
        except ValueError:
            return None
    return parsed if isinstance(parsed, dict) else None


def parse_assessment_text(text: str) -> ParsedAssessment:
    """Extract confidence, reasoning, tier and agreement from model text.

    Never raises.  Unparseable text yields the default confidence (0.7),
    the "could not be extracted" reasoning, no recommended tier and
    agreement assumed.
    """
    parsed = _load_json_object(text or "")
    if parsed is None:
        logger.warning("Secondary assessment text is not JSON; using defaults")
        return ParsedAssessment(
            confidence=constants.DEFAULT_SECONDARY_CONFIDENCE,
            reasoning=constants.FALLBACK_REASONING_UNPARSEABLE,
            recommended_urgency=None,
            agrees_with_rules=True,
        )

    # Confidence arrives on a 0-100 scale
    raw_confidence = parsed.get("confidence")
    if (
        isinstance(raw_confidence, (int, float))
        and not isinstance(raw_confidence, bool)
        and 0 <= raw_confidence <= 100
    ):
        confidence = raw_confidence / 100
    else:
        confidence = constants.DEFAULT_SECONDARY_CONFIDENCE

    reasoning = parsed.get("clinical_reasoning") or parsed.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning:
        reasoning = constants.FALLBACK_REASONING_MISSING

    try:
        recommended = UrgencyLevel(parsed.get("recommended_urgency"))
    except (TypeError, ValueError):
        recommended = None

    return ParsedAssessment(
        confidence=confidence,
        reasoning=reasoning,
        recommended_urgency=recommended,
        agrees_with_rules=parsed.get("agrees_with_rules") is True,
    )


def extract_content_text(body: bytes) -> str:
    """Return ``content[0].text`` from a raw response body.

    Raises:
        SecondaryAssessmentError: empty body, non-JSON body, or no text.
    """
    if not body:
        raise SecondaryAssessmentError("No response body from secondary assessor")
    try:
        envelope = json.loads(body)
    except ValueError as exc:
        raise SecondaryAssessmentError(
            "Secondary assessor response is not JSON"
        ) from exc

    content = envelope.get("content") if isinstance(envelope, dict) else None
    if not isinstance(content, list) or not content:
        raise SecondaryAssessmentError("Invalid response format: missing content")
    first = content[0]
    text = first.get("text") if isinstance(first, dict) else None
    if not isinstance(text, str) or not text:
        raise SecondaryAssessmentError("Invalid response format: missing content text")
    return text


# ---------------------------------------------------------------------------
# MessagesApiAssessor
# ---------------------------------------------------------------------------

class MessagesApiAssessor(SecondaryAssessor):
    """Secondary assessor backed by a messages-style model endpoint.

    Args:
        url: full endpoint URL the request is POSTed to.
        model: model identifier sent in the request body.
        api_key: sent as ``x-api-key`` when set.
        headers: extra headers merged over the defaults.
        client: optional pre-built ``httpx.AsyncClient`` (tests inject one
            with a mock transport).  When omitted a client is created per
            call.
        prompts: prompt renderer; defaults to the packaged templates.
    """

    def __init__(
        self,
        url: str,
        *,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        max_tokens: int = 500,
        temperature: float = 0.1,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        prompts: PromptManager | None = None,
    ) -> None:
        self._url = url
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout
        self._client = client
        self._prompts = prompts or PromptManager()

        self._headers = dict(DEFAULT_HEADERS)
        if api_key:
            self._headers["x-api-key"] = api_key
        self._headers.update(headers or {})

    @property
    def model(self) -> str:
        return self._model

    def build_request_body(
        self, symptoms: Symptoms, rule_result: RuleEvaluationResult
    ) -> dict[str, Any]:
        prompt = self._prompts.render_triage_prompt(symptoms, rule_result)
        return {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "messages": [{"role": "user", "content": prompt}],
        }

    async def assess(
        self, symptoms: Symptoms, rule_result: RuleEvaluationResult
    ) -> SecondaryAssessmentUsed:
        body = self.build_request_body(symptoms, rule_result)
        logger.info(
            "Requesting secondary assessment: model=%s, max_tokens=%d",
            self._model, self._max_tokens,
        )
        raw = await self._post(body)
        parsed = parse_assessment_text(extract_content_text(raw))

        assessment = SecondaryAssessmentUsed(
            confidence=parsed.confidence,
            reasoning=parsed.reasoning,
            model=self._model,
            timestamp=datetime.now(timezone.utc),
            recommended_urgency=parsed.recommended_urgency,
            agrees_with_rules=parsed.agrees_with_rules,
        )
        logger.info(
            "Secondary assessment completed: confidence=%.2f, agrees=%s",
            assessment.confidence, assessment.agrees_with_rules,
        )
        return assessment

    async def _post(self, body: dict[str, Any]) -> bytes:
        try:
            if self._client is not None:
                resp = await self._client.post(self._url, json=body, headers=self._headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._url, json=body, headers=self._headers)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise SecondaryAssessmentError(
                f"Secondary assessment request failed: {exc}"
            ) from exc
        return resp.content
