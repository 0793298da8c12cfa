"""
Relevance classifiers - stage 3 of scoring.

Both classifiers satisfy the RelevanceClassifier protocol: they take the
rendered message text plus the pack and return a Classification (score,
primary category, optional EventIntent).

- HeuristicRelevanceClassifier: keyword/domain signals, no model calls
- GeminiRelevanceClassifier: Gemini Flash via Vertex AI, gated by
  CONCIERGE_USE_LLM, falling back to the heuristic on any model failure

Cost: ~$0.0001 per message for the Gemini path
"""

from __future__ import annotations

import json
import os
import re
from datetime import datetime

from dateutil import parser as date_parser
from pydantic import BaseModel, Field

from concierge.config import DISCOVERY_BODY_TRUNCATION
from concierge.discovery.category_classifier import CategoryClassifier
from concierge.discovery.extractor import EventExtractor
from concierge.discovery.packs import PackConfig
from concierge.discovery.types import Category, Classification, EventIntent, Message
from concierge.infrastructure.settings import GEMINI_MODEL
from concierge.observability.logging import get_logger
from concierge.observability.telemetry import counter, log_event
from concierge.utils.email import extract_domain_only
from concierge.utils.redaction import redact_pii, redact_subject, sanitize_for_prompt

logger = get_logger(__name__)

_HEADER_LINE = re.compile(r"^(From|Subject|Date):\s?(.*)$")


def _use_llm() -> bool:
    """Check LLM feature flag at call time, not import time."""
    return os.getenv("CONCIERGE_USE_LLM", "false").lower() == "true"


def render_message_text(message: Message) -> str:
    """Render a message into the text form classifiers consume."""
    lines = [f"From: {message.from_address}", f"Subject: {message.subject}"]
    if message.internal_date is not None:
        lines.append(f"Date: {message.internal_date.isoformat()}")
    return "\n".join(lines) + "\n\n" + (message.body or "")[:DISCOVERY_BODY_TRUNCATION]


def parse_message_text(text: str) -> tuple[str, str, datetime | None, str]:
    """Split rendered text back into (from, subject, date, body)."""
    headers: dict[str, str] = {}
    head, _, body = text.partition("\n\n")
    for line in head.splitlines():
        match = _HEADER_LINE.match(line)
        if match:
            headers[match.group(1)] = match.group(2)

    sent_at = None
    if headers.get("Date"):
        try:
            sent_at = date_parser.isoparse(headers["Date"])
        except ValueError:
            sent_at = None
    return headers.get("From", ""), headers.get("Subject", ""), sent_at, body


class HeuristicRelevanceClassifier:
    """Relevance from category signals; extraction from the rule-based extractor."""

    def __init__(
        self,
        category_classifier: CategoryClassifier | None = None,
        extractor: EventExtractor | None = None,
    ):
        self.category_classifier = category_classifier or CategoryClassifier()
        self.extractor = extractor or EventExtractor()

    def classify(self, message_text: str, pack: PackConfig) -> Classification:
        from_address, subject, sent_at, body = parse_message_text(message_text)
        trusted = pack.matches_domain(extract_domain_only(from_address))

        result = self.category_classifier.categorize(subject, from_address, body, trusted)
        try:
            intent = self.extractor.extract(subject, body, timezone=pack.timezone, reference=sent_at)
        except ValueError as e:
            logger.debug("Heuristic extraction failed: %s", e)
            intent = None

        counter("discovery.classifier.heuristic")
        return Classification(
            score=round(result.score, 4),
            category=result.primary,
            extracted_intent=intent,
            category_scores=result.scores,
            method="heuristic",
        )


class LLMEventSchema(BaseModel):
    title: str
    start: str = Field(description="ISO-8601 start, local time if no offset")
    end: str | None = None
    all_day: bool = False


class LLMRelevanceSchema(BaseModel):
    """Schema for the model's JSON response."""

    reason: str = ""
    score: float = Field(ge=0.0, le=1.0)
    category: Category
    event: LLMEventSchema | None = None


CATEGORY_LIST = ", ".join(c.value for c in Category)


class GeminiRelevanceClassifier:
    """
    Gemini-backed relevance classifier.

    Any model failure (disabled flag, init error, parse error, transport
    error after retries) falls back to the heuristic classifier.
    """

    PROMPT_TEMPLATE = """You triage email for a busy household.
Decide how likely this email describes a scheduling-relevant event or an obligation
(deadline, RSVP, form, appointment) for the "{pack_name}" area of family life.

Categories: {categories}

Email:
From: {from_address}
Subject: {subject}
Sent: {sent_at}
Body:
{body}

Respond with JSON only:
{{"reason": "<one sentence>", "score": <0.0-1.0>, "category": "<category>",
  "event": {{"title": "...", "start": "YYYY-MM-DDTHH:MM", "end": "YYYY-MM-DDTHH:MM" or null,
            "all_day": true|false}} or null}}
Times are in {timezone}. Use null for event when no date is stated. Do not guess dates."""

    def __init__(self, fallback: HeuristicRelevanceClassifier | None = None):
        self.fallback = fallback or HeuristicRelevanceClassifier()

    def classify(self, message_text: str, pack: PackConfig) -> Classification:
        if not _use_llm():
            counter("discovery.classifier.llm_disabled")
            return self.fallback.classify(message_text, pack)

        from_address, subject, sent_at, body = parse_message_text(message_text)
        prompt = self._build_prompt(pack, from_address, subject, sent_at, body)

        try:
            from concierge.llm.retry import call_llm

            logger.info(
                "LLM CLASSIFIER: Calling %s for subject='%s'", GEMINI_MODEL, redact_subject(subject)
            )
            response_text = call_llm(prompt, counter_prefix="discovery.classifier")
            result = self._parse_response(response_text, pack)
        except Exception as e:
            counter("discovery.classifier.llm_error")
            logger.warning("LLM classifier failed, using heuristic: %s", e)
            log_event("discovery.classifier.error", error=str(e)[:200], model=GEMINI_MODEL)
            return self.fallback.classify(message_text, pack)

        counter("discovery.classifier.llm_success")
        log_event(
            "discovery.classifier.result",
            score=result.score,
            category=result.category.value,
            has_event=result.extracted_intent is not None,
            model=GEMINI_MODEL,
        )
        return result

    def _build_prompt(
        self,
        pack: PackConfig,
        from_address: str,
        subject: str,
        sent_at: datetime | None,
        body: str,
    ) -> str:
        return self.PROMPT_TEMPLATE.format(
            pack_name=sanitize_for_prompt(pack.name or pack.pack_id, max_length=60),
            categories=CATEGORY_LIST,
            from_address=sanitize_for_prompt(from_address, max_length=100),
            subject=sanitize_for_prompt(subject, max_length=200),
            sent_at=sent_at.isoformat() if sent_at else "unknown",
            body=redact_pii(sanitize_for_prompt(body, max_length=2000), max_length=2000),
            timezone=pack.timezone,
        )

    def _parse_response(self, response_text: str, pack: PackConfig) -> Classification:
        """
        Parse the model's JSON into a Classification.

        Raises:
            ValueError: If the response is not valid JSON for the schema
        """
        json_text = response_text.strip()
        if json_text.startswith("```"):
            counter("discovery.classifier.code_fence_fallback")
            json_text = re.sub(r"^```(?:json)?\n?", "", json_text)
            json_text = re.sub(r"\n?```$", "", json_text)

        validated = LLMRelevanceSchema.model_validate(json.loads(json_text))

        intent = None
        if validated.event is not None:
            try:
                intent = EventIntent(
                    title=validated.event.title,
                    timezone=pack.timezone,
                    all_day=validated.event.all_day,
                    start=date_parser.isoparse(validated.event.start),
                    end=date_parser.isoparse(validated.event.end) if validated.event.end else None,
                )
            except ValueError as e:
                # Keep the score, drop the unusable event; the item goes to manual completion
                counter("discovery.classifier.bad_event")
                logger.warning("Discarding LLM event: %s", e)

        return Classification(
            score=validated.score,
            category=Category(validated.category),
            extracted_intent=intent,
            method="llm",
        )
