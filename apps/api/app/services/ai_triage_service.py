"""AI-first triage gate for customer-originated messages.

Email and chat-widget ingestion both call `try_resolve` before any ticket is
created. The model decides whether it can answer; this module owns the
decision envelope:

- an explicit request for a human always escalates, before any model call
- resolved only when the model says it can answer AND confidence > threshold
- timeouts, transport errors, unparseable or off-schema output all escalate
  with confidence 0

Nothing here writes to storage, so a result nobody waits for is discardable.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from uuid import UUID

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.services.ai_prompt_registry import get_prompt
from app.services.ai_prompt_schemas import AITriageOutput
from app.services.ai_provider import AIProvider, ChatMessage, get_configured_provider
from app.services.ai_response_validation import parse_model

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 8000

_HUMAN_REQUEST_PATTERNS = [
    r"\b(talk|speak|chat)\s+(to|with)\s+(a\s+|an\s+|the\s+)?(real\s+|live\s+)?(human|person|agent|representative|rep|someone)\b",
    r"\b(real|live|actual)\s+(human|person|agent)\b",
    r"\bhuman\s+(agent|support|being)\b",
    r"\b(customer\s+service|support)\s+(agent|representative|rep)\b",
    r"\boperator\b",
    r"\bescalate\b",
    r"\bnot\s+a\s+(bot|robot)\b",
]
_HUMAN_REQUEST_RE = re.compile("|".join(_HUMAN_REQUEST_PATTERNS), re.IGNORECASE)


@dataclass(frozen=True)
class TriageDecision:
    """Outcome of the AI triage gate."""

    resolved: bool
    response: str | None
    confidence: float
    reason: str

    @classmethod
    def escalate(cls, reason: str) -> "TriageDecision":
        return cls(resolved=False, response=None, confidence=0.0, reason=reason)


def wants_human(message: str) -> bool:
    """Heuristic: does the customer explicitly ask for a person?"""
    return bool(message) and _HUMAN_REQUEST_RE.search(message) is not None


def decide(output: AITriageOutput, threshold: float) -> TriageDecision:
    """Apply the resolution rule to a validated model answer."""
    response = (output.response or "").strip() or None
    resolved = output.canResolve and output.confidence > threshold and response is not None
    return TriageDecision(
        resolved=resolved,
        response=response if resolved else None,
        confidence=output.confidence,
        reason="model_resolved" if resolved else "below_threshold_or_declined",
    )


def _build_messages(message: str) -> list[ChatMessage]:
    prompt = get_prompt("support_triage")
    return [
        ChatMessage(role="system", content=prompt.system),
        ChatMessage(role="user", content=prompt.render_user(message=message[:MAX_MESSAGE_CHARS])),
    ]


async def try_resolve(
    customer_message: str,
    organization_id: UUID,
    *,
    provider: AIProvider | None = None,
    threshold: float | None = None,
    timeout: float | None = None,
) -> TriageDecision:
    """Decide resolved-vs-escalate for one customer message (channel independent)."""
    log_context = build_log_context(org_id=organization_id)
    message = (customer_message or "").strip()
    if not message:
        return TriageDecision.escalate("empty_message")

    if wants_human(message):
        logger.info("AI triage skipped: human requested", extra=log_context)
        return TriageDecision.escalate("human_requested")

    provider = provider or get_configured_provider()
    if provider is None:
        return TriageDecision.escalate("ai_not_configured")

    threshold = settings.AI_TRIAGE_CONFIDENCE_THRESHOLD if threshold is None else threshold
    timeout = settings.AI_TRIAGE_TIMEOUT_SECONDS if timeout is None else timeout

    try:
        result = await asyncio.wait_for(
            provider.chat(_build_messages(message), json_mode=True),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("AI triage timed out", extra=log_context)
        return TriageDecision.escalate("timeout")
    except Exception as exc:
        logger.warning(f"AI triage provider error: {type(exc).__name__}", extra=log_context)
        return TriageDecision.escalate("provider_error")

    output = parse_model(AITriageOutput, result.content)
    if output is None:
        logger.warning("AI triage returned unparseable output", extra=log_context)
        return TriageDecision.escalate("parse_error")

    decision = decide(output, threshold)
    logger.info(
        f"AI triage decided resolved={decision.resolved} confidence={decision.confidence:.2f}",
        extra=log_context,
    )
    return decision
