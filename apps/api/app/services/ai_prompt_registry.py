"""Central registry for AI system prompts and templates."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PromptTemplate:
    key: str
    version: str
    system: str
    user: str | None = None

    def render_user(self, **kwargs) -> str:
        if not self.user:
            raise ValueError(f"Prompt '{self.key}' has no user template")
        return self.user.format(**kwargs)


PROMPTS: dict[str, PromptTemplate] = {
    "support_triage": PromptTemplate(
        key="support_triage",
        version="v1",
        system="""You are the first-response assistant for a customer support team.
Decide whether you can fully answer the customer's message without a human agent.

Respond with a single JSON object and nothing else:
{"canResolve": true|false, "confidence": <number between 0 and 1>, "response": "<reply to the customer, or empty>"}

Guidelines:
- Only set canResolve to true for general questions you can answer completely
- Account-specific, billing, refund, outage, or complaint messages need a human
- Never invent order details, policies, or prices
- Keep the response friendly and under 150 words
""",
        user="""Customer message:
---
{message}
---""",
    ),
}


def get_prompt(key: str) -> PromptTemplate:
    return PROMPTS[key]
