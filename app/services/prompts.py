"""Prompt construction for tutoring requests."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from app.schemas import AskRequest

SYSTEM_PROMPT_PATH = Path(__file__).resolve().parent.parent / "prompts" / "system_prompt.md"

LEVEL_GUIDANCE = {
    "beginner": "Use plain language, define every term and build from first principles.",
    "intermediate": "Assume the fundamentals and build on existing knowledge.",
    "advanced": "Be precise and concise, and offer advanced insights and edge cases.",
}

LEARNING_STYLE_GUIDANCE = {
    "visual": "Use visual descriptions, diagrams, and spatial organization in your response.",
    "auditory": "Use clear explanations, analogies, and conversational tone.",
    "kinesthetic": "Include practical examples, hands-on activities, and real-world applications.",
    "reading": "Provide well-structured text with clear headings and comprehensive explanations.",
    "mixed": "Balance different learning approaches with varied examples and formats.",
}


@dataclass
class PromptBundle:
    """Provider-neutral chat messages plus bookkeeping about the history window."""

    system: str
    messages: List[Dict[str, str]]
    context_truncated: bool = False

    def as_chat(self) -> List[Dict[str, str]]:
        """Return OpenAI-style messages with the system prompt first."""

        return [{"role": "system", "content": self.system}, *self.messages]


@lru_cache()
def load_system_prompt() -> str:
    """Read the system prompt template from disk."""

    return SYSTEM_PROMPT_PATH.read_text(encoding="utf-8")


def build_prompt(request: AskRequest, max_history_messages: int) -> PromptBundle:
    """Assemble the tutoring prompt for a request.

    Only the most recent ``max_history_messages`` turns are forwarded; system
    turns from the client are dropped so they cannot override the contract.
    """

    guidance = [load_system_prompt().strip(), "", f"Subject: {request.subject}"]
    guidance.append(f"Learner level: {request.level}. {LEVEL_GUIDANCE[request.level]}")
    if request.learning_style:
        guidance.append(LEARNING_STYLE_GUIDANCE[request.learning_style])

    history = [turn for turn in request.conversation_history if turn.role != "system"]
    truncated = len(history) > max_history_messages
    if truncated:
        history = history[-max_history_messages:] if max_history_messages > 0 else []

    messages = [{"role": turn.role, "content": turn.content} for turn in history]
    messages.append({"role": "user", "content": request.question})

    return PromptBundle(system="\n".join(guidance), messages=messages, context_truncated=truncated)
