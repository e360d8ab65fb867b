"""Schemas for question answering endpoints."""

from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ProviderId(str, Enum):
    """Upstream providers known to the gateway, in default priority order."""

    OPENROUTER = "openrouter"
    GEMINI = "gemini"
    ZAI = "zai"


Level = Literal["beginner", "intermediate", "advanced"]
LearningStyle = Literal["visual", "auditory", "kinesthetic", "reading", "mixed"]

COMPLEXITY_BY_LEVEL = {
    "beginner": "simple",
    "intermediate": "moderate",
    "advanced": "complex",
}


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(CamelModel):
    role: Literal["user", "assistant", "system"]
    content: str


class AskRequest(CamelModel):
    question: str = Field(..., description="Learner question to be answered.")
    subject: str = Field("general", description="Subject area used to steer the answer.")
    level: Level = Field("beginner", description="Learner level.")
    preferred_provider: Optional[str] = Field(
        None,
        description="Provider to try first; unknown or unconfigured names are ignored.",
    )
    session_id: Optional[str] = Field(None, description="Opaque conversation identifier.")
    conversation_history: List[ChatMessage] = Field(
        default_factory=list, description="Earlier turns, oldest first."
    )
    learning_style: Optional[LearningStyle] = Field(
        None, description="Optional learning style hint for the tutor prompt."
    )

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question must not be empty")
        return value


class AnswerMetadata(CamelModel):
    model: str = ""
    tokens: int = Field(0, ge=0)
    cost: float = Field(0.0, ge=0.0)


class AnswerEnvelope(CamelModel):
    """Normalized answer returned by the gateway."""

    answer: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    provider: ProviderId
    response_time: int = Field(0, ge=0, description="Dispatch wall-clock time in milliseconds.")
    follow_up_questions: List[str] = Field(default_factory=list)
    metadata: AnswerMetadata = Field(default_factory=AnswerMetadata)
    relevance_score: Optional[float] = Field(None, ge=0.0, le=1.0)
    contains_inappropriate_content: Optional[bool] = None
    content_flags: List[str] = Field(default_factory=list)
    complexity: Optional[str] = None
    context_truncated: bool = False
    session_id: Optional[str] = None
