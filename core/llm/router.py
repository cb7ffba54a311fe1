"""
LLM Router: model selection for content generation.

Routes each AI task to a pydantic-ai model string based on task type and
complexity. The default can be overridden with AI_MODEL.
"""
from __future__ import annotations
from pydantic import BaseModel
from typing import Optional
from enum import Enum

from core.config import get_settings


class TaskType(str, Enum):
    SOCIAL_POST = "social_post"
    DOCUMENT = "document"
    SUMMARIZATION = "summarization"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LLMChoice(BaseModel):
    model: str
    reason: str
    temperature: float
    max_tokens: int
    fallback: Optional[str] = None


# Model routing table
ROUTING_TABLE = {
    (TaskType.SOCIAL_POST, Complexity.LOW): LLMChoice(
        model="openai:gpt-4o-mini",
        reason="Short creative copy at low cost",
        temperature=0.8,
        max_tokens=300,
    ),
    (TaskType.DOCUMENT, Complexity.MEDIUM): LLMChoice(
        model="openai:gpt-4o-mini",
        reason="Long-form business writing",
        temperature=0.7,
        max_tokens=2000,
        fallback="anthropic:claude-3-5-haiku-latest",
    ),
    (TaskType.SUMMARIZATION, Complexity.LOW): LLMChoice(
        model="openai:gpt-4o-mini",
        reason="Fast summaries",
        temperature=0.3,
        max_tokens=300,
    ),
}


def route_to_llm(
    task_type: TaskType,
    complexity: Complexity = Complexity.LOW,
) -> LLMChoice:
    """Select the model for the task; unknown combinations use AI_MODEL."""
    key = (task_type, complexity)
    if key in ROUTING_TABLE:
        return ROUTING_TABLE[key]

    ai = get_settings().ai
    return LLMChoice(
        model=ai.default_model,
        reason="Default model",
        temperature=ai.temperature,
        max_tokens=ai.max_tokens,
    )
