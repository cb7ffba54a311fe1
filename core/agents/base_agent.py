"""
Content-generation agents built on pydantic-ai.

Each generation task (social post, document draft, file summary) gets an
agent with its own system prompt; the model comes from the LLM router unless
the caller passes an override (tests pass pydantic-ai's TestModel).
"""
from __future__ import annotations
from typing import Any, Optional
import logging

from pydantic_ai import Agent
from pydantic_ai.settings import ModelSettings

from core.errors import ExternalServiceError
from core.llm.router import Complexity, TaskType, route_to_llm

logger = logging.getLogger(__name__)

SOCIAL_PROMPTS = {
    "TWITTER": (
        "Write a Twitter post (280 characters max) that is engaging, includes relevant "
        "hashtags, and has a clear call-to-action. Make it viral-ready with emojis."
    ),
    "LINKEDIN": (
        "Write a professional LinkedIn post that is informative, engaging, and includes "
        "relevant hashtags. Keep it professional but personable."
    ),
    "INSTAGRAM": (
        "Write an Instagram post caption that is engaging, includes relevant hashtags, and "
        "has a clear call-to-action. Make it visually appealing with emojis."
    ),
    "FACEBOOK": (
        "Write a Facebook post that is engaging, includes relevant hashtags, and encourages "
        "interaction. Make it friendly and conversational."
    ),
}
DEFAULT_SOCIAL_PROMPT = "Write a social media post that is engaging and includes relevant hashtags."

DOCUMENT_PROMPT = (
    "You are a professional business document writer. Generate high-quality, professional "
    "content for business documents like proposals, contracts, and reports.\n\n"
    "{context}\n\n"
    "Generate professional, clear, and well-structured content. Use proper business "
    "language and formatting."
)

SUMMARY_PROMPT = (
    "Summarize the described file for a business user in two or three sentences. "
    "Only state facts present in the description."
)


def create_agent(
    name: str,
    system_prompt: str,
    task_type: TaskType,
    complexity: Complexity = Complexity.LOW,
    model: Any = None,
) -> Agent:
    """
    Factory for generation agents.

    Usage:
        agent = create_agent("social", SOCIAL_PROMPTS["TWITTER"], TaskType.SOCIAL_POST)
        text = await run_agent(agent, "Launch announcement for our spring sale")
    """
    choice = route_to_llm(task_type, complexity)
    return Agent(
        model or choice.model,
        output_type=str,
        system_prompt=system_prompt,
        name=name,
        model_settings=ModelSettings(temperature=choice.temperature, max_tokens=choice.max_tokens),
    )


async def run_agent(agent: Agent, prompt: str) -> str:
    result = await agent.run(prompt)
    return (result.output or "").strip()


async def generate_social_post(prompt: str, platform: Optional[str] = None, model: Any = None) -> str:
    system_prompt = SOCIAL_PROMPTS.get(platform or "", DEFAULT_SOCIAL_PROMPT)
    return await _generate("social_post", system_prompt, TaskType.SOCIAL_POST, Complexity.LOW, prompt, model)


async def generate_document_content(
    prompt: str,
    client_name: Optional[str] = None,
    document_type: Optional[str] = None,
    existing_content: Optional[str] = None,
    model: Any = None,
) -> str:
    lines = []
    if client_name:
        lines.append(f"Client: {client_name}")
    if document_type:
        lines.append(f"Document Type: {document_type}")
    if existing_content:
        lines.append(f"Existing content:\n{existing_content}")
    system_prompt = DOCUMENT_PROMPT.format(context="\n".join(lines))
    return await _generate("document_writer", system_prompt, TaskType.DOCUMENT, Complexity.MEDIUM, prompt, model)


async def summarize_file(description: str, model: Any = None) -> str:
    return await _generate("file_summary", SUMMARY_PROMPT, TaskType.SUMMARIZATION, Complexity.LOW, description, model)


async def _generate(
    name: str,
    system_prompt: str,
    task_type: TaskType,
    complexity: Complexity,
    prompt: str,
    model: Any,
) -> str:
    try:
        agent = create_agent(name, system_prompt, task_type, complexity, model=model)
        return await run_agent(agent, prompt)
    except Exception as exc:
        logger.error("AI generation (%s) failed: %s", name, exc)
        raise ExternalServiceError("Failed to generate content") from exc
