"""Test LLM routing and the generation agents."""
import pytest
from pydantic_ai.messages import ModelResponse, TextPart
from pydantic_ai.models.function import FunctionModel
from pydantic_ai.models.test import TestModel

from core.agents.base_agent import generate_document_content, generate_social_post, summarize_file
from core.config import get_settings
from core.errors import ExternalServiceError
from core.llm.router import Complexity, LLMChoice, TaskType, route_to_llm


def test_route_social_post():
    choice = route_to_llm(TaskType.SOCIAL_POST, Complexity.LOW)
    assert "mini" in choice.model
    assert choice.temperature == 0.8


def test_route_document_has_fallback():
    choice = route_to_llm(TaskType.DOCUMENT, Complexity.MEDIUM)
    assert choice.max_tokens == 2000
    assert choice.fallback is not None


def test_route_unknown_combination_uses_default():
    choice = route_to_llm(TaskType.DOCUMENT, Complexity.HIGH)
    assert isinstance(choice, LLMChoice)
    assert choice.reason == "Default model"
    assert choice.model == get_settings().ai.default_model


@pytest.mark.asyncio
async def test_generate_with_model_override():
    text = await generate_social_post("Spring sale", platform="TWITTER", model=TestModel(custom_output_text="  Sale! #spring  "))
    assert text == "Sale! #spring"


@pytest.mark.asyncio
async def test_document_prompt_carries_context():
    seen = {}

    def respond(messages, info):
        seen["system"] = messages[0].parts[0].content
        return ModelResponse(parts=[TextPart("Draft")])

    text = await generate_document_content(
        "Write a proposal", client_name="Acme", document_type="PROPOSAL", model=FunctionModel(respond)
    )
    assert text == "Draft"
    assert "Client: Acme" in seen["system"]
    assert "Document Type: PROPOSAL" in seen["system"]


@pytest.mark.asyncio
async def test_model_failure_becomes_external_service_error():
    def broken(messages, info):
        raise RuntimeError("provider down")

    with pytest.raises(ExternalServiceError):
        await summarize_file("File name: a.pdf", model=FunctionModel(broken))
