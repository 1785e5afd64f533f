"""Scripted stand-ins for the LLM client, shared by the eval tasks."""

from unittest.mock import AsyncMock

from stylecoach.llm.client import StructuredResponse, TextResponse


def text(content: str) -> TextResponse:
    return TextResponse(content=content, model="mock-model", provider="mock")


def structured(data) -> StructuredResponse:
    return StructuredResponse(data=data, model="mock-model", provider="mock")


def scripted_llm(*responses, structured_output: bool = False) -> AsyncMock:
    """Mock LLM client that returns the given responses in order, one per call.

    supports_structured_output is set explicitly: a bare AsyncMock attribute
    is truthy and would switch the pipeline into tool mode.
    """
    client = AsyncMock()
    client.supports_structured_output = structured_output
    client.call.side_effect = list(responses)
    return client


def prompts_sent(client: AsyncMock) -> list[str]:
    return [c.kwargs["prompt"] for c in client.call.call_args_list]
