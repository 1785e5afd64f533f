"""
LLM Client Evals -- provider dispatch, structured output, retries, error surface.

Provider SDK clients are swapped for fakes after construction, and the local
provider runs against httpx.MockTransport, so no network is touched.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from stylecoach.llm import client as client_module
from stylecoach.llm.client import (
    CacheablePrompt,
    LLMClient,
    LLMError,
    StructuredResponse,
    TextResponse,
    ToolSchema,
    create_client,
)
from stylecoach.resolution.prompts import build_category_match_prompt
from stylecoach.style_guide.models import Category

TOOL = ToolSchema(
    name="report_relevant_rules",
    description="Report rule ids",
    input_schema={"type": "object", "properties": {"ruleIds": {"type": "array"}}},
)


class RateLimitError(Exception):
    """Same class name as the SDK's transient error."""


def _anthropic(create: AsyncMock) -> LLMClient:
    client = LLMClient(provider="anthropic", api_key="test-key", max_retries=2)
    client._client = SimpleNamespace(messages=SimpleNamespace(create=create))
    return client


def _local(handler, **kwargs) -> LLMClient:
    kwargs.setdefault("max_retries", 1)
    client = LLMClient(provider="local", base_url="http://llm.test", **kwargs)
    client._client = httpx.AsyncClient(
        base_url="http://llm.test", transport=httpx.MockTransport(handler)
    )
    return client


def _completion(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(client_module, "RETRY_BASE_DELAY", 0)


class TestAnthropicProvider:
    @pytest.mark.asyncio
    async def test_tool_use_becomes_structured_response(self):
        """A forced tool_use block comes back as its parsed input."""
        create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="tool_use", input={"ruleIds": ["r1"]})]
        ))
        response = await _anthropic(create).call("Which rules?", tool=TOOL)

        assert isinstance(response, StructuredResponse)
        assert response.data == {"ruleIds": ["r1"]}
        kwargs = create.call_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": "report_relevant_rules"}
        assert kwargs["tools"][0]["input_schema"] == TOOL.input_schema

    @pytest.mark.asyncio
    async def test_text_blocks_joined(self):
        """Several text blocks are concatenated into one TextResponse."""
        create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text='["r1",'), SimpleNamespace(type="text", text=' "r2"]')]
        ))
        response = await _anthropic(create).call("Which rules?")

        assert isinstance(response, TextResponse)
        assert response.content == '["r1", "r2"]'
        assert "tools" not in create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_system_prompt_marked_cacheable(self):
        """The system part goes out with an ephemeral cache_control marker."""
        create = AsyncMock(return_value=SimpleNamespace(content=[]))
        await _anthropic(create).call(CacheablePrompt(system="Style guide", user_message="Text"))
        system = create.call_args.kwargs["system"]
        assert system[0]["text"] == "Style guide"
        assert system[0]["cache_control"] == {"type": "ephemeral"}


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_function_arguments_parsed(self):
        """Function-call arguments are decoded from JSON into a StructuredResponse."""
        message = SimpleNamespace(
            content=None,
            tool_calls=[SimpleNamespace(function=SimpleNamespace(arguments='{"ruleIds": ["r2"]}'))],
        )
        create = AsyncMock(return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]))
        client = LLMClient(provider="openai", api_key="test-key")
        client._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

        response = await client.call("Which rules?", tool=TOOL)

        assert isinstance(response, StructuredResponse)
        assert response.data == {"ruleIds": ["r2"]}
        assert create.call_args.kwargs["tool_choice"]["function"]["name"] == TOOL.name


class TestLocalProvider:
    """Eval: OpenAI-compatible HTTP server, text only."""

    @pytest.mark.asyncio
    async def test_posts_flattened_prompt(self):
        """System and user parts are folded into one user message; no tools are sent."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"model": "qwen-local", "choices": [{"message": {"content": '["tone"]'}}]}
            )

        client = _local(handler)
        response = await client.call(
            CacheablePrompt(system="Be brief.", user_message="Which categories?"), tool=TOOL
        )

        assert seen["path"] == "/v1/chat/completions"
        assert seen["body"]["messages"] == [
            {"role": "user", "content": "Be brief.\n\n---\n\nWhich categories?"}
        ]
        assert seen["body"]["stream"] is False
        assert "tools" not in seen["body"]
        assert isinstance(response, TextResponse)
        assert response.content == '["tone"]'
        assert response.model == "qwen-local"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        """A 4xx other than 429 fails at once with the status and body."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, text="unknown model")

        with pytest.raises(LLMError, match="400 - unknown model"):
            await _local(handler).call("prompt")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_busy_then_recovers(self):
        """A 503 is transient: the next attempt's answer is returned."""
        replies = [httpx.Response(503, text="busy"), _completion('["diction"]')]
        calls = []

        def handler(request):
            calls.append(request)
            return replies.pop(0)

        response = await _local(handler, max_retries=2).call("prompt")

        assert response.content == '["diction"]'
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_retried_then_raised(self):
        """A persistent 429 is retried, then surfaces with the status and body."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, text="slow down")

        with pytest.raises(LLMError, match="429 - slow down"):
            await _local(handler).call("prompt")
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_malformed_body_raises(self):
        """A 200 without choices[0].message.content is an LLMError."""
        def handler(request):
            return httpx.Response(200, json={"unexpected": True})

        with pytest.raises(LLMError, match="Malformed"):
            await _local(handler).call("prompt")

    @pytest.mark.asyncio
    async def test_connection_errors_retried_then_raised(self):
        """Connection failures are retried, then reported by exception type."""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(LLMError, match="ConnectError"):
            await _local(handler).call("prompt")
        assert len(calls) == 2


class TestPromptSize:
    """Eval: Long prompts go out whole or not at all."""

    @pytest.mark.asyncio
    async def test_long_stage_prompt_keeps_output_instructions(self):
        """A long text under review does not push the JSON instruction off the prompt."""
        sent = []

        def handler(request):
            sent.append(json.loads(request.content)["messages"][0]["content"])
            return _completion("[]")

        prompt = build_category_match_prompt("x" * 150_000, {"diction": Category("Word choice")})
        await _local(handler).call(prompt)

        assert sent == [prompt]
        assert "Return ONLY a JSON array" in sent[0]
        assert "[TRUNCATED]" not in sent[0]

    @pytest.mark.asyncio
    async def test_oversized_prompt_refused_without_sending(self):
        """A prompt over max_prompt_length raises before any request is made."""
        calls = []

        def handler(request):
            calls.append(request)
            return _completion("[]")

        with pytest.raises(LLMError, match="over the 1000-char limit"):
            await _local(handler, max_prompt_length=1000).call("x" * 2000)
        assert calls == []

    @pytest.mark.asyncio
    async def test_null_bytes_stripped(self):
        """Null bytes never reach the provider."""
        sent = []

        def handler(request):
            sent.append(json.loads(request.content)["messages"][0]["content"])
            return _completion("[]")

        await _local(handler).call("a\x00b")
        assert sent == ["ab"]


class TestRetries:
    """Eval: Transient errors are retried with backoff; others fail fast."""

    @pytest.mark.asyncio
    async def test_transient_error_retried(self):
        """A rate-limit error followed by success returns the success."""
        create = AsyncMock(side_effect=[
            RateLimitError("slow down"),
            SimpleNamespace(content=[SimpleNamespace(type="text", text="[]")]),
        ])
        response = await _anthropic(create).call("prompt")
        assert response.content == "[]"
        assert create.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        """max_retries=2 means three attempts before LLMError."""
        create = AsyncMock(side_effect=RateLimitError("slow down"))
        with pytest.raises(LLMError, match="RateLimitError"):
            await _anthropic(create).call("prompt")
        assert create.await_count == 3

    @pytest.mark.asyncio
    async def test_non_transient_error_not_retried(self):
        """An ordinary exception fails on the first attempt."""
        create = AsyncMock(side_effect=ValueError("bad request"))
        with pytest.raises(LLMError, match="bad request"):
            await _anthropic(create).call("prompt")
        assert create.await_count == 1


class TestClientSetup:
    def test_unsupported_provider_rejected(self):
        """Unknown provider names are refused at construction."""
        with pytest.raises(ValueError):
            LLMClient(provider="mistral")

    def test_structured_support_by_provider(self):
        """Only providers that can force a tool call report structured support."""
        assert LLMClient(provider="anthropic", api_key="k").supports_structured_output
        assert not LLMClient(provider="local").supports_structured_output

    @pytest.mark.asyncio
    async def test_uninitialized_client_raises(self):
        """A client whose SDK failed to load raises instead of returning text."""
        client = LLMClient(provider="anthropic", api_key="k")
        client._client = None
        with pytest.raises(LLMError, match="not initialized"):
            await client.call("prompt")

    def test_defaults_to_local_without_keys(self, monkeypatch):
        """No API key in the environment means the local server."""
        for var in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GOOGLE_API_KEY"):
            monkeypatch.delenv(var, raising=False)
        assert create_client().provider == "local"

    def test_detects_anthropic_key(self, monkeypatch):
        """ANTHROPIC_API_KEY selects the anthropic provider."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")
        assert create_client().provider == "anthropic"
