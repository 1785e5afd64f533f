"""
Provider-agnostic LLM client for the resolution pipeline.

Features:
  - Text or structured output: pass a ToolSchema and providers that can
    force a tool call return the parsed arguments as a StructuredResponse
  - Retry with exponential backoff on transient failures
  - Timeout enforcement
  - Errors always surface as LLMError (never as placeholder text)
  - Prompt sanitization and a size limit (oversized prompts raise), no secrets in logs

Supports: Anthropic (Claude), OpenAI (GPT/o-series), Google (Gemini), and any
local OpenAI-compatible server (LM Studio, llama.cpp, Ollama) over HTTP.

Usage:
    client = create_client()
    response = await client.call(prompt="Which categories...", role="resolution")
    if isinstance(response, StructuredResponse):
        response.data      # dict
    else:
        response.content   # str
"""

import asyncio
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, Union

import httpx

from ..security.prompt_guard import sanitize_for_prompt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_PROMPT_LENGTH = 200_000
DEFAULT_LOCAL_URL = "http://localhost:1234"
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 30.0

PROVIDERS = ("anthropic", "openai", "google", "local")
STRUCTURED_OUTPUT_PROVIDERS = {"anthropic", "openai"}


class LLMError(RuntimeError):
    """A model call failed (transport, HTTP status, provider error, setup)."""

    pass


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class CacheablePrompt:
    """
    Separates the stable system prompt from the per-call message.

    The system part is marked for provider-level caching where supported.
    """

    system: str = ""
    user_message: str = ""

    def to_flat_prompt(self) -> str:
        """Flatten to a single user message (for providers without a system slot)."""
        if self.system:
            return f"{self.system}\n\n---\n\n{self.user_message}"
        return self.user_message

    @property
    def total_length(self) -> int:
        return len(self.system) + len(self.user_message)


@dataclass
class ToolSchema:
    """Structured-output request: a single tool the model is forced to call."""

    name: str
    description: str
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass
class TextResponse:
    """Free-text completion."""

    content: str
    model: str = ""
    provider: str = ""
    latency_ms: float = 0.0


@dataclass
class StructuredResponse:
    """Parsed tool-call arguments matching the requested ToolSchema."""

    data: dict[str, Any]
    model: str = ""
    provider: str = ""
    latency_ms: float = 0.0


LLMResponse = Union[TextResponse, StructuredResponse]


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """
    Provider-agnostic LLM client.

    Usage:
        client = LLMClient(provider="anthropic")
        response = await client.call(prompt="Evaluate this", tool=schema)

    Or against a local server:
        client = LLMClient(provider="local", base_url="http://localhost:1234")
    """

    def __init__(
        self,
        provider: str = "anthropic",
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
    ):
        self._provider = provider.lower()
        if self._provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider}")
        self._model = model or self._default_model()
        self._api_key = api_key or self._load_api_key()
        self._base_url = (base_url or DEFAULT_LOCAL_URL).rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        self._max_prompt_length = max_prompt_length
        self._client: Any = None

        self._init_client()
        logger.info(
            f"[LLM] Initialized {self._provider} client "
            f"(model={self._model}, timeout={self._timeout}s)"
        )

    def _default_model(self) -> str:
        defaults = {
            "anthropic": "claude-sonnet-4-20250514",
            "openai": "gpt-4o",
            "google": "gemini-2.0-flash",
            "local": "local-model",
        }
        return defaults[self._provider]

    def _load_api_key(self) -> str:
        if self._provider == "local":
            return ""
        key_map = {
            "anthropic": "ANTHROPIC_API_KEY",
            "openai": "OPENAI_API_KEY",
            "google": "GOOGLE_API_KEY",
        }
        env_var = key_map[self._provider]
        key = os.environ.get(env_var, "")
        if not key:
            logger.warning(f"[LLM] {env_var} not set -- calls will fail")
        return key

    def _init_client(self) -> None:
        """Initialize the provider-specific SDK client."""
        try:
            if self._provider == "anthropic":
                import anthropic

                self._client = anthropic.AsyncAnthropic(
                    api_key=self._api_key, timeout=self._timeout
                )
            elif self._provider == "openai":
                import openai

                self._client = openai.AsyncOpenAI(
                    api_key=self._api_key, timeout=self._timeout
                )
            elif self._provider == "google":
                import google.generativeai as genai

                genai.configure(api_key=self._api_key)
                self._client = genai.GenerativeModel(self._model)
            else:
                self._client = httpx.AsyncClient(
                    base_url=self._base_url, timeout=self._timeout
                )
        except ImportError:
            logger.error(
                f"[LLM] {self._provider} SDK not installed. "
                f"Install the stylecoach dependencies."
            )
            self._client = None

    @property
    def supports_structured_output(self) -> bool:
        """True when call(tool=...) can force a tool call on this provider."""
        return self._provider in STRUCTURED_OUTPUT_PROVIDERS

    async def call(
        self,
        prompt: str | CacheablePrompt,
        tool: ToolSchema | None = None,
        role: str = "resolution",
        temperature: float = 0.3,
        max_tokens: int = 3000,
    ) -> LLMResponse:
        """
        Make an LLM call with retries.

        Args:
            prompt: String or CacheablePrompt (system + user message).
            tool: Optional structured-output schema. Ignored by providers
                  that cannot force a tool call; they return text.
            role: Semantic role hint for logging, not sent to the provider.
            temperature: Sampling temperature (0.0 = deterministic).
            max_tokens: Maximum output tokens.

        Returns:
            TextResponse or StructuredResponse.

        Raises:
            LLMError: The call failed after all retries, or the client is unusable.
        """
        if isinstance(prompt, str):
            prompt = CacheablePrompt(user_message=prompt)

        prompt = self._sanitize_prompt(prompt)

        if self._client is None:
            raise LLMError(
                f"{self._provider} client not initialized -- check dependencies"
            )
        if tool is not None and not self.supports_structured_output:
            tool = None

        start = time.time()
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._call_provider(
                    prompt, tool, temperature, max_tokens
                )
                response.latency_ms = (time.time() - start) * 1000
                logger.debug(
                    f"[LLM] {self._provider}/{role}: "
                    f"{type(response).__name__} ({response.latency_ms:.0f}ms)"
                )
                return response

            except LLMError:
                raise
            except Exception as e:
                last_error = e
                if self._is_retryable(e) and attempt < self._max_retries:
                    delay = min(
                        RETRY_BASE_DELAY * (2**attempt), RETRY_MAX_DELAY
                    )
                    logger.warning(
                        f"[LLM] Retryable error (attempt {attempt + 1}): "
                        f"{type(e).__name__}. Retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                else:
                    break

        logger.error(f"[LLM] {self._provider}/{role} failed: {last_error}")
        raise LLMError(
            f"LLM request failed ({self._provider}): "
            f"{type(last_error).__name__}: {last_error}"
        ) from last_error

    def _sanitize_prompt(self, prompt: CacheablePrompt) -> CacheablePrompt:
        """Strip null bytes and refuse prompts over the size limit.

        The prompt is sent whole or not at all; it is never cut.
        """
        prompt = CacheablePrompt(
            system=sanitize_for_prompt(prompt.system),
            user_message=sanitize_for_prompt(prompt.user_message),
        )
        if prompt.total_length > self._max_prompt_length:
            raise LLMError(
                f"Prompt is {prompt.total_length} chars, over the "
                f"{self._max_prompt_length}-char limit"
            )
        return prompt

    async def _call_provider(
        self,
        prompt: CacheablePrompt,
        tool: ToolSchema | None,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        """Dispatch to provider-specific implementation."""
        if self._provider == "anthropic":
            return await self._call_anthropic(prompt, tool, temperature, max_tokens)
        elif self._provider == "openai":
            return await self._call_openai(prompt, tool, temperature, max_tokens)
        elif self._provider == "google":
            return await self._call_google(prompt, temperature, max_tokens)
        else:
            return await self._call_local(prompt, temperature, max_tokens)

    async def _call_anthropic(
        self,
        prompt: CacheablePrompt,
        tool: ToolSchema | None,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        """Anthropic Claude; a tool is forced with tool_choice when given."""
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt.user_message}],
        }
        if prompt.system:
            kwargs["system"] = [{
                "type": "text",
                "text": prompt.system,
                "cache_control": {"type": "ephemeral"},
            }]
        if tool is not None:
            kwargs["tools"] = [{
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.input_schema,
            }]
            kwargs["tool_choice"] = {"type": "tool", "name": tool.name}

        response = await self._client.messages.create(**kwargs)

        text_parts = []
        for block in response.content:
            block_type = getattr(block, "type", "")
            if block_type == "tool_use" and isinstance(getattr(block, "input", None), dict):
                return StructuredResponse(
                    data=block.input, model=self._model, provider="anthropic"
                )
            if block_type == "text":
                text_parts.append(block.text)

        return TextResponse(
            content="".join(text_parts), model=self._model, provider="anthropic"
        )

    async def _call_openai(
        self,
        prompt: CacheablePrompt,
        tool: ToolSchema | None,
        temperature: float,
        max_tokens: int,
    ) -> LLMResponse:
        """OpenAI chat completions; a tool is forced as a function call when given."""
        messages = []
        if prompt.system:
            messages.append({"role": "system", "content": prompt.system})
        messages.append({"role": "user", "content": prompt.user_message})

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tool is not None:
            kwargs["tools"] = [{
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema,
                },
            }]
            kwargs["tool_choice"] = {"type": "function", "function": {"name": tool.name}}

        response = await self._client.chat.completions.create(**kwargs)
        message = response.choices[0].message

        for tool_call in getattr(message, "tool_calls", None) or []:
            arguments = tool_call.function.arguments or ""
            try:
                data = json.loads(arguments)
            except json.JSONDecodeError:
                logger.warning("[LLM] openai tool arguments were not valid JSON, using as text")
                return TextResponse(content=arguments, model=self._model, provider="openai")
            if isinstance(data, dict):
                return StructuredResponse(data=data, model=self._model, provider="openai")

        return TextResponse(
            content=message.content or "", model=self._model, provider="openai"
        )

    async def _call_google(
        self, prompt: CacheablePrompt, temperature: float, max_tokens: int
    ) -> LLMResponse:
        """Google Gemini (text only)."""
        response = await asyncio.to_thread(
            self._client.generate_content,
            prompt.to_flat_prompt(),
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_tokens,
            },
        )
        return TextResponse(content=response.text, model=self._model, provider="google")

    async def _call_local(
        self, prompt: CacheablePrompt, temperature: float, max_tokens: int
    ) -> LLMResponse:
        """OpenAI-compatible local server. The system prompt is folded into the user turn."""
        body = {
            "messages": [{"role": "user", "content": prompt.to_flat_prompt()}],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stream": False,
        }
        response = await self._client.post("/v1/chat/completions", json=body)
        if response.status_code == 429 or response.status_code >= 500:
            raise httpx.HTTPStatusError(
                f"{response.status_code} - {response.text[:500]}",
                request=response.request,
                response=response,
            )
        if response.status_code >= 400:
            raise LLMError(
                f"LLM request failed: {response.status_code} - {response.text[:500]}"
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed response from local LLM server: {e}") from e

        return TextResponse(
            content=content or "",
            model=data.get("model") or self._model,
            provider="local",
        )

    def _is_retryable(self, error: Exception) -> bool:
        """Check if an error is transient and worth retrying."""
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            return status == 429 or status >= 500
        error_type = type(error).__name__
        retryable_types = {
            "RateLimitError",
            "APITimeoutError",
            "InternalServerError",
            "ServiceUnavailableError",
            "APIConnectionError",
            "Timeout",
            "ConnectError",
            "ReadTimeout",
            "ConnectTimeout",
        }
        return error_type in retryable_types

    async def aclose(self) -> None:
        """Release the HTTP connection pool (local provider only)."""
        if isinstance(self._client, httpx.AsyncClient):
            await self._client.aclose()

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def model(self) -> str:
        return self._model


# =============================================================================
# FACTORY
# =============================================================================


def create_client(
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    **kwargs,
) -> LLMClient:
    """
    Create an LLM client, auto-detecting provider from environment if not specified.

    Detection order:
      1. Explicit provider argument
      2. ANTHROPIC_API_KEY set -> anthropic
      3. OPENAI_API_KEY set -> openai
      4. GOOGLE_API_KEY set -> google
      5. Default: local (OpenAI-compatible server)
    """
    if provider is None:
        if os.environ.get("ANTHROPIC_API_KEY"):
            provider = "anthropic"
        elif os.environ.get("OPENAI_API_KEY"):
            provider = "openai"
        elif os.environ.get("GOOGLE_API_KEY"):
            provider = "google"
        else:
            provider = "local"
            logger.info("[LLM] No API key found. Using local OpenAI-compatible server.")

    return LLMClient(provider=provider, model=model, api_key=api_key, **kwargs)
