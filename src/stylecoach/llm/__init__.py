"""
LLM Client -- Provider-agnostic wrapper returning text or structured output.

Supports Anthropic (Claude), OpenAI (GPT), Google (Gemini) and local
OpenAI-compatible servers. Failures raise LLMError.

Usage:
    from .llm import create_client

    client = create_client()  # Auto-detects provider from env
    response = await client.call(prompt="Which categories...", tool=schema)
"""

from .client import (
    CacheablePrompt,
    LLMClient,
    LLMError,
    LLMResponse,
    StructuredResponse,
    TextResponse,
    ToolSchema,
    create_client,
)
from .json_parser import extract_json_array
