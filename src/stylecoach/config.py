"""
Settings -- everything the CLI and eval harness read from the environment.

    STYLECOACH_PROVIDER            anthropic | openai | google | local (auto-detected if unset)
    STYLECOACH_MODEL               provider model id (provider default if unset)
    STYLECOACH_LOCAL_URL           OpenAI-compatible server (default http://localhost:1234)
    STYLECOACH_TIMEOUT             seconds per model call (default 120)
    STYLECOACH_MAX_RETRIES         client retries on transient errors (default 2)
    STYLECOACH_STYLE_GUIDE         rules document (default style-guide.json)
    STYLECOACH_CATEGORY_REGISTRY   categories document (default category-registry.json)

Provider API keys are read by the LLM client itself (ANTHROPIC_API_KEY, ...).
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

from .llm.client import (
    DEFAULT_LOCAL_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    PROVIDERS,
    LLMClient,
    create_client,
)
from .security.validators import ValidationError, validate_in_choices

logger = logging.getLogger(__name__)

ENV_PREFIX = "STYLECOACH_"


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(ENV_PREFIX + name, "").strip()
    return value or default


def _env_number(name: str, default: float, cast=float):
    raw = _env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValidationError(f"{ENV_PREFIX}{name} must be a number (got '{raw}')")


@dataclass
class Settings:
    """Resolved runtime settings."""

    provider: str | None = None  # None = auto-detect from API keys
    model: str | None = None
    local_url: str = DEFAULT_LOCAL_URL
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    style_guide_path: Path = Path("style-guide.json")
    category_registry_path: Path = Path("category-registry.json")

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            provider=_env("PROVIDER"),
            model=_env("MODEL"),
            local_url=_env("LOCAL_URL", DEFAULT_LOCAL_URL),
            timeout=_env_number("TIMEOUT", DEFAULT_TIMEOUT),
            max_retries=_env_number("MAX_RETRIES", DEFAULT_MAX_RETRIES, cast=int),
            style_guide_path=Path(_env("STYLE_GUIDE", "style-guide.json")),
            category_registry_path=Path(_env("CATEGORY_REGISTRY", "category-registry.json")),
        )
        return settings.validated()

    def validated(self) -> "Settings":
        if self.provider is not None:
            provider = validate_in_choices(self.provider.lower(), list(PROVIDERS), "provider")
            return replace(self, provider=provider)
        return self

    def with_overrides(self, **overrides) -> "Settings":
        """Copy with non-None overrides applied (CLI flags win over the environment)."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes).validated()

    def create_llm_client(self) -> LLMClient:
        return create_client(
            provider=self.provider,
            model=self.model,
            base_url=self.local_url,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
