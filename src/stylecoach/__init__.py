"""
stylecoach -- resolve which rules of a personal style guide apply to a text.

    from stylecoach import create_client, load_style_guide, load_category_registry, resolve_rules

    result = await resolve_rules(
        text,
        llm_client=create_client(),
        store=load_style_guide("style-guide.json"),
        registry=load_category_registry("category-registry.json"),
    )
"""

from .llm import LLMClient, LLMError, create_client
from .resolution import ResolutionConfig, ResolutionPipeline, resolve_rules
from .style_guide import (
    Category,
    CategoryRegistry,
    Evaluation,
    ResolutionResult,
    Rule,
    RuleStore,
    StyleGuideError,
    build_category_index,
    load_category_registry,
    load_style_guide,
    save_category_registry,
    save_style_guide,
)

__version__ = "0.1.0"

__all__ = [
    "Category",
    "CategoryRegistry",
    "Evaluation",
    "LLMClient",
    "LLMError",
    "ResolutionConfig",
    "ResolutionPipeline",
    "ResolutionResult",
    "Rule",
    "RuleStore",
    "StyleGuideError",
    "build_category_index",
    "create_client",
    "load_category_registry",
    "load_style_guide",
    "resolve_rules",
    "save_category_registry",
    "save_style_guide",
]
