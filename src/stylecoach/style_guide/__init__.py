"""
Style guide -- rules, categories, and the category index the pipeline filters by.

Components:
  - Rule / Category / Evaluation / ResolutionResult: plain dataclasses
  - build_category_index: category name -> rule ids, rebuilt from a rule list
  - RuleStore / CategoryRegistry: validated in-memory state with JSON persistence
"""

from .index import build_category_index, lookup_rule_ids
from .models import (
    FOLLOWS,
    PARTIAL,
    VALID_ASSESSMENTS,
    VIOLATES,
    Category,
    Evaluation,
    ResolutionResult,
    Rule,
)
from .store import (
    CategoryRegistry,
    RuleStore,
    StyleGuideError,
    load_category_registry,
    load_style_guide,
    save_category_registry,
    save_style_guide,
)

__all__ = [
    "FOLLOWS",
    "PARTIAL",
    "VALID_ASSESSMENTS",
    "VIOLATES",
    "Category",
    "CategoryRegistry",
    "Evaluation",
    "ResolutionResult",
    "Rule",
    "RuleStore",
    "StyleGuideError",
    "build_category_index",
    "load_category_registry",
    "load_style_guide",
    "lookup_rule_ids",
    "save_category_registry",
    "save_style_guide",
]
