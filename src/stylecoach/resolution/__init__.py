"""
Rule resolution -- decide which style rules apply to a text and evaluate them.

Components:
  - prompts: pure prompt + structured-output schema builders per stage
  - parsers: free-text and structured responses -> stage results
  - pipeline: the staged filter-and-refine run with a triage short-circuit
"""

from .parsers import (
    normalize_category_match,
    normalize_evaluation,
    normalize_triage,
    parse_category_match,
    parse_evaluation,
    parse_triage_response,
)
from .pipeline import (
    MAX_TEXT_LENGTH,
    STAGE_CANDIDATES,
    STAGE_CATEGORIES,
    STAGE_EVALUATED,
    STAGE_TRIAGED,
    STAGES,
    TRIAGE_THRESHOLD,
    ResolutionConfig,
    ResolutionPipeline,
    resolve_rules,
)
from .prompts import (
    build_category_match_prompt,
    build_category_match_schema,
    build_rule_evaluation_prompt,
    build_rule_evaluation_schema,
    build_rule_triage_prompt,
    build_rule_triage_schema,
)

__all__ = [
    "MAX_TEXT_LENGTH",
    "STAGES",
    "STAGE_CANDIDATES",
    "STAGE_CATEGORIES",
    "STAGE_EVALUATED",
    "STAGE_TRIAGED",
    "TRIAGE_THRESHOLD",
    "ResolutionConfig",
    "ResolutionPipeline",
    "build_category_match_prompt",
    "build_category_match_schema",
    "build_rule_evaluation_prompt",
    "build_rule_evaluation_schema",
    "build_rule_triage_prompt",
    "build_rule_triage_schema",
    "normalize_category_match",
    "normalize_evaluation",
    "normalize_triage",
    "parse_category_match",
    "parse_evaluation",
    "parse_triage_response",
    "resolve_rules",
]
