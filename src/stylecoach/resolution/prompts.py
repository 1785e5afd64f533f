"""
Prompt and schema builders for the three model-backed resolution stages.

Every builder is a pure function of its arguments (no clock, no randomness)
so the same text and rules always produce the same prompt. Each prompt asks
for a bare JSON array; each schema asks for the same data as a forced tool
call, with enums pinned to the names or ids the stage actually sent.
"""

from typing import Iterable, Mapping

from ..llm.client import ToolSchema
from ..style_guide.models import VALID_ASSESSMENTS, Category, Rule


# =============================================================================
# PROMPTS
# =============================================================================


def build_category_match_prompt(text: str, registry: Mapping[str, Category]) -> str:
    """Stage 1: which categories does the text actually exercise?"""
    category_lines = "\n".join(
        f"- {name}: {category.description}" for name, category in registry.items()
    )

    return (
        "Analyze this creative writing text and determine which style categories are relevant.\n"
        "\n"
        "Categories:\n"
        f"{category_lines}\n"
        "\n"
        "Text:\n"
        f'"{text}"\n'
        "\n"
        "Which categories does this text exercise? Return ONLY a JSON array of category names.\n"
        "Only include categories where the text actually uses that aspect of writing."
    )


def build_rule_triage_prompt(text: str, candidate_rules: Iterable[Rule]) -> str:
    """Stage 3: cheap coarse filter over the candidate rules."""
    rule_lines = "\n".join(f"- {rule.id}: {rule.principle}" for rule in candidate_rules)

    return (
        "Given this text, which style rules could potentially apply "
        "(either followed or violated)?\n"
        "\n"
        "Text:\n"
        f'"{text}"\n'
        "\n"
        "Rules:\n"
        f"{rule_lines}\n"
        "\n"
        "Return ONLY a JSON array of rule IDs that are relevant to this text."
    )


def _rule_detail(rule: Rule) -> str:
    detail = f"Rule {rule.id}: {rule.principle}"
    if rule.avoid:
        detail += f"\n  Avoid: {'; '.join(rule.avoid)}"
    if rule.prefer:
        detail += f"\n  Prefer: {'; '.join(rule.prefer)}"
    if rule.original_example:
        detail += f'\n  Example (bad): "{rule.original_example}"'
    if rule.better_version:
        detail += f'\n  Example (better): "{rule.better_version}"'
    return detail


def build_rule_evaluation_prompt(text: str, rules: Iterable[Rule]) -> str:
    """Stage 4: per-rule verdict with a short justification."""
    rule_details = "\n\n".join(_rule_detail(rule) for rule in rules)

    return (
        "Evaluate this text against each style rule.\n"
        "\n"
        "Text:\n"
        f'"{text}"\n'
        "\n"
        "Rules:\n"
        f"{rule_details}\n"
        "\n"
        "For each rule, return a JSON array:\n"
        f'[{{"ruleId": "...", "assessment": "{"|".join(VALID_ASSESSMENTS)}", '
        '"note": "brief explanation"}]'
    )


# =============================================================================
# STRUCTURED-OUTPUT SCHEMAS
# =============================================================================


def build_category_match_schema(category_names: Iterable[str]) -> ToolSchema:
    return ToolSchema(
        name="report_categories",
        description="Report the style categories the text exercises.",
        input_schema={
            "type": "object",
            "properties": {
                "categories": {
                    "type": "array",
                    "items": {"type": "string", "enum": list(category_names)},
                },
            },
            "required": ["categories"],
        },
    )


def build_rule_triage_schema(rule_ids: Iterable[str]) -> ToolSchema:
    return ToolSchema(
        name="report_relevant_rules",
        description="Report the ids of rules that could apply to the text.",
        input_schema={
            "type": "object",
            "properties": {
                "ruleIds": {
                    "type": "array",
                    "items": {"type": "string", "enum": list(rule_ids)},
                },
            },
            "required": ["ruleIds"],
        },
    )


def build_rule_evaluation_schema(rule_ids: Iterable[str]) -> ToolSchema:
    return ToolSchema(
        name="report_evaluations",
        description="Report whether the text follows, violates, or partially follows each rule.",
        input_schema={
            "type": "object",
            "properties": {
                "evaluations": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "ruleId": {"type": "string", "enum": list(rule_ids)},
                            "assessment": {
                                "type": "string",
                                "enum": list(VALID_ASSESSMENTS),
                            },
                            "note": {"type": "string"},
                        },
                        "required": ["ruleId", "assessment", "note"],
                    },
                },
            },
            "required": ["evaluations"],
        },
    )
