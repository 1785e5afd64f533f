"""Data models for the style guide and the rule resolution pipeline."""

from dataclasses import dataclass, field

FOLLOWS = "follows"
VIOLATES = "violates"
PARTIAL = "partial"
VALID_ASSESSMENTS = (FOLLOWS, VIOLATES, PARTIAL)


@dataclass
class Rule:
    """A single style guideline.

    Attributes:
        id: Opaque identifier, unique within a RuleStore.
        principle: Short statement of the rule.
        categories: Category names the rule is tagged under. A rule with no
            categories is never reached by resolution.
        avoid: Example phrases or patterns to avoid.
        prefer: Example phrases or patterns to use instead.
        original_example: Optional "before" text.
        better_version: Optional "after" text.
    """

    id: str
    principle: str
    categories: list[str] = field(default_factory=list)
    avoid: list[str] = field(default_factory=list)
    prefer: list[str] = field(default_factory=list)
    original_example: str = ""
    better_version: str = ""


@dataclass
class Category:
    """A named aspect of style; the description helps the model judge relevance."""

    description: str = ""


@dataclass
class Evaluation:
    """Verdict for one rule against one text."""

    rule_id: str
    assessment: str = PARTIAL  # "follows", "violates", "partial"
    note: str = ""


@dataclass
class ResolutionResult:
    """Output of one pipeline run. Each field narrows the one before it."""

    matched_categories: list[str] = field(default_factory=list)
    candidate_rules: list[Rule] = field(default_factory=list)
    triaged_rules: list[Rule] = field(default_factory=list)
    evaluations: list[Evaluation] = field(default_factory=list)

    def to_dict(self) -> dict:
        """JSON-ready form using the camelCase keys of the stored documents."""
        return {
            "matchedCategories": list(self.matched_categories),
            "candidateRules": [r.id for r in self.candidate_rules],
            "triagedRules": [r.id for r in self.triaged_rules],
            "evaluations": [
                {"ruleId": e.rule_id, "assessment": e.assessment, "note": e.note}
                for e in self.evaluations
            ],
        }
