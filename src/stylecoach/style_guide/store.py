"""
Rule Store and Category Registry -- the two documents a style guide is made of.

  style-guide.json         ordered list of rules (camelCase keys)
  category-registry.json   {name: {"description": ...}}

The store is the only place rules change. Every mutation bumps a version
counter, and the cached category index is rebuilt lazily when the version
moves, so an index handed out by ``snapshot()`` always matches the rules
handed out with it.

Usage:
    store = load_style_guide("style-guide.json")
    registry = load_category_registry("category-registry.json")
    rule = store.add_rule("Cut filter words", categories=["diction"])
    save_style_guide(store, "style-guide.json")
"""

import json
import logging
import uuid
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterable, Iterator

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..security.validators import (
    ValidationError,
    validate_category_name,
    validate_length,
    validate_not_empty,
    validate_string_list,
)
from .index import build_category_index
from .models import Category, Rule

logger = logging.getLogger(__name__)

MAX_PRINCIPLE_LENGTH = 2_000
EDITABLE_FIELDS = {
    "principle",
    "categories",
    "avoid",
    "prefer",
    "original_example",
    "better_version",
}


class StyleGuideError(ValueError):
    """Raised when a style guide or category registry document cannot be loaded."""

    pass


# =============================================================================
# DOCUMENT MODELS (on-disk shape)
# =============================================================================


class RuleDocument(BaseModel):
    """One entry of style-guide.json."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    principle: str = ""
    categories: list[str] | None = None
    avoid: list[str] | None = None
    prefer: list[str] | None = None
    original_example: str | None = Field(None, alias="originalExample")
    better_version: str | None = Field(None, alias="betterVersion")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def to_rule(self) -> Rule:
        return Rule(
            id=self.id,
            principle=self.principle,
            categories=list(self.categories or []),
            avoid=list(self.avoid or []),
            prefer=list(self.prefer or []),
            original_example=self.original_example or "",
            better_version=self.better_version or "",
        )

    @classmethod
    def from_rule(cls, rule: Rule) -> "RuleDocument":
        return cls(
            id=rule.id,
            principle=rule.principle,
            categories=list(rule.categories),
            avoid=list(rule.avoid) or None,
            prefer=list(rule.prefer) or None,
            original_example=rule.original_example or None,
            better_version=rule.better_version or None,
        )


class CategoryDocument(BaseModel):
    """One value of category-registry.json."""

    model_config = ConfigDict(extra="ignore")

    description: str = ""


# =============================================================================
# RULE STORE
# =============================================================================


def _validated(rule: Rule) -> Rule:
    """Return a cleaned copy of the rule, or raise ValidationError."""
    rule_id = validate_not_empty(rule.id, "rule id")
    principle = validate_length(
        validate_not_empty(rule.principle, f"principle of {rule_id}"),
        f"principle of {rule_id}",
        max_length=MAX_PRINCIPLE_LENGTH,
    )
    categories: list[str] = []
    for name in validate_string_list(rule.categories, f"categories of {rule_id}"):
        name = validate_category_name(name, f"category of {rule_id}")
        if name not in categories:
            categories.append(name)
    return Rule(
        id=rule_id,
        principle=principle,
        categories=categories,
        avoid=validate_string_list(rule.avoid, f"avoid of {rule_id}"),
        prefer=validate_string_list(rule.prefer, f"prefer of {rule_id}"),
        original_example=(rule.original_example or "").strip(),
        better_version=(rule.better_version or "").strip(),
    )


class RuleStore:
    """Ordered, in-memory rule list with a lazily rebuilt category index.

    Rules handed out are never edited in place: ``update_rule`` swaps in a
    new Rule object, so a resolution run holding older rules keeps a
    consistent view.
    """

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: list[Rule] = []
        self._version = 0
        self._index: dict[str, list[str]] = {}
        self._index_version = -1
        for rule in rules:
            self._insert(_validated(rule))

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules))

    def __contains__(self, rule_id: object) -> bool:
        return any(r.id == rule_id for r in self._rules)

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    @property
    def version(self) -> int:
        return self._version

    def get(self, rule_id: str) -> Rule | None:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def category_index(self) -> dict[str, list[str]]:
        """Category index for the current rules, rebuilt if any rule changed."""
        if self._index_version != self._version:
            self._index = build_category_index(self._rules)
            self._index_version = self._version
            logger.debug(
                f"[RuleStore] Rebuilt category index: {len(self._index)} categories "
                f"over {len(self._rules)} rules (v{self._version})"
            )
        return {name: list(ids) for name, ids in self._index.items()}

    def snapshot(self) -> tuple[list[Rule], dict[str, list[str]]]:
        """Rules and the index built from exactly those rules."""
        return self.rules, self.category_index()

    def add_rule(
        self,
        principle: str,
        categories: list[str] | None = None,
        avoid: list[str] | None = None,
        prefer: list[str] | None = None,
        original_example: str = "",
        better_version: str = "",
        rule_id: str | None = None,
    ) -> Rule:
        """Validate and append a new rule. Generates an id when none is given."""
        rule = _validated(Rule(
            id=rule_id or f"rule-{uuid.uuid4().hex[:12]}",
            principle=principle,
            categories=list(categories or []),
            avoid=list(avoid or []),
            prefer=list(prefer or []),
            original_example=original_example,
            better_version=better_version,
        ))
        self._insert(rule)
        logger.info(f"[RuleStore] Added {rule.id} ({', '.join(rule.categories) or 'untagged'})")
        return rule

    def update_rule(self, rule_id: str, **updates: Any) -> Rule:
        """Replace fields of an existing rule. Unknown fields are rejected."""
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        position = self._position(rule_id)
        updated = _validated(replace(self._rules[position], **updates))
        self._rules[position] = updated
        self._version += 1
        logger.info(f"[RuleStore] Updated {rule_id}: {', '.join(sorted(updates))}")
        return updated

    def remove_rule(self, rule_id: str) -> Rule:
        position = self._position(rule_id)
        removed = self._rules.pop(position)
        self._version += 1
        logger.info(f"[RuleStore] Removed {rule_id}")
        return removed

    def _insert(self, rule: Rule) -> None:
        if rule.id in self:
            raise ValidationError(f"Duplicate rule id: {rule.id}")
        self._rules.append(rule)
        self._version += 1

    def _position(self, rule_id: str) -> int:
        for i, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return i
        raise ValidationError(f"Unknown rule id: {rule_id}")


# =============================================================================
# CATEGORY REGISTRY
# =============================================================================


class CategoryRegistry(Mapping):
    """Read-only mapping of category name -> Category, with explicit edit methods."""

    def __init__(self, categories: Mapping[str, Category | str] | None = None):
        self._categories: dict[str, Category] = {}
        for name, info in (categories or {}).items():
            description = info if isinstance(info, str) else info.description
            self.set_category(name, description)

    def __getitem__(self, name: str) -> Category:
        return self._categories[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._categories)

    def __len__(self) -> int:
        return len(self._categories)

    def names(self) -> list[str]:
        return list(self._categories)

    def set_category(self, name: str, description: str = "") -> Category:
        name = validate_category_name(name)
        category = Category(description=(description or "").strip())
        self._categories[name] = category
        return category

    def remove_category(self, name: str) -> Category:
        if name not in self._categories:
            raise ValidationError(f"Unknown category: {name}")
        return self._categories.pop(name)


# =============================================================================
# JSON PERSISTENCE
# =============================================================================


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        logger.info(f"[RuleStore] {path} not found, starting empty")
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise StyleGuideError(f"{path} is not valid JSON: {e}") from e


def load_style_guide(path: str | Path) -> RuleStore:
    """Load style-guide.json into a RuleStore. A missing file yields an empty store.

    Malformed entries (wrong field types, empty principle, duplicate id) are
    logged and skipped; the rest of the guide still loads. Only an unreadable
    document raises StyleGuideError.
    """
    path = Path(path)
    data = _read_json(path, [])
    if not isinstance(data, list):
        raise StyleGuideError(f"{path} must contain a JSON array of rules")

    store = RuleStore()
    skipped = 0
    for position, entry in enumerate(data):
        try:
            store._insert(_validated(RuleDocument.model_validate(entry).to_rule()))
        except (pydantic.ValidationError, ValidationError) as e:
            skipped += 1
            logger.warning(f"[RuleStore] Skipping rule #{position} in {path}: {e}")

    logger.info(f"[RuleStore] Loaded {len(store)} rules from {path} ({skipped} skipped)")
    return store


def save_style_guide(store: RuleStore, path: str | Path) -> None:
    documents = [
        RuleDocument.from_rule(rule).model_dump(by_alias=True, exclude_none=True)
        for rule in store.rules
    ]
    Path(path).write_text(json.dumps(documents, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info(f"[RuleStore] Saved {len(documents)} rules to {path}")


def load_category_registry(path: str | Path) -> CategoryRegistry:
    """Load category-registry.json. A missing file yields an empty registry.

    Malformed entries are logged and skipped, like rules in the style guide.
    """
    path = Path(path)
    data = _read_json(path, {})
    if not isinstance(data, dict):
        raise StyleGuideError(f"{path} must contain a JSON object of categories")

    registry = CategoryRegistry()
    for name, entry in data.items():
        try:
            registry.set_category(name, CategoryDocument.model_validate(entry).description)
        except (pydantic.ValidationError, ValidationError) as e:
            logger.warning(f"[RuleStore] Skipping category {name!r} in {path}: {e}")

    logger.info(f"[RuleStore] Loaded {len(registry)} categories from {path}")
    return registry


def save_category_registry(registry: CategoryRegistry, path: str | Path) -> None:
    documents = {
        name: CategoryDocument(description=category.description).model_dump()
        for name, category in registry.items()
    }
    Path(path).write_text(json.dumps(documents, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info(f"[RuleStore] Saved {len(documents)} categories to {path}")
