"""Category index: category name -> ids of the rules tagged with it."""

from typing import Iterable

from .models import Rule


def build_category_index(rules: Iterable[Rule]) -> dict[str, list[str]]:
    """
    Build the category index from a rule list.

    Keys appear in order of first occurrence across the rules; ids inside a
    bucket follow rule order. Rules without a usable ``categories`` list are
    skipped. Pure and linear, so callers rebuild it instead of patching it.
    """
    index: dict[str, list[str]] = {}
    for rule in rules:
        categories = getattr(rule, "categories", None)
        if not isinstance(categories, (list, tuple)):
            continue
        for category in categories:
            if not isinstance(category, str):
                continue
            bucket = index.setdefault(category, [])
            if rule.id not in bucket:
                bucket.append(rule.id)
    return index


def lookup_rule_ids(index: dict[str, list[str]], categories: Iterable[str]) -> set[str]:
    """Union of rule ids indexed under any of the given categories."""
    rule_ids: set[str] = set()
    for category in categories:
        rule_ids.update(index.get(category, ()))
    return rule_ids
