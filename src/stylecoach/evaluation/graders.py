"""
Code-Based Graders -- deterministic checks of a resolution run against a case.

Fast, cheap, reproducible; no LLM needed. Each expectation in an EvalCase
becomes one named check, so a failing case reports exactly which category
or rule went wrong.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from ..style_guide.models import ResolutionResult
from .cases import EvalCase

logger = logging.getLogger(__name__)

CATEGORY_CHECK = "category"
RULE_CHECK = "rule"
ASSESSMENT_CHECK = "assessment"


@dataclass
class CodeGraderResult:
    """Result from code-based grading."""

    eval_name: str
    passed: bool
    checks_passed: int = 0
    checks_total: int = 0
    failures: list[str] = field(default_factory=list)
    failed_kinds: set[str] = field(default_factory=set)


class CodeGrader:
    """Deterministic grader that runs a list of check functions.

    Usage:
        grader = CodeGrader("diction-001")
        grader.add_check("category 'diction' matched", lambda r: "diction" in r.matched_categories,
                         kind="category")
        result = grader.grade(resolution_result)
    """

    def __init__(self, eval_name: str):
        self.eval_name = eval_name
        self._checks: list[tuple[str, str, Callable, Callable | None]] = []

    def add_check(
        self,
        name: str,
        check_fn: Callable[[Any], bool],
        kind: str = "",
        detail: Callable[[Any], str] | None = None,
    ) -> "CodeGrader":
        """Add a named check function. Returns self for chaining.

        ``detail`` renders what was actually seen; it is appended to the
        failure message when the check fails.
        """
        self._checks.append((name, kind, check_fn, detail))
        return self

    def grade(self, output: Any) -> CodeGraderResult:
        """Run all checks against the output."""
        failures = []
        failed_kinds: set[str] = set()
        passed_count = 0

        for name, kind, check_fn, detail in self._checks:
            try:
                if check_fn(output):
                    passed_count += 1
                    continue
                failures.append(f"{name}, {detail(output)}" if detail else name)
            except Exception as e:
                failures.append(f"ERROR: {name} -- {e}")
            failed_kinds.add(kind)

        return CodeGraderResult(
            eval_name=self.eval_name,
            passed=len(failures) == 0,
            checks_passed=passed_count,
            checks_total=len(self._checks),
            failures=failures,
            failed_kinds=failed_kinds,
        )


def _assessments(result: ResolutionResult) -> dict[str, str]:
    return {ev.rule_id: ev.assessment for ev in result.evaluations}


def grade_case(case: EvalCase, result: ResolutionResult) -> CodeGraderResult:
    """Grade one pipeline result against a case's expectations."""
    grader = CodeGrader(case.id)

    for category in case.expect_categories:
        grader.add_check(
            f'expected category "{category}" not matched',
            lambda r, c=category: c in r.matched_categories,
            kind=CATEGORY_CHECK,
        )
    for category in case.dont_expect_categories:
        grader.add_check(
            f'unexpected category "{category}" was matched',
            lambda r, c=category: c not in r.matched_categories,
            kind=CATEGORY_CHECK,
        )
    for rule_id, expected in case.expect_rules.items():
        grader.add_check(
            f'expected rule "{rule_id}" not selected (wanted: {expected})',
            lambda r, i=rule_id: i in _assessments(r),
            kind=RULE_CHECK,
        )
        grader.add_check(
            f'rule "{rule_id}": expected {expected}',
            lambda r, i=rule_id, a=expected: _assessments(r).get(i, a) == a,
            kind=ASSESSMENT_CHECK,
            detail=lambda r, i=rule_id: f"got {_assessments(r).get(i)}",
        )
    for rule_id in case.dont_expect_rules:
        grader.add_check(
            f'unexpected rule "{rule_id}" was selected',
            lambda r, i=rule_id: i not in _assessments(r),
            kind=RULE_CHECK,
        )

    return grader.grade(result)
