"""
Resolution eval runner -- run hand-authored cases through the real pipeline.

Each case gets its own recording wrapper around the LLM client, so the log
shows every prompt and raw response per stage next to the parsed results.
A failed model call (or a sentence the pipeline rejects) marks that case as
an error and the run moves on.

Usage:
    runner = EvalRunner(llm_client=llm, store=store, registry=registry)
    outcomes = await runner.run(load_cases("evals/data/resolution-cases.json"))
    stats = compute_stats(outcomes)
    write_log(outcomes, stats, "resolution-eval.log", label="local")
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from ..llm.client import LLMError, LLMResponse, StructuredResponse
from ..resolution.pipeline import ResolutionConfig, ResolutionPipeline
from ..security.validators import ValidationError
from ..style_guide.models import ResolutionResult
from ..style_guide.store import CategoryRegistry, RuleStore
from .cases import EvalCase
from .graders import CATEGORY_CHECK, RULE_CHECK, CodeGraderResult, grade_case

logger = logging.getLogger(__name__)

LOG_RULE = "=" * 80


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class CaseOutcome:
    """One case: the pipeline result, its grade, and the recorded trace."""

    case: EvalCase
    result: ResolutionResult
    grade: CodeGraderResult
    elapsed_ms: float = 0.0
    timings: dict[str, float] = field(default_factory=dict)
    trace: list[dict] = field(default_factory=list)
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.error is None and self.grade.passed


@dataclass
class EvalStats:
    total_cases: int = 0
    passed: int = 0
    category_correct: int = 0
    rule_selection_correct: int = 0
    assessment_correct: int = 0
    assessment_total: int = 0

    @property
    def pass_rate(self) -> float:
        return self.passed / self.total_cases if self.total_cases else 0.0


# =============================================================================
# RECORDING CLIENT
# =============================================================================


class RecordingClient:
    """Wraps an LLM client and records each prompt and raw response."""

    def __init__(self, inner: Any, trace: list[dict] | None = None):
        self._inner = inner
        self.calls: list[dict] = trace if trace is not None else []

    @property
    def supports_structured_output(self) -> bool:
        return bool(getattr(self._inner, "supports_structured_output", False))

    async def call(self, prompt, **kwargs) -> LLMResponse:
        response = await self._inner.call(prompt=prompt, **kwargs)
        raw = (
            response.data if isinstance(response, StructuredResponse) else response.content
        )
        self.calls.append({
            "prompt": prompt,
            "raw": raw,
            "model": getattr(response, "model", ""),
            "latency_ms": round(getattr(response, "latency_ms", 0.0), 1),
        })
        return response


# =============================================================================
# RUNNER
# =============================================================================


class EvalRunner:
    """Runs eval cases sequentially against one store, registry, and client."""

    def __init__(
        self,
        llm_client: Any,
        store: RuleStore,
        registry: CategoryRegistry,
        config: ResolutionConfig | None = None,
    ):
        self._llm = llm_client
        self._store = store
        self._registry = registry
        self._config = config

    async def run(
        self,
        cases: list[EvalCase],
        on_case_complete: Callable[[CaseOutcome], Any] | None = None,
    ) -> list[CaseOutcome]:
        outcomes = []
        for case in cases:
            outcome = await self.run_case(case)
            outcomes.append(outcome)
            if on_case_complete is not None:
                on_case_complete(outcome)
        return outcomes

    async def run_case(self, case: EvalCase) -> CaseOutcome:
        trace: list[dict] = []
        recorder = RecordingClient(self._llm, trace=trace)
        pipeline = ResolutionPipeline(
            llm_client=recorder,
            store=self._store,
            registry=self._registry,
            config=self._config,
        )
        timings: dict[str, float] = {}
        start = time.monotonic()
        last_mark = start

        def on_stage(stage: str, data: list) -> None:
            nonlocal last_mark
            now = time.monotonic()
            timings[stage] = round((now - last_mark) * 1000, 1)
            last_mark = now
            trace.append({"stage": stage, "count": len(data)})

        error = None
        try:
            result = await pipeline.resolve(case.sentence, on_stage_complete=on_stage)
        except (LLMError, ValidationError) as e:
            logger.error(f"[Eval] {case.id} failed: {e}")
            error = str(e)
            result = ResolutionResult()

        elapsed_ms = round((time.monotonic() - start) * 1000, 1)
        grade = grade_case(case, result)
        if error is not None:
            grade.passed = False
            grade.failures.insert(0, f"ERROR: {error}")

        return CaseOutcome(
            case=case,
            result=result,
            grade=grade,
            elapsed_ms=elapsed_ms,
            timings=timings,
            trace=trace,
            error=error,
        )


# =============================================================================
# SUMMARY + OUTPUT
# =============================================================================


def compute_stats(outcomes: list[CaseOutcome]) -> EvalStats:
    stats = EvalStats(total_cases=len(outcomes))
    for outcome in outcomes:
        if outcome.passed:
            stats.passed += 1
        if CATEGORY_CHECK not in outcome.grade.failed_kinds and outcome.error is None:
            stats.category_correct += 1
        if RULE_CHECK not in outcome.grade.failed_kinds and outcome.error is None:
            stats.rule_selection_correct += 1

        assessments = {ev.rule_id: ev.assessment for ev in outcome.result.evaluations}
        for rule_id, expected in outcome.case.expect_rules.items():
            if rule_id in assessments:
                stats.assessment_total += 1
                if assessments[rule_id] == expected:
                    stats.assessment_correct += 1
    return stats


def summary_lines(stats: EvalStats) -> list[str]:
    return [
        f"Results: {stats.passed}/{stats.total_cases} passed ({stats.pass_rate:.0%})",
        f"Category match: {stats.category_correct}/{stats.total_cases}",
        f"Rule selection: {stats.rule_selection_correct}/{stats.total_cases}",
        f"Assessment: {stats.assessment_correct}/{stats.assessment_total}",
    ]


def write_log(
    outcomes: list[CaseOutcome], stats: EvalStats, path: str | Path, label: str = ""
) -> None:
    """Human-readable log: per-case status, failures, timings and full trace."""
    lines = [
        "Resolution Pipeline Eval",
        f"Date: {datetime.now().isoformat()}",
        f"Provider: {label}",
        f"Cases: {len(outcomes)}",
        LOG_RULE,
        "",
    ]
    for outcome in outcomes:
        case = outcome.case
        lines.append(f"--- {case.id}: {case.description} ---")
        lines.append(f'Sentence: "{case.sentence}"')
        lines.append(f"Status: {'PASS' if outcome.passed else 'FAIL'}")
        if outcome.grade.failures:
            lines.append(f"Failures: {'; '.join(outcome.grade.failures)}")
        lines.append(f"Elapsed: {outcome.elapsed_ms:.0f}ms")
        lines.append(f"Timings: {json.dumps(outcome.timings)}")
        lines.append("")
        for entry in outcome.trace:
            lines.append(json.dumps(entry, indent=2, default=str, ensure_ascii=False))
            lines.append("")
        lines.append(LOG_RULE)
        lines.append("")

    lines.append("SUMMARY")
    lines.extend(summary_lines(stats))
    Path(path).write_text("\n".join(lines), encoding="utf-8")
    logger.info(f"[Eval] Log written to {path}")


def write_results_snapshot(
    outcomes: list[CaseOutcome], stats: EvalStats, path: str | Path, label: str = ""
) -> None:
    """Machine-readable snapshot for comparing runs."""
    snapshot = {
        "metadata": {
            "timestamp": datetime.now().isoformat(),
            "provider": label,
            "totalCases": stats.total_cases,
            "passed": stats.passed,
            "passRate": f"{stats.pass_rate:.0%}",
        },
        "summary": {
            "totalCases": stats.total_cases,
            "passed": stats.passed,
            "categoryCorrect": stats.category_correct,
            "ruleSelectionCorrect": stats.rule_selection_correct,
            "assessmentCorrect": stats.assessment_correct,
            "assessmentTotal": stats.assessment_total,
        },
        "cases": [
            {
                "id": o.case.id,
                "description": o.case.description,
                "sentence": o.case.sentence,
                "pass": o.passed,
                "failures": o.grade.failures,
                **{
                    k: v for k, v in o.result.to_dict().items()
                    if k in ("matchedCategories", "evaluations")
                },
                "elapsed": o.elapsed_ms,
            }
            for o in outcomes
        ],
    }
    Path(path).write_text(json.dumps(snapshot, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info(f"[Eval] Results snapshot written to {path}")
