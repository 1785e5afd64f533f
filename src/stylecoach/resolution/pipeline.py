"""
Hierarchical rule resolution -- which rules apply to a text, and how well it follows them.

Stage 1: CATEGORIES -- one model call picks the categories the text exercises
Stage 2: CANDIDATES -- in-memory lookup through the category index (free)
Stage 3: TRIAGE     -- one model call narrows the candidates; skipped when
                       there are TRIAGE_THRESHOLD or fewer
Stage 4: EVALUATION -- one model call gives a verdict per remaining rule

Stages run strictly in order, each on the previous stage's output. An empty
stage ends the run early with empty downstream fields. Model errors are not
caught here; they reach the caller unchanged. Text over the length limit is
rejected with ValidationError before the first stage.

Usage:
    pipeline = ResolutionPipeline(llm_client=llm, store=store, registry=registry)
    result = await pipeline.resolve(text, on_stage_complete=render_progress)
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

from ..llm.client import LLMResponse, ToolSchema
from ..security.prompt_guard import detect_injection_attempt
from ..security.validators import validate_length
from ..style_guide.index import lookup_rule_ids
from ..style_guide.models import Evaluation, ResolutionResult, Rule
from ..style_guide.store import CategoryRegistry, RuleStore
from .parsers import normalize_category_match, normalize_evaluation, normalize_triage
from .prompts import (
    build_category_match_prompt,
    build_category_match_schema,
    build_rule_evaluation_prompt,
    build_rule_evaluation_schema,
    build_rule_triage_prompt,
    build_rule_triage_schema,
)

logger = logging.getLogger(__name__)

TRIAGE_THRESHOLD = 15
MAX_TEXT_LENGTH = 20_000

STAGE_CATEGORIES = "categories"
STAGE_CANDIDATES = "candidates"
STAGE_TRIAGED = "triaged"
STAGE_EVALUATED = "evaluated"
STAGES = (STAGE_CATEGORIES, STAGE_CANDIDATES, STAGE_TRIAGED, STAGE_EVALUATED)

StageCallback = Callable[[str, list], Any]


@dataclass
class ResolutionConfig:
    """Knobs for one pipeline instance."""

    triage_threshold: int = TRIAGE_THRESHOLD
    max_text_length: int = MAX_TEXT_LENGTH
    use_structured_output: bool = True  # Only honored if the client supports it
    temperature: float = 0.3
    max_tokens: int = 3000
    role: str = "resolution"


class ResolutionPipeline:
    """
    Runs the four resolution stages against an injected store and registry.

    The pipeline only reads the store and registry. Several resolutions may
    run concurrently on one instance; each works on its own snapshot of the
    rules taken at stage 2.
    """

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
        self.config = config or ResolutionConfig()

    @property
    def structured(self) -> bool:
        return self.config.use_structured_output and bool(
            getattr(self._llm, "supports_structured_output", False)
        )

    async def resolve(
        self, text: str, on_stage_complete: StageCallback | None = None
    ) -> ResolutionResult:
        """Resolve which rules apply to ``text`` and evaluate them.

        Raises ValidationError, before any model call, when ``text`` is longer
        than ``config.max_text_length``.
        """
        validate_length(text, "text", max_length=self.config.max_text_length)
        detect_injection_attempt(text)
        result = ResolutionResult()

        def notify(stage: str, data: list) -> None:
            if on_stage_complete is None:
                return
            try:
                on_stage_complete(stage, data)
            except Exception as e:
                logger.warning(f"[Resolution] Stage observer failed on '{stage}': {e}")

        # Stage 1: Category matching (1 LLM call)
        logger.info("[Resolution] Stage 1: Category matching")
        result.matched_categories = await self._match_categories(text)
        logger.info(f"[Resolution] Matched categories: {result.matched_categories}")
        notify(STAGE_CATEGORIES, list(result.matched_categories))

        if not result.matched_categories:
            notify(STAGE_EVALUATED, [])
            return result

        # Stage 2: Rule lookup (in-memory)
        logger.info("[Resolution] Stage 2: Rule lookup")
        result.candidate_rules = self._lookup_candidates(result.matched_categories)
        logger.info(
            f"[Resolution] {len(result.candidate_rules)} candidate rules "
            f"from {len(result.matched_categories)} categories"
        )
        notify(STAGE_CANDIDATES, list(result.candidate_rules))

        if not result.candidate_rules:
            notify(STAGE_EVALUATED, [])
            return result

        # Stage 3: Triage (1 LLM call, or short-circuit)
        threshold = self.config.triage_threshold
        if len(result.candidate_rules) <= threshold:
            logger.info(
                f"[Resolution] Short-circuit: {len(result.candidate_rules)} candidates "
                f"<= {threshold}, skipping triage"
            )
            result.triaged_rules = result.candidate_rules
        else:
            logger.info("[Resolution] Stage 3: Triage")
            result.triaged_rules = await self._triage(text, result.candidate_rules)
            logger.info(f"[Resolution] Triaged to {len(result.triaged_rules)} rules")
            notify(STAGE_TRIAGED, list(result.triaged_rules))

        if not result.triaged_rules:
            notify(STAGE_EVALUATED, [])
            return result

        # Stage 4: Deep evaluation (1 LLM call)
        logger.info("[Resolution] Stage 4: Deep evaluation")
        result.evaluations = await self._evaluate(text, result.triaged_rules)
        logger.info(f"[Resolution] {len(result.evaluations)} evaluations returned")
        notify(STAGE_EVALUATED, list(result.evaluations))

        return result

    async def _call(self, prompt: str, tool: ToolSchema) -> LLMResponse:
        return await self._llm.call(
            prompt=prompt,
            tool=tool if self.structured else None,
            role=self.config.role,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    async def _match_categories(self, text: str) -> list[str]:
        known = list(self._registry)
        response = await self._call(
            build_category_match_prompt(text, self._registry),
            build_category_match_schema(known),
        )
        return normalize_category_match(response, known)

    def _lookup_candidates(self, categories: list[str]) -> list[Rule]:
        rules, index = self._store.snapshot()
        candidate_ids = lookup_rule_ids(index, categories)
        return [rule for rule in rules if rule.id in candidate_ids]

    async def _triage(self, text: str, candidates: list[Rule]) -> list[Rule]:
        response = await self._call(
            build_rule_triage_prompt(text, candidates),
            build_rule_triage_schema([rule.id for rule in candidates]),
        )
        triaged_ids = set(normalize_triage(response))
        return [rule for rule in candidates if rule.id in triaged_ids]

    async def _evaluate(self, text: str, rules: list[Rule]) -> list[Evaluation]:
        response = await self._call(
            build_rule_evaluation_prompt(text, rules),
            build_rule_evaluation_schema([rule.id for rule in rules]),
        )
        allowed = {rule.id for rule in rules}
        evaluations = normalize_evaluation(response)
        kept = [ev for ev in evaluations if ev.rule_id in allowed]
        if len(kept) < len(evaluations):
            logger.info(
                f"[Resolution] Dropped {len(evaluations) - len(kept)} evaluations "
                f"for rules that were not sent"
            )
        return kept


async def resolve_rules(
    text: str,
    *,
    llm_client: Any,
    store: RuleStore,
    registry: CategoryRegistry,
    on_stage_complete: StageCallback | None = None,
    config: ResolutionConfig | None = None,
) -> ResolutionResult:
    """One-shot form of ResolutionPipeline(...).resolve(text)."""
    pipeline = ResolutionPipeline(
        llm_client=llm_client, store=store, registry=registry, config=config
    )
    return await pipeline.resolve(text, on_stage_complete=on_stage_complete)
