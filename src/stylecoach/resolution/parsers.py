"""
Response parsers -- turn a stage's model response into the stage's result type.

Two layers:
  parse_*()      free text -> list, via extract_json_array()
  normalize_*()  TextResponse | StructuredResponse -> list; the one entry
                 point the pipeline uses per stage

Malformed output is never an error here. Anything unreadable becomes an
empty list, which the pipeline treats as "nothing relevant".
"""

import logging
from typing import Any, Iterable

from ..llm.client import LLMResponse, StructuredResponse
from ..llm.json_parser import extract_json_array
from ..style_guide.models import PARTIAL, VALID_ASSESSMENTS, Evaluation

logger = logging.getLogger(__name__)

RULE_ID_KEYS = ("ruleId", "rule_id", "id")
ASSESSMENT_KEYS = ("assessment", "status")
NOTE_KEYS = ("note", "explanation", "comment")


def _first_present(item: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def _array_or_warn(response: str, stage: str) -> list:
    result = extract_json_array(response)
    if result is None:
        logger.warning(f"[Resolution] Could not parse {stage} response: {str(response)[:200]}")
        return []
    return result


def _string_entries(items: Any) -> list[str]:
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, str)]


def _to_evaluation(item: Any) -> Evaluation | None:
    """Normalize one evaluation record; None for entries that are not objects."""
    if not isinstance(item, dict):
        return None

    rule_id = _first_present(item, RULE_ID_KEYS)

    assessment = _first_present(item, ASSESSMENT_KEYS)
    assessment = assessment.strip().lower() if isinstance(assessment, str) else PARTIAL
    if assessment not in VALID_ASSESSMENTS:
        assessment = PARTIAL

    note = _first_present(item, NOTE_KEYS)

    return Evaluation(
        rule_id=str(rule_id) if rule_id is not None else "",
        assessment=assessment,
        note=note if isinstance(note, str) else "",
    )


def _evaluations(items: Any) -> list[Evaluation]:
    if not isinstance(items, list):
        return []
    return [ev for ev in (_to_evaluation(item) for item in items) if ev is not None]


# =============================================================================
# FREE-TEXT PARSERS
# =============================================================================


def parse_category_match(response: str, known_categories: Iterable[str]) -> list[str]:
    """Category names from the response, restricted to known categories."""
    known = set(known_categories)
    return [c for c in _string_entries(_array_or_warn(response, "category match")) if c in known]


def parse_triage_response(response: str) -> list[str]:
    """Rule ids from the response. Not checked against candidates here."""
    return _string_entries(_array_or_warn(response, "triage"))


def parse_evaluation(response: str) -> list[Evaluation]:
    """Evaluation records from the response, with field aliases resolved."""
    return _evaluations(_array_or_warn(response, "evaluation"))


# =============================================================================
# PER-STAGE NORMALIZERS
# =============================================================================


def _structured_list(response: StructuredResponse, key: str) -> Any:
    data = response.data
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get(key, [])
    return []


def normalize_category_match(response: LLMResponse, known_categories: Iterable[str]) -> list[str]:
    if isinstance(response, StructuredResponse):
        known = set(known_categories)
        return [c for c in _string_entries(_structured_list(response, "categories")) if c in known]
    return parse_category_match(response.content, known_categories)


def normalize_triage(response: LLMResponse) -> list[str]:
    if isinstance(response, StructuredResponse):
        return _string_entries(_structured_list(response, "ruleIds"))
    return parse_triage_response(response.content)


def normalize_evaluation(response: LLMResponse) -> list[Evaluation]:
    if isinstance(response, StructuredResponse):
        return _evaluations(_structured_list(response, "evaluations"))
    return parse_evaluation(response.content)
