"""
JSON recovery from free-text model output.

Models asked for "ONLY a JSON array" still wrap it in markdown fences, put
prose in front of it, emit a reasoning block first, or leave a trailing
comma. extract_json_array() is the single boundary that copes with all of
that; callers get a list or None and never an exception.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"```(?:json)?\s*")
_THINK_BLOCKS = (
    re.compile(r"\[THINK\].*?\[/THINK\]", re.IGNORECASE | re.DOTALL),
    re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL),
)
# "[" that starts a string, object, nested array or number -- not "[see above]"
_ARRAY_OPENING = re.compile(r"\[(?=\s*[\"{\[\d])")
_GREEDY_ARRAY = re.compile(r"\[.*\]", re.DOTALL)
_TRAILING_COMMA = re.compile(r",\s*([\]}])")


def strip_wrappers(text: str) -> str:
    """Remove markdown fences and reasoning blocks."""
    stripped = _FENCE_OPEN.sub("", text).replace("```", "")
    for pattern in _THINK_BLOCKS:
        stripped = pattern.sub("", stripped)
    return stripped


def _try_parse(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(_TRAILING_COMMA.sub(r"\1", candidate))
    except json.JSONDecodeError:
        return None


def _matching_bracket(text: str, start: int) -> int:
    """Index of the "]" closing the "[" at ``start``, or -1 if unbalanced."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
            continue
        if ch == "\\" and in_string:
            escaped = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i
    return -1


def extract_json_array(text: str) -> list | None:
    """
    Find the first JSON array in a model response.

    Each plausible "[" is walked to its matching "]"; the first slice that
    parses (directly or with trailing commas removed) wins. Failing that, the
    span from the first "[" to the last "]" is tried. Returns None when
    nothing parses.
    """
    if not isinstance(text, str) or not text:
        return None

    stripped = strip_wrappers(text)

    for opening in _ARRAY_OPENING.finditer(stripped):
        end = _matching_bracket(stripped, opening.start())
        if end == -1:
            continue
        result = _try_parse(stripped[opening.start():end + 1])
        if isinstance(result, list):
            return result

    match = _GREEDY_ARRAY.search(stripped)
    if match:
        result = _try_parse(match.group(0))
        if isinstance(result, list):
            return result
        logger.warning(f"[JSONParser] Failed to parse JSON array: {match.group(0)[:200]}")
    return None
