"""Hand-authored resolution eval cases (resolution-cases.json)."""

import json
from pathlib import Path

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..style_guide.models import VALID_ASSESSMENTS
from ..style_guide.store import StyleGuideError


class EvalCase(BaseModel):
    """One sentence plus what the pipeline should and should not find in it."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    description: str = ""
    sentence: str
    expect_categories: list[str] = Field(default_factory=list, alias="expectCategories")
    dont_expect_categories: list[str] = Field(default_factory=list, alias="dontExpectCategories")
    expect_rules: dict[str, str] = Field(default_factory=dict, alias="expectRules")
    dont_expect_rules: list[str] = Field(default_factory=list, alias="dontExpectRules")

    @field_validator("expect_rules")
    @classmethod
    def _known_assessments(cls, value: dict[str, str]) -> dict[str, str]:
        for rule_id, assessment in value.items():
            if assessment not in VALID_ASSESSMENTS:
                raise ValueError(
                    f"expectRules[{rule_id}] must be one of {', '.join(VALID_ASSESSMENTS)}"
                )
        return value


def load_cases(path: str | Path) -> list[EvalCase]:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise StyleGuideError(f"Cannot read eval cases from {path}: {e}") from e
    if not isinstance(data, list):
        raise StyleGuideError(f"{path} must contain a JSON array of cases")
    try:
        return [EvalCase.model_validate(entry) for entry in data]
    except pydantic.ValidationError as e:
        raise StyleGuideError(f"{path}: malformed eval case: {e}") from e
