"""
Wire/data model shared by the scorer, the LLM collaborators and the store.

Everything is camelCase on the wire (JSON files, CLI output, LLM prompts) and
snake_case in Python.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class QuestionType(str, Enum):
    YES_NO = "yes-no"
    SINGLE = "multiple-choice-single"
    MULTI = "multiple-choice-multi"
    SCALE = "scale"
    RATING = "rating"


SUBJECTIVE_TYPES = frozenset({QuestionType.SCALE, QuestionType.RATING})
DIFF_ALLOWED = {"easy", "medium", "hard"}

QTYPE_NORMALIZE = {
    "yes-no": QuestionType.YES_NO, "yes/no": QuestionType.YES_NO, "yesno": QuestionType.YES_NO,
    "binary": QuestionType.YES_NO, "true-false": QuestionType.YES_NO, "boolean": QuestionType.YES_NO,
    "multiple-choice-single": QuestionType.SINGLE, "single-choice": QuestionType.SINGLE,
    "single": QuestionType.SINGLE, "mcq": QuestionType.SINGLE, "multiple-choice": QuestionType.SINGLE,
    "multiple-choice-multi": QuestionType.MULTI, "multi-choice": QuestionType.MULTI,
    "multi": QuestionType.MULTI, "multi-select": QuestionType.MULTI,
    "scale": QuestionType.SCALE, "numeric-scale": QuestionType.SCALE,
    "rating": QuestionType.RATING, "star-rating": QuestionType.RATING,
}


def normalize_type(v: Any) -> QuestionType | None:
    if isinstance(v, QuestionType):
        return v
    if not isinstance(v, str):
        return None
    key = v.strip().lower().replace("_", "-").replace(" ", "-")
    return QTYPE_NORMALIZE.get(key)


def _as_text(v: Any) -> str:
    if isinstance(v, bool):
        return "Yes" if v else "No"
    return str(v)


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Question(WireModel):
    id: str
    type: str
    question: str
    options: list[str] | None = None
    correct_answer: str | None = None
    correct_answers: list[str] | None = None
    difficulty: str = "medium"
    weight: float | None = None
    scale: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _promote_list_answer(cls, data: Any) -> Any:
        # LLMs sometimes return a list under correctAnswer for multi-select items
        if isinstance(data, dict):
            key = "correctAnswer" if "correctAnswer" in data else "correct_answer"
            value = data.get(key)
            if isinstance(value, (list, tuple)):
                data = dict(data)
                data[key] = None
                if data.get("correctAnswers") is None and data.get("correct_answers") is None:
                    data["correctAnswers"] = list(value)
        return data

    @field_validator("options", "correct_answers", mode="before")
    @classmethod
    def _stringify_items(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, (list, tuple)):
            return [_as_text(x) for x in v if x is not None]
        return v

    @field_validator("correct_answer", mode="before")
    @classmethod
    def _empty_answer_is_none(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        if isinstance(v, (int, float, bool)):
            return _as_text(v)
        return v

    @field_validator("weight", mode="before")
    @classmethod
    def _lenient_weight(cls, v: Any) -> Any:
        if v is None or isinstance(v, bool):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @field_validator("difficulty", mode="before")
    @classmethod
    def _norm_diff(cls, v: Any) -> str:
        s = str(v or "").strip().lower()
        return s if s in DIFF_ALLOWED else "medium"

    @property
    def qtype(self) -> QuestionType | None:
        return normalize_type(self.type)

    @property
    def has_answer_key(self) -> bool:
        return self.correct_answer is not None or self.correct_answers is not None


class UserAnswer(WireModel):
    question_id: str
    answer: str


class GradingResult(WireModel):
    question_id: str
    score: float
    max_score: float
    is_correct: bool
    feedback: str = ""


class TestResult(WireModel):
    __test__ = False  # not a pytest class

    grading_results: list[GradingResult] = Field(default_factory=list)
    total_score: float = 0
    max_possible_score: float = 0
    percentage: float = 0


DEFAULT_RECOMMENDATIONS = (
    "Review the material regularly",
    "Practice more questions",
    "Seek help on difficult topics",
)


class Comparison(WireModel):
    correlation: str = "N/A"
    analysis: str = "No analysis available."
    recommendations: list[str] = Field(default_factory=lambda: list(DEFAULT_RECOMMENDATIONS))

    @field_validator("recommendations", mode="before")
    @classmethod
    def _exactly_three(cls, v: Any) -> list[str]:
        recs = [str(x).strip() for x in v if str(x).strip()] if isinstance(v, (list, tuple)) else []
        recs = recs[:3]
        for default in DEFAULT_RECOMMENDATIONS:
            if len(recs) >= 3:
                break
            if default not in recs:
                recs.append(default)
        return recs

    @model_validator(mode="before")
    @classmethod
    def _drop_blank(cls, data: Any) -> Any:
        # blank strings fall back to the field defaults
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v not in (None, "")}
        return data


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DocumentMetadata(WireModel):
    file_name: str
    upload_date: str = Field(default_factory=utcnow_iso)
    chunk_count: int = 0


class StoredDocument(WireModel):
    id: str
    original_content: str
    metadata: DocumentMetadata


class StoredTest(WireModel):
    id: str
    document_id: str
    questions: list[Question] = Field(default_factory=list)
    created_at: str = Field(default_factory=utcnow_iso)
