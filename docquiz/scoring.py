"""
Deterministic answer scoring and the aggregate report.

Both halves are pure functions: no network, no I/O, no shared state. The
scorer never raises on malformed input; it degrades to a failing grade and
records why on ``ScoreOutcome.issue``.
"""
import logging
import math
from enum import Enum
from typing import Iterable, NamedTuple

from .models import GradingResult, Question, QuestionType, SUBJECTIVE_TYPES, TestResult, UserAnswer

logger = logging.getLogger(__name__)

DEFAULT_WEIGHT = 1
MIN_WEIGHT = 1


class ScoreIssue(str, Enum):
    MISSING_QUESTION = "missing_question"
    MISSING_CORRECT_ANSWER = "missing_correct_answer"
    NO_USER_ANSWER = "no_user_answer"
    UNSUPPORTED_QUESTION_TYPE = "unsupported_question_type"


class ScoreOutcome(NamedTuple):
    score: float
    max_score: float
    is_correct: bool
    issue: ScoreIssue | None = None


def max_score_for(question: Question | None) -> float:
    """Weight doubles as the max score; at least 1."""
    if question is None:
        return 1
    w = question.weight
    if w is None or not math.isfinite(w) or w <= 0:
        w = DEFAULT_WEIGHT
    return max(MIN_WEIGHT, w)


def _clamp(score: float, max_score: float) -> float:
    return min(max(0.0, score), max_score)


def _fail(max_score: float, issue: ScoreIssue) -> ScoreOutcome:
    return ScoreOutcome(0, max_score, False, issue)


def split_selections(raw: str) -> list[str]:
    """Comma-joined labels -> distinct case-folded selections, in order."""
    out = []
    for part in raw.split(","):
        s = part.strip().lower()
        if s and s not in out:
            out.append(s)
    return out


def _score_exact(question: Question, answer: str, max_score: float) -> ScoreOutcome:
    if question.correct_answer is None:
        return _fail(max_score, ScoreIssue.MISSING_CORRECT_ANSWER)
    # case-folded only; surrounding whitespace is significant
    correct = question.correct_answer.lower() == answer.lower()
    return ScoreOutcome(max_score if correct else 0, max_score, correct)


def _score_multi(question: Question, answer: str, max_score: float) -> ScoreOutcome:
    if question.correct_answers is not None:
        keys = question.correct_answers
    elif question.correct_answer is not None:
        keys = [question.correct_answer]
    else:
        keys = []
    correct_set = {k.strip().lower() for k in keys if k.strip()}
    if not correct_set:
        return _fail(max_score, ScoreIssue.MISSING_CORRECT_ANSWER)

    selected = split_selections(answer)
    if not selected:
        return _fail(max_score, ScoreIssue.NO_USER_ANSWER)

    hits = sum(1 for s in selected if s in correct_set)
    misses = len(selected) - hits
    total = len(correct_set)
    raw = max(0.0, hits * max_score / total - misses * max_score / total)
    score = _clamp(round(raw, 2), max_score)
    # correct means the exact key set; the rounded score can reach max_score before that
    return ScoreOutcome(score, max_score, misses == 0 and hits == total)


def score_answer(question: Question | None, answer: UserAnswer | None) -> ScoreOutcome:
    """
    Score one answer against its question.

    binary / single-choice: case-insensitive exact match, all or nothing.
    multi-choice: net credit, weight * max(0, (hits - misses) / |correct|).
    scale / rating and questions without an answer key: full credit for any answer.
    Unknown types score 0 out of 1.
    """
    if question is None:
        return ScoreOutcome(0, 1, False, ScoreIssue.MISSING_QUESTION)

    qtype = question.qtype
    if qtype is None:
        logger.debug("Unsupported question type %r [question=%s]", question.type, question.id)
        return ScoreOutcome(0, 1, False, ScoreIssue.UNSUPPORTED_QUESTION_TYPE)

    max_score = max_score_for(question)
    text = answer.answer if answer is not None else ""
    if not text:
        return _fail(max_score, ScoreIssue.NO_USER_ANSWER)

    if qtype in SUBJECTIVE_TYPES or not question.has_answer_key:
        return ScoreOutcome(max_score, max_score, True)

    if qtype is QuestionType.MULTI:
        outcome = _score_multi(question, text, max_score)
    else:
        outcome = _score_exact(question, text, max_score)
    if outcome.issue is ScoreIssue.MISSING_CORRECT_ANSWER:
        logger.warning("Question %s has an answer key that does not fit its type %r; scoring 0",
                       question.id, question.type)
    return outcome


def round_half_up(x: float) -> float:
    return math.floor(x + 0.5)


def percentage_of(total: float, max_possible: float) -> float:
    if max_possible <= 0:
        return 0
    return round_half_up(1000 * total / max_possible) / 10


def summarize(results: Iterable[GradingResult]) -> TestResult:
    results = list(results)
    total = sum(r.score for r in results)
    max_possible = sum(r.max_score for r in results)
    return TestResult(
        grading_results=results,
        total_score=total,
        max_possible_score=max_possible,
        percentage=percentage_of(total, max_possible),
    )
