"""
One grading pass: validate the submission, score every question locally,
then decorate the results with LLM feedback and an overall comparison.
"""
import logging
from typing import Any

from pydantic import ValidationError

from . import settings
from .errors import ERR, DocquizError, DocumentNotFound, InvalidSubmission
from .feedback import generate_comparison, generate_feedback, grade_subjective
from .llm import ChatClient
from .models import SUBJECTIVE_TYPES, GradingResult, Question, UserAnswer
from .scoring import score_answer, summarize

logger = logging.getLogger(__name__)

NO_ANSWER_FEEDBACK = "No answer provided"
SUBJECTIVE_POLICIES = {"auto", "llm"}


def _is_blank(v: Any) -> bool:
    return v is None or v == ""


def validate_submission(questions: Any, answers: Any) -> tuple[list[Question], list[UserAnswer]]:
    if not isinstance(questions, list) or not isinstance(answers, list):
        raise InvalidSubmission(ERR["not_arrays"])
    if not questions:
        raise InvalidSubmission(ERR["no_questions"])

    parsed_q = []
    for i, q in enumerate(questions):
        if isinstance(q, Question):
            parsed_q.append(q)
            continue
        if not isinstance(q, dict) or any(_is_blank(q.get(k)) for k in ("id", "type", "question")):
            raise InvalidSubmission(ERR["invalid_question"], f"question at position {i}")
        try:
            parsed_q.append(Question.model_validate({**q, "id": str(q["id"])}))
        except ValidationError as e:
            raise InvalidSubmission(ERR["invalid_question"], f"question at position {i}: {e.error_count()} error(s)") from e

    parsed_a = []
    for i, a in enumerate(answers):
        if isinstance(a, UserAnswer):
            parsed_a.append(a)
            continue
        if not isinstance(a, dict) or _is_blank(a.get("questionId")) or not isinstance(a.get("answer"), str):
            raise InvalidSubmission(ERR["invalid_answer"], f"answer at position {i}")
        parsed_a.append(UserAnswer(question_id=str(a["questionId"]), answer=a["answer"]))
    return parsed_q, parsed_a


def _grade_one(client: ChatClient | None, question: Question, answer: UserAnswer | None,
               source_text: str | None, subjective_policy: str, with_feedback: bool) -> GradingResult:
    if answer is None:
        outcome = score_answer(question, None)
        return GradingResult(question_id=question.id, score=0, max_score=outcome.max_score,
                             is_correct=False, feedback=NO_ANSWER_FEEDBACK)

    outcome = score_answer(question, answer)
    score, is_correct, feedback = outcome.score, outcome.is_correct, None

    if (subjective_policy == "llm" and outcome.issue is None
            and question.qtype in SUBJECTIVE_TYPES and client is not None):
        try:
            score, feedback = grade_subjective(client, question, answer, outcome.max_score, source_text)
            is_correct = score == outcome.max_score
        except DocquizError as e:
            logger.warning("Rubric grading failed for %s, keeping automatic score: %s", question.id, e)

    if feedback is None:
        if with_feedback:
            feedback = generate_feedback(client, question, answer, score, outcome.max_score, source_text)
        else:
            feedback = ""
    return GradingResult(question_id=question.id, score=score, max_score=outcome.max_score,
                         is_correct=is_correct, feedback=feedback)


def grade_submission(questions: Any, answers: Any, client: ChatClient | None = None,
                     source_text: str | None = None, subjective_policy: str | None = None,
                     with_feedback: bool = True, with_comparison: bool = True) -> dict:
    """
    Grade a full test. Returns ``{"testResult": {...}, "comparison": {...}}``.

    Raises InvalidSubmission for a malformed payload; LLM trouble never fails the pass.
    """
    policy = (subjective_policy or settings.SUBJECTIVE_POLICY).lower()
    if policy not in SUBJECTIVE_POLICIES:
        logger.warning("Unknown subjective policy %r, using 'auto'", policy)
        policy = "auto"

    qs, ans = validate_submission(questions, answers)
    # first answer wins when a question is answered twice
    by_id: dict[str, UserAnswer] = {}
    for a in ans:
        by_id.setdefault(a.question_id, a)

    results = [_grade_one(client, q, by_id.get(q.id), source_text, policy, with_feedback) for q in qs]
    report = summarize(results)
    logger.info("Graded %d questions: %g/%g (%.1f%%)", len(results), report.total_score,
                report.max_possible_score, report.percentage)

    out = {"testResult": report.to_wire()}
    if with_comparison:
        out["comparison"] = generate_comparison(client, qs, ans, results).to_wire()
    return out


def grade_test(store, test_id: str, answers: Any, client: ChatClient | None = None, **kwargs) -> dict:
    """Grade answers against a stored test, giving the collaborators its source text."""
    test = store.get_test(test_id)
    if test is None:
        raise DocumentNotFound(ERR["test_not_found"], test_id)
    doc = store.get_document(test.document_id)
    source_text = doc.original_content if doc else None
    if doc is None:
        logger.warning("Source document %s for test %s is gone; grading without it", test.document_id, test_id)
    return grade_submission(test.questions, answers, client=client, source_text=source_text, **kwargs)
