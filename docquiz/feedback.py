"""
LLM feedback, the overall comparison, and the optional rubric grader.

Every function here has a deterministic fallback: the model may be missing,
slow, wrong or down, and grading must still finish.
"""
import json
import logging
import re

from pydantic import BaseModel

from . import settings
from .errors import MalformedProviderResponse, ProviderUnavailable
from .llm import ChatClient
from .models import Comparison, GradingResult, Question, UserAnswer
from .parsing import parse_model
from .scoring import percentage_of

logger = logging.getLogger(__name__)

FEEDBACK_CORRECT = "Great job! Your answer is correct."
FEEDBACK_PARTIAL = "Good effort. Review the material to improve your understanding."
FEEDBACK_MISSING_DATA = "Unable to generate feedback due to missing data."
FEEDBACK_EMPTY = "No feedback available."

ANALYSIS_PARSE_FAILED = "Performance analysis could not be generated."
ANALYSIS_FAILED = "Performance analysis could not be generated due to an error."

FEEDBACK_PROMPT = """You are an educational feedback generator. Provide constructive feedback for a student's answer to a question.

Question: {question}
Question Type: {type}
Difficulty: {difficulty}
Correct Answer: {correct}
Student's Answer: {answer}
Score Achieved: {score} out of {max_score}

Provide brief, helpful feedback that:
1. Acknowledges what the student did well if they scored points
2. Gently corrects any misconceptions if they lost points
3. Encourages learning and improvement
4. Is appropriate for the question type and difficulty level

Keep your feedback concise (1-2 sentences)."""

COMPARISON_PROMPT = """You are an educational assessment expert. Analyze a student's test performance and provide insights.

Questions and Answers:
{qa_pairs}

Grading Results:
{results}

Total Score: {total} out of {max_score}
Percentage: {percentage}%

Provide:
1. A brief correlation analysis (1 sentence) between question difficulty and student performance
2. A detailed performance analysis (2-3 sentences) highlighting strengths and areas for improvement
3. 3 specific, actionable recommendations for improvement

Format your response as JSON:
{
  "correlation": "string",
  "analysis": "string",
  "recommendations": ["string", "string", "string"]
}"""

RUBRIC_PROMPT = """You are grading a subjective answer against the source material.

Question: {question}
Question Type: {type}
Options: {options}
Student's Answer: {answer}
Maximum Score: {max_score}

Award a score between 0 and {max_score} reflecting how well the answer is supported by the source material.
Return JSON ONLY:
{
  "score": number,
  "feedback": "one or two sentences"
}"""


_SLOT_RE = re.compile(r"\{(\w+)\}")


def _fill(template: str, **values) -> str:
    # single pass, so braces inside question text or JSON examples are left alone
    return _SLOT_RE.sub(lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0), template)


def _fmt(n: float) -> str:
    return f"{n:g}"


def _correct_text(question: Question) -> str:
    if question.correct_answer:
        return question.correct_answer
    if question.correct_answers:
        return ", ".join(question.correct_answers)
    return "N/A"


def _with_source(source_text: str | None) -> str:
    if not source_text:
        return ""
    return "Source material:\n" + source_text[:settings.SOURCE_CONTEXT_CHARS]


def fallback_feedback(score: float, max_score: float) -> str:
    return FEEDBACK_CORRECT if score == max_score else FEEDBACK_PARTIAL


def generate_feedback(client: ChatClient | None, question: Question | None, answer: UserAnswer | None,
                      score: float, max_score: float, source_text: str | None = None) -> str:
    if question is None or answer is None:
        return FEEDBACK_MISSING_DATA
    if client is None:
        return fallback_feedback(score, max_score)

    prompt = _fill(FEEDBACK_PROMPT,
                   question=question.question or "Unknown question",
                   type=question.type or "unknown",
                   difficulty=question.difficulty,
                   correct=_correct_text(question),
                   answer=answer.answer or "No answer provided",
                   score=_fmt(score),
                   max_score=_fmt(max_score))
    try:
        text = client.complete(prompt, _with_source(source_text),
                               max_tokens=settings.FEEDBACK_MAX_TOKENS)
    except ProviderUnavailable:
        logger.warning("Feedback unavailable for question %s; using fallback", question.id)
        return fallback_feedback(score, max_score)
    return text.strip() or FEEDBACK_EMPTY


def _qa_pairs(questions: list[Question], answers: list[UserAnswer]) -> str:
    by_id: dict[str, UserAnswer] = {}
    for a in answers:
        by_id.setdefault(a.question_id, a)
    blocks = []
    for q in questions:
        a = by_id.get(q.id)
        blocks.append(f"Q: {q.question}\nA: {(a.answer if a else '') or 'No answer'}\n"
                      f"Type: {q.type}\nDifficulty: {q.difficulty}")
    return "\n\n".join(blocks)


def generate_comparison(client: ChatClient | None, questions: list[Question], answers: list[UserAnswer],
                        results: list[GradingResult]) -> Comparison:
    if client is None:
        return Comparison(correlation="N/A", analysis=ANALYSIS_FAILED)

    total = sum(r.score for r in results)
    max_score = sum(r.max_score for r in results)
    prompt = _fill(COMPARISON_PROMPT,
                   qa_pairs=_qa_pairs(questions, answers),
                   results=json.dumps([r.to_wire() for r in results], indent=2),
                   total=_fmt(total),
                   max_score=_fmt(max_score),
                   percentage=_fmt(percentage_of(total, max_score)))
    try:
        reply = client.complete(prompt, max_tokens=settings.COMPARISON_MAX_TOKENS)
    except ProviderUnavailable:
        logger.warning("Comparison unavailable; using fallback")
        return Comparison(correlation="N/A", analysis=ANALYSIS_FAILED)
    try:
        return parse_model(reply, Comparison)
    except MalformedProviderResponse as e:
        logger.error("Error parsing comparison response: %s", e.detail)
        return Comparison(correlation="N/A", analysis=ANALYSIS_PARSE_FAILED)


class RubricVerdict(BaseModel):
    score: float
    feedback: str = ""


def grade_subjective(client: ChatClient | None, question: Question, answer: UserAnswer, max_score: float,
                     source_text: str | None = None) -> tuple[float, str]:
    """Score a scale/rating answer with the model. Raises DocquizError so the caller keeps its own score."""
    if client is None:
        raise ProviderUnavailable("No client for rubric grading")
    prompt = _fill(RUBRIC_PROMPT,
                   question=question.question,
                   type=question.type,
                   options=", ".join(question.options or []) or "N/A",
                   answer=answer.answer,
                   max_score=_fmt(max_score))
    reply = client.complete(prompt, _with_source(source_text), max_tokens=settings.FEEDBACK_MAX_TOKENS)
    verdict = parse_model(reply, RubricVerdict)
    score = min(max(0.0, round(verdict.score, 2)), max_score)
    return score, verdict.feedback.strip()
