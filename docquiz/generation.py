import logging
import math
from uuid import uuid4

from pydantic import ValidationError

from . import settings
from .errors import ERR, DocumentNotFound, MalformedProviderResponse
from .llm import ChatClient, require_client
from .models import Question, QuestionType, StoredTest, normalize_type
from .parsing import parse_json_object

logger = logging.getLogger(__name__)

MAX_QUESTIONS = 30
DEFAULT_COUNT = 10
DEFAULT_GEN_WEIGHT = 5
WEIGHT_RANGE = (1, 10)

QUESTION_PROMPT = """You are a question generator.
Given the following content section, create a list of diverse question types in **strict JSON format only**.

Return JSON in the exact format below (no explanations, no markdown, no text outside JSON).
Each question MUST include ALL of these fields:
- type: Must be one of "yes-no", "multiple-choice-single", "multiple-choice-multi", "scale", or "rating"
- question: The actual question text
- options: Array of string options (include for multiple-choice and scale questions, omit for yes-no)
- correctAnswer: The correct answer as a string (yes-no and multiple-choice-single; must match an option exactly)
- correctAnswers: Array of the correct options (multiple-choice-multi only)
- difficulty: Must be one of "easy", "medium", or "hard"
- weight: A number between 1-10 representing the question's importance

{
  "questions": [
    {
      "type": "yes-no" | "multiple-choice-single" | "multiple-choice-multi" | "scale" | "rating",
      "question": string,
      "options": string[] (optional),
      "correctAnswer": string (optional),
      "correctAnswers": string[] (optional),
      "difficulty": "easy" | "medium" | "hard",
      "weight": number
    }
  ]
}

Generate exactly {count} diverse questions based on the content below.

Content Section:"""


def fast_token_estimate(text: str) -> int:
    """Character-count heuristic."""
    return int(len(text) // 3.8)


def clamp_content(text: str, max_tokens: int = settings.Q_INPUT_TOKEN_CAP) -> str:
    if fast_token_estimate(text) <= max_tokens:
        return text
    cut = int(max_tokens * 3.8)
    logger.info("Trimming source text from %d to %d chars for the question prompt", len(text), cut)
    return text[:cut]


def clamp_count(count) -> int:
    try:
        n = int(count)
    except (TypeError, ValueError):
        n = DEFAULT_COUNT
    return min(MAX_QUESTIONS, max(1, n))


def _clamp_weight(w) -> float:
    try:
        w = float(w)
    except (TypeError, ValueError):
        return DEFAULT_GEN_WEIGHT
    if not math.isfinite(w) or w <= 0:
        return DEFAULT_GEN_WEIGHT
    lo, hi = WEIGHT_RANGE
    return min(hi, max(lo, w))


def build_questions(items: list) -> list[Question]:
    """Validate raw question dicts, give each a fresh id, drop what can't be used."""
    out = []
    for i, raw in enumerate(items, start=1):
        if not isinstance(raw, dict):
            logger.warning("Skipping question %d: not an object", i)
            continue
        qtype = normalize_type(raw.get("type"))
        if qtype is None:
            logger.warning("Skipping question %d: unknown type %r", i, raw.get("type"))
            continue
        data = dict(raw)
        data["id"] = str(uuid4())
        data["type"] = qtype.value
        data["weight"] = _clamp_weight(raw.get("weight"))
        try:
            q = Question.model_validate(data)
        except ValidationError as e:
            logger.warning("Skipping question %d: %d validation error(s)", i, e.error_count())
            continue
        if not q.question.strip():
            logger.warning("Skipping question %d: empty text", i)
            continue
        if qtype in (QuestionType.SINGLE, QuestionType.MULTI) and not q.options:
            logger.warning("Skipping question %d: choice question without options", i)
            continue
        out.append(q)
    return out


def generate_questions(client: ChatClient | None, content: str, count: int = DEFAULT_COUNT) -> list[Question]:
    """
    Ask the model for ``count`` questions about ``content``.

    A reply that cannot be parsed yields an empty list; a missing client or a
    failed request raises ``ProviderUnavailable``.
    """
    client = require_client(client)
    n = clamp_count(count)
    instruction = QUESTION_PROMPT.replace("{count}", str(n))
    reply = client.complete(instruction, clamp_content(content or ""), max_tokens=settings.Q_OUTPUT_TOKENS)
    try:
        data = parse_json_object(reply)
    except MalformedProviderResponse as e:
        logger.error("Question generation returned malformed JSON: %s", e.detail)
        return []
    items = data.get("questions")
    if not isinstance(items, list):
        logger.error("Question generation reply has no 'questions' list")
        return []
    questions = build_questions(items)
    if len(questions) != n:
        logger.info("Requested %d questions, kept %d", n, len(questions))
    return questions[:n]


def generate_test(store, client: ChatClient | None, document_id: str, count: int = DEFAULT_COUNT) -> dict:
    """Generate questions for a stored document and keep them as a new test."""
    doc = store.get_document(document_id)
    if doc is None or not doc.original_content:
        raise DocumentNotFound(ERR["document_not_found"], document_id)
    questions = generate_questions(client, doc.original_content, count)
    test = StoredTest(id=f"test_{uuid4().hex}", document_id=document_id, questions=questions)
    store.put_test(test)
    return {
        "testId": test.id,
        "documentId": document_id,
        "questions": [q.to_wire() for q in questions],
    }
