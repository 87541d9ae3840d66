"""Sanitize-then-parse for LLM replies that are supposed to be JSON."""
import json
import logging
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from .errors import ERR, MalformedProviderResponse

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```", re.S)
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_PREVIEW = 200


def strip_code_fences(text: str) -> str:
    """Body of the first fenced block if there is one, else the stripped text."""
    s = (text or "").strip()
    m = _FENCE_RE.search(s)
    if m:
        return m.group(1).strip()
    # unterminated fence: drop the opener
    if s.startswith("```"):
        s = re.sub(r"^```[ \t]*(?:json|JSON)?", "", s).strip()
    return s


def _malformed(detail: str, raw: str) -> MalformedProviderResponse:
    preview = (raw or "")[:_PREVIEW]
    return MalformedProviderResponse(ERR["malformed_response"], f"{detail} (raw: {preview!r})", raw=raw or "")


def parse_json_object(text: str) -> dict:
    s = strip_code_fences(text)
    if not s:
        raise _malformed("empty response", text)
    try:
        data = json.loads(s)
    except json.JSONDecodeError:
        # prose around the object: retry on the outermost {...}
        m = _OBJECT_RE.search(s)
        if not m:
            raise _malformed("no JSON object found", text)
        try:
            data = json.loads(m.group(0))
        except json.JSONDecodeError as e:
            raise _malformed(f"invalid JSON: {e.msg}", text) from e
    if not isinstance(data, dict):
        raise _malformed(f"expected a JSON object, got {type(data).__name__}", text)
    return data


def parse_model(text: str, model_cls: type[M]) -> M:
    data = parse_json_object(text)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise _malformed(f"schema mismatch for {model_cls.__name__}: {e.error_count()} error(s)", text) from e
