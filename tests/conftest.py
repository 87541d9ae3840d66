import pytest

from docquiz.errors import ProviderUnavailable
from docquiz.models import Question
from docquiz.store import DocumentStore


class FakeChatClient:
    """Stands in for ChatClient: returns canned replies in order and records prompts."""

    def __init__(self, replies=None, fail=False):
        self.replies = list(replies or [])
        self.fail = fail
        self.calls = []

    def complete(self, instruction, content="", *, model=None, max_tokens=1024, temperature=None):
        self.calls.append({"instruction": instruction, "content": content, "max_tokens": max_tokens})
        if self.fail:
            raise ProviderUnavailable("The language model request failed", "simulated outage")
        if not self.replies:
            return ""
        reply = self.replies.pop(0)
        if callable(reply):
            return reply(instruction, content)
        return reply


@pytest.fixture
def fake_client():
    return FakeChatClient


@pytest.fixture
def store(tmp_path):
    with DocumentStore(str(tmp_path / "stores.json")) as s:
        yield s


@pytest.fixture
def make_question():
    def _make(**kw) -> Question:
        data = {"id": "q1", "type": "yes-no", "question": "Is water wet?"}
        data.update(kw)
        return Question.model_validate(data)
    return _make
