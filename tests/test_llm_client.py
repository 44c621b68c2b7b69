import pytest

from config import settings
from core import llm_client
from core.llm_client import Failure, Success, _Collaborator, build_collaborator, extract_first_json


class ScriptedCollaborator(_Collaborator):
    """Replays raw responses; an Exception instance is raised instead."""

    ENGINE = "scripted"
    MODEL = "test-model"

    def __init__(self, *responses, max_retries=2):
        super().__init__(timeout=1, max_retries=max_retries)
        self.responses = list(responses)
        self.calls = 0

    def _call(self, system_prompt, user_message):
        self.calls += 1
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(llm_client.time, "sleep", lambda seconds: None)


@pytest.mark.parametrize("text, expected", [
    ('{"a": 1}', {"a": 1}),
    ('Sure! Here it is:\n```json\n{"a": [1, 2]}\n```\nEnjoy.', {"a": [1, 2]}),
    ("[1, 2] and more", [1, 2]),
    ('{not json} then {"ok": true}', {"ok": True}),
    ("no json here", None),
    ("", None),
])
def test_extract_first_json(text, expected):
    assert extract_first_json(text) == expected


def test_success_on_first_attempt():
    collab = ScriptedCollaborator('{"message": "hi"}')
    result = collab.request_json("system", "user")
    assert result == Success({"message": "hi"})
    assert collab.last_call["engine"] == "scripted"
    assert collab.last_call["prompt_summary"] == "user"


def test_retry_after_provider_error():
    collab = ScriptedCollaborator(TimeoutError("slow"), '{"x": 1}')
    assert collab.request_json("s", "u") == Success({"x": 1})
    assert collab.calls == 2


def test_provider_errors_become_failure():
    collab = ScriptedCollaborator(TimeoutError("slow"), ConnectionError("down"))
    result = collab.request_json("s", "u")
    assert isinstance(result, Failure)
    assert "ConnectionError" in result.reason


def test_unparseable_response_becomes_failure():
    collab = ScriptedCollaborator("nope", "still nope")
    assert collab.request_json("s", "u") == Failure("response contained no JSON")


def test_build_collaborator_without_provider_or_key(monkeypatch):
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "")
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    assert build_collaborator("none") is None
    assert build_collaborator("anthropic") is None
    assert build_collaborator("openai") is None
    assert build_collaborator("mystery") is None
