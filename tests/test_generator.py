import asyncio
import json
import time

import pytest

from codeclimb.errors import ModelError, ValidationError
from codeclimb.generator import GenerationOrchestrator


class FakeModel:
    def __init__(self, response=None, error: Exception | None = None, delay: float = 0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    def invoke(self, system_prompt, user_prompt, *, temperature, max_output_tokens):
        self.calls.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            }
        )
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


QUEST_INPUT = dict(
    article_url="https://example.com/a",
    implementation_goal="build a counter",
    difficulty="EASY",
    project_context={"name": "demo", "description": "demo app"},
)


def _quest(model, **kwargs):
    orchestrator = GenerationOrchestrator(model, **kwargs)
    return asyncio.run(orchestrator.generate_quest(**QUEST_INPUT))


def test_quest_fallback_on_transport_error():
    quest = _quest(FakeModel(error=ConnectionError("connection reset")))
    assert "build a counter" in quest["title"]
    assert len(quest["steps"]) == 3
    assert "https://example.com/a" in quest["description"]


def test_quest_fallback_is_deterministic():
    first = _quest(FakeModel(error=ModelError("no key")))
    second = _quest(None)
    assert first == second
    assert [s["type"] for s in first["steps"]] == ["ARRANGE_CODE", "IMPLEMENT_CODE", "VERIFY_OUTPUT"]
    assert first["steps"][1]["description"] == "Implement the core of build a counter."


def test_quest_success_returns_model_payload():
    payload = {
        "title": "Counter with hooks",
        "description": "Learn useState",
        "steps": [{"title": "s1", "description": "d", "type": "ARRANGE_CODE", "hints": []}],
    }
    model = FakeModel(response="```json\n" + json.dumps(payload) + "\n```")
    assert _quest(model) == payload
    call = model.calls[0]
    assert "Implementation goal: build a counter" in call["user"]
    assert "Project name: demo" in call["user"]
    assert "Project description: demo app" in call["user"]
    assert call["temperature"] == 0.7
    assert call["max_output_tokens"] == 2000


@pytest.mark.parametrize(
    "response",
    [
        "",
        "   ",
        "I cannot help with that.",
        '{"title": "T", "description": "D", "steps": []}',
        '{"title": "", "description": "D", "steps": [{}]}',
        '{"title": "T", "description": "D", "steps": ["just do it"]}',
        "[]",
    ],
)
def test_quest_fallback_on_bad_output(response):
    quest = _quest(FakeModel(response=response))
    assert quest["title"] == "Implement build a counter"
    assert len(quest["steps"]) == 3


def test_quest_with_string_steps_falls_back():
    quest = _quest(FakeModel(response=json.dumps({"title": "T", "description": "D", "steps": ["just do it"]})))
    assert quest["title"] == "Implement build a counter"
    assert [s["type"] for s in quest["steps"]] == ["ARRANGE_CODE", "IMPLEMENT_CODE", "VERIFY_OUTPUT"]


def test_quest_fallback_on_timeout():
    quest = _quest(FakeModel(response='{"title": "late"}', delay=0.3), timeout_sec=0.05)
    assert quest["title"] == "Implement build a counter"


def test_quest_requires_article_url_before_calling_model():
    model = FakeModel(response="{}")
    orchestrator = GenerationOrchestrator(model)
    with pytest.raises(ValidationError) as excinfo:
        asyncio.run(orchestrator.generate_quest(**{**QUEST_INPUT, "article_url": "  "}))
    assert excinfo.value.field == "articleUrl"
    assert model.calls == []


def test_quest_rejects_unknown_difficulty():
    orchestrator = GenerationOrchestrator(FakeModel(response="{}"))
    with pytest.raises(ValidationError):
        asyncio.run(orchestrator.generate_quest(**{**QUEST_INPUT, "difficulty": "EXTREME"}))


def test_feedback_success_and_low_temperature():
    payload = {"score": 88, "feedback": "Nice", "improvements": [], "hints": [], "errors": []}
    model = FakeModel(response=json.dumps(payload))
    orchestrator = GenerationOrchestrator(model)
    out = asyncio.run(
        orchestrator.generate_code_feedback(submitted_code="x = 1", expected_code="x = 1", file_path="a.py")
    )
    assert out == payload
    assert model.calls[0]["temperature"] < 0.7
    assert "File path: a.py" in model.calls[0]["user"]


def test_feedback_fallback_on_non_numeric_score():
    orchestrator = GenerationOrchestrator(FakeModel(response='{"score": "great"}'))
    out = asyncio.run(orchestrator.generate_code_feedback(submitted_code="x = 1"))
    assert out["score"] == 50
    assert len(out["improvements"]) == 3
    assert len(out["hints"]) == 3
    assert out["errors"] == []


def test_feedback_requires_submitted_code():
    orchestrator = GenerationOrchestrator(FakeModel(response="{}"))
    with pytest.raises(ValidationError):
        asyncio.run(orchestrator.generate_code_feedback(submitted_code=""))


def test_hints_success_and_fallback():
    ok = GenerationOrchestrator(FakeModel(response='{"hints": ["a", "b", "c"]}'))
    assert asyncio.run(ok.generate_hints(step_goal="print a list")) == {"hints": ["a", "b", "c"]}

    bad = GenerationOrchestrator(FakeModel(response='{"hints": "just try"}'))
    out = asyncio.run(bad.generate_hints(step_goal="print a list", error_message="NameError"))
    assert len(out["hints"]) == 3


def test_arrangement_fallback_is_a_permutation():
    code = "a = 1\n\n    b = a + 1\n   \nprint(b)\n"
    orchestrator = GenerationOrchestrator(FakeModel(error=ModelError("down")))
    puzzle = asyncio.run(orchestrator.generate_code_arrangement(original_code=code, learning_goal="order"))
    blocks = puzzle["shuffledBlocks"]
    assert [b["code"] for b in blocks] == ["a = 1", "    b = a + 1", "print(b)"]
    assert sorted(b["correctOrder"] for b in blocks) == [1, 2, 3]
    assert [b["correctOrder"] for b in blocks] == [1, 2, 3]
    assert len({b["id"] for b in blocks}) == 3
    assert len(puzzle["hints"]) == 3


def test_arrangement_success_uses_low_temperature():
    payload = {"title": "t", "description": "d", "shuffledBlocks": [], "hints": []}
    model = FakeModel(response=json.dumps(payload))
    orchestrator = GenerationOrchestrator(model)
    assert asyncio.run(orchestrator.generate_code_arrangement(original_code="x = 1")) == payload
    assert model.calls[0]["temperature"] == 0.3
