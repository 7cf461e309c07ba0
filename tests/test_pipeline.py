import asyncio
import json

from studyquiz.agents.pipeline import build_prompt, candidates_from, run_generation, split_counts
from studyquiz.agents.quiz import EXAM_CONFIG, QUIZ_CONFIG, generate_final_exam, generate_quiz
from studyquiz.errors import ParseError, ServiceError

import pytest

from conftest import failing_client, make_client, mc, questions_json

PHOTO = {"id": "t1", "title": "Photosynthesis", "difficulty": "Beginner"}


@pytest.mark.parametrize("count,weights,expected", [
    (5, (3, 1, 1), [3, 1, 1]),
    (20, (10, 5, 5), [10, 5, 5]),
    (7, (3, 1, 1), [4, 2, 1]),
    (1, (3, 1, 1), [1, 0, 0]),
    (0, (3, 1, 1), [0, 0, 0]),
])
def test_split_counts(count, weights, expected):
    assert split_counts(count, weights) == expected
    assert sum(split_counts(count, weights)) == count


def test_quiz_prompt_embeds_counts_and_content():
    prompt = build_prompt(QUIZ_CONFIG, 5, title="Photosynthesis", description="Light", content="Plants cost $5 {x}")
    assert "exactly 5 questions" in prompt
    assert "- 3 multiple choice" in prompt
    assert "- 1 True/False" in prompt
    assert "- 1 fill-in-the-blank" in prompt
    assert "TOPIC: Photosynthesis" in prompt
    assert "Plants cost $5 {x}" in prompt
    assert '"questions"' in prompt


def test_exam_prompt_distribution():
    prompt = build_prompt(EXAM_CONFIG, 20, titles="A, B", content="doc")
    assert "exactly 20 questions" in prompt
    assert "- 10 multiple choice" in prompt
    assert "- 5 True/False" in prompt
    assert "TOPICS COVERED: A, B" in prompt


def test_candidates_from_shapes():
    assert candidates_from([1], "topics") == [1]
    assert candidates_from({"questions": [1, 2]}, "questions") == [1, 2]
    with pytest.raises(ParseError):
        candidates_from({"quiz": []}, "questions")


def test_ai_failure_goes_to_fallback():
    out = asyncio.run(run_generation(failing_client(), QUIZ_CONFIG, 5, PHOTO, title="P", description="", content="c"))
    assert out.used_fallback
    assert isinstance(out.error, ServiceError)
    assert out.message == "Quiz generated using fallback method"
    assert [q["id"] for q in out.items] == [1, 2, 3, 4, 5]
    assert [q["type"] for q in out.items] == ["true_false", "fill_blank", "multiple_choice", "true_false", "fill_blank"]


def test_unparseable_text_goes_to_fallback():
    out = asyncio.run(run_generation(make_client("no json here"), QUIZ_CONFIG, 3, PHOTO, title="P", description="", content="c"))
    assert out.used_fallback
    assert out.error.kind == "extraction"
    assert len(out.items) == 3


def test_fenced_object_with_short_count_is_topped_up():
    text = questions_json([mc(1), mc(2), mc(3)], fenced=True)
    out = asyncio.run(run_generation(make_client(text), QUIZ_CONFIG, 5, PHOTO, title="P", description="", content="c"))
    assert not out.used_fallback
    assert out.message == "Quiz generated successfully"
    assert [q["type"] for q in out.items] == ["multiple_choice"] * 3 + ["true_false", "fill_blank"]
    assert [q["id"] for q in out.items] == [1, 2, 3, 4, 5]


def test_request_uses_config_params():
    calls = []
    asyncio.run(run_generation(make_client(questions_json([]), calls=calls), QUIZ_CONFIG, 5, PHOTO,
                               title="P", description="", content="c"))
    body = json.loads(calls[0].content)
    assert body["generationConfig"] == {"temperature": 0.9, "topK": 40, "topP": 0.95, "maxOutputTokens": 4096}

#  entry points

def test_generate_quiz_response_shape():
    res = asyncio.run(generate_quiz(failing_client(), PHOTO, "Plants convert light.", 5))
    assert res["success"] is True
    assert res["topic"] == PHOTO
    assert len(res["questions"]) == 5
    for q in res["questions"]:
        assert q["question"] and q["explanation"]


def test_generate_final_exam_tracking_ids():
    topics = [PHOTO, {"id": "t2", "title": "Respiration"}]
    res = asyncio.run(generate_final_exam(failing_client(), topics, "doc", 20))
    exam = res["exam"]
    assert len(exam["questions"]) == 20
    assert [q["id"] for q in exam["questions"]] == list(range(1, 21))
    ids = exam["uniqueQuestionIds"]
    assert len(ids) == 20 and len(set(ids)) == 20
    assert all(i.startswith("exam_") and i.endswith(f"_{n}") for n, i in enumerate(ids, 1))
    assert res["message"] == "Final exam generated using fallback method"


def test_final_exam_with_ai_questions():
    text = questions_json([mc(n) for n in range(1, 26)])
    res = asyncio.run(generate_final_exam(make_client(text), [PHOTO], "doc", 20))
    assert len(res["exam"]["questions"]) == 20
    assert res["message"] == "Final exam generated successfully"
