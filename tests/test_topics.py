import asyncio
import json

import pytest

from studyquiz.agents.topics import (
    build_fallback_topics, discover_topics, normalize_topics, parse_user_topics, reconcile_topics,
)
from studyquiz.errors import ValidationError

from conftest import failing_client, make_client


def topic(n, **kw):
    t = {
        "id": f"topic_{n}",
        "title": f"Topic {n}",
        "description": f"About topic {n}",
        "difficulty": "Intermediate",
        "keyConcepts": ["a", "b"],
    }
    t.update(kw)
    return t


def test_parse_user_topics():
    assert parse_user_topics(" Cats, Dogs,, Birds ,") == ["Cats", "Dogs", "Birds"]
    assert parse_user_topics("") == []
    assert parse_user_topics(None) == []


def test_normalize_requires_all_fields():
    items = [
        topic(1),
        topic(2, description=""),
        topic(3, keyConcepts=None),
        topic(4, difficulty="Expert"),
        topic(5, difficulty="advanced"),
        "junk",
    ]
    out = normalize_topics(items)
    assert [t["id"] for t in out] == ["topic_1", "topic_5"]
    assert out[1]["difficulty"] == "Advanced"


def test_fallback_topics():
    out = build_fallback_topics(["Cats", "Dogs", "Birds", "Fish"], 4)
    assert [t["id"] for t in out] == ["fallback_1", "fallback_2", "fallback_3", "fallback_4"]
    assert [t["difficulty"] for t in out] == ["Beginner", "Intermediate", "Advanced", "Beginner"]
    assert out[0]["description"] == "Comprehensive coverage of cats concepts and principles."
    assert out[0]["keyConcepts"] == ["Cats fundamentals", "Core concepts", "Practical applications"]


def test_reconcile_fills_remaining_names_with_unique_ids():
    names = ["Cats", "Dogs", "Birds"]
    out = reconcile_topics([topic(1, title="Feline behaviour")], 3, names)
    assert [t["title"] for t in out] == ["Feline behaviour", "Dogs", "Birds"]
    assert len({t["id"] for t in out}) == 3


def test_reconcile_repairs_duplicate_and_missing_ids():
    out = reconcile_topics([topic(1, id="x"), topic(2, id="x"), topic(3, id="")], 3, ["a", "b", "c"])
    ids = [t["id"] for t in out]
    assert ids[0] == "x"
    assert len(set(ids)) == 3


def test_reconcile_truncates():
    out = reconcile_topics([topic(n) for n in range(1, 6)], 2, ["a", "b"])
    assert len(out) == 2


@pytest.mark.parametrize("client_factory", [
    failing_client,
    lambda: make_client("nothing useful"),
    lambda: make_client(json.dumps({"topics": [topic(1)]})),
    lambda: make_client(json.dumps([topic(n) for n in range(1, 8)])),
])
def test_topic_count_matches_user_list(client_factory):
    res = asyncio.run(discover_topics(client_factory(), "Cats, Dogs, Birds"))
    assert res["success"] is True
    assert len(res["topics"]) == 3


def test_fallback_message():
    res = asyncio.run(discover_topics(failing_client(), "Cats"))
    assert res["message"] == "Topics generated using fallback method"
    assert res["topics"][0]["title"] == "Cats"


def test_empty_user_topics_rejected():
    with pytest.raises(ValidationError):
        asyncio.run(discover_topics(failing_client(), " , "))


def test_discovered_topics_carry_quiz_count():
    ai = make_client(json.dumps({"topics": [topic(1)]}))
    res = asyncio.run(discover_topics(ai, "Cats, Dogs"))
    assert [t["quizCount"] for t in res["topics"]] == [5, 5]
