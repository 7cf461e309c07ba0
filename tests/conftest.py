import json

import httpx
import pytest
from fastapi.testclient import TestClient

from studyquiz.app import app
from studyquiz.llm import load_client
from studyquiz.registry import ResultsRepository, get_client, get_repository


def gemini_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def make_client(text=None, status=200, body=None, calls=None, api_key="test-key"):
    """AI client whose endpoint answers every request with `text` (or `body`)."""
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        payload = body if body is not None else gemini_body(text)
        return httpx.Response(status, json=payload)
    return load_client(api_key=api_key, transport=httpx.MockTransport(handler))


def failing_client(calls=None):
    return make_client(status=503, body={"error": {"message": "unavailable"}}, calls=calls)


def questions_json(questions, fenced=False):
    raw = json.dumps({"questions": questions})
    if fenced:
        return f"Here is your quiz:\n```json\n{raw}\n```\nGood luck!"
    return raw


def mc(n, answer=1):
    return {
        "id": n,
        "type": "multiple_choice",
        "question": f"Which pigment absorbs light ({n})?",
        "options": ["Chlorophyll", "Keratin", "Melanin", "Hemoglobin"],
        "correctAnswer": answer,
        "explanation": "Chlorophyll captures light energy.",
    }


@pytest.fixture
def photosynthesis():
    return {"id": "t1", "title": "Photosynthesis", "description": "How plants make food", "difficulty": "Beginner"}


@pytest.fixture
def repo():
    return ResultsRepository()


@pytest.fixture
def api(repo):
    """TestClient factory; pass the AI client the app should use."""
    def _make(ai_client=None):
        ai = ai_client or failing_client()
        app.dependency_overrides[get_client] = lambda: ai
        app.dependency_overrides[get_repository] = lambda: repo
        return TestClient(app)
    yield _make
    app.dependency_overrides.clear()
