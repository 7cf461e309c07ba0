# studyquiz/llm.py
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from . import config
from .errors import MalformedResponseError, ServiceError

logger = logging.getLogger(__name__)

# single attempt, no retry; long enough for a 4k-token completion
REQUEST_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


@dataclass(frozen=True)
class GenerationParams:
    temperature: float
    top_k: int
    top_p: float
    max_output_tokens: int

    def as_config(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }


def load_client(api_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    """
    Build the HTTP client for the text-completion endpoint.
    The key travels as the `key` query parameter; without one every call fails fast.
    """
    key = api_key if api_key is not None else config.GEMINI_API_KEY
    params = {"key": key} if key else {}
    return httpx.AsyncClient(
        base_url=config.GEMINI_API_BASE,
        params=params,
        headers={"Content-Type": "application/json"},
        timeout=REQUEST_TIMEOUT,
        transport=transport,
    )


def build_request_body(prompt: str, params: GenerationParams) -> Dict[str, Any]:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": params.as_config(),
    }


def extract_candidate_text(data: Any) -> str:
    """Pull candidates[0].content.parts[0].text out of a response body."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise MalformedResponseError("Unexpected response structure from AI service")
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponseError("No text in AI service response")
    return text


async def generate(client: httpx.AsyncClient, prompt: str, params: GenerationParams, model: Optional[str] = None) -> str:
    """
    Send one prompt and return the text of the first candidate.
    Raises ServiceError on transport failure or non-2xx status,
    MalformedResponseError when the envelope is not the expected shape.
    """
    if "key" not in client.params:
        raise ServiceError("GEMINI_API_KEY is not configured")

    path = f"/models/{model or config.GEMINI_MODEL}:generateContent"
    logger.info("Requesting completion from %s (prompt chars=%d)", path, len(prompt))
    try:
        resp = await client.post(path, json=build_request_body(prompt, params))
    except httpx.HTTPError as e:
        raise ServiceError(f"AI service request failed: {e.__class__.__name__}") from e

    if resp.is_error:
        logger.error("AI service error %s: %s", resp.status_code, resp.text[:500])
        raise ServiceError(f"AI service error: {resp.status_code}", status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as e:
        raise MalformedResponseError("AI service returned a non-JSON body") from e

    text = extract_candidate_text(data)
    logger.debug("Extracted %d chars from AI response", len(text))
    return text
