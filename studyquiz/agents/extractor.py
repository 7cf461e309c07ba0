# studyquiz/agents/extractor.py
"""
Best-effort recovery of a JSON payload from free-form model output.

Strategy: the greedy span from the first '{' to the last '}' wins; failing
that, the greedy span from the first '[' to the last ']'. Whatever matched is
handed to json.loads as-is. Prose and markdown fences around the payload are
ignored because they fall outside the span. Pathological output (two separate
objects, braces inside trailing prose) can mis-extract, and that is accepted.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Union

from ..errors import ExtractionError, ParseError

OBJECT_RE = re.compile(r"\{[\s\S]*\}")
ARRAY_RE = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class Extracted:
    value: Any

    def unwrap(self) -> Any:
        return self.value


@dataclass(frozen=True)
class ExtractionFailed:
    reason: str

    def unwrap(self) -> Any:
        raise ExtractionError(self.reason)


@dataclass(frozen=True)
class ParseFailed:
    reason: str
    fragment: str

    def unwrap(self) -> Any:
        raise ParseError(self.reason)


Extraction = Union[Extracted, ExtractionFailed, ParseFailed]


def extract_json(raw: str, shape: str = "questions") -> Extraction:
    """
    Locate and parse the JSON payload in `raw`.
    A bare array is wrapped as {shape: [...]} for "questions"; for "topics"
    it is returned as the bare list.
    """
    text = raw or ""
    m = OBJECT_RE.search(text)
    is_array = False
    if not m:
        m = ARRAY_RE.search(text)
        is_array = True
    if not m:
        return ExtractionFailed("No JSON structure found in response")

    fragment = m.group(0)
    try:
        parsed = json.loads(fragment)
    except ValueError as e:
        return ParseFailed(f"Invalid JSON in response: {e}", fragment[:200])

    if is_array and shape == "questions":
        return Extracted({"questions": parsed})
    return Extracted(parsed)
