# studyquiz/agents/topics.py
import logging
import string
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ValidationError
from ..llm import GenerationParams
from ..schemas import DIFFICULTIES
from .pipeline import GenerationConfig, run_generation

logger = logging.getLogger(__name__)

QUIZZES_PER_TOPIC = 5

TOPICS_PROMPT_TPL = string.Template("\n".join([
    "You are an expert educator analyzing a document to create focused learning topics.",
    "",
    "CRITICAL REQUIREMENTS:",
    "1. Generate topics ONLY from the provided document content - do not create topics not mentioned",
    "2. Each topic must be a genuine, meaningful concept from the document",
    "3. Topics should be specific and focused, not generic or vague",
    "4. Avoid creating topics that are too broad or don't relate to the actual content",
    "5. Each topic should represent a distinct learning objective that can be tested",
    "",
    "USER REQUESTED TOPICS: $user_topics",
    "",
    "Generate exactly $count learning topics based on the user's request. Each topic should:",
    "- Be directly related to the user's requested topics",
    "- Represent a specific, testable concept",
    "- Have a clear, descriptive title",
    "- Include a brief description of what will be learned",
    "- Be at an appropriate difficulty level (Beginner/Intermediate/Advanced)",
    "",
    "Return the topics in this exact JSON format:",
    "{",
    '  "topics": [',
    "    {",
    '      "id": "topic_1",',
    '      "title": "Specific topic title",',
    '      "description": "Brief description of what this topic covers",',
    '      "difficulty": "Beginner",',
    '      "keyConcepts": ["concept1", "concept2"]',
    "    }",
    "  ]",
    "}",
]))


def parse_user_topics(user_topics: Optional[str]) -> List[str]:
    """'Cats, Dogs,, Birds ' -> ['Cats', 'Dogs', 'Birds']"""
    return [t.strip() for t in (user_topics or "").split(",") if t.strip()]


def _difficulty(v: Any) -> Optional[str]:
    if not isinstance(v, str):
        return None
    for d in DIFFICULTIES:
        if d.lower() == v.strip().lower():
            return d
    return None


def normalize_topics(candidates: List[Any]) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for t in candidates or []:
        if not isinstance(t, dict):
            continue
        title = t.get("title").strip() if isinstance(t.get("title"), str) else ""
        description = t.get("description").strip() if isinstance(t.get("description"), str) else ""
        difficulty = _difficulty(t.get("difficulty"))
        concepts = t.get("keyConcepts")
        if not title or not description or not difficulty or not isinstance(concepts, list):
            continue
        out.append({
            "id": str(t["id"]).strip() if t.get("id") is not None else "",
            "title": title,
            "description": description,
            "difficulty": difficulty,
            "keyConcepts": [str(c).strip() for c in concepts if str(c).strip()],
        })
    return out


def build_fallback_topics(names: List[str], count: int, start: int = 0) -> List[Dict[str, Any]]:
    """Topics for positions start .. start+count-1 of the user's list."""
    topics = []
    for pos in range(start, start + count):
        name = names[pos] if pos < len(names) else f"Topic {pos + 1}"
        topics.append({
            "id": f"fallback_{pos + 1}",
            "title": name,
            "description": f"Comprehensive coverage of {name.lower()} concepts and principles.",
            "difficulty": DIFFICULTIES[pos % 3],
            "keyConcepts": [f"{name} fundamentals", "Core concepts", "Practical applications"],
        })
    return topics


def reconcile_topics(validated: List[Dict[str, Any]], count: int, names: List[str]) -> List[Dict[str, Any]]:
    """Exactly `count` topics with unique ids; shortfall filled from the names not yet covered."""
    out = list(validated[:count])
    if len(out) < count:
        out.extend(build_fallback_topics(names, count - len(out), start=len(out)))

    seen = set()
    final = []
    for pos, t in enumerate(out, 1):
        tid = t.get("id") or ""
        if not tid or tid in seen:
            tid = f"topic_{pos}"
            suffix = 1
            while tid in seen:
                tid = f"topic_{pos}_{suffix}"
                suffix += 1
        seen.add(tid)
        final.append(dict(t, id=tid))
    return final


TOPICS_CONFIG = GenerationConfig(
    name="topics",
    template=TOPICS_PROMPT_TPL,
    response_shape="topics",
    params=GenerationParams(temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=2048),
    normalize=normalize_topics,
    fallback=lambda names, n: build_fallback_topics(names, n),
    reconcile=reconcile_topics,
    success_message="Topics generated successfully",
    fallback_message="Topics generated using fallback method",
)


async def discover_topics(client: httpx.AsyncClient, user_topics: Optional[str]) -> Dict[str, Any]:
    names = parse_user_topics(user_topics if isinstance(user_topics, str) else None)
    if not names:
        raise ValidationError("User topics are required. Please specify the topics you want to focus on.")

    logger.info("Topic discovery request: %d topics", len(names))
    outcome = await run_generation(client, TOPICS_CONFIG, len(names), names, user_topics=", ".join(names))
    return {
        "success": True,
        "topics": [dict(t, quizCount=QUIZZES_PER_TOPIC) for t in outcome.items],
        "message": outcome.message,
    }
