# studyquiz/agents/quiz.py
import logging
import math
import re
import string
import time
from typing import Any, Dict, List, Optional, Union

import httpx

from .. import config
from ..errors import ValidationError
from ..llm import GenerationParams
from .pipeline import GenerationConfig, run_generation

logger = logging.getLogger(__name__)

BLANK = "_____"
# known nonsense the model produces for fill-in-the-blank items
NONSENSE_PATTERNS = ("understanding understanding",)

TYPE_ALIASES = {
    "multiple_choice": "multiple_choice",
    "multiplechoice": "multiple_choice",
    "mcq": "multiple_choice",
    "true_false": "true_false",
    "truefalse": "true_false",
    "boolean": "true_false",
    "fill_blank": "fill_blank",
    "fill_in_the_blank": "fill_blank",
    "fill_in_blank": "fill_blank",
    "fillblank": "fill_blank",
}

#  prompts

_RULES = [
    "CRITICAL REQUIREMENTS:",
    "1. Generate questions ONLY from the provided content - do not ask about topics not mentioned",
    "2. Questions must be logical and make sense - avoid circular reasoning or nonsensical phrasing",
    "3. Each question should test genuine understanding, not trivial details or generic knowledge",
    "4. Fill-in-the-blank questions must ask for specific concepts, processes, or terms that actually exist in the content",
    "5. True/False questions must be based on clear, factual statements from the content",
    "6. Multiple choice questions must have plausible distractors that relate to the actual content",
]

_FORMAT = [
    "Type rules:",
    "- multiple_choice: exactly 4 options; correctAnswer is the 0-based index of the right option",
    "- true_false: no options; correctAnswer is 0 for True and 1 for False",
    f"- fill_blank: the question contains exactly one blank written as {BLANK}; correctAnswer is the missing word or phrase",
    "- every question needs a one or two sentence explanation",
    "",
    "Return ONLY the questions in this exact JSON format:",
    "{",
    '  "questions": [',
    "    {",
    '      "id": 1,',
    '      "type": "multiple_choice",',
    '      "question": "Question text here",',
    '      "options": ["Option A", "Option B", "Option C", "Option D"],',
    '      "correctAnswer": 0,',
    '      "explanation": "Why the answer is correct"',
    "    }",
    "  ]",
    "}",
]

QUIZ_PROMPT_TPL = string.Template("\n".join([
    "You are an expert educator creating a quiz for a specific learning topic.",
    "",
    *_RULES,
    "",
    "TOPIC: $title",
    "TOPIC DESCRIPTION: $description",
    "TOPIC CONTENT: $content",
    "",
    "Generate exactly $count questions using this distribution:",
    "- $mc multiple choice questions (4 options each)",
    "- $tf True/False questions",
    "- $fb fill-in-the-blank questions",
    "",
    *_FORMAT,
]))

EXAM_PROMPT_TPL = string.Template("\n".join([
    "You are an expert educator creating a comprehensive final exam based on the following document content.",
    "",
    *_RULES,
    "",
    "TOPICS COVERED: $titles",
    "",
    "DOCUMENT CONTENT:",
    "$content",
    "",
    "Generate a final exam with exactly $count questions using this distribution:",
    "- $mc multiple choice questions (4 options each)",
    "- $tf True/False questions",
    "- $fb fill-in-the-blank questions",
    "",
    *_FORMAT,
]))

#  normalization

def _text(v: Any) -> str:
    return v.strip() if isinstance(v, str) else ""


def normalize_type(v: Any) -> Optional[str]:
    key = re.sub(r"[\s\-/]+", "_", str(v or "").strip().lower())
    return TYPE_ALIASES.get(key)


def _letter_to_index(s: str) -> Optional[int]:
    m = re.match(r"^\s*([A-Za-z])\s*[\.\)\-]?\s*$", s)
    if m:
        return ord(m.group(1).upper()) - 65
    return None


def choice_index(ans: Any, options: List[str]) -> Optional[int]:
    """Index into `options` from an int, a digit string, a letter or the option text."""
    idx: Optional[int] = None
    if isinstance(ans, bool):
        return None
    if isinstance(ans, int):
        idx = ans
    elif isinstance(ans, str):
        a = ans.strip()
        idx = int(a) if a.isdigit() else _letter_to_index(a)
        if idx is None or not 0 <= idx < len(options):
            # "1990" among years, "I" among roman numerals
            idx = None
            for i, opt in enumerate(options):
                if opt.strip().lower() == a.lower():
                    idx = i
                    break
    if idx is not None and 0 <= idx < len(options):
        return idx
    return None


def true_false_index(ans: Any) -> Optional[int]:
    """True -> 0, False -> 1; ints and strings accepted when they mean the same."""
    if isinstance(ans, bool):
        return 0 if ans else 1
    if isinstance(ans, int):
        return ans if ans in (0, 1) else None
    if isinstance(ans, str):
        a = ans.strip().lower()
        if a in ("0", "true"):
            return 0
        if a in ("1", "false"):
            return 1
    return None


def blank_answer(ans: Any) -> Optional[str]:
    if isinstance(ans, bool):
        return None
    if isinstance(ans, (int, float)):
        return str(ans)
    a = _text(ans)
    return a or None


def normalize_questions(candidates: List[Any]) -> List[Dict[str, Any]]:
    """
    Filter and reshape loosely typed question objects. Discards are silent;
    survivors keep their relative order.
    """
    out: List[Dict[str, Any]] = []
    for q in candidates or []:
        if not isinstance(q, dict):
            continue

        question = _text(q.get("question"))
        explanation = _text(q.get("explanation"))
        if not question or not explanation:
            continue

        opts = q.get("options")
        if q.get("type"):
            qtype = normalize_type(q.get("type"))
        else:
            # untyped items with options are treated as multiple choice
            qtype = "multiple_choice" if isinstance(opts, list) and opts else None
        ans = q.get("correctAnswer")
        item: Dict[str, Any] = {"id": q.get("id"), "type": qtype, "question": question}

        if qtype == "fill_blank":
            if question.count(BLANK) > 1:
                continue
            if any(p in question for p in NONSENSE_PATTERNS):
                continue
            answer = blank_answer(ans)
            if answer is None:
                continue
            item["correctAnswer"] = answer
        elif qtype == "multiple_choice":
            if not isinstance(opts, list) or len(opts) != 4:
                continue
            options = [str(o).strip() for o in opts]
            idx = choice_index(ans, options)
            if idx is None:
                continue
            item["options"] = options
            item["correctAnswer"] = idx
        elif qtype == "true_false":
            idx = true_false_index(ans)
            if idx is None:
                continue
            item["correctAnswer"] = idx
        else:
            continue

        item["explanation"] = explanation
        out.append(item)
    return out

#  fallback

TRUE_FALSE_STATEMENTS = [
    "$title involves specific processes as described in the document.",
    "The mechanisms of $title require energy input to function properly.",
    "$title operates through a series of coordinated steps.",
    "Understanding $title is essential for grasping the overall concept.",
]
BLANK_NOUNS = ["process", "mechanism", "function", "structure", "component"]
MC_ASPECTS = ["primary function", "key characteristic", "essential component", "operating mechanism"]


def _topic_title(topic: Any) -> str:
    if isinstance(topic, dict):
        return _text(topic.get("title"))
    return _text(getattr(topic, "title", None))


def build_fallback_questions(topics: Union[Dict[str, Any], List[Any]], count: int) -> List[Dict[str, Any]]:
    """
    Deterministic questions templated from topic titles.
    The running id (1-based, whole batch) picks the type: (id - 1) % 3 gives
    0 true_false, 1 fill_blank, 2 multiple_choice. The correct answer is always
    index 0 for true_false and multiple_choice, and the lower-cased title for
    fill_blank.
    """
    if isinstance(topics, dict) or not isinstance(topics, list):
        topics = [topics]
    titles = [t for t in (_topic_title(x) for x in topics) if t]
    if count <= 0 or not titles:
        return []

    per_topic = math.ceil(count / len(titles))
    questions: List[Dict[str, Any]] = []
    qid = 1
    for title in titles:
        lower = title.lower()
        for i in range(per_topic):
            if qid > count:
                break
            kind = (qid - 1) % 3
            if kind == 0:
                statement = string.Template(TRUE_FALSE_STATEMENTS[i % len(TRUE_FALSE_STATEMENTS)]).substitute(title=title)
                questions.append({
                    "id": qid,
                    "type": "true_false",
                    "question": f"True or False: {statement}",
                    "correctAnswer": 0,
                    "explanation": f"This statement is true based on the document content about {title}.",
                })
            elif kind == 1:
                noun = BLANK_NOUNS[i % len(BLANK_NOUNS)]
                questions.append({
                    "id": qid,
                    "type": "fill_blank",
                    "question": f"Complete: The {noun} of {BLANK} is essential to the study of {title}.",
                    "correctAnswer": lower,
                    "explanation": f"The {noun} of {title} is fundamental to the topic as described.",
                })
            else:
                aspect = MC_ASPECTS[i % len(MC_ASPECTS)]
                questions.append({
                    "id": qid,
                    "type": "multiple_choice",
                    "question": f"What is the {aspect} of {title} according to the document?",
                    "options": [
                        f"To perform {lower} processes",
                        "To regulate other systems",
                        "To provide structural support",
                        "To transport materials",
                    ],
                    "correctAnswer": 0,
                    "explanation": f"This question focuses on the {aspect} of {title} as described in the document.",
                })
            qid += 1
    return questions[:count]

#  reconciliation

def reconcile_questions(validated: List[Dict[str, Any]], count: int, topics: Any) -> List[Dict[str, Any]]:
    """Top up from the fallback generator, cut to `count`, renumber ids 1..count."""
    out = list(validated)
    if len(out) < count:
        out.extend(build_fallback_questions(topics, count - len(out)))
    return [dict(q, id=i) for i, q in enumerate(out[:count], 1)]


def tracking_ids(n: int, prefix: str = "exam", now_ms: Optional[int] = None) -> List[str]:
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return [f"{prefix}_{stamp}_{i}" for i in range(1, n + 1)]

#  pipeline configs

QUESTION_PARAMS = GenerationParams(temperature=0.9, top_k=40, top_p=0.95, max_output_tokens=4096)

QUIZ_CONFIG = GenerationConfig(
    name="quiz",
    template=QUIZ_PROMPT_TPL,
    response_shape="questions",
    params=QUESTION_PARAMS,
    normalize=normalize_questions,
    fallback=build_fallback_questions,
    reconcile=reconcile_questions,
    distribution=(3, 1, 1),
    success_message="Quiz generated successfully",
    fallback_message="Quiz generated using fallback method",
)

EXAM_CONFIG = GenerationConfig(
    name="final_exam",
    template=EXAM_PROMPT_TPL,
    response_shape="questions",
    params=QUESTION_PARAMS,
    normalize=normalize_questions,
    fallback=build_fallback_questions,
    reconcile=reconcile_questions,
    distribution=(10, 5, 5),
    success_message="Final exam generated successfully",
    fallback_message="Final exam generated using fallback method",
)

#  entry points

def _require_content(file_content: Optional[str]) -> str:
    if not isinstance(file_content, str) or not file_content.strip():
        raise ValidationError("File content must be a non-empty string")
    return file_content


async def generate_quiz(
    client: httpx.AsyncClient,
    topic: Optional[Dict[str, Any]],
    file_content: Optional[str],
    question_count: int = config.DEFAULT_QUIZ_QUESTIONS,
) -> Dict[str, Any]:
    if not topic or not file_content:
        raise ValidationError("Topic and file content are required")
    _require_content(file_content)
    if not _topic_title(topic):
        raise ValidationError("Topic title is required")

    logger.info("Quiz request: topic=%s, content chars=%d, count=%d", topic.get("id"), len(file_content), question_count)
    outcome = await run_generation(
        client, QUIZ_CONFIG, question_count, topic,
        title=topic["title"],
        description=topic.get("description") or "",
        content=file_content,
    )
    return {
        "success": True,
        "questions": outcome.items,
        "topic": topic,
        "message": outcome.message,
    }


async def generate_final_exam(
    client: httpx.AsyncClient,
    topics: Optional[List[Dict[str, Any]]],
    file_content: Optional[str],
    question_count: int = config.DEFAULT_EXAM_QUESTIONS,
) -> Dict[str, Any]:
    if not topics or not file_content:
        raise ValidationError("Topics and file content are required")
    if not isinstance(topics, list):
        raise ValidationError("Topics must be a non-empty array")
    _require_content(file_content)
    titles = [_topic_title(t) for t in topics]
    if not any(titles):
        raise ValidationError("At least one topic needs a title")

    logger.info("Final exam request: topics=%d, content chars=%d, count=%d", len(topics), len(file_content), question_count)
    outcome = await run_generation(
        client, EXAM_CONFIG, question_count, topics,
        titles=", ".join(t for t in titles if t),
        content=file_content,
    )
    return {
        "success": True,
        "exam": {
            "questions": outcome.items,
            "uniqueQuestionIds": tracking_ids(len(outcome.items)),
        },
        "message": outcome.message,
    }
