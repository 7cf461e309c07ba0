# studyquiz/agents/grader.py
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..schemas import Question, QuizResult, Topic, TopicProgress
from .quiz import choice_index, true_false_index

FINAL_EXAM_ID = "final_exam"


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_correct(q: Question, answer: Any) -> bool:
    if answer is None:
        return False
    if q.type == "fill_blank":
        return isinstance(answer, (str, int, float)) and not isinstance(answer, bool) \
            and str(answer).strip().casefold() == str(q.correct_answer).strip().casefold()
    if q.type == "true_false":
        given = true_false_index(answer)
        return given is not None and given == true_false_index(q.correct_answer)
    if q.type == "multiple_choice":
        options = q.options or []
        given = choice_index(answer, options)
        return given is not None and given == choice_index(q.correct_answer, options)
    return False


def score_answers(questions: List[Question], user_answers: Dict[str, Any]) -> Tuple[int, int, int]:
    """-> (correct, total, percentage); unanswered questions count as wrong."""
    total = len(questions)
    correct = sum(1 for q in questions if is_correct(q, user_answers.get(str(q.id))))
    score = round_half_up(correct * 100 / total) if total else 0
    return correct, total, score


def build_result(
    topic_id: str,
    quiz_id: Optional[str],
    questions: List[Question],
    user_answers: Dict[str, Any],
    is_final_exam: bool = False,
) -> QuizResult:
    """Snapshot one submitted attempt. The result owns copies of the questions."""
    answers = {str(k): v for k, v in (user_answers or {}).items()}
    correct, total, score = score_answers(questions, answers)
    return QuizResult(
        topic_id=topic_id,
        quiz_id=quiz_id or f"quiz_{int(time.time() * 1000)}",
        score=score,
        correct=correct,
        total=total,
        date=now_iso(),
        questions=[q.model_copy(deep=True) for q in questions],
        user_answers=answers,
        is_final_exam=True if is_final_exam else None,
    )


def build_final_exam_result(questions: List[Question], user_answers: Dict[str, Any]) -> QuizResult:
    return build_result(FINAL_EXAM_ID, FINAL_EXAM_ID, questions, user_answers, is_final_exam=True)

#  progress

def topic_progress(topic: Topic, results: List[Dict[str, Any]]) -> TopicProgress:
    """
    Aggregate the stored results of one topic. `results` are wire dicts in
    append order, so the last matching entry is the latest attempt.
    """
    mine = [r for r in results if r.get("topicId") == topic.id]
    if not mine:
        return TopicProgress(
            id=topic.id, name=topic.title, category=topic.difficulty,
            mastery_level=0, average_score=0, last_attempt_score=0, last_studied=None,
            quiz_count=0, total_quizzes=0, completed_quizzes=[],
        )
    average = round_half_up(sum(r.get("score", 0) for r in mine) / len(mine))
    last = mine[-1]
    return TopicProgress(
        id=topic.id,
        name=topic.title,
        category=topic.difficulty,
        mastery_level=average,
        average_score=average,
        last_attempt_score=last.get("score", 0),
        last_studied=last.get("date"),
        quiz_count=len(mine),
        total_quizzes=len(mine),
        completed_quizzes=[r.get("quizId", "") for r in mine],
    )


def progress_report(topics: List[Topic], results: List[Dict[str, Any]]) -> Dict[str, Any]:
    progress = [topic_progress(t, results) for t in topics]
    overall = round_half_up(sum(p.mastery_level for p in progress) / len(progress)) if progress else 0
    return {
        "topics": [p.model_dump(by_alias=True) for p in progress],
        "overallProgress": overall,
    }
