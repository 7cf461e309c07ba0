# studyquiz/schemas.py
from typing import Any, Dict, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from . import config

Difficulty = Literal["Beginner", "Intermediate", "Advanced"]
QuestionType = Literal["multiple_choice", "true_false", "fill_blank"]

DIFFICULTIES = get_args(Difficulty)


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Topic(WireModel):
    id: str
    title: str
    description: str = ""
    difficulty: Difficulty = "Beginner"
    key_concepts: Optional[List[str]] = None
    quiz_count: Optional[int] = None


class Question(WireModel):
    id: int
    type: QuestionType
    question: str
    options: Optional[List[str]] = None
    correct_answer: Union[bool, int, str]
    explanation: str = ""


#  requests

class QuizRequest(WireModel):
    topic: Optional[Topic] = None
    file_content: Optional[str] = None
    question_count: int = Field(default=config.DEFAULT_QUIZ_QUESTIONS, ge=1, le=100)


class FinalExamRequest(WireModel):
    topics: Optional[List[Topic]] = None
    file_content: Optional[str] = None
    question_count: int = Field(default=config.DEFAULT_EXAM_QUESTIONS, ge=1, le=100)


class TopicsRequest(WireModel):
    user_topics: Optional[str] = None


class QuizSubmission(WireModel):
    topic_id: str
    quiz_id: Optional[str] = None
    questions: List[Question]
    # keyed by question id; JSON object keys arrive as strings
    user_answers: Dict[str, Any] = Field(default_factory=dict)


class FinalExamSubmission(WireModel):
    questions: List[Question]
    user_answers: Dict[str, Any] = Field(default_factory=dict)


class ProgressRequest(WireModel):
    topics: List[Topic] = Field(default_factory=list)


#  records

class QuizResult(WireModel):
    topic_id: str
    quiz_id: str
    score: int
    correct: int
    total: int
    date: str
    questions: List[Question]
    user_answers: Dict[str, Any]
    is_final_exam: Optional[bool] = None


class TopicProgress(WireModel):
    id: str
    name: str
    category: str
    mastery_level: int
    average_score: int
    last_attempt_score: int
    last_studied: Optional[str] = None
    quiz_count: int
    total_quizzes: int
    completed_quizzes: List[str]
