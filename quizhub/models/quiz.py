"""
Domain models consumed by the session manager and the scorer.
"""
import enum
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, Field


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionType(str, enum.Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"
    TRUE_FALSE = "truefalse"


class Option(BaseModel):
    id: str
    text: str
    image_url: Optional[str] = None


class Question(BaseModel):
    id: str
    quiz_id: str
    type: QuestionType
    text: str
    image_url: Optional[str] = None
    explanation: Optional[str] = None
    options: List[Option] = Field(default_factory=list)
    correct_answers: FrozenSet[str] = frozenset()
    points: int = 1
    order: int = 0


class Quiz(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: str
    difficulty: Difficulty
    time_limit: Optional[int] = None  # minutes
    show_answers: bool = True
    is_active: bool = True
    image_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)

    def question(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)


class UserAnswer(BaseModel):
    question_id: str
    selected_options: FrozenSet[str]
    is_correct: bool = False
    time_spent: int = 0  # seconds
