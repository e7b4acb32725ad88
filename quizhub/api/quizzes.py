from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from quizhub.core.database import get_db
from quizhub.core.auth import Capability, require_capability
from quizhub.models.quiz import Difficulty, Question, Quiz, QuestionType
from quizhub.services import catalog

router = APIRouter()

class QuizSummary(BaseModel):
  id: str
  title: str
  description: Optional[str] = None
  category: str
  difficulty: Difficulty
  time_limit: Optional[int] = None
  show_answers: bool
  is_active: bool
  image_url: Optional[str] = None
  tags: List[str] = []
  created_at: Optional[datetime] = None

class OptionOut(BaseModel):
  id: str
  text: str
  image_url: Optional[str] = None

class QuestionOut(BaseModel):
  """A question as shown to a quiz taker: no answer key, no explanation."""
  id: str
  type: QuestionType
  text: str
  image_url: Optional[str] = None
  points: int
  order: int
  options: List[OptionOut]

class QuizDetail(QuizSummary):
  questions: List[QuestionOut]

def summarize(q) -> QuizSummary:
  return QuizSummary(id=q.id, title=q.title, description=q.description, category=q.category, difficulty=q.difficulty,
                     time_limit=q.time_limit, show_answers=bool(q.show_answers), is_active=bool(q.is_active),
                     image_url=q.image_url, tags=list(q.tags or []), created_at=getattr(q, "created_at", None))

def public_question(q: Question) -> QuestionOut:
  return QuestionOut(id=q.id, type=q.type, text=q.text, image_url=q.image_url, points=q.points, order=q.order,
                     options=[OptionOut(id=o.id, text=o.text, image_url=o.image_url) for o in q.options])

def public_quiz(quiz: Quiz) -> QuizDetail:
  return QuizDetail(**summarize(quiz).model_dump(), questions=[public_question(q) for q in quiz.questions])

@router.get("", response_model=List[QuizSummary])
def list_quizzes(category: Optional[str] = None, difficulty: Optional[Difficulty] = None, db: Session = Depends(get_db)):
  return [summarize(q) for q in catalog.list_quizzes(db, category=category, difficulty=difficulty.value if difficulty else None)]

@router.get("/categories", response_model=List[str])
def list_categories(db: Session = Depends(get_db)):
  return catalog.categories(db)

@router.get("/{quiz_id}", response_model=QuizDetail, dependencies=[Depends(require_capability(Capability.TAKE_QUIZ))])
def get_quiz(quiz_id: str, db: Session = Depends(get_db)):
  quiz = catalog.load_quiz(db, quiz_id)
  if not quiz: raise HTTPException(404, "Quiz not found")
  return public_quiz(quiz)
