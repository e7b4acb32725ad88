from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy import select
from quizhub.core.database import get_db
from quizhub.core.auth import Capability, TokenData, require_capability
from quizhub.models.orm import Quiz
from quizhub.services.results import UserStats, user_progress, user_stats

router = APIRouter()
viewer = require_capability(Capability.VIEW_OWN_PROGRESS)

class ProgressRow(BaseModel):
    id: str
    quiz_id: str
    quiz_title: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    score: int
    total_questions: int
    correct_answers: int
    points_earned: int
    time_spent: int
    completed_at: datetime

@router.get("", response_model=List[ProgressRow])
def my_progress(user: TokenData = Depends(viewer), db: Session = Depends(get_db)):
    rows = user_progress(db, user.sub)
    quizzes = {q.id: q for q in db.scalars(select(Quiz).where(Quiz.id.in_({r.quiz_id for r in rows}))).all()} if rows else {}
    out = []
    for r in rows:
        q = quizzes.get(r.quiz_id)
        out.append(ProgressRow(id=r.id, quiz_id=r.quiz_id, quiz_title=q.title if q else None, category=q.category if q else None,
                               difficulty=q.difficulty if q else None, score=r.score, total_questions=r.total_questions,
                               correct_answers=r.correct_answers, points_earned=r.points_earned, time_spent=r.time_spent or 0,
                               completed_at=r.completed_at))
    return out

@router.get("/stats", response_model=UserStats)
def my_stats(user: TokenData = Depends(viewer), db: Session = Depends(get_db)):
    return user_stats(db, user.sub)
