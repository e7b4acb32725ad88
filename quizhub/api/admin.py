import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func, select
from quizhub.core.database import get_db
from quizhub.core.auth import Capability, Role, TokenData, require_capability
from quizhub.models.orm import Profile, Question, QuestionOption, Quiz, UserProgress
from quizhub.models.quiz import Difficulty, QuestionType
from quizhub.services.results import QuizAnalytics, SiteStats, quiz_analytics, site_stats
from quizhub.api.quizzes import QuizSummary, summarize

router = APIRouter()
logger = logging.getLogger(__name__)
quiz_admin = require_capability(Capability.MANAGE_QUIZZES)
user_admin = require_capability(Capability.MANAGE_USERS)
reporter = require_capability(Capability.VIEW_REPORTS)

def _now(): return datetime.now(timezone.utc)

# ---------- quizzes ----------

class QuizIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field(min_length=1, max_length=100)
    difficulty: Difficulty
    time_limit: Optional[int] = Field(default=None, ge=1)
    show_answers: bool = True
    is_active: bool = True
    image_url: Optional[str] = None
    tags: List[str] = []

class AdminQuizRow(QuizSummary):
    question_count: int
    attempt_count: int

def _apply(quiz: Quiz, payload: QuizIn):
    data = payload.model_dump()
    data["difficulty"] = payload.difficulty.value
    data["tags"] = [t.strip() for t in payload.tags if t.strip()]
    for k, v in data.items(): setattr(quiz, k, v)

def _quiz_or_404(db: Session, quiz_id: str) -> Quiz:
    q = db.get(Quiz, quiz_id)
    if not q: raise HTTPException(404, "Quiz not found")
    return q

@router.get("/stats", response_model=SiteStats, dependencies=[Depends(reporter)])
def stats(db: Session = Depends(get_db)):
    return site_stats(db)

@router.get("/quizzes", response_model=List[AdminQuizRow], dependencies=[Depends(quiz_admin)])
def all_quizzes(db: Session = Depends(get_db)):
    qcount = dict(db.execute(select(Question.quiz_id, func.count()).group_by(Question.quiz_id)).all())
    pcount = dict(db.execute(select(UserProgress.quiz_id, func.count()).group_by(UserProgress.quiz_id)).all())
    quizzes = db.scalars(select(Quiz).order_by(Quiz.created_at.desc())).all()
    return [AdminQuizRow(**summarize(q).model_dump(), question_count=qcount.get(q.id, 0), attempt_count=pcount.get(q.id, 0)) for q in quizzes]

@router.post("/quizzes", response_model=QuizSummary, status_code=201)
def create_quiz(payload: QuizIn, user: TokenData = Depends(quiz_admin), db: Session = Depends(get_db)):
    q = Quiz(created_by=user.sub)
    _apply(q, payload)
    db.add(q); db.commit(); db.refresh(q)
    logger.info(f"Quiz {q.id} created by {user.sub}")
    return summarize(q)

@router.put("/quizzes/{quiz_id}", response_model=QuizSummary, dependencies=[Depends(quiz_admin)])
def update_quiz(quiz_id: str, payload: QuizIn, db: Session = Depends(get_db)):
    q = _quiz_or_404(db, quiz_id)
    _apply(q, payload); q.updated_at = _now()
    db.commit(); db.refresh(q)
    return summarize(q)

@router.delete("/quizzes/{quiz_id}", status_code=204, dependencies=[Depends(quiz_admin)])
def delete_quiz(quiz_id: str, db: Session = Depends(get_db)):
    q = _quiz_or_404(db, quiz_id)
    for p in db.scalars(select(UserProgress).where(UserProgress.quiz_id == quiz_id)).all(): db.delete(p)
    db.delete(q); db.commit()
    logger.info(f"Quiz {quiz_id} deleted")
    return Response(status_code=204)

class AnalyticsOut(BaseModel):
    quiz: QuizSummary
    analytics: QuizAnalytics
    completions: List[dict]

@router.get("/quizzes/{quiz_id}/analytics", response_model=AnalyticsOut, dependencies=[Depends(reporter)])
def analytics(quiz_id: str, db: Session = Depends(get_db)):
    q = _quiz_or_404(db, quiz_id)
    data = quiz_analytics(db, quiz_id)
    names = {p.id: (p.name, p.email) for p in db.scalars(select(Profile).where(Profile.id.in_({c.user_id for c in data["completions"]}))).all()} if data["completions"] else {}
    completions = [
        {"id": c.id, "user_id": c.user_id, "name": names.get(c.user_id, (None, None))[0], "email": names.get(c.user_id, (None, None))[1],
         "score": c.score, "time_spent": c.time_spent, "completed_at": c.completed_at.isoformat()}
        for c in data["completions"]
    ]
    return AnalyticsOut(quiz=summarize(q), analytics=data["analytics"], completions=completions)

# ---------- questions ----------

class OptionIn(BaseModel):
    text: str = Field(min_length=1)
    is_correct: bool = False
    image_url: Optional[str] = None

class QuestionIn(BaseModel):
    type: QuestionType
    question: str = Field(min_length=1)
    explanation: Optional[str] = None
    image_url: Optional[str] = None
    points: int = Field(default=1, ge=0)
    order_index: Optional[int] = Field(default=None, ge=0)
    options: List[OptionIn] = Field(min_length=2)

    @model_validator(mode="after")
    def check_answer_key(self):
        correct = sum(1 for o in self.options if o.is_correct)
        if correct == 0: raise ValueError("At least one option must be correct")
        if self.type in (QuestionType.SINGLE, QuestionType.TRUE_FALSE) and correct != 1:
            raise ValueError(f"A {self.type.value} question needs exactly one correct option")
        if self.type == QuestionType.TRUE_FALSE and len(self.options) != 2:
            raise ValueError("A truefalse question has exactly two options")
        return self

class OptionOut(BaseModel):
    id: str; text: str; is_correct: bool; image_url: Optional[str] = None

class QuestionAdminOut(BaseModel):
    id: str; quiz_id: str; type: QuestionType; question: str; explanation: Optional[str] = None
    image_url: Optional[str] = None; points: int; order_index: int; options: List[OptionOut]

def _question_out(q: Question) -> QuestionAdminOut:
    return QuestionAdminOut(id=q.id, quiz_id=q.quiz_id, type=q.type, question=q.question, explanation=q.explanation,
                            image_url=q.image_url, points=q.points, order_index=q.order_index,
                            options=[OptionOut(id=o.id, text=o.text, is_correct=o.is_correct, image_url=o.image_url) for o in q.options])

def _fill(q: Question, payload: QuestionIn):
    q.type = payload.type.value; q.question = payload.question; q.explanation = payload.explanation
    q.image_url = payload.image_url; q.points = payload.points
    q.options = [QuestionOption(text=o.text, is_correct=o.is_correct, image_url=o.image_url, position=i) for i, o in enumerate(payload.options)]

@router.get("/quizzes/{quiz_id}/questions", response_model=List[QuestionAdminOut], dependencies=[Depends(quiz_admin)])
def list_questions(quiz_id: str, db: Session = Depends(get_db)):
    return [_question_out(q) for q in _quiz_or_404(db, quiz_id).questions]

@router.post("/quizzes/{quiz_id}/questions", response_model=QuestionAdminOut, status_code=201, dependencies=[Depends(quiz_admin)])
def create_question(quiz_id: str, payload: QuestionIn, db: Session = Depends(get_db)):
    quiz = _quiz_or_404(db, quiz_id)
    order = payload.order_index
    if order is None:
        order = (db.scalar(select(func.max(Question.order_index)).where(Question.quiz_id == quiz_id)) or 0) + (1 if quiz.questions else 0)
    q = Question(quiz_id=quiz_id, order_index=order)
    _fill(q, payload)
    db.add(q); db.commit(); db.refresh(q)
    return _question_out(q)

@router.put("/questions/{question_id}", response_model=QuestionAdminOut, dependencies=[Depends(quiz_admin)])
def update_question(question_id: str, payload: QuestionIn, db: Session = Depends(get_db)):
    q = db.get(Question, question_id)
    if not q: raise HTTPException(404, "Question not found")
    # options are replaced wholesale; old ids become invalid
    _fill(q, payload)
    if payload.order_index is not None: q.order_index = payload.order_index
    db.commit(); db.refresh(q)
    return _question_out(q)

@router.delete("/questions/{question_id}", status_code=204, dependencies=[Depends(quiz_admin)])
def delete_question(question_id: str, db: Session = Depends(get_db)):
    q = db.get(Question, question_id)
    if not q: raise HTTPException(404, "Question not found")
    db.delete(q); db.commit()
    return Response(status_code=204)

# ---------- users ----------

class UserRow(BaseModel):
    id: str; email: str; name: str; role: Role; created_at: Optional[datetime] = None

class RoleUpdate(BaseModel):
    role: Role

def _user_row(p: Profile) -> UserRow:
    return UserRow(id=p.id, email=p.email, name=p.name, role=Role(p.role), created_at=p.created_at)

@router.get("/users", response_model=List[UserRow], dependencies=[Depends(user_admin)])
def all_users(db: Session = Depends(get_db)):
    return [_user_row(p) for p in db.scalars(select(Profile).order_by(Profile.created_at.desc())).all()]

@router.put("/users/{user_id}/role", response_model=UserRow)
def update_role(user_id: str, payload: RoleUpdate, admin: TokenData = Depends(user_admin), db: Session = Depends(get_db)):
    p = db.get(Profile, user_id)
    if not p: raise HTTPException(404, "User not found")
    if user_id == admin.sub and payload.role != Role.ADMIN: raise HTTPException(409, "Admins cannot demote themselves")
    p.role = payload.role.value; p.updated_at = _now()
    db.commit(); db.refresh(p)
    logger.info(f"User {user_id} role set to {payload.role.value} by {admin.sub}")
    return _user_row(p)

@router.delete("/users/{user_id}", status_code=204)
def delete_user(user_id: str, admin: TokenData = Depends(user_admin), db: Session = Depends(get_db)):
    p = db.get(Profile, user_id)
    if not p: raise HTTPException(404, "User not found")
    if user_id == admin.sub: raise HTTPException(409, "Admins cannot delete themselves")
    for row in db.scalars(select(UserProgress).where(UserProgress.user_id == user_id)).all(): db.delete(row)
    db.delete(p); db.commit()
    logger.info(f"User {user_id} deleted by {admin.sub}")
    return Response(status_code=204)
