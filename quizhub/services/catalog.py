from typing import List, Optional
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select
from quizhub.models import orm
from quizhub.models.quiz import Option, Question, Quiz

def to_domain(q: orm.Quiz) -> Quiz:
    questions = [
        Question(
            id=qq.id, quiz_id=q.id, type=qq.type, text=qq.question, image_url=qq.image_url,
            explanation=qq.explanation, points=qq.points, order=qq.order_index,
            options=[Option(id=o.id, text=o.text, image_url=o.image_url) for o in qq.options],
            correct_answers=frozenset(o.id for o in qq.options if o.is_correct),
        )
        for qq in sorted(q.questions, key=lambda x: x.order_index)
    ]
    return Quiz(
        id=q.id, title=q.title, description=q.description, category=q.category, difficulty=q.difficulty,
        time_limit=q.time_limit, show_answers=bool(q.show_answers), is_active=bool(q.is_active),
        image_url=q.image_url, tags=list(q.tags or []), questions=questions,
    )

def _with_questions():
    return selectinload(orm.Quiz.questions).selectinload(orm.Question.options)

def load_quiz(db: Session, quiz_id: str, active_only: bool = True) -> Optional[Quiz]:
    stmt = select(orm.Quiz).options(_with_questions()).where(orm.Quiz.id == quiz_id)
    if active_only: stmt = stmt.where(orm.Quiz.is_active.is_(True))
    row = db.scalar(stmt)
    return to_domain(row) if row else None

def list_quizzes(db: Session, category: Optional[str] = None, difficulty: Optional[str] = None, active_only: bool = True) -> List[orm.Quiz]:
    stmt = select(orm.Quiz).order_by(orm.Quiz.created_at.desc())
    if active_only: stmt = stmt.where(orm.Quiz.is_active.is_(True))
    if category: stmt = stmt.where(orm.Quiz.category == category)
    if difficulty: stmt = stmt.where(orm.Quiz.difficulty == difficulty)
    return list(db.scalars(stmt).all())

def categories(db: Session) -> List[str]:
    stmt = select(orm.Quiz.category).where(orm.Quiz.is_active.is_(True)).distinct().order_by(orm.Quiz.category)
    return list(db.scalars(stmt).all())
