"""
Recording finished attempts and the statistics derived from them.
"""
import logging
from typing import AbstractSet, Dict, Iterable, List, Optional

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from quizhub.models import orm
from quizhub.models.quiz import Quiz, UserAnswer
from quizhub.services.scoring import regrade, score

logger = logging.getLogger(__name__)


class UserStats(BaseModel):
    quizzes_taken: int
    average_score: int
    best_score: int
    total_points: int
    total_time: int


class SiteStats(BaseModel):
    total_users: int
    total_quizzes: int
    total_questions: int
    total_completions: int
    average_score: int


class QuizAnalytics(BaseModel):
    total_attempts: int
    average_score: int
    average_time: int


def record_result(db: Session, user_id: str, quiz: Quiz, answers: Iterable[UserAnswer], time_spent: Optional[int] = None,
                  live_questions: Optional[AbstractSet[str]] = None) -> orm.UserProgress:
    """
    Persist one attempt. Correctness is always re-derived from the quiz's
    answer key before storage. Answers to questions missing from
    `live_questions` (deleted since the attempt) keep no question link.
    """
    graded = regrade(quiz, answers)
    summary = score(quiz, graded)
    if time_spent is None:
        time_spent = sum(a.time_spent for a in graded)
    progress = orm.UserProgress(
        user_id=user_id,
        quiz_id=quiz.id,
        score=summary.percent_score,
        total_questions=summary.total_questions,
        correct_answers=summary.correct_count,
        points_earned=summary.points_earned,
        time_spent=time_spent,
    )
    progress.answers = [
        orm.UserAnswer(
            question_id=a.question_id if live_questions is None or a.question_id in live_questions else None,
            selected_options=sorted(a.selected_options),
            is_correct=a.is_correct,
            time_spent=a.time_spent,
        )
        for a in graded
    ]
    db.add(progress)
    db.commit()
    db.refresh(progress)
    logger.info(f"Recorded result {progress.id} for user {user_id} on quiz {quiz.id}: {summary.percent_score}%")
    return progress


def user_progress(db: Session, user_id: str) -> List[orm.UserProgress]:
    stmt = select(orm.UserProgress).where(orm.UserProgress.user_id == user_id).order_by(orm.UserProgress.completed_at.desc())
    return list(db.scalars(stmt).all())


def _avg(values: List[int]) -> int:
    return round(sum(values) / len(values)) if values else 0


def user_stats(db: Session, user_id: str) -> UserStats:
    rows = user_progress(db, user_id)
    scores = [r.score for r in rows]
    return UserStats(
        quizzes_taken=len(rows),
        average_score=_avg(scores),
        best_score=max(scores, default=0),
        total_points=sum(r.points_earned for r in rows),
        total_time=sum(r.time_spent or 0 for r in rows),
    )


def site_stats(db: Session) -> SiteStats:
    def count(model) -> int:
        return db.scalar(select(func.count()).select_from(model)) or 0
    avg = db.scalar(select(func.avg(orm.UserProgress.score)))
    return SiteStats(
        total_users=count(orm.Profile),
        total_quizzes=count(orm.Quiz),
        total_questions=count(orm.Question),
        total_completions=count(orm.UserProgress),
        average_score=round(avg) if avg is not None else 0,
    )


def quiz_analytics(db: Session, quiz_id: str) -> Dict:
    rows = list(db.scalars(
        select(orm.UserProgress).where(orm.UserProgress.quiz_id == quiz_id).order_by(orm.UserProgress.completed_at.desc())
    ).all())
    analytics = QuizAnalytics(
        total_attempts=len(rows),
        average_score=_avg([r.score for r in rows]),
        average_time=_avg([r.time_spent or 0 for r in rows]),
    )
    return {"analytics": analytics, "completions": rows}
