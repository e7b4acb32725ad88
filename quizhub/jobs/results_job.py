import logging
from typing import List, Optional
from sqlalchemy import select
from quizhub.core import database
from quizhub.models import orm
from quizhub.models.quiz import Quiz, UserAnswer
from quizhub.services.results import record_result

logger = logging.getLogger(__name__)

def persist_result_job(user_id: str, quiz: dict, answers: List[dict], time_spent: Optional[int] = None):
    """
    Store a finished attempt. `quiz` is the snapshot the session was graded
    against; answers are regraded from it, so later edits to the quiz do not
    change the stored score.
    """
    snapshot = Quiz(**quiz)
    db = database.SessionLocal()
    try:
        if db.get(orm.Quiz, snapshot.id) is None:
            logger.error(f"Result for user {user_id} dropped: quiz {snapshot.id} no longer exists")
            return None
        live = set(db.scalars(select(orm.Question.id).where(orm.Question.quiz_id == snapshot.id)).all())
        progress = record_result(db, user_id, snapshot, [UserAnswer(**a) for a in answers], time_spent, live_questions=live)
        return progress.id
    except Exception:
        db.rollback()
        logger.exception(f"Failed to persist result for user {user_id} on quiz {snapshot.id}")
        raise
    finally:
        db.close()
