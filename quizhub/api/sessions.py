import logging
from fastapi import APIRouter, HTTPException, Depends, Request, Response
from pydantic import BaseModel, Field
from typing import List, Optional
from sqlalchemy.orm import Session
from quizhub.core.database import get_db
from quizhub.core.auth import Capability, TokenData, require_capability
from quizhub.jobs.queue import get_queue
from quizhub.jobs.results_job import persist_result_job
from quizhub.services import catalog
from quizhub.services.registry import SessionRegistry
from quizhub.services.scoring import score, score_badge
from quizhub.services.session import QuizSessionManager, SessionState
from quizhub.api.quizzes import QuestionOut, public_question

router = APIRouter()
logger = logging.getLogger(__name__)
taker = require_capability(Capability.TAKE_QUIZ)

class StartSession(BaseModel):
  quiz_id: str

class AnswerSubmit(BaseModel):
  question_id: str
  selected_options: List[str] = Field(min_length=1)

class SessionOut(BaseModel):
  quiz_id: str
  quiz_title: str
  state: SessionState
  current_index: int
  total_questions: int
  timed: bool
  time_remaining: int
  current_question: Optional[QuestionOut] = None
  selected_options: List[str] = []
  answered: List[str] = []

class AnswerResult(BaseModel):
  question_id: str
  is_correct: Optional[bool] = None
  correct_options: Optional[List[str]] = None
  explanation: Optional[str] = None

class AnswerReview(BaseModel):
  question_id: str
  selected_options: List[str]
  is_correct: bool
  time_spent: int

class ResultOut(BaseModel):
  quiz_id: str
  correct_count: int
  total_questions: int
  percent_score: int
  points_earned: int
  badge: str
  time_spent: int
  answers: List[AnswerReview]
  queued: bool

def get_registry(request: Request) -> SessionRegistry:
  return request.app.state.sessions

def _active(registry: SessionRegistry, user: TokenData) -> QuizSessionManager:
  s = registry.get(user.sub)
  if s is None or s.quiz is None: raise HTTPException(404, "No active quiz session")
  return s

def _view(s: QuizSessionManager) -> SessionOut:
  q = s.current_question
  current = s.answer_for(q.id) if q else None
  return SessionOut(quiz_id=s.quiz.id, quiz_title=s.quiz.title, state=s.state, current_index=s.current_index,
                    total_questions=len(s.quiz.questions), timed=s.is_timed, time_remaining=s.time_remaining,
                    current_question=public_question(q) if q else None,
                    selected_options=sorted(current.selected_options) if current else [],
                    answered=[a.question_id for a in s.answers])

@router.post("", response_model=SessionOut, status_code=201)
def start_session(payload: StartSession, user: TokenData = Depends(taker), db: Session = Depends(get_db), registry: SessionRegistry = Depends(get_registry)):
  quiz = catalog.load_quiz(db, payload.quiz_id, active_only=False)
  if not quiz: raise HTTPException(404, "Quiz not found")
  if not quiz.is_active: raise HTTPException(409, "Quiz is not active")
  with registry.lock(user.sub):
    s = registry.get_or_create(user.sub)
    s.start(quiz)
    registry.restart_clock(user.sub)
    return _view(s)

@router.get("", response_model=SessionOut)
def get_session(user: TokenData = Depends(taker), registry: SessionRegistry = Depends(get_registry)):
  with registry.lock(user.sub):
    return _view(_active(registry, user))

@router.post("/answers", response_model=AnswerResult)
def submit_answer(payload: AnswerSubmit, user: TokenData = Depends(taker), registry: SessionRegistry = Depends(get_registry)):
  with registry.lock(user.sub):
    s = _active(registry, user)
    if not s.is_started: raise HTTPException(409, f"Session is {s.state.value}")
    answer = s.submit_answer(payload.question_id, payload.selected_options)
    if answer is None: raise HTTPException(404, "Question not found in this quiz")
    if not s.quiz.show_answers: return AnswerResult(question_id=answer.question_id)
    q = s.quiz.question(answer.question_id)
    return AnswerResult(question_id=q.id, is_correct=answer.is_correct, correct_options=sorted(q.correct_answers), explanation=q.explanation)

@router.post("/next", response_model=SessionOut)
def next_question(user: TokenData = Depends(taker), registry: SessionRegistry = Depends(get_registry)):
  with registry.lock(user.sub):
    s = _active(registry, user); s.next()
    return _view(s)

@router.post("/previous", response_model=SessionOut)
def previous_question(user: TokenData = Depends(taker), registry: SessionRegistry = Depends(get_registry)):
  with registry.lock(user.sub):
    s = _active(registry, user); s.previous()
    return _view(s)

@router.post("/complete", response_model=ResultOut)
def complete_session(user: TokenData = Depends(taker), registry: SessionRegistry = Depends(get_registry), queue=Depends(get_queue)):
  # check-enqueue-set runs under the user's lock so a second Finish click cannot record twice
  with registry.lock(user.sub):
    s = _active(registry, user)
    s.complete()
    summary = score(s.quiz, s.answers)
    queued = s.results_recorded
    if not s.results_recorded:
      # fire-and-forget; local state is already Completed whatever happens here
      try:
        # persist against the quiz the user was graded on, not its current edit
        queue.enqueue(persist_result_job, user.sub, s.quiz.model_dump(mode="json"),
                      [a.model_dump(mode="json") for a in s.answers], s.elapsed)
        s.results_recorded = queued = True
      except Exception:
        logger.exception(f"Could not queue result for user {user.sub} on quiz {s.quiz.id}")
    if queued: registry.discard(user.sub)
    return ResultOut(quiz_id=s.quiz.id, **summary.model_dump(), badge=score_badge(summary.percent_score), time_spent=s.elapsed,
                     answers=[AnswerReview(question_id=a.question_id, selected_options=sorted(a.selected_options),
                                           is_correct=a.is_correct, time_spent=a.time_spent) for a in s.answers],
                     queued=queued)

@router.delete("", status_code=204)
def reset_session(user: TokenData = Depends(taker), registry: SessionRegistry = Depends(get_registry)):
  with registry.lock(user.sub):
    s = registry.get(user.sub)
    if s is not None: s.reset()
    registry.discard(user.sub)
  return Response(status_code=204)
