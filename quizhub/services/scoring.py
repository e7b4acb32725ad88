from typing import Dict, Iterable, List
from pydantic import BaseModel
from quizhub.models.quiz import Question, Quiz, UserAnswer

class ScoreSummary(BaseModel):
  correct_count: int
  total_questions: int
  percent_score: int
  points_earned: int

BADGES = [(90, "Excellent"), (80, "Great"), (70, "Good"), (60, "Average")]

def grade(question: Question, selected: Iterable[str]) -> bool:
  # exact set match for every question type; a superset is wrong
  return frozenset(selected) == frozenset(question.correct_answers)

def regrade(quiz: Quiz, answers: Iterable[UserAnswer]) -> List[UserAnswer]:
  """Re-derive correctness from the answer key, one answer per known question (last wins)."""
  latest: Dict[str, UserAnswer] = {}
  for a in answers:
    q = quiz.question(a.question_id)
    if q is None: continue
    latest[a.question_id] = a.model_copy(update={"is_correct": grade(q, a.selected_options)})
  return list(latest.values())

def score(quiz: Quiz, answers: Iterable[UserAnswer]) -> ScoreSummary:
  graded = regrade(quiz, answers)
  correct = [a for a in graded if a.is_correct]
  total = len(quiz.questions)
  # half rounds up (12.5 -> 13), integer arithmetic to avoid float drift
  percent = (200 * len(correct) + total) // (2 * total) if total else 0
  points = sum(quiz.question(a.question_id).points for a in correct)
  return ScoreSummary(correct_count=len(correct), total_questions=total, percent_score=percent, points_earned=points)

def score_badge(percent: int) -> str:
  return next((name for floor, name in BADGES if percent >= floor), "Needs Improvement")
