"""
In-progress quiz state and its transitions.

A session moves NotStarted -> InProgress -> Completed. Navigation clamps at
the ends instead of raising, and the countdown completes a timed session
exactly once when it runs out.
"""
import enum
import logging
from typing import Dict, Iterable, List, Optional

from quizhub.models.quiz import Question, Quiz, UserAnswer
from quizhub.services.scoring import grade

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class QuizSessionManager:
    """Holds one user's attempt at one quiz."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.quiz: Optional[Quiz] = None
        self.current_index = 0
        self.time_remaining = 0
        self.elapsed = 0
        self.state = SessionState.NOT_STARTED
        self.results_recorded = False
        self._answers: Dict[str, UserAnswer] = {}
        self._question_entered_at = 0

    def start(self, quiz: Quiz) -> None:
        self.reset()
        self.quiz = quiz
        self.time_remaining = quiz.time_limit * 60 if quiz.time_limit else 0
        self.state = SessionState.IN_PROGRESS
        logger.info(f"Session started for quiz {quiz.id} ({len(quiz.questions)} questions, {self.time_remaining}s budget)")

    @property
    def is_started(self) -> bool:
        return self.state == SessionState.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self.state == SessionState.COMPLETED

    @property
    def is_timed(self) -> bool:
        return bool(self.quiz and self.quiz.time_limit)

    @property
    def answers(self) -> List[UserAnswer]:
        return list(self._answers.values())

    @property
    def current_question(self) -> Optional[Question]:
        if not self.quiz or not self.quiz.questions:
            return None
        return self.quiz.questions[self.current_index]

    def answer_for(self, question_id: str) -> Optional[UserAnswer]:
        return self._answers.get(question_id)

    def submit_answer(self, question_id: str, selected_options: Iterable[str]) -> Optional[UserAnswer]:
        """
        Record an answer for a question of the active quiz.

        Returns the graded answer, or None when the session is not in
        progress or the question does not belong to the quiz.
        """
        if not self.is_started:
            logger.warning(f"Answer for question {question_id} ignored: session is {self.state.value}")
            return None
        question = self.quiz.question(question_id)
        if question is None:
            logger.warning(f"Answer ignored: question {question_id} is not part of quiz {self.quiz.id}")
            return None

        selected = frozenset(selected_options)
        answer = UserAnswer(
            question_id=question_id,
            selected_options=selected,
            is_correct=grade(question, selected),
            time_spent=max(0, self.elapsed - self._question_entered_at),
        )
        # last write wins and moves to the end, like a fresh answer
        self._answers.pop(question_id, None)
        self._answers[question_id] = answer
        return answer

    def next(self) -> None:
        if self.quiz and self.current_index < len(self.quiz.questions) - 1:
            self._move_to(self.current_index + 1)

    def previous(self) -> None:
        if self.current_index > 0:
            self._move_to(self.current_index - 1)

    def complete(self) -> None:
        if self.is_completed:
            return
        self.state = SessionState.COMPLETED
        if self.quiz is None:
            logger.warning("Session completed with no quiz loaded")
            return
        logger.info(f"Session completed for quiz {self.quiz.id} with {len(self._answers)} answers")

    def tick(self, seconds: int = 1) -> bool:
        """
        Advance the session clock.

        Returns True only on the tick that expires a timed session.
        """
        if not self.is_started or seconds <= 0:
            return False
        self.elapsed += seconds
        if not self.is_timed:
            return False
        self.time_remaining = max(0, self.time_remaining - seconds)
        if self.time_remaining == 0:
            logger.info(f"Time budget exhausted for quiz {self.quiz.id}")
            self.complete()
            return True
        return False

    def _move_to(self, index: int) -> None:
        self.current_index = index
        self._question_entered_at = self.elapsed
