import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from quizhub.services.session import QuizSessionManager

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    One session manager per user, held in process memory.

    Wall-clock time elapsed since the last access is fed to the manager as
    whole-second ticks, so a timed quiz expires on the first request after
    its budget runs out.

    Routes run on a threadpool, so every read-modify-write of a user's
    session happens under that user's lock (see `lock`).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._sessions: Dict[str, Tuple[QuizSessionManager, float]] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def lock(self, user_id: str) -> threading.RLock:
        """Re-entrant lock serialising all access to one user's session."""
        with self._guard:
            return self._locks.setdefault(user_id, threading.RLock())

    def get(self, user_id: str) -> Optional[QuizSessionManager]:
        with self.lock(user_id):
            entry = self._sessions.get(user_id)
            if entry is None:
                return None
            manager, synced_at = entry
            now = self._clock()
            whole = int(now - synced_at)
            if whole > 0:
                if manager.tick(whole):
                    logger.info(f"Session for user {user_id} expired")
                # carry the fractional remainder into the next sync
                self._sessions[user_id] = (manager, synced_at + whole)
            return manager

    def get_or_create(self, user_id: str) -> QuizSessionManager:
        with self.lock(user_id):
            manager = self.get(user_id)
            if manager is None:
                manager = QuizSessionManager()
                self._sessions[user_id] = (manager, self._clock())
            return manager

    def restart_clock(self, user_id: str) -> None:
        with self.lock(user_id):
            entry = self._sessions.get(user_id)
            if entry is not None:
                self._sessions[user_id] = (entry[0], self._clock())

    def discard(self, user_id: str) -> None:
        with self.lock(user_id):
            self._sessions.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
