"""
Where progress documents live between requests.
"""
from typing import Protocol

from sqlalchemy.orm import Session

from flashquest.progress.models import UserProgress
from flashquest.progress.state import ProgressState, load_state


class ProgressStore(Protocol):
    def load_progress(self, user_id: int) -> ProgressState: ...

    def save_progress(self, user_id: int, state: ProgressState) -> None: ...


class InMemoryProgressStore:
    """Keeps serialized documents in a dict; used by tests and scripts."""

    def __init__(self):
        self.documents: dict[int, str] = {}
        self.saves = 0

    def load_progress(self, user_id: int) -> ProgressState:
        return load_state(self.documents.get(user_id))

    def save_progress(self, user_id: int, state: ProgressState) -> None:
        self.documents[user_id] = state.to_json()
        self.saves += 1


class SqlProgressStore:
    """Backs progress with the user_progress table (one row per user)."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, user_id: int) -> UserProgress | None:
        return self.db.query(UserProgress).filter(UserProgress.user_id == user_id).first()

    def load_progress(self, user_id: int) -> ProgressState:
        row = self._row(user_id)
        return load_state(row.state if row else None)

    def save_progress(self, user_id: int, state: ProgressState) -> None:
        row = self._row(user_id)
        if row is None:
            row = UserProgress(user_id=user_id)
            self.db.add(row)
        row.state = state.to_json()
        row.points = state.points
        row.level = state.level
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
