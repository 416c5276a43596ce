"""
Progress state document.

One per user. Stored and exchanged as camelCase JSON, handled in Python
with snake_case attributes.
"""
import json
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from flashquest.core.config import DAILY_CHALLENGE_TARGET


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TopicProgress(_Document):
    completed: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    percentage: int = Field(default=0, ge=0, le=100)


class DailyChallenge(_Document):
    completed: bool = False
    target: int = Field(default=DAILY_CHALLENGE_TARGET, ge=1)
    progress: int = Field(default=0, ge=0)
    # ISO date; anything other than today means the record is stale
    last_date: str = ""

    def is_current(self, today: date) -> bool:
        return self.last_date == today.isoformat()


class EarnedAchievement(_Document):
    earned_at: str


class SessionStats(_Document):
    cards_today: int = Field(default=0, ge=0)
    cards_today_date: str = ""
    session_cards: int = Field(default=0, ge=0)
    session_seconds: int = Field(default=0, ge=0)
    challenges_completed: int = Field(default=0, ge=0)
    session_milestones: list[int] = Field(default_factory=list)


class ProgressState(_Document):
    points: int = Field(default=0, ge=0)
    xp: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    streak: int = Field(default=0, ge=0)
    last_streak_date: Optional[str] = None
    total_cards_completed: int = Field(default=0, ge=0)
    completed_cards: dict[str, bool] = Field(default_factory=dict)
    topic_progress: dict[str, TopicProgress] = Field(default_factory=dict)
    daily_challenge: DailyChallenge = Field(default_factory=DailyChallenge)
    achievements: dict[str, EarnedAchievement] = Field(default_factory=dict)
    stats: SessionStats = Field(default_factory=SessionStats)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


def card_id(topic: str, card_index: int) -> str:
    return f"{topic}_{card_index}"


def card_topic(cid: str) -> str:
    """Topic part of a card id; topics may themselves contain underscores."""
    return cid.rsplit("_", 1)[0]


def new_state(today: Optional[date] = None) -> ProgressState:
    state = ProgressState()
    if today is not None:
        state.daily_challenge.last_date = today.isoformat()
    return state


def load_state(raw: Any) -> ProgressState:
    """
    Build a state from persisted data, falling back to defaults when it is
    missing or malformed.
    """
    if raw is None or raw == "":
        return new_state()

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            print(f"[PROGRESS] Stored state is not JSON, using defaults: {exc}", flush=True)
            return new_state()

    if not isinstance(raw, dict):
        print(f"[PROGRESS] Stored state has type {type(raw).__name__}, using defaults", flush=True)
        return new_state()

    try:
        state = ProgressState.model_validate(raw)
    except ValidationError as exc:
        print(f"[PROGRESS] Stored state failed validation ({exc.error_count()} errors), using defaults", flush=True)
        return new_state()

    # Membership is authoritative for the count
    state.completed_cards = {cid: True for cid, done in state.completed_cards.items() if done}
    state.total_cards_completed = len(state.completed_cards)
    return state
