"""
Progress engine.

Turns study events into an updated ProgressState plus the notifications the
front-end should show. Core rules:
  - A card counts once: completedCards membership guards every reward
  - Each new card: daily challenge progress, then +10 points
  - Points give half as much XP; XP carries over across cascading level-ups
  - Streak moves at most once per calendar day, bonus every 5th day
  - Daily challenge resets on the first use of a new calendar day
  - Achievements are append-only and pay out once

State is saved through the injected store after every operation. A failed
save is logged and left for the next operation to retry.
"""
import math
from datetime import date, datetime
from typing import Callable, Mapping, Optional

from flashquest.core.config import (
    CARD_COMPLETION_POINTS, DAILY_CHALLENGE_BONUS, DAILY_CHALLENGE_TARGET,
    DEFAULT_TOPICS, LEVEL_XP_BASE, LEVEL_XP_GROWTH, SESSION_MILESTONES,
    STREAK_BONUS_EVERY, STREAK_BONUS_MULTIPLIER,
)
from flashquest.progress.achievements import pending_achievements
from flashquest.progress.events import (
    CompleteCard, DailyReset, Notification, StartSession, Tick,
)
from flashquest.progress.state import (
    DailyChallenge, EarnedAchievement, ProgressState, TopicProgress,
    card_id, card_topic,
)
from flashquest.progress.store import ProgressStore


class InvalidEventError(ValueError):
    """Event input the engine refuses; state is left untouched."""


def xp_threshold(level: int) -> int:
    """XP needed to leave `level`: 100 * 1.5^(level-1), rounded up to whole XP."""
    return math.ceil(LEVEL_XP_BASE * LEVEL_XP_GROWTH ** (level - 1))


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ProgressEngine:

    def __init__(
        self,
        store: ProgressStore,
        user_id: int,
        topics: Optional[Mapping[str, int]] = None,
        clock: Callable[[], datetime] = datetime.now,
        state: Optional[ProgressState] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.topics = dict(DEFAULT_TOPICS if topics is None else topics)
        self.clock = clock
        self.state = state if state is not None else store.load_progress(user_id)
        self.notifications: list[Notification] = []
        self.dirty = False
        self._sync_topics()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _today(self) -> date:
        return self.clock().date()

    def _notify(self, kind: str, message: str, amount: Optional[int] = None) -> None:
        self.notifications.append(Notification(kind=kind, message=message, amount=amount))

    def _persist(self) -> None:
        try:
            self.store.save_progress(self.user_id, self.state)
            self.dirty = False
        except Exception as exc:
            # Keep the in-memory state; the next operation saves again
            self.dirty = True
            print(f"[PROGRESS] save failed user={self.user_id}: {exc!r}", flush=True)

    def flush(self) -> bool:
        """Retry a pending save. Returns True when nothing is left unsaved."""
        if self.dirty:
            self._persist()
        return not self.dirty

    def _sync_topics(self) -> None:
        for topic in self.topics:
            self._refresh_topic(topic)

    def _refresh_topic(self, topic: str) -> None:
        completed = sum(1 for cid in self.state.completed_cards if card_topic(cid) == topic)
        current = self.state.topic_progress.get(topic)
        total = self.topics.get(topic, current.total if current else 0)
        percentage = min(100, math.floor(completed * 100 / total + 0.5)) if total else 0
        self.state.topic_progress[topic] = TopicProgress(
            completed=completed, total=total, percentage=percentage,
        )

    def _roll_day(self) -> None:
        self._reset_daily_challenge_if_stale()
        today = self._today().isoformat()
        stats = self.state.stats
        if stats.cards_today_date != today:
            stats.cards_today = 0
            stats.cards_today_date = today

    def _reset_daily_challenge_if_stale(self) -> bool:
        today = self._today()
        if self.state.daily_challenge.is_current(today):
            return False
        self.state.daily_challenge = DailyChallenge(
            completed=False,
            target=DAILY_CHALLENGE_TARGET,
            progress=0,
            last_date=today.isoformat(),
        )
        return True

    def _advance_daily_challenge(self) -> None:
        challenge = self.state.daily_challenge
        if challenge.completed:
            return
        challenge.progress += 1
        if challenge.progress >= challenge.target:
            challenge.completed = True
            self.state.stats.challenges_completed += 1
            print(f"[PROGRESS] user={self.user_id} daily challenge completed", flush=True)
            self._award(
                DAILY_CHALLENGE_BONUS,
                f"Daily Challenge Completed! +{DAILY_CHALLENGE_BONUS} points",
                kind="challenge",
            )

    def _record_session_card(self) -> None:
        stats = self.state.stats
        stats.cards_today += 1
        stats.session_cards += 1
        if stats.session_cards in SESSION_MILESTONES:
            stats.session_milestones.append(stats.session_cards)

    def _award(self, amount: int, message: Optional[str] = None, kind: str = "points") -> None:
        self.state.points += amount
        self.state.xp += amount // 2
        self._notify(kind, message or f"+{amount} points", amount)
        self._check_level_up()

    def _check_level_up(self) -> None:
        # One award can be worth several levels
        while self.state.xp >= xp_threshold(self.state.level):
            self.state.xp -= xp_threshold(self.state.level)
            old = self.state.level
            self.state.level += 1
            print(f"[LEVEL-UP] user={self.user_id} {old} -> {self.state.level}", flush=True)
            self._notify("levelup", f"Level Up! You are now level {self.state.level}")

    def _evaluate_achievements(self) -> None:
        while True:
            pending = pending_achievements(self.state, self.topics)
            if not pending:
                return
            earned_at = self.clock().isoformat()
            for rule in pending:
                self.state.achievements[rule.id] = EarnedAchievement(earned_at=earned_at)
                print(f"[ACHIEVEMENT] user={self.user_id} earned '{rule.id}'", flush=True)
                self._notify("achievement", f"Achievement unlocked: {rule.title}", rule.points)
                self._award(rule.points)

    def _since(self, start: int) -> list[Notification]:
        return self.notifications[start:]

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    def complete_card(self, topic: str, card_index: int) -> list[Notification]:
        if topic not in self.topics:
            raise InvalidEventError(f"Unknown topic: {topic!r}")
        if not _is_int(card_index) or card_index < 0 or card_index >= self.topics[topic]:
            raise InvalidEventError(
                f"Card index {card_index!r} out of range for {topic!r} (0..{self.topics[topic] - 1})"
            )

        start = len(self.notifications)
        self._roll_day()

        cid = card_id(topic, card_index)
        if cid not in self.state.completed_cards:
            self.state.completed_cards[cid] = True
            self.state.total_cards_completed = len(self.state.completed_cards)
            self._refresh_topic(topic)
            self._record_session_card()
            self._advance_daily_challenge()
            self._award(CARD_COMPLETION_POINTS)
            self._evaluate_achievements()

        self._persist()
        return self._since(start)

    def award_points(self, amount: int, message: Optional[str] = None) -> list[Notification]:
        if not _is_int(amount) or amount < 0:
            raise InvalidEventError(f"Point amount must be a non-negative integer, got {amount!r}")
        start = len(self.notifications)
        self._award(amount, message)
        self._persist()
        return self._since(start)

    def update_streak(self) -> list[Notification]:
        start = len(self.notifications)
        today = self._today().isoformat()
        if self.state.last_streak_date != today:
            self.state.streak += 1
            self.state.last_streak_date = today
            streak = self.state.streak
            self._notify("streak", f"{streak} day streak!")
            if streak % STREAK_BONUS_EVERY == 0:
                bonus = streak * STREAK_BONUS_MULTIPLIER
                self._award(bonus, f"{streak} day streak! +{bonus} bonus points", kind="streak")
            self._evaluate_achievements()
            self._persist()
        return self._since(start)

    def check_daily_challenge(self) -> bool:
        """Reset a stale daily challenge. Returns True when a reset happened."""
        reset = self._reset_daily_challenge_if_stale()
        if reset:
            self._persist()
        return reset

    def evaluate_achievements(self) -> list[Notification]:
        start = len(self.notifications)
        self._evaluate_achievements()
        if len(self.notifications) > start:
            self._persist()
        return self._since(start)

    def restore(self, incoming: ProgressState) -> list[Notification]:
        """
        Merge a client-held state document into the stored one.

        Completed cards and achievements only ever grow, and points never
        drop. The higher level/xp pair wins and is re-cascaded so xp stays
        below the level threshold. A challenge already completed today stays
        completed.
        """
        start = len(self.notifications)
        stored = self.state
        merged = incoming.model_copy(deep=True)

        merged.completed_cards = {**incoming.completed_cards, **stored.completed_cards}
        merged.total_cards_completed = len(merged.completed_cards)
        merged.achievements = {**incoming.achievements, **stored.achievements}
        merged.points = max(stored.points, incoming.points)
        if (stored.level, stored.xp) > (incoming.level, incoming.xp):
            merged.level, merged.xp = stored.level, stored.xp

        challenge = merged.daily_challenge
        kept = stored.daily_challenge
        if kept.completed and kept.last_date == challenge.last_date:
            merged.daily_challenge = kept.model_copy()
        elif challenge.completed:
            challenge.progress = min(challenge.progress, challenge.target)

        self.state = merged
        self._sync_topics()
        self._check_level_up()
        self._persist()
        return self._since(start)

    def tick(self, seconds: int = 1) -> list[Notification]:
        if not _is_int(seconds) or seconds < 0:
            raise InvalidEventError(f"Tick seconds must be a non-negative integer, got {seconds!r}")
        self.state.stats.session_seconds += seconds
        self._persist()
        return []

    def start_session(self) -> list[Notification]:
        start = len(self.notifications)
        self.state.stats.session_cards = 0
        self.state.stats.session_seconds = 0
        self._roll_day()
        self.update_streak()
        self._persist()
        return self._since(start)

    def dispatch(self, event) -> list[Notification]:
        """Single entry point for front-end events."""
        if isinstance(event, CompleteCard):
            return self.complete_card(event.topic, event.card_index)
        if isinstance(event, Tick):
            return self.tick(event.seconds)
        if isinstance(event, DailyReset):
            self.check_daily_challenge()
            return []
        if isinstance(event, StartSession):
            return self.start_session()
        raise InvalidEventError(f"Unsupported event: {type(event).__name__}")
