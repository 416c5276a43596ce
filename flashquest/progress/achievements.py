"""
Achievement rules and level ranks.

Every achievement is awarded at most once; its predicate only reads the
progress state and the list of known topics.
"""
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from flashquest.progress.state import ProgressState


@dataclass(frozen=True)
class AchievementRule:
    id: str
    title: str
    description: str
    points: int
    icon: str
    condition: Callable[[ProgressState, tuple[str, ...]], bool]


def _any_topic_finished(state: ProgressState, topics: tuple[str, ...]) -> bool:
    return any(
        p.total > 0 and p.completed >= p.total
        for p in state.topic_progress.values()
    )


def _every_topic_started(state: ProgressState, topics: tuple[str, ...]) -> bool:
    if not topics:
        return False
    return all(
        topic in state.topic_progress and state.topic_progress[topic].completed > 0
        for topic in topics
    )


ACHIEVEMENTS: tuple[AchievementRule, ...] = (
    AchievementRule("first_card", "First Step", "Review your first flashcard", 50, "school",
                    lambda s, t: s.total_cards_completed >= 1),
    AchievementRule("fast_learner", "Fast Learner", "Review 10 cards in one day", 100, "speed",
                    lambda s, t: s.stats.cards_today >= 10),
    AchievementRule("topic_master", "Topic Master", "Complete an entire topic", 200, "workspace_premium",
                    _any_topic_finished),
    AchievementRule("perfect_week", "Perfect Week", "Maintain a 7-day streak", 500, "calendar_month",
                    lambda s, t: s.streak >= 7),
    AchievementRule("physics_enthusiast", "Physics Enthusiast",
                    "Review at least one card for 30 consecutive days", 1000, "auto_awesome",
                    lambda s, t: s.streak >= 30),
    AchievementRule("knowledge_explorer", "Knowledge Explorer", "Review cards from all available topics",
                    150, "travel_explore", _every_topic_started),
    AchievementRule("daily_devotion", "Daily Devotion", "Complete 5 daily challenges", 250,
                    "assignment_turned_in", lambda s, t: s.stats.challenges_completed >= 5),
    AchievementRule("review_master", "Review Master", "Review 100 cards in total", 300, "military_tech",
                    lambda s, t: s.total_cards_completed >= 100),
    AchievementRule("quick_learner", "Quick Learner", "Review 20 cards in a single session", 200, "bolt",
                    lambda s, t: s.stats.session_cards >= 20),
    AchievementRule("milestone_master", "Milestone Master", "Reach 3 session milestones", 150, "flag",
                    lambda s, t: len(s.stats.session_milestones) >= 3),
    AchievementRule("dedicated_student", "Dedicated Student", "Reach level 5", 250, "psychology",
                    lambda s, t: s.level >= 5),
    AchievementRule("physics_scholar", "Physics Scholar", "Reach level 10", 500, "school",
                    lambda s, t: s.level >= 10),
)

ACHIEVEMENTS_BY_ID = {a.id: a for a in ACHIEVEMENTS}


def pending_achievements(state: ProgressState, topics: Iterable[str]) -> list[AchievementRule]:
    """Rules whose condition holds but which the user has not earned yet."""
    known = tuple(topics)
    return [
        rule for rule in ACHIEVEMENTS
        if rule.id not in state.achievements and rule.condition(state, known)
    ]


def list_achievements(state: ProgressState) -> list[dict]:
    """Every achievement with its earned flag, for display."""
    result = []
    for rule in ACHIEVEMENTS:
        earned = state.achievements.get(rule.id)
        result.append({
            "id": rule.id,
            "title": rule.title,
            "description": rule.description,
            "points": rule.points,
            "icon": rule.icon,
            "earned": earned is not None,
            "earnedAt": earned.earned_at if earned else None,
        })
    return result


def recent_achievements(state: ProgressState, limit: int = 3) -> list[dict]:
    earned = [a for a in list_achievements(state) if a["earned"]]
    earned.sort(key=lambda a: a["earnedAt"] or "", reverse=True)
    return earned[:limit]


# ---------------------------------------------------------------------------
# RANKS
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rank:
    min_level: int
    max_level: Optional[int]  # None: unbounded
    title: str
    icon: str

    def contains(self, level: int) -> bool:
        return level >= self.min_level and (self.max_level is None or level <= self.max_level)

    def to_dict(self) -> dict:
        return {
            "minLevel": self.min_level,
            "maxLevel": self.max_level,
            "title": self.title,
            "icon": self.icon,
        }


RANKS: tuple[Rank, ...] = (
    Rank(1, 5, "Novice", "emoji_events"),
    Rank(6, 10, "Apprentice", "psychology"),
    Rank(11, 15, "Scholar", "school"),
    Rank(16, 20, "Master", "workspace_premium"),
    Rank(21, 25, "Expert", "stars"),
    Rank(26, 30, "Genius", "auto_awesome"),
    Rank(31, None, "Physics Legend", "rocket_launch"),
)


def rank_for_level(level: int) -> Rank:
    for rank in RANKS:
        if rank.contains(level):
            return rank
    return RANKS[0]


def next_rank(level: int) -> Optional[Rank]:
    for i, rank in enumerate(RANKS):
        if rank.contains(level):
            return RANKS[i + 1] if i + 1 < len(RANKS) else None
    return None
