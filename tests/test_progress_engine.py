import pytest

from flashquest.progress.engine import InvalidEventError, ProgressEngine, xp_threshold
from flashquest.progress.events import CompleteCard, DailyReset, StartSession, Tick
from flashquest.progress.state import ProgressState, load_state
from flashquest.progress.store import InMemoryProgressStore


USER_ID = 7


def make_engine(clock, topics=None, store=None):
    return ProgressEngine(store or InMemoryProgressStore(), USER_ID, topics=topics, clock=clock)


def kinds(notifications):
    return [n.kind for n in notifications]


# ---------------------------------------------------------------------------
# completeCard
# ---------------------------------------------------------------------------

def test_total_counts_distinct_cards_only(clock):
    engine = make_engine(clock)
    for topic, index in [("mechanics", 0), ("mechanics", 1), ("mechanics", 0),
                         ("waves", 0), ("waves", 0), ("mechanics", 1)]:
        engine.complete_card(topic, index)

    assert engine.state.total_cards_completed == 3
    assert set(engine.state.completed_cards) == {"mechanics_0", "mechanics_1", "waves_0"}


def test_completing_same_card_twice_changes_nothing(clock):
    engine = make_engine(clock)
    engine.complete_card("mechanics", 4)
    once = engine.state.to_dict()

    notifications = engine.complete_card("mechanics", 4)

    assert notifications == []
    assert engine.state.to_dict() == once


def test_first_card_pays_base_points_and_first_step(clock):
    engine = make_engine(clock)
    notifications = engine.complete_card("mechanics", 0)

    # 10 for the card, 50 for the first-card achievement
    assert engine.state.points == 60
    assert "first_card" in engine.state.achievements
    assert engine.state.achievements["first_card"].earned_at == clock.now.isoformat()
    assert kinds(notifications) == ["points", "achievement", "points"]


def test_topic_progress_tracks_completion(clock):
    engine = make_engine(clock, topics={"tiny": 4, "other": 2})
    engine.complete_card("tiny", 0)
    engine.complete_card("tiny", 3)

    progress = engine.state.topic_progress["tiny"]
    assert (progress.completed, progress.total, progress.percentage) == (2, 4, 50)
    assert engine.state.topic_progress["other"].completed == 0


@pytest.mark.parametrize("topic,index", [
    ("astrology", 0),
    ("mechanics", -1),
    ("mechanics", 51),
    ("mechanics", "3"),
    ("mechanics", True),
])
def test_invalid_card_is_rejected_without_state_change(clock, topic, index):
    store = InMemoryProgressStore()
    engine = make_engine(clock, store=store)
    before = engine.state.to_dict()

    with pytest.raises(InvalidEventError):
        engine.complete_card(topic, index)

    assert engine.state.to_dict() == before
    assert store.saves == 0


# ---------------------------------------------------------------------------
# awardPoints / leveling
# ---------------------------------------------------------------------------

def test_xp_threshold_grows_by_half_each_level():
    assert [xp_threshold(level) for level in (1, 2, 3, 4)] == [100, 150, 225, 338]


def test_small_awards_do_not_level_up(clock):
    engine = make_engine(clock)
    for _ in range(5):
        engine.award_points(10)

    assert (engine.state.points, engine.state.xp, engine.state.level) == (50, 25, 1)


def test_single_level_up_keeps_remainder(clock):
    engine = make_engine(clock)
    notifications = engine.award_points(250)

    assert (engine.state.points, engine.state.xp, engine.state.level) == (250, 25, 2)
    assert kinds(notifications) == ["points", "levelup"]


def test_large_award_cascades_through_levels(clock):
    engine = make_engine(clock)
    notifications = engine.award_points(1000)

    # 500 xp: -100 (L2) -150 (L3) -225 (L4) leaves 25 < 338
    assert engine.state.level == 4
    assert engine.state.xp == 25
    assert 0 <= engine.state.xp < xp_threshold(engine.state.level)
    assert kinds(notifications).count("levelup") == 3


def test_negative_award_is_rejected(clock):
    engine = make_engine(clock)
    with pytest.raises(InvalidEventError):
        engine.award_points(-5)
    assert engine.state.points == 0


# ---------------------------------------------------------------------------
# daily challenge
# ---------------------------------------------------------------------------

def test_ten_cards_complete_the_daily_challenge_once(clock):
    engine = make_engine(clock)
    notifications = []
    for i in range(10):
        notifications += engine.complete_card("mechanics", i)

    challenge = engine.state.daily_challenge
    assert challenge.completed is True
    assert challenge.progress == 10
    bonus = [n for n in notifications if n.kind == "challenge"]
    assert [n.amount for n in bonus] == [50]
    assert engine.state.stats.challenges_completed == 1

    # progress stops at the target once the challenge is done
    notifications = engine.complete_card("mechanics", 10)
    assert engine.state.daily_challenge.progress == 10
    assert "challenge" not in kinds(notifications)


def test_daily_challenge_resets_once_per_new_day(clock):
    engine = make_engine(clock)
    engine.complete_card("mechanics", 0)
    assert engine.state.daily_challenge.progress == 1
    assert engine.check_daily_challenge() is False

    clock.advance(days=1)
    assert engine.check_daily_challenge() is True
    assert engine.check_daily_challenge() is False

    challenge = engine.state.daily_challenge
    assert (challenge.completed, challenge.target, challenge.progress) == (False, 10, 0)
    assert challenge.last_date == clock.now.date().isoformat()


def test_cards_today_restart_on_a_new_day(clock):
    engine = make_engine(clock)
    engine.complete_card("mechanics", 0)
    engine.complete_card("mechanics", 1)
    clock.advance(days=1)
    engine.complete_card("mechanics", 2)

    assert engine.state.stats.cards_today == 1
    assert engine.state.daily_challenge.progress == 1


# ---------------------------------------------------------------------------
# streak
# ---------------------------------------------------------------------------

def test_streak_moves_once_per_day(clock):
    engine = make_engine(clock)
    engine.update_streak()
    engine.update_streak()
    assert engine.state.streak == 1

    clock.advance(days=1)
    engine.update_streak()
    assert engine.state.streak == 2


def test_every_fifth_day_pays_streak_bonus(clock):
    engine = make_engine(clock)
    for _ in range(4):
        engine.update_streak()
        clock.advance(days=1)
    assert engine.state.points == 0

    notifications = engine.update_streak()

    assert engine.state.streak == 5
    assert engine.state.points == 10
    bonus = [n for n in notifications if n.amount == 10]
    assert bonus and bonus[0].kind == "streak"


def test_week_long_streak_earns_perfect_week(clock):
    engine = make_engine(clock)
    for _ in range(7):
        engine.update_streak()
        clock.advance(days=1)
    assert "perfect_week" in engine.state.achievements


# ---------------------------------------------------------------------------
# achievements
# ---------------------------------------------------------------------------

def test_finishing_every_topic_card_earns_topic_master(clock):
    engine = make_engine(clock, topics={"tiny": 2})
    engine.complete_card("tiny", 0)
    assert "topic_master" not in engine.state.achievements

    engine.complete_card("tiny", 1)

    assert engine.state.topic_progress["tiny"].percentage == 100
    assert "topic_master" in engine.state.achievements
    assert "knowledge_explorer" in engine.state.achievements


def test_long_session_earns_session_achievements(clock):
    engine = make_engine(clock)
    engine.start_session()
    for i in range(20):
        engine.complete_card("materials", i)

    assert engine.state.stats.session_milestones == [5, 10, 20]
    assert "quick_learner" in engine.state.achievements
    assert "milestone_master" in engine.state.achievements


def test_achievements_are_never_awarded_twice(clock):
    engine = make_engine(clock)
    engine.complete_card("mechanics", 0)
    points = engine.state.points

    assert engine.evaluate_achievements() == []
    assert engine.state.points == points


def test_achievement_points_can_unlock_level_achievements(clock):
    engine = make_engine(clock)
    engine.award_points(3000)
    assert engine.state.level >= 5

    notifications = engine.evaluate_achievements()

    assert "dedicated_student" in engine.state.achievements
    assert "achievement" in kinds(notifications)


# ---------------------------------------------------------------------------
# sessions, ticks and dispatch
# ---------------------------------------------------------------------------

def test_start_session_resets_session_counters_and_updates_streak(clock):
    engine = make_engine(clock)
    engine.start_session()
    engine.complete_card("waves", 0)
    engine.tick(30)
    assert engine.state.stats.session_cards == 1
    assert engine.state.stats.session_seconds == 30

    clock.advance(days=1)
    engine.start_session()

    assert engine.state.stats.session_cards == 0
    assert engine.state.stats.session_seconds == 0
    assert engine.state.streak == 2


def test_dispatch_routes_each_event_kind(clock):
    engine = make_engine(clock)
    engine.dispatch(StartSession())
    engine.dispatch(CompleteCard(topic="photon", card_index=2))
    engine.dispatch(Tick(seconds=5))
    clock.advance(days=1)
    engine.dispatch(DailyReset())

    assert engine.state.streak == 1
    assert "photon_2" in engine.state.completed_cards
    assert engine.state.stats.session_seconds == 5
    assert engine.state.daily_challenge.progress == 0


def test_dispatch_rejects_unknown_events(clock):
    engine = make_engine(clock)
    with pytest.raises(InvalidEventError):
        engine.dispatch({"kind": "complete_card"})


# ---------------------------------------------------------------------------
# persistence
# ---------------------------------------------------------------------------

class FlakyStore(InMemoryProgressStore):
    def __init__(self):
        super().__init__()
        self.failing = True

    def save_progress(self, user_id, state):
        if self.failing:
            raise ConnectionError("database unavailable")
        super().save_progress(user_id, state)


def test_failed_save_keeps_state_and_retries_on_next_mutation(clock):
    store = FlakyStore()
    engine = make_engine(clock, store=store)

    engine.complete_card("mechanics", 0)
    assert engine.dirty is True
    assert engine.state.total_cards_completed == 1
    assert USER_ID not in store.documents

    store.failing = False
    engine.complete_card("mechanics", 1)

    assert engine.dirty is False
    saved = store.load_progress(USER_ID)
    assert saved.total_cards_completed == 2


def test_flush_retries_a_pending_save(clock):
    store = FlakyStore()
    engine = make_engine(clock, store=store)
    engine.award_points(10)
    assert engine.flush() is False

    store.failing = False
    assert engine.flush() is True
    assert store.load_progress(USER_ID).points == 10


def test_state_round_trips_through_store(clock):
    store = InMemoryProgressStore()
    engine = make_engine(clock, store=store)
    engine.start_session()
    engine.complete_card("electricity", 3)

    reloaded = make_engine(clock, store=store)

    assert reloaded.state.to_dict() == engine.state.to_dict()


@pytest.mark.parametrize("raw", [None, "", "not json", "[1, 2]", '{"points": -4}', '{"level": "high"}'])
def test_malformed_stored_state_falls_back_to_defaults(raw):
    state = load_state(raw)
    assert (state.points, state.xp, state.level, state.streak) == (0, 0, 1, 0)
    assert state.completed_cards == {}


def test_loaded_state_recounts_completed_cards():
    state = load_state({
        "points": 40,
        "totalCardsCompleted": 99,
        "completedCards": {"mechanics_0": True, "waves_3": True, "waves_4": False},
    })
    assert state.points == 40
    assert state.total_cards_completed == 2
    assert set(state.completed_cards) == {"mechanics_0", "waves_3"}


# ---------------------------------------------------------------------------
# restoring a client-held state
# ---------------------------------------------------------------------------

def test_restore_never_drops_earned_progress(clock):
    engine = make_engine(clock)
    for i in range(10):
        engine.complete_card("mechanics", i)
    before = engine.state.model_copy(deep=True)

    stale = ProgressState(daily_challenge=before.daily_challenge.model_copy(
        update={"completed": False, "progress": 0},
    ))
    engine.restore(stale)

    state = engine.state
    assert state.completed_cards == before.completed_cards
    assert state.total_cards_completed == 10
    assert set(state.achievements) == set(before.achievements)
    assert (state.points, state.level, state.xp) == (before.points, before.level, before.xp)
    assert state.daily_challenge.completed is True
    assert state.topic_progress["mechanics"].completed == 10

    # replaying a card the client had forgotten pays nothing
    assert engine.complete_card("mechanics", 0) == []


def test_restore_cascades_oversized_xp(clock):
    engine = make_engine(clock)
    notifications = engine.restore(ProgressState(xp=5000))

    assert (engine.state.level, engine.state.xp) == (9, 71)
    assert engine.state.xp < xp_threshold(engine.state.level)
    assert kinds(notifications) == ["levelup"] * 8


def test_restore_clamps_completed_challenge_progress(clock):
    engine = make_engine(clock)
    today = clock.now.date().isoformat()
    incoming = ProgressState.model_validate({
        "dailyChallenge": {"completed": True, "target": 10, "progress": 25, "lastDate": today},
    })
    engine.restore(incoming)

    assert engine.state.daily_challenge.progress == 10
    assert engine.store.saves == 1
