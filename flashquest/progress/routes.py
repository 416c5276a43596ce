"""
HTTP surface of the progress engine.
"""
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from flashquest.auth.models import User
from flashquest.core.deps import Identity, get_current_user, get_identity
from flashquest.db.session import get_db
from flashquest.flashcards.catalog import topic_catalog
from flashquest.progress.achievements import (
    list_achievements, next_rank, rank_for_level, recent_achievements,
)
from flashquest.progress.engine import InvalidEventError, ProgressEngine, xp_threshold
from flashquest.progress.events import StudyEvent
from flashquest.progress.state import ProgressState
from flashquest.progress.store import SqlProgressStore

router = APIRouter(prefix="/api", tags=["progress"])

_event_adapter = TypeAdapter(StudyEvent)


class SaveGameStateIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    game_state: dict[str, Any]


def build_engine(db: Session, identity: Identity) -> ProgressEngine:
    subject_ids = None if identity.is_admin else identity.subject_ids
    return ProgressEngine(
        SqlProgressStore(db),
        identity.user_id,
        topics=topic_catalog(db, subject_ids),
    )


def progress_payload(state: ProgressState) -> dict:
    upcoming = next_rank(state.level)
    return {
        "state": state.to_dict(),
        "rank": rank_for_level(state.level).to_dict(),
        "nextRank": upcoming.to_dict() if upcoming else None,
        "xpThreshold": xp_threshold(state.level),
    }


@router.get("/progress")
def get_progress(
    identity: Identity = Depends(get_identity),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    engine = build_engine(db, identity)
    engine.check_daily_challenge()
    return progress_payload(engine.state)


@router.post("/progress/events")
def post_progress_event(
    body: dict = Body(...),
    identity: Identity = Depends(get_identity),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        event = _event_adapter.validate_python(body)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid event: {exc.errors()[0]['msg']}")

    engine = build_engine(db, identity)
    try:
        notifications = engine.dispatch(event)
    except InvalidEventError as exc:
        print(f"[PROGRESS] user={identity.user_id} rejected event: {exc}", flush=True)
        raise HTTPException(status_code=400, detail=str(exc))

    return {
        **progress_payload(engine.state),
        "notifications": [n.model_dump(exclude_none=True) for n in notifications],
        "saved": not engine.dirty,
    }


@router.post("/save-game-state")
def save_game_state(
    body: SaveGameStateIn,
    identity: Identity = Depends(get_identity),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        state = ProgressState.model_validate(body.game_state)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid game state ({exc.error_count()} errors)")

    engine = build_engine(db, identity)
    engine.restore(state)
    print(f"[PROGRESS] Game state merged for user {identity.user_id}", flush=True)
    return {"success": not engine.dirty}


@router.get("/achievements")
def get_achievements(
    identity: Identity = Depends(get_identity),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    state = SqlProgressStore(db).load_progress(identity.user_id)
    return list_achievements(state)


@router.get("/stats")
def get_stats(
    identity: Identity = Depends(get_identity),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    engine = build_engine(db, identity)
    engine.check_daily_challenge()
    state = engine.state
    upcoming = next_rank(state.level)
    today = engine.clock().date().isoformat()
    return {
        "totalCardsCompleted": state.total_cards_completed,
        "cardsToday": state.stats.cards_today if state.stats.cards_today_date == today else 0,
        "challengesCompleted": state.stats.challenges_completed,
        "streak": state.streak,
        "sessionSeconds": state.stats.session_seconds,
        "topics": [
            {"topic": topic, **tp.model_dump()}
            for topic, tp in sorted(state.topic_progress.items())
        ],
        "rank": rank_for_level(state.level).to_dict(),
        "nextRank": upcoming.to_dict() if upcoming else None,
        "level": state.level,
        "recentAchievements": recent_achievements(state),
    }
