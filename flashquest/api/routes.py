"""
API routes for the user profile and the leaderboard.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from flashquest.auth.models import User
from flashquest.auth.routes import resolve_subjects
from flashquest.core.deps import get_current_user, get_identity
from flashquest.db.session import get_db
from flashquest.progress.achievements import rank_for_level
from flashquest.progress.models import UserProgress
from flashquest.progress.store import SqlProgressStore

router = APIRouter(prefix="/api", tags=["api"])


@router.get("/me")
def get_me(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Return the user profile with the headline progress numbers for the header.
    """
    state = SqlProgressStore(db).load_progress(user.id)
    rank = rank_for_level(state.level)
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "isAdmin": bool(user.is_admin),
        "subjectData": resolve_subjects(db, user),
        "points": state.points,
        "level": state.level,
        "streak": state.streak,
        "rank": rank.title,
        "rankIcon": rank.icon,
    }


@router.get("/leaderboard", dependencies=[Depends(get_identity)])
def get_leaderboard(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(User, UserProgress)
        .join(UserProgress, UserProgress.user_id == User.id)
        .order_by(UserProgress.points.desc(), UserProgress.level.desc(), User.id.asc())
        .limit(limit)
        .all()
    )
    print(f"[LEADERBOARD] returning {len(rows)} rows", flush=True)
    return [
        {
            "name": user.name or user.username,
            "avatar": "default",
            "level": progress.level,
            "points": progress.points,
        }
        for user, progress in rows
    ]
