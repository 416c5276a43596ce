from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from flashquest.core.deps import Identity, get_identity, require_subject_access
from flashquest.db.session import get_db
from flashquest.flashcards.catalog import is_default_file_topic, list_topics
from flashquest.flashcards.models import Flashcard, SavedFlashcard

router = APIRouter(prefix="/api", tags=["flashcards"])


class SaveFlashcardIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    topic: Optional[str] = None
    card_index: Optional[int] = None
    notes: Optional[str] = None


class NotesIn(BaseModel):
    notes: Optional[str] = None


def _saved_to_dict(sf: SavedFlashcard) -> dict:
    return {
        "id": sf.id,
        "topic": sf.topic,
        "card_index": sf.card_index,
        "saved_at": sf.saved_at.isoformat() if sf.saved_at else None,
        "notes": sf.notes,
    }


# ======================================================
# TOPICS OF A SUBJECT
# ======================================================
@router.get("/flashcards/{subject_id}")
def get_subject_topics(
    subject_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    require_subject_access(identity, subject_id)
    topics = list_topics(db, subject_id)
    print(f"[FLASHCARDS] user={identity.user_id} subject={subject_id} topics={len(topics)}", flush=True)
    return {"subjectId": subject_id, "topics": topics}


# ======================================================
# CARDS OF A TOPIC
# ======================================================
@router.get("/flashcards/{subject_id}/{topic}")
def get_topic_cards(
    subject_id: int,
    topic: str,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    require_subject_access(identity, subject_id)

    if is_default_file_topic(db, subject_id, topic):
        return {"useJsonFile": True, "file": f"/{topic}.json"}

    cards = (
        db.query(Flashcard)
        .filter(Flashcard.subject_id == subject_id, Flashcard.topic == topic)
        .order_by(Flashcard.card_index)
        .all()
    )
    if not cards:
        raise HTTPException(status_code=404, detail="No flashcards found for this topic")

    return {
        "flashcards": [
            {
                "id": c.id,
                "question": c.question_path or c.question_text,
                "answer": c.answer_path or c.answer_text,
                "cardIndex": c.card_index,
            }
            for c in cards
        ]
    }


# ======================================================
# SAVED FLASHCARDS
# ======================================================
@router.get("/saved-flashcards")
def get_saved_flashcards(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(SavedFlashcard)
        .filter(SavedFlashcard.user_id == identity.user_id)
        .order_by(SavedFlashcard.saved_at.desc(), SavedFlashcard.id.desc())
        .all()
    )
    print(f"[SAVED] user={identity.user_id} count={len(rows)}", flush=True)
    return [_saved_to_dict(r) for r in rows]


@router.post("/save-flashcard")
def save_flashcard(
    body: SaveFlashcardIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    if not body.topic or body.card_index is None:
        raise HTTPException(status_code=400, detail="Missing topic or cardIndex")
    if body.card_index < 0:
        raise HTTPException(status_code=400, detail="cardIndex must not be negative")

    existing = db.query(SavedFlashcard).filter_by(
        user_id=identity.user_id, topic=body.topic, card_index=body.card_index,
    ).first()
    if existing:
        return {"success": True, "id": existing.id}

    saved = SavedFlashcard(
        user_id=identity.user_id,
        topic=body.topic,
        card_index=body.card_index,
        notes=body.notes,
    )
    try:
        db.add(saved)
        db.commit()
        db.refresh(saved)
    except SQLAlchemyError as exc:
        db.rollback()
        print(f"[SAVED] save failed user={identity.user_id} topic={body.topic} "
              f"index={body.card_index}: {exc!r}", flush=True)
        raise HTTPException(status_code=500, detail="Failed to save flashcard")

    print(f"[SAVED] user={identity.user_id} saved {body.topic}#{body.card_index} id={saved.id}", flush=True)
    return {"success": True, "id": saved.id}


def _owned_saved_card(db: Session, saved_id: int, user_id: int) -> SavedFlashcard:
    saved = db.query(SavedFlashcard).filter(
        SavedFlashcard.id == saved_id,
        SavedFlashcard.user_id == user_id,
    ).first()
    if not saved:
        raise HTTPException(status_code=404, detail="Saved flashcard not found")
    return saved


@router.patch("/saved-flashcards/{saved_id}")
def update_saved_flashcard_notes(
    saved_id: int,
    body: NotesIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    saved = _owned_saved_card(db, saved_id, identity.user_id)
    saved.notes = body.notes
    db.commit()
    db.refresh(saved)
    return _saved_to_dict(saved)


@router.delete("/saved-flashcards/{saved_id}")
def delete_saved_flashcard(
    saved_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    saved = _owned_saved_card(db, saved_id, identity.user_id)
    db.delete(saved)
    db.commit()
    print(f"[SAVED] user={identity.user_id} removed id={saved_id}", flush=True)
    return {"success": True, "message": "Saved flashcard successfully deleted"}
