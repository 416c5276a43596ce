"""
Topic catalogue helpers.

The database is the source of truth for cards. The default subject falls
back to a built-in topic list while it has no rows, in which case the
front-end reads each topic from a bundled JSON file.
"""
from typing import Iterable, Optional

from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from flashquest.core.config import DEFAULT_SUBJECT_ID, DEFAULT_TOPICS
from flashquest.flashcards.models import Flashcard


def _has_rows(db: Session, subject_id: int) -> bool:
    return db.query(Flashcard.id).filter(Flashcard.subject_id == subject_id).first() is not None


def list_topics(db: Session, subject_id: int) -> list[str]:
    rows = (
        db.query(distinct(Flashcard.topic))
        .filter(Flashcard.subject_id == subject_id)
        .order_by(Flashcard.topic)
        .all()
    )
    topics = [r[0] for r in rows]
    if not topics and subject_id == DEFAULT_SUBJECT_ID:
        return list(DEFAULT_TOPICS)
    return topics


def is_default_file_topic(db: Session, subject_id: int, topic: str) -> bool:
    """True when the topic is served from its bundled JSON file."""
    return (
        subject_id == DEFAULT_SUBJECT_ID
        and topic in DEFAULT_TOPICS
        and not db.query(Flashcard.id).filter(
            Flashcard.subject_id == subject_id, Flashcard.topic == topic,
        ).first()
    )


def topic_catalog(db: Session, subject_ids: Optional[Iterable[int]] = None) -> dict[str, int]:
    """
    Map topic -> number of cards across the given subjects (all subjects when
    None). Used by the progress engine to size topic progress and to validate
    card indexes.
    """
    query = db.query(Flashcard.topic, func.count(Flashcard.id)).group_by(Flashcard.topic)
    ids = None if subject_ids is None else list(subject_ids)
    if ids is not None:
        query = query.filter(Flashcard.subject_id.in_(ids) if ids else Flashcard.subject_id == -1)

    catalog = {topic: count for topic, count in query.all()}

    wants_default = ids is None or DEFAULT_SUBJECT_ID in ids
    if wants_default and not _has_rows(db, DEFAULT_SUBJECT_ID):
        for topic, total in DEFAULT_TOPICS.items():
            catalog.setdefault(topic, total)
    return catalog
