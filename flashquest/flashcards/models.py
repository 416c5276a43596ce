from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from flashquest.db.base import Base


class Flashcard(Base):
    __tablename__ = "flashcards"

    id = Column(Integer, primary_key=True, index=True)

    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    topic = Column(String(255), nullable=False)
    card_index = Column(Integer, nullable=False)

    # Cards are image pairs; text is the fallback when no image exists
    question_path = Column(String, nullable=True)
    answer_path = Column(String, nullable=True)
    question_text = Column(Text, nullable=True)
    answer_text = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("subject_id", "topic", "card_index", name="uq_flashcard_position"),
    )


# ======================================================
# SAVED (BOOKMARKED) FLASHCARDS
# ======================================================
class SavedFlashcard(Base):
    __tablename__ = "saved_flashcards"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    topic = Column(String(255), nullable=False)
    card_index = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    saved_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "topic", "card_index", name="uq_saved_flashcard"),
    )
