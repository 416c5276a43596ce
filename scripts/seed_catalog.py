"""
Seed the default subject and its flashcard rows.

Creates the "AS Physics" subject (if missing) and one row per card of every
default topic, pointing at the bundled question/answer images:
card i of a topic uses ./<topic>/<2i+1>.jpg and ./<topic>/<2i+2>.jpg.
Existing rows are left alone, so the script can be re-run safely.
"""
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from flashquest.db.base import Base, engine
from flashquest.db.session import SessionLocal
from flashquest.auth.models import Subject
from flashquest.core.config import (
    DEFAULT_SUBJECT_CODE, DEFAULT_SUBJECT_ID, DEFAULT_SUBJECT_NAME, DEFAULT_TOPICS,
)
from flashquest.flashcards.models import Flashcard


def seed_catalog() -> int:
    """Insert missing subject/card rows. Returns the number of cards created."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    created = 0

    try:
        subject = db.query(Subject).filter(Subject.id == DEFAULT_SUBJECT_ID).first()
        if not subject:
            subject = Subject(id=DEFAULT_SUBJECT_ID, code=DEFAULT_SUBJECT_CODE, name=DEFAULT_SUBJECT_NAME)
            db.add(subject)
            db.flush()
            print(f"Created subject {subject.name} (id={subject.id})", flush=True)

        for topic, total in DEFAULT_TOPICS.items():
            existing = {
                r[0] for r in db.query(Flashcard.card_index).filter(
                    Flashcard.subject_id == subject.id, Flashcard.topic == topic,
                ).all()
            }
            for index in range(total):
                if index in existing:
                    continue
                db.add(Flashcard(
                    subject_id=subject.id,
                    topic=topic,
                    card_index=index,
                    question_path=f"./{topic}/{index * 2 + 1}.jpg",
                    answer_path=f"./{topic}/{index * 2 + 2}.jpg",
                ))
                created += 1
            print(f"  {topic}: {total} cards ({total - len(existing)} new)", flush=True)

        db.commit()
        print(f"\n✅ Seed complete, {created} cards created", flush=True)
        return created

    except Exception as e:
        db.rollback()
        print(f"❌ Error during seed: {e}", flush=True)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_catalog()
