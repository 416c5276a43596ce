"""
Create a user account from the command line.

    python scripts/create_user.py <username> <password> [--name NAME] [--admin] [--subject ID ...]

Subjects are granted by id; an admin without subjects sees every subject.
"""
import argparse
import sys
import os

# Add the parent directory to the path so we can import flashquest modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from flashquest.db.base import Base, engine
from flashquest.db.session import SessionLocal
from flashquest.auth.models import User, Subject, UserSubject
from flashquest.core.security import hash_password


def create_user(username: str, password: str, name: str = "", is_admin: bool = False,
                subject_ids: list[int] | None = None) -> bool:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        if db.query(User).filter(User.username == username).first():
            print(f"ERROR: Username '{username}' already exists!")
            return False

        user = User(
            name=name or username,
            username=username,
            password_hash=hash_password(password),
            is_admin=is_admin,
        )
        db.add(user)
        db.flush()

        for subject_id in subject_ids or []:
            if not db.query(Subject).filter(Subject.id == subject_id).first():
                print(f"WARNING: Subject {subject_id} not found, skipping")
                continue
            db.add(UserSubject(user_id=user.id, subject_id=subject_id))

        db.commit()
        print(f"SUCCESS: User '{user.username}' (ID: {user.id}) created. Admin: {user.is_admin}")
        return True

    except Exception as e:
        db.rollback()
        print(f"ERROR: Failed to create user: {str(e)}")
        return False
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a FlashQuest user")
    parser.add_argument("username")
    parser.add_argument("password")
    parser.add_argument("--name", default="")
    parser.add_argument("--admin", action="store_true")
    parser.add_argument("--subject", type=int, action="append", dest="subjects", default=[])
    args = parser.parse_args()

    if not create_user(args.username, args.password, args.name, args.admin, args.subjects):
        sys.exit(1)
