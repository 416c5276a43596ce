from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from flashquest.auth.models import User, Subject, UserSubject
from flashquest.core.config import DEFAULT_SUBJECT_CODE, DEFAULT_SUBJECT_ID, DEFAULT_SUBJECT_NAME
from flashquest.core.deps import Identity, get_identity
from flashquest.core.security import hash_password, verify_password, create_access_token
from flashquest.db.session import get_db

router = APIRouter(prefix="/api", tags=["auth"])


class LoginIn(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class SignupIn(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


def resolve_subjects(db: Session, user: User) -> list[dict]:
    """
    Subjects the user may study:
      - the ones they are entitled to
      - every subject, for an admin with no explicit entitlement
      - the default subject, for anyone else with none
    """
    rows = (
        db.query(Subject)
        .join(UserSubject, UserSubject.subject_id == Subject.id)
        .filter(UserSubject.user_id == user.id)
        .order_by(Subject.id)
        .all()
    )
    if not rows and user.is_admin:
        print(f"[AUTH] No subjects for admin {user.id}, granting all subjects", flush=True)
        rows = db.query(Subject).order_by(Subject.id).all()

    subjects = [{"id": s.id, "code": s.code, "name": s.name} for s in rows]
    if not subjects:
        subjects = [{"id": DEFAULT_SUBJECT_ID, "code": DEFAULT_SUBJECT_CODE, "name": DEFAULT_SUBJECT_NAME}]
    return subjects


# =========================
# SIGNUP
# =========================
@router.post("/signup")
def signup(body: SignupIn, db: Session = Depends(get_db)):
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Missing username or password")

    if db.query(User).filter(User.username == body.username).first():
        raise HTTPException(status_code=400, detail="Username already taken")

    user = User(
        name=body.name or body.username,
        username=body.username,
        password_hash=hash_password(body.password),
        is_admin=False,
    )

    db.add(user)
    db.commit()
    db.refresh(user)

    print(f"[AUTH] Signup successful for: {user.username}", flush=True)
    return {"message": "Signup successful", "id": user.id}


# =========================
# LOGIN
# =========================
@router.post("/login")
def login(body: LoginIn, db: Session = Depends(get_db)):
    if not body.username or not body.password:
        print("[AUTH] Missing username or password in request", flush=True)
        raise HTTPException(status_code=400, detail="Missing username or password")

    user = db.query(User).filter(User.username == body.username).first()

    if not user or not verify_password(body.password, user.password_hash):
        print("[AUTH] Invalid credentials for:", body.username, flush=True)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    subjects = resolve_subjects(db, user)

    token = create_access_token({
        "sub": user.username,
        "userId": user.id,
        "username": user.username,
        "isAdmin": bool(user.is_admin),
        "subjectIds": [s["id"] for s in subjects],
    })
    print(f"[AUTH] Login successful for: {user.username} subjects={len(subjects)}", flush=True)

    return {
        "user": {
            "id": user.id,
            "name": user.name,
            "username": user.username,
            "isAdmin": bool(user.is_admin),
            "subjects": [s["name"] for s in subjects],
            "subjectData": subjects,
        },
        "token": token,
    }


# =========================
# SESSION CHECK
# =========================
@router.get("/validate-session")
def validate_session(identity: Identity = Depends(get_identity)):
    return {
        "valid": True,
        "user": {
            "userId": identity.user_id,
            "username": identity.username,
            "isAdmin": identity.is_admin,
        },
    }
