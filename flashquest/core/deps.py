from dataclasses import dataclass, field
from datetime import datetime, timezone

from fastapi import Request, Depends, HTTPException
from sqlalchemy.orm import Session

from flashquest.db.session import get_db
from flashquest.auth.models import User
from flashquest.core.security import decode_access_token


@dataclass
class Identity:
    """Who is calling, as carried by the bearer token."""
    user_id: int
    username: str
    is_admin: bool = False
    subject_ids: list[int] = field(default_factory=list)

    def can_access_subject(self, subject_id: int) -> bool:
        return self.is_admin or subject_id in self.subject_ids


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None
    parts = auth_header.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip() or None
    # Tolerate a raw token without the scheme
    return auth_header.strip() or None


def get_identity(request: Request) -> Identity:
    token = _bearer_token(request)
    if not token:
        print(f"[AUTH] reject reason=missing_token path={request.url.path}", flush=True)
        raise HTTPException(status_code=401, detail="Authentication required")

    payload = decode_access_token(token)
    if not payload or payload.get("userId") is None:
        print(f"[AUTH] reject reason=invalid_token path={request.url.path}", flush=True)
        raise HTTPException(status_code=403, detail="Invalid or expired token")

    try:
        subject_ids = [int(s) for s in payload.get("subjectIds") or []]
        user_id = int(payload["userId"])
    except (TypeError, ValueError):
        print(f"[AUTH] reject reason=bad_claims path={request.url.path}", flush=True)
        raise HTTPException(status_code=403, detail="Invalid or expired token")

    return Identity(
        user_id=user_id,
        username=payload.get("username") or payload.get("sub") or "",
        is_admin=bool(payload.get("isAdmin")),
        subject_ids=subject_ids,
    )


def get_current_user(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the token to a stored user; also stamps last_active."""
    user = db.query(User).filter(User.id == identity.user_id).first()
    if not user:
        print(f"[AUTH] reject reason=user_not_found user_id={identity.user_id}", flush=True)
        raise HTTPException(status_code=401, detail="User not found")

    try:
        user.last_active = datetime.now(timezone.utc)
        db.commit()
    except Exception as exc:
        db.rollback()
        print(f"[AUTH] last_active update failed user={user.id}: {exc!r}", flush=True)

    return user


def require_subject_access(identity: Identity, subject_id: int) -> None:
    if not identity.can_access_subject(subject_id):
        print(f"[AUTH] user={identity.user_id} denied subject={subject_id}", flush=True)
        raise HTTPException(status_code=403, detail="Access denied to this subject")
