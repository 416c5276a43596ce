from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from flashquest.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String, nullable=False, default="")
    username = Column(String, unique=True, index=True, nullable=False)

    password_hash = Column(String, nullable=False)

    # Admins may open every subject, entitled or not
    is_admin = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Track when user was last active (updated on every authenticated request)
    last_active = Column(DateTime(timezone=True), nullable=True)


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), nullable=False, default="")
    name = Column(String(255), unique=True, nullable=False)


class UserSubject(Base):
    """Entitlement: which subjects a user may study."""
    __tablename__ = "user_subjects"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "subject_id", name="uq_user_subject"),
    )
