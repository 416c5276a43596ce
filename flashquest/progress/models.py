from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from flashquest.db.base import Base


class UserProgress(Base):
    """
    One progress document per user.

    `state` holds the full camelCase JSON document; `points` and `level`
    are copies kept in columns so the leaderboard can sort in SQL.
    """
    __tablename__ = "user_progress"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True, index=True)
    state = Column(Text, nullable=False, default="{}")

    points = Column(Integer, nullable=False, default=0, index=True)
    level = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
