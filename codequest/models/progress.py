"""Learner progress models - XP, completed challenges and badges"""

from sqlalchemy import Column, Integer, String, DateTime, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.sql import func

from codequest.core.database import Base


class Progress(Base):
    """Per-user XP total"""

    __tablename__ = "progress"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    xp = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("xp >= 0", name="chk_progress_xp"),
    )

    def __repr__(self):
        return f"<Progress(username='{self.username}', xp={self.xp})>"


class CompletedChallenge(Base):
    """One row per (user, challenge); the unique key makes awards idempotent"""

    __tablename__ = "completed_challenges"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False)
    challenge_id = Column(String(120), nullable=False)
    title = Column(String(255), nullable=True)
    topic = Column(String(64), nullable=True)
    difficulty = Column(String(10), nullable=False)
    language = Column(String(20), nullable=False)
    completed_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("username", "challenge_id", name="uq_completed_user_challenge"),
        Index("idx_completed_username", "username"),
        CheckConstraint(
            "difficulty IN ('easy', 'medium', 'hard')",
            name="chk_completed_difficulty"
        ),
    )

    def to_dict(self):
        """Convert to dictionary"""
        return {
            "id": self.challenge_id,
            "title": self.title,
            "difficulty": self.difficulty,
            "language": self.language,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }


class Badge(Base):
    """Badge earned by a user"""

    __tablename__ = "badges"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False)
    name = Column(String(120), nullable=False)
    awarded_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("username", "name", name="uq_badge_user_name"),
        Index("idx_badges_username", "username"),
    )
