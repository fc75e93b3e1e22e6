"""Activity log model - append-only record of learner actions."""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index, CheckConstraint
from sqlalchemy.sql import func

from codequest.core.database import Base

ACTIVITY_ACTIONS = ("code_review", "quiz_session", "file_upload", "challenge_completed", "general")
ACTIVITY_STATUSES = ("pending", "in_progress", "completed", "failed")


class Activity(Base):
    """Activity events. ``request_id`` deduplicates client retries."""

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False, index=True)
    action = Column(String(32), nullable=False, index=True, default="general")
    request_id = Column(String(128), unique=True, nullable=True)
    description = Column(Text, nullable=True)
    xp = Column(Integer, default=0, nullable=False)
    status = Column(String(16), default="completed", nullable=False)
    metadata_json = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_activities_created_at", "created_at"),
        CheckConstraint(
            "action IN ('code_review', 'quiz_session', 'file_upload', 'challenge_completed', 'general')",
            name="chk_activity_action"
        ),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'failed')",
            name="chk_activity_status"
        ),
    )
