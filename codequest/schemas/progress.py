"""Progress schemas"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from codequest.schemas.challenge import DifficultyEnum
from codequest.schemas.response import CamelModel


class CompletedChallengeEntry(CamelModel):
    id: str
    title: Optional[str] = None
    difficulty: str
    language: str
    completed_at: Optional[datetime] = None


class ProgressResponse(CamelModel):
    """Learner progress snapshot"""
    username: str
    xp: int = 0
    badges: List[str] = Field(default_factory=list)
    completed_challenge_ids: List[str] = Field(default_factory=list)
    completed_challenges: List[CompletedChallengeEntry] = Field(default_factory=list)


class AwardRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=100)
    challenge_id: str = Field(..., min_length=1, max_length=120)
    difficulty: DifficultyEnum
    language: str = Field(..., min_length=1, max_length=20)
    title: Optional[str] = None
    topic: Optional[str] = None


class AwardResult(CamelModel):
    """Outcome of a completion award"""
    xp_gained: int = 0
    badges_awarded: List[str] = Field(default_factory=list)
    already_completed: bool = False
    total_xp: int = 0
