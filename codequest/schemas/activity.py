"""Activity log schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from codequest.schemas.response import CamelModel

ActivityAction = Literal["code_review", "quiz_session", "file_upload", "challenge_completed", "general"]
ActivityStatus = Literal["pending", "in_progress", "completed", "failed"]


class ActivityCreate(CamelModel):
    username: str = Field(..., min_length=1, max_length=100)
    action: ActivityAction = "general"
    description: Optional[str] = Field(default=None, max_length=2000)
    xp: int = Field(default=0, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: ActivityStatus = "completed"
    request_id: Optional[str] = Field(default=None, max_length=128)


class ActivityResponse(CamelModel):
    id: int
    username: str
    action: str
    description: Optional[str] = None
    xp: int = 0
    status: str
    request_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class ActivitySummary(CamelModel):
    username: str
    total: int
    by_action: Dict[str, int]
    total_xp: int


class ActivityListResponse(CamelModel):
    activities: List[ActivityResponse]
