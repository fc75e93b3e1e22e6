"""Database models"""

from codequest.models.progress import Progress, CompletedChallenge, Badge
from codequest.models.activity import Activity

__all__ = ["Progress", "CompletedChallenge", "Badge", "Activity"]
