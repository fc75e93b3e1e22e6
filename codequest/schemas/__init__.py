"""Pydantic schemas for API validation"""

from codequest.schemas.response import CamelModel
from codequest.schemas.execution import (
    LanguageEnum,
    TestCase,
    RunTestsRequest,
    RunTestsResponse,
    CaseResult,
    ExecutionResult,
    LanguageStatus,
)
from codequest.schemas.challenge import (
    Challenge,
    ChallengeResponse,
    GeneratedChallenge,
    GenerateChallengeRequest,
    LearningRunRequest,
)
from codequest.schemas.progress import ProgressResponse, AwardRequest, AwardResult
from codequest.schemas.quiz import QuizQuestion, QuizSubmitRequest, QuizFinishRequest
from codequest.schemas.activity import ActivityCreate, ActivityResponse, ActivitySummary
from codequest.schemas.review import ReviewRequest, ReviewResponse, DiagramRequest, DiagramResponse

__all__ = [
    "CamelModel",
    "LanguageEnum", "TestCase", "RunTestsRequest", "RunTestsResponse", "CaseResult",
    "ExecutionResult", "LanguageStatus",
    "Challenge", "ChallengeResponse", "GeneratedChallenge", "GenerateChallengeRequest",
    "LearningRunRequest",
    "ProgressResponse", "AwardRequest", "AwardResult",
    "QuizQuestion", "QuizSubmitRequest", "QuizFinishRequest",
    "ActivityCreate", "ActivityResponse", "ActivitySummary",
    "ReviewRequest", "ReviewResponse", "DiagramRequest", "DiagramResponse",
]
