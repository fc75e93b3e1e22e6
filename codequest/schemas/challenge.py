"""Challenge schemas"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from codequest.schemas.execution import TestCase
from codequest.schemas.response import CamelModel


class DifficultyEnum(str, Enum):
    """Challenge difficulty"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Challenge(CamelModel):
    """A challenge projected onto one language"""
    id: str
    topic: str
    difficulty: DifficultyEnum
    title: str
    prompt: str = ""
    language: str = "python"
    function_name: str
    signature: str = ""
    starter_code: str = ""
    solution: Optional[str] = None
    test_cases: List[TestCase] = Field(default_factory=list)
    source: str = "catalog"


class MaskedTestCase(CamelModel):
    """Test case shown to learners - arguments only"""
    idx: int
    args: List[Any]
    description: str = ""


class ChallengeResponse(CamelModel):
    """Challenge as served to a learner, expected values withheld"""
    id: str
    topic: str
    difficulty: DifficultyEnum
    title: str
    prompt: str
    language: str
    function_name: str
    signature: str
    starter_code: str
    tests: List[MaskedTestCase]

    @classmethod
    def from_challenge(cls, challenge: Challenge) -> "ChallengeResponse":
        return cls(
            id=challenge.id,
            topic=challenge.topic,
            difficulty=challenge.difficulty,
            title=challenge.title,
            prompt=challenge.prompt,
            language=challenge.language,
            function_name=challenge.function_name,
            signature=challenge.signature,
            starter_code=challenge.starter_code,
            tests=[
                MaskedTestCase(idx=idx, args=list(tc.args), description=tc.description)
                for idx, tc in enumerate(challenge.test_cases)
            ],
        )


class GeneratedChallenge(CamelModel):
    """Strict shape required from the text generation API"""
    title: str = Field(..., min_length=1)
    function_name: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    starter_code: str = Field(..., min_length=1)
    solution: str = Field(..., min_length=1)
    test_cases: List[TestCase] = Field(..., min_length=1)
    prompt: str = ""
    topic: Optional[str] = None
    difficulty: Optional[str] = None

    @field_validator("function_name")
    @classmethod
    def _identifier(cls, v):
        v = v.strip()
        if not v.isidentifier():
            raise ValueError("functionName must be an identifier")
        return v


class GenerateChallengeRequest(CamelModel):
    """Request for an AI generated challenge"""
    topic: Optional[str] = Field(default=None, max_length=64)
    difficulty: Optional[DifficultyEnum] = None
    language: str = "python"
    exclude_ids: List[str] = Field(default_factory=list, max_length=200)


class GenerateChallengeResponse(CamelModel):
    success: bool = True
    source: str
    challenge: Challenge
    message: Optional[str] = None


class LearningRunRequest(CamelModel):
    """Run a catalog challenge for a learner"""
    challenge_id: str = Field(..., min_length=1, max_length=120)
    username: str = Field(..., min_length=1, max_length=100)
    code: str
    language: str = "python"

    @field_validator("code")
    @classmethod
    def sanitize_code(cls, v):
        """Sanitize code input"""
        return v.replace("\x00", "")


class LearningRunResponse(CamelModel):
    success: bool = True
    all_passed: bool
    xp_gained: int = 0
    badges_awarded: List[str] = Field(default_factory=list)
    already_completed: bool = False
    results: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None
    details: Optional[str] = None


class TopicsResponse(CamelModel):
    topics: List[str]
    difficulties: List[str] = [d.value for d in DifficultyEnum]


class LearningChallengeResponse(CamelModel):
    success: bool = True
    challenge: ChallengeResponse
