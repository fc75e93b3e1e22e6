"""Quiz schemas"""

from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from codequest.schemas.response import CamelModel


class QuizQuestion(CamelModel):
    """Multiple-choice question as produced by the model"""
    question: str = Field(..., min_length=1)
    options: List[str]
    answer_index: int
    explanation: str = ""
    code: Optional[str] = None

    @field_validator("options")
    @classmethod
    def _four_options(cls, v):
        if len(v) != 4:
            raise ValueError("exactly 4 options are required")
        return [str(option) for option in v]

    @model_validator(mode="after")
    def _answer_in_range(self):
        if not 0 <= self.answer_index <= 3:
            raise ValueError("answerIndex must be between 0 and 3")
        return self


class QuizGenerateRequest(CamelModel):
    language: str = Field(default="python", max_length=20)
    difficulty: str = Field(default="easy", max_length=10)
    topic: Optional[str] = Field(default=None, max_length=64)


class QuizQuestionResponse(CamelModel):
    """Question returned to the learner, without the answer"""
    question_id: str
    question: str
    options: List[str]
    code: Optional[str] = None
    language: str
    difficulty: str


class QuizSubmitRequest(CamelModel):
    question_id: str = Field(..., min_length=1)
    selected_index: int = Field(..., ge=0, le=3)


class QuizSubmitResponse(CamelModel):
    correct: bool
    correct_index: int
    explanation: str = ""


class QuizFinishRequest(CamelModel):
    username: str = Field(..., min_length=1, max_length=100)
    score: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    language: str = Field(default="python", max_length=20)

    @model_validator(mode="after")
    def _score_within_total(self):
        if self.score > self.total:
            raise ValueError("score cannot exceed total")
        return self


class QuizFinishResponse(CamelModel):
    xp_gained: int
    total_xp: int
