"""Code execution schemas - test cases, run requests and results"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import ConfigDict, Field, field_validator

from codequest.schemas.response import CamelModel


class LanguageEnum(str, Enum):
    """Supported programming languages"""
    PYTHON = "python"
    JAVA = "java"
    JAVASCRIPT = "javascript"
    C = "c"
    CPP = "cpp"


# Accepted spellings at the boundary
LANGUAGE_ALIASES = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "c++": "cpp",
    "cxx": "cpp",
}


class TestCase(CamelModel):
    """One positional-argument call and its expected JSON result"""
    model_config = ConfigDict(frozen=True)

    args: List[Any] = Field(default_factory=list)
    expected: Any = None
    description: str = ""

    @field_validator("args", mode="before")
    @classmethod
    def _wrap_scalar_args(cls, v):
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            return [v]
        return list(v)

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, v):
        return "" if v is None else str(v)


class RunTestsRequest(CamelModel):
    """Ad-hoc run of user code against caller-supplied cases"""
    language: str = Field(..., min_length=1, max_length=20)
    function_name: str = Field(..., min_length=1, max_length=100)
    code: str
    test_cases: List[TestCase] = Field(default_factory=list)

    @field_validator("code")
    @classmethod
    def sanitize_code(cls, v):
        """Sanitize code input"""
        return v.replace("\x00", "")


class CaseResult(CamelModel):
    """Outcome of one test case"""
    case: int
    args: List[Any] = Field(default_factory=list)
    expected: Any = None
    output: Any = None
    passed: bool = False
    error: Optional[str] = None
    description: str = ""


class ExecutionResult(CamelModel):
    """
    Normalized result of a run.

    A fatal run carries no case results, ``all_passed`` False and the
    failure category in ``error_type``.
    """
    results: List[CaseResult] = Field(default_factory=list)
    all_passed: bool = False
    error: Optional[str] = None
    error_type: Optional[str] = None
    details: Optional[str] = None
    duration: Optional[float] = None

    @property
    def is_fatal(self) -> bool:
        return self.error_type is not None


class RunTestsResponse(ExecutionResult):
    """Run-tests endpoint response"""
    success: bool = True
    message: str = ""


class LanguageStatus(CamelModel):
    """Toolchain availability for one language"""
    language: str
    available: bool
    command: Optional[str] = None
    tried: List[str] = Field(default_factory=list)
