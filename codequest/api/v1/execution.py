"""Execution routes - ad-hoc test runs and toolchain status"""

from typing import List

from fastapi import APIRouter, Depends

from codequest.api.deps import get_client_ip
from codequest.schemas.execution import LanguageStatus, RunTestsRequest, RunTestsResponse
from codequest.services.code_executor import code_executor
from codequest.services.rate_limiter import rate_limiter

router = APIRouter()


@router.post("/run-tests", response_model=RunTestsResponse)
def run_tests(
    request: RunTestsRequest,
    client_ip: str = Depends(get_client_ip),
):
    """
    Run user code against caller-supplied test cases

    Args:
        request: Language, function name, code and test cases
        client_ip: Client address

    Returns:
        Per-case results; fatal failures are rendered by the
        CodeExecutionError handler with their own status code
    """
    rate_limiter.check_run("execution", client_ip)

    result = code_executor.execute(
        request.language,
        request.function_name,
        request.code,
        request.test_cases,
    )
    passed = sum(1 for case in result.results if case.passed)
    return RunTestsResponse(
        **result.model_dump(),
        success=True,
        message=f"{passed}/{len(result.results)} test case(s) passed",
    )


@router.get("/languages", response_model=List[LanguageStatus])
def list_languages():
    """Toolchain availability per supported language"""
    return code_executor.toolchain_status()
