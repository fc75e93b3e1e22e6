"""Code execution engine - validates runs and dispatches them to language adapters"""

import logging
import re
import time
from typing import Any, Dict, List, Optional, Sequence

from prometheus_client import Counter

from codequest.config import settings
from codequest.core.exceptions import (
    CodeExecutionError,
    CodeTooLargeError,
    EmptyCodeError,
    UnsupportedLanguageError,
    ValidationError,
)
from codequest.schemas.execution import LANGUAGE_ALIASES, ExecutionResult, LanguageEnum, LanguageStatus, TestCase
from codequest.services.harness.base import LanguageAdapter
from codequest.services.harness.java_harness import JavaAdapter
from codequest.services.harness.javascript_harness import JavaScriptAdapter
from codequest.services.harness.native_harness import CAdapter, CppAdapter
from codequest.services.harness.python_harness import PythonAdapter
from codequest.services.result_normalizer import ResultNormalizer
from codequest.services.sandbox import NotFound, Sandbox, probe_toolchain

logger = logging.getLogger(__name__)

CODE_RUNS = Counter(
    "codequest_code_runs_total",
    "Code executions by language and outcome",
    ["language", "outcome"],
)

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


class CodeExecutor:
    """
    Single entry point for running user code against test cases.

    Validation happens here, before any child process exists; everything
    after that is delegated to the adapter registered for the language.
    """

    def __init__(
        self,
        sandbox: Optional[Sandbox] = None,
        adapters: Optional[Dict[str, LanguageAdapter]] = None,
    ):
        self.sandbox = sandbox or Sandbox()
        normalizer = ResultNormalizer()
        self.adapters: Dict[str, LanguageAdapter] = adapters or {
            LanguageEnum.PYTHON.value: PythonAdapter(self.sandbox, normalizer),
            LanguageEnum.JAVA.value: JavaAdapter(self.sandbox, normalizer),
            LanguageEnum.JAVASCRIPT.value: JavaScriptAdapter(self.sandbox, normalizer),
            LanguageEnum.C.value: CAdapter(self.sandbox, normalizer),
            LanguageEnum.CPP.value: CppAdapter(self.sandbox, normalizer),
        }

    @property
    def supported_languages(self) -> List[str]:
        return list(self.adapters)

    def normalize_language(self, language: Any) -> str:
        """Canonical language key, accepting aliases such as ``py`` or ``c++``."""
        key = str(language or "").strip().lower()
        key = LANGUAGE_ALIASES.get(key, key)
        if key not in self.adapters:
            raise UnsupportedLanguageError(str(language), self.supported_languages)
        return key

    def validate(self, language: Any, function_name: str, code: str, test_cases: Sequence[Any]) -> Dict[str, Any]:
        """
        Validate a run request.

        Returns:
            dict with the canonical language and parsed TestCase list

        Raises:
            ValidationError: (or a subclass) for any malformed input
        """
        lang = self.normalize_language(language)

        if code is None or not str(code).strip():
            raise EmptyCodeError()
        if len(code) > settings.MAX_CODE_SIZE:
            raise CodeTooLargeError(len(code), settings.MAX_CODE_SIZE)

        name = (function_name or "").strip()
        if not name or not _IDENTIFIER.match(name):
            raise ValidationError(
                "functionName must be a valid identifier",
                details={"functionName": function_name},
            )

        if not test_cases:
            raise ValidationError("At least one test case is required")
        if len(test_cases) > settings.MAX_TEST_CASES:
            raise ValidationError(
                f"Too many test cases ({len(test_cases)}, limit {settings.MAX_TEST_CASES})"
            )

        parsed = []
        for index, raw in enumerate(test_cases, start=1):
            if isinstance(raw, TestCase):
                parsed.append(raw)
                continue
            if not isinstance(raw, dict):
                raise ValidationError(f"Test case {index} must be an object")
            try:
                parsed.append(TestCase.model_validate(raw))
            except ValueError as e:
                raise ValidationError(f"Test case {index} is invalid", details={"errors": str(e)})

        return {"language": lang, "function_name": name, "test_cases": parsed}

    def execute(self, language: Any, function_name: str, code: str, test_cases: Sequence[Any]) -> ExecutionResult:
        """
        Run code against test cases.

        Raises:
            ValidationError: Request rejected before spawning anything
            CodeExecutionError: Fatal run (toolchain, compile, crash, timeout, bad output)
        """
        request = self.validate(language, function_name, code, test_cases)
        lang = request["language"]
        adapter = self.adapters[lang]

        logger.info(f"Running {len(request['test_cases'])} case(s) of {request['function_name']} in {lang}")
        start = time.time()
        try:
            result = adapter.run(request["function_name"], code, request["test_cases"])
        except CodeExecutionError as e:
            CODE_RUNS.labels(language=lang, outcome=e.error_type).inc()
            logger.info(f"{lang} run failed: {e.error_type}: {e.message}")
            raise

        CODE_RUNS.labels(language=lang, outcome="passed" if result.all_passed else "failed").inc()
        if result.duration is None:
            result.duration = round(time.time() - start, 3)
        return result

    def run_tests(self, language: Any, function_name: str, code: str, test_cases: Sequence[Any]) -> ExecutionResult:
        """
        Like execute(), but fatal run failures come back as a result with
        no cases, ``all_passed`` False and the category in ``error_type``.
        Validation errors still raise.
        """
        try:
            return self.execute(language, function_name, code, test_cases)
        except CodeExecutionError as e:
            return fatal_result(e)

    def toolchain_status(self) -> List[LanguageStatus]:
        """Probe every adapter's toolchain without running anything."""
        statuses = []
        for lang, adapter in self.adapters.items():
            available = True
            command = None
            tried: List[str] = []
            for candidates, version_args in adapter.toolchain.values():
                probe = probe_toolchain(candidates, version_args)
                if isinstance(probe, NotFound):
                    available = False
                    tried.extend(probe.tried)
                elif command is None:
                    command = probe.command
            statuses.append(LanguageStatus(language=lang, available=available, command=command, tried=tried))
        return statuses


def fatal_result(error: CodeExecutionError) -> ExecutionResult:
    """Uniform fatal shape for a failed run."""
    return ExecutionResult(
        results=[],
        all_passed=False,
        error=error.message,
        error_type=error.error_type,
        details=error.diagnostic,
    )


# Singleton instance
code_executor = CodeExecutor()
