"""Shape raw harness output into an ExecutionResult"""

import json
import logging
import secrets
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from codequest.core.exceptions import (
    FunctionNotFoundError,
    InvalidToolOutputError,
    RuntimeFatalError,
)
from codequest.schemas.execution import CaseResult, ExecutionResult, TestCase
from codequest.services.sandbox import ProcessOutcome, scrub_paths

logger = logging.getLogger(__name__)

_DIAGNOSTIC_LIMIT = 4000

# Harnesses prefix their result line with this marker and the run token
RESULT_PREFIX = "@@codequest-result@@"


def new_run_token() -> str:
    """Per-run token, handed to the harness on stdin before user code loads."""
    return secrets.token_hex(16)


def result_line(token: str, payload: Dict[str, Any]) -> str:
    return f"{RESULT_PREFIX}{token} {json.dumps(payload, ensure_ascii=False)}"


class ResultNormalizer:
    """
    Turns (stdout, stderr, exit code) into case results.

    Harnesses print exactly one result line,
    ``<RESULT_PREFIX><token> {results, allPassed}``. Only a line carrying
    the token of this run counts, so user code printing a look-alike blob
    to stdout cannot stand in for the harness.
    """

    def normalize(
        self,
        outcome: ProcessOutcome,
        test_cases: Sequence[TestCase],
        token: str,
        fallback_message: str = "Execution failed",
        workdir: Optional[Path] = None,
    ) -> ExecutionResult:
        stdout = scrub_paths(outcome.stdout, workdir)
        stderr = scrub_paths(outcome.stderr, workdir).strip()

        if outcome.exit_code != 0 or not stdout.strip():
            self._raise_fatal(stdout, stderr, outcome.exit_code, fallback_message, token)

        blob = self._parse_blob(stdout, token)
        if blob is None:
            logger.warning("Harness output carried no result line for this run")
            raise InvalidToolOutputError(diagnostic=_clip(stdout.strip() or stderr))

        if blob.get("fatal"):
            self._raise_from_blob(blob, stderr)

        results = blob.get("results")
        all_passed = blob.get("allPassed")
        if not isinstance(results, list) or not isinstance(all_passed, bool):
            raise InvalidToolOutputError(diagnostic=_clip(stdout.strip()))
        if len(results) != len(test_cases):
            logger.warning(f"Harness reported {len(results)} results for {len(test_cases)} cases")
            raise InvalidToolOutputError(diagnostic=_clip(stdout.strip()))

        return ExecutionResult(
            results=[self._merge_case(raw, test_cases, index) for index, raw in enumerate(results)],
            all_passed=all_passed,
            duration=outcome.duration,
        )

    def _raise_fatal(self, stdout: str, stderr: str, exit_code: int, fallback_message: str, token: str) -> None:
        blob = self._parse_blob(stdout, token) if stdout.strip() else None
        if blob is not None and blob.get("fatal"):
            self._raise_from_blob(blob, stderr)

        diagnostic = stderr or stdout.strip()
        if diagnostic:
            raise RuntimeFatalError(_last_line(diagnostic) or fallback_message, diagnostic=_clip(diagnostic))
        raise RuntimeFatalError(f"{fallback_message} (exit code {exit_code})")

    @staticmethod
    def _raise_from_blob(blob: Dict[str, Any], stderr: str) -> None:
        message = str(blob.get("fatal"))
        if blob.get("kind") == "function_not_found":
            raise FunctionNotFoundError(str(blob.get("function") or "?"), diagnostic=message)
        raise RuntimeFatalError(message, diagnostic=_clip(stderr) or None)

    @staticmethod
    def _parse_blob(stdout: str, token: str) -> Optional[Dict[str, Any]]:
        """Last line marked with this run's token; unmarked JSON is ignored."""
        if not token:
            return None
        marker = f"{RESULT_PREFIX}{token} "
        for line in reversed(stdout.splitlines()):
            line = line.strip()
            if not line.startswith(marker):
                continue
            try:
                parsed = json.loads(line[len(marker):])
            except (json.JSONDecodeError, ValueError):
                return None
            return parsed if isinstance(parsed, dict) else None
        return None

    @staticmethod
    def _merge_case(raw: Any, test_cases: Sequence[TestCase], position: int) -> CaseResult:
        if not isinstance(raw, dict):
            raise InvalidToolOutputError(diagnostic=_clip(repr(raw)))

        case_number = raw.get("case") if isinstance(raw.get("case"), int) else position + 1
        source = test_cases[case_number - 1] if 0 < case_number <= len(test_cases) else None

        error = raw.get("error")
        return CaseResult(
            case=case_number,
            args=raw["args"] if "args" in raw else (list(source.args) if source else []),
            expected=raw["expected"] if "expected" in raw else (source.expected if source else None),
            output=raw.get("output"),
            passed=raw.get("passed") is True,
            error=str(error) if error is not None else None,
            description=raw.get("description") or (source.description if source else ""),
        )


def _last_line(text: str) -> str:
    for line in reversed(text.strip().splitlines()):
        if line.strip():
            return line.strip()[:300]
    return ""


def _clip(text: str) -> str:
    if len(text) <= _DIAGNOSTIC_LIMIT:
        return text
    return text[:_DIAGNOSTIC_LIMIT] + "\n... (truncated)"
