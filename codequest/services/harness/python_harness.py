"""Python adapter - runs user code in an isolated namespace of a child interpreter"""

import json
from pathlib import Path
from typing import Dict, List, Sequence

from codequest.schemas.execution import TestCase
from codequest.services.harness.base import LanguageAdapter
from codequest.services.result_normalizer import RESULT_PREFIX
from codequest.services.sandbox import Found


class PythonAdapter(LanguageAdapter):
    language = "python"
    display_name = "Python"
    toolchain = {"interpreter": (("python3", "python", "py"), ("--version",))}
    fatal_fallback = "Python execution failed"

    def render_sources(self, function_name: str, code: str, test_cases: Sequence[TestCase]) -> Dict[str, str]:
        return {
            "user_code.py": code,
            "runner.py": self._create_runner(function_name, test_cases),
        }

    def run_command(self, tools: Dict[str, Found], workdir: Path) -> List[str]:
        # -I: isolated mode, ignores PYTHON* env vars and the user site dir
        return [tools["interpreter"].path, "-I", "runner.py"]

    @staticmethod
    def _create_runner(function_name: str, test_cases: Sequence[TestCase]) -> str:
        """
        Create the Python runner.

        The run token is read from stdin before the user module is executed
        into a private namespace. User prints are swallowed, and the result
        line is the only one the runner marks with the token.
        """
        cases_json = json.dumps([tc.model_dump() for tc in test_cases], ensure_ascii=False)
        return f"""
import contextlib
import copy
import io
import json
import sys

FUNCTION_NAME = {function_name!r}
TEST_CASES = json.loads({cases_json!r})
RESULT_PREFIX = {RESULT_PREFIX!r}


def _jsonable(value):
    try:
        return json.loads(json.dumps(value))
    except (TypeError, ValueError):
        return repr(value)


def _same(actual, expected):
    # JSON equality: true is not 1, while 2 and 2.0 are the same number
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    if isinstance(actual, list) and isinstance(expected, list):
        return len(actual) == len(expected) and all(_same(a, e) for a, e in zip(actual, expected))
    if isinstance(actual, dict) and isinstance(expected, dict):
        return actual.keys() == expected.keys() and all(_same(actual[k], expected[k]) for k in actual)
    return type(actual) is type(expected) and actual == expected


def _emitter(token, stream):
    def emit(payload):
        stream.write("\\n" + RESULT_PREFIX + token + " " + json.dumps(payload, ensure_ascii=False) + "\\n")
        stream.flush()
    return emit


def _describe(exc):
    text = str(exc)
    return f"{{type(exc).__name__}}: {{text}}" if text else type(exc).__name__


def main():
    emit = _emitter(sys.stdin.readline().strip(), sys.stdout)
    sys.stdin = io.StringIO()
    namespace = {{"__name__": "__user_code__", "__builtins__": __builtins__}}
    sink = io.StringIO()
    try:
        with open("user_code.py", "r", encoding="utf-8") as handle:
            source = handle.read()
        with contextlib.redirect_stdout(sink):
            exec(compile(source, "user_code.py", "exec"), namespace)
    except BaseException as exc:
        emit({{"results": [], "allPassed": False, "fatal": _describe(exc), "kind": "load_error"}})
        return 1

    fn = namespace.get(FUNCTION_NAME)
    if not callable(fn):
        emit({{
            "results": [],
            "allPassed": False,
            "fatal": f"Function {{FUNCTION_NAME}} not found",
            "kind": "function_not_found",
            "function": FUNCTION_NAME,
        }})
        return 1

    results = []
    all_passed = True
    for index, case in enumerate(TEST_CASES, start=1):
        args = case.get("args", [])
        expected = case.get("expected")
        record = {{
            "case": index,
            "args": args,
            "expected": expected,
            "output": None,
            "passed": False,
            "error": None,
            "description": case.get("description", ""),
        }}
        try:
            with contextlib.redirect_stdout(sink):
                output = fn(*copy.deepcopy(args))
            record["output"] = _jsonable(output)
            record["passed"] = _same(record["output"], expected)
        except (Exception, SystemExit) as exc:
            record["error"] = _describe(exc)
        if not record["passed"]:
            all_passed = False
        results.append(record)

    emit({{"results": results, "allPassed": all_passed and bool(results)}})
    return 0


if __name__ == "__main__":
    sys.exit(main())
"""
