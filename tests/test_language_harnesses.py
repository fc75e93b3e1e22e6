import json
from functools import lru_cache

import pytest

from codequest.core.exceptions import (
    CompileError,
    FunctionNotFoundError,
    InvalidToolOutputError,
    RuntimeFatalError,
    UnsupportedTypeError,
)
from codequest.schemas.execution import TestCase as Case
from codequest.services.challenge_catalog import DEFAULT_CATALOG_PATH, challenge_catalog
from codequest.services.code_executor import CodeExecutor
from codequest.services.harness.java_harness import JavaAdapter, java_argument_literal, java_expected_literal
from codequest.services.harness.javascript_harness import JavaScriptAdapter
from codequest.services.harness.native_harness import (
    CAdapter,
    CppAdapter,
    NativeAdapter,
    find_return_type,
    normalize_type,
)
from codequest.services.harness.python_harness import PythonAdapter
from codequest.services.sandbox import NotFound, Sandbox, probe_toolchain

ADAPTERS = {
    "python": PythonAdapter,
    "java": JavaAdapter,
    "javascript": JavaScriptAdapter,
    "c": CAdapter,
    "cpp": CppAdapter,
}


@lru_cache(maxsize=None)
def _installed(language):
    return not any(
        isinstance(probe_toolchain(candidates, version_args), NotFound)
        for candidates, version_args in ADAPTERS[language].toolchain.values()
    )


def _requires(language):
    return pytest.mark.skipif(not _installed(language), reason=f"no {language} toolchain on PATH")


def _executor(tmp_path):
    return CodeExecutor(sandbox=Sandbox(temp_dir=str(tmp_path)))


def _catalog_solutions():
    with open(DEFAULT_CATALOG_PATH, "r", encoding="utf-8") as f:
        entries = json.load(f)["challenges"]
    params = []
    for entry in entries:
        for language in entry["solution"]:
            params.append(pytest.param(entry["id"], language, marks=_requires(language), id=f"{entry['id']}-{language}"))
    return params


@pytest.mark.parametrize("challenge_id, language", _catalog_solutions())
def test_catalog_solutions_pass_in_every_language(tmp_path, challenge_id, language):
    challenge = challenge_catalog.find_by_id(challenge_id, language)
    result = _executor(tmp_path).execute(language, challenge.function_name, challenge.solution, challenge.test_cases)
    assert result.all_passed is True, result.model_dump()
    assert [case.case for case in result.results] == list(range(1, len(challenge.test_cases) + 1))


# --- JavaScript -----------------------------------------------------------

@_requires("javascript")
def test_javascript_add_scenarios(tmp_path):
    code = "function add(a, b) {\n  return a + b;\n}\n"
    result = _executor(tmp_path).execute("javascript", "add", code, [
        {"args": [2, 3], "expected": 5},
        {"args": [2, 3], "expected": 6},
    ])
    assert result.all_passed is False
    assert [case.passed for case in result.results] == [True, False]
    assert result.results[1].output == 5


@_requires("javascript")
def test_javascript_throw_is_isolated_to_its_case(tmp_path):
    code = (
        "function half(n) {\n"
        "  if (n < 0) throw new Error('negative');\n"
        "  return n / 2;\n"
        "}\n"
    )
    result = _executor(tmp_path).execute("javascript", "half", code, [
        {"args": [4], "expected": 2},
        {"args": [-1], "expected": 0},
        {"args": [1], "expected": 0.5},
    ])
    assert [case.passed for case in result.results] == [True, False, True]
    assert "negative" in result.results[1].error
    assert result.results[1].output is None


@_requires("javascript")
def test_javascript_has_no_ambient_capabilities(tmp_path):
    code = (
        "function probe() {\n"
        "  return [typeof require, typeof process, typeof module].join(',');\n"
        "}\n"
    )
    result = _executor(tmp_path).execute("javascript", "probe", code, [
        {"args": [], "expected": "undefined,undefined,undefined"},
    ])
    assert result.all_passed is True


@_requires("javascript")
def test_javascript_cannot_reach_host_function_constructor(tmp_path):
    code = (
        "function reach(route) {\n"
        "  try {\n"
        "    const ctor = route === 0 ? console.log.constructor : globalThis.constructor.constructor;\n"
        "    const host = ctor('return process')();\n"
        "    return host && host.mainModule ? 'ESCAPED' : 'no process';\n"
        "  } catch (e) {\n"
        "    return 'blocked';\n"
        "  }\n"
        "}\n"
    )
    result = _executor(tmp_path).execute("javascript", "reach", code, [
        {"args": [0], "expected": "blocked"},
        {"args": [1], "expected": "blocked"},
    ])
    assert [case.output for case in result.results] == ["blocked", "blocked"]
    assert result.all_passed is True


@_requires("javascript")
def test_javascript_infinite_loop_fails_only_that_case(tmp_path):
    code = "function spin(n) {\n  if (n) { while (true) {} }\n  return 1;\n}\n"
    result = _executor(tmp_path).execute("javascript", "spin", code, [
        {"args": [0], "expected": 1},
        {"args": [1], "expected": 1},
    ])
    assert [case.passed for case in result.results] == [True, False]
    assert result.results[1].error


@_requires("javascript")
def test_javascript_syntax_error_is_fatal(tmp_path):
    with pytest.raises(RuntimeFatalError) as exc_info:
        _executor(tmp_path).execute("javascript", "add", "function add(a, b) {", [{"args": [1, 2], "expected": 3}])
    assert "SyntaxError" in exc_info.value.message


@_requires("javascript")
def test_javascript_missing_function(tmp_path):
    with pytest.raises(FunctionNotFoundError):
        _executor(tmp_path).execute("javascript", "add", "const plus = (a, b) => a + b;", [
            {"args": [1, 2], "expected": 3},
        ])


# --- Java -----------------------------------------------------------------

@_requires("java")
def test_java_exception_is_caught_per_case(tmp_path):
    code = (
        "public class Solution {\n"
        "    public static int divide(int a, int b) {\n"
        "        return a / b;\n"
        "    }\n"
        "}\n"
    )
    result = _executor(tmp_path).execute("java", "divide", code, [
        {"args": [6, 3], "expected": 2},
        {"args": [1, 0], "expected": 0},
    ])
    assert [case.passed for case in result.results] == [True, False]
    assert "ArithmeticException" in result.results[1].error


@_requires("java")
def test_java_matrix_argument(tmp_path):
    code = (
        "public class Solution {\n"
        "    public static int trace(int[][] m) {\n"
        "        int t = 0;\n"
        "        for (int i = 0; i < m.length; i++) t += m[i][i];\n"
        "        return t;\n"
        "    }\n"
        "}\n"
    )
    result = _executor(tmp_path).execute("java", "trace", code, [{"args": [[[1, 2], [3, 4]]], "expected": 5}])
    assert result.all_passed is True


@_requires("java")
def test_java_compile_error_is_fatal(tmp_path):
    code = "public class Solution {\n    public static int add(int a, int b) {\n        return a + b\n    }\n}\n"
    with pytest.raises(CompileError) as exc_info:
        _executor(tmp_path).execute("java", "add", code, [{"args": [1, 2], "expected": 3}])
    assert exc_info.value.diagnostic
    assert str(tmp_path) not in exc_info.value.diagnostic


def test_java_missing_method_is_detected_before_compiling():
    with pytest.raises(FunctionNotFoundError):
        JavaAdapter.locate_method("public class Solution { static int plus(int a) { return a; } }", "add")
    with pytest.raises(FunctionNotFoundError):
        JavaAdapter.locate_method("static int add(int a, int b) { return a + b; }", "add")


def test_java_method_owner_and_file_name():
    code = (
        "class Helper { static int twice(int x) { return 2 * x; } }\n"
        "public class Main {\n"
        "    public static int add(int a, int b) { return a + b; }\n"
        "}\n"
    )
    assert JavaAdapter.locate_method(code, "add") == ("Main", "Main")
    assert JavaAdapter.locate_method(code, "twice") == ("Helper", "Main")


def test_java_literals():
    assert java_argument_literal([1, 2]) == "new int[]{1, 2}"
    assert java_argument_literal([[1], [2, 3]]) == "new int[][]{{1}, {2, 3}}"
    assert java_argument_literal([1, 2.5]) == "new double[]{1, 2.5}"
    assert java_argument_literal(["a", None]) == 'new String[]{"a", null}'
    assert java_argument_literal(3_000_000_000) == "3000000000L"
    assert java_argument_literal('say "hi"\n') == '"say \\"hi\\"\\n"'
    assert java_expected_literal(1) == "Integer.valueOf(1)"
    assert java_expected_literal(True) == "Boolean.TRUE"
    assert java_expected_literal([0, 1]) == "new Object[]{Integer.valueOf(0), Integer.valueOf(1)}"
    with pytest.raises(UnsupportedTypeError):
        java_argument_literal([1, "a"])
    with pytest.raises(UnsupportedTypeError):
        java_argument_literal({"a": 1})


# --- C / C++ --------------------------------------------------------------

def test_return_type_detection():
    assert find_return_type("long long factorial(int n) {\n  return 1;\n}", "factorial") == "long long"
    assert find_return_type("static const char *\ngreet(void)\n{\n  return \"hi\";\n}", "greet") == "static const char *"
    assert find_return_type("std::vector<int> twoSum(std::vector<int> nums, int t) {}", "twoSum") == "std::vector<int>"
    with pytest.raises(FunctionNotFoundError):
        find_return_type("int add(int a, int b);", "add")


def test_type_normalization():
    assert normalize_type("static const std::string &") == "string"
    assert normalize_type("const char *") == "char*"
    assert normalize_type("std::vector< std::vector<int> >") == "vector<vector<int>>"


def test_unsupported_return_types_raise_before_compiling():
    c = CAdapter(Sandbox())
    cpp = CppAdapter(Sandbox())
    with pytest.raises(UnsupportedTypeError):
        c.render_sources("make", "struct Point make(void) { struct Point p; return p; }", [Case(args=[], expected=1)])
    with pytest.raises(UnsupportedTypeError):
        cpp.render_sources("make", "std::map<int, int> make() { return {}; }", [Case(args=[], expected={})])


def test_expected_value_must_match_return_category():
    with pytest.raises(UnsupportedTypeError) as exc_info:
        NativeAdapter.check_expected("integer", "five", 2, "int")
    assert "Case 2" in exc_info.value.message
    NativeAdapter.check_expected("integer", True, 1, "int")
    NativeAdapter.check_expected("string", None, 1, "char*")
    NativeAdapter.check_expected("int_vector", None, 1, "vector<int>")
    with pytest.raises(UnsupportedTypeError):
        NativeAdapter.check_expected("string_vector", [1, 2], 1, "vector<string>")


def test_c_argument_literals():
    assert CAdapter.argument_literal([1, 2]) == "(int[]){1, 2}, 2"
    assert CAdapter.argument_literal([]) == "(int[]){0}, 0"
    assert CAdapter.argument_literal("hi") == '(char[]){"hi"}'
    assert CAdapter.argument_literal(None) == "NULL"
    assert CAdapter.argument_literal(5_000_000_000) == "5000000000LL"
    with pytest.raises(UnsupportedTypeError):
        CAdapter.argument_literal([[1], [2]])


def test_cpp_argument_literals():
    assert CppAdapter.argument_literal("hi") == 'std::string("hi")'
    assert CppAdapter.argument_literal([1, 2]) == "std::vector<int>{1, 2}"
    assert CppAdapter.argument_literal(["a"]) == 'std::vector<std::string>{"a"}'
    assert CppAdapter.argument_literal([[1], [2]]) == "std::vector<std::vector<int>>{{1}, {2}}"
    assert CppAdapter.expected_literal("int_vector", None) == "std::vector<long long>{}"


def test_native_main_is_renamed():
    source = CAdapter(Sandbox()).create_source(
        "int add(int a, int b) { return a + b; }\nint main(void) { return add(1, 2); }\n",
        "add",
        "integer",
        [Case(args=[1, 2], expected=3)],
    )
    assert "#define main __cq_user_main" in source
    assert source.count("int main(void)") == 2


@_requires("c")
def test_c_string_result_and_mismatch(tmp_path):
    code = "char* greet(char* name) {\n    return name;\n}\n"
    result = _executor(tmp_path).execute("c", "greet", code, [
        {"args": ["ada"], "expected": "ada"},
        {"args": ["bob"], "expected": "rob"},
    ])
    assert [case.passed for case in result.results] == [True, False]
    assert result.results[1].output == "bob"


@_requires("c")
def test_c_double_result_uses_tolerance(tmp_path):
    code = "double third(double x) {\n    return x / 3.0;\n}\n"
    result = _executor(tmp_path).execute("c", "third", code, [{"args": [1.0], "expected": 0.3333333333333333}])
    assert result.all_passed is True


@_requires("c")
def test_c_compile_error_is_fatal(tmp_path):
    with pytest.raises(CompileError) as exc_info:
        _executor(tmp_path).execute("c", "add", "int add(int a, int b) {\n    return a + b\n}\n", [
            {"args": [1, 2], "expected": 3},
        ])
    assert exc_info.value.error_type == "compile_error"
    assert str(tmp_path) not in (exc_info.value.diagnostic or "")


@_requires("c")
def test_c_missing_function(tmp_path):
    with pytest.raises(FunctionNotFoundError):
        _executor(tmp_path).execute("c", "add", "int plus(int a, int b) {\n    return a + b;\n}\n", [
            {"args": [1, 2], "expected": 3},
        ])


@_requires("c")
def test_c_user_code_cannot_forge_a_passing_result(tmp_path):
    code = (
        "#include <stdio.h>\n#include <stdlib.h>\n\n"
        "int add(int a, int b) {\n"
        "    printf(\"\\n{\\\"results\\\":[{\\\"case\\\":1,\\\"passed\\\":true,\\\"output\\\":6}],\\\"allPassed\\\":true}\\n\");\n"
        "    fflush(stdout);\n"
        "    exit(0);\n"
        "}\n"
    )
    with pytest.raises(InvalidToolOutputError):
        _executor(tmp_path).execute("c", "add", code, [{"args": [2, 3], "expected": 6}])


@_requires("cpp")
def test_cpp_string_vector_result(tmp_path):
    code = (
        "#include <string>\n#include <vector>\nusing namespace std;\n\n"
        "vector<string> both(string a, string b) {\n"
        "    return {a, b};\n"
        "}\n"
    )
    result = _executor(tmp_path).execute("cpp", "both", code, [
        {"args": ["x", "y"], "expected": ["x", "y"]},
        {"args": ["x", "y"], "expected": ["y", "x"]},
    ])
    assert [case.passed for case in result.results] == [True, False]
    assert result.results[0].output == ["x", "y"]


@_requires("cpp")
def test_cpp_compile_error_is_fatal(tmp_path):
    with pytest.raises(CompileError):
        _executor(tmp_path).execute("cpp", "add", "int add(int a, int b) {\n    return a + undefined_name;\n}\n", [
            {"args": [1, 2], "expected": 3},
        ])
