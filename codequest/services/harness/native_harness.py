"""C and C++ adapters - generated main with typed serialization per return category"""

import json
import math
import platform
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from codequest.core.exceptions import FunctionNotFoundError, UnsupportedTypeError
from codequest.schemas.execution import TestCase
from codequest.services.harness.base import LanguageAdapter
from codequest.services.result_normalizer import RESULT_PREFIX
from codequest.services.sandbox import Found

# Return-type categories the generated main knows how to compare and serialize
INTEGER = "integer"
FLOAT = "float"
BOOL = "bool"
STRING = "string"
INT_VECTOR = "int_vector"
FLOAT_VECTOR = "float_vector"
STRING_VECTOR = "string_vector"
INT_MATRIX = "int_matrix"

_INTEGER_TYPES = {
    "int", "long", "long long", "short", "unsigned", "unsigned int", "unsigned long",
    "unsigned long long", "long int", "long long int", "size_t", "int32_t", "int64_t",
    "uint32_t", "uint64_t",
}
_FLOAT_TYPES = {"double", "float", "long double"}
_BOOL_TYPES = {"bool", "_Bool"}
_C_STRING_TYPES = {"char*"}
_CPP_STRING_TYPES = {"string", "char*"}
_CPP_VECTOR_TYPES = {
    **{f"vector<{t}>": INT_VECTOR for t in ("int", "long", "long long", "short", "size_t", "int64_t")},
    "vector<double>": FLOAT_VECTOR,
    "vector<float>": FLOAT_VECTOR,
    "vector<string>": STRING_VECTOR,
    "vector<vector<int>>": INT_MATRIX,
    "vector<vector<long long>>": INT_MATRIX,
}

_QUALIFIERS = re.compile(r"\b(static|inline|extern|constexpr|const|volatile|register)\b")
_TYPE_PREFIX = re.compile(r"[A-Za-z_][\w\s\*&:<>,]*")
_NOT_TYPES = {"return", "else", "if", "while", "for", "switch", "do", "case", "new", "delete"}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_type(raw: str) -> str:
    """``static const std::string &`` -> ``string``; ``char *`` -> ``char*``."""
    text = _QUALIFIERS.sub(" ", raw)
    text = text.replace("std::", "").replace("&", " ")
    text = re.sub(r"\s*\*\s*", "*", text)
    text = re.sub(r"\s*([<>,])\s*", r"\1", text)
    return re.sub(r"\s+", " ", text).strip()


def find_return_type(code: str, function_name: str) -> str:
    """
    Raw declared return type of the definition ``function_name(...) {``.

    Raises:
        FunctionNotFoundError: No definition with a body was found
    """
    pattern = re.compile(rf"\b{re.escape(function_name)}\s*\([^;{{}}]*\)\s*(?:const\s*)?\{{")
    for match in pattern.finditer(code):
        line_start = code.rfind("\n", 0, match.start()) + 1
        prefix = code[line_start:match.start()].strip()
        if not prefix:
            # Return type on its own line above the name
            previous = code[:line_start].rstrip().splitlines()
            prefix = previous[-1].strip() if previous else ""
        if _TYPE_PREFIX.fullmatch(prefix) and prefix.split()[0] not in _NOT_TYPES:
            return prefix
    raise FunctionNotFoundError(function_name, diagnostic=f"No definition of {function_name} was found")


def _c_string(value: str) -> str:
    out = []
    for byte in value.encode("utf-8"):
        ch = chr(byte)
        if ch == "\\":
            out.append("\\\\")
        elif ch == '"':
            out.append('\\"')
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif byte < 0x20 or byte >= 0x7F:
            out.append(f"\\{byte:03o}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def _c_double(value: float, cpp: bool) -> str:
    if math.isnan(value):
        return "std::numeric_limits<double>::quiet_NaN()" if cpp else "NAN"
    if math.isinf(value):
        inf = "std::numeric_limits<double>::infinity()" if cpp else "INFINITY"
        return inf if value > 0 else f"-{inf}"
    return repr(float(value))


def _c_integer(value: int) -> str:
    if not -(2 ** 63) <= value < 2 ** 63:
        raise UnsupportedTypeError(f"Integer {value} does not fit in a 64-bit integer")
    if -(2 ** 31) <= value < 2 ** 31:
        return str(value)
    return f"{value}LL"


def _c_long_long(value: int) -> str:
    _c_integer(value)
    if value == -(2 ** 63):
        return "(-9223372036854775807LL - 1)"
    return f"{value}LL"


class NativeAdapter(LanguageAdapter):
    """Shared compile-and-run flow for C and C++."""

    source_name = ""
    cpp = False

    def executable_name(self) -> str:
        return "solution.exe" if platform.system() == "Windows" else "solution"

    def run_command(self, tools: Dict[str, Found], workdir: Path) -> List[str]:
        return [str(workdir / self.executable_name())]

    def return_category(self, raw_type: str) -> str:
        raise NotImplementedError

    def render_sources(self, function_name: str, code: str, test_cases: Sequence[TestCase]) -> Dict[str, str]:
        raw_type = find_return_type(code, function_name)
        category = self.return_category(raw_type)
        for index, tc in enumerate(test_cases, start=1):
            self.check_expected(category, tc.expected, index, raw_type)
        return {self.source_name: self.create_source(code, function_name, category, test_cases)}

    @staticmethod
    def check_expected(category: str, expected: Any, index: int, raw_type: str) -> None:
        """Reject expected values whose JSON type cannot match the declared return type."""
        ok = {
            INTEGER: _is_int(expected) or isinstance(expected, bool),
            FLOAT: _is_number(expected),
            BOOL: isinstance(expected, bool) or expected in (0, 1),
            STRING: isinstance(expected, str) or expected is None,
            INT_VECTOR: expected is None or (isinstance(expected, list) and all(_is_int(v) for v in expected)),
            FLOAT_VECTOR: expected is None or (isinstance(expected, list) and all(_is_number(v) for v in expected)),
            STRING_VECTOR: expected is None or (isinstance(expected, list) and all(isinstance(v, str) for v in expected)),
            INT_MATRIX: expected is None or (
                isinstance(expected, list)
                and all(isinstance(row, list) and all(_is_int(v) for v in row) for row in expected)
            ),
        }[category]
        if not ok:
            raise UnsupportedTypeError(
                f"Case {index}: expected value {expected!r} does not match return type '{raw_type}'"
            )

    @staticmethod
    def has_main(code: str) -> bool:
        return re.search(r"\b(?:int|void)\s+main\s*\(", code) is not None

    def create_source(self, code: str, function_name: str, category: str, test_cases: Sequence[TestCase]) -> str:
        raise NotImplementedError


class CAdapter(NativeAdapter):
    language = "c"
    display_name = "C"
    toolchain = {"compiler": (("gcc", "cc", "clang"), ("--version",))}
    fatal_fallback = "C execution failed"
    source_name = "solution.c"

    def compile_command(self, tools: Dict[str, Found], workdir: Path) -> Optional[List[str]]:
        return [
            tools["compiler"].path, "-std=gnu11", "-O1", "-w",
            self.source_name, "-o", self.executable_name(), "-lm",
        ]

    def return_category(self, raw_type: str) -> str:
        normalized = normalize_type(raw_type)
        if normalized in _INTEGER_TYPES:
            return INTEGER
        if normalized in _FLOAT_TYPES:
            return FLOAT
        if normalized in _BOOL_TYPES:
            return BOOL
        if normalized in _C_STRING_TYPES:
            return STRING
        raise UnsupportedTypeError(
            f"Return type '{raw_type}' is not supported for C (use an integer, floating point, bool or char* result)"
        )

    @staticmethod
    def argument_literal(value: Any) -> str:
        """
        C argument expression.

        Arrays follow the (pointer, length) convention: ``[1, 2]`` becomes
        ``(int[]){1, 2}, 2``.
        """
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int):
            return _c_integer(value)
        if isinstance(value, float):
            return _c_double(value, cpp=False)
        if isinstance(value, str):
            return f"(char[]){{{_c_string(value)}}}"
        if isinstance(value, list):
            if not value:
                return "(int[]){0}, 0"
            if all(_is_int(v) for v in value):
                element = "int" if all(-(2 ** 31) <= v < 2 ** 31 for v in value) else "long long"
                body = ", ".join(_c_integer(v) for v in value)
            elif all(_is_number(v) for v in value):
                element = "double"
                body = ", ".join(_c_double(float(v), cpp=False) for v in value)
            elif all(isinstance(v, str) for v in value):
                element = "char*"
                body = ", ".join(f"(char[]){{{_c_string(v)}}}" for v in value)
            else:
                raise UnsupportedTypeError("Only flat arrays of numbers or strings can be passed to C")
            return f"({element}[]){{{body}}}, {len(value)}"
        raise UnsupportedTypeError(f"Values of type {type(value).__name__} cannot be passed to C")

    @staticmethod
    def _case_code(index: int, call: str, category: str, expected: Any) -> str:
        if category == INTEGER:
            exp = 1 if expected is True else 0 if expected is False else expected
            return (
                f"        {{ long long __r = (long long)({call});\n"
                f"          __cq_begin_case({index}); __cq_append_int(__r);\n"
                f"          __cq_end_case(__r == {_c_long_long(exp)}); }}\n"
            )
        if category == FLOAT:
            return (
                f"        {{ double __r = (double)({call});\n"
                f"          __cq_begin_case({index}); __cq_append_double(__r);\n"
                f"          __cq_end_case(__cq_close({_c_double(float(expected), cpp=False)}, __r)); }}\n"
            )
        if category == BOOL:
            exp = 1 if expected else 0
            return (
                f"        {{ int __r = ({call}) ? 1 : 0;\n"
                f"          __cq_begin_case({index}); __cq_append(__r ? \"true\" : \"false\");\n"
                f"          __cq_end_case(__r == {exp}); }}\n"
            )
        # STRING
        if expected is None:
            check = "__r == NULL"
        else:
            check = f"__r != NULL && strcmp(__r, {_c_string(expected)}) == 0"
        return (
            f"        {{ const char* __r = {call};\n"
            f"          __cq_begin_case({index}); __cq_append_string(__r);\n"
            f"          __cq_end_case({check}); }}\n"
        )

    def create_source(self, code: str, function_name: str, category: str, test_cases: Sequence[TestCase]) -> str:
        has_main = self.has_main(code)
        rename_prefix = "#define main __cq_user_main\n" if has_main else ""
        rename_suffix = "\n#undef main\n" if has_main else ""

        cases = []
        for index, tc in enumerate(test_cases, start=1):
            call = f"{function_name}({', '.join(self.argument_literal(arg) for arg in tc.args)})"
            cases.append(self._case_code(index, call, category, tc.expected))

        return f"""#include <stdio.h>
#include <stdlib.h>
#include <string.h>
#include <stdbool.h>
#include <math.h>

{rename_prefix}{code}{rename_suffix}

static char* __cq_data = NULL;
static size_t __cq_len = 0, __cq_cap = 0;
static int __cq_all_passed = 1;
static int __cq_count = 0;

static void __cq_append(const char* s) {{
    size_t n = strlen(s);
    if (__cq_len + n + 1 > __cq_cap) {{
        size_t cap = __cq_cap ? __cq_cap * 2 : 1024;
        while (cap < __cq_len + n + 1) cap *= 2;
        __cq_data = (char*)realloc(__cq_data, cap);
        if (!__cq_data) exit(3);
        __cq_cap = cap;
    }}
    memcpy(__cq_data + __cq_len, s, n + 1);
    __cq_len += n;
}}

static void __cq_append_int(long long v) {{
    char buf[32];
    snprintf(buf, sizeof buf, "%lld", v);
    __cq_append(buf);
}}

static void __cq_append_double(double v) {{
    char buf[64];
    if (!isfinite(v)) {{
        __cq_append("null");
        return;
    }}
    snprintf(buf, sizeof buf, "%.17g", v);
    __cq_append(buf);
}}

static void __cq_append_string(const char* s) {{
    char buf[8];
    if (s == NULL) {{
        __cq_append("null");
        return;
    }}
    __cq_append("\\"");
    for (const unsigned char* p = (const unsigned char*)s; *p; p++) {{
        switch (*p) {{
            case '\\\\': __cq_append("\\\\\\\\"); break;
            case '"': __cq_append("\\\\\\""); break;
            case '\\n': __cq_append("\\\\n"); break;
            case '\\r': __cq_append("\\\\r"); break;
            case '\\t': __cq_append("\\\\t"); break;
            default:
                if (*p < 0x20) {{
                    snprintf(buf, sizeof buf, "\\\\u%04x", *p);
                }} else {{
                    buf[0] = (char)*p;
                    buf[1] = '\\0';
                }}
                __cq_append(buf);
        }}
    }}
    __cq_append("\\"");
}}

static int __cq_close(double expected, double actual) {{
    if (isnan(expected) || isnan(actual)) return isnan(expected) && isnan(actual);
    if (expected == actual) return 1;
    return fabs(expected - actual) <= 1e-9 * fmax(1.0, fabs(expected));
}}

static void __cq_begin_case(int index) {{
    if (__cq_count++ > 0) __cq_append(",");
    __cq_append("{{\\"case\\":");
    __cq_append_int(index);
    __cq_append(",\\"output\\":");
}}

static void __cq_end_case(int passed) {{
    __cq_append(",\\"passed\\":");
    __cq_append(passed ? "true" : "false");
    __cq_append(",\\"error\\":null}}");
    if (!passed) __cq_all_passed = 0;
}}

int main(void) {{
    char __cq_token[128];
    if (!fgets(__cq_token, sizeof __cq_token, stdin)) __cq_token[0] = '\\0';
    __cq_token[strcspn(__cq_token, "\\r\\n")] = '\\0';
{"".join(cases)}
    fflush(stdout);
    printf("\\n%s%s {{\\"results\\":[%s],\\"allPassed\\":%s}}\\n",
           {json.dumps(RESULT_PREFIX)}, __cq_token,
           __cq_data ? __cq_data : "",
           (__cq_all_passed && __cq_count > 0) ? "true" : "false");
    return 0;
}}
"""


class CppAdapter(NativeAdapter):
    language = "cpp"
    display_name = "C++"
    toolchain = {"compiler": (("g++", "clang++", "c++"), ("--version",))}
    fatal_fallback = "C++ execution failed"
    source_name = "solution.cpp"
    cpp = True

    def compile_command(self, tools: Dict[str, Found], workdir: Path) -> Optional[List[str]]:
        return [
            tools["compiler"].path, "-std=c++17", "-O1", "-w",
            self.source_name, "-o", self.executable_name(),
        ]

    def return_category(self, raw_type: str) -> str:
        normalized = normalize_type(raw_type)
        if normalized in _INTEGER_TYPES:
            return INTEGER
        if normalized in _FLOAT_TYPES:
            return FLOAT
        if normalized in _BOOL_TYPES:
            return BOOL
        if normalized in _CPP_STRING_TYPES:
            return STRING
        if normalized in _CPP_VECTOR_TYPES:
            return _CPP_VECTOR_TYPES[normalized]
        raise UnsupportedTypeError(
            f"Return type '{raw_type}' is not supported for C++ "
            "(use an integer, floating point, bool, string or vector of int/double/string result)"
        )

    @classmethod
    def argument_literal(cls, value: Any) -> str:
        if value is None:
            return "nullptr"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int):
            return _c_integer(value)
        if isinstance(value, float):
            return _c_double(value, cpp=True)
        if isinstance(value, str):
            return f"std::string({_c_string(value)})"
        if isinstance(value, list):
            return f"{cls._vector_type(value)}{cls._vector_body(value)}"
        raise UnsupportedTypeError(f"Values of type {type(value).__name__} cannot be passed to C++")

    @classmethod
    def _vector_type(cls, values: List[Any]) -> str:
        if not values or all(_is_int(v) for v in values):
            wide = any(not -(2 ** 31) <= v < 2 ** 31 for v in values)
            return "std::vector<long long>" if wide else "std::vector<int>"
        if all(_is_number(v) for v in values):
            return "std::vector<double>"
        if all(isinstance(v, str) for v in values):
            return "std::vector<std::string>"
        if all(isinstance(v, bool) for v in values):
            return "std::vector<bool>"
        if all(isinstance(v, list) for v in values):
            inner = {cls._vector_type(v) for v in values if v}
            if len(inner) > 1:
                raise UnsupportedTypeError("Nested arrays with mixed element types are not supported for C++")
            return f"std::vector<{inner.pop() if inner else 'std::vector<int>'}>"
        raise UnsupportedTypeError("Arrays mixing element types are not supported for C++")

    @classmethod
    def _vector_body(cls, values: List[Any]) -> str:
        parts = []
        for v in values:
            if isinstance(v, list):
                parts.append(cls._vector_body(v))
            elif isinstance(v, str):
                parts.append(_c_string(v))
            else:
                parts.append(cls.argument_literal(v))
        return "{" + ", ".join(parts) + "}"

    @classmethod
    def expected_literal(cls, category: str, expected: Any) -> str:
        if category == INTEGER:
            value = 1 if expected is True else 0 if expected is False else expected
            return _c_long_long(value)
        if category == FLOAT:
            return _c_double(float(expected), cpp=True)
        if category == BOOL:
            return "true" if expected else "false"
        if category == STRING:
            return "std::optional<std::string>()" if expected is None else f"std::optional<std::string>(std::string({_c_string(expected)}))"
        # Vectors: null means "no result", which C++ can only express as empty
        values = expected or []
        if category == INT_VECTOR:
            return "std::vector<long long>{" + ", ".join(_c_integer(v) for v in values) + "}"
        if category == FLOAT_VECTOR:
            return "std::vector<double>{" + ", ".join(_c_double(float(v), cpp=True) for v in values) + "}"
        if category == STRING_VECTOR:
            return "std::vector<std::string>{" + ", ".join(_c_string(v) for v in values) + "}"
        rows = ", ".join("{" + ", ".join(_c_integer(v) for v in row) + "}" for row in values)
        return "std::vector<std::vector<long long>>{" + rows + "}"

    def create_source(self, code: str, function_name: str, category: str, test_cases: Sequence[TestCase]) -> str:
        has_main = self.has_main(code)
        rename_prefix = "#define main __cq_user_main\n" if has_main else ""
        rename_suffix = "\n#undef main\n" if has_main else ""

        blocks = []
        for index, tc in enumerate(test_cases, start=1):
            args_expr = ", ".join(self.argument_literal(arg) for arg in tc.args)
            expected_expr = self.expected_literal(category, tc.expected)
            blocks.append(f"""
    // case {index}
    try {{
        auto __r = {function_name}({args_expr});
        __cq::record(__out, {index}, __cq::to_json(__r), __cq::equals(__r, {expected_expr}), nullptr);
    }} catch (const std::exception& e) {{
        __cq::record(__out, {index}, "null", false, e.what());
    }} catch (...) {{
        __cq::record(__out, {index}, "null", false, "Unknown exception");
    }}
""")

        return f"""#include <algorithm>
#include <cmath>
#include <cstdio>
#include <cstring>
#include <iomanip>
#include <iostream>
#include <limits>
#include <optional>
#include <sstream>
#include <string>
#include <type_traits>
#include <vector>
using namespace std;

{rename_prefix}{code}{rename_suffix}

namespace __cq {{
    static bool all_passed = true;
    static int count = 0;

    static std::string escape(const std::string& s) {{
        std::string out;
        out.reserve(s.size());
        for (char c : s) {{
            switch (c) {{
                case '\\\\': out += "\\\\\\\\"; break;
                case '\"': out += "\\\\\\""; break;
                case '\\n': out += "\\\\n"; break;
                case '\\r': out += "\\\\r"; break;
                case '\\t': out += "\\\\t"; break;
                default:
                    if (static_cast<unsigned char>(c) < 0x20) {{
                        char buf[8];
                        std::snprintf(buf, sizeof buf, "\\\\u%04x", static_cast<unsigned char>(c));
                        out += buf;
                    }} else {{
                        out += c;
                    }}
                    break;
            }}
        }}
        return out;
    }}

    inline std::string to_json(const std::string& v) {{
        return std::string("\\"") + escape(v) + "\\"";
    }}

    inline std::string to_json(const char* v) {{
        return v ? to_json(std::string(v)) : std::string("null");
    }}

    inline std::string to_json(bool v) {{
        return v ? "true" : "false";
    }}

    template <typename T>
    std::enable_if_t<std::is_integral_v<T> && !std::is_same_v<T, bool>, std::string>
    to_json(const T& v) {{
        return std::to_string(v);
    }}

    template <typename T>
    std::enable_if_t<std::is_floating_point_v<T>, std::string>
    to_json(const T& v) {{
        if (!std::isfinite(static_cast<double>(v))) return "null";
        std::ostringstream oss;
        oss << std::setprecision(17) << static_cast<double>(v);
        return oss.str();
    }}

    template <typename T>
    std::string to_json(const std::vector<T>& vec) {{
        std::string out = "[";
        for (size_t i = 0; i < vec.size(); ++i) {{
            if (i) out += ",";
            out += to_json(static_cast<T>(vec[i]));
        }}
        out += "]";
        return out;
    }}

    template <typename T>
    std::enable_if_t<std::is_integral_v<T> && !std::is_same_v<T, bool>, bool>
    equals(const T& actual, long long expected) {{
        return static_cast<long long>(actual) == expected;
    }}

    template <typename T>
    std::enable_if_t<std::is_floating_point_v<T>, bool>
    equals(const T& actual, double expected) {{
        double a = static_cast<double>(actual);
        if (std::isnan(a) || std::isnan(expected)) return std::isnan(a) && std::isnan(expected);
        if (a == expected) return true;
        return std::fabs(a - expected) <= 1e-9 * std::max(1.0, std::fabs(expected));
    }}

    inline bool equals(bool actual, bool expected) {{
        return actual == expected;
    }}

    inline bool equals(const std::string& actual, const std::optional<std::string>& expected) {{
        return expected.has_value() && actual == *expected;
    }}

    inline bool equals(const char* actual, const std::optional<std::string>& expected) {{
        if (!actual) return !expected.has_value();
        return expected.has_value() && *expected == actual;
    }}

    inline bool equals(const std::string& actual, const std::string& expected) {{
        return actual == expected;
    }}

    template <typename T, typename U>
    bool equals(const std::vector<T>& actual, const std::vector<U>& expected) {{
        if (actual.size() != expected.size()) return false;
        for (size_t i = 0; i < actual.size(); ++i) {{
            if (!equals(static_cast<T>(actual[i]), expected[i])) return false;
        }}
        return true;
    }}

    static void record(std::ostringstream& out, int index, const std::string& output_json, bool passed, const char* error) {{
        if (count++ > 0) out << ",";
        out << "{{\\"case\\":" << index
            << ",\\"output\\":" << output_json
            << ",\\"passed\\":" << (passed ? "true" : "false")
            << ",\\"error\\":" << (error ? to_json(std::string(error)) : std::string("null"))
            << "}}";
        if (!passed) all_passed = false;
    }}
}}

int main() {{
    std::string __cq_token;
    std::getline(std::cin, __cq_token);
    while (!__cq_token.empty() && (__cq_token.back() == '\\r' || __cq_token.back() == '\\n')) __cq_token.pop_back();
    std::ostringstream __out;
{"".join(blocks)}
    std::cout.flush();
    std::cout << "\\n" << {json.dumps(RESULT_PREFIX)} << __cq_token << " {{\\"results\\":[" << __out.str() << "],\\"allPassed\\":"
              << ((__cq::all_passed && __cq::count > 0) ? "true" : "false") << "}}" << std::endl;
    return 0;
}}
"""
