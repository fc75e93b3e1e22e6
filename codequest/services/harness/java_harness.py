"""Java adapter - generated driver calling a static method with literal arguments"""

import json
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from codequest.core.exceptions import CompileError, FunctionNotFoundError, UnsupportedTypeError
from codequest.schemas.execution import TestCase
from codequest.services.harness.base import LanguageAdapter
from codequest.services.result_normalizer import RESULT_PREFIX
from codequest.services.sandbox import Found

_INT_MIN, _INT_MAX = -(2 ** 31), 2 ** 31 - 1
_LONG_MIN, _LONG_MAX = -(2 ** 63), 2 ** 63 - 1

_CLASS_PATTERN = re.compile(r"\b(public\s+)?(?:(?:final|abstract)\s+)*class\s+([A-Za-z_$][\w$]*)")


def _java_string(value: str) -> str:
    out = []
    for ch in value:
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
        elif ord(ch) < 0x20:
            out.append(f"\\{ord(ch):03o}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def _java_double(value: float) -> str:
    if math.isnan(value):
        return "Double.NaN"
    if math.isinf(value):
        return "Double.POSITIVE_INFINITY" if value > 0 else "Double.NEGATIVE_INFINITY"
    return repr(value)


def _java_integer(value: int) -> str:
    if _INT_MIN <= value <= _INT_MAX:
        return str(value)
    if _LONG_MIN <= value <= _LONG_MAX:
        return f"{value}L"
    raise UnsupportedTypeError(f"Integer {value} does not fit in a Java long")


def _scalar_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "int" if _INT_MIN <= value <= _INT_MAX else "long"
    if isinstance(value, float):
        return "double"
    if isinstance(value, str):
        return "String"
    if isinstance(value, list):
        return "list"
    raise UnsupportedTypeError(f"Values of type {type(value).__name__} cannot be passed to Java")


def _array_element_type(values: List[Any]) -> str:
    """
    Java element type for a JSON array argument.

    Arrays of arrays recurse (int[][]); numeric widening picks long or double.
    """
    kinds = {_scalar_kind(v) for v in values}
    if not kinds:
        return "int"
    if kinds == {"list"}:
        inner = {_array_element_type(v) for v in values if v}
        if len(inner) > 1:
            raise UnsupportedTypeError("Nested arrays with mixed element types are not supported for Java")
        return (inner.pop() if inner else "int") + "[]"
    if "list" in kinds:
        raise UnsupportedTypeError("Arrays mixing nested arrays and scalars are not supported for Java")
    if kinds <= {"int"}:
        return "int"
    if kinds <= {"int", "long"}:
        return "long"
    if kinds <= {"int", "long", "double"}:
        return "double"
    if kinds <= {"String", "null"}:
        return "String"
    if kinds == {"boolean"}:
        return "boolean"
    raise UnsupportedTypeError(f"Arrays mixing {', '.join(sorted(kinds))} are not supported for Java")


def _array_initializer(values: List[Any]) -> str:
    parts = []
    for v in values:
        if isinstance(v, list):
            parts.append(_array_initializer(v))
        elif isinstance(v, bool):
            parts.append("true" if v else "false")
        elif isinstance(v, int):
            parts.append(_java_integer(v))
        elif isinstance(v, float):
            parts.append(_java_double(v))
        elif isinstance(v, str):
            parts.append(_java_string(v))
        else:
            parts.append("null")
    return "{" + ", ".join(parts) + "}"


def java_argument_literal(value: Any) -> str:
    """Statically typed literal for one method argument."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return _java_integer(value)
    if isinstance(value, float):
        return _java_double(value)
    if isinstance(value, str):
        return _java_string(value)
    if isinstance(value, list):
        return f"new {_array_element_type(value)}[]{_array_initializer(value)}"
    raise UnsupportedTypeError(f"Values of type {type(value).__name__} cannot be passed to Java")


def java_expected_literal(value: Any) -> str:
    """Object-typed literal for an expected value; compared structurally by the driver."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "Boolean.TRUE" if value else "Boolean.FALSE"
    if isinstance(value, int):
        literal = _java_integer(value)
        return f"Long.valueOf({literal})" if literal.endswith("L") else f"Integer.valueOf({literal})"
    if isinstance(value, float):
        return f"Double.valueOf({_java_double(value)})"
    if isinstance(value, str):
        return _java_string(value)
    if isinstance(value, list):
        return "new Object[]{" + ", ".join(java_expected_literal(v) for v in value) + "}"
    if isinstance(value, dict):
        pairs = []
        for key, item in value.items():
            pairs.append(_java_string(str(key)))
            pairs.append(java_expected_literal(item))
        return "__map(new Object[]{" + ", ".join(pairs) + "})"
    raise UnsupportedTypeError(f"Expected values of type {type(value).__name__} are not supported for Java")


class JavaAdapter(LanguageAdapter):
    language = "java"
    display_name = "Java"
    toolchain = {
        "compiler": (("javac",), ("-version",)),
        "runtime": (("java",), ("-version",)),
    }
    fatal_fallback = "Java execution failed"

    def _java_vm_flags(self) -> List[str]:
        """
        JVM flags tuned for constrained sandboxes.

        Without these, default JVM code cache reservation can exceed the
        per-process memory limit and fail before compilation/execution starts.
        """
        limit_mb = max(64, int(self.sandbox.memory_limit))
        heap_mb = max(32, min(128, limit_mb // 2))
        code_cache_mb = max(16, min(64, limit_mb // 4))
        initial_heap_mb = max(8, min(32, heap_mb // 4))
        return [
            f"-Xms{initial_heap_mb}m",
            f"-Xmx{heap_mb}m",
            f"-XX:ReservedCodeCacheSize={code_cache_mb}m",
            "-XX:+UseSerialGC",
        ]

    def _javac_vm_flags(self) -> List[str]:
        return [f"-J{flag}" for flag in self._java_vm_flags()]

    @staticmethod
    def locate_method(code: str, function_name: str) -> Tuple[str, str]:
        """
        Find the class owning ``static ... function_name(`` and the source file name.

        Returns:
            (owner class, file name without extension)

        Raises:
            FunctionNotFoundError: No class, or no static method with that name
        """
        classes = [(m.start(), m.group(2), bool(m.group(1))) for m in _CLASS_PATTERN.finditer(code)]
        if not classes:
            raise FunctionNotFoundError(
                function_name,
                diagnostic="Java submissions must declare a class containing the method",
            )

        method = re.search(rf"\bstatic\b[^;{{}}()=]*\b{re.escape(function_name)}\s*\(", code)
        if method is None:
            raise FunctionNotFoundError(
                function_name,
                diagnostic=f"No static method named {function_name} was found",
            )

        owner = classes[0][1]
        for start, name, _ in classes:
            if start < method.start():
                owner = name
        public = next((name for _, name, is_public in classes if is_public), None)
        return owner, public or owner

    def render_sources(self, function_name: str, code: str, test_cases: Sequence[TestCase]) -> Dict[str, str]:
        owner, file_stem = self.locate_method(code, function_name)
        return {f"{file_stem}.java": self._create_source(code, owner, function_name, test_cases)}

    def compile_command(self, tools: Dict[str, Found], workdir: Path) -> Optional[List[str]]:
        return [
            tools["compiler"].path,
            *self._javac_vm_flags(),
            "-encoding", "UTF-8",
            "-nowarn",
            "-d", ".",
            self._find_source(workdir),
        ]

    def run_command(self, tools: Dict[str, Found], workdir: Path) -> List[str]:
        return [tools["runtime"].path, *self._java_vm_flags(), "-cp", ".", "__Runner"]

    @staticmethod
    def _find_source(workdir: Path) -> str:
        return sorted(p.name for p in workdir.glob("*.java"))[0]

    def classify_compile_failure(self, function_name: str, diagnostic: str) -> Exception:
        if "cannot find symbol" in diagnostic and f"method {function_name}(" in diagnostic:
            return FunctionNotFoundError(function_name, diagnostic=diagnostic)
        return CompileError(self.display_name, diagnostic)

    def _create_source(self, code: str, owner: str, function_name: str, test_cases: Sequence[TestCase]) -> str:
        """Append the driver class to the user's compilation unit."""
        blocks = []
        for index, tc in enumerate(test_cases, start=1):
            args_expr = ", ".join(java_argument_literal(arg) for arg in tc.args)
            expected_expr = java_expected_literal(tc.expected)
            blocks.append(f"""
        // case {index}
        try {{
            Object __out = {owner}.{function_name}({args_expr});
            __record({index}, __toJson(__out), __eq(__out, {expected_expr}), null);
        }} catch (Throwable __e) {{
            __record({index}, "null", false, String.valueOf(__e));
        }}""")
        cases_code = "".join(blocks)

        return f"""{code}

class __Runner {{
    private static final StringBuilder __results = new StringBuilder();
    private static boolean __allPassed = true;
    private static int __count = 0;

    private static void __record(int index, String outputJson, boolean passed, String error) {{
        if (__count++ > 0) __results.append(",");
        __results.append("{{\\"case\\":").append(index)
            .append(",\\"output\\":").append(outputJson)
            .append(",\\"passed\\":").append(passed)
            .append(",\\"error\\":").append(error == null ? "null" : __toJson(error))
            .append("}}");
        if (!passed) __allPassed = false;
    }}

    private static java.util.Map<String, Object> __map(Object[] pairs) {{
        java.util.LinkedHashMap<String, Object> map = new java.util.LinkedHashMap<>();
        for (int i = 0; i + 1 < pairs.length; i += 2) {{
            map.put(String.valueOf(pairs[i]), pairs[i + 1]);
        }}
        return map;
    }}

    private static boolean __isFloating(Number n) {{
        return n instanceof Double || n instanceof Float;
    }}

    private static java.util.List<Object> __asList(Object obj) {{
        if (obj instanceof Iterable<?> it) {{
            java.util.List<Object> out = new java.util.ArrayList<>();
            for (Object item : it) out.add(item);
            return out;
        }}
        if (obj != null && obj.getClass().isArray()) {{
            int len = java.lang.reflect.Array.getLength(obj);
            java.util.List<Object> out = new java.util.ArrayList<>(len);
            for (int i = 0; i < len; i++) out.add(java.lang.reflect.Array.get(obj, i));
            return out;
        }}
        return null;
    }}

    private static boolean __eq(Object actual, Object expected) {{
        if (actual == null || expected == null) return actual == expected;
        if (actual instanceof Character) actual = String.valueOf(actual);
        if (actual instanceof Number a && expected instanceof Number e) {{
            if (__isFloating(a) || __isFloating(e)) {{
                double x = a.doubleValue(), y = e.doubleValue();
                if (Double.isNaN(x) || Double.isNaN(y)) return Double.isNaN(x) && Double.isNaN(y);
                return x == y || Math.abs(x - y) <= 1e-9 * Math.max(1.0, Math.abs(y));
            }}
            return a.longValue() == e.longValue();
        }}
        if (actual instanceof String || actual instanceof Boolean) return actual.equals(expected);
        if (actual instanceof java.util.Map<?, ?> am) {{
            if (!(expected instanceof java.util.Map<?, ?> em) || am.size() != em.size()) return false;
            java.util.Map<String, Object> keyed = new java.util.HashMap<>();
            for (java.util.Map.Entry<?, ?> entry : am.entrySet()) keyed.put(String.valueOf(entry.getKey()), entry.getValue());
            for (java.util.Map.Entry<?, ?> entry : em.entrySet()) {{
                String key = String.valueOf(entry.getKey());
                if (!keyed.containsKey(key) || !__eq(keyed.get(key), entry.getValue())) return false;
            }}
            return true;
        }}
        java.util.List<Object> left = __asList(actual), right = __asList(expected);
        if (left == null || right == null || left.size() != right.size()) return false;
        for (int i = 0; i < left.size(); i++) {{
            if (!__eq(left.get(i), right.get(i))) return false;
        }}
        return true;
    }}

    private static String __escape(String s) {{
        StringBuilder sb = new StringBuilder();
        for (int i = 0; i < s.length(); i++) {{
            char c = s.charAt(i);
            switch (c) {{
                case '\\\\': sb.append("\\\\\\\\"); break;
                case '"': sb.append("\\\\\\""); break;
                case '\\n': sb.append("\\\\n"); break;
                case '\\r': sb.append("\\\\r"); break;
                case '\\t': sb.append("\\\\t"); break;
                default:
                    if (c < 0x20) sb.append(String.format("\\\\u%04x", (int) c));
                    else sb.append(c);
            }}
        }}
        return sb.toString();
    }}

    private static String __toJson(Object obj) {{
        if (obj == null) return "null";
        if (obj instanceof String || obj instanceof Character) {{
            return "\\"" + __escape(String.valueOf(obj)) + "\\"";
        }}
        if (obj instanceof Double || obj instanceof Float) {{
            double d = ((Number) obj).doubleValue();
            return (Double.isNaN(d) || Double.isInfinite(d)) ? "null" : String.valueOf(d);
        }}
        if (obj instanceof Number || obj instanceof Boolean) {{
            return String.valueOf(obj);
        }}
        if (obj instanceof java.util.Map<?, ?> map) {{
            StringBuilder sb = new StringBuilder();
            sb.append("{{");
            boolean first = true;
            for (java.util.Map.Entry<?, ?> e : map.entrySet()) {{
                if (!first) sb.append(",");
                sb.append(__toJson(String.valueOf(e.getKey())));
                sb.append(":");
                sb.append(__toJson(e.getValue()));
                first = false;
            }}
            sb.append("}}");
            return sb.toString();
        }}
        java.util.List<Object> items = __asList(obj);
        if (items != null) {{
            StringBuilder sb = new StringBuilder();
            sb.append("[");
            for (int i = 0; i < items.size(); i++) {{
                if (i > 0) sb.append(",");
                sb.append(__toJson(items.get(i)));
            }}
            sb.append("]");
            return sb.toString();
        }}
        return "\\"" + __escape(String.valueOf(obj)) + "\\"";
    }}

    public static void main(String[] args) throws java.io.IOException {{
        String __token = new java.io.BufferedReader(
            new java.io.InputStreamReader(System.in, java.nio.charset.StandardCharsets.UTF_8)).readLine();
        if (__token == null) __token = "";
        String __prefix = {json.dumps(RESULT_PREFIX)};
        java.io.PrintStream __stdout = System.out;
        System.setOut(new java.io.PrintStream(java.io.OutputStream.nullOutputStream()));
{cases_code}

        __stdout.println();
        __stdout.println(__prefix + __token.trim() + " {{\\"results\\":[" + __results + "],\\"allPassed\\":" + (__allPassed && __count > 0) + "}}");
        __stdout.flush();
    }}
}}
"""
